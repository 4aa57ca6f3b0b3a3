"""Deterministic naming rules shared by the sync and generation layers.

Converts component ids to bundle ids, manifest entry names to field names
(and back), and bundle ids to the class names used by every generated
artifact.
"""

import re
from enum import Enum

# Manifest property/slot names: lowercase, starts with a letter,
# letters/digits/underscores only
ENTRY_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

# Bundle ids follow the same rule as entry names
BUNDLE_ID_PATTERN = ENTRY_NAME_PATTERN

# Machine names (bundle ids, field names) are capped by the record store
MAX_MACHINE_NAME_LENGTH = 32

# Disjoint prefixes keep property fields and slot fields in separate namespaces
PROPERTY_FIELD_PREFIX = "field_"
SLOT_FIELD_PREFIX = "slot_"


class NamingStyle(str, Enum):
    """CSS class naming conventions for generated artifacts."""

    MINIMAL = "minimal"
    BLOCK_ELEMENT = "prefixed-block-element"
    FRAMEWORK = "framework-conventional"


def bundle_id_for_component(component_id: str) -> str:
    """Convert a manifest component id to a bundle id.

    Rules:
    - Drop a ``provider:`` namespace prefix
    - Lowercase
    - Replace runs of characters outside [a-z0-9_] with one underscore
    - Strip leading/trailing underscores
    - Prefix with 'c_' if the result starts with a digit
    - At most 32 characters

    Args:
        component_id: The manifest id, e.g. "theme:hero-banner".

    Returns:
        A bundle id matching ^[a-z][a-z0-9_]*$.

    Raises:
        ValueError: If the id is empty after processing or too long.
    """
    name = component_id.rsplit(":", 1)[-1].strip().lower()
    name = re.sub(r"[^a-z0-9_]+", "_", name).strip("_")

    if not name:
        msg = f"Component id '{component_id}' cannot be converted: empty after processing"
        raise ValueError(msg)

    if not name[0].isalpha():
        name = "c_" + name

    if len(name) > MAX_MACHINE_NAME_LENGTH:
        msg = (
            f"Component id '{component_id}' cannot be converted: "
            f"'{name}' exceeds {MAX_MACHINE_NAME_LENGTH} characters"
        )
        raise ValueError(msg)

    return name


def validate_entry_name(name: str, *, slot: bool = False) -> str:
    """Validate a manifest property or slot name.

    Args:
        name: The entry name as written in the manifest.
        slot: True for slot names, False for property names.

    Returns:
        The name unchanged.

    Raises:
        ValueError: If the name does not match the entry pattern or its field
            name would exceed the machine name limit.
    """
    kind = "slot" if slot else "property"
    if not ENTRY_NAME_PATTERN.match(name):
        msg = (
            f"{kind} name '{name}' must be lowercase, start with a letter, "
            "and contain only letters, numbers, and underscores"
        )
        raise ValueError(msg)
    field_name = slot_field_name(name) if slot else property_field_name(name)
    if len(field_name) > MAX_MACHINE_NAME_LENGTH:
        msg = f"{kind} name '{name}' is too long: field name '{field_name}' exceeds {MAX_MACHINE_NAME_LENGTH} characters"
        raise ValueError(msg)
    return name


def property_field_name(name: str) -> str:
    """Return the field name that stores manifest property ``name``."""
    return PROPERTY_FIELD_PREFIX + name


def slot_field_name(name: str) -> str:
    """Return the field name that stores manifest slot ``name``."""
    return SLOT_FIELD_PREFIX + name


def entry_name_from_field(field_name: str, *, slot: bool) -> str:
    """Strip the property or slot prefix from a field name.

    Fields created outside of a manifest may carry no prefix; their name
    is used as-is.
    """
    prefix = SLOT_FIELD_PREFIX if slot else PROPERTY_FIELD_PREFIX
    if field_name.startswith(prefix) and len(field_name) > len(prefix):
        return field_name[len(prefix):]
    return field_name


def humanize(name: str) -> str:
    """Turn a machine name into a label: 'cta_text' -> 'Cta text'."""
    words = re.sub(r"[_\-]+", " ", name).strip()
    return words[:1].upper() + words[1:]


def kebab(name: str) -> str:
    """Convert a machine name to kebab case: 'cta_text' -> 'cta-text'."""
    return re.sub(r"[_\s]+", "-", name.strip()).lower()


def component_class_name(bundle_id: str) -> str:
    """Convert a bundle id to a PascalCase component name.

    'hero_banner' -> 'HeroBanner', 'c_3col' -> 'C3col'.
    """
    return "".join(part[:1].upper() + part[1:] for part in bundle_id.split("_") if part)


def base_class(component: str, style: NamingStyle) -> str:
    """Return the root CSS class for a component."""
    name = kebab(component)
    match style:
        case NamingStyle.BLOCK_ELEMENT:
            return f"c-{name}"
        case NamingStyle.FRAMEWORK:
            return f"component-{name}"
        case _:
            return name


def element_class(base: str, element: str, style: NamingStyle) -> str:
    """Return the CSS class for an element inside a component."""
    if style is NamingStyle.BLOCK_ELEMENT:
        return f"{base}__{element}"
    return f"{base}-{element}"


def modifier_class(element: str, modifier: str) -> str:
    """Return a modifier class for an element or root class.

    Every naming style marks modifiers with ``--``, which no element name
    contains, so a modifier never equals an element class.
    """
    return f"{element}--{modifier}"


def property_element(name: str) -> str:
    """Element name used for a property's wrapper.

    Machine names are kept as they are: they never contain '-', so a property
    cannot take the class of a slot, and 'a_b' stays distinct from 'a__b'.
    """
    return name


def slot_element(name: str) -> str:
    """Element name used for a slot's wrapper."""
    return f"slot-{name}"
