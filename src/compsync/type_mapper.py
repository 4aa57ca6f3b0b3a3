"""Bidirectional mapping between manifest property types and field types.

Field types map many-to-one onto property type tags. Property tags map
one-to-many onto candidate field types; the candidate is chosen from hints
(enum, format, maxLength) and otherwise falls back to a declared default per
tag. Unknown field types map to ``string`` with a logged warning, so both
directions are total. Everything here is pure.
"""

import logging
from typing import Any

from compsync.bundle_schema import UNLIMITED, FieldDefinition, Provenance
from compsync.errors import TypeMappingError
from compsync.manifest_schema import PropertyConstraints, PropertySchema, PropertyType, SlotSchema
from compsync.naming import (
    entry_name_from_field,
    humanize,
    property_field_name,
    slot_field_name,
)

logger = logging.getLogger(__name__)

FIELD_TO_PROPERTY: dict[str, PropertyType] = {
    "string": PropertyType.STRING,
    "string_long": PropertyType.STRING,
    "text": PropertyType.STRING,
    "text_long": PropertyType.STRING,
    "text_with_summary": PropertyType.STRING,
    "email": PropertyType.STRING,
    "telephone": PropertyType.STRING,
    "uri": PropertyType.STRING,
    "datetime": PropertyType.STRING,
    "list_string": PropertyType.STRING,
    "integer": PropertyType.NUMBER,
    "decimal": PropertyType.NUMBER,
    "float": PropertyType.NUMBER,
    "timestamp": PropertyType.NUMBER,
    "list_integer": PropertyType.NUMBER,
    "list_float": PropertyType.NUMBER,
    "boolean": PropertyType.BOOLEAN,
    "link": PropertyType.OBJECT,
    "entity_reference": PropertyType.OBJECT,
    "entity_reference_revisions": PropertyType.OBJECT,
    "image": PropertyType.OBJECT,
    "file": PropertyType.OBJECT,
    "map": PropertyType.OBJECT,
    "json": PropertyType.OBJECT,
}

SUPPORTED_FIELD_TYPES = frozenset(FIELD_TO_PROPERTY)

# Declared default field type for each property tag (reverse direction)
DEFAULT_FIELD_TYPE: dict[PropertyType, str] = {
    PropertyType.STRING: "string",
    PropertyType.NUMBER: "decimal",
    PropertyType.BOOLEAN: "boolean",
    PropertyType.OBJECT: "json",
    PropertyType.ARRAY: "string",
}

# Tag used when a field type is unknown
FALLBACK_PROPERTY_TYPE = PropertyType.STRING

# Field type that stores slot content
SLOT_FIELD_TYPE = "text_long"

# Strings longer than this are stored in a long-text field
LONG_TEXT_THRESHOLD = 255

# Field types whose property schema carries a format hint
FORMAT_BY_FIELD_TYPE = {
    "email": "email",
    "uri": "uri",
    "link": "uri",
    "datetime": "date-time",
}

ENUM_FIELD_TYPES = frozenset({"list_string", "list_integer", "list_float"})


def lookup_property_type(field_type: str) -> PropertyType:
    """Look up the property tag for a field type.

    Raises:
        TypeMappingError: If the field type is not in the table.
    """
    try:
        return FIELD_TO_PROPERTY[field_type]
    except KeyError:
        raise TypeMappingError(field_type, "field-to-property") from None


def field_type_to_property_type(field_type: str, cardinality: int = 1) -> PropertyType:
    """Map a field type to a property type tag.

    Multi-valued fields map to ``array``. Unknown types fall back to
    ``string`` and log a warning; this function never raises.

    Args:
        field_type: Record-store field type.
        cardinality: Field cardinality; anything other than 1 means array.

    Returns:
        The property type tag.
    """
    if cardinality != 1:
        return PropertyType.ARRAY
    try:
        return lookup_property_type(field_type)
    except TypeMappingError as e:
        logger.warning("%s; falling back to '%s'", e, FALLBACK_PROPERTY_TYPE.value)
        return FALLBACK_PROPERTY_TYPE


def item_type(field_type: str) -> PropertyType:
    """Property tag of a single value of a (possibly multi-valued) field."""
    return field_type_to_property_type(field_type, cardinality=1)


def property_type_to_field_type(tag: PropertyType, hints: PropertyConstraints | None = None) -> str:
    """Map a property type tag to a field type.

    Args:
        tag: The property type tag.
        hints: Constraints that select a more specific field type
            (enum, format, maxLength). For arrays, pass the item hints.

    Returns:
        A field type from SUPPORTED_FIELD_TYPES.
    """
    hints = hints or PropertyConstraints()
    fmt = (hints.format or "").lower()

    match tag:
        case PropertyType.STRING:
            if hints.enum:
                return "list_string"
            if fmt == "email":
                return "email"
            if fmt in ("uri", "url"):
                return "uri"
            if fmt in ("date", "date-time"):
                return "datetime"
            if hints.max_length is not None and hints.max_length > LONG_TEXT_THRESHOLD:
                return "text_long"
            return DEFAULT_FIELD_TYPE[tag]
        case PropertyType.NUMBER:
            if hints.enum:
                if all(isinstance(v, int) and not isinstance(v, bool) for v in hints.enum):
                    return "list_integer"
                return "list_float"
            return DEFAULT_FIELD_TYPE[tag]
        case PropertyType.OBJECT:
            if fmt in ("uri", "url"):
                return "link"
            return DEFAULT_FIELD_TYPE[tag]
        case _:
            return DEFAULT_FIELD_TYPE[tag]


def extract_constraints(field: FieldDefinition) -> PropertyConstraints:
    """Read property constraints out of a field's type and settings.

    - enum from ``allowed_values`` (list or mapping keys) on list fields
    - maxLength from ``max_length``
    - minimum/maximum from ``min``/``max``
    - format from the semantic field type
    """
    settings = field.settings
    enum = None
    if field.type in ENUM_FIELD_TYPES:
        allowed = settings.get("allowed_values")
        if isinstance(allowed, dict):
            enum = list(allowed)
        elif isinstance(allowed, list) and allowed:
            enum = list(allowed)

    return PropertyConstraints(
        enum=enum or None,
        max_length=settings.get("max_length"),
        minimum=settings.get("min"),
        maximum=settings.get("max"),
        format=FORMAT_BY_FIELD_TYPE.get(field.type),
    )


def apply_constraints(constraints: PropertyConstraints) -> dict[str, Any]:
    """Translate property constraints into field settings.

    The format hint is not a setting; it selects the field type instead
    (see property_type_to_field_type).
    """
    settings: dict[str, Any] = {}
    if constraints.enum:
        settings["allowed_values"] = list(constraints.enum)
    if constraints.max_length is not None:
        settings["max_length"] = constraints.max_length
    if constraints.minimum is not None:
        settings["min"] = constraints.minimum
    if constraints.maximum is not None:
        settings["max"] = constraints.maximum
    return settings


def format_default(value: Any, tag: PropertyType) -> Any:
    """Coerce a stored default value to the property's type."""
    if value is None:
        return None
    if isinstance(value, list) and tag is not PropertyType.ARRAY:
        if not value:
            return None
        value = value[0]
    if isinstance(value, dict) and "value" in value and tag is not PropertyType.OBJECT:
        value = value["value"]

    match tag:
        case PropertyType.NUMBER:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, int | float):
                return value
            try:
                number = float(value)
            except (TypeError, ValueError):
                return 0
            return int(number) if number.is_integer() else number
        case PropertyType.BOOLEAN:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        case PropertyType.STRING:
            return str(value)
        case _:
            return value


def property_from_field(field: FieldDefinition) -> PropertySchema:
    """Build the manifest property schema for a non-slot field."""
    tag = field_type_to_property_type(field.type, field.cardinality)
    constraints = extract_constraints(field)
    data = constraints.model_dump(exclude_none=True)

    if tag is PropertyType.ARRAY:
        data["items"] = item_type(field.type)
        if field.cardinality != UNLIMITED:
            data["max_items"] = field.cardinality

    return PropertySchema(
        type=tag,
        title=field.label,
        description=field.description or None,
        required=field.required,
        default=format_default(field.default, tag),
        **data,
    )


def slot_from_field(field: FieldDefinition) -> SlotSchema:
    """Build the manifest slot schema for a slot field."""
    return SlotSchema(
        title=field.label,
        required=field.required,
        description=field.description or None,
    )


def field_from_property(name: str, prop: PropertySchema) -> FieldDefinition:
    """Build the manifest-owned field that stores property ``name``."""
    constraints = prop.constraints()
    if prop.type is PropertyType.ARRAY:
        field_type = property_type_to_field_type(prop.items or PropertyType.STRING, constraints)
        cardinality = prop.max_items or UNLIMITED
    else:
        field_type = property_type_to_field_type(prop.type, constraints)
        cardinality = 1

    return FieldDefinition(
        name=property_field_name(name),
        type=field_type,
        label=prop.title or humanize(name),
        description=prop.description or "",
        required=prop.required,
        cardinality=cardinality,
        default=prop.default,
        settings=apply_constraints(constraints),
        provenance=Provenance.MANIFEST,
        source_name=name,
    )


def field_from_slot(name: str, slot: SlotSchema) -> FieldDefinition:
    """Build the manifest-owned field that stores slot ``name``."""
    return FieldDefinition(
        name=slot_field_name(name),
        type=SLOT_FIELD_TYPE,
        label=slot.title or humanize(name),
        description=slot.description or "",
        required=slot.required,
        is_slot=True,
        provenance=Provenance.MANIFEST,
        source_name=name,
    )


def entry_name(field: FieldDefinition) -> str:
    """Manifest property or slot name for a field."""
    if field.source_name:
        return field.source_name
    return entry_name_from_field(field.name, slot=field.is_slot)
