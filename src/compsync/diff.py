"""Schema diffing and change detection.

``diff`` compares the fields a manifest implies against a bundle's current
fields. Only fields owned by a manifest are ever proposed for removal.
Changes are sorted (properties before slots, then by name) so equal inputs
always give equal changesets.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum

from compsync.bundle_schema import BundleFieldSchema, FieldDefinition, Provenance
from compsync.manifest_schema import ComponentManifest
from compsync.manifest_store import canonical_json
from compsync.type_mapper import (
    extract_constraints,
    field_from_property,
    field_from_slot,
    field_type_to_property_type,
    item_type,
)


class SyncDirection(str, Enum):
    """Which side of a manifest/bundle pair needs to follow the other."""

    NONE = "none"
    FORWARD = "forward"
    REVERSE = "reverse"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class FieldChange:
    """One field-level change.

    Attributes:
        field_name: Bundle field machine name.
        entry_name: Manifest property or slot name.
        is_slot: True when the entry is a slot.
        reasons: What differs ("type", "required", ...); empty for adds and removes.
        expected: Field the manifest implies (None for removals).
        current: Field currently on the bundle (None for additions).
    """

    field_name: str
    entry_name: str
    is_slot: bool
    reasons: tuple[str, ...] = ()
    expected: FieldDefinition | None = None
    current: FieldDefinition | None = None


@dataclass(frozen=True)
class Changeset:
    """Ordered result of comparing a manifest with a bundle."""

    fields_to_add: tuple[FieldChange, ...] = field(default_factory=tuple)
    fields_to_update: tuple[FieldChange, ...] = field(default_factory=tuple)
    fields_to_remove: tuple[FieldChange, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        """True when the bundle already matches the manifest."""
        return not (self.fields_to_add or self.fields_to_update or self.fields_to_remove)

    def summary(self) -> str:
        """Short human-readable count of changes."""
        return (
            f"{len(self.fields_to_add)} added, "
            f"{len(self.fields_to_update)} updated, "
            f"{len(self.fields_to_remove)} removed"
        )


def expected_fields(manifest: ComponentManifest) -> dict[str, FieldDefinition]:
    """Fields a manifest implies, properties first, in declaration order."""
    fields: dict[str, FieldDefinition] = {}
    for name, prop in manifest.props.items():
        definition = field_from_property(name, prop)
        fields[definition.name] = definition
    for name, slot in manifest.slots.items():
        definition = field_from_slot(name, slot)
        fields[definition.name] = definition
    return fields


def _type_signature(definition: FieldDefinition) -> tuple[str, str | None, int]:
    tag = field_type_to_property_type(definition.type, definition.cardinality)
    items = item_type(definition.type).value if definition.multiple else None
    return tag.value, items, definition.cardinality


def _change_reasons(expected: FieldDefinition, current: FieldDefinition) -> tuple[str, ...]:
    reasons: list[str] = []
    if expected.is_slot != current.is_slot:
        reasons.append("kind")
    elif not expected.is_slot and _type_signature(expected) != _type_signature(current):
        reasons.append("type")
    if expected.required != current.required:
        reasons.append("required")
    if not expected.is_slot and extract_constraints(expected) != extract_constraints(current):
        reasons.append("constraints")
    if current.provenance is not Provenance.MANIFEST:
        reasons.append("ownership")
    return tuple(reasons)


def _sort_key(change: FieldChange) -> tuple[bool, str]:
    return change.is_slot, change.entry_name


def diff(manifest: ComponentManifest, bundle: BundleFieldSchema | None) -> Changeset:
    """Compare a manifest against a bundle's current fields.

    Args:
        manifest: The source manifest.
        bundle: The bundle, or None if it does not exist yet.

    Returns:
        Fields to add (in the manifest but not on the bundle), to update
        (on both but different in kind, type, required flag, constraints or
        ownership) and to remove (manifest-owned fields the manifest no
        longer declares). Manually added fields are never removed.
    """
    current_fields = bundle.fields if bundle is not None else {}
    expected = expected_fields(manifest)

    to_add: list[FieldChange] = []
    to_update: list[FieldChange] = []
    for name, definition in expected.items():
        current = current_fields.get(name)
        entry = definition.source_name or name
        if current is None:
            to_add.append(FieldChange(name, entry, definition.is_slot, expected=definition))
            continue
        reasons = _change_reasons(definition, current)
        if reasons:
            to_update.append(
                FieldChange(name, entry, definition.is_slot, reasons, expected=definition, current=current)
            )

    to_remove = [
        FieldChange(name, current.source_name or name, current.is_slot, current=current)
        for name, current in current_fields.items()
        if name not in expected and current.provenance is Provenance.MANIFEST
    ]

    return Changeset(
        fields_to_add=tuple(sorted(to_add, key=_sort_key)),
        fields_to_update=tuple(sorted(to_update, key=_sort_key)),
        fields_to_remove=tuple(sorted(to_remove, key=_sort_key)),
    )


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def manifest_checksum(manifest: ComponentManifest) -> str:
    """SHA-256 of the manifest's canonical form, ignoring free-form metadata."""
    return _sha256(canonical_json(manifest))


def schema_checksum(bundle: BundleFieldSchema) -> str:
    """SHA-256 of a bundle's label, description, fields and rendering config."""
    data = {
        "label": bundle.label,
        "description": bundle.description,
        "fields": [f.model_dump(mode="json") for f in bundle.fields.values()],
        "rendering": bundle.rendering.model_dump(mode="json"),
    }
    return _sha256(json.dumps(data, sort_keys=True, separators=(",", ":"), default=str))


def needs_sync(manifest: ComponentManifest, bundle: BundleFieldSchema | None) -> bool:
    """Cheap check: has the manifest changed since the bundle was last synced?"""
    if bundle is None:
        return True
    return bundle.source_checksum != manifest_checksum(manifest)


def detect_direction(
    manifest: ComponentManifest | None,
    bundle: BundleFieldSchema | None,
) -> SyncDirection:
    """Decide which way a manifest/bundle pair must be synced.

    The checksums recorded on the bundle at the last sync tell which side
    moved since then. If both moved, the pair is in conflict and nothing is
    merged automatically.
    """
    if manifest is None and bundle is None:
        return SyncDirection.NONE
    if manifest is None:
        return SyncDirection.REVERSE
    if bundle is None:
        return SyncDirection.FORWARD

    manifest_changed = needs_sync(manifest, bundle)
    schema_changed = bundle.schema_checksum is not None and bundle.schema_checksum != schema_checksum(bundle)

    if manifest_changed and schema_changed:
        return SyncDirection.CONFLICT
    if manifest_changed:
        return SyncDirection.FORWARD
    if schema_changed:
        return SyncDirection.REVERSE
    return SyncDirection.NONE
