"""Bundle field schema definitions using Pydantic.

A bundle is the record-store side of a component: an ordered set of typed
fields plus rendering configuration. Provenance is tracked explicitly on the
bundle and on every field, so removal decisions never depend on field-name
heuristics.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from compsync.manifest_schema import RenderMode
from compsync.naming import BUNDLE_ID_PATTERN, MAX_MACHINE_NAME_LENGTH

# Cardinality value meaning "any number of values"
UNLIMITED = -1


class Provenance(str, Enum):
    """Where a bundle or field came from."""

    MANIFEST = "manifest"
    MANUAL = "manual"


class FieldDefinition(BaseModel):
    """A single field on a bundle."""

    name: str = Field(description="Field machine name")
    type: str = Field(description="Record-store field type, e.g. 'string' or 'integer'")
    label: str = Field(description="Human-readable label")
    description: str = Field(default="", description="Help text")
    required: bool = Field(default=False, description="Whether a value is required")
    cardinality: int = Field(
        default=1,
        description="Maximum number of values; -1 for unlimited",
    )
    default: Any = Field(default=None, description="Default value")
    settings: dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific settings and constraints",
    )
    is_slot: bool = Field(
        default=False,
        description="Whether the field stores a content slot",
    )
    provenance: Provenance = Field(
        default=Provenance.MANUAL,
        description="Whether the field is owned by a manifest",
    )
    source_name: str | None = Field(
        default=None,
        description="Manifest property or slot name this field stores",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate field name is a machine name."""
        if not BUNDLE_ID_PATTERN.match(v) or len(v) > MAX_MACHINE_NAME_LENGTH:
            msg = (
                f"field name '{v}' must be lowercase, start with a letter, contain only letters, "
                f"numbers, and underscores, and be at most {MAX_MACHINE_NAME_LENGTH} characters"
            )
            raise ValueError(msg)
        return v

    @field_validator("cardinality")
    @classmethod
    def validate_cardinality(cls, v: int) -> int:
        """Validate cardinality is positive or unlimited."""
        if v == 0 or v < UNLIMITED:
            msg = "cardinality must be a positive integer or -1 (unlimited)"
            raise ValueError(msg)
        return v

    @property
    def multiple(self) -> bool:
        """True if the field accepts more than one value."""
        return self.cardinality != 1


class RenderingConfiguration(BaseModel):
    """Rendering capability flags of a bundle."""

    twig_enabled: bool = Field(default=True, description="Server template rendering")
    react_enabled: bool = Field(default=False, description="Interactive component rendering")
    default_method: RenderMode = Field(
        default=RenderMode.SERVER,
        description="Mode used when none is requested",
    )

    @model_validator(mode="after")
    def validate_default_enabled(self) -> "RenderingConfiguration":
        """Fall back to an enabled mode when the default is switched off."""
        if self.default_method is RenderMode.CLIENT and not self.react_enabled:
            self.default_method = RenderMode.SERVER
        elif self.default_method is RenderMode.SERVER and not self.twig_enabled and self.react_enabled:
            self.default_method = RenderMode.CLIENT
        return self


class BundleFieldSchema(BaseModel):
    """The field schema of one bundle."""

    id: str = Field(description="Bundle machine name")
    label: str = Field(description="Human-readable label")
    description: str = Field(default="", description="Free-text description")
    fields: dict[str, FieldDefinition] = Field(
        default_factory=dict,
        description="Fields keyed by machine name, in display order",
    )
    rendering: RenderingConfiguration = Field(
        default_factory=RenderingConfiguration,
        description="Rendering capability flags",
    )
    provenance: Provenance = Field(
        default=Provenance.MANUAL,
        description="Whether the bundle was created from a manifest",
    )
    component_id: str | None = Field(
        default=None,
        description="Id of the manifest this bundle is paired with",
    )
    component_path: str | None = Field(
        default=None,
        description="Component directory relative to the components root",
    )
    manifest_path: str | None = Field(
        default=None,
        description="Manifest file the bundle was synced from, relative to the project root",
    )
    source_checksum: str | None = Field(
        default=None,
        description="Manifest checksum at the last sync",
    )
    schema_checksum: str | None = Field(
        default=None,
        description="Field schema checksum at the last sync",
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate bundle id follows naming rules."""
        if not BUNDLE_ID_PATTERN.match(v) or len(v) > MAX_MACHINE_NAME_LENGTH:
            msg = (
                "bundle id must be lowercase, start with a letter, contain only letters, "
                f"numbers, and underscores, and be at most {MAX_MACHINE_NAME_LENGTH} characters"
            )
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_field_keys(self) -> "BundleFieldSchema":
        """Validate every field is keyed by its own name."""
        for key, field_definition in self.fields.items():
            if key != field_definition.name:
                msg = f"field key '{key}' does not match field name '{field_definition.name}'"
                raise ValueError(msg)
        return self

    @property
    def component_name(self) -> str:
        """Base name for generated artifact files."""
        return self.component_id or self.id

    @property
    def directory(self) -> str:
        """Component directory relative to the components root."""
        return self.component_path or self.id

    def property_fields(self) -> list[FieldDefinition]:
        """Non-slot fields, in order."""
        return [f for f in self.fields.values() if not f.is_slot]

    def slot_fields(self) -> list[FieldDefinition]:
        """Slot fields, in order."""
        return [f for f in self.fields.values() if f.is_slot]
