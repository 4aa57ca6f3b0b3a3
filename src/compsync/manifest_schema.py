"""Component manifest schema definitions using Pydantic.

This module defines the schema for ``<component>.component.yml`` files that
describe a UI component's typed properties, named slots, and rendering modes.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from compsync.naming import validate_entry_name

# Manifest files are named <component id> + this suffix
MANIFEST_SUFFIX = ".component.yml"


class StrictModel(BaseModel):
    """Base model that forbids extra fields and accepts both key spellings."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class PropertyType(str, Enum):
    """Type tags a manifest property may declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class RenderMode(str, Enum):
    """Rendering modes a component may support."""

    SERVER = "server"
    CLIENT = "client"


class PropertyConstraints(StrictModel):
    """Value constraints shared by manifest properties and field settings."""

    enum: list[str | int | float] | None = Field(
        default=None,
        description="Allowed values",
    )
    max_length: int | None = Field(
        default=None,
        alias="maxLength",
        description="Maximum string length",
    )
    minimum: int | float | None = Field(
        default=None,
        description="Numeric lower bound",
    )
    maximum: int | float | None = Field(
        default=None,
        description="Numeric upper bound",
    )
    format: str | None = Field(
        default=None,
        description="Semantic format hint (email, uri, date-time, ...)",
    )


class PropertySchema(PropertyConstraints):
    """Schema of a single manifest property."""

    type: PropertyType = Field(
        default=PropertyType.STRING,
        description="Property type tag",
    )
    title: str | None = Field(
        default=None,
        description="Human-readable title",
    )
    description: str | None = Field(
        default=None,
        description="Help text",
    )
    required: bool = Field(
        default=False,
        description="Whether a value must be supplied",
    )
    default: Any = Field(
        default=None,
        description="Default value",
    )
    items: PropertyType | None = Field(
        default=None,
        description="Item type tag (for array properties)",
    )
    max_items: int | None = Field(
        default=None,
        alias="maxItems",
        description="Maximum number of items (for array properties)",
    )

    @model_validator(mode="after")
    def validate_bounds(self) -> "PropertySchema":
        """Validate numeric bounds are ordered and array hints are on arrays."""
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            msg = f"minimum ({self.minimum}) is greater than maximum ({self.maximum})"
            raise ValueError(msg)
        if self.type is not PropertyType.ARRAY and (self.items is not None or self.max_items is not None):
            msg = "'items' and 'maxItems' are only allowed on array properties"
            raise ValueError(msg)
        if self.items is PropertyType.ARRAY:
            msg = "nested arrays are not supported"
            raise ValueError(msg)
        return self

    def constraints(self) -> PropertyConstraints:
        """Return only the constraint part of this schema."""
        return PropertyConstraints.model_validate(
            self.model_dump(include=set(PropertyConstraints.model_fields))
        )


class SlotSchema(StrictModel):
    """Schema of a named content slot."""

    title: str | None = Field(
        default=None,
        description="Human-readable title",
    )
    required: bool = Field(
        default=False,
        description="Whether the slot must be filled",
    )
    description: str | None = Field(
        default=None,
        description="Help text",
    )


class RenderingCapabilities(StrictModel):
    """Which rendering modes a component supports."""

    server_side: bool = Field(
        default=True,
        alias="serverSide",
        description="Render through the server template",
    )
    client_side: bool = Field(
        default=False,
        alias="clientSide",
        description="Render through the interactive component",
    )
    default: RenderMode = Field(
        default=RenderMode.SERVER,
        description="Mode used when none is requested",
    )

    @model_validator(mode="after")
    def validate_default_enabled(self) -> "RenderingCapabilities":
        """Validate that at least one mode is on and the default is one of them."""
        if not self.server_side and not self.client_side:
            msg = "at least one of serverSide or clientSide must be enabled"
            raise ValueError(msg)
        if self.default is RenderMode.SERVER and not self.server_side:
            msg = "default mode 'server' requires serverSide"
            raise ValueError(msg)
        if self.default is RenderMode.CLIENT and not self.client_side:
            msg = "default mode 'client' requires clientSide"
            raise ValueError(msg)
        return self


class ComponentManifest(StrictModel):
    """Root schema for component manifest files.

    ``id`` is not stored in the file; it comes from the file name
    (``<id>.component.yml``) or from the bundle the manifest was built from.
    """

    id: str = Field(exclude=True, description="Stable component id")
    schema_ref: str | None = Field(
        default=None,
        alias="$schema",
        description="Schema URL",
    )
    name: str = Field(description="Display name")
    description: str = Field(default="", description="Free-text description")
    status: str | None = Field(default=None, description="Lifecycle status")
    props: dict[str, PropertySchema] = Field(
        default_factory=dict,
        description="Typed properties, in declaration order",
    )
    slots: dict[str, SlotSchema] = Field(
        default_factory=dict,
        description="Named content slots, in declaration order",
    )
    rendering: RenderingCapabilities = Field(
        default_factory=RenderingCapabilities,
        description="Supported rendering modes",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata",
    )

    @field_validator("props")
    @classmethod
    def validate_prop_names(cls, v: dict[str, PropertySchema]) -> dict[str, PropertySchema]:
        """Validate property names follow naming rules."""
        for name in v:
            validate_entry_name(name)
        return v

    @field_validator("slots", mode="before")
    @classmethod
    def validate_slot_names(cls, v: Any) -> Any:
        """Validate slot names and accept empty slot bodies (``footer: {}`` or ``footer:``)."""
        if not isinstance(v, dict):
            return v
        for name in v:
            validate_entry_name(name, slot=True)
        return {name: ({} if body is None else body) for name, body in v.items()}
