"""Tests for component manifest schema validation."""

import pytest
from pydantic import ValidationError

from compsync.manifest_schema import (
    ComponentManifest,
    PropertySchema,
    PropertyType,
    RenderingCapabilities,
    RenderMode,
)


class TestPropertySchema:
    """Tests for manifest property schemas."""

    def test_defaults_to_optional_string(self) -> None:
        """Verify an empty property body is an optional string."""
        # When
        prop = PropertySchema()

        # Then
        assert prop.type is PropertyType.STRING
        assert prop.required is False

    def test_camel_case_keys_are_accepted(self) -> None:
        """Verify file spellings populate the snake_case attributes."""
        # When
        prop = PropertySchema.model_validate({"type": "array", "items": "string", "maxItems": 3})
        text = PropertySchema.model_validate({"type": "string", "maxLength": 80})

        # Then
        assert prop.max_items == 3
        assert text.max_length == 80

    def test_minimum_above_maximum_is_rejected(self) -> None:
        """Verify numeric bounds must be ordered."""
        # When/Then
        with pytest.raises(ValidationError, match="greater than maximum"):
            PropertySchema(type=PropertyType.NUMBER, minimum=10, maximum=1)

    def test_items_only_on_arrays(self) -> None:
        """Verify array hints are rejected on scalar properties."""
        # When/Then
        with pytest.raises(ValidationError, match="only allowed on array"):
            PropertySchema(type=PropertyType.STRING, items=PropertyType.STRING)

    def test_nested_arrays_are_rejected(self) -> None:
        """Verify array items cannot themselves be arrays."""
        # When/Then
        with pytest.raises(ValidationError, match="nested arrays"):
            PropertySchema(type=PropertyType.ARRAY, items=PropertyType.ARRAY)

    def test_unknown_type_is_rejected(self) -> None:
        """Verify only the five type tags are accepted."""
        # When/Then
        with pytest.raises(ValidationError):
            PropertySchema.model_validate({"type": "date"})

    def test_constraints_returns_constraint_part(self) -> None:
        """Verify constraints() drops everything that is not a constraint."""
        # Given
        prop = PropertySchema(type=PropertyType.STRING, title="Title", enum=["a", "b"], required=True)

        # When
        constraints = prop.constraints()

        # Then
        assert constraints.enum == ["a", "b"]
        assert constraints.max_length is None


class TestRenderingCapabilities:
    """Tests for rendering mode validation."""

    def test_defaults_to_server_only(self) -> None:
        """Verify server-side rendering is the default."""
        # When
        rendering = RenderingCapabilities()

        # Then
        assert rendering.server_side is True
        assert rendering.client_side is False
        assert rendering.default is RenderMode.SERVER

    def test_at_least_one_mode_required(self) -> None:
        """Verify switching both modes off is rejected."""
        # When/Then
        with pytest.raises(ValidationError, match="at least one"):
            RenderingCapabilities.model_validate({"serverSide": False, "clientSide": False, "default": "client"})

    def test_default_mode_must_be_enabled(self) -> None:
        """Verify the default mode must be switched on."""
        # When/Then
        with pytest.raises(ValidationError, match="requires clientSide"):
            RenderingCapabilities.model_validate({"serverSide": True, "default": "client"})


class TestComponentManifest:
    """Tests for the manifest root model."""

    def test_minimal_manifest(self) -> None:
        """Verify a manifest needs only an id and a name."""
        # When
        manifest = ComponentManifest(id="card", name="Card")

        # Then
        assert manifest.props == {}
        assert manifest.slots == {}
        assert manifest.description == ""

    def test_props_keep_declaration_order(self) -> None:
        """Verify properties are kept in file order."""
        # When
        manifest = ComponentManifest.model_validate(
            {"id": "card", "name": "Card", "props": {"zeta": {}, "alpha": {}, "mid": {}}}
        )

        # Then
        assert list(manifest.props) == ["zeta", "alpha", "mid"]

    def test_empty_slot_bodies_are_accepted(self) -> None:
        """Verify 'footer:' and 'footer: {}' both declare a slot."""
        # When
        manifest = ComponentManifest.model_validate(
            {"id": "card", "name": "Card", "slots": {"footer": None, "aside": {}}}
        )

        # Then
        assert set(manifest.slots) == {"footer", "aside"}
        assert manifest.slots["footer"].required is False

    def test_invalid_prop_name_is_rejected(self) -> None:
        """Verify property names follow the naming rules."""
        # When/Then
        with pytest.raises(ValidationError, match="must be lowercase"):
            ComponentManifest.model_validate({"id": "card", "name": "Card", "props": {"Title": {}}})

    def test_invalid_slot_name_is_rejected(self) -> None:
        """Verify slot names follow the naming rules."""
        # When/Then
        with pytest.raises(ValidationError, match="slot name"):
            ComponentManifest.model_validate({"id": "card", "name": "Card", "slots": {"side-bar": {}}})

    def test_unknown_keys_are_rejected(self) -> None:
        """Verify typos in manifest keys are reported."""
        # When/Then
        with pytest.raises(ValidationError):
            ComponentManifest.model_validate({"id": "card", "name": "Card", "prop": {}})

    def test_schema_key_uses_alias(self) -> None:
        """Verify '$schema' is read into schema_ref."""
        # When
        manifest = ComponentManifest.model_validate(
            {"id": "card", "name": "Card", "$schema": "https://example.com/schema"}
        )

        # Then
        assert manifest.schema_ref == "https://example.com/schema"

    def test_id_is_not_serialized(self) -> None:
        """Verify the id stays out of the file body."""
        # Given
        manifest = ComponentManifest(id="card", name="Card")

        # When
        data = manifest.model_dump(by_alias=True)

        # Then
        assert "id" not in data
