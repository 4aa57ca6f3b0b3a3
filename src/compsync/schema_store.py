"""Access to bundle field schemas.

The orchestrator only talks to the ``SchemaStore`` protocol. Two stores are
provided: an in-memory one, and a YAML store that keeps one file per bundle
under ``.compsync/bundles/``.
"""

import logging
from pathlib import Path
from typing import Protocol

import yaml
from pydantic import ValidationError

from compsync.bundle_schema import BundleFieldSchema, FieldDefinition
from compsync.errors import BundleNotFoundError, SchemaIntrospectionError, format_validation_errors

logger = logging.getLogger(__name__)

BUNDLE_FILE_SUFFIX = ".yaml"


class SchemaStore(Protocol):
    """Read and mutate bundle field schemas."""

    def get_bundle(self, bundle_id: str) -> BundleFieldSchema | None:
        """Return the bundle, or None if it does not exist."""
        ...

    def list_bundles(self) -> list[BundleFieldSchema]:
        """All bundles, ordered by id."""
        ...

    def save_bundle(self, bundle: BundleFieldSchema) -> None:
        """Create or replace a bundle."""
        ...

    def get_fields(self, bundle_id: str) -> list[FieldDefinition]:
        """Fields of a bundle, in order."""
        ...

    def add_field(self, bundle_id: str, definition: FieldDefinition) -> None:
        """Append a field to a bundle."""
        ...

    def update_field(self, bundle_id: str, definition: FieldDefinition) -> None:
        """Replace a field in place, keeping its position."""
        ...

    def remove_field(self, bundle_id: str, field_name: str) -> None:
        """Delete a field from a bundle."""
        ...


class BaseSchemaStore:
    """Field operations expressed in terms of get/save of whole bundles."""

    def get_bundle(self, bundle_id: str) -> BundleFieldSchema | None:
        raise NotImplementedError

    def save_bundle(self, bundle: BundleFieldSchema) -> None:
        raise NotImplementedError

    def require_bundle(self, bundle_id: str) -> BundleFieldSchema:
        """Return the bundle.

        Raises:
            BundleNotFoundError: If it does not exist.
        """
        bundle = self.get_bundle(bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        return bundle

    def get_fields(self, bundle_id: str) -> list[FieldDefinition]:
        return list(self.require_bundle(bundle_id).fields.values())

    def add_field(self, bundle_id: str, definition: FieldDefinition) -> None:
        bundle = self.require_bundle(bundle_id)
        if definition.name in bundle.fields:
            raise SchemaIntrospectionError(bundle_id, f"field '{definition.name}' already exists")
        fields = {**bundle.fields, definition.name: definition}
        self.save_bundle(bundle.model_copy(update={"fields": fields}))

    def update_field(self, bundle_id: str, definition: FieldDefinition) -> None:
        bundle = self.require_bundle(bundle_id)
        if definition.name not in bundle.fields:
            raise SchemaIntrospectionError(bundle_id, f"field '{definition.name}' does not exist")
        fields = {name: definition if name == definition.name else f for name, f in bundle.fields.items()}
        self.save_bundle(bundle.model_copy(update={"fields": fields}))

    def remove_field(self, bundle_id: str, field_name: str) -> None:
        bundle = self.require_bundle(bundle_id)
        if field_name not in bundle.fields:
            raise SchemaIntrospectionError(bundle_id, f"field '{field_name}' does not exist")
        fields = {name: f for name, f in bundle.fields.items() if name != field_name}
        self.save_bundle(bundle.model_copy(update={"fields": fields}))


class InMemorySchemaStore(BaseSchemaStore):
    """Bundles held in a dict. Returned bundles are copies."""

    def __init__(self, bundles: list[BundleFieldSchema] | None = None) -> None:
        self._bundles: dict[str, BundleFieldSchema] = {}
        for bundle in bundles or []:
            self.save_bundle(bundle)

    def get_bundle(self, bundle_id: str) -> BundleFieldSchema | None:
        bundle = self._bundles.get(bundle_id)
        return bundle.model_copy(deep=True) if bundle is not None else None

    def list_bundles(self) -> list[BundleFieldSchema]:
        return [self._bundles[key].model_copy(deep=True) for key in sorted(self._bundles)]

    def save_bundle(self, bundle: BundleFieldSchema) -> None:
        self._bundles[bundle.id] = bundle.model_copy(deep=True)

    def delete_bundle(self, bundle_id: str) -> None:
        """Delete a bundle.

        Raises:
            BundleNotFoundError: If it does not exist.
        """
        if self._bundles.pop(bundle_id, None) is None:
            raise BundleNotFoundError(bundle_id)


class YamlSchemaStore(BaseSchemaStore):
    """One ``<bundle id>.yaml`` file per bundle in a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, bundle_id: str) -> Path:
        """File that stores ``bundle_id``."""
        return self.directory / f"{bundle_id}{BUNDLE_FILE_SUFFIX}"

    def get_bundle(self, bundle_id: str) -> BundleFieldSchema | None:
        path = self.path_for(bundle_id)
        if not path.exists():
            return None
        return self._load(path, bundle_id)

    def list_bundles(self) -> list[BundleFieldSchema]:
        if not self.directory.is_dir():
            return []
        return [
            self._load(path, path.stem)
            for path in sorted(self.directory.glob(f"*{BUNDLE_FILE_SUFFIX}"))
        ]

    def save_bundle(self, bundle: BundleFieldSchema) -> None:
        path = self.path_for(bundle.id)
        content = yaml.dump(
            bundle.model_dump(mode="json"),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise SchemaIntrospectionError(bundle.id, f"cannot write {path}: {e.strerror or e}") from e
        logger.debug("Saved bundle %s to %s", bundle.id, path)

    def delete_bundle(self, bundle_id: str) -> None:
        """Delete a bundle file.

        Raises:
            BundleNotFoundError: If it does not exist.
        """
        path = self.path_for(bundle_id)
        if not path.exists():
            raise BundleNotFoundError(bundle_id)
        path.unlink()

    @staticmethod
    def _load(path: Path, bundle_id: str) -> BundleFieldSchema:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise SchemaIntrospectionError(bundle_id, f"invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise SchemaIntrospectionError(bundle_id, f"cannot read {path}: {e.strerror or e}") from e

        if not isinstance(data, dict):
            raise SchemaIntrospectionError(bundle_id, f"{path} does not contain a mapping")
        try:
            bundle = BundleFieldSchema.model_validate(data)
        except ValidationError as e:
            raise SchemaIntrospectionError(bundle_id, format_validation_errors(e)) from e
        if bundle.id != bundle_id:
            raise SchemaIntrospectionError(bundle_id, f"{path} declares bundle id '{bundle.id}'")
        return bundle
