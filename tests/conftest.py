"""Shared test fixtures for compsync tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from compsync.bundle_schema import BundleFieldSchema, FieldDefinition, Provenance, RenderingConfiguration
from compsync.config import Project, ProjectConfig
from compsync.manifest_schema import ComponentManifest
from compsync.manifest_store import ManifestStore
from compsync.schema_store import InMemorySchemaStore
from compsync.sync import SyncOrchestrator
from compsync.writer import SafeFileWriter


def make_manifest(component_id: str = "card", **overrides: Any) -> ComponentManifest:
    """Build a manifest with one required title property and a footer slot.

    Keyword arguments override the manifest body (``props``, ``slots``,
    ``rendering``, ...), using the same spelling as the YAML file.
    """
    data: dict[str, Any] = {
        "name": "Card",
        "props": {"title": {"type": "string", "required": True}},
        "slots": {"footer": {}},
    }
    data.update(overrides)
    return ComponentManifest.model_validate({"id": component_id, **data})


def make_field(name: str, field_type: str = "string", **overrides: Any) -> FieldDefinition:
    """Build a manually created field."""
    return FieldDefinition(name=name, type=field_type, label=overrides.pop("label", name), **overrides)


def make_bundle(bundle_id: str = "card", fields: list[FieldDefinition] | None = None, **overrides: Any) -> BundleFieldSchema:
    """Build a bundle holding ``fields`` in order."""
    fields = fields if fields is not None else [
        FieldDefinition(
            name="field_title",
            type="string",
            label="Title",
            required=True,
            provenance=Provenance.MANIFEST,
            source_name="title",
        ),
        FieldDefinition(
            name="slot_footer",
            type="text_long",
            label="Footer",
            is_slot=True,
            provenance=Provenance.MANIFEST,
            source_name="footer",
        ),
    ]
    return BundleFieldSchema(
        id=bundle_id,
        label=overrides.pop("label", "Card"),
        fields={f.name: f for f in fields},
        **overrides,
    )


def react_rendering() -> RenderingConfiguration:
    """Rendering config with both modes on."""
    return RenderingConfiguration(twig_enabled=True, react_enabled=True)


def write_manifest_file(directory: Path, component_id: str, data: dict[str, Any]) -> Path:
    """Write a raw manifest dict as ``<directory>/<id>.component.yml``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{component_id}.component.yml"
    path.write_text(yaml.dump(data, sort_keys=False))
    return path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Project:
    """A project rooted at tmp_path with an empty components directory."""
    (tmp_path / "components").mkdir()
    return Project(tmp_path, ProjectConfig())


@pytest.fixture
def schema_store() -> InMemorySchemaStore:
    """An empty in-memory schema store."""
    return InMemorySchemaStore()


OrchestratorFactory = Callable[..., SyncOrchestrator]


@pytest.fixture
def make_orchestrator(project: Project, schema_store: InMemorySchemaStore) -> OrchestratorFactory:
    """Factory for orchestrators wired to the test project and store.

    Keyword arguments are passed through to SyncOrchestrator (``dispatcher``,
    ``registry``).
    """

    def _create(**kwargs: Any) -> SyncOrchestrator:
        return SyncOrchestrator(
            schema_store=schema_store,
            manifest_store=ManifestStore(),
            writer=SafeFileWriter(project.backup_dir),
            project=project,
            **kwargs,
        )

    return _create


@pytest.fixture
def orchestrator(make_orchestrator: OrchestratorFactory) -> SyncOrchestrator:
    """An orchestrator with the default generators and no listeners."""
    return make_orchestrator()


@pytest.fixture
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A project root for CLI tests, selected through COMPSYNC_PROJECT."""
    (tmp_path / "components").mkdir()
    monkeypatch.setenv("COMPSYNC_PROJECT", str(tmp_path))
    return tmp_path
