"""Sync orchestrator.

Coordinates the manifest store, the schema store, the generators and the
safe file writer. Every run walks IDLE -> DIFFING -> GENERATING -> WRITING
-> REPORTING (forward runs skip WRITING) and returns a SyncRecord.

Per-artifact problems (a generator raising, a writer refusal) are recorded
and the run carries on. Run-level problems (an output directory outside
the allowed roots, a schema store failure) raise before anything is
written. A pre-sync listener veto returns a cancelled record.
"""

import logging
from pathlib import Path

from compsync.artifact_validation import ValidationResult, validate_artifact
from compsync.bundle_schema import BundleFieldSchema, Provenance, RenderingConfiguration
from compsync.config import Project
from compsync.diff import (
    Changeset,
    SyncDirection,
    detect_direction,
    diff,
    expected_fields,
    manifest_checksum,
    needs_sync,
    schema_checksum,
)
from compsync.errors import (
    ArtifactExistsError,
    BundleNotFoundError,
    ComponentSyncError,
    InvalidConfigurationError,
    SyncCancelledError,
    WriterError,
)
from compsync.events import SyncContext, SyncEventDispatcher, SyncPhase
from compsync.generation import ArtifactGenerator, GenerationOptions, GeneratorRegistry, RenderedFile, default_registry
from compsync.manifest_generator import ManifestGenerator, build_manifest
from compsync.manifest_schema import MANIFEST_SUFFIX, ComponentManifest
from compsync.manifest_store import ManifestStore
from compsync.naming import bundle_id_for_component
from compsync.schema_store import SchemaStore
from compsync.sync_record import (
    ArtifactResult,
    ArtifactStatus,
    BatchEntry,
    BatchResult,
    SyncRecord,
    SyncState,
)

from compsync.writer import SafeFileWriter, WritePolicy, WriteStatus, is_within

logger = logging.getLogger(__name__)

ROUND_TRIP_ARTIFACT = "manifest (round-trip)"


class SyncOrchestrator:
    """Runs forward and reverse syncs for bundles of one project."""

    def __init__(
        self,
        schema_store: SchemaStore,
        manifest_store: ManifestStore,
        writer: SafeFileWriter,
        project: Project,
        dispatcher: SyncEventDispatcher | None = None,
        registry: GeneratorRegistry | None = None,
    ) -> None:
        self.schema_store = schema_store
        self.manifest_store = manifest_store
        self.writer = writer
        self.project = project
        self.dispatcher = dispatcher or SyncEventDispatcher()
        self.registry = registry or default_registry()

    # Paths

    def component_dir(self, bundle: BundleFieldSchema) -> Path:
        """Output directory of a bundle's artifacts.

        Raises:
            InvalidConfigurationError: If the directory is outside the
                project's allowed roots.
        """
        directory = self.project.components_dir / bundle.directory
        if not is_within(directory, self.project.allowed_roots):
            msg = f"Output directory for bundle '{bundle.id}' is outside the allowed roots: {directory}"
            raise InvalidConfigurationError(msg)
        return directory

    def manifest_path(self, bundle: BundleFieldSchema) -> Path:
        """Where the bundle's manifest lives.

        This is the file the bundle was last synced from, which may sit under
        a manifest root outside the components directory, or else the
        default location in the component directory.
        """
        if bundle.manifest_path:
            recorded = Path(bundle.manifest_path)
            return recorded if recorded.is_absolute() else self.project.root / recorded
        return self.component_dir(bundle) / f"{bundle.component_name}{MANIFEST_SUFFIX}"

    def artifact_path(self, bundle: BundleFieldSchema, generator_name: str, rendered_file: RenderedFile) -> Path:
        """Where a rendered file is written. Manifests go back to where they were read."""
        if generator_name == ManifestGenerator.name:
            return self.manifest_path(bundle)
        return self.component_dir(bundle) / rendered_file.relative_path

    def manifest_location_for(self, manifest_file: Path) -> str:
        """How a discovered manifest file is recorded on its bundle."""
        resolved = manifest_file.resolve()
        root = self.project.root.resolve()
        if resolved.is_relative_to(root):
            return resolved.relative_to(root).as_posix()
        return str(resolved)

    def component_path_for(self, manifest_file: Path) -> str | None:
        """Component directory of a manifest file, relative to the components root."""
        parent = manifest_file.parent.resolve()
        root = self.project.components_dir.resolve()
        if parent == root or not parent.is_relative_to(root):
            return None
        return parent.relative_to(root).as_posix()

    def _require_bundle(self, bundle_id: str) -> BundleFieldSchema:
        bundle = self.schema_store.get_bundle(bundle_id)
        if bundle is None:
            raise BundleNotFoundError(bundle_id)
        return bundle

    # Events

    def _pre_sync(self, record: SyncRecord, operation: str) -> None:
        context = SyncContext(record.bundle_id, record.direction, operation, record)
        self.dispatcher.dispatch(SyncPhase.PRE_SYNC, context)
        if context.cancelled:
            raise SyncCancelledError(record.bundle_id, context.cancel_reason)

    def _post_sync(self, record: SyncRecord, operation: str) -> SyncRecord:
        context = SyncContext(record.bundle_id, record.direction, operation, record)
        self.dispatcher.dispatch(SyncPhase.POST_SYNC, context)
        return record

    @staticmethod
    def _cancelled(record: SyncRecord, error: SyncCancelledError) -> SyncRecord:
        record.cancelled = True
        record.message = error.reason or "cancelled by listener"
        record.enter(SyncState.REPORTING)
        return record

    # Forward direction

    def forward_sync(
        self,
        manifest: ComponentManifest,
        force: bool = False,
        dry_run: bool = False,
        component_path: str | None = None,
        manifest_path: str | None = None,
    ) -> SyncRecord:
        """Bring a bundle's fields in line with a manifest.

        Creates the bundle if needed, then adds, updates and removes fields
        per the diff. The manifest is then regenerated in memory from the
        bundle to check that property types survive the round trip.

        Args:
            manifest: The source manifest.
            force: Diff and apply even if the manifest checksum is unchanged.
            dry_run: Report the changeset without applying it.
            component_path: Component directory relative to the components
                root, recorded on the bundle.
            manifest_path: Location of the manifest file (see
                ``manifest_location_for``), recorded on the bundle.

        Raises:
            ComponentSyncError: If no bundle id can be derived from the
                manifest id, or the schema store fails.
        """
        try:
            bundle_id = bundle_id_for_component(manifest.id)
        except ValueError as e:
            raise ComponentSyncError(str(e)) from e

        record = SyncRecord(bundle_id, SyncDirection.FORWARD, dry_run=dry_run)
        try:
            self._pre_sync(record, "forward_sync")
        except SyncCancelledError as e:
            return self._cancelled(record, e)

        record.enter(SyncState.DIFFING)
        bundle = self.schema_store.get_bundle(bundle_id)
        if bundle is not None:
            # Fail before mutating anything if the bundle's output is misplaced
            self.component_dir(bundle)

        if not force and not needs_sync(manifest, bundle):
            record.changeset = Changeset()
            record.message = "up to date"
            record.enter(SyncState.REPORTING)
            return self._post_sync(record, "forward_sync")

        changeset = diff(manifest, bundle)
        record.changeset = changeset
        if dry_run:
            record.message = f"would apply {changeset.summary()}"
            record.enter(SyncState.REPORTING)
            return self._post_sync(record, "forward_sync")

        bundle = self._apply(manifest, bundle, bundle_id, changeset, component_path, manifest_path)

        record.enter(SyncState.GENERATING)
        record.add(self._round_trip(manifest, bundle))

        record.enter(SyncState.REPORTING)
        record.message = "no field changes" if changeset.is_empty else changeset.summary()
        logger.info("Forward sync of %s: %s", bundle_id, record.message)
        return self._post_sync(record, "forward_sync")

    def _apply(
        self,
        manifest: ComponentManifest,
        bundle: BundleFieldSchema | None,
        bundle_id: str,
        changeset: Changeset,
        component_path: str | None,
        manifest_path: str | None,
    ) -> BundleFieldSchema:
        if bundle is None:
            bundle = BundleFieldSchema(
                id=bundle_id,
                label=manifest.name,
                provenance=Provenance.MANIFEST,
                component_id=manifest.id,
                component_path=component_path,
                manifest_path=manifest_path,
            )
            self.component_dir(bundle)
            self.schema_store.save_bundle(bundle)
            logger.info("Created bundle %s from manifest %s", bundle_id, manifest.id)

        for change in changeset.fields_to_add:
            self.schema_store.add_field(bundle_id, change.expected)
        for change in changeset.fields_to_update:
            self.schema_store.update_field(bundle_id, change.expected)
        for change in changeset.fields_to_remove:
            self.schema_store.remove_field(bundle_id, change.field_name)

        current = self._require_bundle(bundle_id)
        # Manifest-declared fields first, in declaration order, then the rest
        order = list(expected_fields(manifest))
        fields = {name: current.fields[name] for name in order if name in current.fields}
        fields.update({name: f for name, f in current.fields.items() if name not in fields})

        updated = BundleFieldSchema.model_validate(
            {
                **current.model_dump(),
                "label": manifest.name,
                "description": manifest.description,
                "fields": fields,
                "rendering": RenderingConfiguration(
                    twig_enabled=manifest.rendering.server_side,
                    react_enabled=manifest.rendering.client_side,
                    default_method=manifest.rendering.default,
                ),
                "component_id": manifest.id,
                "component_path": component_path or current.component_path,
                "manifest_path": manifest_path or current.manifest_path,
            }
        )
        updated.source_checksum = manifest_checksum(manifest)
        updated.schema_checksum = schema_checksum(updated)
        self.schema_store.save_bundle(updated)
        return updated

    @staticmethod
    def _round_trip(manifest: ComponentManifest, bundle: BundleFieldSchema) -> ArtifactResult:
        regenerated = build_manifest(bundle)
        problems: list[str] = []
        for name, prop in manifest.props.items():
            other = regenerated.props.get(name)
            if other is None:
                problems.append(f"property '{name}' missing")
                continue
            if other.type is not prop.type:
                problems.append(f"property '{name}' type {prop.type.value} became {other.type.value}")
            if other.required != prop.required:
                problems.append(f"property '{name}' required flag changed")
            if prop.items is not None and other.items is not prop.items:
                problems.append(f"property '{name}' item type changed")
        for name in manifest.slots:
            if name not in regenerated.slots:
                problems.append(f"slot '{name}' missing")

        if problems:
            logger.warning("Round-trip check failed for %s: %s", bundle.id, "; ".join(problems))
            return ArtifactResult(ROUND_TRIP_ARTIFACT, ArtifactStatus.FAILED, message="; ".join(problems))
        return ArtifactResult(ROUND_TRIP_ARTIFACT, ArtifactStatus.VALID, message="round-trip ok")

    # Reverse direction

    def reverse_sync(
        self,
        bundle_id: str,
        generators: list[str] | None = None,
        options: GenerationOptions | None = None,
        dry_run: bool = False,
        operation: str = "reverse_sync",
    ) -> SyncRecord:
        """Regenerate a bundle's artifacts.

        Args:
            bundle_id: The bundle to generate for.
            generators: Generator names to run. None runs every registered
                generator that is applicable to the bundle.
            options: Generation options; defaults to the project's.
            dry_run: Check every write without performing it.
            operation: Name reported to listeners.

        Raises:
            BundleNotFoundError: If the bundle does not exist.
            InvalidConfigurationError: If the output directory is outside
                the allowed roots.
            KeyError: If a generator name is unknown.
        """
        bundle = self._require_bundle(bundle_id)
        options = options or self.project.generation
        directory = self.component_dir(bundle)
        selected = self.registry.select(generators)
        if generators is None:
            selected = [g for g in selected if g.is_applicable(bundle, options)]

        record = SyncRecord(bundle_id, SyncDirection.REVERSE, dry_run=dry_run)
        try:
            self._pre_sync(record, operation)
        except SyncCancelledError as e:
            return self._cancelled(record, e)

        # Existence of each output is checked by the writer itself
        record.enter(SyncState.DIFFING)

        record.enter(SyncState.GENERATING)
        rendered: list[tuple[ArtifactGenerator, RenderedFile]] = []
        for generator in selected:
            try:
                files = generator.render(bundle, options)
            except Exception as e:
                logger.exception("Generator %s failed for %s", generator.name, bundle_id)
                record.add(ArtifactResult(generator.name, ArtifactStatus.FAILED, message=f"generation failed: {e}"))
                continue
            rendered.extend((generator, rendered_file) for rendered_file in files)

        record.enter(SyncState.WRITING)
        allowed_roots = (directory, *self.project.manifest_roots)
        for generator, rendered_file in rendered:
            policy = WritePolicy(
                overwrite=generator.owned or options.overwrite,
                backup=generator.owned or options.backup_before_overwrite,
                max_size_bytes=self.project.max_size_bytes,
                allowed_roots=allowed_roots,
            )
            path = self.artifact_path(bundle, generator.name, rendered_file)
            record.add(self._write(generator.name, path, rendered_file.content, policy, dry_run))

        record.enter(SyncState.REPORTING)
        if not dry_run:
            self._record_checksums(bundle, record)
        record.message = self._summarize(record)
        logger.info("Reverse sync of %s: %s", bundle_id, record.message)
        return self._post_sync(record, operation)

    def _write(self, artifact: str, path: Path, content: str, policy: WritePolicy, dry_run: bool) -> ArtifactResult:
        try:
            if dry_run:
                self.writer.check(path, content, policy)
                return ArtifactResult(artifact, ArtifactStatus.DRY_RUN, path, "would write")
            result = self.writer.write(path, content, policy)
        except ArtifactExistsError:
            return ArtifactResult(artifact, ArtifactStatus.EXISTS, path, "already exists")
        except WriterError as e:
            logger.warning("Write of %s failed: %s", path, e)
            return ArtifactResult(artifact, ArtifactStatus.FAILED, path, str(e))

        if result.status is WriteStatus.UNCHANGED:
            return ArtifactResult(artifact, ArtifactStatus.UNCHANGED, path, "unchanged")
        self.manifest_store.invalidate(path)
        return ArtifactResult(artifact, ArtifactStatus.WRITTEN, path, result.status.value, result.backup_path)

    def _record_checksums(self, bundle: BundleFieldSchema, record: SyncRecord) -> None:
        manifest_written = any(
            r.artifact == ManifestGenerator.name and r.status in (ArtifactStatus.WRITTEN, ArtifactStatus.UNCHANGED)
            for r in record.results
        )
        if not manifest_written:
            return
        updated = bundle.model_copy(
            update={
                "source_checksum": manifest_checksum(build_manifest(bundle)),
                "schema_checksum": schema_checksum(bundle),
            }
        )
        if (updated.source_checksum, updated.schema_checksum) != (bundle.source_checksum, bundle.schema_checksum):
            self.schema_store.save_bundle(updated)

    @staticmethod
    def _summarize(record: SyncRecord) -> str:
        counts: dict[str, int] = {}
        for result in record.results:
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        if not counts:
            return "nothing to generate"
        return ", ".join(f"{count} {status}" for status, count in counts.items())

    # Change detection

    def load_manifest_for(self, bundle: BundleFieldSchema) -> ComponentManifest | None:
        """The bundle's manifest on disk, or None if there is none.

        Raises:
            ManifestParseError: If the file exists but does not parse.
        """
        path = self.manifest_path(bundle)
        if not path.is_file():
            return None
        return self.manifest_store.load(path)

    def check_and_sync(self, bundle_id: str) -> SyncRecord:
        """Sync a bundle only as far as needed; safe to call repeatedly.

        - conflict: both sides changed since the last sync; nothing is written
        - forward: the manifest changed; reported as pending, nothing is written
        - reverse: the field schema changed (or there is no manifest);
          every applicable artifact is regenerated
        - none: only missing scaffolds are generated; if nothing is
          missing the call is a no-op
        """
        bundle = self._require_bundle(bundle_id)
        manifest = self.load_manifest_for(bundle)
        direction = detect_direction(manifest, bundle)

        match direction:
            case SyncDirection.REVERSE:
                return self.reverse_sync(bundle_id, operation="check_and_sync")
            case SyncDirection.CONFLICT:
                record = SyncRecord(bundle_id, SyncDirection.CONFLICT, pending=SyncDirection.CONFLICT)
                record.message = "manifest and field schema both changed since the last sync"
                logger.warning("Conflict for %s: %s", bundle_id, record.message)
            case SyncDirection.FORWARD:
                record = SyncRecord(bundle_id, SyncDirection.NONE, pending=SyncDirection.FORWARD)
                record.message = "manifest changed; forward sync pending"
            case _:
                missing = self._generators_with_missing_files(bundle)
                if missing:
                    return self.reverse_sync(bundle_id, generators=missing, operation="check_and_sync")
                record = SyncRecord(bundle_id, SyncDirection.NONE)
                record.message = "in sync"

        record.enter(SyncState.DIFFING)
        record.enter(SyncState.REPORTING)
        return record

    def _generators_with_missing_files(self, bundle: BundleFieldSchema) -> list[str]:
        options = self.project.generation
        directory = self.component_dir(bundle)
        names = []
        for generator in self.registry.select():
            if generator.name == ManifestGenerator.name or not generator.is_applicable(bundle, options):
                continue
            try:
                files = generator.render(bundle, options)
            except Exception:
                logger.exception("Generator %s failed for %s", generator.name, bundle.id)
                names.append(generator.name)
                continue
            if any(not (directory / f.relative_path).exists() for f in files):
                names.append(generator.name)
        return names

    def handle_bundle_changed(self, bundle_id: str) -> SyncRecord:
        """React to a field schema change: regenerate the manifest and scaffolds."""
        return self.reverse_sync(bundle_id, operation="bundle_changed")

    # Batch and tooling

    def sync_all(self, force: bool = False, dry_run: bool = False) -> BatchResult:
        """Sync every discovered manifest, then every bundle without one.

        Each manifest gets a forward sync followed by a check-and-sync of its
        bundle. A failure in one bundle is recorded and the batch continues.
        """
        if force:
            self.manifest_store.invalidate()
        discovery = self.manifest_store.discover(self.project.manifest_roots)
        batch = BatchResult(skipped=list(discovery.failures))

        seen: dict[str, str] = {}
        for manifest in discovery.manifests:
            try:
                bundle_id = bundle_id_for_component(manifest.id)
            except ValueError as e:
                batch.entries.append(BatchEntry(manifest.id, error=ComponentSyncError(str(e))))
                continue
            if bundle_id in seen:
                error = ComponentSyncError(
                    f"Manifests '{seen[bundle_id]}' and '{manifest.id}' map to the same bundle '{bundle_id}'"
                )
                batch.entries.append(BatchEntry(bundle_id, error=error))
                continue
            seen[bundle_id] = manifest.id

            entry = BatchEntry(bundle_id)
            try:
                manifest_file = discovery.paths[manifest.id]
                entry.record = self.forward_sync(
                    manifest,
                    force=force,
                    dry_run=dry_run,
                    component_path=self.component_path_for(manifest_file),
                    manifest_path=self.manifest_location_for(manifest_file),
                )
                if entry.record.success and not dry_run:
                    entry.follow_up = self.check_and_sync(bundle_id)
            except ComponentSyncError as e:
                logger.error("Sync of %s failed: %s", bundle_id, e)
                entry.error = e
            batch.entries.append(entry)

        for bundle in self.schema_store.list_bundles():
            if bundle.id in seen:
                continue
            entry = BatchEntry(bundle.id)
            try:
                if dry_run:
                    entry.record = self.reverse_sync(bundle.id, dry_run=True)
                else:
                    entry.record = self.check_and_sync(bundle.id)
            except ComponentSyncError as e:
                logger.error("Sync of %s failed: %s", bundle.id, e)
                entry.error = e
            batch.entries.append(entry)

        return batch

    def validate(self, bundle_id: str | None = None) -> list[ValidationResult]:
        """Structurally check the artifacts each bundle should have on disk.

        Nothing is regenerated or written.
        """
        bundles = [self._require_bundle(bundle_id)] if bundle_id else self.schema_store.list_bundles()
        options = self.project.generation
        results: list[ValidationResult] = []
        for bundle in bundles:
            self.component_dir(bundle)
            for generator in self.registry.select():
                if not generator.is_applicable(bundle, options):
                    continue
                for rendered_file in generator.render(bundle, options):
                    results.append(validate_artifact(self.artifact_path(bundle, generator.name, rendered_file)))
        return results

    def generate_client(
        self,
        bundle_id: str,
        typed: bool = False,
        with_tests: bool = False,
        overwrite: bool = False,
        dry_run: bool = False,
        css_modules: bool = False,
    ) -> SyncRecord:
        """Generate the interactive component files and library for a bundle.

        ``css_modules`` switches the component to a CSS module; the project
        setting applies when it is not given.
        """
        options = self.project.generation.model_copy(
            update={
                "typed_output": typed,
                "test_file_requested": with_tests,
                "overwrite": overwrite,
                "companion_stylesheet": True,
                "css_modules": css_modules or self.project.generation.css_modules,
            }
        )
        return self.reverse_sync(
            bundle_id,
            generators=["component", "library"],
            options=options,
            dry_run=dry_run,
            operation="generate_client",
        )
