"""compsync CLI entry point."""

import sys
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from compsync import __version__, cli_logger, exit_codes
from compsync.config import Project, load_project
from compsync.diff import SyncDirection, detect_direction
from compsync.errors import ComponentSyncError, handle_cli_error
from compsync.manifest_store import ManifestStore
from compsync.naming import bundle_id_for_component
from compsync.schema_store import YamlSchemaStore
from compsync.sync import SyncOrchestrator
from compsync.sync_record import BatchResult, SyncRecord
from compsync.writer import SafeFileWriter

app = typer.Typer(
    name="compsync",
    help="Keep component manifests and bundle field schemas in sync, and scaffold their templates.",
    no_args_is_help=True,
)

console = Console()


def build_orchestrator(project: Project) -> SyncOrchestrator:
    """Wire an orchestrator for ``project`` with the YAML bundle store."""
    return SyncOrchestrator(
        schema_store=YamlSchemaStore(project.bundle_store_dir),
        manifest_store=ManifestStore(),
        writer=SafeFileWriter(project.backup_dir),
        project=project,
    )


def require_project() -> SyncOrchestrator:
    """Load the project and build its orchestrator.

    Raises:
        typer.Exit: With INVALID_CONFIG if the configuration is invalid.
    """
    try:
        project = load_project()
    except ComponentSyncError as e:
        raise typer.Exit(handle_cli_error(e)) from e
    return build_orchestrator(project)


def record_exit_code(records: list[SyncRecord]) -> int:
    """Exit code for the records of one bundle."""
    if any(r.cancelled for r in records):
        return exit_codes.SYNC_CANCELLED
    if any(r.direction is SyncDirection.CONFLICT for r in records):
        return exit_codes.GENERAL_ERROR
    failed = [r for r in records if not r.success]
    if not failed:
        return exit_codes.SUCCESS
    if any(r.partial for r in failed):
        return exit_codes.PARTIAL_SUCCESS
    return exit_codes.GENERAL_ERROR


def batch_exit_code(batch: BatchResult) -> int:
    """Exit code for a batch run."""
    if batch.success:
        return exit_codes.PARTIAL_SUCCESS if batch.skipped else exit_codes.SUCCESS
    if batch.partial:
        return exit_codes.PARTIAL_SUCCESS
    return exit_codes.GENERAL_ERROR


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"compsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show compsync version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output to stderr.",
    ),
) -> None:
    """Keep component manifests and bundle field schemas in sync."""
    cli_logger.configure_logging(verbose)


def _sync_one(orchestrator: SyncOrchestrator, bundle_id: str, force: bool, dry_run: bool) -> list[SyncRecord]:
    discovery = orchestrator.manifest_store.discover(orchestrator.project.manifest_roots)
    for manifest in discovery.manifests:
        try:
            matches = bundle_id_for_component(manifest.id) == bundle_id
        except ValueError:
            continue
        if not matches:
            continue
        manifest_file = discovery.paths[manifest.id]
        record = orchestrator.forward_sync(
            manifest,
            force=force,
            dry_run=dry_run,
            component_path=orchestrator.component_path_for(manifest_file),
            manifest_path=orchestrator.manifest_location_for(manifest_file),
        )
        if dry_run or not record.success:
            return [record]
        return [record, orchestrator.check_and_sync(bundle_id)]

    if dry_run:
        return [orchestrator.reverse_sync(bundle_id, dry_run=True)]
    return [orchestrator.check_and_sync(bundle_id)]


@app.command()
def sync(
    bundle: Annotated[
        str | None,
        typer.Argument(
            help="Bundle id to sync. Syncs every manifest and bundle when omitted.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Ignore change detection and re-apply manifests."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Report what would change without writing."),
    ] = False,
) -> None:
    """Sync manifests into bundles and regenerate artifacts.

    A manifest is applied to its bundle first (forward sync); missing or
    stale artifacts are then generated from the bundle (reverse sync).
    """
    orchestrator = require_project()

    try:
        if bundle is None:
            batch = orchestrator.sync_all(force=force, dry_run=dry_run)
        else:
            records = _sync_one(orchestrator, bundle, force, dry_run)
    except ComponentSyncError as e:
        raise typer.Exit(handle_cli_error(e)) from e

    if bundle is not None:
        for record in records:
            cli_logger.sync_record(record)
        raise typer.Exit(record_exit_code(records))

    for skipped in batch.skipped:
        cli_logger.warning(f"Skipped {skipped}")
    for entry in batch.entries:
        for record in entry.records:
            cli_logger.sync_record(record)
    if batch.entries:
        cli_logger.batch_summary(batch)
    else:
        cli_logger.info("No manifests or bundles found.")
    raise typer.Exit(batch_exit_code(batch))


@app.command()
def validate(
    bundle: Annotated[
        str | None,
        typer.Argument(help="Bundle id to validate. Validates every bundle when omitted."),
    ] = None,
) -> None:
    """Check generated artifacts for structural problems without regenerating them."""
    orchestrator = require_project()

    try:
        results = orchestrator.validate(bundle)
    except ComponentSyncError as e:
        raise typer.Exit(handle_cli_error(e)) from e

    invalid = [r for r in results if not r.is_valid]
    for result in results:
        if result.is_valid:
            cli_logger.dim(f"  ok: {result.path}")
            continue
        cli_logger.error(f"{result.path}")
        for error in result.errors:
            cli_logger.dim(f"  • {error}")

    if invalid:
        cli_logger.error(f"{len(invalid)} of {len(results)} artifact(s) failed validation")
        raise typer.Exit(exit_codes.VALIDATION_FAILED)
    cli_logger.success(f"{len(results)} artifact(s) valid")
    raise typer.Exit(exit_codes.SUCCESS)


@app.command("generate-client")
def generate_client(
    bundle: Annotated[
        str,
        typer.Argument(help="Bundle id to generate the interactive component for."),
    ],
    typed: Annotated[
        bool,
        typer.Option("--typed", help="Emit TypeScript instead of JavaScript."),
    ] = False,
    with_tests: Annotated[
        bool,
        typer.Option("--with-tests", help="Emit a smoke test next to the component."),
    ] = False,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace existing files (a backup is kept)."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Report what would be written without writing."),
    ] = False,
    css_modules: Annotated[
        bool,
        typer.Option("--css-modules", help="Import styles as a CSS module (<component>.module.css)."),
    ] = False,
) -> None:
    """Generate the interactive component, its companion files and asset library."""
    orchestrator = require_project()

    try:
        record = orchestrator.generate_client(
            bundle,
            typed=typed,
            with_tests=with_tests,
            overwrite=overwrite,
            dry_run=dry_run,
            css_modules=css_modules,
        )
    except ComponentSyncError as e:
        raise typer.Exit(handle_cli_error(e)) from e

    cli_logger.sync_record(record)
    raise typer.Exit(record_exit_code([record]))


@app.command()
def discover() -> None:
    """List the component manifests found under the manifest roots."""
    orchestrator = require_project()
    discovery = orchestrator.manifest_store.discover(orchestrator.project.manifest_roots)

    if not discovery.manifests and not discovery.failures:
        cli_logger.info("No manifests found.")
        raise typer.Exit(exit_codes.SUCCESS)

    table = Table(title="Component manifests")
    table.add_column("Component")
    table.add_column("Bundle")
    table.add_column("Props", justify="right")
    table.add_column("Slots", justify="right")
    table.add_column("Path", overflow="fold")
    for manifest in discovery.manifests:
        try:
            bundle_id = bundle_id_for_component(manifest.id)
        except ValueError:
            bundle_id = "[red]invalid[/red]"
        table.add_row(
            manifest.id,
            bundle_id,
            str(len(manifest.props)),
            str(len(manifest.slots)),
            str(discovery.paths[manifest.id]),
        )
    console.print(table)

    for failure in discovery.failures:
        cli_logger.warning(str(failure))
    raise typer.Exit(exit_codes.PARTIAL_SUCCESS if discovery.failures else exit_codes.SUCCESS)


@app.command()
def status() -> None:
    """Show which direction each bundle needs to be synced in."""
    orchestrator = require_project()

    try:
        bundles = orchestrator.schema_store.list_bundles()
        discovery = orchestrator.manifest_store.discover(orchestrator.project.manifest_roots)
    except ComponentSyncError as e:
        raise typer.Exit(handle_cli_error(e)) from e

    manifests = {}
    for manifest in discovery.manifests:
        try:
            manifests[bundle_id_for_component(manifest.id)] = manifest
        except ValueError:
            continue

    if not bundles and not manifests:
        cli_logger.info("No manifests or bundles found.")
        raise typer.Exit(exit_codes.SUCCESS)

    table = Table(title="Sync status")
    table.add_column("Bundle")
    table.add_column("Manifest")
    table.add_column("Fields", justify="right")
    table.add_column("Status")

    styles = {
        SyncDirection.NONE: "[green]in sync[/green]",
        SyncDirection.FORWARD: "[yellow]forward sync pending[/yellow]",
        SyncDirection.REVERSE: "[yellow]reverse sync pending[/yellow]",
        SyncDirection.CONFLICT: "[red]conflict[/red]",
    }
    by_id = {bundle.id: bundle for bundle in bundles}
    for bundle_id in sorted(set(by_id) | set(manifests)):
        bundle = by_id.get(bundle_id)
        manifest = manifests.get(bundle_id)
        direction = detect_direction(manifest, bundle)
        table.add_row(
            bundle_id,
            manifest.id if manifest else "-",
            str(len(bundle.fields)) if bundle else "-",
            styles[direction],
        )
    console.print(table)
    raise typer.Exit(exit_codes.SUCCESS)


def main_cli() -> None:
    """CLI entry point with top-level exception handling.

    Wraps the Typer app to catch any unhandled exceptions and format them
    as clean error messages instead of raw tracebacks.
    """
    try:
        app()
    except Exception as e:
        sys.exit(handle_cli_error(e))


if __name__ == "__main__":
    main_cli()
