"""Result types reported by sync runs."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from compsync.diff import Changeset, SyncDirection


class SyncState(str, Enum):
    """Stages a sync run passes through, in order."""

    IDLE = "idle"
    DIFFING = "diffing"
    GENERATING = "generating"
    WRITING = "writing"
    REPORTING = "reporting"


class ArtifactStatus(str, Enum):
    """Outcome of one artifact in a run."""

    WRITTEN = "written"
    UNCHANGED = "unchanged"
    EXISTS = "exists"
    DRY_RUN = "dry-run"
    VALID = "valid"
    FAILED = "failed"


@dataclass
class ArtifactResult:
    """Outcome of generating or writing one artifact.

    ``success`` is False for files that already exist, but such results are
    not failures: the run still succeeds.
    """

    artifact: str
    status: ArtifactStatus
    path: Path | None = None
    message: str = ""
    backup_path: Path | None = None

    @property
    def success(self) -> bool:
        return self.status not in (ArtifactStatus.EXISTS, ArtifactStatus.FAILED)

    @property
    def failed(self) -> bool:
        return self.status is ArtifactStatus.FAILED


@dataclass
class SyncRecord:
    """Report of one sync run for one bundle."""

    bundle_id: str
    direction: SyncDirection
    results: list[ArtifactResult] = field(default_factory=list)
    changeset: Changeset | None = None
    phases: list[SyncState] = field(default_factory=lambda: [SyncState.IDLE])
    pending: SyncDirection | None = None
    cancelled: bool = False
    dry_run: bool = False
    message: str = ""

    @property
    def failures(self) -> list[ArtifactResult]:
        return [r for r in self.results if r.failed]

    @property
    def success(self) -> bool:
        """True unless the run was cancelled, is in conflict, or an artifact failed."""
        if self.cancelled or self.direction is SyncDirection.CONFLICT:
            return False
        return not self.failures

    @property
    def partial(self) -> bool:
        """True when some artifacts failed and others did not."""
        return bool(self.failures) and len(self.failures) < len(self.results)

    def enter(self, state: SyncState) -> None:
        """Record that the run reached ``state``."""
        self.phases.append(state)

    def add(self, result: ArtifactResult) -> ArtifactResult:
        self.results.append(result)
        return result

    def written_paths(self) -> list[Path]:
        return [r.path for r in self.results if r.status is ArtifactStatus.WRITTEN and r.path is not None]


@dataclass
class BatchEntry:
    """One bundle's outcome in a batch run.

    ``record`` is the first run for the bundle and ``follow_up`` the
    artifact run that came after it, if any. ``error`` is set instead when
    the bundle could not be synced at all.
    """

    bundle_id: str
    record: SyncRecord | None = None
    follow_up: SyncRecord | None = None
    error: Exception | None = None

    @property
    def records(self) -> list[SyncRecord]:
        return [r for r in (self.record, self.follow_up) if r is not None]

    @property
    def success(self) -> bool:
        return self.error is None and self.record is not None and all(r.success for r in self.records)


@dataclass
class BatchResult:
    """Outcome of syncing many bundles.

    ``skipped`` holds manifests that failed to parse; they are excluded from
    the run rather than failing it.
    """

    entries: list[BatchEntry] = field(default_factory=list)
    skipped: list[Exception] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(entry.success for entry in self.entries)

    @property
    def failed(self) -> list[BatchEntry]:
        return [entry for entry in self.entries if not entry.success]

    @property
    def partial(self) -> bool:
        """True when at least one bundle succeeded and at least one did not."""
        return bool(self.failed) and len(self.failed) < len(self.entries)
