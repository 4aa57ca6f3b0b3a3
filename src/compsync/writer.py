"""Safe file writer for generated artifacts.

Every generated file goes through ``SafeFileWriter.write``, which checks the
target against the path allow-list, the extension allow-list and the sensitive
name deny-list, and the content against the size limit and a content check,
before touching the disk. Overwrites are preceded by a backup when one is
requested, and the new content is written to a temporary file and moved into
place, so a failed call leaves the original file as it was.
"""

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

import yaml

from compsync.errors import (
    ArtifactExistsError,
    BackupFailedError,
    ContentRejectedError,
    ContentTooLargeError,
    PathNotAllowedError,
    WriterError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE_BYTES = 1024 * 1024

ALLOWED_EXTENSIONS = frozenset(
    {"yml", "yaml", "twig", "html", "js", "jsx", "ts", "tsx", "css", "scss", "json", "md"}
)

SENSITIVE_FILE_NAMES = frozenset(
    {
        ".htaccess",
        ".htpasswd",
        ".env",
        "settings.php",
        "settings.local.php",
        "services.yml",
        "composer.json",
        "composer.lock",
        "package.json",
        "package-lock.json",
        "compsync.yaml",
    }
)

# Server-side code and superglobal access never belong in generated front-end files
DANGEROUS_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"<\?php",
        r"\beval\s*\(",
        r"\bexec\s*\(",
        r"\bsystem\s*\(",
        r"\bpassthru\s*\(",
        r"\bshell_exec\s*\(",
        r"\$_(GET|POST|REQUEST|SESSION|COOKIE|FILES|SERVER)\[",
    )
)

BACKUP_SUFFIX = ".bak"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


class WriteStatus(str, Enum):
    """What a successful write did."""

    CREATED = "created"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class WritePolicy:
    """Per-call write rules.

    Attributes:
        overwrite: Replace an existing file.
        backup: Copy an existing file aside before replacing it.
        max_size_bytes: Largest content accepted, in UTF-8 bytes.
        allowed_roots: Directories the target must lie within. An empty
            list allows nothing.
    """

    overwrite: bool = False
    backup: bool = True
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES
    allowed_roots: tuple[Path, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a successful write."""

    path: Path
    status: WriteStatus
    backup_path: Path | None = None
    bytes_written: int = 0


def is_within(path: Path, roots: tuple[Path, ...] | list[Path]) -> bool:
    """True if ``path`` resolves inside one of ``roots``."""
    resolved = path.resolve()
    return any(resolved.is_relative_to(root.resolve()) for root in roots)


def check_content(path: Path, content: str) -> None:
    """Refuse content that would be unsafe or broken once written.

    Raises:
        ContentRejectedError: If YAML or JSON content does not parse, or the
            content contains server-side code.
    """
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(content):
            raise ContentRejectedError(path, "content contains potentially dangerous code")

    extension = path.suffix.lstrip(".").lower()
    if extension in ("yml", "yaml"):
        try:
            yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ContentRejectedError(path, f"invalid YAML: {e}") from e
    elif extension == "json":
        try:
            json.loads(content)
        except ValueError as e:
            raise ContentRejectedError(path, f"invalid JSON: {e}") from e


class SafeFileWriter:
    """Writes files under an allow-list with backup-before-overwrite."""

    def __init__(self, backup_dir: Path, clock: Callable[[], datetime] = datetime.now) -> None:
        """Initialize the writer.

        Args:
            backup_dir: Directory that receives backups.
            clock: Source of backup timestamps.
        """
        self.backup_dir = backup_dir
        self._clock = clock

    def check(self, path: Path, content: str, policy: WritePolicy) -> bytes:
        """Run every pre-write check without writing.

        Returns:
            The encoded content.

        Raises:
            PathNotAllowedError: If the path, extension or file name is refused,
                or the target exists but is not a regular file.
            ContentTooLargeError: If the content exceeds the size limit.
            ContentRejectedError: If the content does not parse for its file
                type or contains server-side code.
            ArtifactExistsError: If the target exists and overwrite is off.
        """
        if not is_within(path, policy.allowed_roots):
            raise PathNotAllowedError(path)

        extension = path.suffix.lstrip(".").lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise PathNotAllowedError(path, f"extension '.{extension}' is not allowed")

        if path.name.lower() in SENSITIVE_FILE_NAMES:
            raise PathNotAllowedError(path, "sensitive file")

        data = content.encode("utf-8")
        if len(data) > policy.max_size_bytes:
            raise ContentTooLargeError(path, len(data), policy.max_size_bytes)

        check_content(path, content)

        if path.exists():
            if not path.is_file():
                raise PathNotAllowedError(path, "not a regular file")
            if not policy.overwrite:
                raise ArtifactExistsError(path)

        return data

    def write(self, path: Path, content: str, policy: WritePolicy) -> WriteResult:
        """Write ``content`` to ``path`` under ``policy``.

        Exactly one file is created or replaced per successful call. A target
        that already holds identical bytes is left alone.

        Raises:
            PathNotAllowedError: If the path, extension or file name is refused.
            ContentTooLargeError: If the content exceeds the size limit.
            ContentRejectedError: If the content fails the content check.
            ArtifactExistsError: If the target exists and overwrite is off.
            BackupFailedError: If the requested backup could not be made; the
                target is not modified.
            WriterError: If the existing target cannot be read or the write
                itself fails; the target is not modified.
        """
        data = self.check(path, content, policy)

        existed = path.exists()
        if existed:
            try:
                current = path.read_bytes()
            except OSError as e:
                raise WriterError(path, f"Cannot read {path}: {e.strerror or e}") from e
            if current == data:
                logger.debug("Unchanged: %s", path)
                return WriteResult(path, WriteStatus.UNCHANGED)

        backup_path = None
        if existed and policy.backup:
            backup_path = self.backup(path)

        self._atomic_write(path, data)
        status = WriteStatus.REPLACED if existed else WriteStatus.CREATED
        logger.info("%s %s (%d bytes)", status.value.capitalize(), path, len(data))
        return WriteResult(path, status, backup_path, len(data))

    def backup(self, path: Path) -> Path:
        """Copy ``path`` into the backup directory.

        Returns:
            Path of the backup copy.

        Raises:
            BackupFailedError: If the copy could not be made.
        """
        target_dir = self._backup_dir_for(path)
        timestamp = self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)
        backup_path = target_dir / f"{path.name}.{timestamp}{BACKUP_SUFFIX}"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise BackupFailedError(path, e.strerror or str(e)) from e
        logger.info("Backed up %s to %s", path, backup_path)
        return backup_path

    def list_backups(self, path: Path) -> list[Path]:
        """Backups of ``path``, newest first."""
        target_dir = self._backup_dir_for(path)
        if not target_dir.is_dir():
            return []
        backups = target_dir.glob(f"{path.name}.*{BACKUP_SUFFIX}")
        return sorted(backups, key=lambda p: p.name, reverse=True)

    def restore_backup(self, backup_path: Path, target: Path, policy: WritePolicy) -> WriteResult:
        """Write a backup's content back to ``target`` under ``policy``.

        Raises:
            WriterError: If the backup cannot be read, or any write check fails.
        """
        try:
            content = backup_path.read_text(encoding="utf-8")
        except OSError as e:
            raise WriterError(backup_path, f"Cannot read backup {backup_path}: {e.strerror or e}") from e
        return self.write(target, content, policy)

    def _backup_dir_for(self, path: Path) -> Path:
        # Files with the same name in different directories get separate folders
        parent = path.resolve().parent
        digest = hashlib.sha1(str(parent).encode("utf-8")).hexdigest()[:8]
        return self.backup_dir / f"{parent.name}-{digest}"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.chmod(tmp_name, path.stat().st_mode if path.exists() else 0o644)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise WriterError(path, f"Cannot write {path}: {e.strerror or e}") from e
