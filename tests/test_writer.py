"""Tests for the safe file writer."""

from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from compsync.errors import (
    ArtifactExistsError,
    BackupFailedError,
    ContentRejectedError,
    ContentTooLargeError,
    PathNotAllowedError,
    WriterError,
)
from compsync.writer import SafeFileWriter, WritePolicy, WriteStatus, is_within


class FakeClock:
    """Clock that advances one second per call."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 23, 12, 0, 0)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class TestSafeFileWriter:
    """Tests for SafeFileWriter.write and its checks."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path: Path) -> None:
        """Set up a root directory and a writer."""
        self.root = tmp_path / "components"
        self.root.mkdir()
        self.writer = SafeFileWriter(tmp_path / "backups", clock=FakeClock())
        self.policy = WritePolicy(allowed_roots=(self.root,))

    def test_creates_file(self) -> None:
        """Verify a new file is created with its parent directories."""
        # Given
        path = self.root / "card" / "card.css"

        # When
        result = self.writer.write(path, ".c-card {}\n", self.policy)

        # Then
        assert result.status is WriteStatus.CREATED
        assert result.bytes_written == len(".c-card {}\n")
        assert path.read_text() == ".c-card {}\n"

    def test_existing_file_without_overwrite(self) -> None:
        """Verify an existing file is refused and left untouched."""
        # Given
        path = self.root / "card.html.twig"
        path.write_text("hand edited")

        # When/Then
        with pytest.raises(ArtifactExistsError, match="already exists"):
            self.writer.write(path, "generated", self.policy)
        assert path.read_text() == "hand edited"

    def test_overwrite_backs_up_first(self) -> None:
        """Verify overwriting keeps a copy of the previous content."""
        # Given
        path = self.root / "card.html.twig"
        path.write_text("old")
        policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

        # When
        result = self.writer.write(path, "new", policy)

        # Then
        assert result.status is WriteStatus.REPLACED
        assert path.read_text() == "new"
        assert result.backup_path is not None
        assert result.backup_path.read_text() == "old"
        assert result.backup_path.name.startswith("card.html.twig.")
        assert result.backup_path.name.endswith(".bak")

    def test_overwrite_without_backup(self) -> None:
        """Verify backups can be switched off."""
        # Given
        path = self.root / "card.css"
        path.write_text("old")
        policy = WritePolicy(overwrite=True, backup=False, allowed_roots=(self.root,))

        # When
        result = self.writer.write(path, "new", policy)

        # Then
        assert result.backup_path is None
        assert self.writer.list_backups(path) == []

    def test_identical_content_is_unchanged(self) -> None:
        """Verify identical bytes are neither rewritten nor backed up."""
        # Given
        path = self.root / "card.css"
        path.write_text("same")
        policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

        # When
        result = self.writer.write(path, "same", policy)

        # Then
        assert result.status is WriteStatus.UNCHANGED
        assert self.writer.list_backups(path) == []

    @pytest.mark.parametrize(
        "relative",
        [
            pytest.param("../outside.css", id="parent-traversal"),
            pytest.param("/etc/passwd.css", id="absolute"),
        ],
    )
    def test_paths_outside_roots_are_refused(self, relative: str) -> None:
        """Verify writes cannot escape the allowed roots."""
        # Given
        path = self.root / relative

        # When/Then
        with pytest.raises(PathNotAllowedError, match="outside allowed roots"):
            self.writer.write(path, "x", self.policy)

    def test_no_roots_allows_nothing(self) -> None:
        """Verify an empty allow-list refuses every path."""
        # When/Then
        with pytest.raises(PathNotAllowedError):
            self.writer.write(self.root / "card.css", "x", WritePolicy())

    def test_symlink_escape_is_refused(self, tmp_path: Path) -> None:
        """Verify a symlink inside a root cannot point outside it."""
        # Given
        outside = tmp_path / "outside"
        outside.mkdir()
        (self.root / "link").symlink_to(outside, target_is_directory=True)

        # When/Then
        with pytest.raises(PathNotAllowedError):
            self.writer.write(self.root / "link" / "card.css", "x", self.policy)
        assert not (outside / "card.css").exists()

    def test_disallowed_extension(self) -> None:
        """Verify only known artifact extensions are written."""
        # When/Then
        with pytest.raises(PathNotAllowedError, match="extension '.php'"):
            self.writer.write(self.root / "card.php", "<?php", self.policy)

    @pytest.mark.parametrize("name", ["services.yml", "package.json", "compsync.yaml"])
    def test_sensitive_names(self, name: str) -> None:
        """Verify sensitive file names are refused even with an allowed extension."""
        # When/Then
        with pytest.raises(PathNotAllowedError, match="sensitive"):
            self.writer.write(self.root / name, "x", self.policy)

    def test_size_limit(self) -> None:
        """Verify oversized content is refused before writing."""
        # Given
        policy = WritePolicy(max_size_bytes=10, allowed_roots=(self.root,))
        path = self.root / "card.css"

        # When/Then
        with pytest.raises(ContentTooLargeError) as exc_info:
            self.writer.write(path, "x" * 11, policy)
        assert exc_info.value.size == 11
        assert exc_info.value.limit == 10
        assert not path.exists()

    def test_backup_failure_aborts_overwrite(self) -> None:
        """Verify the target is untouched when the backup cannot be made."""
        # Given
        path = self.root / "card.css"
        path.write_text("old")
        policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

        # When/Then
        with patch("compsync.writer.shutil.copy2", side_effect=OSError(28, "No space left on device")):
            with pytest.raises(BackupFailedError, match="No space left"):
                self.writer.write(path, "new", policy)
        assert path.read_text() == "old"

    def test_failed_write_keeps_original(self) -> None:
        """Verify a failed replace leaves the original content."""
        # Given
        path = self.root / "card.css"
        path.write_text("old")
        policy = WritePolicy(overwrite=True, backup=False, allowed_roots=(self.root,))

        # When/Then
        with patch("compsync.writer.os.replace", side_effect=OSError(13, "Permission denied")):
            with pytest.raises(WriterError, match="Permission denied"):
                self.writer.write(path, "new", policy)
        assert path.read_text() == "old"
        assert [p.name for p in self.root.iterdir()] == ["card.css"]

    def test_directory_target_is_refused(self) -> None:
        """Verify a directory in place of the target is refused, not overwritten."""
        # Given
        path = self.root / "card.component.yml"
        path.mkdir()
        policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

        # When/Then
        with pytest.raises(PathNotAllowedError, match="not a regular file"):
            self.writer.write(path, "name: Card\n", policy)
        assert path.is_dir()

    def test_unreadable_target_is_a_writer_error(self) -> None:
        """Verify a target that cannot be read raises WriterError, not OSError."""
        # Given
        path = self.root / "card.css"
        path.write_text("old")
        policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

        # When/Then
        with patch.object(Path, "read_bytes", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(WriterError, match="Cannot read"):
                self.writer.write(path, "new", policy)
        assert path.read_text() == "old"

    @pytest.mark.parametrize(
        ("name", "content", "reason"),
        [
            pytest.param("card.html.twig", "<?php echo 1; ?>", "dangerous", id="php-tag"),
            pytest.param("Card.jsx", "eval (input);\n", "dangerous", id="eval"),
            pytest.param("card.css", "/* $_GET['x'] */", "dangerous", id="superglobal"),
            pytest.param("card.libraries.yml", "component: [\n", "invalid YAML", id="yaml"),
            pytest.param("card.json", "{'a': 1}", "invalid JSON", id="json"),
        ],
    )
    def test_content_check(self, name: str, content: str, reason: str) -> None:
        """Verify unsafe or unparseable content is refused before writing."""
        # Given
        path = self.root / name

        # When/Then
        with pytest.raises(ContentRejectedError, match=reason):
            self.writer.write(path, content, self.policy)
        assert not path.exists()

    def test_content_check_allows_generated_code(self) -> None:
        """Verify ordinary component code is not mistaken for server-side code."""
        # Given
        content = "const executed = system.ready;\nexport default Card;\n"

        # When
        result = self.writer.write(self.root / "Card.jsx", content, self.policy)

        # Then
        assert result.status is WriteStatus.CREATED

    def test_check_does_not_write(self) -> None:
        """Verify check() validates without touching the disk."""
        # Given
        path = self.root / "card.css"

        # When
        data = self.writer.check(path, "content", self.policy)

        # Then
        assert data == b"content"
        assert not path.exists()


class TestBackups:
    """Tests for listing and restoring backups."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path: Path) -> None:
        """Set up a root directory and a writer."""
        self.root = tmp_path / "components"
        self.root.mkdir()
        self.writer = SafeFileWriter(tmp_path / "backups", clock=FakeClock())
        self.policy = WritePolicy(overwrite=True, allowed_roots=(self.root,))

    def test_list_backups_newest_first(self) -> None:
        """Verify backups are listed newest first."""
        # Given
        path = self.root / "card.css"
        path.write_text("v1")
        self.writer.write(path, "v2", self.policy)
        self.writer.write(path, "v3", self.policy)

        # When
        backups = self.writer.list_backups(path)

        # Then
        assert [b.read_text() for b in backups] == ["v2", "v1"]

    def test_same_name_in_different_directories(self) -> None:
        """Verify backups of equally named files do not mix."""
        # Given
        first = self.root / "a" / "index.js"
        second = self.root / "b" / "index.js"
        for path in (first, second):
            path.parent.mkdir()
            path.write_text(f"old {path.parent.name}")
            self.writer.write(path, "new", self.policy)

        # When
        first_backups = self.writer.list_backups(first)
        second_backups = self.writer.list_backups(second)

        # Then
        assert [b.read_text() for b in first_backups] == ["old a"]
        assert [b.read_text() for b in second_backups] == ["old b"]

    def test_restore_backup(self) -> None:
        """Verify a backup can be written back through the policy."""
        # Given
        path = self.root / "card.css"
        path.write_text("original")
        result = self.writer.write(path, "replaced", self.policy)

        # When
        self.writer.restore_backup(result.backup_path, path, self.policy)

        # Then
        assert path.read_text() == "original"


class TestIsWithin:
    """Tests for is_within()."""

    def test_nested_path(self, tmp_path: Path) -> None:
        """Verify nested paths are within their root."""
        # When/Then
        assert is_within(tmp_path / "a" / "b.css", [tmp_path])
        assert not is_within(tmp_path.parent / "other.css", [tmp_path])
