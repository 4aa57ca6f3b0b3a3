"""Manifest discovery, parsing, and serialization.

Manifests live next to the component they describe as
``<component id>.component.yml``. Discovery fails soft: a file that does not
parse is logged, recorded as a failure and skipped, and the rest of the scan
continues.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from compsync.errors import ManifestParseError, ManifestWriteError, format_validation_errors
from compsync.manifest_schema import MANIFEST_SUFFIX, ComponentManifest

logger = logging.getLogger(__name__)

# Directories never scanned for manifests
IGNORED_DIRECTORIES = frozenset({".git", ".compsync", "node_modules", "__pycache__"})


@dataclass
class DiscoveryResult:
    """Outcome of one discovery pass.

    Attributes:
        manifests: Parsed manifests, ordered by path.
        paths: Manifest file path by component id.
        failures: Parse failures for files that were skipped.
    """

    manifests: list[ComponentManifest] = field(default_factory=list)
    paths: dict[str, Path] = field(default_factory=dict)
    failures: list[ManifestParseError] = field(default_factory=list)

    def get(self, component_id: str) -> ComponentManifest | None:
        """Return the manifest with the given id, if discovered."""
        for manifest in self.manifests:
            if manifest.id == component_id:
                return manifest
        return None


def component_id_from_path(path: Path) -> str:
    """Derive the component id from a manifest file name."""
    return path.name.removesuffix(MANIFEST_SUFFIX)


def manifest_path(directory: Path, component_id: str) -> Path:
    """Path of the manifest for ``component_id`` inside ``directory``."""
    return directory / f"{component_id}{MANIFEST_SUFFIX}"


def parse_manifest(text: str, path: Path) -> ComponentManifest:
    """Parse manifest text.

    Args:
        text: YAML document.
        path: File the text came from; its name supplies the component id.

    Returns:
        The validated manifest.

    Raises:
        ManifestParseError: If the YAML is malformed or fails validation.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestParseError(path, f"invalid YAML: {e}") from e

    if data is None:
        raise ManifestParseError(path, "file is empty")
    if not isinstance(data, dict):
        raise ManifestParseError(path, "expected a mapping at the top level")

    data["id"] = component_id_from_path(path)
    try:
        return ComponentManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(path, format_validation_errors(e)) from e


def load_manifest(path: Path) -> ComponentManifest:
    """Read and parse one manifest file.

    Raises:
        ManifestParseError: If the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestParseError(path, e.strerror or str(e)) from e
    return parse_manifest(text, path)


def manifest_to_data(manifest: ComponentManifest) -> dict[str, Any]:
    """Canonical plain-data form of a manifest (file key spellings, no nulls)."""
    data = manifest.model_dump(by_alias=True, exclude_none=True, mode="json")
    if not data.get("metadata"):
        data.pop("metadata", None)
    return data


def serialize_manifest(manifest: ComponentManifest) -> str:
    """Serialize a manifest to its on-disk YAML form.

    Key order follows the model (and the declaration order of props and
    slots), so the output is deterministic.
    """
    return yaml.dump(
        manifest_to_data(manifest),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def canonical_json(manifest: ComponentManifest) -> str:
    """Key-sorted JSON of a manifest without free-form metadata.

    Used for change detection, so it is computed on the re-loaded serialized
    form: a manifest and its re-parsed copy produce the same string.
    """
    data = yaml.safe_load(serialize_manifest(manifest))
    data.pop("metadata", None)
    data.pop("$schema", None)
    data["id"] = manifest.id
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


class ManifestStore:
    """Reads and writes component manifests with a discovery cache.

    The cache is keyed by path and modification time, so an edited file is
    re-parsed on the next pass. Callers invalidate explicitly after writes
    or when a forced refresh is requested.
    """

    def __init__(self) -> None:
        self._cache: dict[Path, tuple[int, ComponentManifest]] = {}

    def discover(self, roots: list[Path]) -> DiscoveryResult:
        """Scan ``roots`` recursively for manifest files.

        Missing roots are skipped. Malformed manifests are logged and
        reported in ``failures``; a duplicate component id keeps the first
        file found and reports the others.
        """
        result = DiscoveryResult()
        for path in self._find_manifest_files(roots):
            try:
                manifest = self._load_cached(path)
            except ManifestParseError as e:
                logger.warning("Skipping manifest: %s", e)
                result.failures.append(e)
                continue

            if manifest.id in result.paths:
                error = ManifestParseError(
                    path, f"duplicate component id '{manifest.id}' (first seen at {result.paths[manifest.id]})"
                )
                logger.warning("Skipping manifest: %s", error)
                result.failures.append(error)
                continue

            result.manifests.append(manifest)
            result.paths[manifest.id] = path

        logger.debug("Discovered %d manifest(s), %d failure(s)", len(result.manifests), len(result.failures))
        return result

    def load(self, path: Path) -> ComponentManifest:
        """Load one manifest through the cache."""
        return self._load_cached(path)

    def write(self, manifest: ComponentManifest, path: Path, overwrite: bool = False) -> Path:
        """Serialize ``manifest`` to ``path``.

        Args:
            manifest: The manifest to write.
            path: Target file.
            overwrite: Replace an existing file.

        Returns:
            The written path.

        Raises:
            ManifestWriteError: If the file exists and overwrite is False, or
                the write fails.
        """
        if path.exists() and not overwrite:
            raise ManifestWriteError(path, "file exists and overwrite is disabled")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(serialize_manifest(manifest), encoding="utf-8")
        except OSError as e:
            raise ManifestWriteError(path, e.strerror or str(e)) from e
        self.invalidate(path)
        logger.info("Wrote manifest %s", path)
        return path

    def invalidate(self, path: Path | None = None) -> None:
        """Drop one cached entry, or the whole cache when ``path`` is None."""
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(path.resolve(), None)

    def _load_cached(self, path: Path) -> ComponentManifest:
        key = path.resolve()
        try:
            mtime = key.stat().st_mtime_ns
        except OSError as e:
            raise ManifestParseError(path, e.strerror or str(e)) from e

        cached = self._cache.get(key)
        if cached is not None and cached[0] == mtime:
            return cached[1]

        manifest = load_manifest(path)
        self._cache[key] = (mtime, manifest)
        return manifest

    @staticmethod
    def _find_manifest_files(roots: list[Path]) -> list[Path]:
        found: set[Path] = set()
        for root in roots:
            if not root.is_dir():
                logger.debug("Manifest root %s does not exist, skipping", root)
                continue
            for path in root.rglob(f"*{MANIFEST_SUFFIX}"):
                if IGNORED_DIRECTORIES.intersection(path.relative_to(root).parts):
                    continue
                if path.is_file():
                    found.add(path)
        return sorted(found)
