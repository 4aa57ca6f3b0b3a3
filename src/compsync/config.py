"""Project root resolution and configuration.

The project root is the directory whose components are synchronized. It
may hold an optional ``compsync.yaml``; without one, defaults apply.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from compsync.errors import InvalidConfigurationError, format_validation_errors
from compsync.generation import GenerationOptions
from compsync.writer import DEFAULT_MAX_SIZE_BYTES

# Environment variable for a custom project root
PROJECT_ENV_VAR = "COMPSYNC_PROJECT"

CONFIG_FILE_NAME = "compsync.yaml"


class WriterSettings(BaseModel):
    """Safe file writer settings."""

    model_config = ConfigDict(extra="forbid")

    max_size_bytes: int = Field(
        default=DEFAULT_MAX_SIZE_BYTES,
        description="Largest generated file accepted, in bytes",
    )
    backup_dir: str = Field(
        default=".compsync/backups",
        description="Backup directory, relative to the project root",
    )
    allowed_roots: list[str] | None = Field(
        default=None,
        description="Directories writes may target (default: the components directory)",
    )

    @field_validator("max_size_bytes")
    @classmethod
    def validate_max_size(cls, v: int) -> int:
        """Validate size limit is positive."""
        if v <= 0:
            msg = "max_size_bytes must be positive"
            raise ValueError(msg)
        return v


class ProjectConfig(BaseModel):
    """Root schema for compsync.yaml."""

    model_config = ConfigDict(extra="forbid")

    components_dir: str = Field(
        default="components",
        description="Directory holding one subdirectory per component",
    )
    manifest_roots: list[str] | None = Field(
        default=None,
        description="Directories scanned for manifests (default: the components directory)",
    )
    bundle_store: str = Field(
        default=".compsync/bundles",
        description="Directory of the YAML bundle store",
    )
    generation: GenerationOptions = Field(
        default_factory=GenerationOptions,
        description="Default generation options",
    )
    writer: WriterSettings = Field(
        default_factory=WriterSettings,
        description="Safe file writer settings",
    )


class Project:
    """A loaded project: its root directory plus configuration.

    Relative paths in the configuration are resolved against the root.
    """

    def __init__(self, root: Path, config: ProjectConfig | None = None) -> None:
        self.root = root
        self.config = config or ProjectConfig()

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.root / path

    @property
    def components_dir(self) -> Path:
        return self._resolve(self.config.components_dir)

    @property
    def manifest_roots(self) -> list[Path]:
        if self.config.manifest_roots is None:
            return [self.components_dir]
        return [self._resolve(value) for value in self.config.manifest_roots]

    @property
    def bundle_store_dir(self) -> Path:
        return self._resolve(self.config.bundle_store)

    @property
    def backup_dir(self) -> Path:
        return self._resolve(self.config.writer.backup_dir)

    @property
    def allowed_roots(self) -> list[Path]:
        if self.config.writer.allowed_roots is None:
            return [self.components_dir]
        return [self._resolve(value) for value in self.config.writer.allowed_roots]

    @property
    def generation(self) -> GenerationOptions:
        return self.config.generation

    @property
    def max_size_bytes(self) -> int:
        return self.config.writer.max_size_bytes


def get_project_root() -> Path:
    """Get the project root directory.

    Resolution order:
    1. COMPSYNC_PROJECT environment variable (if set)
    2. Default: the current working directory

    Returns:
        Path to the project root.
    """
    env_value = os.environ.get(PROJECT_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    return Path.cwd()


def load_config(path: Path) -> ProjectConfig:
    """Load and validate a compsync.yaml file.

    Raises:
        InvalidConfigurationError: If the file is not valid YAML or fails validation.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        msg = f"{path}: invalid YAML: {e}"
        raise InvalidConfigurationError(msg) from e
    except OSError as e:
        msg = f"{path}: {e.strerror or e}"
        raise InvalidConfigurationError(msg) from e

    if data is None:
        return ProjectConfig()
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping at the top level"
        raise InvalidConfigurationError(msg)

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        msg = f"{path}: {format_validation_errors(e)}"
        raise InvalidConfigurationError(msg) from e


def load_project(root: Path | None = None) -> Project:
    """Resolve the project root and load its configuration.

    Raises:
        InvalidConfigurationError: If the root is not a directory or the
            configuration is invalid.
    """
    root = root or get_project_root()
    if not root.is_dir():
        msg = f"Project root is not a directory: {root}"
        raise InvalidConfigurationError(msg)

    config_path = root / CONFIG_FILE_NAME
    config = load_config(config_path) if config_path.exists() else ProjectConfig()
    return Project(root, config)
