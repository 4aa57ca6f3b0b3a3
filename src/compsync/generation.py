"""Generation options, rendered output, and the generator registry.

Generators are pure: ``render(bundle, options)`` returns file contents
relative to the component directory and never touches the filesystem.
The orchestrator routes everything they produce through the SafeFileWriter.
"""

from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from compsync.bundle_schema import BundleFieldSchema
from compsync.naming import NamingStyle


class GenerationOptions(BaseModel):
    """Options shared by every artifact generator."""

    model_config = ConfigDict(extra="forbid")

    overwrite: bool = Field(
        default=False,
        description="Replace existing scaffold files",
    )
    backup_before_overwrite: bool = Field(
        default=True,
        description="Back up a file before replacing it",
    )
    naming_style: NamingStyle = Field(
        default=NamingStyle.BLOCK_ELEMENT,
        description="CSS class naming convention",
    )
    include_debug_comments: bool = Field(
        default=True,
        description="Emit explanatory comments in generated files",
    )
    typed_output: bool = Field(
        default=False,
        description="Emit TypeScript instead of JavaScript",
    )
    test_file_requested: bool = Field(
        default=False,
        description="Emit a smoke test next to the component",
    )
    with_story: bool = Field(
        default=True,
        description="Emit a catalog story next to the component",
    )
    with_index: bool = Field(
        default=True,
        description="Emit an index re-export file",
    )
    companion_stylesheet: bool = Field(
        default=False,
        description="Emit the stylesheet from the component generator",
    )
    css_modules: bool = Field(
        default=False,
        description="Scope component styles through a CSS module (<component>.module.css)",
    )


@dataclass(frozen=True)
class RenderedFile:
    """Content of one generated file, relative to the component directory."""

    relative_path: str
    content: str


class ArtifactGenerator(Protocol):
    """Interface every artifact generator implements.

    ``owned`` artifacts are pure derivations of the bundle and are always
    regenerated; the others are scaffolds that respect ``overwrite``.
    """

    name: str
    owned: bool

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        """Whether this generator has anything to produce for ``bundle``."""
        ...

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        """Produce file contents for ``bundle``."""
        ...


class GeneratorRegistry:
    """Generators keyed by name, in registration order."""

    def __init__(self) -> None:
        self._generators: dict[str, ArtifactGenerator] = {}

    def register(self, generator: ArtifactGenerator) -> None:
        """Add a generator.

        Raises:
            ValueError: If a generator with the same name is registered.
        """
        if generator.name in self._generators:
            msg = f"generator '{generator.name}' is already registered"
            raise ValueError(msg)
        self._generators[generator.name] = generator

    def get(self, name: str) -> ArtifactGenerator:
        """Look up a generator by name.

        Raises:
            KeyError: If no generator has that name.
        """
        try:
            return self._generators[name]
        except KeyError:
            msg = f"unknown generator '{name}' (available: {', '.join(self.names())})"
            raise KeyError(msg) from None

    def names(self) -> list[str]:
        """Registered generator names, in registration order."""
        return list(self._generators)

    def select(self, names: list[str] | None = None) -> list[ArtifactGenerator]:
        """Generators for ``names``, or all of them when ``names`` is None."""
        if names is None:
            return list(self._generators.values())
        return [self.get(name) for name in names]

    def __contains__(self, name: object) -> bool:
        return name in self._generators


def default_registry() -> GeneratorRegistry:
    """Registry with the built-in generators."""
    from compsync.component_generator import ComponentGenerator
    from compsync.library_generator import LibraryGenerator
    from compsync.manifest_generator import ManifestGenerator
    from compsync.stylesheet_generator import StylesheetGenerator
    from compsync.template_generator import TemplateGenerator

    registry = GeneratorRegistry()
    registry.register(ManifestGenerator())
    registry.register(TemplateGenerator())
    registry.register(StylesheetGenerator())
    registry.register(ComponentGenerator())
    registry.register(LibraryGenerator())
    return registry
