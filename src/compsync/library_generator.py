"""Asset library generator.

Lists the interactive component files a bundle needs, one library file per
component directory, so runs for different bundles never write the same file.
"""

import yaml

from compsync.bundle_schema import BundleFieldSchema
from compsync.generation import GenerationOptions, RenderedFile
from compsync.naming import component_class_name
from compsync.stylesheet_generator import stylesheet_file_name

LIBRARY_VERSION = "1.x"

LIBRARY_DEPENDENCIES = ["core/react", "core/react-dom"]


def library_file_name(bundle: BundleFieldSchema) -> str:
    """File name of the bundle's library definition."""
    return f"{bundle.component_name}.libraries.yml"


def build_library(bundle: BundleFieldSchema, options: GenerationOptions) -> dict:
    """Library definition for the bundle's component files."""
    ext = "tsx" if options.typed_output else "jsx"
    return {
        f"component.{bundle.id}": {
            "version": LIBRARY_VERSION,
            "js": {f"{component_class_name(bundle.id)}.{ext}": {}},
            "css": {"component": {stylesheet_file_name(bundle, options.css_modules): {}}},
            "dependencies": list(LIBRARY_DEPENDENCIES),
        }
    }


class LibraryGenerator:
    """Writes ``<component>.libraries.yml``."""

    name = "library"
    owned = True

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        return bundle.rendering.react_enabled

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        content = yaml.dump(build_library(bundle, options), default_flow_style=False, sort_keys=False)
        return [RenderedFile(library_file_name(bundle), content)]
