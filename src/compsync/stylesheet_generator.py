"""Stylesheet generator: one rule for the root and one per field or slot."""

from compsync.bundle_schema import BundleFieldSchema
from compsync.generation import GenerationOptions, RenderedFile
from compsync.naming import base_class, element_class, property_element, slot_element
from compsync.type_mapper import entry_name

HEADING_NAMES = frozenset({"title", "heading"})


def stylesheet_file_name(bundle: BundleFieldSchema, css_modules: bool = False) -> str:
    """File name of the bundle's stylesheet, or of its CSS module."""
    suffix = ".module.css" if css_modules else ".css"
    return f"{bundle.component_name}{suffix}"


def _rule(selector: str, declarations: list[str]) -> str:
    body = "".join(f"  {line}\n" for line in declarations)
    return f".{selector} {{\n{body}}}\n"


def render_stylesheet(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render the stylesheet for ``bundle``."""
    style = options.naming_style
    debug = options.include_debug_comments
    base = base_class(bundle.id, style)

    rules: list[str] = []
    root = ["position: relative;", "padding: 1rem;"]
    if debug:
        root.insert(0, "/* Container styles */")
    rules.append(_rule(base, root))

    for definition in bundle.property_fields():
        name = entry_name(definition)
        if name in HEADING_NAMES:
            declarations = ["font-size: 2rem;", "font-weight: bold;", "margin-bottom: 1rem;"]
        else:
            declarations = ["margin-bottom: 0.5rem;"]
            if debug:
                declarations.insert(0, f"/* Styles for {definition.label} */")
        rules.append(_rule(element_class(base, property_element(name), style), declarations))

    for definition in bundle.slot_fields():
        declarations = ["display: block;"]
        if debug:
            declarations.insert(0, f"/* Slot: {definition.label} */")
        rules.append(_rule(element_class(base, slot_element(entry_name(definition)), style), declarations))

    header = f"/**\n * Styles for the {bundle.label} component.\n */\n\n" if debug else ""
    return header + "\n".join(rules)


class StylesheetGenerator:
    """Scaffolds ``<component>.css``."""

    name = "stylesheet"
    owned = False

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        return True

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        return [RenderedFile(stylesheet_file_name(bundle), render_stylesheet(bundle, options))]
