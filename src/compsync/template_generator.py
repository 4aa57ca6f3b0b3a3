"""Twig server template generator.

Emits one presence-guarded block per property field and one overridable
``{% block %}`` per slot, using the same class names as the stylesheet and
component generators.
"""

from compsync.bundle_schema import BundleFieldSchema, FieldDefinition
from compsync.generation import GenerationOptions, RenderedFile
from compsync.naming import (
    NamingStyle,
    base_class,
    element_class,
    modifier_class,
    property_element,
    slot_element,
)
from compsync.type_mapper import entry_name

INDENT = "  "

HEADING_NAMES = frozenset({"title", "heading"})
RICH_TEXT_TYPES = frozenset({"text", "text_long", "text_with_summary"})
OPTION_TYPES = frozenset({"list_string", "list_integer", "list_float"})


def template_file_name(bundle: BundleFieldSchema) -> str:
    """File name of the bundle's server template."""
    return f"{bundle.component_name}.html.twig"


def _value_markup(definition: FieldDefinition, variable: str, css: str) -> list[str]:
    name = entry_name(definition)
    field_type = definition.type

    if name in HEADING_NAMES and field_type in ("string", "string_long"):
        return [f"<h2{{{{ title_attributes.addClass('{css}') }}}}>{{{{ {variable} }}}}</h2>"]
    if field_type in RICH_TEXT_TYPES:
        return [f'<div class="{css}">', f"{INDENT}{{{{ {variable}|raw }}}}", "</div>"]
    if field_type == "link":
        return [
            f'<div class="{css}">',
            f'{INDENT}<a href="{{{{ {variable}.uri }}}}">{{{{ {variable}.title }}}}</a>',
            "</div>",
        ]
    if field_type == "boolean":
        return [f'<div class="{css} {modifier_class(css, "active")}"></div>']
    if field_type in OPTION_TYPES:
        modifier = modifier_class(css, f"{{{{ {variable}|clean_class }}}}")
        return [f'<div class="{css} {modifier}">{{{{ {variable} }}}}</div>']
    return [f'<div class="{css}">{{{{ {variable} }}}}</div>']


def _field_block(definition: FieldDefinition, base: str, style: NamingStyle) -> list[str]:
    variable = entry_name(definition)
    css = element_class(base, property_element(variable), style)
    lines = [f"{{% if {variable} %}}"]
    if definition.multiple:
        lines.append(f'{INDENT}<div class="{css}">')
        lines.append(f"{INDENT * 2}{{% for item in {variable} %}}")
        item_css = modifier_class(css, "item")
        lines.extend(f"{INDENT * 3}{line}" for line in _value_markup(definition, "item", item_css))
        lines.append(f"{INDENT * 2}{{% endfor %}}")
        lines.append(f"{INDENT}</div>")
    else:
        lines.extend(f"{INDENT}{line}" for line in _value_markup(definition, variable, css))
    lines.append("{% endif %}")
    return lines


def _slot_block(definition: FieldDefinition, base: str, style: NamingStyle, debug: bool) -> list[str]:
    name = entry_name(definition)
    css = element_class(base, slot_element(name), style)
    lines = [f"{{# Slot: {definition.label} #}}"] if debug else []
    lines += [
        f"{{% block {name} %}}",
        f"{INDENT}{{% if slots.{name} %}}",
        f'{INDENT * 2}<div class="{css}">',
        f"{INDENT * 3}{{{{ slots.{name} }}}}",
        f"{INDENT * 2}</div>",
        f"{INDENT}{{% endif %}}",
        "{% endblock %}",
    ]
    return lines


def _header(bundle: BundleFieldSchema) -> list[str]:
    lines = [
        "{#",
        "/**",
        " * @file",
        f" * Template for the {bundle.label} component.",
        " *",
        " * Available variables:",
    ]
    for definition in bundle.property_fields():
        lines.append(f" * - {entry_name(definition)}: {definition.label}")
    for definition in bundle.slot_fields():
        lines.append(f" * - slots.{entry_name(definition)}: {definition.label}")
    lines += [
        " * - attributes: HTML attributes for the container element.",
        " * - title_attributes: HTML attributes for the title.",
        " */",
        "#}",
    ]
    return lines


def render_template(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render the Twig template for ``bundle``."""
    style = options.naming_style
    base = base_class(bundle.id, style)
    debug = options.include_debug_comments

    lines: list[str] = []
    if debug:
        lines += _header(bundle)
        lines.append("")

    lines.append(f"{{% set classes = ['{base}'] %}}")
    lines.append("<div{{ attributes.addClass(classes) }}>")

    blocks = [_field_block(d, base, style) for d in bundle.property_fields()]
    blocks += [_slot_block(d, base, style, debug) for d in bundle.slot_fields()]
    for index, block in enumerate(blocks):
        if index:
            lines.append("")
        lines.extend(f"{INDENT}{line}" for line in block)

    lines.append("</div>")
    if debug:
        lines.append(f"{{# End of {bundle.label} component #}}")
    return "\n".join(lines) + "\n"


class TemplateGenerator:
    """Scaffolds ``<component>.html.twig``."""

    name = "template"
    owned = False

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        return bundle.rendering.twig_enabled or not bundle.rendering.react_enabled

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        return [RenderedFile(template_file_name(bundle), render_template(bundle, options))]
