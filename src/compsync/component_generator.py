"""React component generator.

Emits the component definition (JavaScript with PropTypes, or TypeScript
with a props interface) plus, depending on options, an index re-export, a
catalog story, a smoke test, and the companion stylesheet.
"""

import json
from typing import Any

from compsync.bundle_schema import BundleFieldSchema, FieldDefinition
from compsync.generation import GenerationOptions, RenderedFile
from compsync.manifest_schema import PropertyType
from compsync.naming import (
    base_class,
    component_class_name,
    element_class,
    modifier_class,
    property_element,
    slot_element,
)
from compsync.stylesheet_generator import render_stylesheet, stylesheet_file_name
from compsync.type_mapper import entry_name, field_type_to_property_type, format_default, item_type

HEADING_NAMES = frozenset({"title", "heading"})

PROP_TYPES = {
    PropertyType.STRING: "PropTypes.string",
    PropertyType.NUMBER: "PropTypes.number",
    PropertyType.BOOLEAN: "PropTypes.bool",
    PropertyType.OBJECT: "PropTypes.object",
}

TS_TYPES = {
    PropertyType.STRING: "string",
    PropertyType.NUMBER: "number",
    PropertyType.BOOLEAN: "boolean",
    PropertyType.OBJECT: "Record<string, unknown>",
}


def _prop_type(definition: FieldDefinition) -> PropertyType:
    return field_type_to_property_type(definition.type, definition.cardinality)


def _js_literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True)


def _default(definition: FieldDefinition) -> Any:
    return format_default(definition.default, _prop_type(definition))


def _proptype_expression(definition: FieldDefinition) -> str:
    tag = _prop_type(definition)
    if tag is PropertyType.ARRAY:
        expression = f"PropTypes.arrayOf({PROP_TYPES[item_type(definition.type)]})"
    elif definition.type == "link":
        expression = "PropTypes.shape({ uri: PropTypes.string, title: PropTypes.string })"
    else:
        expression = PROP_TYPES[tag]
    if definition.required:
        expression += ".isRequired"
    return expression


def _ts_type(definition: FieldDefinition) -> str:
    tag = _prop_type(definition)
    if tag is PropertyType.ARRAY:
        return f"{TS_TYPES[item_type(definition.type)]}[]"
    if definition.type == "link":
        return "{ uri: string; title?: string }"
    return TS_TYPES[tag]


def _class_attribute(classes: list[str], css_modules: bool) -> str:
    if not css_modules:
        return f'className="{" ".join(classes)}"'
    refs = [f"styles['{css}']" for css in classes]
    if len(refs) == 1:
        return f"className={{{refs[0]}}}"
    return "className={`" + " ".join(f"${{{ref}}}" for ref in refs) + "`}"


def _value_jsx(definition: FieldDefinition, name: str, css: str, css_modules: bool) -> str:
    tag = _prop_type(definition)
    attribute = _class_attribute([css], css_modules)
    if tag is PropertyType.ARRAY:
        return (
            f"<ul {attribute}>{{{name}.map((item, index) => "
            f"<li key={{index}}>{{String(item)}}</li>)}}</ul>"
        )
    if name in HEADING_NAMES and tag is PropertyType.STRING:
        return f"<h2 {attribute}>{{{name}}}</h2>"
    if definition.type == "link":
        return f"<div {attribute}><a href={{{name}.uri}}>{{{name}.title}}</a></div>"
    if tag is PropertyType.BOOLEAN:
        return f"<div {_class_attribute([css, modifier_class(css, 'active')], css_modules)} />"
    if tag is PropertyType.OBJECT:
        return f"<div {attribute}>{{JSON.stringify({name})}}</div>"
    return f"<div {attribute}>{{{name}}}</div>"


def _guard(definition: FieldDefinition, name: str) -> str:
    if _prop_type(definition) is PropertyType.NUMBER:
        return f"{name} != null"
    return name


def _slots_required(bundle: BundleFieldSchema) -> bool:
    return any(d.required for d in bundle.slot_fields())


def _parameters(bundle: BundleFieldSchema) -> list[str]:
    params = []
    for definition in bundle.property_fields():
        name = entry_name(definition)
        default = _default(definition)
        params.append(name if default is None else f"{name} = {_js_literal(default)}")
    # A required slot makes the slots object itself required, so it gets no default
    params.append("slots" if _slots_required(bundle) else "slots = {}")
    params += ["className = ''", "children"]
    return params


def _body(bundle: BundleFieldSchema, options: GenerationOptions, base: str) -> list[str]:
    style = options.naming_style
    css_modules = options.css_modules
    lines = [
        "  const rootClass = `${baseClass} ${className}`.trim();",
        "",
        "  return (",
        "    <div className={rootClass}>",
    ]
    for definition in bundle.property_fields():
        name = entry_name(definition)
        css = element_class(base, property_element(name), style)
        lines.append(f"      {{{_guard(definition, name)} && (")
        lines.append(f"        {_value_jsx(definition, name, css, css_modules)}")
        lines.append("      )}")
    for definition in bundle.slot_fields():
        name = entry_name(definition)
        css = element_class(base, slot_element(name), style)
        lines.append(f"      {{slots.{name} && (")
        lines.append(f"        <div {_class_attribute([css], css_modules)}>{{slots.{name}}}</div>")
        lines.append("      )}")
    lines += [
        "      {children}",
        "    </div>",
        "  );",
        "};",
    ]
    return lines


def render_component(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render the main component file."""
    component = component_class_name(bundle.id)
    base = base_class(bundle.id, options.naming_style)
    typed = options.typed_output
    slots_required = _slots_required(bundle)

    lines: list[str] = []
    if options.include_debug_comments:
        lines += ["/**", f" * {bundle.label} component.", " *"]
        if bundle.description:
            lines += [f" * {bundle.description}", " *"]
        lines += [" * Scaffolded from the bundle field schema; edit freely.", " */"]

    if typed:
        lines.append("import React, { FC, ReactNode } from 'react';")
    else:
        lines.append("import React from 'react';")
        lines.append("import PropTypes from 'prop-types';")
    stylesheet = stylesheet_file_name(bundle, options.css_modules)
    if options.css_modules:
        lines.append(f"import styles from './{stylesheet}';")
    else:
        lines.append(f"import './{stylesheet}';")
    lines.append("")

    if typed:
        lines.append(f"export interface {component}Props {{")
        for definition in bundle.property_fields():
            optional = "" if definition.required else "?"
            lines.append(f"  {entry_name(definition)}{optional}: {_ts_type(definition)};")
        slot_fields = bundle.slot_fields()
        if slot_fields:
            lines.append("  slots: {" if slots_required else "  slots?: {")
            for definition in slot_fields:
                optional = "" if definition.required else "?"
                lines.append(f"    {entry_name(definition)}{optional}: ReactNode;")
            lines.append("  };")
        else:
            lines.append("  slots?: Record<string, ReactNode>;")
        lines += ["  className?: string;", "  children?: ReactNode;", "}", ""]

    if options.css_modules:
        lines.append(f"const baseClass = styles['{base}'];")
    else:
        lines.append(f"const baseClass = '{base}';")
    lines.append("")

    signature = f"const {component}: FC<{component}Props> = ({{" if typed else f"const {component} = ({{"
    lines.append(signature)
    lines += [f"  {param}," for param in _parameters(bundle)]
    lines.append("}) => {")
    lines += _body(bundle, options, base)
    lines.append("")

    if not typed:
        lines.append(f"{component}.propTypes = {{")
        for definition in bundle.property_fields():
            lines.append(f"  {entry_name(definition)}: {_proptype_expression(definition)},")
        slot_fields = bundle.slot_fields()
        if slot_fields:
            lines.append("  slots: PropTypes.shape({")
            for definition in slot_fields:
                required = ".isRequired" if definition.required else ""
                lines.append(f"    {entry_name(definition)}: PropTypes.node{required},")
            lines.append("  }).isRequired," if slots_required else "  }),")
        else:
            lines.append("  slots: PropTypes.object,")
        lines += ["  className: PropTypes.string,", "  children: PropTypes.node,", "};", ""]

    lines.append(f"export default {component};")
    return "\n".join(lines) + "\n"


def render_index(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render the index re-export file."""
    component = component_class_name(bundle.id)
    lines = [f"export {{ default }} from './{component}';"]
    if options.typed_output:
        lines.append(f"export type {{ {component}Props }} from './{component}';")
    return "\n".join(lines) + "\n"


def sample_value(definition: FieldDefinition) -> Any:
    """Example value for stories and tests: the default, else a typed placeholder."""
    default = _default(definition)
    if default is not None:
        return default
    match _prop_type(definition):
        case PropertyType.STRING:
            return definition.label
        case PropertyType.NUMBER:
            return 1
        case PropertyType.BOOLEAN:
            return True
        case PropertyType.ARRAY:
            return []
        case _:
            return {}


def _sample_slots(bundle: BundleFieldSchema) -> dict[str, str]:
    return {entry_name(d): d.label for d in bundle.slot_fields() if d.required}


def render_story(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render a catalog story with one example per property."""
    component = component_class_name(bundle.id)
    typed = options.typed_output

    lines = []
    if typed:
        lines.append("import type { Meta, StoryObj } from '@storybook/react';")
    lines += [f"import {component} from './{component}';", ""]

    meta_type = f": Meta<typeof {component}>" if typed else ""
    lines += [
        f"const meta{meta_type} = {{",
        f"  title: {_js_literal('Components/' + bundle.label)},",
        f"  component: {component},",
        "};",
        "",
        "export default meta;",
        "",
    ]
    if typed:
        lines += [f"type Story = StoryObj<typeof {component}>;", ""]

    story_type = ": Story" if typed else ""
    lines.append(f"export const Default{story_type} = {{")
    lines.append("  args: {")
    for definition in bundle.property_fields():
        lines.append(f"    {entry_name(definition)}: {_js_literal(sample_value(definition))},")
    if _slots_required(bundle):
        lines.append(f"    slots: {_js_literal(_sample_slots(bundle))},")
    lines.append("  },")
    lines.append("};")
    return "\n".join(lines) + "\n"


def render_test(bundle: BundleFieldSchema, options: GenerationOptions) -> str:
    """Render a minimal smoke test for the component."""
    component = component_class_name(bundle.id)
    required = [
        f"{entry_name(d)}={{{_js_literal(sample_value(d))}}}" for d in bundle.property_fields() if d.required
    ]
    if _slots_required(bundle):
        required.append(f"slots={{{_js_literal(_sample_slots(bundle))}}}")
    props = " ".join(required)
    element = f"<{component} {props} />" if props else f"<{component} />"
    text_prop = next(
        (
            d
            for d in bundle.property_fields()
            if _prop_type(d) is PropertyType.STRING and d.type not in ("uri", "email", "datetime")
        ),
        None,
    )

    lines = [
        "import React from 'react';",
        "import { render, screen } from '@testing-library/react';",
        "import '@testing-library/jest-dom';",
        f"import {component} from './{component}';",
        "",
        f"describe('{component}', () => {{",
        "  it('renders without crashing', () => {",
        f"    render({element});",
        "  });",
        "",
        "  it('applies custom className', () => {",
        f"    const {{ container }} = render({element[:-2]}className=\"custom-class\" />);",
        "    expect(container.firstChild).toHaveClass('custom-class');",
        "  });",
    ]
    if text_prop is not None:
        name = entry_name(text_prop)
        others = [p for p in required if not p.startswith(f"{name}=")]
        attributes = " ".join([*others, f'{name}="Test value"'])
        lines += [
            "",
            f"  it('displays {name} when provided', () => {{",
            f"    render(<{component} {attributes} />);",
            "    expect(screen.getByText('Test value')).toBeInTheDocument();",
            "  });",
        ]
    lines.append("});")
    return "\n".join(lines) + "\n"


class ComponentGenerator:
    """Scaffolds the React component and its companion files."""

    name = "component"
    owned = False

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        return bundle.rendering.react_enabled

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        component = component_class_name(bundle.id)
        ext = "tsx" if options.typed_output else "jsx"

        files = [RenderedFile(f"{component}.{ext}", render_component(bundle, options))]
        if options.with_index:
            index_ext = "ts" if options.typed_output else "js"
            files.append(RenderedFile(f"index.{index_ext}", render_index(bundle, options)))
        if options.with_story:
            files.append(RenderedFile(f"{component}.stories.{ext}", render_story(bundle, options)))
        if options.test_file_requested:
            files.append(RenderedFile(f"{component}.test.{ext}", render_test(bundle, options)))
        # Nothing else writes the module stylesheet the component imports
        if options.companion_stylesheet or options.css_modules:
            stylesheet = stylesheet_file_name(bundle, options.css_modules)
            files.append(RenderedFile(stylesheet, render_stylesheet(bundle, options)))
        return files
