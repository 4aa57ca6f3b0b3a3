"""Tests for the artifact generators and the generator registry."""

from pathlib import Path

import pytest
import yaml

from compsync.artifact_validation import check_braces, check_component, check_twig_tags
from compsync.bundle_schema import RenderingConfiguration
from compsync.component_generator import ComponentGenerator, render_component, render_story, render_test
from compsync.generation import GenerationOptions, GeneratorRegistry, RenderedFile, default_registry
from compsync.library_generator import LibraryGenerator, build_library
from compsync.manifest_generator import MANIFEST_SCHEMA_URL, ManifestGenerator, build_manifest
from compsync.manifest_schema import PropertyType, RenderMode
from compsync.manifest_store import parse_manifest
from compsync.naming import NamingStyle
from compsync.stylesheet_generator import StylesheetGenerator, render_stylesheet
from compsync.template_generator import TemplateGenerator, render_template
from tests.conftest import make_bundle, make_field, react_rendering


def rich_bundle(**overrides):
    """A bundle exercising every kind of value markup."""
    return make_bundle(
        "hero_banner",
        fields=[
            make_field("field_title", "string", label="Title", required=True),
            make_field("field_body", "text_long", label="Body"),
            make_field("field_cta", "link", label="Call to action"),
            make_field("field_featured", "boolean", label="Featured", default=True),
            make_field("field_size", "list_string", label="Size", settings={"allowed_values": ["sm", "lg"]}),
            make_field("field_count", "integer", label="Count", default="3"),
            make_field("field_tags", "string", label="Tags", cardinality=-1),
            make_field("slot_footer", "text_long", label="Footer", is_slot=True),
        ],
        label="Hero banner",
        **overrides,
    )


class TestRegistry:
    """Tests for GeneratorRegistry."""

    def test_default_registry_order(self) -> None:
        """Verify the built-in generators are registered in a fixed order."""
        # When
        registry = default_registry()

        # Then
        assert registry.names() == ["manifest", "template", "stylesheet", "component", "library"]

    def test_duplicate_registration_is_rejected(self) -> None:
        """Verify two generators cannot share a name."""
        # Given
        registry = GeneratorRegistry()
        registry.register(TemplateGenerator())

        # When/Then
        with pytest.raises(ValueError, match="already registered"):
            registry.register(TemplateGenerator())

    def test_unknown_generator(self) -> None:
        """Verify an unknown name lists the available ones."""
        # Given
        registry = default_registry()

        # When/Then
        with pytest.raises(KeyError, match="available: manifest"):
            registry.get("sass")

    def test_select_by_name(self) -> None:
        """Verify select() keeps the requested order."""
        # Given
        registry = default_registry()

        # When
        selected = registry.select(["library", "template"])

        # Then
        assert [g.name for g in selected] == ["library", "template"]
        assert "template" in registry
        assert "sass" not in registry

    @pytest.mark.parametrize(
        ("twig", "react", "expected"),
        [
            pytest.param(True, False, {"manifest", "template", "stylesheet"}, id="server-only"),
            pytest.param(True, True, {"manifest", "template", "stylesheet", "component", "library"}, id="both"),
            pytest.param(False, True, {"manifest", "stylesheet", "component", "library"}, id="client-only"),
        ],
    )
    def test_applicability_follows_rendering(self, twig: bool, react: bool, expected: set[str]) -> None:
        """Verify generators apply according to the rendering modes."""
        # Given
        bundle = make_bundle(rendering=RenderingConfiguration(twig_enabled=twig, react_enabled=react))
        options = GenerationOptions()

        # When
        applicable = {g.name for g in default_registry().select() if g.is_applicable(bundle, options)}

        # Then
        assert applicable == expected


class TestManifestGenerator:
    """Tests for building a manifest from a bundle."""

    def test_scenario_props_and_slots(self) -> None:
        """Verify a required string and a slot come back as declared."""
        # Given
        bundle = make_bundle()

        # When
        manifest = build_manifest(bundle)

        # Then
        assert manifest.props["title"].type is PropertyType.STRING
        assert manifest.props["title"].required is True
        assert "footer" in manifest.slots
        assert manifest.schema_ref == MANIFEST_SCHEMA_URL
        assert manifest.metadata == {"bundle": "card", "auto_generated": True}

    def test_entry_name_clash_keeps_full_field_name(self) -> None:
        """Verify two fields mapping to one name stay distinct."""
        # Given
        bundle = make_bundle(
            fields=[
                make_field("field_title"),
                make_field("field_headline", source_name="title"),
            ]
        )

        # When
        manifest = build_manifest(bundle)

        # Then
        assert list(manifest.props) == ["title", "field_headline"]

    def test_array_field(self) -> None:
        """Verify a multi-valued field becomes an array property."""
        # Given
        bundle = make_bundle(fields=[make_field("field_tags", "integer", cardinality=3)])

        # When
        prop = build_manifest(bundle).props["tags"]

        # Then
        assert prop.type is PropertyType.ARRAY
        assert prop.items is PropertyType.NUMBER
        assert prop.max_items == 3

    def test_client_only_rendering(self) -> None:
        """Verify rendering capabilities mirror the bundle."""
        # Given
        bundle = make_bundle(rendering=RenderingConfiguration(twig_enabled=False, react_enabled=True))

        # When
        rendering = build_manifest(bundle).rendering

        # Then
        assert rendering.server_side is False
        assert rendering.client_side is True
        assert rendering.default is RenderMode.CLIENT

    def test_rendered_file_parses(self) -> None:
        """Verify the generated YAML is a valid manifest named after the component."""
        # Given
        bundle = make_bundle(component_id="card-teaser")

        # When
        [rendered] = ManifestGenerator().render(bundle, GenerationOptions())
        manifest = parse_manifest(rendered.content, Path(rendered.relative_path))

        # Then
        assert rendered.relative_path == "card-teaser.component.yml"
        assert manifest.id == "card-teaser"
        assert manifest.name == "Card"

    def test_output_is_deterministic(self) -> None:
        """Verify rendering twice gives identical bytes."""
        # Given
        bundle = rich_bundle()

        # When
        first = ManifestGenerator().render(bundle, GenerationOptions())
        second = ManifestGenerator().render(bundle, GenerationOptions())

        # Then
        assert first == second


class TestTemplateGenerator:
    """Tests for the Twig template."""

    def test_fields_and_slots(self) -> None:
        """Verify each field is guarded and each slot is an overridable block."""
        # When
        template = render_template(make_bundle(), GenerationOptions())

        # Then
        assert "{% set classes = ['c-card'] %}" in template
        assert "{% if title %}" in template
        assert "<h2{{ title_attributes.addClass('c-card__title') }}>{{ title }}</h2>" in template
        assert "{% block footer %}" in template
        assert "{{ slots.footer }}" in template
        assert 'class="c-card__slot-footer"' in template

    def test_value_markup_by_type(self) -> None:
        """Verify rich text, links, booleans, lists and multi-value fields."""
        # When
        template = render_template(rich_bundle(), GenerationOptions())

        # Then
        assert "{{ body|raw }}" in template
        assert '<a href="{{ cta.uri }}">{{ cta.title }}</a>' in template
        assert "c-hero-banner__featured--active" in template
        assert "c-hero-banner__size--{{ size|clean_class }}" in template
        assert "{% for item in tags %}" in template
        assert 'class="c-hero-banner__tags--item"' in template

    def test_tags_are_balanced(self) -> None:
        """Verify the generated template passes its own structural check."""
        # When
        template = render_template(rich_bundle(), GenerationOptions())

        # Then
        assert check_twig_tags(template) == []

    def test_debug_comments_toggle(self) -> None:
        """Verify the documentation header follows include_debug_comments."""
        # When
        with_comments = render_template(make_bundle(), GenerationOptions())
        without = render_template(make_bundle(), GenerationOptions(include_debug_comments=False))

        # Then
        assert "Available variables" in with_comments
        assert "{#" not in without

    def test_naming_style(self) -> None:
        """Verify the naming style changes the class names."""
        # When
        template = render_template(make_bundle(), GenerationOptions(naming_style=NamingStyle.MINIMAL))

        # Then
        assert "{% set classes = ['card'] %}" in template
        assert "card-title" in template

    def test_file_name(self) -> None:
        """Verify the template is named after the component."""
        # When
        [rendered] = TemplateGenerator().render(make_bundle(), GenerationOptions())

        # Then
        assert rendered.relative_path == "card.html.twig"


class TestStylesheetGenerator:
    """Tests for the stylesheet."""

    def test_rules_share_template_classes(self) -> None:
        """Verify the stylesheet targets the template's class names."""
        # When
        css = render_stylesheet(make_bundle(), GenerationOptions())

        # Then
        assert ".c-card {" in css
        assert ".c-card__title {" in css
        assert "font-weight: bold;" in css
        assert ".c-card__slot-footer {" in css
        assert check_braces(css) == []

    def test_file_name(self) -> None:
        """Verify the stylesheet is named after the component."""
        # When
        [rendered] = StylesheetGenerator().render(make_bundle(), GenerationOptions())

        # Then
        assert rendered == RenderedFile("card.css", render_stylesheet(make_bundle(), GenerationOptions()))


class TestComponentGenerator:
    """Tests for the React component and its companions."""

    def test_javascript_component(self) -> None:
        """Verify a JS component with PropTypes and a default export."""
        # When
        source = render_component(rich_bundle(), GenerationOptions())

        # Then
        assert "import PropTypes from 'prop-types';" in source
        assert "import './hero_banner.css';" in source
        assert "const HeroBanner = ({" in source
        assert "  title: PropTypes.string.isRequired," in source
        assert "  tags: PropTypes.arrayOf(PropTypes.string)," in source
        assert "  featured = true," in source
        assert "  count = 3," in source
        assert "{count != null && (" in source
        assert "export default HeroBanner;" in source
        assert check_component(source) == []

    def test_typescript_component(self) -> None:
        """Verify a TS component declares a props interface."""
        # When
        source = render_component(rich_bundle(), GenerationOptions(typed_output=True))

        # Then
        assert "export interface HeroBannerProps {" in source
        assert "  title: string;" in source
        assert "  count?: number;" in source
        assert "  tags?: string[];" in source
        assert "    footer?: ReactNode;" in source
        assert "PropTypes" not in source
        assert check_component(source) == []

    def test_files_follow_options(self) -> None:
        """Verify index, story, test and stylesheet files are optional."""
        # Given
        bundle = make_bundle(rendering=react_rendering())
        generator = ComponentGenerator()

        # When
        minimal = generator.render(bundle, GenerationOptions(with_index=False, with_story=False))
        full = generator.render(
            bundle,
            GenerationOptions(typed_output=True, test_file_requested=True, companion_stylesheet=True),
        )

        # Then
        assert [f.relative_path for f in minimal] == ["Card.jsx"]
        assert [f.relative_path for f in full] == [
            "Card.tsx",
            "index.ts",
            "Card.stories.tsx",
            "Card.test.tsx",
            "card.css",
        ]

    def test_css_modules(self) -> None:
        """Verify a module-scoped component imports and emits its own stylesheet."""
        # Given
        bundle = rich_bundle(rendering=react_rendering())
        options = GenerationOptions(css_modules=True, with_index=False, with_story=False)

        # When
        files = ComponentGenerator().render(bundle, options)

        # Then
        assert [f.relative_path for f in files] == ["HeroBanner.jsx", "hero_banner.module.css"]
        source = files[0].content
        assert "import styles from './hero_banner.module.css';" in source
        assert "import './hero_banner.css';" not in source
        assert "const baseClass = styles['c-hero-banner'];" in source
        assert "<h2 className={styles['c-hero-banner__title']}>{title}</h2>" in source
        assert (
            "className={`${styles['c-hero-banner__featured']} ${styles['c-hero-banner__featured--active']}`}"
            in source
        )
        assert ".c-hero-banner__title {" in files[1].content
        assert check_component(source) == []

    @pytest.mark.parametrize("typed", [pytest.param(False, id="js"), pytest.param(True, id="ts")])
    def test_required_slot_makes_slots_required(self, typed: bool) -> None:
        """Verify a required slot drops the slots default and is supplied by the story and test."""
        # Given
        bundle = make_bundle(
            fields=[
                make_field("field_title", label="Title", required=True),
                make_field("slot_footer", "text_long", label="Footer", is_slot=True, required=True),
            ]
        )
        options = GenerationOptions(typed_output=typed)

        # When
        source = render_component(bundle, options)
        story = render_story(bundle, options)
        smoke_test = render_test(bundle, options)

        # Then
        assert "  slots,\n" in source
        assert "slots = {}" not in source
        if typed:
            assert "  slots: {" in source
            assert "    footer: ReactNode;" in source
        else:
            assert "  }).isRequired," in source
            assert "    footer: PropTypes.node.isRequired," in source
        assert '    slots: {"footer": "Footer"},' in story
        assert 'render(<Card title={"Title"} slots={{"footer": "Footer"}} />);' in smoke_test
        assert check_component(source) == []
        assert check_braces(smoke_test) == []

    def test_optional_slots_keep_default(self) -> None:
        """Verify optional slots leave the slots object optional."""
        # When
        source = render_component(make_bundle(), GenerationOptions(typed_output=True))

        # Then
        assert "  slots = {}," in source
        assert "  slots?: {" in source

    def test_story_and_test_are_balanced(self) -> None:
        """Verify the story and smoke test are well-formed."""
        # Given
        bundle = rich_bundle()

        # When
        story = render_story(bundle, GenerationOptions())
        smoke_test = render_test(bundle, GenerationOptions())

        # Then
        assert "export default meta;" in story
        assert '    title: "Title",' in story
        assert "render(<HeroBanner title={\"Title\"} />);" in smoke_test
        assert "displays title when provided" in smoke_test
        assert check_braces(story) == []
        assert check_braces(smoke_test) == []


class TestLibraryGenerator:
    """Tests for the asset library file."""

    def test_library_lists_component_files(self) -> None:
        """Verify the library points at the component and stylesheet."""
        # Given
        bundle = make_bundle("hero_banner", component_id="hero-banner", rendering=react_rendering())

        # When
        library = build_library(bundle, GenerationOptions(typed_output=True))

        # Then
        entry = library["component.hero_banner"]
        assert entry["js"] == {"HeroBanner.tsx": {}}
        assert entry["css"] == {"component": {"hero-banner.css": {}}}
        assert entry["dependencies"] == ["core/react", "core/react-dom"]

    def test_library_points_at_module_stylesheet(self) -> None:
        """Verify CSS modules change the library's stylesheet entry."""
        # When
        library = build_library(make_bundle(rendering=react_rendering()), GenerationOptions(css_modules=True))

        # Then
        assert library["component.card"]["css"] == {"component": {"card.module.css": {}}}

    def test_rendered_library_is_yaml(self) -> None:
        """Verify the rendered file parses back to the same mapping."""
        # Given
        bundle = make_bundle(rendering=react_rendering())

        # When
        [rendered] = LibraryGenerator().render(bundle, GenerationOptions())

        # Then
        assert rendered.relative_path == "card.libraries.yml"
        assert yaml.safe_load(rendered.content) == build_library(bundle, GenerationOptions())
