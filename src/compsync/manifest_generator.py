"""Reverse direction: build a component manifest from a bundle."""

from compsync.bundle_schema import BundleFieldSchema
from compsync.generation import GenerationOptions, RenderedFile
from compsync.manifest_schema import (
    MANIFEST_SUFFIX,
    ComponentManifest,
    PropertySchema,
    RenderingCapabilities,
    RenderMode,
    SlotSchema,
)
from compsync.manifest_store import serialize_manifest
from compsync.type_mapper import entry_name, property_from_field, slot_from_field

# Schema URL written into generated manifests
MANIFEST_SCHEMA_URL = "https://drupal.org/schema/sdc/1.0"


def _rendering_from_bundle(bundle: BundleFieldSchema) -> RenderingCapabilities:
    config = bundle.rendering
    # A bundle with both modes switched off still renders server-side
    server_side = config.twig_enabled or not config.react_enabled
    default = config.default_method
    if default is RenderMode.CLIENT and not config.react_enabled:
        default = RenderMode.SERVER
    if default is RenderMode.SERVER and not server_side:
        default = RenderMode.CLIENT
    return RenderingCapabilities(
        server_side=server_side,
        client_side=config.react_enabled,
        default=default,
    )


def build_manifest(bundle: BundleFieldSchema) -> ComponentManifest:
    """Derive a manifest from a bundle's fields and rendering config.

    Property and slot names come from each field's recorded source name,
    else from its name minus the property/slot prefix. If two fields land
    on the same entry name, the later one keeps its full field name.
    """
    props: dict[str, PropertySchema] = {}
    for definition in bundle.property_fields():
        name = entry_name(definition)
        if name in props:
            name = definition.name
        props[name] = property_from_field(definition)

    slots: dict[str, SlotSchema] = {}
    for definition in bundle.slot_fields():
        name = entry_name(definition)
        if name in slots:
            name = definition.name
        slots[name] = slot_from_field(definition)

    return ComponentManifest(
        id=bundle.component_name,
        schema_ref=MANIFEST_SCHEMA_URL,
        name=bundle.label,
        description=bundle.description,
        status="stable",
        props=props,
        slots=slots,
        rendering=_rendering_from_bundle(bundle),
        metadata={"bundle": bundle.id, "auto_generated": True},
    )


class ManifestGenerator:
    """Writes ``<component>.component.yml`` from the bundle."""

    name = "manifest"
    owned = True

    def is_applicable(self, bundle: BundleFieldSchema, options: GenerationOptions) -> bool:
        return True

    def render(self, bundle: BundleFieldSchema, options: GenerationOptions) -> list[RenderedFile]:
        manifest = build_manifest(bundle)
        return [RenderedFile(f"{manifest.id}{MANIFEST_SUFFIX}", serialize_manifest(manifest))]
