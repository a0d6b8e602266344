"""Shared fragments for composition (page-builder) content.

``FragmentGenerator`` discovers component types, drops conflicting fields
and assembles the ``AllComponents`` fragment; ``FragmentCache`` keeps the
rendered text and refuses entries that contain superseded projection syntax.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from graphql.language.ast import FieldNode, InlineFragmentNode, SelectionNode

from cmsgraph.graph.cache import CacheStore, with_cache
from cmsgraph.graph.classifier import project_field
from cmsgraph.graph.conflicts import detect_field_conflicts
from cmsgraph.graph.document import (
    field,
    field_names,
    fragment_definition,
    fragment_spread,
    inline_fragment,
    render,
    validate,
)
from cmsgraph.graph.introspector import SchemaIntrospector
from cmsgraph.graph.types import GeneratedFragment, TypeDescriptor

logger = logging.getLogger(__name__)

ALL_COMPONENTS = "AllComponents"
COMPONENT_INTERFACE = "_IComponent"
COMMON_COMPONENT_NAMES = (
    "Hero", "Paragraph", "Text", "Divider", "Card",
    "Image", "Video", "Button", "Link", "List",
    "Accordion", "Carousel", "Gallery", "Form",
    "Quote", "Callout", "Banner", "Spacer",
)
# Matched against the cached text with whitespace collapsed to single spaces.
STALE_PATTERNS = (
    "on IContent {",
    "{ key url }",
    "{ url { base hierarchical } }",
    "{ href }",
)

STRUCTURE_NODE_FALLBACK = "CompositionStructureNode"
COMPONENT_NODE_FALLBACK = "CompositionComponentNode"
MAX_COMPOSITION_DEPTH = 3
# Alias given to each structural level's child list, outermost first.
LEVEL_ALIASES = ("grids", "rows", "columns", "elements")


def level_alias(depth: int) -> str:
    if depth < len(LEVEL_ALIASES):
        return LEVEL_ALIASES[depth]
    return f"level{depth}"


class FragmentCache:
    """Fragment text keyed by name, on top of a ``CacheStore``."""

    def __init__(self, cache: CacheStore, ttl_seconds: float | None = None):
        self._cache = cache
        self._ttl = ttl_seconds

    @staticmethod
    def _key(name: str) -> str:
        return f"fragment:{name}"

    def get(self, key: str) -> str | None:
        content = self._cache.get(self._key(key))
        if content is None:
            return None
        flat = " ".join(content.split())
        stale = [p for p in STALE_PATTERNS if p in flat]
        if stale:
            logger.info("Discarding cached fragment %s with stale syntax %s", key, stale)
            return None
        return content

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self._cache.set(self._key(key), value, ttl_seconds if ttl_seconds is not None else self._ttl)


class FragmentGenerator:
    def __init__(self, introspector: SchemaIntrospector, cache: FragmentCache | None = None):
        self._introspector = introspector
        self._cache = cache

    async def discover_component_types(self) -> list[str]:
        """Types implementing ``_IComponent``, else common component names present in the schema."""
        found = await self._introspector.get_types_implementing(COMPONENT_INTERFACE)
        if found:
            logger.info("Found %d component types via %s", len(found), COMPONENT_INTERFACE)
            return found

        logger.warning("No types implement %s, trying common component names", COMPONENT_INTERFACE)
        common: list[str] = []
        for name in COMMON_COMPONENT_NAMES:
            info = await self._introspector.get_content_type(name)
            if info is not None and info.fields:
                common.append(name)
        logger.info("Discovered %d common component types", len(common))
        return common

    async def generate_component_fragment(
        self, type_name: str, conflicts: set[str] | None = None
    ) -> InlineFragmentNode | None:
        info = await self._introspector.get_content_type(type_name)
        if info is None:
            logger.warning("No type info found for component %s", type_name)
            return None
        conflicts = conflicts or set()
        children: list[SelectionNode] = []
        for f in info.fields:
            if f.name in conflicts:
                continue
            selection = project_field(f)
            if selection is not None:
                children.append(selection)
        if not children:
            logger.debug("No queryable fields for component %s", type_name)
            return None
        return inline_fragment(type_name, children)

    async def generate_all_components_fragment(self) -> GeneratedFragment:
        component_types = await self.discover_component_types()
        conflicts = detect_field_conflicts(component_types, self._introspector)

        children: list[SelectionNode] = [
            field("_metadata", field_names("key", "displayName", "types")),
            field("__typename", alias="_type"),
        ]
        for type_name in component_types:
            inline = await self.generate_component_fragment(type_name, conflicts)
            if inline is not None:
                children.append(inline)
        if len(children) == 2:
            logger.warning("No component fragments generated")

        content = validate(render(fragment_definition(ALL_COMPONENTS, COMPONENT_INTERFACE, children)))
        return GeneratedFragment(
            name=ALL_COMPONENTS,
            content=content,
            component_types=component_types,
            conflicts=sorted(conflicts),
            generated_at=time.time(),
        )

    async def get_all_components_fragment(self) -> str:
        """Rendered ``AllComponents`` text, from cache when a fresh copy exists."""

        async def generate() -> str:
            return (await self.generate_all_components_fragment()).content

        if self._cache is None:
            return await generate()
        return await with_cache(self._cache, ALL_COMPONENTS, generate)


# -- Composition structure ----------------------------------------------------


def _find_node_type(introspector: SchemaIntrospector, role: str, fallback: str) -> str:
    if introspector.get_type(fallback) is not None:
        return fallback
    for name in introspector.type_names():
        lower = name.lower()
        if "composition" in lower and role in lower and lower.endswith("node"):
            return name
    return fallback


def _declared(t: TypeDescriptor | None, *names: str) -> list[SelectionNode]:
    """Select those of *names* the type declares, or all of them if the type is unknown."""
    if t is None:
        return field_names(*names)
    return field_names(*[n for n in names if t.field(n) is not None])


def build_composition_selection(
    field_name: str,
    introspector: SchemaIntrospector,
    max_depth: int = MAX_COMPOSITION_DEPTH,
) -> FieldNode:
    """Nested grid/row/column selection under a composition field.

    Each level selects structure nodes (recursing until *max_depth*) and
    component nodes, whose ``component`` spreads ``...AllComponents``.
    Levels past ``LEVEL_ALIASES`` are aliased ``level<depth>``.
    """
    structure_name = _find_node_type(introspector, "structure", STRUCTURE_NODE_FALLBACK)
    component_name = _find_node_type(introspector, "component", COMPONENT_NODE_FALLBACK)
    structure = introspector.get_type(structure_name)
    component = introspector.get_type(component_name)

    def component_node() -> InlineFragmentNode:
        return inline_fragment(
            component_name,
            _declared(component, "key", "displayName") + [field("component", [fragment_spread(ALL_COMPONENTS)])],
        )

    def level(depth: int) -> FieldNode:
        children: list[SelectionNode] = []
        if depth < max_depth:
            children.append(
                inline_fragment(
                    structure_name,
                    _declared(structure, "key", "nodeType", "displayName") + [level(depth + 1)],
                )
            )
        children.append(component_node())
        return field("nodes", children, alias=level_alias(depth))

    return field(field_name, _declared(structure, "key", "nodeType") + [level(0)])
