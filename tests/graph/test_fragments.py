"""Tests for AllComponents fragment generation, caching and composition selections."""

from __future__ import annotations

from graphql import parse
import pytest

from cmsgraph.graph.cache import MemoryCache
from cmsgraph.graph.document import render_selection_set
from cmsgraph.graph.fragments import (
    ALL_COMPONENTS,
    FragmentCache,
    FragmentGenerator,
    build_composition_selection,
)
from cmsgraph.graph.introspector import SchemaIntrospector
from tests.conftest import FakeTransport, METADATA_FIELD, fld, object_type, schema_doc, squash


class TestDiscoverComponentTypes:
    @pytest.mark.asyncio
    async def test_uses_component_interface(self, fragment_generator: FragmentGenerator):
        assert await fragment_generator.discover_component_types() == ["Hero", "Paragraph"]

    @pytest.mark.asyncio
    async def test_falls_back_to_common_names(self):
        doc = schema_doc(
            [
                object_type("Hero", [fld("Heading", "String")]),
                object_type("Button", [fld("Label", "String")]),
                object_type("Spacer", []),
            ],
            [],
        )
        introspector = SchemaIntrospector(FakeTransport(schema=doc), MemoryCache())
        found = await FragmentGenerator(introspector).discover_component_types()
        assert found == ["Hero", "Button"]


class TestGenerateAllComponents:
    @pytest.mark.asyncio
    async def test_fragment_shape(self, fragment_generator: FragmentGenerator):
        fragment = await fragment_generator.generate_all_components_fragment()
        text = squash(fragment.content)
        parse(fragment.content)
        assert fragment.name == ALL_COMPONENTS
        assert fragment.component_types == ["Hero", "Paragraph"]
        assert text.startswith(
            squash("fragment AllComponents on _IComponent { _metadata { key displayName types } _type: __typename")
        )
        assert squash("... on Hero { Heading Background { url { default } } Cta { url { default } text } }") in text
        assert squash("... on Paragraph { Text { html json } }") in text
        assert "on IContent" not in text

    @pytest.mark.asyncio
    async def test_component_without_projectable_fields_is_skipped(self, cache: MemoryCache):
        doc = schema_doc(
            [
                object_type("Settings", [fld("theme", "String")]),
                object_type("Hero", [fld("Heading", "String")]),
                object_type("Divider", [fld("Style", "Settings")]),
            ],
            [],
        )
        introspector = SchemaIntrospector(FakeTransport(schema=doc), cache)
        fragment = await FragmentGenerator(introspector).generate_all_components_fragment()
        assert "... on Divider" not in fragment.content
        assert "... on Hero" in squash(fragment.content)


class TestFragmentCache:
    def test_round_trip(self, cache: MemoryCache):
        fragments = FragmentCache(cache)
        fragments.set("F", "fragment F on T { x }")
        assert fragments.get("F") == "fragment F on T { x }"

    @pytest.mark.parametrize(
        "stale",
        ["on IContent {", "{ key url }", "{ url { base hierarchical } }", "{ href }"],
    )
    def test_stale_patterns_are_discarded(self, cache: MemoryCache, stale: str):
        fragments = FragmentCache(cache)
        fragments.set("F", f"fragment F {stale} x }}")
        assert fragments.get("F") is None

    @pytest.mark.asyncio
    async def test_generator_uses_cached_fragment(self, fragment_generator: FragmentGenerator, cache: MemoryCache):
        first = await fragment_generator.get_all_components_fragment()
        cache.set("fragment:AllComponents", first + " ")
        assert await fragment_generator.get_all_components_fragment() == first + " "

    @pytest.mark.asyncio
    async def test_stale_cached_fragment_is_regenerated(self, fragment_generator: FragmentGenerator, cache: MemoryCache):
        cache.set("fragment:AllComponents", "fragment AllComponents on IContent { _metadata { key url } }")
        text = await fragment_generator.get_all_components_fragment()
        assert "on _IComponent" in text
        assert FragmentCache(cache).get(ALL_COMPONENTS) == text

    @pytest.mark.asyncio
    async def test_multiline_stale_fragment_is_regenerated(
        self, fragment_generator: FragmentGenerator, cache: MemoryCache
    ):
        cache.set(
            "fragment:AllComponents",
            "fragment AllComponents on _IComponent {\n  ... on Button {\n    Link {\n      href\n    }\n  }\n}",
        )
        assert FragmentCache(cache).get(ALL_COMPONENTS) is None
        text = await fragment_generator.get_all_components_fragment()
        assert "href" not in text
        assert "... on Hero" in text


class TestCompositionSelection:
    @pytest.mark.asyncio
    async def test_nests_three_structural_levels(self, introspector: SchemaIntrospector):
        await introspector.initialize()
        text = render_selection_set([build_composition_selection("composition", introspector)])
        parse("query Q " + text)
        assert text.count("... on CompositionStructureNode") == 3
        assert text.count("component { ...AllComponents }") == 4
        for alias in ("grids: nodes", "rows: nodes", "columns: nodes", "elements: nodes"):
            assert alias in text

    @pytest.mark.asyncio
    async def test_depth_is_configurable(self, introspector: SchemaIntrospector):
        await introspector.initialize()
        text = render_selection_set([build_composition_selection("composition", introspector, max_depth=1)])
        assert text.count("... on CompositionStructureNode") == 1
        assert "columns: nodes" not in text

    @pytest.mark.asyncio
    async def test_levels_past_the_alias_table_get_numbered_aliases(self, introspector: SchemaIntrospector):
        await introspector.initialize()
        text = render_selection_set([build_composition_selection("composition", introspector, max_depth=5)])
        parse("query Q " + text)
        assert text.count("... on CompositionStructureNode") == 5
        assert "elements: nodes" in text
        assert "level4: nodes" in text
        assert "level5: nodes" in text

    @pytest.mark.asyncio
    async def test_falls_back_to_default_node_names(self, cache: MemoryCache):
        doc = schema_doc([object_type("Page", [METADATA_FIELD])], [])
        introspector = SchemaIntrospector(FakeTransport(schema=doc), cache)
        await introspector.initialize()
        text = render_selection_set([build_composition_selection("composition", introspector)])
        assert "... on CompositionStructureNode" in text
        assert "... on CompositionComponentNode { key displayName component { ...AllComponents } }" in text
