"""Shared test fixtures for cms-graph tests."""

from __future__ import annotations

from collections.abc import Callable
import re
from typing import Any

import pytest

from cmsgraph.graph.cache import MemoryCache
from cmsgraph.graph.fragments import FragmentCache, FragmentGenerator
from cmsgraph.graph.introspector import SchemaIntrospector
from cmsgraph.graph.queries import QuerySynthesizer

# -- Introspection document builders ------------------------------------------


def named(name: str, kind: str = "SCALAR") -> dict[str, Any]:
    return {"kind": kind, "name": name, "ofType": None}


def obj_ref(name: str) -> dict[str, Any]:
    return named(name, "OBJECT")


def non_null(ref: dict[str, Any]) -> dict[str, Any]:
    return {"kind": "NON_NULL", "name": None, "ofType": ref}


def list_of(ref: dict[str, Any]) -> dict[str, Any]:
    return {"kind": "LIST", "name": None, "ofType": ref}


def arg(name: str, type_ref: dict[str, Any], default: str | None = None) -> dict[str, Any]:
    return {"name": name, "description": None, "type": type_ref, "defaultValue": default}


def fld(
    name: str,
    type_ref: dict[str, Any] | str,
    args: list[dict[str, Any]] | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    if isinstance(type_ref, str):
        type_ref = named(type_ref)
    return {
        "name": name,
        "description": description,
        "args": args or [],
        "type": type_ref,
        "isDeprecated": False,
        "deprecationReason": None,
    }


def object_type(
    name: str,
    fields: list[dict[str, Any]],
    interfaces: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "kind": "OBJECT",
        "name": name,
        "description": None,
        "fields": fields,
        "inputFields": None,
        "interfaces": [named(i, "INTERFACE") for i in interfaces or []],
        "enumValues": None,
        "possibleTypes": None,
    }


def interface_type(
    name: str,
    fields: list[dict[str, Any]],
    possible_types: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "kind": "INTERFACE",
        "name": name,
        "description": None,
        "fields": fields,
        "inputFields": None,
        "interfaces": [],
        "enumValues": None,
        "possibleTypes": [obj_ref(t) for t in possible_types or []],
    }


def scalar_type(name: str) -> dict[str, Any]:
    return {
        "kind": "SCALAR",
        "name": name,
        "description": None,
        "fields": None,
        "inputFields": None,
        "interfaces": None,
        "enumValues": None,
        "possibleTypes": None,
    }


def enum_type(name: str, values: list[str]) -> dict[str, Any]:
    t = scalar_type(name)
    t["kind"] = "ENUM"
    t["enumValues"] = [{"name": v, "description": None, "isDeprecated": False} for v in values]
    return t


def schema_doc(types: list[dict[str, Any]], query_fields: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap *types* in a ``data`` payload as the transport returns it."""
    base = [scalar_type(s) for s in ("String", "Int", "Float", "Boolean", "DateTime", "Bool")]
    return {
        "__schema": {
            "queryType": {"name": "Query"},
            "mutationType": None,
            "subscriptionType": None,
            "types": [object_type("Query", query_fields), *base, *types],
            "directives": [],
        }
    }


def content_root_field(name: str, output_type: str) -> dict[str, Any]:
    return fld(
        name,
        obj_ref(output_type),
        args=[
            arg("where", named(f"{name}Where", "INPUT_OBJECT")),
            arg("locale", list_of(named("Locales", "ENUM"))),
            arg("limit", named("Int"), "20"),
            arg("skip", named("Int"), "0"),
            arg("orderBy", named(f"{name}OrderBy", "INPUT_OBJECT")),
        ],
    )


METADATA_FIELD = fld("_metadata", obj_ref("IContentMetadata"))


def cms_schema() -> dict[str, Any]:
    """A content graph with pages, components and visual-builder composition."""
    return schema_doc(
        types=[
            enum_type("Locales", ["en", "sv", "ALL"]),
            object_type(
                "IContentMetadata",
                [
                    fld("key", "String"),
                    fld("displayName", "String"),
                    fld("types", list_of(named("String"))),
                    fld("url", obj_ref("ContentUrl")),
                    fld("published", "DateTime"),
                    fld("lastModified", "DateTime"),
                    fld("status", "String"),
                    fld("locale", "String"),
                ],
            ),
            object_type("ContentUrl", [fld("default", "String"), fld("hierarchical", "String")]),
            object_type("RichText", [fld("html", "String"), fld("json", "String")]),
            object_type("ContentReference", [fld("url", obj_ref("ContentUrl"))]),
            object_type("Link", [fld("url", obj_ref("ContentUrl")), fld("text", "String")]),
            interface_type(
                "_IContent",
                [METADATA_FIELD, fld("_score", "Float")],
                ["ArticlePage", "LandingPage", "Hero", "Paragraph", "_Page"],
            ),
            interface_type("_IComponent", [METADATA_FIELD], ["Hero", "Paragraph"]),
            object_type(
                "ArticlePage",
                [
                    METADATA_FIELD,
                    fld("Heading", "String"),
                    fld("Body", obj_ref("RichText")),
                    fld("Rating", "Int"),
                    fld("Teaser", obj_ref("ContentReference")),
                    fld("Settings", obj_ref("PageSettings")),
                ],
                ["_IContent"],
            ),
            object_type("PageSettings", [fld("theme", "String")]),
            object_type(
                "LandingPage",
                [
                    METADATA_FIELD,
                    fld("Title", "String"),
                    fld("composition", obj_ref("CompositionStructureNode")),
                ],
                ["_IContent"],
            ),
            object_type(
                "Hero",
                [
                    METADATA_FIELD,
                    fld("Heading", "String"),
                    fld("Background", obj_ref("ContentReference")),
                    fld("Cta", obj_ref("Link")),
                ],
                ["_IContent", "_IComponent"],
            ),
            object_type(
                "Paragraph",
                [METADATA_FIELD, fld("Text", obj_ref("RichText"))],
                ["_IContent", "_IComponent"],
            ),
            interface_type("ICompositionNode", [fld("key", "String")], ["CompositionStructureNode", "CompositionComponentNode"]),
            object_type(
                "CompositionStructureNode",
                [
                    fld("key", "String"),
                    fld("nodeType", "String"),
                    fld("displayName", "String"),
                    fld("nodes", list_of(named("ICompositionNode", "INTERFACE"))),
                ],
                ["ICompositionNode"],
            ),
            object_type(
                "CompositionComponentNode",
                [
                    fld("key", "String"),
                    fld("displayName", "String"),
                    fld("component", named("_IComponent", "INTERFACE")),
                ],
                ["ICompositionNode"],
            ),
        ],
        query_fields=[
            content_root_field("_Content", "_ContentOutput"),
            content_root_field("_IContent", "_IContentOutput"),
            content_root_field("LandingPage", "LandingPageOutput"),
        ],
    )


# -- Fake transport -----------------------------------------------------------

Handler = Callable[[str, dict[str, Any]], dict[str, Any]]


def operation_name(document: str) -> str:
    match = re.match(r"\s*(?:query|mutation)\s+(\w+)", document)
    return match.group(1) if match else ""


def by_operation(responses: dict[str, Any]) -> Handler:
    """Answer each operation by name; exceptions in *responses* are raised."""

    def handler(document: str, variables: dict[str, Any]) -> dict[str, Any]:
        result = responses.get(operation_name(document), {})
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(document, variables)
        return result

    return handler


class FakeTransport:
    """In-memory ``GraphTransport`` that records every call."""

    endpoint = "https://graph.test/content/v2"

    def __init__(self, schema: dict[str, Any] | None = None, handler: Handler | None = None):
        self.schema = schema if schema is not None else cms_schema()
        self.handler = handler
        self.introspect_calls = 0
        self.queries: list[tuple[str, dict[str, Any]]] = []

    async def introspect(self) -> dict[str, Any]:
        self.introspect_calls += 1
        if isinstance(self.schema, Exception):
            raise self.schema
        return self.schema

    async def query(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        self.queries.append((document, variables or {}))
        if self.handler is None:
            return {}
        return self.handler(document, variables or {})

    @property
    def operations(self) -> list[str]:
        return [operation_name(doc) for doc, _ in self.queries]


def items(root: str, *entries: dict[str, Any], **extra: Any) -> dict[str, Any]:
    return {root: {"items": list(entries), **extra}}


def item(key: str, types: list[str], **fields: Any) -> dict[str, Any]:
    return {
        "_metadata": {"key": key, "displayName": key.title(), "types": types, "url": {"default": f"/{key}/"}},
        "_type": types[-1] if types else "",
        **fields,
    }


def squash(document: str) -> str:
    """Normalize printed GraphQL for comparison.

    Commas are insignificant in GraphQL and spacing inside braces, brackets
    and parentheses varies with line length, so both are dropped. Apply it
    to both sides of an assertion.
    """
    text = " ".join(document.replace(",", " ").split())
    return re.sub(r"\s*([{}()\[\]])\s*", r"\1", text)


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache(ttl_seconds=300, max_size=100)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def introspector(transport: FakeTransport, cache: MemoryCache) -> SchemaIntrospector:
    return SchemaIntrospector(transport, cache)


@pytest.fixture
def fragment_generator(introspector: SchemaIntrospector, cache: MemoryCache) -> FragmentGenerator:
    return FragmentGenerator(introspector, FragmentCache(cache))


@pytest.fixture
def synthesizer(introspector: SchemaIntrospector, fragment_generator: FragmentGenerator) -> QuerySynthesizer:
    return QuerySynthesizer(introspector, fragment_generator)
