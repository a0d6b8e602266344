"""Schema introspection: turns the introspection document into typed descriptors.

The raw ``__schema`` payload is kept in the injected cache under
``SCHEMA_CACHE_KEY``; everything else (type map, content type views) is
rebuilt from it whenever the cache hands back a different document.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from cmsgraph.errors import SchemaUnavailableError, TransportError
from cmsgraph.graph.cache import CacheStore
from cmsgraph.graph.client import GraphTransport
from cmsgraph.graph.types import (
    ArgumentDescriptor,
    ContentTypeInfo,
    FieldDescriptor,
    TypeDescriptor,
    TypeKind,
)

logger = logging.getLogger(__name__)

SCHEMA_CACHE_KEY = "graphql:schema:full"
DEFAULT_SCHEMA_TTL = 3600

CONTENT_QUERY_FIELD_NAMES = ("_Content", "Content", "content", "_content", "Contents")
CONTENT_INTERFACE_NAMES = ("_IContent", "IContent", "Content")
METADATA_FIELD_NAMES = ("_metadata", "metadata")
METADATA_TYPE_NAMES = ("ContentMetadata", "_ContentMetadata", "Metadata", "_Metadata", "IContentMetadata")
SYSTEM_INTERFACE_NAMES = frozenset({"IContent", "IComponent"})
SEARCHABLE_NAME_PATTERNS = (
    "title", "heading", "name", "description",
    "text", "content", "summary", "body", "excerpt",
)
GENERIC_ROOT_FIELD = "_Content"


# -- Type reference helpers ---------------------------------------------------


def unwrap_type_ref(ref: dict[str, Any]) -> tuple[str, bool, bool]:
    """Walk the NON_NULL/LIST chain down to the named type.

    Returns ``(base_type_name, is_list, is_required)``.
    """
    is_list = False
    is_required = False
    current = ref
    while current.get("kind") in ("NON_NULL", "LIST"):
        if current["kind"] == "NON_NULL":
            is_required = True
        else:
            is_list = True
        current = current.get("ofType") or {}
    return current.get("name") or "", is_list, is_required


def render_type_ref(ref: dict[str, Any]) -> str:
    """Render a type reference in SDL notation, e.g. ``[String!]!``."""
    kind = ref.get("kind")
    if kind == "NON_NULL":
        return render_type_ref(ref.get("ofType") or {}) + "!"
    if kind == "LIST":
        return "[" + render_type_ref(ref.get("ofType") or {}) + "]"
    return ref.get("name") or "Unknown"


def _field_descriptor(raw: dict[str, Any]) -> FieldDescriptor:
    base, is_list, is_required = unwrap_type_ref(raw.get("type") or {})
    args = tuple(
        ArgumentDescriptor(
            name=a["name"],
            type_name=render_type_ref(a.get("type") or {}),
            default_value=a.get("defaultValue"),
            description=a.get("description"),
        )
        for a in raw.get("args") or []
    )
    return FieldDescriptor(
        name=raw["name"],
        base_type_name=base,
        is_list=is_list,
        is_required=is_required,
        args=args,
        description=raw.get("description"),
    )


def parse_type(raw: dict[str, Any]) -> TypeDescriptor:
    try:
        kind = TypeKind(raw.get("kind"))
    except ValueError:
        kind = TypeKind.SCALAR
    return TypeDescriptor(
        name=raw["name"],
        kind=kind,
        fields=tuple(_field_descriptor(f) for f in raw.get("fields") or []),
        interfaces=tuple(i["name"] for i in raw.get("interfaces") or []),
        possible_types=tuple(t["name"] for t in raw.get("possibleTypes") or []),
        input_fields=tuple(_field_descriptor(f) for f in raw.get("inputFields") or []),
        enum_values=tuple(v["name"] for v in raw.get("enumValues") or []),
        description=raw.get("description"),
    )


def is_searchable_field(f: FieldDescriptor) -> bool:
    if f.base_type_name != "String":
        return False
    lower = f.name.lower()
    return any(p in lower for p in SEARCHABLE_NAME_PATTERNS)


# -- Introspector -------------------------------------------------------------


class SchemaIntrospector:
    """Typed, cached view of the content graph schema.

    Concurrent ``initialize()`` callers share one in-flight fetch. Per-type
    views are memoized until the cache hands back a different document.
    """

    def __init__(
        self,
        transport: GraphTransport,
        cache: CacheStore,
        schema_ttl: float = DEFAULT_SCHEMA_TTL,
    ):
        self._transport = transport
        self._cache = cache
        self._schema_ttl = schema_ttl
        self._schema: dict[str, Any] | None = None
        self._types: dict[str, TypeDescriptor] = {}
        self._query_type: TypeDescriptor | None = None
        self._content_type_memo: dict[str, ContentTypeInfo] = {}
        self._content_types: list[ContentTypeInfo] | None = None
        self._inflight: asyncio.Task[None] | None = None

    @property
    def loaded(self) -> bool:
        return self._schema is not None

    async def initialize(self) -> None:
        if self._schema is not None and self._cache.get(SCHEMA_CACHE_KEY) is self._schema:
            return
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._load())
            self._inflight.add_done_callback(self._clear_inflight)
        await self._inflight

    def _clear_inflight(self, task: asyncio.Task[None]) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _load(self) -> None:
        schema = self._cache.get(SCHEMA_CACHE_KEY)
        fetched = schema is None
        if fetched:
            logger.debug("Fetching GraphQL schema for introspection")
            try:
                data = await self._transport.introspect()
            except TransportError as e:
                raise SchemaUnavailableError(
                    f"Schema introspection failed: {e.message}",
                    details={"cause": e.code},
                ) from e
            schema = data.get("__schema") if isinstance(data, dict) else None
            if not isinstance(schema, dict) or "types" not in schema:
                raise SchemaUnavailableError("Introspection response has no __schema")
            self._cache.set(SCHEMA_CACHE_KEY, schema, self._schema_ttl)

        if fetched or schema is not self._schema:
            self._build(schema)

    def _build(self, schema: dict[str, Any]) -> None:
        self._types = {t["name"]: parse_type(t) for t in schema.get("types") or [] if t.get("name")}
        query_type_name = (schema.get("queryType") or {}).get("name", "Query")
        self._query_type = self._types.get(query_type_name)
        self._content_type_memo.clear()
        self._content_types = None
        self._schema = schema
        logger.info(
            "Schema introspection completed: %d types, %d query fields",
            len(self._types),
            len(self._query_type.fields) if self._query_type else 0,
        )

    # -- Lookups (schema must be loaded) --

    def get_type(self, name: str) -> TypeDescriptor | None:
        if self._schema is None:
            raise SchemaUnavailableError("Schema not loaded; call initialize() first")
        return self._types.get(name)

    def is_root_field(self, name: str) -> bool:
        return self._query_type is not None and self._query_type.field(name) is not None

    def type_names(self) -> list[str]:
        return list(self._types)

    # -- Derived views --

    async def get_query_fields(self) -> list[FieldDescriptor]:
        await self.initialize()
        return list(self._query_type.fields) if self._query_type else []

    async def get_content_type(self, name: str) -> ContentTypeInfo | None:
        await self.initialize()
        return self._content_type(name)

    def _content_type(self, name: str) -> ContentTypeInfo | None:
        memo = self._content_type_memo.get(name)
        if memo is not None:
            return memo
        t = self._types.get(name)
        if t is None or t.kind != TypeKind.OBJECT:
            return None
        info = self._analyze(t)
        self._content_type_memo[name] = info
        return info

    async def get_types_implementing(self, interface: str) -> list[str]:
        """Concrete implementers of *interface*, minus system/meta types.

        An absent interface yields ``[]``; callers fall back on their own.
        """
        await self.initialize()
        t = self._types.get(interface)
        if t is None or t.kind != TypeKind.INTERFACE:
            logger.debug("Interface not found: %s", interface)
            return []
        names = [
            n for n in t.possible_types
            if not n.startswith("_") and n not in SYSTEM_INTERFACE_NAMES
        ]
        logger.debug("Found %d types implementing %s", len(names), interface)
        return names

    async def find_content_query_field(self) -> str | None:
        fields = await self.get_query_fields()
        by_name = {f.name: f for f in fields}
        for candidate in CONTENT_QUERY_FIELD_NAMES:
            if candidate in by_name:
                return candidate
        for f in fields:
            if f.is_list and "Content" in f.base_type_name:
                return f.name
        return None

    async def get_queryable_root(self, type_name: str) -> str:
        """Pick the root query field to reach *type_name* through.

        The type itself, then its interfaces in declaration order, then a
        content-looking root field, then the generic ``_Content``.
        """
        await self.initialize()
        if self.is_root_field(type_name):
            return type_name
        t = self._types.get(type_name)
        if t is not None:
            for iface in t.interfaces:
                if self.is_root_field(iface):
                    return iface
        content_field = await self.find_content_query_field()
        if content_field:
            return content_field
        return GENERIC_ROOT_FIELD

    async def get_content_types(self) -> list[ContentTypeInfo]:
        await self.initialize()
        if self._content_types is not None:
            return self._content_types
        found: list[ContentTypeInfo] = []
        for name, t in self._types.items():
            if name.startswith("_") or t.kind != TypeKind.OBJECT:
                continue
            has_interface = any(i in CONTENT_INTERFACE_NAMES for i in t.interfaces)
            has_metadata = any(t.field(m) is not None for m in METADATA_FIELD_NAMES)
            if has_interface or has_metadata:
                info = self._content_type(name)
                if info is not None:
                    found.append(info)
        self._content_types = found
        return found

    async def get_metadata_type(self) -> TypeDescriptor | None:
        await self.initialize()
        for name in METADATA_TYPE_NAMES:
            if name in self._types:
                return self._types[name]
        content_types = await self.get_content_types()
        if not content_types:
            return None
        sample = self._types[content_types[0].name]
        for m in METADATA_FIELD_NAMES:
            f = sample.field(m)
            if f is not None:
                return self._types.get(f.base_type_name)
        return None

    def _analyze(self, t: TypeDescriptor) -> ContentTypeInfo:
        searchable: list[str] = []
        metadata: list[str] = []
        for f in t.fields:
            if is_searchable_field(f):
                searchable.append(f.name)
            if f.name in METADATA_FIELD_NAMES:
                meta_type = self._types.get(f.base_type_name)
                if meta_type is not None and meta_type.kind == TypeKind.OBJECT:
                    metadata.extend(mf.name for mf in meta_type.fields)
        return ContentTypeInfo(
            name=t.name,
            fields=list(t.fields),
            searchable_fields=searchable,
            metadata_fields=metadata,
            interfaces=list(t.interfaces),
        )
