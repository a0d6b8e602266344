"""Content service: the one entry point the MCP tools and the CLI call.

Ties resolution, schema discovery and query synthesis together.
``ContentService.from_settings`` is where the shared cache and transport
get built; everything below it takes them as constructor arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any

from cmsgraph.config import Settings
from cmsgraph.errors import CmsGraphError, NotFoundError
from cmsgraph.graph.cache import CacheStore, MemoryCache
from cmsgraph.graph.classifier import is_basic_field
from cmsgraph.graph.client import GraphClient, GraphTransport
from cmsgraph.graph.fragments import FragmentCache, FragmentGenerator
from cmsgraph.graph.introspector import SchemaIntrospector
from cmsgraph.graph.queries import QuerySynthesizer, select_fields
from cmsgraph.graph.resolution import ContentResolver, detect_identifier_type, specific_type
from cmsgraph.graph.types import ContentTypeInfo, EnrichedContent, FieldDescriptor, IdentifierType

logger = logging.getLogger(__name__)

# Always emitted as one block, so it takes one slot of the field budget.
METADATA_FIELD = "_metadata"


@dataclass
class GetOptions:
    """Knobs for ``resolve_and_enrich``."""

    identifier_type: IdentifierType = IdentifierType.AUTO
    include_fields: list[str] = field(default_factory=lambda: list[str]())
    include_schema: bool = False
    search_limit: int = 1
    max_fields: int = 50


def describe_fields(fields: list[FieldDescriptor]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for f in fields:
        type_name = f"[{f.base_type_name}]" if f.is_list else f.base_type_name
        entry: dict[str, Any] = {"name": f.name, "type": type_name, "isRequired": f.is_required}
        if f.description:
            entry["description"] = f.description
        out.append(entry)
    return out


class ContentService:
    def __init__(
        self,
        transport: GraphTransport,
        cache: CacheStore,
        *,
        schema_ttl: float = 3600,
        default_locale: str = "en",
        max_fields: int = 50,
    ):
        self.transport = transport
        self.cache = cache
        self.default_locale = default_locale
        self.max_fields = max_fields
        self.introspector = SchemaIntrospector(transport, cache, schema_ttl=schema_ttl)
        self.fragments = FragmentGenerator(self.introspector, FragmentCache(cache, ttl_seconds=schema_ttl))
        self.synthesizer = QuerySynthesizer(self.introspector, self.fragments, default_locale=default_locale)
        self.resolver = ContentResolver(transport, self.synthesizer)

    @classmethod
    def from_settings(cls, settings: Settings) -> ContentService:
        cache = MemoryCache(ttl_seconds=settings.cache_ttl, max_size=settings.cache_max_size)
        return cls(
            GraphClient.from_settings(settings),
            cache,
            schema_ttl=settings.schema_cache_ttl,
            default_locale=settings.default_locale,
            max_fields=settings.max_fields,
        )

    async def resolve_and_enrich(
        self,
        identifier: str,
        locale: str | None = None,
        options: GetOptions | None = None,
    ) -> EnrichedContent:
        """Find content by any identifier and fetch it with its discovered fields.

        Raises ``NotFoundError`` when no lookup strategy finds the identifier,
        or when the enrich query comes back empty.
        """
        options = options or GetOptions(max_fields=self.max_fields)
        locale = locale or self.default_locale
        identifier_type = detect_identifier_type(identifier, options.identifier_type)

        found = await self.resolver.resolve(
            identifier, options.identifier_type, locale, search_limit=options.search_limit
        )
        if found is None:
            raise NotFoundError(f"Content not found: {identifier}", details={"identifier": identifier})

        content, discovered = await self._enrich(found.key, found.content_type, locale, options)
        schema = await self.get_content_type_schema(found.content_type) if options.include_schema else None
        return EnrichedContent(
            content=content,
            discovered_fields=discovered,
            method=found.method,
            content_type=found.content_type,
            identifier_type=identifier_type,
            score=found.score,
            alternatives=found.alternatives,
            schema=schema,
        )

    async def _enrich(
        self, key: str, content_type: str, locale: str, options: GetOptions
    ) -> tuple[dict[str, Any], list[str]]:
        query_type = content_type
        info = await self.introspector.get_content_type(content_type)
        if info is None or not info.fields:
            fallback = await self.introspector.get_queryable_root(content_type)
            logger.warning("No fields discovered for %s, trying queryable type %s", content_type, fallback)
            info = await self.introspector.get_content_type(fallback)
            query_type = fallback
            if info is None or not info.fields:
                raise NotFoundError(
                    f"No fields discovered for {content_type} or its queryable interfaces",
                    details={"contentType": content_type},
                )

        fields = self._select(info, options)
        query, discovered = await self.synthesizer.build_content_query(
            query_type, fields, key=key, locale=locale
        )
        data = await self.transport.query(query.document, query.variables)
        items = (data.get(query.root_field) or {}).get("items") or []
        if not items:
            raise NotFoundError(
                f"Content found but fields could not be retrieved: {key}",
                details={"key": key, "contentType": query_type},
            )
        return items[0], discovered

    def _select(self, info: ContentTypeInfo, options: GetOptions) -> list[FieldDescriptor]:
        candidates = [f for f in info.fields if is_basic_field(f)]
        if options.include_fields:
            wanted = set(options.include_fields)
            candidates = [f for f in candidates if f.name in wanted]
        names = select_fields(
            [METADATA_FIELD, *(f.name for f in candidates)], info.searchable_fields, options.max_fields
        )
        by_name = {f.name: f for f in candidates}
        return [by_name[n] for n in names if n in by_name]

    async def get_content_type_schema(self, type_name: str) -> dict[str, Any]:
        info = await self.introspector.get_content_type(type_name)
        if info is None:
            raise NotFoundError(f"Content type not found: {type_name}", details={"typeName": type_name})
        return {
            "name": info.name,
            "fields": describe_fields(info.fields),
            "interfaces": info.interfaces,
        }

    async def search(
        self,
        term: str,
        *,
        content_types: list[str] | None = None,
        locale: str | None = None,
        limit: int = 10,
        skip: int = 0,
        include_score: bool = True,
    ) -> dict[str, Any]:
        query = await self.synthesizer.build_search_query(
            term,
            content_types=content_types,
            locale=locale,
            limit=limit,
            skip=skip,
            include_score=include_score,
        )
        data = await self.transport.query(query.document, query.variables)
        result = data.get(query.root_field) or {}
        items = result.get("items") or []
        return {
            "items": [
                {
                    "key": (item.get("_metadata") or {}).get("key"),
                    "displayName": (item.get("_metadata") or {}).get("displayName"),
                    "contentType": specific_type(item),
                    "url": ((item.get("_metadata") or {}).get("url") or {}).get("default"),
                    "score": item.get("_score"),
                }
                for item in items
            ],
            "total": result.get("total", len(items)),
            "facets": result.get("facets") or {},
        }

    async def locate(
        self,
        identifier: str,
        identifier_type: IdentifierType | str = IdentifierType.AUTO,
        locale: str | None = None,
    ) -> dict[str, Any]:
        """Metadata for content named by path, key or GUID, without fetching its fields.

        Anything that isn't a path is looked up as a key.
        """
        detected = detect_identifier_type(identifier, identifier_type)
        lookup = IdentifierType.PATH if detected == IdentifierType.PATH else IdentifierType.KEY
        locale = locale or self.default_locale
        if lookup == IdentifierType.PATH:
            found = await self.resolver.find_by_path(identifier.strip(), locale)
        else:
            found = await self.resolver.find_by_key(identifier, locale)
        if found is None:
            raise NotFoundError(
                f"Content not found: {identifier}",
                details={"identifier": identifier, "identifierType": lookup.value},
            )
        return {
            "key": found.key,
            "contentType": found.content_type,
            "method": found.method,
            "identifierType": lookup.value,
            "metadata": found.metadata,
        }

    async def health(self) -> dict[str, Any]:
        """Schema reachability through the introspector; a cached schema counts until it expires."""
        graph: dict[str, Any] = {"endpoint": self.transport.endpoint}
        try:
            await self.introspector.initialize()
            content_types = await self.introspector.get_content_types()
        except CmsGraphError as e:
            logger.warning("Health check failed: %s", e.message)
            graph.update(status="error", error=e.message, code=e.code)
        else:
            graph.update(status="ok", contentTypes=len(content_types))

        payload: dict[str, Any] = {
            "status": "healthy" if graph["status"] == "ok" else "unhealthy",
            "graph": graph,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if isinstance(self.cache, MemoryCache):
            payload["cache"] = self.cache.stats()
        return payload

    async def list_content_types(self) -> list[dict[str, Any]]:
        types = await self.introspector.get_content_types()
        return [
            {
                "name": t.name,
                "fieldCount": len(t.fields),
                "searchableFields": t.searchable_fields,
                "interfaces": t.interfaces,
            }
            for t in types
        ]

    async def get_all_components_fragment(self) -> str:
        return await self.fragments.get_all_components_fragment()
