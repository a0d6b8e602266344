"""MCP server exposing the content service as tools.

Every tool returns JSON text. Adapter errors come back as an
``{"error", "code", "details"}`` payload instead of failing the call.
"""

from __future__ import annotations

from collections.abc import Awaitable
import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from cmsgraph.errors import CmsGraphError, InvalidArgumentError
from cmsgraph.graph.types import IdentifierType
from cmsgraph.service import ContentService, GetOptions

logger = logging.getLogger(__name__)

SERVER_NAME = "cms-graph"


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


def parse_identifier_type(value: str) -> IdentifierType:
    try:
        return IdentifierType(value)
    except ValueError as e:
        raise InvalidArgumentError(
            f"Unknown identifier_type: {value}",
            details={"allowed": [t.value for t in IdentifierType]},
        ) from e


async def _respond(tool: str, call: Awaitable[Any]) -> str:
    try:
        return to_json(await call)
    except CmsGraphError as e:
        logger.warning("Tool %s failed: %s", tool, e.message)
        return to_json(e.as_dict())


def create_server(service: ContentService) -> FastMCP:
    mcp = FastMCP(SERVER_NAME)

    @mcp.tool()
    async def get(
        identifier: str,
        identifier_type: str = "auto",
        locale: str | None = None,
        include_fields: list[str] | None = None,
        include_schema: bool = False,
        search_limit: int = 1,
        max_fields: int | None = None,
    ) -> str:
        """Get complete content by any identifier: search term, URL path, content key or GUID.

        The identifier type is auto-detected. Fields are discovered from the
        schema; check discoveredFields for what was actually queried.
        """

        async def run() -> dict[str, Any]:
            options = GetOptions(
                identifier_type=parse_identifier_type(identifier_type),
                include_fields=include_fields or [],
                include_schema=include_schema,
                search_limit=max(1, min(search_limit, 10)),
                max_fields=max_fields or service.max_fields,
            )
            enriched = await service.resolve_and_enrich(identifier, locale, options)
            return enriched.as_dict()

        return await _respond("get", run())

    @mcp.tool()
    async def search(
        query: str,
        content_types: list[str] | None = None,
        locale: str | None = None,
        limit: int = 10,
        skip: int = 0,
    ) -> str:
        """Full-text search across content, with type and locale facets."""
        return await _respond(
            "search",
            service.search(query, content_types=content_types, locale=locale, limit=limit, skip=skip),
        )

    @mcp.tool()
    async def locate(identifier: str, identifier_type: str = "auto", locale: str | None = None) -> str:
        """Find content metadata by URL path, content key or GUID, without fetching its fields.

        Paths start with "/"; anything else is looked up as a key.
        """

        async def run() -> dict[str, Any]:
            return await service.locate(identifier, parse_identifier_type(identifier_type), locale)

        return await _respond("locate", run())

    @mcp.tool()
    async def discover_types() -> str:
        """List the content types available in the schema."""

        async def run() -> dict[str, Any]:
            types = await service.list_content_types()
            return {"contentTypes": types, "total": len(types)}

        return await _respond("discover_types", run())

    @mcp.tool()
    async def content_type_schema(type_name: str) -> str:
        """Fields and interfaces of one content type."""
        return await _respond("content_type_schema", service.get_content_type_schema(type_name))

    @mcp.tool()
    async def health() -> str:
        """Check that the content graph answers schema introspection."""
        return await _respond("health", service.health())

    return mcp
