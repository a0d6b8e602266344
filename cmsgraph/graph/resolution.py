"""Locate content from a free-form identifier.

The identifier is classified as a URL path, a content key or a search term,
and lookups are attempted in an explicit order until one finds something.
A failing attempt is logged and the next one runs; only exhaustion is
reported, as ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any

from cmsgraph.errors import CmsGraphError
from cmsgraph.graph.client import GraphTransport
from cmsgraph.graph.queries import QuerySynthesizer
from cmsgraph.graph.types import GraphQLQuery, IdentifierType, ResolvedContent

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$", re.IGNORECASE
)
NUMERIC_PATTERN = re.compile(r"^\d+$")
HOMEPAGE_SYNONYMS = frozenset({"home", "homepage", "start", "index"})
FALLBACK_ORDER = (IdentifierType.SEARCH, IdentifierType.PATH, IdentifierType.KEY)
ALTERNATIVES_PADDING = 5

METHOD_NAMES = {
    IdentifierType.SEARCH: "search",
    IdentifierType.PATH: "locate-path",
    IdentifierType.KEY: "locate-key",
}


def detect_identifier_type(identifier: str, hint: IdentifierType | str = IdentifierType.AUTO) -> IdentifierType:
    hint = IdentifierType(hint)
    if hint != IdentifierType.AUTO:
        return hint
    value = identifier.strip()
    if value.startswith("/"):
        return IdentifierType.PATH
    if KEY_PATTERN.match(value) or NUMERIC_PATTERN.match(value):
        return IdentifierType.KEY
    return IdentifierType.SEARCH


def is_homepage_term(identifier: str) -> bool:
    return identifier.strip().lower() in HOMEPAGE_SYNONYMS


def normalize_key(identifier: str) -> str:
    return identifier.strip().replace("-", "")


@dataclass(frozen=True)
class Attempt:
    strategy: IdentifierType
    value: str


def plan_attempts(identifier: str, detected: IdentifierType) -> list[Attempt]:
    """Ordered lookups: the detected strategy, then search, path, key.

    A homepage synonym puts a lookup of ``/`` ahead of everything else.
    """
    value = identifier.strip()
    attempts: list[Attempt] = []
    if detected == IdentifierType.SEARCH and is_homepage_term(value):
        attempts.append(Attempt(IdentifierType.PATH, "/"))
    attempts.append(Attempt(detected, value))
    for strategy in FALLBACK_ORDER:
        if strategy != detected and not any(a.strategy == strategy for a in attempts):
            attempts.append(Attempt(strategy, value))
    return attempts


def _items(data: dict[str, Any], query: GraphQLQuery) -> list[dict[str, Any]]:
    return ((data or {}).get(query.root_field) or {}).get("items") or []


def metadata_of(item: dict[str, Any]) -> dict[str, Any]:
    return item.get("_metadata") or {}


def keyed(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Items that carry a content key; the rest can't be enriched or located."""
    return [item for item in items if metadata_of(item).get("key")]


def specific_type(item: dict[str, Any]) -> str:
    """Most specific content type: first of ``_metadata.types``, else ``__typename``."""
    types = metadata_of(item).get("types") or []
    return types[0] if types else item.get("_type") or item.get("__typename") or ""


# Raised by payloads that don't have the expected shape.
PAYLOAD_ERRORS = (LookupError, TypeError, AttributeError)


class ContentResolver:
    def __init__(self, transport: GraphTransport, synthesizer: QuerySynthesizer):
        self._transport = transport
        self._synthesizer = synthesizer

    async def resolve(
        self,
        identifier: str,
        hint: IdentifierType | str = IdentifierType.AUTO,
        locale: str | None = None,
        search_limit: int = 1,
    ) -> ResolvedContent | None:
        detected = detect_identifier_type(identifier, hint)
        logger.info("Identifier '%s' detected as %s", identifier, detected.value)

        for attempt in plan_attempts(identifier, detected):
            logger.debug("Trying %s lookup for '%s'", attempt.strategy.value, attempt.value)
            try:
                found = await self._run(attempt, locale, search_limit)
            except CmsGraphError as e:
                logger.warning("%s lookup for '%s' failed: %s", attempt.strategy.value, attempt.value, e)
                continue
            except PAYLOAD_ERRORS as e:
                logger.warning(
                    "%s lookup for '%s' returned an unexpected payload: %r",
                    attempt.strategy.value,
                    attempt.value,
                    e,
                )
                continue
            if found is not None:
                logger.info("Content found using %s", found.method)
                return found

        logger.info("No strategy found content for '%s'", identifier)
        return None

    async def _run(self, attempt: Attempt, locale: str | None, search_limit: int) -> ResolvedContent | None:
        if attempt.strategy == IdentifierType.SEARCH:
            return await self.find_by_search(attempt.value, locale, search_limit)
        if attempt.strategy == IdentifierType.PATH:
            return await self.find_by_path(attempt.value, locale)
        return await self.find_by_key(attempt.value, locale)

    async def find_by_search(self, term: str, locale: str | None = None, limit: int = 1) -> ResolvedContent | None:
        query = await self._synthesizer.build_search_query(
            term, locale=locale, limit=limit + ALTERNATIVES_PADDING, include_score=True
        )
        items = keyed(_items(await self._transport.query(query.document, query.variables), query))
        if not items:
            return None
        primary = items[0]
        alternatives = [
            {
                "key": metadata_of(item)["key"],
                "displayName": metadata_of(item).get("displayName"),
                "contentType": specific_type(item),
                "url": (metadata_of(item).get("url") or {}).get("default"),
                "score": item.get("_score"),
            }
            for item in items[1 : limit + 1]
        ]
        return ResolvedContent(
            key=metadata_of(primary)["key"],
            content_type=specific_type(primary),
            method=METHOD_NAMES[IdentifierType.SEARCH],
            score=primary.get("_score"),
            alternatives=alternatives,
            metadata=metadata_of(primary),
        )

    async def find_by_path(self, path: str, locale: str | None = None) -> ResolvedContent | None:
        query = await self._synthesizer.build_locate_by_path(path, locale)
        return self._first(await self._transport.query(query.document, query.variables), query, IdentifierType.PATH)

    async def find_by_key(self, identifier: str, locale: str | None = None) -> ResolvedContent | None:
        query = await self._synthesizer.build_locate_by_key(normalize_key(identifier), locale)
        return self._first(await self._transport.query(query.document, query.variables), query, IdentifierType.KEY)

    def _first(self, data: dict[str, Any], query: GraphQLQuery, strategy: IdentifierType) -> ResolvedContent | None:
        items = keyed(_items(data, query))
        if not items:
            return None
        item = items[0]
        return ResolvedContent(
            key=metadata_of(item)["key"],
            content_type=specific_type(item),
            method=METHOD_NAMES[strategy],
            metadata=metadata_of(item),
        )
