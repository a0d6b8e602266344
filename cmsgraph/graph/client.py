"""GraphQL transport for the CMS content graph.

``GraphTransport`` is the contract the engine depends on; ``GraphClient`` is
the requests-backed implementation. Blocking HTTP calls run in a worker
thread so concurrent tool calls don't stall the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from graphql import get_introspection_query
import requests

from cmsgraph.config import GraphAuth, Settings
from cmsgraph.errors import GraphQLResponseError, TransportError

logger = logging.getLogger(__name__)


class GraphTransport(Protocol):
    @property
    def endpoint(self) -> str: ...

    async def query(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]: ...

    async def introspect(self) -> dict[str, Any]: ...


class GraphClient:
    """POSTs GraphQL documents to the content graph endpoint.

    Returns the ``data`` member of the response. Non-2xx answers raise
    ``TransportError``; a response carrying ``errors`` raises
    ``GraphQLResponseError``.
    """

    def __init__(
        self,
        endpoint: str,
        auth: GraphAuth | None = None,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )
        if auth is not None:
            self._set_auth_header(auth)

    @classmethod
    def from_settings(cls, settings: Settings) -> GraphClient:
        return cls(settings.endpoint, settings.auth, timeout=settings.timeout)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def query(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        return await asyncio.to_thread(self._post, document, variables or {})

    async def introspect(self) -> dict[str, Any]:
        logger.debug("Fetching introspection document from %s", self._endpoint)
        return await self.query(get_introspection_query(descriptions=True))

    def _set_auth_header(self, auth: GraphAuth) -> None:
        if auth.method == "single_key":
            self._session.headers["Authorization"] = f"epi-single {auth.single_key}"
        elif auth.method == "basic":
            self._session.auth = (auth.username or "", auth.password or "")
        elif auth.method == "bearer":
            self._session.headers["Authorization"] = f"Bearer {auth.token}"

    def _post(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = {"query": document, "variables": variables}
        try:
            resp = self._session.post(self._endpoint, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {self._endpoint} failed: {e}") from e

        if not resp.ok:
            raise TransportError(
                f"HTTP {resp.status_code} from {self._endpoint}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON from {self._endpoint}", status_code=resp.status_code
            ) from e

        errors = body.get("errors")
        if errors:
            raise GraphQLResponseError(errors, query=document)
        return body.get("data") or {}
