"""Exception hierarchy for the CMS Graph adapter.

Every error carries a short machine-readable ``code`` and a ``details`` dict
so the MCP layer can turn it into a structured payload without inspecting
the concrete class.
"""

from __future__ import annotations

from typing import Any


class CmsGraphError(Exception):
    """Base class for all adapter errors."""

    code: str = "CMS_GRAPH_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationError(CmsGraphError):
    code = "CONFIGURATION_ERROR"


class TransportError(CmsGraphError):
    """The GraphQL endpoint could not be reached or answered with a non-2xx status."""

    code = "TRANSPORT_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class GraphQLResponseError(TransportError):
    """The endpoint answered but the payload carries a GraphQL ``errors`` array."""

    code = "GRAPHQL_ERROR"

    def __init__(self, errors: list[dict[str, Any]], query: str | None = None):
        messages = [str(e.get("message", e)) for e in errors]
        super().__init__(
            "GraphQL errors: " + "; ".join(messages),
            status_code=None,
            details={"errors": errors},
        )
        self.errors = errors
        self.query = query


class SchemaUnavailableError(CmsGraphError):
    """Introspection failed; usually a configuration or connectivity problem."""

    code = "SCHEMA_UNAVAILABLE"


class NotFoundError(CmsGraphError):
    code = "NOT_FOUND"


class QuerySynthesisError(CmsGraphError):
    """A synthesized document failed to parse."""

    code = "QUERY_SYNTHESIS_ERROR"


class InvalidArgumentError(CmsGraphError):
    """A tool or command argument has a value outside what it accepts."""

    code = "INVALID_ARGUMENT"
