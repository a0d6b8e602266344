"""Tests for the requests-backed GraphQL transport."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from cmsgraph.config import GraphAuth, Settings
from cmsgraph.errors import GraphQLResponseError, TransportError
from cmsgraph.graph.client import GraphClient

ENDPOINT = "https://cg.example.com/content/v2"


def _response(status: int = 200, body: dict | None = None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _client(resp: MagicMock | Exception, auth: GraphAuth | None = None) -> tuple[GraphClient, MagicMock]:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    if isinstance(resp, Exception):
        session.post.side_effect = resp
    else:
        session.post.return_value = resp
    return GraphClient(ENDPOINT, auth, timeout=5, session=session), session


class TestAuthHeaders:
    def test_single_key(self):
        _, session = _client(_response(body={}), GraphAuth(method="single_key", single_key="abc"))
        assert session.headers["Authorization"] == "epi-single abc"

    def test_bearer(self):
        _, session = _client(_response(body={}), GraphAuth(method="bearer", token="tok"))
        assert session.headers["Authorization"] == "Bearer tok"

    def test_basic(self):
        _, session = _client(_response(body={}), GraphAuth(method="basic", username="u", password="p"))
        assert session.auth == ("u", "p")
        assert "Authorization" not in session.headers

    def test_none(self):
        _, session = _client(_response(body={}), GraphAuth(method="none"))
        assert "Authorization" not in session.headers

    def test_from_settings(self):
        settings = Settings(endpoint=ENDPOINT, auth=GraphAuth(method="bearer", token="t"), timeout=12)
        client = GraphClient.from_settings(settings)
        assert client.endpoint == ENDPOINT


class TestQuery:
    @pytest.mark.asyncio
    async def test_returns_data(self):
        client, session = _client(_response(body={"data": {"_Content": {"items": []}}}))
        data = await client.query("query Q { a }", {"x": 1})
        assert data == {"_Content": {"items": []}}
        _, kwargs = session.post.call_args
        assert kwargs["json"] == {"query": "query Q { a }", "variables": {"x": 1}}
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self):
        client, _ = _client(_response(status=401, text="unauthorized"))
        with pytest.raises(TransportError) as exc_info:
            await client.query("query Q { a }")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with pytest.raises(TransportError) as exc_info:
            await client.query("query Q { a }")
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client, _ = _client(_response(body=None))
        with pytest.raises(TransportError):
            await client.query("query Q { a }")

    @pytest.mark.asyncio
    async def test_graphql_errors(self):
        client, _ = _client(_response(body={"errors": [{"message": "Cannot query field"}], "data": None}))
        with pytest.raises(GraphQLResponseError) as exc_info:
            await client.query("query Q { a }")
        assert exc_info.value.code == "GRAPHQL_ERROR"
        assert "Cannot query field" in exc_info.value.message
        assert exc_info.value.query == "query Q { a }"

    @pytest.mark.asyncio
    async def test_introspect_sends_introspection_query(self):
        client, session = _client(_response(body={"data": {"__schema": {"types": []}}}))
        data = await client.introspect()
        assert "__schema" in data
        _, kwargs = session.post.call_args
        assert "__schema" in kwargs["json"]["query"]
