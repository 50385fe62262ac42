"""Tests for the Firestore REST client with mocked HTTP responses."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from staccato.config import AppConfig
from staccato.persistence.errors import FormatError, StoreError
from staccato.persistence.firestore_client import (
    FirestoreClient,
    _reset_client,
    build_structured_query,
    close_firestore_client,
    document_path,
    get_firestore_client,
)
from staccato.persistence.service_account import StaticTokenSource

PROJECT = "test-project"
BASE = f"https://firestore.googleapis.com/v1/projects/{PROJECT}/databases/(default)/documents"


def _doc(collection: str, doc_id: str, fields: dict) -> dict:
    return {
        "name": f"projects/{PROJECT}/databases/(default)/documents/{collection}/{doc_id}",
        "fields": fields,
        "createTime": "2025-01-10T14:30:15.123456Z",
        "updateTime": "2025-01-10T14:30:15.123456Z",
    }


def _client(http: httpx.AsyncClient, **kwargs) -> FirestoreClient:
    return FirestoreClient(
        PROJECT,
        "svc@test-project.iam.gserviceaccount.com",
        "unused",
        http_client=http,
        token_source=kwargs.pop("token_source", StaticTokenSource("test-token")),
        **kwargs,
    )


class Recorder:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


class TestCreateDocument:
    async def test_create_with_id(self):
        handler = Recorder(
            httpx.Response(
                201,
                json=_doc(
                    "users",
                    "u1",
                    {"displayName": {"stringValue": "Alice"}, "age": {"integerValue": "8"}},
                ),
            )
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = _client(http)
            doc = await client.create_document(
                "users", {"displayName": "Alice", "age": 8}, document_id="u1"
            )

        assert doc == {"id": "u1", "displayName": "Alice", "age": 8}
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.params["documentId"] == "u1"
        assert str(request.url).startswith(f"{BASE}/users?")
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {
            "fields": {
                "displayName": {"stringValue": "Alice"},
                "age": {"integerValue": "8"},
            }
        }

    async def test_create_without_id(self):
        handler = Recorder(httpx.Response(200, json=_doc("users", "generated", {})))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            doc = await _client(http).create_document("users", {})

        assert doc == {"id": "generated"}
        assert "documentId" not in handler.requests[0].url.params

    async def test_conflict_carries_status(self):
        handler = Recorder(httpx.Response(409, text="ALREADY_EXISTS"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError) as exc_info:
                await _client(http).create_document("users", {}, document_id="u1")

        assert exc_info.value.status_code == 409
        assert exc_info.value.body == "ALREADY_EXISTS"

    async def test_non_finite_double_sent_as_string(self):
        handler = Recorder(httpx.Response(200, json=_doc("stats", "s1", {})))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).create_document("stats", {"ratio": float("nan")}, document_id="s1")

        assert json.loads(handler.requests[0].content) == {
            "fields": {"ratio": {"doubleValue": "NaN"}}
        }


class TestGetDocument:
    async def test_get_existing(self):
        ts = "2025-01-10T14:30:15.123456Z"
        handler = Recorder(
            httpx.Response(200, json=_doc("users", "u1", {"createdAt": {"timestampValue": ts}}))
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            doc = await _client(http).get_document("users", "u1")

        assert doc == {
            "id": "u1",
            "createdAt": datetime(2025, 1, 10, 14, 30, 15, 123456, tzinfo=timezone.utc),
        }
        assert handler.requests[0].method == "GET"
        assert str(handler.requests[0].url) == f"{BASE}/users/u1"

    async def test_missing_returns_none(self):
        handler = Recorder(httpx.Response(404, json={"error": {"status": "NOT_FOUND"}}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await _client(http).get_document("users", "nope") is None

    async def test_server_error_raises(self):
        handler = Recorder(httpx.Response(500, text="boom"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError) as exc_info:
                await _client(http).get_document("users", "u1")

        assert exc_info.value.status_code == 500
        assert "boom" in str(exc_info.value)

    async def test_invalid_json_raises_format_error(self):
        handler = Recorder(httpx.Response(200, text="<html>"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(FormatError):
                await _client(http).get_document("users", "u1")

    async def test_transport_error_raises_store_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError) as exc_info:
                await _client(http).get_document("users", "u1")

        assert exc_info.value.status_code is None

    async def test_reserved_characters_escaped_in_id(self):
        handler = Recorder(httpx.Response(200, json=_doc("users", "what?x=1#frag", {})))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            doc = await _client(http).get_document("users", "what?x=1#frag")

        assert doc == {"id": "what?x=1#frag"}
        request = handler.requests[0]
        assert request.url.raw_path.endswith(b"/documents/users/what%3Fx%3D1%23frag")
        assert request.url.query == b""
        assert request.url.fragment == ""

    async def test_exists(self):
        handler = Recorder(
            httpx.Response(200, json=_doc("users", "u1", {})),
            httpx.Response(404),
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = _client(http)
            assert await client.document_exists("users", "u1") is True
            assert await client.document_exists("users", "u2") is False


class TestQueryDocuments:
    async def test_single_filter_is_bare(self):
        handler = Recorder(
            httpx.Response(
                200,
                json=[
                    {"document": _doc("users", "u1", {"familyId": {"stringValue": "f1"}})},
                    {"readTime": "2025-01-10T14:30:15.123456Z"},
                ],
            )
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            rows = await _client(http).query_documents("users", where={"familyId": "f1"})

        assert rows == [{"id": "u1", "familyId": "f1"}]
        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE}:runQuery"
        assert json.loads(request.content) == {
            "structuredQuery": {
                "from": [{"collectionId": "users"}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": "familyId"},
                        "op": "EQUAL",
                        "value": {"stringValue": "f1"},
                    }
                },
            }
        }

    async def test_empty_result(self):
        handler = Recorder(httpx.Response(200, json=[{"readTime": "2025-01-10T00:00:00Z"}]))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await _client(http).query_documents("users") == []

    async def test_subcollection_runs_under_parent(self):
        handler = Recorder(httpx.Response(200, json=[]))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).query_documents("families/f1/invites")

        request = handler.requests[0]
        assert str(request.url) == f"{BASE}/families/f1:runQuery"
        body = json.loads(request.content)
        assert body["structuredQuery"]["from"] == [{"collectionId": "invites"}]

    async def test_parent_document_id_escaped(self):
        handler = Recorder(httpx.Response(200, json=[]))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).query_documents("families/f?1/invites")

        request = handler.requests[0]
        assert request.url.raw_path.endswith(b"/documents/families/f%3F1:runQuery")
        assert request.url.query == b""

    async def test_failure_raises(self):
        handler = Recorder(httpx.Response(400, text="bad query"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError) as exc_info:
                await _client(http).query_documents("users", where={"a": 1})

        assert exc_info.value.status_code == 400

    async def test_non_array_response_is_format_error(self):
        handler = Recorder(httpx.Response(200, json={"document": {}}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(FormatError):
                await _client(http).query_documents("users")


class TestBuildStructuredQuery:
    def test_no_filter(self):
        assert build_structured_query("users") == {"from": [{"collectionId": "users"}]}

    def test_multiple_filters_are_anded(self):
        query = build_structured_query("users", {"familyId": "f1", "age": 8}, limit=5, offset=10)

        assert query["where"] == {
            "compositeFilter": {
                "op": "AND",
                "filters": [
                    {
                        "fieldFilter": {
                            "field": {"fieldPath": "familyId"},
                            "op": "EQUAL",
                            "value": {"stringValue": "f1"},
                        }
                    },
                    {
                        "fieldFilter": {
                            "field": {"fieldPath": "age"},
                            "op": "EQUAL",
                            "value": {"integerValue": "8"},
                        }
                    },
                ],
            }
        }
        assert query["limit"] == 5
        assert query["offset"] == 10


class TestDocumentPath:
    def test_plain_segments_unchanged(self):
        assert document_path("users", "u1") == "users/u1"
        assert document_path("families/f1/invites") == "families/f1/invites"

    def test_each_segment_escaped(self):
        assert document_path("users", "a/b?c#d%e") == "users/a%2Fb%3Fc%23d%25e"
        assert document_path("users", "café 1") == "users/caf%C3%A9%201"


class TestUpdateAndDelete:
    async def test_update_is_patch_without_mask(self):
        handler = Recorder(
            httpx.Response(200, json=_doc("users", "u1", {"displayName": {"stringValue": "Bob"}}))
        )
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            doc = await _client(http).update_document("users", "u1", {"displayName": "Bob"})

        assert doc == {"id": "u1", "displayName": "Bob"}
        request = handler.requests[0]
        assert request.method == "PATCH"
        assert str(request.url) == f"{BASE}/users/u1"
        assert "updateMask.fieldPaths" not in request.url.params

    async def test_update_escapes_id(self):
        handler = Recorder(httpx.Response(200, json=_doc("users", "a?b#c", {})))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).update_document("users", "a?b#c", {"displayName": "Bob"})

        request = handler.requests[0]
        assert request.url.raw_path.endswith(b"/documents/users/a%3Fb%23c")
        assert request.url.query == b""

    async def test_delete_escapes_id(self):
        handler = Recorder(httpx.Response(200))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).delete_document("users", "what?x=1#frag")

        request = handler.requests[0]
        assert request.method == "DELETE"
        assert request.url.raw_path.endswith(b"/documents/users/what%3Fx%3D1%23frag")
        assert request.url.query == b""

    @pytest.mark.parametrize("status", [200, 204])
    async def test_delete_success(self, status):
        handler = Recorder(httpx.Response(status))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await _client(http).delete_document("users", "u1")

        assert handler.requests[0].method == "DELETE"

    async def test_delete_failure(self):
        handler = Recorder(httpx.Response(500, text="oops"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError):
                await _client(http).delete_document("users", "u1")


class InvalidatingTokens(StaticTokenSource):
    def __init__(self):
        super().__init__("stale")
        self.invalidated = 0

    def invalidate(self) -> None:
        self.invalidated += 1


class TestClientConfiguration:
    async def test_unauthorized_invalidates_token(self):
        tokens = InvalidatingTokens()
        handler = Recorder(httpx.Response(401, text="UNAUTHENTICATED"))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(StoreError) as exc_info:
                await _client(http, token_source=tokens).get_document("users", "u1")

        assert exc_info.value.status_code == 401
        assert tokens.invalidated == 1

    async def test_emulator_mode(self):
        handler = Recorder(httpx.Response(404))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = FirestoreClient(
                PROJECT, "", "", http_client=http, emulator_host="localhost:8081"
            )
            await client.get_document("users", "u1")

        request = handler.requests[0]
        assert str(request.url) == (
            f"http://localhost:8081/v1/projects/{PROJECT}/databases/(default)/documents/users/u1"
        )
        assert request.headers["Authorization"] == "Bearer owner"

    def test_from_config(self):
        config = AppConfig(
            firebase_project_id="cfg-project",
            firebase_client_email="svc@cfg",
            firebase_private_key="key",
        )
        client = FirestoreClient.from_config(config, http_client=httpx.AsyncClient())
        assert client.base_url == (
            "https://firestore.googleapis.com/v1/projects/cfg-project/databases/(default)/documents"
        )

    async def test_injected_http_client_not_closed(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(Recorder())) as http:
            async with _client(http):
                pass
            assert not http.is_closed


class TestProcessClient:
    def setup_method(self):
        _reset_client()

    def teardown_method(self):
        _reset_client()

    def test_singleton_built_from_environment(self):
        config = AppConfig(
            firebase_project_id="env-project",
            firebase_client_email="svc@env",
            firebase_private_key="key",
            use_firebase_emulator=True,
            firestore_emulator_host="localhost:8081",
        )
        with patch("staccato.config.AppConfig.from_environment", return_value=config) as load:
            first = get_firestore_client()
            second = get_firestore_client()

        assert first is second
        assert load.call_count == 1
        assert first.base_url.startswith("http://localhost:8081/v1/projects/env-project/")

    async def test_close_forgets_client(self):
        config = AppConfig(
            firebase_project_id="env-project",
            firebase_client_email="svc@env",
            firebase_private_key="key",
        )
        with patch("staccato.config.AppConfig.from_environment", return_value=config):
            first = get_firestore_client()
            await close_firestore_client()
            second = get_firestore_client()

        assert first is not second
        await close_firestore_client()

    async def test_explicit_config_skips_environment(self):
        config = AppConfig(
            firebase_project_id="app-project",
            firebase_client_email="svc@app",
            firebase_private_key="key",
            use_firebase_emulator=True,
            firestore_emulator_host="localhost:9090",
        )
        with patch("staccato.config.AppConfig.from_environment") as load:
            client = get_firestore_client(config)

        load.assert_not_called()
        assert client.base_url.startswith("http://localhost:9090/v1/projects/app-project/")
        await close_firestore_client()
