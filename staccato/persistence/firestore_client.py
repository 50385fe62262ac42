"""Firestore REST client authenticated with a service account.

Talks to the Firestore v1 REST API directly with ``httpx`` instead of the
vendor SDK. Documents are exchanged with callers as plain ``dict`` objects;
see :mod:`staccato.persistence.firestore_values` for the wire conversion.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping
from urllib.parse import quote

import httpx

from staccato.persistence.errors import FormatError, StoreError
from staccato.persistence.firestore_values import (
    from_firestore_document,
    to_firestore_document,
    to_firestore_value,
)
from staccato.persistence.service_account import (
    TOKEN_URI,
    ServiceAccountTokenSource,
    StaticTokenSource,
    TokenSource,
)

if TYPE_CHECKING:
    from staccato.config import AppConfig

logger = logging.getLogger(__name__)

FIRESTORE_URL = "https://firestore.googleapis.com/v1"
EMULATOR_TOKEN = "owner"

_client: "FirestoreClient | None" = None


def document_path(collection: str, document_id: str | None = None) -> str:
    """Percent-encode a collection path (and document ID) for use in a URL.

    IDs may contain characters such as ``?``, ``#`` or ``%`` that would
    otherwise change which resource the request targets.
    """
    segments = collection.split("/")
    if document_id is not None:
        segments.append(document_id)
    return "/".join(quote(segment, safe="") for segment in segments)


def build_structured_query(
    collection_id: str,
    where: Mapping[str, Any] | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> dict[str, Any]:
    """Build a ``structuredQuery`` with equality filters joined by AND.

    A single filter is sent bare; two or more are wrapped in a
    ``compositeFilter``.
    """
    query: dict[str, Any] = {"from": [{"collectionId": collection_id}]}

    if where:
        filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": field},
                    "op": "EQUAL",
                    "value": to_firestore_value(value),
                }
            }
            for field, value in where.items()
        ]
        if len(filters) == 1:
            query["where"] = filters[0]
        else:
            query["where"] = {"compositeFilter": {"op": "AND", "filters": filters}}

    if limit is not None:
        query["limit"] = limit
    if offset is not None:
        query["offset"] = offset

    return query


class FirestoreClient:
    """Async document CRUD and equality queries over the Firestore REST API.

    No network traffic happens at construction; the first operation fetches
    an access token. Pass ``emulator_host`` (``host:port``) to target the
    local Firestore emulator, which accepts a fixed ``owner`` token.
    """

    def __init__(
        self,
        project_id: str,
        service_account_email: str,
        private_key: str,
        *,
        private_key_id: str | None = None,
        token_uri: str = TOKEN_URI,
        http_client: httpx.AsyncClient | None = None,
        token_source: TokenSource | None = None,
        emulator_host: str | None = None,
    ):
        self._project_id = project_id
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=30.0)
        self._owns_http = http_client is None

        root = f"http://{emulator_host}/v1" if emulator_host else FIRESTORE_URL
        self._base_url = f"{root}/projects/{project_id}/databases/(default)/documents"

        if token_source is None:
            if emulator_host:
                token_source = StaticTokenSource(EMULATOR_TOKEN)
            else:
                token_source = ServiceAccountTokenSource(
                    service_account_email,
                    private_key,
                    self._http,
                    private_key_id=private_key_id,
                    token_uri=token_uri,
                )
        self._tokens: TokenSource = token_source

    @classmethod
    def from_config(
        cls, config: "AppConfig", http_client: httpx.AsyncClient | None = None
    ) -> "FirestoreClient":
        return cls(
            project_id=config.firebase_project_id,
            service_account_email=config.firebase_client_email,
            private_key=config.firebase_private_key,
            private_key_id=config.firebase_private_key_id,
            token_uri=config.firebase_token_uri,
            http_client=http_client,
            emulator_host=config.firestore_emulator_host,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "FirestoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        document_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a document; Firestore assigns the ID when none is given."""
        logger.debug("Creating document in %s (id=%s)", collection, document_id)
        params = {"documentId": document_id} if document_id is not None else None
        resp = await self._request(
            "POST",
            f"{self._base_url}/{document_path(collection)}",
            "create document",
            json=to_firestore_document(data),
            params=params,
        )
        if not resp.is_success:
            raise self._failure(resp, "create document", collection, document_id)

        document = from_firestore_document(self._json(resp, "create document"))
        logger.debug("Created document %s/%s", collection, document.get("id"))
        return document

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Fetch a document. Returns *None* if it does not exist."""
        logger.debug("Getting document %s/%s", collection, document_id)
        url = f"{self._base_url}/{document_path(collection, document_id)}"
        resp = await self._request("GET", url, "get document")
        if resp.status_code == 404:
            logger.debug("Document %s/%s not found", collection, document_id)
            return None
        if not resp.is_success:
            raise self._failure(resp, "get document", collection, document_id)
        return from_firestore_document(self._json(resp, "get document"))

    async def query_documents(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Run an equality query over one collection.

        ``collection`` may be a sub-collection path such as
        ``families/f1/invites``; the query then runs under the parent document.
        """
        logger.debug(
            "Querying %s where=%s limit=%s offset=%s", collection, where, limit, offset
        )
        parent, _, collection_id = collection.rpartition("/")
        if parent:
            url = f"{self._base_url}/{document_path(parent)}:runQuery"
        else:
            url = f"{self._base_url}:runQuery"
        body = {"structuredQuery": build_structured_query(collection_id, where, limit, offset)}

        resp = await self._request("POST", url, "query documents", json=body)
        if not resp.is_success:
            raise self._failure(resp, "query documents", collection)

        rows = self._json(resp, "query documents")
        if not isinstance(rows, list):
            raise FormatError("runQuery response must be a JSON array")

        documents = [
            from_firestore_document(row["document"])
            for row in rows
            if isinstance(row, Mapping) and "document" in row
        ]
        logger.debug("Query on %s returned %d documents", collection, len(documents))
        return documents

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Replace every field of a document (no update mask)."""
        logger.debug("Updating document %s/%s", collection, document_id)
        resp = await self._request(
            "PATCH",
            f"{self._base_url}/{document_path(collection, document_id)}",
            "update document",
            json=to_firestore_document(data),
        )
        if not resp.is_success:
            raise self._failure(resp, "update document", collection, document_id)
        return from_firestore_document(self._json(resp, "update document"))

    async def delete_document(self, collection: str, document_id: str) -> None:
        logger.debug("Deleting document %s/%s", collection, document_id)
        url = f"{self._base_url}/{document_path(collection, document_id)}"
        resp = await self._request("DELETE", url, "delete document")
        if resp.status_code not in (200, 204):
            raise self._failure(resp, "delete document", collection, document_id)

    async def document_exists(self, collection: str, document_id: str) -> bool:
        """Existence check; not atomic with any later write."""
        return await self.get_document(collection, document_id) is not None

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        token = await self._tokens.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = await self._http.request(method, url, headers=headers, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("Failed to %s: %s", operation, exc)
            raise StoreError(f"Failed to {operation}: {exc}") from exc

        if resp.status_code == 401:
            # Force a fresh token on the next call
            self._tokens.invalidate()
        return resp

    @staticmethod
    def _json(resp: httpx.Response, operation: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise FormatError(f"Failed to {operation}: response is not valid JSON") from exc

    @staticmethod
    def _failure(
        resp: httpx.Response,
        operation: str,
        collection: str,
        document_id: str | None = None,
    ) -> StoreError:
        logger.error(
            "Failed to %s in %s (id=%s): %s %s",
            operation,
            collection,
            document_id,
            resp.status_code,
            resp.text,
        )
        return StoreError(
            f"Failed to {operation}: {resp.status_code} {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )


def get_firestore_client(config: "AppConfig | None" = None) -> FirestoreClient:
    """Return the process-wide client, built lazily on first use.

    ``config`` is only consulted when the client does not exist yet; without
    it the configuration is read from the environment.
    """
    global _client
    if _client is not None:
        return _client

    if config is None:
        from staccato.config import AppConfig

        config = AppConfig.from_environment()
    _client = FirestoreClient.from_config(config)
    if config.use_firebase_emulator:
        logger.info("Using Firestore emulator at %s", config.firestore_emulator_host)
    else:
        logger.info("Using Firestore project %s", config.firebase_project_id)
    return _client


async def close_firestore_client() -> None:
    """Close and forget the process-wide client."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _reset_client() -> None:
    """Reset the singleton (for testing only)."""
    global _client
    _client = None
