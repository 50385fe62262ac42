"""Generic async Firestore repository over the REST document client."""

from __future__ import annotations

import logging
from typing import Any, Generic, Type, TypeVar

from staccato.contracts.common import FirestoreModel
from staccato.persistence.errors import ConflictError, DocumentNotFoundError, StoreError
from staccato.persistence.firestore_client import FirestoreClient, get_firestore_client

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=FirestoreModel)


class FirestoreRepository(Generic[T]):
    """CRUD for a top-level collection whose documents are keyed by ``entity.id``.

    Serialization relies entirely on the contract's ``to_firestore()``
    and ``from_firestore()`` methods, with no extra mapping layer.

    Existence checks before writes are best-effort: a concurrent writer can
    slip in between the check and the write. On create, Firestore's own 409
    is mapped to :class:`ConflictError` as well.
    """

    def __init__(
        self,
        model_class: Type[T],
        collection_name: str,
        client: FirestoreClient | None = None,
    ):
        self._model_class = model_class
        self._collection_name = collection_name
        self._client_override = client

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def _client(self) -> FirestoreClient:
        if self._client_override is not None:
            return self._client_override
        return get_firestore_client()

    def _hydrate(self, data: dict[str, Any]) -> T:
        return self._model_class.from_firestore(data)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(self, doc_id: str) -> T | None:
        """Fetch a single document by ID. Returns *None* if missing."""
        data = await self._client.get_document(self._collection_name, doc_id)
        if data is None:
            return None
        return self._hydrate(data)

    async def find_where(
        self,
        where: dict[str, Any],
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[T]:
        """Equality query on one or more fields."""
        rows = await self._client.query_documents(
            self._collection_name, where=where, limit=limit, offset=offset
        )
        return [self._hydrate(row) for row in rows]

    async def exists(self, doc_id: str) -> bool:
        return await self._client.document_exists(self._collection_name, doc_id)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, entity: T) -> T:
        """Create a document under ``entity.id``.

        Raises :class:`ConflictError` if the ID is already taken.
        """
        doc_id = entity.id
        if await self.exists(doc_id):
            raise ConflictError(self._collection_name, doc_id)

        try:
            data = await self._client.create_document(
                self._collection_name, entity.to_firestore(), document_id=doc_id
            )
        except StoreError as exc:
            if exc.status_code == 409:
                raise ConflictError(self._collection_name, doc_id) from exc
            raise

        logger.info("Created %s/%s", self._collection_name, doc_id)
        return self._hydrate(data)

    async def update(self, entity: T) -> T:
        """Replace every stored field of an existing document."""
        doc_id = entity.id
        if not await self.exists(doc_id):
            raise DocumentNotFoundError(self._collection_name, doc_id)

        data = await self._client.update_document(
            self._collection_name, doc_id, entity.to_firestore()
        )
        logger.info("Updated %s/%s", self._collection_name, doc_id)
        return self._hydrate(data)

    async def delete(self, doc_id: str) -> None:
        """Delete an existing document."""
        if not await self.exists(doc_id):
            raise DocumentNotFoundError(self._collection_name, doc_id)

        await self._client.delete_document(self._collection_name, doc_id)
        logger.info("Deleted %s/%s", self._collection_name, doc_id)
