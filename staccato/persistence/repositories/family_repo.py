"""Repository for families."""

from __future__ import annotations

from staccato.contracts.family import Family
from staccato.persistence.firestore_client import FirestoreClient
from staccato.persistence.repositories.base import FirestoreRepository


class FamilyRepository(FirestoreRepository[Family]):
    def __init__(self, client: FirestoreClient | None = None):
        super().__init__(Family, "families", client)

    async def find_by_primary_user_id(
        self,
        primary_user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Family]:
        """Families administered by ``primary_user_id``."""
        return await self.find_where(
            {"primaryUserId": primary_user_id}, limit=limit, offset=offset
        )
