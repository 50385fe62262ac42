"""Repository for users."""

from __future__ import annotations

from staccato.contracts.user import User
from staccato.persistence.firestore_client import FirestoreClient
from staccato.persistence.repositories.base import FirestoreRepository


class UserRepository(FirestoreRepository[User]):
    def __init__(self, client: FirestoreClient | None = None):
        super().__init__(User, "users", client)

    async def find_by_family_id(
        self,
        family_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[User]:
        return await self.find_where({"familyId": family_id}, limit=limit, offset=offset)
