"""Staccato data contracts: Pydantic v2 models for family management.

Data authority
--------------

**Firestore** (source of truth, accessed through the REST client):
- ``User``: ``/users/{id}``
- ``Family``: ``/families/{id}`` (settings embedded as a map)

Calculated (never persisted)
----------------------------
- ``FamilyMemberSummary`` / ``FamilyWithMembersResponse``: API response DTOs
- ``UserCreateRequest`` / ``FamilyCreateRequest`` / ``FamilyUpdateRequest``: API request DTOs
"""

from staccato.contracts.enums import UserPermissionLevel
from staccato.contracts.common import FirestoreModel
from staccato.contracts.user import User, UserCreateRequest
from staccato.contracts.family import (
    Family,
    FamilyCreateRequest,
    FamilyMemberSummary,
    FamilySettings,
    FamilyUpdateRequest,
    FamilyWithMembersResponse,
)

__all__ = [
    "Family",
    "FamilyCreateRequest",
    "FamilyMemberSummary",
    "FamilySettings",
    "FamilyUpdateRequest",
    "FamilyWithMembersResponse",
    "FirestoreModel",
    "User",
    "UserCreateRequest",
    "UserPermissionLevel",
]
