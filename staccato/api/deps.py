"""FastAPI dependency injection wiring."""

from __future__ import annotations

from fastapi import Depends

from staccato.api.auth import UserClaims, get_app_config, verify_firebase_token
from staccato.config import AppConfig
from staccato.persistence.firestore_client import FirestoreClient, get_firestore_client
from staccato.persistence.repositories.family_repo import FamilyRepository
from staccato.persistence.repositories.user_repo import UserRepository
from staccato.services.family_service import FamilyService
from staccato.services.user_service import UserService

# ------------------------------------------------------------------
# Current user
# ------------------------------------------------------------------


def get_current_user(
    claims: UserClaims = Depends(verify_firebase_token),
) -> str:
    """Return the authenticated user ID."""
    return claims.uid


# ------------------------------------------------------------------
# Firestore (process-wide client, shared token cache)
# ------------------------------------------------------------------


def get_firestore(config: AppConfig = Depends(get_app_config)) -> FirestoreClient:
    return get_firestore_client(config)


# ------------------------------------------------------------------
# Repositories and services (stateless, one instance per request)
# ------------------------------------------------------------------


def get_user_repo(client: FirestoreClient = Depends(get_firestore)) -> UserRepository:
    return UserRepository(client)


def get_family_repo(client: FirestoreClient = Depends(get_firestore)) -> FamilyRepository:
    return FamilyRepository(client)


def get_user_service(users: UserRepository = Depends(get_user_repo)) -> UserService:
    return UserService(users)


def get_family_service(
    families: FamilyRepository = Depends(get_family_repo),
    users: UserRepository = Depends(get_user_repo),
) -> FamilyService:
    return FamilyService(families, users)
