"""Shared fixtures for service tests."""

from __future__ import annotations

import pytest

from staccato.persistence.repositories.family_repo import FamilyRepository
from staccato.persistence.repositories.user_repo import UserRepository
from staccato.services.family_service import FamilyService
from staccato.services.user_service import UserService
from tests.persistence.fake_firestore import FakeFirestoreClient


@pytest.fixture
def fake_client():
    return FakeFirestoreClient()


@pytest.fixture
def user_repo(fake_client):
    return UserRepository(fake_client)


@pytest.fixture
def family_repo(fake_client):
    return FamilyRepository(fake_client)


@pytest.fixture
def user_service(user_repo):
    return UserService(user_repo)


@pytest.fixture
def family_service(family_repo, user_repo):
    return FamilyService(family_repo, user_repo)
