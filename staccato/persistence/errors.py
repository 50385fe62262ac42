"""Persistence-specific exceptions."""

from __future__ import annotations


class PersistenceError(Exception):
    """Base exception for all persistence errors."""


class StoreError(PersistenceError):
    """Raised when a Firestore REST call fails.

    ``status_code`` is the HTTP status of the rejected request, or ``None``
    when the request never produced a response (connection refused, timeout).
    ``body`` holds the raw response text for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AuthError(StoreError):
    """Raised when a service-account access token cannot be obtained."""


class FormatError(PersistenceError):
    """Raised when a Firestore response does not have the expected JSON shape."""


class DocumentNotFoundError(PersistenceError):
    """Raised when a Firestore document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")


class ConflictError(PersistenceError):
    """Raised when creating a document whose ID is already taken."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} already exists")
