"""Request authentication with Firebase Auth ID tokens.

The caller sends ``Authorization: Bearer <ID token>``. Verification runs in
a worker thread because the Admin SDK fetches Google's signing certificates
synchronously.

Two development shortcuts are driven by :class:`~staccato.config.AppConfig`:

- ``STACCATO_AUTH_DISABLED=1`` authenticates every request as ``dev-user``.
- In emulator mode a request without an ``Authorization`` header may name its
  user in the ``x-user-id`` header.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from fastapi import Depends, Header, Request
from firebase_admin import auth as firebase_auth

from staccato.config import AppConfig

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when a request cannot be authenticated."""

    def __init__(self, message: str, code: str, status_code: int = 401):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


@dataclass
class UserClaims:
    uid: str
    email: str | None = None
    name: str | None = None
    is_anonymous: bool = False


DEV_USER = UserClaims(uid="dev-user", email="dev@localhost", name="Dev User")


def get_app_config(request: Request) -> AppConfig:
    """The configuration the running app was built with."""
    return request.app.state.config


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Unauthorized (no ID token)", "MISSING_AUTH_TOKEN")
    return token.strip()


def verify_id_token(token: str) -> UserClaims:
    """Verify ``token`` with the Admin SDK (blocking)."""
    try:
        decoded = firebase_auth.verify_id_token(token)
    except firebase_auth.CertificateFetchError as exc:
        logger.error("Cannot fetch Firebase signing certificates: %s", exc)
        raise AuthenticationError(
            "Authentication service unavailable", "AUTH_SERVICE_UNAVAILABLE", status_code=503
        ) from exc
    except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError, ValueError) as exc:
        logger.info("Rejected ID token: %s", exc)
        raise AuthenticationError(
            "Unauthorized (token verification failed)", "INVALID_AUTH_TOKEN"
        ) from exc

    provider = decoded.get("firebase", {}).get("sign_in_provider")
    return UserClaims(
        uid=decoded["uid"],
        email=decoded.get("email"),
        name=decoded.get("name"),
        is_anonymous=provider == "anonymous",
    )


async def verify_firebase_token(
    authorization: str | None = Header(None, description="Bearer <Firebase ID token>"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
    config: AppConfig = Depends(get_app_config),
) -> UserClaims:
    """Authenticate the request and return the caller's claims."""
    if config.auth_disabled:
        return DEV_USER

    if config.use_firebase_emulator and not authorization:
        if x_user_id:
            return UserClaims(uid=x_user_id)
        raise AuthenticationError("Unauthorized (no ID token)", "MISSING_AUTH_TOKEN")

    token = _bearer_token(authorization)
    return await asyncio.to_thread(verify_id_token, token)
