"""OAuth2 access tokens for a Google service account.

Tokens are obtained with the JWT-bearer grant: a short-lived assertion is
signed RS256 with the service-account private key and exchanged at the Google
token endpoint for a bearer token.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

import httpx
import jwt
from pydantic import BaseModel, ValidationError

from staccato.persistence.errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
DATASTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

ASSERTION_LIFETIME_S = 3600
# A token is treated as expired this many seconds before its stated expiry.
EXPIRY_MARGIN_S = 60


class ServiceAccountInfo(BaseModel):
    """Subset of a Google service-account JSON key."""

    project_id: str
    client_email: str
    private_key: str
    private_key_id: str | None = None
    client_id: str | None = None
    token_uri: str = TOKEN_URI

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceAccountInfo":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise ValueError(f"Invalid service account file {path}: {exc}") from exc


@dataclass(frozen=True)
class AccessToken:
    """Bearer token with its absolute expiry (epoch seconds, margin applied)."""

    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@runtime_checkable
class TokenSource(Protocol):
    """Supplies bearer tokens to the Firestore client."""

    async def get_token(self) -> str: ...

    def invalidate(self) -> None: ...


def normalize_private_key(private_key: str) -> str:
    """Turn literal ``\\n`` sequences (common in env vars) into newlines."""
    return private_key.replace("\\n", "\n")


class StaticTokenSource:
    """Always returns the same token (Firestore emulator, tests)."""

    def __init__(self, token: str = "owner"):
        self._token = token

    async def get_token(self) -> str:
        return self._token

    def invalidate(self) -> None:
        pass


class ServiceAccountTokenSource:
    """Caches one access token and refreshes it when it nears expiry.

    Refreshes are serialised with an ``asyncio.Lock`` so that concurrent
    callers observing an expired token trigger a single exchange.
    """

    def __init__(
        self,
        service_account_email: str,
        private_key: str,
        http_client: httpx.AsyncClient,
        *,
        private_key_id: str | None = None,
        token_uri: str = TOKEN_URI,
        scope: str = DATASTORE_SCOPE,
        clock: Callable[[], float] = time.time,
    ):
        self._email = service_account_email
        self._private_key = normalize_private_key(private_key)
        self._private_key_id = private_key_id
        self._http = http_client
        self._token_uri = token_uri
        self._scope = scope
        self._clock = clock
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()

    @property
    def cached_token(self) -> AccessToken | None:
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a fresh one."""
        self._token = None

    async def get_token(self) -> str:
        """Return a bearer token valid for at least ``EXPIRY_MARGIN_S`` more seconds."""
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token.token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                return token.token
            self._token = await self._fetch_token()
            return self._token.token

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def build_assertion(self, now: float) -> str:
        """Sign the JWT-bearer assertion for the token endpoint."""
        issued_at = int(now)
        claims = {
            "iss": self._email,
            "scope": self._scope,
            "aud": self._token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_S,
        }
        headers = {"kid": self._private_key_id} if self._private_key_id else None
        try:
            return jwt.encode(claims, self._private_key, algorithm="RS256", headers=headers)
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            logger.error("Cannot sign service account assertion: %s", exc)
            raise AuthError(f"Invalid service account private key: {exc}") from exc

    async def _fetch_token(self) -> AccessToken:
        logger.debug("Requesting access token for %s", self._email)
        assertion = self.build_assertion(self._clock())

        try:
            resp = await self._http.post(
                self._token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            )
        except httpx.HTTPError as exc:
            logger.error("Token endpoint unreachable: %s", exc)
            raise AuthError(f"Failed to reach token endpoint: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                "Access token request failed: %s %s", resp.status_code, resp.text
            )
            raise AuthError(
                f"Failed to generate access token: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", ASSERTION_LIFETIME_S))
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError(
                f"Malformed token response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        expires_at = self._clock() + expires_in - EXPIRY_MARGIN_S
        logger.info("Obtained access token for %s (expires in %ss)", self._email, expires_in)
        return AccessToken(token=access_token, expires_at=expires_at)
