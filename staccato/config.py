"""Application configuration loaded from environment variables.

A ``.env`` file in the working directory is loaded first (python-dotenv), so
local development can keep credentials out of the shell environment.

Firebase credentials come either from the individual ``FIREBASE_*`` variables
or from a service-account JSON key referenced by
``GOOGLE_APPLICATION_CREDENTIALS``; explicit variables win over the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from staccato.persistence.service_account import TOKEN_URI, ServiceAccountInfo

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
ENVIRONMENTS = ("development", "staging", "production")
DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


class ConfigurationError(Exception):
    """Raised when a required setting is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    firebase_project_id: str
    firebase_client_email: str
    firebase_private_key: str
    firebase_private_key_id: str | None = None
    firebase_client_id: str | None = None
    firebase_token_uri: str = TOKEN_URI
    port: int = 8080
    log_level: str = "INFO"
    environment: str = "development"
    use_firebase_emulator: bool = False
    firestore_emulator_host: str | None = None
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    auth_disabled: bool = False

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build and validate the configuration.

        ``environ`` defaults to ``os.environ`` after loading ``.env``.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        def get(name: str) -> str | None:
            value = environ.get(name)
            return value if value else None

        account: ServiceAccountInfo | None = None
        credentials_path = get("GOOGLE_APPLICATION_CREDENTIALS")
        if credentials_path:
            try:
                account = ServiceAccountInfo.from_file(credentials_path)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc

        def required(name: str, fallback: str | None) -> str:
            value = get(name) or fallback
            if not value:
                raise ConfigurationError(f"{name} environment variable is required")
            return value

        project_id = required("FIREBASE_PROJECT_ID", account.project_id if account else None)
        client_email = required("FIREBASE_CLIENT_EMAIL", account.client_email if account else None)
        private_key = required("FIREBASE_PRIVATE_KEY", account.private_key if account else None)

        port_str = get("PORT") or "8080"
        try:
            port = int(port_str)
        except ValueError:
            port = 0
        if not 1 <= port <= 65535:
            raise ConfigurationError(
                f"PORT must be a valid integer between 1 and 65535, got: {port_str}"
            )

        log_level = (get("LOG_LEVEL") or "INFO").upper()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got: {log_level}"
            )

        environment = get("ENVIRONMENT") or "development"
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}, got: {environment}"
            )

        use_emulator = (get("USE_FIREBASE_EMULATOR") or "false").lower() == "true"
        emulator_host = get("FIRESTORE_EMULATOR_HOST")
        if use_emulator and not emulator_host:
            raise ConfigurationError(
                "FIRESTORE_EMULATOR_HOST is required when USE_FIREBASE_EMULATOR is true"
            )

        cors = get("CORS_ORIGINS")
        cors_origins = (
            tuple(o.strip() for o in cors.split(",") if o.strip())
            if cors
            else DEFAULT_CORS_ORIGINS
        )

        return cls(
            firebase_project_id=project_id,
            firebase_client_email=client_email,
            firebase_private_key=private_key,
            firebase_private_key_id=get("FIREBASE_PRIVATE_KEY_ID")
            or (account.private_key_id if account else None),
            firebase_client_id=get("FIREBASE_CLIENT_ID")
            or (account.client_id if account else None),
            firebase_token_uri=get("FIREBASE_TOKEN_URI")
            or (account.token_uri if account else TOKEN_URI),
            port=port,
            log_level=log_level,
            environment=environment,
            use_firebase_emulator=use_emulator,
            firestore_emulator_host=emulator_host if use_emulator else None,
            cors_origins=cors_origins,
            auth_disabled=get("STACCATO_AUTH_DISABLED") == "1",
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger for the API process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
