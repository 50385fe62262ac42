"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Load .env file from project root (must be before other imports)
load_dotenv()
import firebase_admin  # noqa: E402
import uvicorn  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from firebase_admin import credentials  # noqa: E402
from firebase_admin.exceptions import FirebaseError  # noqa: E402

from staccato.api.auth import AuthenticationError  # noqa: E402
from staccato.api.routes import families, users  # noqa: E402
from staccato.config import AppConfig, configure_logging  # noqa: E402
from staccato.persistence.errors import (  # noqa: E402
    ConflictError,
    DocumentNotFoundError,
    PersistenceError,
)
from staccato.persistence.firestore_client import close_firestore_client  # noqa: E402
from staccato.persistence.service_account import normalize_private_key  # noqa: E402
from staccato.services.errors import (  # noqa: E402
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def init_firebase_admin(config: AppConfig) -> None:
    """Initialize the default Firebase Admin app used to verify ID tokens."""
    try:
        firebase_admin.get_app()
        logger.info("Firebase Admin SDK already initialized")
        return
    except ValueError:
        pass

    options = {"projectId": config.firebase_project_id}
    try:
        if config.use_firebase_emulator:
            firebase_admin.initialize_app(options=options)
        else:
            cert = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": config.firebase_project_id,
                    "private_key_id": config.firebase_private_key_id,
                    "private_key": normalize_private_key(config.firebase_private_key),
                    "client_email": config.firebase_client_email,
                    "client_id": config.firebase_client_id,
                    "token_uri": config.firebase_token_uri,
                }
            )
            firebase_admin.initialize_app(cert, options=options)
        logger.info("Firebase Admin SDK initialized for %s", config.firebase_project_id)
    except (ValueError, FirebaseError) as exc:
        logger.warning("Firebase Admin SDK init failed: %s", exc)


# ------------------------------------------------------------------
# Error mapping
# ------------------------------------------------------------------


async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.message, "code": exc.code}
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": exc.message, "code": exc.code, "field": exc.field},
        )
    status = 403 if isinstance(exc, PermissionDeniedError) else 500
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    if isinstance(exc, DocumentNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc), "code": "NOT_FOUND"})
    if isinstance(exc, ConflictError):
        return JSONResponse(
            status_code=409, content={"detail": str(exc), "code": "RESOURCE_CONFLICT"}
        )
    logger.error("Document store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": "Document store unavailable", "code": "STORE_ERROR"},
    )


# ------------------------------------------------------------------
# Application
# ------------------------------------------------------------------


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the API for ``config`` (read from the environment when omitted)."""
    if config is None:
        config = AppConfig.from_environment()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize logging and Firebase Admin on startup; close Firestore on shutdown."""
        configure_logging(config.log_level)
        init_firebase_admin(config)
        logger.info(
            "Staccato API starting (environment=%s, emulator=%s)",
            config.environment,
            config.use_firebase_emulator,
        )
        yield
        await close_firestore_client()

    app = FastAPI(
        title="Staccato API",
        description="Family management backend",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None if config.is_production else "/docs",
        redoc_url=None if config.is_production else "/redoc",
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(users.router, prefix="/api")
    app.include_router(families.router, prefix="/api")

    app.add_exception_handler(AuthenticationError, auth_error_handler)
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(PersistenceError, persistence_error_handler)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


def main() -> None:
    """Serve the API on the configured port."""
    config = AppConfig.from_environment()
    uvicorn.run(
        create_app(config),
        host="0.0.0.0",
        port=config.port,
        log_level=config.log_level.lower(),
    )
