"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from slowapi.errors import RateLimitExceeded

from config import AppSettings
from errors import register_error_handlers
from infrastructure.ai.groq import GroqAIProvider
from infrastructure.email.sendgrid import SendGridEmailProvider
from infrastructure.http_client import HttpClient
from infrastructure.storage import LocalFileStorage
from repositories.note_repository import AudioNoteRepository, NoteRepository
from repositories.study_material_repository import StudyMaterialRepository
from repositories.user_repository import UserRepository
from routes.ai_routes import router as ai_router
from routes.audio_routes import router as audio_router
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.limiter import limiter, rate_limit_exceeded_handler
from routes.notes_routes import router as notes_router
from services.token_service import SessionTokenService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


async def ensure_indexes(db) -> None:
    await UserRepository(db["users"]).ensure_indexes()
    await NoteRepository(db["notes"]).ensure_indexes()
    await AudioNoteRepository(db["audio_notes"]).ensure_indexes()
    await StudyMaterialRepository(db["study_materials"]).ensure_indexes()


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format, settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            environment=settings.env,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]

        email_http = HttpClient(timeout=10.0)
        app.state.email_provider = SendGridEmailProvider(
            settings.email, email_http, app_name=settings.app_name
        )
        app.state.ai_provider = GroqAIProvider(settings.ai)

        try:
            await ensure_indexes(app.state.db)
        except Exception as e:
            log.error("ensure_indexes_failed", error=str(e), error_type=type(e).__name__)

        log.info("app_started", env=settings.env, db=settings.db.db_name)
        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await app.state.ai_provider.aclose()
        await email_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Collaborators that need no I/O are ready before the first request
    app.state.settings = settings
    app.state.session_tokens = SessionTokenService(settings.jwt)
    app.state.storage = LocalFileStorage(settings.uploads, settings.backend_url)

    limiter.enabled = settings.rate_limit.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(notes_router)
    app.include_router(audio_router)
    app.include_router(ai_router)

    app.mount(
        "/api/uploads",
        StaticFiles(directory=settings.uploads.upload_dir, check_dir=False),
        name="uploads",
    )

    return app
