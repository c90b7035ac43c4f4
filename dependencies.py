"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Long-lived collaborators (database, email and AI
providers, file storage, session token service) are created once in the app
lifespan and read from app.state; repositories and services are cheap
per-request wrappers around them.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AuthenticationError
from infrastructure.storage import LocalFileStorage
from repositories.note_repository import AudioNoteRepository, NoteRepository
from repositories.study_material_repository import StudyMaterialRepository
from repositories.user_repository import UserRepository
from schemas.models.base import parse_object_id
from schemas.models.user import UserDoc
from services.audio_service import AudioService
from services.auth_service import AuthService
from services.note_service import NoteService
from services.study_service import StudyService
from services.token_service import SessionTokenService
from services.two_factor_service import TwoFactorService

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_session_tokens(request: Request) -> SessionTokenService:
    return request.app.state.session_tokens


def get_storage(request: Request) -> LocalFileStorage:
    return request.app.state.storage


# ── Repositories ─────────────────────────────────────────────────────────────


def get_user_repository(db=Depends(get_db)) -> UserRepository:
    return UserRepository(db["users"])


def get_note_repository(db=Depends(get_db)) -> NoteRepository:
    return NoteRepository(db["notes"])


def get_audio_repository(db=Depends(get_db)) -> AudioNoteRepository:
    return AudioNoteRepository(db["audio_notes"])


def get_study_material_repository(db=Depends(get_db)) -> StudyMaterialRepository:
    return StudyMaterialRepository(db["study_materials"])


# ── Services ─────────────────────────────────────────────────────────────────


def get_two_factor_service(
    request: Request,
    users: UserRepository = Depends(get_user_repository),
    settings: AppSettings = Depends(get_settings),
    session_tokens: SessionTokenService = Depends(get_session_tokens),
) -> TwoFactorService:
    return TwoFactorService(
        users, request.app.state.email_provider, session_tokens, settings.two_factor
    )


def get_auth_service(
    request: Request,
    users: UserRepository = Depends(get_user_repository),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
    settings: AppSettings = Depends(get_settings),
    session_tokens: SessionTokenService = Depends(get_session_tokens),
) -> AuthService:
    return AuthService(
        users,
        request.app.state.email_provider,
        session_tokens,
        two_factor,
        client_url=settings.client_url,
    )


def get_note_service(
    request: Request,
    notes: NoteRepository = Depends(get_note_repository),
    materials: StudyMaterialRepository = Depends(get_study_material_repository),
) -> NoteService:
    return NoteService(notes, materials, request.app.state.storage)


def get_audio_service(
    request: Request,
    audio: AudioNoteRepository = Depends(get_audio_repository),
) -> AudioService:
    return AudioService(audio, request.app.state.storage, request.app.state.ai_provider)


def get_study_service(
    request: Request,
    notes: NoteRepository = Depends(get_note_repository),
    audio: AudioNoteRepository = Depends(get_audio_repository),
    materials: StudyMaterialRepository = Depends(get_study_material_repository),
) -> StudyService:
    return StudyService(notes, audio, materials, request.app.state.ai_provider)


# ── Authentication ───────────────────────────────────────────────────────────


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session_tokens: SessionTokenService = Depends(get_session_tokens),
    users: UserRepository = Depends(get_user_repository),
) -> UserDoc:
    """Resolve the bearer JWT to the current user or raise 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")

    claims = session_tokens.verify(credentials.credentials)
    user_id = parse_object_id(claims.get("sub"))
    user = await users.find_by_id(user_id) if user_id else None
    if user is None:
        raise AuthenticationError("Not authorized, user not found")
    return user
