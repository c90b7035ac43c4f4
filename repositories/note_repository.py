"""Repositories for the `notes` and `audio_notes` collections."""

from __future__ import annotations

from pymongo import ASCENDING, DESCENDING

from repositories.base_repository import OwnedRepository
from schemas.models.note import AudioNoteDoc, NoteDoc


class NoteRepository(OwnedRepository[NoteDoc]):
    model = NoteDoc

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])


class AudioNoteRepository(OwnedRepository[AudioNoteDoc]):
    model = AudioNoteDoc

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
