"""
Repository for the `study_materials` collection.

A study-material record is keyed by its owner plus exactly one source:
``note_id`` for text notes or ``audio_id`` for audio notes.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument

from repositories.base_repository import BaseRepository
from schemas.models.study_material import StudyMaterialDoc
from shared.datetime_utils import utcnow

SourceKind = Literal["note", "audio"]

_SOURCE_FIELD: dict[str, str] = {"note": "note_id", "audio": "audio_id"}


class StudyMaterialRepository(BaseRepository[StudyMaterialDoc]):
    model = StudyMaterialDoc

    async def find_for_source(
        self, user_id: ObjectId, source_id: ObjectId
    ) -> Optional[StudyMaterialDoc]:
        """Find the record generated from *source_id*, whichever kind it is."""
        data = await self._col.find_one(
            {
                "user_id": user_id,
                "$or": [{"note_id": source_id}, {"audio_id": source_id}],
            }
        )
        return self._to_model(data)

    async def upsert_for_source(
        self,
        user_id: ObjectId,
        kind: SourceKind,
        source_id: ObjectId,
        fields: dict[str, Any],
    ) -> StudyMaterialDoc:
        """Create or update the record for a source; only *fields* are overwritten."""
        now = utcnow()
        on_insert: dict[str, Any] = {
            "summaries": [],
            "flashcards": [],
            "quizzes": [],
            "created_at": now,
        }
        for key in fields:
            on_insert.pop(key, None)
        data = await self._col.find_one_and_update(
            {"user_id": user_id, _SOURCE_FIELD[kind]: source_id},
            {
                "$set": {**fields, "updated_at": now},
                "$setOnInsert": on_insert,
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self.model.from_mongo(data)

    async def delete_for_note(self, user_id: ObjectId, note_id: ObjectId) -> int:
        result = await self._col.delete_many({"user_id": user_id, "note_id": note_id})
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("user_id", ASCENDING), ("note_id", ASCENDING)])
        await self._col.create_index([("user_id", ASCENDING), ("audio_id", ASCENDING)])
