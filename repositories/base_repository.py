"""
Shared plumbing for the per-collection repositories.

Each repository wraps one pymongo ``AsyncCollection`` and converts raw
documents to their Pydantic document model on the way out. Owner-scoped
helpers always filter on ``user_id`` so one user can never read or mutate
another user's documents.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from bson import ObjectId
from pymongo import ReturnDocument

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import utcnow

ModelT = TypeVar("ModelT", bound=MongoBaseModel)


class BaseRepository(Generic[ModelT]):
    model: Type[ModelT]

    def __init__(self, collection) -> None:
        self._col = collection

    def _to_model(self, data: Optional[dict]) -> Optional[ModelT]:
        return self.model.from_mongo(data)

    async def insert(self, doc: ModelT) -> ModelT:
        """Insert *doc*, stamping created/updated times, and return it with its id."""
        now = utcnow()
        doc.created_at = doc.created_at or now
        doc.updated_at = now
        result = await self._col.insert_one(doc.to_mongo())
        doc.id = result.inserted_id
        return doc

    async def find_by_id(self, doc_id: ObjectId) -> Optional[ModelT]:
        return self._to_model(await self._col.find_one({"_id": doc_id}))

    async def _find_one_and_set(
        self, query: dict, fields: dict[str, Any]
    ) -> Optional[ModelT]:
        data = await self._col.find_one_and_update(
            query,
            {"$set": {**fields, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(data)


class OwnedRepository(BaseRepository[ModelT]):
    """Repository for documents that belong to exactly one user."""

    async def list_for_user(self, user_id: ObjectId) -> list[ModelT]:
        """Return the user's documents, newest first."""
        cursor = self._col.find({"user_id": user_id}).sort("created_at", -1)
        return [self.model.from_mongo(d) async for d in cursor]

    async def find_owned(
        self, doc_id: ObjectId, user_id: ObjectId
    ) -> Optional[ModelT]:
        return self._to_model(
            await self._col.find_one({"_id": doc_id, "user_id": user_id})
        )

    async def update_owned(
        self, doc_id: ObjectId, user_id: ObjectId, fields: dict[str, Any]
    ) -> Optional[ModelT]:
        return await self._find_one_and_set(
            {"_id": doc_id, "user_id": user_id}, fields
        )

    async def delete_owned(self, doc_id: ObjectId, user_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": doc_id, "user_id": user_id})
        return result.deleted_count > 0
