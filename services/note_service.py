"""
Text notes: typed text plus text extracted from an optional uploaded document.
"""

from __future__ import annotations

from typing import Optional

from bson import ObjectId

from errors import NotFoundError
from infrastructure.extractors import extract_text_async
from infrastructure.storage import IncomingFile, LocalFileStorage
from repositories.note_repository import NoteRepository
from repositories.study_material_repository import StudyMaterialRepository
from schemas.models.base import parse_object_id
from schemas.models.note import NoteDoc
from schemas.models.study_material import StudyMaterialDoc
from schemas.models.user import UserDoc
from shared.logging import get_logger

log = get_logger(__name__)


def _join_text(*parts: str) -> str:
    return "\n".join(p for p in parts if p)


class NoteService:
    def __init__(
        self,
        note_repo: NoteRepository,
        material_repo: StudyMaterialRepository,
        storage: LocalFileStorage,
    ) -> None:
        self._notes = note_repo
        self._materials = material_repo
        self._storage = storage

    async def upload_note(
        self,
        user: UserDoc,
        title: Optional[str] = None,
        text: Optional[str] = None,
        file: Optional[IncomingFile] = None,
    ) -> tuple[NoteDoc, StudyMaterialDoc]:
        """Create a note and its (empty) study-material record."""
        body = text or ""
        file_path = None
        if file is not None:
            file_path = await self._storage.save(file)
            body = _join_text(body, await self._extract(file_path))

        note = await self._notes.insert(
            NoteDoc(
                user_id=user.id,
                title=(title or "").strip() or "Untitled",
                original_text=body,
                file_path=file_path,
                file_url=self._storage.public_url(file_path),
            )
        )
        material = await self._materials.insert(
            StudyMaterialDoc(user_id=user.id, note_id=note.id)
        )
        log.info("note_created", note_id=str(note.id), user_id=str(user.id), has_file=file is not None)
        return note, material

    async def list_notes(self, user: UserDoc) -> list[NoteDoc]:
        return await self._notes.list_for_user(user.id)

    async def get_note(self, user: UserDoc, note_id: str) -> NoteDoc:
        return await self._owned(user, note_id)

    async def update_note(
        self,
        user: UserDoc,
        note_id: str,
        title: Optional[str] = None,
        text: Optional[str] = None,
        file: Optional[IncomingFile] = None,
    ) -> NoteDoc:
        note = await self._owned(user, note_id)
        fields: dict = {"original_text": text or note.original_text}
        if title and title.strip():
            fields["title"] = title.strip()

        if file is not None:
            file_path = await self._storage.save(file)
            fields["original_text"] = _join_text(
                fields["original_text"], await self._extract(file_path)
            )
            fields["file_path"] = file_path
            fields["file_url"] = self._storage.public_url(file_path)
            await self._storage.delete(note.file_path)

        updated = await self._notes.update_owned(note.id, user.id, fields)
        if updated is None:
            raise NotFoundError("Note not found")
        return updated

    async def delete_note(self, user: UserDoc, note_id: str) -> None:
        """Delete the note together with its study material and stored file."""
        note = await self._owned(user, note_id)
        await self._materials.delete_for_note(user.id, note.id)
        await self._notes.delete_owned(note.id, user.id)
        await self._storage.delete(note.file_path)
        log.info("note_deleted", note_id=str(note.id), user_id=str(user.id))

    async def _owned(self, user: UserDoc, note_id: str) -> NoteDoc:
        oid: Optional[ObjectId] = parse_object_id(note_id)
        note = await self._notes.find_owned(oid, user.id) if oid else None
        if note is None:
            raise NotFoundError("Note not found")
        return note

    async def _extract(self, file_path: str) -> str:
        try:
            return await extract_text_async(self._storage.path_for(file_path))
        except Exception as e:
            log.warning(
                "text_extraction_failed",
                file=file_path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ""
