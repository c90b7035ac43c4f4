"""
Text note routes under /api/notes. All endpoints require a session.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from dependencies import get_current_user, get_note_service, get_storage
from infrastructure.storage import LocalFileStorage
from routes.uploads import read_upload
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.dto.responses.study import (
    NoteResponse,
    NoteUploadResponse,
    StudyMaterialResponse,
)
from schemas.models.user import UserDoc
from services.note_service import NoteService

router = APIRouter(
    prefix="/api/notes",
    tags=["notes"],
    responses={404: {"model": ErrorResponse}},
)


@router.post("/upload", response_model=NoteUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_note(
    title: Optional[str] = Form(None),
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: UserDoc = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
    storage: LocalFileStorage = Depends(get_storage),
) -> NoteUploadResponse:
    note, material = await notes.upload_note(user, title, text, await read_upload(file, storage))
    return NoteUploadResponse(
        note=NoteResponse.from_doc(note),
        study_material=StudyMaterialResponse.from_doc(material),
    )


@router.get("", response_model=list[NoteResponse])
async def list_notes(
    user: UserDoc = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> list[NoteResponse]:
    return [NoteResponse.from_doc(n) for n in await notes.list_notes(user)]


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: str,
    user: UserDoc = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return NoteResponse.from_doc(await notes.get_note(user, note_id))


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: str,
    title: Optional[str] = Form(None),
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: UserDoc = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
    storage: LocalFileStorage = Depends(get_storage),
) -> NoteResponse:
    note = await notes.update_note(user, note_id, title, text, await read_upload(file, storage))
    return NoteResponse.from_doc(note)


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: str,
    user: UserDoc = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> MessageResponse:
    await notes.delete_note(user, note_id)
    return MessageResponse(message="Note and linked study material deleted successfully")
