"""
Audio note routes under /api/audio. All endpoints require a session.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from dependencies import get_audio_service, get_current_user, get_storage
from infrastructure.storage import LocalFileStorage
from routes.uploads import read_upload
from schemas.dto.requests.study import TranslateRequest
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.dto.responses.study import AudioNoteResponse, TranslationResponse
from schemas.models.user import UserDoc
from services.audio_service import AudioService

router = APIRouter(
    prefix="/api/audio",
    tags=["audio"],
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.post("/transcribe", response_model=AudioNoteResponse)
async def upload_audio(
    title: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
    storage: LocalFileStorage = Depends(get_storage),
) -> AudioNoteResponse:
    note = await audio.upload_audio(user, title, await read_upload(file, storage))
    return AudioNoteResponse.from_doc(note)


@router.post("/translate", response_model=TranslationResponse)
async def translate_transcript(
    body: TranslateRequest,
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> TranslationResponse:
    return TranslationResponse(translated=await audio.translate(body.transcript, body.target_lang))


@router.get("", response_model=list[AudioNoteResponse])
async def list_audio(
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> list[AudioNoteResponse]:
    return [AudioNoteResponse.from_doc(a) for a in await audio.list_audio(user)]


@router.get("/{audio_id}", response_model=AudioNoteResponse)
async def get_audio(
    audio_id: str,
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> AudioNoteResponse:
    return AudioNoteResponse.from_doc(await audio.get_audio(user, audio_id))


@router.put("/{audio_id}", response_model=AudioNoteResponse)
async def update_audio(
    audio_id: str,
    title: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
    storage: LocalFileStorage = Depends(get_storage),
) -> AudioNoteResponse:
    note = await audio.update_audio(user, audio_id, title, await read_upload(file, storage))
    return AudioNoteResponse.from_doc(note)


@router.delete("/{audio_id}", response_model=MessageResponse)
async def delete_audio(
    audio_id: str,
    user: UserDoc = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> MessageResponse:
    await audio.delete_audio(user, audio_id)
    return MessageResponse(message="Audio note deleted")
