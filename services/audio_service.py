"""
Audio notes: uploaded recordings transcribed by the speech-to-text model,
plus translation of transcripts.
"""

from __future__ import annotations

from typing import Optional

from errors import ExternalServiceError, NotFoundError, ValidationError
from infrastructure.ai.protocol import AIProvider
from infrastructure.storage import IncomingFile, LocalFileStorage
from repositories.note_repository import AudioNoteRepository
from schemas.models.base import parse_object_id
from schemas.models.note import AudioNoteDoc
from schemas.models.user import UserDoc
from shared.logging import get_logger

log = get_logger(__name__)


class AudioService:
    def __init__(
        self,
        audio_repo: AudioNoteRepository,
        storage: LocalFileStorage,
        ai: AIProvider,
    ) -> None:
        self._audio = audio_repo
        self._storage = storage
        self._ai = ai

    async def upload_audio(
        self, user: UserDoc, title: Optional[str], file: Optional[IncomingFile]
    ) -> AudioNoteDoc:
        if file is None:
            raise ValidationError("No audio file uploaded", field="file")

        filename = await self._storage.save(file)
        try:
            transcription = await self._ai.transcribe(self._storage.path_for(filename))
        except ExternalServiceError:
            await self._storage.delete(filename)
            raise

        audio = await self._audio.insert(
            AudioNoteDoc(
                user_id=user.id,
                title=(title or "").strip() or "Untitled Audio",
                file_path=filename,
                file_url=self._storage.public_url(filename),
                transcription=transcription,
            )
        )
        log.info("audio_note_created", audio_id=str(audio.id), user_id=str(user.id))
        return audio

    async def list_audio(self, user: UserDoc) -> list[AudioNoteDoc]:
        return await self._audio.list_for_user(user.id)

    async def get_audio(self, user: UserDoc, audio_id: str) -> AudioNoteDoc:
        return await self._owned(user, audio_id)

    async def update_audio(
        self,
        user: UserDoc,
        audio_id: str,
        title: Optional[str] = None,
        file: Optional[IncomingFile] = None,
    ) -> AudioNoteDoc:
        """Rename and/or replace the recording.

        A replacement file removes the old one; if re-transcription fails the
        previous transcript is kept.
        """
        audio = await self._owned(user, audio_id)
        fields: dict = {}
        if title and title.strip():
            fields["title"] = title.strip()

        if file is not None:
            filename = await self._storage.save(file)
            await self._storage.delete(audio.file_path)
            fields["file_path"] = filename
            fields["file_url"] = self._storage.public_url(filename)
            try:
                fields["transcription"] = await self._ai.transcribe(
                    self._storage.path_for(filename)
                )
            except ExternalServiceError:
                log.warning("audio_retranscription_failed", audio_id=str(audio.id))

        if not fields:
            return audio
        updated = await self._audio.update_owned(audio.id, user.id, fields)
        if updated is None:
            raise NotFoundError("Audio note not found")
        return updated

    async def delete_audio(self, user: UserDoc, audio_id: str) -> None:
        audio = await self._owned(user, audio_id)
        await self._audio.delete_owned(audio.id, user.id)
        await self._storage.delete(audio.file_path)
        log.info("audio_note_deleted", audio_id=str(audio.id), user_id=str(user.id))

    async def translate(self, transcript: str, target_lang: str = "es") -> str:
        if not transcript or not transcript.strip():
            raise ValidationError("Transcript required", field="transcript")
        return await self._ai.translate(transcript, target_lang or "es")

    async def _owned(self, user: UserDoc, audio_id: str) -> AudioNoteDoc:
        oid = parse_object_id(audio_id)
        audio = await self._audio.find_owned(oid, user.id) if oid else None
        if audio is None:
            raise NotFoundError("Audio note not found")
        return audio
