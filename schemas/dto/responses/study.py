"""
Response DTOs for notes, audio notes and AI study material.

NoteResponse / AudioNoteResponse  — CRUD responses under /api/notes, /api/audio
StudyMaterialResponse             — GET /api/ai/material/{id}
GeneratedMaterialsResponse        — POST /api/ai/generate
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.note import AudioNoteDoc, NoteDoc
from schemas.models.study_material import Flashcard, QuizQuestion, StudyMaterialDoc


def _str_id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


class NoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    original_text: str
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: NoteDoc) -> "NoteResponse":
        return cls(
            id=str(doc.id),
            title=doc.title,
            original_text=doc.original_text,
            file_url=doc.file_url,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class AudioNoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    file_url: Optional[str] = None
    transcription: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: AudioNoteDoc) -> "AudioNoteResponse":
        return cls(
            id=str(doc.id),
            title=doc.title,
            file_url=doc.file_url,
            transcription=doc.transcription,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class GeneratedMaterialsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summaries: list[str]
    flashcards: list[Flashcard]
    quizzes: list[QuizQuestion]

    @classmethod
    def from_doc(cls, doc: StudyMaterialDoc) -> "GeneratedMaterialsResponse":
        return cls(summaries=doc.summaries, flashcards=doc.flashcards, quizzes=doc.quizzes)


class StudyMaterialResponse(GeneratedMaterialsResponse):
    id: str
    note_id: Optional[str] = None
    audio_id: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: StudyMaterialDoc) -> "StudyMaterialResponse":
        return cls(
            id=str(doc.id),
            note_id=_str_id(doc.note_id),
            audio_id=_str_id(doc.audio_id),
            summaries=doc.summaries,
            flashcards=doc.flashcards,
            quizzes=doc.quizzes,
        )


class NoteUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note: NoteResponse
    study_material: StudyMaterialResponse


class AnswerResponse(BaseModel):
    answer: str


class MindmapResponse(BaseModel):
    mindmap: dict[str, Any]


class MarkdownResponse(BaseModel):
    markdown: str


class TranslationResponse(BaseModel):
    translated: str
