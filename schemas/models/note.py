"""
Note and audio note document models.

NoteDoc       — `notes` collection; typed text plus text extracted from an
                optional uploaded document.
AudioNoteDoc  — `audio_notes` collection; an uploaded recording and its
                transcription.
"""

from __future__ import annotations

from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class NoteDoc(MongoBaseModel):
    user_id: PyObjectId
    title: str = "Untitled"
    original_text: str = ""
    file_path: Optional[str] = None  # stored filename inside the upload dir
    file_url: Optional[str] = None


class AudioNoteDoc(MongoBaseModel):
    user_id: PyObjectId
    title: str = "Untitled Audio"
    file_path: Optional[str] = None  # stored filename inside the upload dir
    file_url: Optional[str] = None
    transcription: str = ""
