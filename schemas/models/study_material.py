"""
Study material document model.

Maps to the `study_materials` collection. One record per source: either
`note_id` or `audio_id` is set, never both.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel, PyObjectId


class Flashcard(BaseModel):
    question: str
    answer: str


class QuizQuestion(BaseModel):
    question: str
    options: list[str]
    answer_index: int


class StudyMaterialDoc(MongoBaseModel):
    user_id: PyObjectId
    note_id: Optional[PyObjectId] = None
    audio_id: Optional[PyObjectId] = None
    summaries: list[str] = []
    flashcards: list[Flashcard] = []
    quizzes: list[QuizQuestion] = []
