"""
Request DTOs for the AI study endpoints and transcript translation.

GenerateMaterialsRequest — POST /api/ai/generate
AskRequest               — POST /api/ai/ask
TranslateRequest         — POST /api/audio/translate
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

StudyAction = Literal["summary", "flashcards", "quiz"]


class GenerateMaterialsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # the web client sends camelCase
    note_id: str = Field(validation_alias=AliasChoices("note_id", "noteId"))
    actions: list[StudyAction]


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: str = Field(validation_alias=AliasChoices("note_id", "noteId"))
    question: str = Field(min_length=1)


class TranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str = Field(min_length=1)
    target_lang: str = Field(
        default="es", validation_alias=AliasChoices("target_lang", "targetLang")
    )
