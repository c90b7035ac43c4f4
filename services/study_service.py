"""
AI-generated study material for notes and audio transcripts.

The source of every request is an id that may name either a text note or an
audio note owned by the caller. AI failures never propagate from here: a
missing reply is replaced by placeholder content.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal

from bson import ObjectId

from errors import NotFoundError, ValidationError
from infrastructure.ai.protocol import AIProvider
from repositories.note_repository import AudioNoteRepository, NoteRepository
from repositories.study_material_repository import StudyMaterialRepository
from schemas.models.base import parse_object_id
from schemas.models.study_material import Flashcard, QuizQuestion, StudyMaterialDoc
from schemas.models.user import UserDoc
from services.ai_parsing import (
    empty_mindmap,
    parse_flashcards,
    parse_mindmap,
    parse_quizzes,
    parse_summary,
)
from shared.logging import get_logger

log = get_logger(__name__)

PLACEHOLDER_SUMMARY = ["AI summary is currently unavailable. Please try again later."]
PLACEHOLDER_FLASHCARD = Flashcard(
    question="AI flashcards are currently unavailable.",
    answer="Please try again later.",
)
PLACEHOLDER_QUIZ = QuizQuestion(
    question="AI quiz is currently unavailable. Please try again later.",
    options=["A", "B", "C", "D"],
    answer_index=0,
)
PLACEHOLDER_ANSWER = "The AI assistant is currently unavailable. Please try again later."
PLACEHOLDER_MARKDOWN = "# Markdown unavailable\n\nThe AI service did not respond. Please try again later."

SUMMARY_PROMPT = """Summarize the following text in concise bullet points (no intro/outro, one point per line):
{text}"""

FLASHCARDS_PROMPT = """Create 6-10 high-quality flashcards from the text.
Each line MUST follow exactly:
Q: <question> | A: <answer>
Text:
{text}"""

QUIZ_PROMPT = """Generate 5 multiple-choice questions from the text.
For each question use this block format:
Q: <question>
A: option1|option2|option3|option4
ANSWER_INDEX: <0-3>

Text:
{text}"""

ASK_PROMPT = """You are an assistant that answers ONLY using the text provided below.
If the answer is not clearly supported by the text, say "I couldn't find that in the note."

Question: {question}

TEXT:
{text}"""

MINDMAP_PROMPT = """Turn the following text into a JSON mind map.

Format exactly like this:
{{
  "nodes": [
    {{ "id": "1", "data": {{ "label": "Main Idea" }}, "position": {{ "x": 250, "y": 25 }} }},
    {{ "id": "2", "data": {{ "label": "Subtopic" }}, "position": {{ "x": 100, "y": 125 }} }}
  ],
  "edges": [
    {{ "id": "e1-2", "source": "1", "target": "2" }}
  ]
}}

Rules:
- Only output pure JSON, no explanations.
- Keep 5-8 nodes max.
- Position nodes roughly spaced out.
- Connect all subtopics to the main idea.

Text:
{text}"""

MARKDOWN_PROMPT = """Convert the following text into a well-structured Markdown document.
Use headers, bullet points, code blocks (if applicable), and proper markdown syntax.

Text:
{text}"""

ACTIONS = ("summary", "flashcards", "quiz")


@dataclass(frozen=True)
class StudySource:
    kind: Literal["note", "audio"]
    id: ObjectId
    text: str


class StudyService:
    def __init__(
        self,
        note_repo: NoteRepository,
        audio_repo: AudioNoteRepository,
        material_repo: StudyMaterialRepository,
        ai: AIProvider,
    ) -> None:
        self._notes = note_repo
        self._audio = audio_repo
        self._materials = material_repo
        self._ai = ai

    async def resolve_source(self, user: UserDoc, source_id: str) -> StudySource:
        """Find the caller's note or audio note with this id."""
        oid = parse_object_id(source_id)
        if oid is not None:
            note = await self._notes.find_owned(oid, user.id)
            if note is not None:
                return StudySource("note", note.id, note.original_text or "")
            audio = await self._audio.find_owned(oid, user.id)
            if audio is not None:
                return StudySource("audio", audio.id, audio.transcription or "")
        raise NotFoundError("Note/Audio not found")

    async def generate(
        self, user: UserDoc, source_id: str, actions: Iterable[str]
    ) -> StudyMaterialDoc:
        """Run the requested generators and store their results.

        Only the requested parts of the record are overwritten.
        """
        requested = set(actions)
        unknown = requested.difference(ACTIONS)
        if unknown:
            raise ValidationError(f"Unknown actions: {', '.join(sorted(unknown))}", field="actions")
        if not requested:
            raise ValidationError("At least one action is required", field="actions")

        source = await self.resolve_source(user, source_id)
        fields: dict[str, Any] = {}

        if "summary" in requested:
            raw = await self._ai.complete(SUMMARY_PROMPT.format(text=source.text), max_tokens=350)
            fields["summaries"] = (parse_summary(raw) if raw else None) or PLACEHOLDER_SUMMARY

        if "flashcards" in requested:
            raw = await self._ai.complete(FLASHCARDS_PROMPT.format(text=source.text), max_tokens=600)
            cards = parse_flashcards(raw) if raw else [PLACEHOLDER_FLASHCARD]
            fields["flashcards"] = [c.model_dump() for c in cards]

        if "quiz" in requested:
            raw = await self._ai.complete(QUIZ_PROMPT.format(text=source.text), max_tokens=800)
            quizzes = parse_quizzes(raw) if raw else [PLACEHOLDER_QUIZ]
            fields["quizzes"] = [q.model_dump() for q in quizzes]

        material = await self._materials.upsert_for_source(user.id, source.kind, source.id, fields)
        log.info(
            "study_material_generated",
            user_id=str(user.id),
            source_kind=source.kind,
            source_id=str(source.id),
            actions=sorted(requested),
        )
        return material

    async def get_material(self, user: UserDoc, source_id: str) -> StudyMaterialDoc:
        oid = parse_object_id(source_id)
        material = await self._materials.find_for_source(user.id, oid) if oid else None
        if material is None:
            raise NotFoundError("Study material not found")
        return material

    async def ask(self, user: UserDoc, source_id: str, question: str) -> str:
        if not question or not question.strip():
            raise ValidationError("Question is required", field="question")
        source = await self.resolve_source(user, source_id)
        answer = await self._ai.complete(
            ASK_PROMPT.format(question=question.strip(), text=source.text),
            max_tokens=500,
            temperature=0.1,
        )
        return answer or PLACEHOLDER_ANSWER

    async def mindmap(self, user: UserDoc, source_id: str) -> dict[str, Any]:
        source = await self.resolve_source(user, source_id)
        raw = await self._ai.complete(
            MINDMAP_PROMPT.format(text=source.text), max_tokens=800, temperature=0.3
        )
        if not raw:
            return empty_mindmap()
        graph = parse_mindmap(raw)
        if not graph["nodes"]:
            log.warning("mindmap_parse_failed", source_id=str(source.id))
        return graph

    async def markdown(self, user: UserDoc, source_id: str) -> str:
        source = await self.resolve_source(user, source_id)
        rendered = await self._ai.complete(MARKDOWN_PROMPT.format(text=source.text), max_tokens=800)
        return rendered or PLACEHOLDER_MARKDOWN
