"""
Parsers turning free-form LLM replies into structured study material.

The model is asked for a fixed line format but does not always follow it;
each parser keeps whatever it can recognise and drops the rest.
"""

from __future__ import annotations

import json
import re
from typing import Any

from schemas.models.study_material import Flashcard, QuizQuestion

FALLBACK_FLASHCARD = Flashcard(
    question="Could not parse AI flashcards.",
    answer="Please try regenerating.",
)

_BULLET_RE = re.compile(r"^[-*•]\s?")
_CARD_PIPE_RE = re.compile(r"Q:\s*(.*?)\s*\|\s*A:\s*(.+)", re.IGNORECASE)
_CARD_PLAIN_RE = re.compile(r"Q:\s*(.*?)\s*A:\s*(.+)", re.IGNORECASE)
_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
_QUIZ_Q_RE = re.compile(r"^\s*Q:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
_QUIZ_A_RE = re.compile(r"^\s*A:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
_QUIZ_INDEX_RE = re.compile(r"^\s*ANSWER_INDEX:\s*(\d+)", re.IGNORECASE | re.MULTILINE)
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def empty_mindmap() -> dict[str, list]:
    return {"nodes": [], "edges": []}


def parse_summary(raw: str) -> list[str]:
    """One bullet per non-blank line, leading ``-``/``*``/``•`` removed."""
    points = []
    for line in raw.splitlines():
        point = _BULLET_RE.sub("", line.strip()).strip()
        if point:
            points.append(point)
    return points


def parse_flashcards(raw: str) -> list[Flashcard]:
    """Parse ``Q: ... | A: ...`` lines (the pipe is optional).

    Returns a single explanatory card when nothing could be parsed.
    """
    cards = []
    for line in raw.splitlines():
        m = _CARD_PIPE_RE.search(line) or _CARD_PLAIN_RE.search(line)
        if m and m.group(1).strip() and m.group(2).strip():
            cards.append(Flashcard(question=m.group(1).strip(), answer=m.group(2).strip()))
    return cards or [FALLBACK_FLASHCARD]


def parse_quizzes(raw: str) -> list[QuizQuestion]:
    """Parse blank-line separated blocks of::

        Q: <question>
        A: opt1|opt2|opt3|opt4
        ANSWER_INDEX: <n>

    Blocks with fewer than two options or an out-of-range index are dropped.
    """
    quizzes = []
    for block in _BLOCK_SPLIT_RE.split(raw.strip()):
        q = _QUIZ_Q_RE.search(block)
        a = _QUIZ_A_RE.search(block)
        idx = _QUIZ_INDEX_RE.search(block)
        if not (q and a and idx):
            continue
        options = [o.strip() for o in a.group(1).split("|") if o.strip()]
        answer_index = int(idx.group(1))
        if len(options) < 2 or answer_index >= len(options):
            continue
        quizzes.append(
            QuizQuestion(question=q.group(1).strip(), options=options, answer_index=answer_index)
        )
    return quizzes


def parse_mindmap(raw: str) -> dict[str, Any]:
    """Decode a ``{"nodes": [...], "edges": [...]}`` graph, tolerating code fences.

    Anything that is not such an object yields the empty graph.
    """
    cleaned = _FENCE_RE.sub("", raw).strip()
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        return empty_mindmap()
    if not isinstance(parsed, dict):
        return empty_mindmap()
    nodes = parsed.get("nodes")
    edges = parsed.get("edges", [])
    if not isinstance(nodes, list) or not isinstance(edges, list):
        return empty_mindmap()
    return {"nodes": nodes, "edges": edges}
