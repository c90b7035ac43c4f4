"""
Plain-text extraction from uploaded documents.

PDF via PyPDF2, Word via python-docx, PowerPoint via python-pptx, .txt read
directly. Other extensions yield no text. Parsing errors propagate; the note
service logs them and keeps the typed text.
"""

from __future__ import annotations

import asyncio
import os
from typing import Callable

import docx
from pptx import Presentation
from PyPDF2 import PdfReader


def _pdf_text(path: str) -> str:
    reader = PdfReader(path)
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _docx_text(path: str) -> str:
    document = docx.Document(path)
    return "\n".join(p.text for p in document.paragraphs)


def _pptx_text(path: str) -> str:
    prs = Presentation(path)
    out = []
    for slide in prs.slides:
        for shape in slide.shapes:
            if shape.has_text_frame:
                out.append(shape.text_frame.text)
    return "\n".join(out)


def _txt_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        with open(path, "r", encoding="latin-1", errors="ignore") as f:
            return f.read()


_EXTRACTORS: dict[str, Callable[[str], str]] = {
    ".pdf": _pdf_text,
    ".docx": _docx_text,
    ".pptx": _pptx_text,
    ".txt": _txt_text,
}


def extract_text(path: str) -> str:
    """Return the text of the document at *path* ("" for unsupported types)."""
    extractor = _EXTRACTORS.get(os.path.splitext(path)[1].lower())
    if extractor is None:
        return ""
    return extractor(path)


async def extract_text_async(path: str) -> str:
    """extract_text() on a worker thread; the parsers are blocking."""
    return await asyncio.to_thread(extract_text, path)
