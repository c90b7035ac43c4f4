"""
Local disk storage for uploaded files.

Files are saved as ``<epoch-ms>-<original name with whitespace as "_">`` in
the configured upload directory and served under ``/api/uploads``.
"""

from __future__ import annotations

import asyncio
import os
import re
import time
from dataclasses import dataclass
from typing import Optional

from config import UploadSettings
from errors import ValidationError
from shared.logging import get_logger

log = get_logger(__name__)

ALLOWED_EXTENSIONS = frozenset(
    {
        ".pdf", ".docx", ".doc", ".pptx", ".ppt", ".txt",
        ".png", ".jpg", ".jpeg", ".gif",
        ".mp3", ".wav", ".m4a",
    }
)


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file already read into memory."""

    filename: str
    data: bytes


def stored_filename(original_name: str, now_ms: Optional[int] = None) -> str:
    base = os.path.basename(original_name or "upload")
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    safe = re.sub(r"\s+", "_", base)
    return f"{stamp}-{safe}"


class LocalFileStorage:
    def __init__(self, settings: UploadSettings, public_base_url: str) -> None:
        self._dir = settings.upload_dir
        self._max_bytes = settings.max_upload_bytes
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def directory(self) -> str:
        return self._dir

    def path_for(self, filename: str) -> str:
        return os.path.join(self._dir, os.path.basename(filename))

    def public_url(self, filename: Optional[str]) -> Optional[str]:
        if not filename:
            return None
        return f"{self._public_base_url}/api/uploads/{filename}"

    def validate(self, original_name: str, size: int) -> None:
        ext = os.path.splitext(original_name or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                "Only PDF, Word, PPT, TXT, image, and audio files allowed",
                field="file",
            )
        self.check_size(size)

    def check_size(self, size: int) -> None:
        if size > self._max_bytes:
            raise ValidationError(
                f"File exceeds the {self._max_bytes // (1024 * 1024)} MB limit",
                field="file",
            )

    async def save(self, upload: IncomingFile) -> str:
        """Validate and write *upload*; returns the stored filename."""
        self.validate(upload.filename, len(upload.data))
        filename = stored_filename(upload.filename)
        await asyncio.to_thread(self._write, self.path_for(filename), upload.data)
        log.info("file_stored", filename=filename, size=len(upload.data))
        return filename

    def _write(self, path: str, data: bytes) -> None:
        os.makedirs(self._dir, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    async def delete(self, filename: Optional[str]) -> bool:
        """Remove a stored file; a missing file is not an error."""
        if not filename:
            return False
        path = self.path_for(filename)
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            return False
        log.info("file_deleted", filename=os.path.basename(filename))
        return True
