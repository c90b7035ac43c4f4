"""
Multipart upload reading shared by the note, audio and profile routes.
"""

from typing import Optional

from fastapi import UploadFile

from infrastructure.storage import IncomingFile, LocalFileStorage

UPLOAD_CHUNK_BYTES = 1024 * 1024


async def read_upload(
    file: Optional[UploadFile], storage: LocalFileStorage
) -> Optional[IncomingFile]:
    """Read a multipart file into memory; absent or nameless parts are None.

    Reading stops as soon as the size limit is passed.
    """
    if file is None or not file.filename:
        return None
    if file.size is not None:
        storage.check_size(file.size)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        storage.check_size(total)
        chunks.append(chunk)
    return IncomingFile(file.filename, b"".join(chunks))
