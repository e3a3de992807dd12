from dataclasses import dataclass
from typing import IO, Iterable, Optional
import logging
import os
import uuid

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPT = "application/vnd.ms-powerpoint"
PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

# Assignment attachments: documents and photos of worksheets
ASSIGNMENT_MIMETYPES = frozenset({PDF, DOC, DOCX, "image/jpeg", "image/png"})
# Study materials may also be slides or plain notes
MATERIAL_MIMETYPES = ASSIGNMENT_MIMETYPES | {PPT, PPTX, "text/plain"}

MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadedFile:
    """An upload held in memory until it is handed to storage."""
    filename: str
    content_type: str
    size: int
    data: bytes


def storage_name(filename: str) -> str:
    """
    Random stored name that keeps only the original extension, so two
    uploads of `notes.pdf` never collide.
    """
    _, ext = os.path.splitext(secure_filename(filename or ""))
    return uuid.uuid4().hex + ext.lower()


def allowed_mimetype(mime: Optional[str], allowed: Iterable[str] = ASSIGNMENT_MIMETYPES) -> bool:
    if not mime:
        return False
    # "text/plain; charset=utf-8" -> "text/plain"
    base = mime.split(";", 1)[0].strip().lower()
    return base in allowed


def read_upload(
    stream: IO[bytes],
    original_filename: str,
    content_type: Optional[str],
    max_size: int = MAX_FILE_SIZE_BYTES,
) -> UploadedFile:
    """
    Buffer an upload, reading at most one byte past the limit.
    Raises ValueError("oversize") when the stream is larger than `max_size`.
    """
    data = stream.read(max_size + 1)
    if len(data) > max_size:
        logger.debug("Upload rejected: larger than %d bytes", max_size)
        raise ValueError("oversize")

    uploaded = UploadedFile(
        filename=secure_filename(original_filename or "") or "upload",
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        size=len(data),
        data=data,
    )
    logger.debug("Buffered upload (size=%d, mime=%s)", uploaded.size, uploaded.content_type)
    return uploaded
