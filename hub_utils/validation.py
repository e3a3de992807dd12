import re
from datetime import datetime
from typing import Iterable, Optional
from .file_utils import allowed_mimetype, ASSIGNMENT_MIMETYPES, MAX_FILE_SIZE_BYTES
import logging

logger = logging.getLogger(__name__)

# user-facing messages
UPLOAD_ERRORS = {
    "empty": "Uploaded file is empty",
    "bad_type": "Invalid file type",
    "too_large": "File too large",
}

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CLASS_GRADE_RE = re.compile(
    r"^([0-9]{1,2}(th|st|nd|rd)?(\sGrade)?|Grade\s?[0-9]{1,2}|[A-Za-z0-9\s]+)$",
    re.IGNORECASE,
)


def validate_upload(
    mime: Optional[str],
    size: int,
    allowed: Iterable[str] = ASSIGNMENT_MIMETYPES,
    max_size: int = MAX_FILE_SIZE_BYTES,
) -> Optional[str]:
    """
    Validate upload size against `max_size` and the MIME type.
    Returns an error message if invalid, otherwise None.
    """
    if size <= 0:
        logger.debug("Validation failed: empty upload (size=%d)", size)
        return UPLOAD_ERRORS["empty"]
    if size > max_size:
        logger.debug("Validation failed: too large (size=%d)", size)
        return UPLOAD_ERRORS["too_large"]
    if not allowed_mimetype(mime, allowed):
        logger.debug("Validation failed: bad MIME type (%s)", mime)
        return UPLOAD_ERRORS["bad_type"]
    return None


def is_iso_date(value: str) -> bool:
    """YYYY-MM-DD check, as stored on assignments and quizzes."""
    if not value or not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def is_class_grade(value: str) -> bool:
    return bool(value and _CLASS_GRADE_RE.match(value.strip()))


def page_window(page, limit, max_limit: int = 100):
    """
    Normalise page/limit query values.
    Returns (skip, limit, page) with page >= 1 and 1 <= limit <= max_limit.
    """
    try:
        page = max(1, int(page))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max_limit, max(1, int(limit)))
    except (TypeError, ValueError):
        limit = 10
    return (page - 1) * limit, limit, page
