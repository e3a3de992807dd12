from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from pymongo.database import Database

from tutorhub.infrastructure.config import settings
from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import MongoAssignmentRepository
from tutorhub.domain.errors import BaseAppException, ForbiddenError, NotFoundError, ValidationError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.api_models import AssignmentCreateRequest, AssignmentUpdateRequest, parse_payload
from tutorhub.domain.models.db_models import Assignment, new_id
from tutorhub.services.file_service import FileService, get_file_service
from hub_utils.file_utils import ASSIGNMENT_MIMETYPES, UploadedFile
from hub_utils.logger_utils import logger
from hub_utils.validation import is_iso_date, page_window, validate_upload


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


def _store_attachment(upload: UploadedFile, owner_id: str, file_service: Optional[FileService]):
    error = validate_upload(upload.content_type, upload.size, ASSIGNMENT_MIMETYPES, settings.MAX_UPLOAD_BYTES)
    if error:
        raise ValidationError(error)
    service = file_service or get_file_service()
    return service.save_file(upload.data, upload.filename, upload.content_type, owner_id)


def _discard(stored_file_id: Optional[str], file_service: Optional[FileService]) -> None:
    """Drop a freshly stored attachment whose record never got written."""
    if stored_file_id:
        logger.warning("Removing orphaned attachment", extra={"file_id": stored_file_id})
        (file_service or get_file_service()).delete_file(stored_file_id)


def _load_owned(repo: MongoAssignmentRepository, assignment_id: str, identity: Identity) -> Assignment:
    try:
        uuid.UUID(str(assignment_id))
    except ValueError as exc:
        raise ValidationError("Invalid assignment id") from exc
    assignment = repo.get_by_id(assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment not found")
    if assignment.created_by != identity.id:
        raise ForbiddenError("Forbidden: you are not the creator of this assignment")
    return assignment


def create_assignment(
    identity: Identity,
    fields: dict,
    upload: Optional[UploadedFile] = None,
    db_conn: Optional[Database] = None,
    file_service: Optional[FileService] = None,
) -> Assignment:
    """
    Create an assignment, storing the optional attachment first.
    """
    request = parse_payload(AssignmentCreateRequest, fields)
    if not is_iso_date(request.due_date):
        raise ValidationError("due_date must be in YYYY-MM-DD format")

    attachment_url, attachment_name, attachment_file_id = "", "", None
    if upload is not None:
        stored = _store_attachment(upload, identity.id, file_service)
        attachment_url, attachment_name, attachment_file_id = stored.url, stored.filename, stored.file_id

    now = datetime.now(timezone.utc)
    assignment = Assignment(
        _id=new_id(),
        title=request.title,
        subject=request.subject,
        class_grade=request.class_grade,
        instructions=request.instructions,
        attachment_url=attachment_url,
        attachment_name=attachment_name,
        attachment_file_id=attachment_file_id,
        due_date=request.due_date,
        allow_submission_online=request.allow_submission_online,
        created_by=identity.id,
        created_at=now,
        updated_at=now,
    )
    try:
        MongoAssignmentRepository(_get_db(db_conn)).create(assignment)
    except BaseAppException:
        _discard(attachment_file_id, file_service)
        raise
    logger.info(
        "Created assignment",
        extra={"assignment_id": assignment.id, "tutor_id": identity.id, "has_attachment": upload is not None},
    )
    return assignment


def update_assignment(
    assignment_id: str,
    identity: Identity,
    fields: dict,
    upload: Optional[UploadedFile] = None,
    db_conn: Optional[Database] = None,
    file_service: Optional[FileService] = None,
) -> Assignment:
    """
    Partially update an assignment. A new attachment replaces the old one.
    """
    repo = MongoAssignmentRepository(_get_db(db_conn))
    assignment = _load_owned(repo, assignment_id, identity)

    request = parse_payload(AssignmentUpdateRequest, fields)
    changes = request.model_dump(exclude_none=True)
    for required in ("title", "subject", "class_grade", "due_date"):
        if required in changes and not changes[required]:
            raise ValidationError(f"{required} cannot be empty")
    if "due_date" in changes and not is_iso_date(changes["due_date"]):
        raise ValidationError("due_date must be in YYYY-MM-DD format")

    previous_file_id, new_file_id = None, None
    if upload is not None:
        stored = _store_attachment(upload, identity.id, file_service)
        new_file_id = stored.file_id
        previous_file_id = assignment.attachment_file_id
        changes.update(
            attachment_url=stored.url,
            attachment_name=stored.filename,
            attachment_file_id=stored.file_id,
        )

    changes["updated_at"] = datetime.now(timezone.utc)
    updated = assignment.model_copy(update=changes)
    try:
        repo.update(updated)
    except BaseAppException:
        _discard(new_file_id, file_service)
        raise

    if previous_file_id:
        (file_service or get_file_service()).delete_file(previous_file_id)

    logger.info(
        "Updated assignment",
        extra={"assignment_id": assignment.id, "tutor_id": identity.id, "fields": sorted(changes)},
    )
    return updated


def delete_assignment(
    assignment_id: str,
    identity: Identity,
    db_conn: Optional[Database] = None,
    file_service: Optional[FileService] = None,
) -> str:
    """Delete an assignment and its attachment. Returns the deleted id."""
    repo = MongoAssignmentRepository(_get_db(db_conn))
    assignment = _load_owned(repo, assignment_id, identity)

    deleted = repo.delete(assignment.id)
    if deleted is None:
        raise NotFoundError("Assignment not found")
    if deleted.attachment_file_id:
        (file_service or get_file_service()).delete_file(deleted.attachment_file_id)

    logger.info("Deleted assignment", extra={"assignment_id": assignment.id, "tutor_id": identity.id})
    return deleted.id


def get_assignment(assignment_id: str, identity: Identity, db_conn: Optional[Database] = None) -> dict:
    repo = MongoAssignmentRepository(_get_db(db_conn))
    return _load_owned(repo, assignment_id, identity).to_public_dict()


def list_tutor_assignments(
    identity: Identity,
    page: int = 1,
    limit: int = 10,
    db_conn: Optional[Database] = None,
) -> list:
    """The caller's assignments by due date."""
    skip, limit, _ = page_window(page, limit)
    assignments = MongoAssignmentRepository(_get_db(db_conn)).find(
        {"created_by": identity.id}, sort=[("due_date", 1)], skip=skip, limit=limit
    )
    return [assignment.to_public_dict() for assignment in assignments]
