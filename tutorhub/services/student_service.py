from datetime import date, datetime, timezone
from typing import Optional

from pymongo.database import Database

from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import (
    MongoAssignmentRepository,
    MongoQuizRepository,
    MongoUserRepository,
)
from tutorhub.domain.errors import ForbiddenError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.db_models import UserRole
from hub_utils.logger_utils import logger
from hub_utils.validation import page_window

STATUS_UPCOMING = "upcoming"
STATUS_COMPLETED = "completed"


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


def _empty_feed() -> dict:
    return {"upcoming": [], "completed": [], "summary": {"upcoming_count": 0, "completed_count": 0}}


def resolve_class_grade(identity: Identity, fallback: Optional[str] = None, db_conn: Optional[Database] = None) -> Optional[str]:
    """The student's own class grade, or the query value when the profile has none."""
    if not identity.has_role(UserRole.STUDENT):
        raise ForbiddenError("Forbidden")
    user = MongoUserRepository(_get_db(db_conn)).get_by_id(identity.id)
    if user is not None and user.class_grade:
        return user.class_grade
    return fallback or None


def _status_query(class_grade: str, status: Optional[str], iso_today: str) -> dict:
    query = {"class_grade": class_grade}
    if status == STATUS_UPCOMING:
        query["$or"] = [{"due_date": {"$gte": iso_today}}, {"due_date": None}]
    elif status == STATUS_COMPLETED:
        query["due_date"] = {"$lt": iso_today}
    return query


def _feed_item(doc, kind: str, tutors: dict, iso_today: str) -> dict:
    due_date = doc.due_date or (doc.created_at.date().isoformat() if doc.created_at else None)
    is_completed = bool(doc.due_date) and doc.due_date < iso_today
    completed_on = None
    if is_completed:
        completed_on = doc.updated_at.isoformat() if doc.updated_at else doc.due_date
    return {
        "id": doc.id,
        "title": doc.title,
        "subject": doc.subject,
        "tutor": tutors.get(doc.created_by, ""),
        "due_date": due_date,
        "type": kind,
        "completed_on": completed_on,
    }


def fetch_assignments_and_quizzes(
    class_grade: str,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    db_conn: Optional[Database] = None,
    today: Optional[date] = None,
) -> dict:
    """
    One feed of a class grade's assignments and quizzes.

    Items without a due date count as upcoming. ``status`` narrows the
    query to upcoming or completed work; any other value returns both.
    Paging applies to each collection separately.
    """
    if not class_grade:
        return _empty_feed()

    today = today or datetime.now(timezone.utc).date()
    iso_today = today.isoformat()
    skip, limit, _ = page_window(page, limit)
    query = _status_query(class_grade, status, iso_today)
    newest_first = status == STATUS_COMPLETED

    db = _get_db(db_conn)
    assignments = MongoAssignmentRepository(db).find(
        query, sort=[("due_date", -1 if newest_first else 1)], skip=skip, limit=limit
    )
    quizzes = MongoQuizRepository(db).find(
        query, sort=[("created_at", -1 if newest_first else 1)], skip=skip, limit=limit
    )
    tutors = MongoUserRepository(db).get_names(
        [doc.created_by for doc in assignments] + [doc.created_by for doc in quizzes]
    )

    items = [_feed_item(doc, "Assignment", tutors, iso_today) for doc in assignments]
    items += [_feed_item(doc, "Quiz", tutors, iso_today) for doc in quizzes]

    upcoming = [item for item in items if item["completed_on"] is None]
    completed = [item for item in items if item["completed_on"] is not None]

    logger.info(
        "Student feed built",
        extra={"class_grade": class_grade, "status": status, "upcoming": len(upcoming), "completed": len(completed)},
    )
    return {
        "upcoming": upcoming,
        "completed": completed,
        "summary": {"upcoming_count": len(upcoming), "completed_count": len(completed)},
    }
