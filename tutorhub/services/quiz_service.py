"""
Quiz lifecycle for tutors: create, read, list, update and delete.

Updates go through `reconcile_questions`, which merges the client's question
list into the stored one by id:

- an entry with an id edits that question in place (omitted fields keep
  their stored value),
- an entry without an id becomes a new question appended at the end,
- a stored question whose id is not sent is removed.

An unknown id fails the whole update; nothing is written unless every
entry is valid.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from pymongo.database import Database

from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import MongoQuizRepository, MongoUserRepository
from tutorhub.domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.api_models import (
    QuestionCreate,
    QuestionPatch,
    QuizCreateRequest,
    QuizUpdateRequest,
    parse_payload,
)
from tutorhub.domain.models.db_models import DEFAULT_QUESTION_TYPE, Question, Quiz, UserRole, new_id
from hub_utils.logger_utils import logger
from hub_utils.validation import is_iso_date, page_window

# Applies to new questions and to edited ones alike
MIN_OPTIONS = 2


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


def _require_valid_id(quiz_id: str) -> None:
    try:
        uuid.UUID(str(quiz_id))
    except ValueError as exc:
        raise ValidationError("Invalid quiz id") from exc


def _require_owner(quiz: Quiz, identity: Identity) -> None:
    if quiz.created_by != identity.id:
        logger.warning(
            "Quiz ownership check failed",
            extra={"quiz_id": quiz.id, "actor_id": identity.id, "component": "quiz_service"},
        )
        raise ForbiddenError("Forbidden: you are not the creator of this quiz")


def _load_owned_quiz(repo: MongoQuizRepository, quiz_id: str, identity: Identity) -> Quiz:
    _require_valid_id(quiz_id)
    quiz = repo.get_by_id(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    _require_owner(quiz, identity)
    return quiz


def _require_metadata(title: Optional[str], subject: Optional[str], class_grade: Optional[str]) -> None:
    if not title or not subject or not class_grade:
        raise ValidationError("Missing required fields: title, subject, class_grade")


def _check_due_date(due_date: Optional[str]) -> None:
    if due_date and not is_iso_date(due_date):
        raise ValidationError("due_date must be in YYYY-MM-DD format")


def _check_question(text: Optional[str], options: Optional[List[str]], correct_answer: Optional[str], label: str) -> None:
    """Validate one question as it would be persisted."""
    if not text:
        raise ValidationError(f"Invalid question at {label}: question text is required")
    if not isinstance(options, list) or len(options) < MIN_OPTIONS:
        raise ValidationError(f"Invalid question at {label}: at least {MIN_OPTIONS} options are required")
    if any(not option.strip() for option in options):
        raise ValidationError(f"Invalid question at {label}: options must be non-empty")
    if not correct_answer:
        raise ValidationError(f"Invalid question at {label}: correct_answer is required")
    if correct_answer not in options:
        raise ValidationError(f"correct_answer must be one of options for question {label}")


def _new_question(entry, label: str) -> Question:
    _check_question(entry.question, entry.options, entry.correct_answer, label)
    return Question(
        _id=new_id(),
        question=entry.question,
        options=list(entry.options),
        correct_answer=entry.correct_answer,
        type=entry.type or DEFAULT_QUESTION_TYPE,
    )


def reconcile_questions(existing: List[Question], incoming: List[QuestionPatch]) -> List[Question]:
    """
    Merge an incoming question list into the stored one.

    Entries are applied in list order, so a repeated id ends with the last
    entry's values. Updates are applied before removals are computed, so a
    question is never both updated and removed. Survivors keep their stored
    order, followed by new questions in payload order.

    Raises ValidationError on an unknown id or a question that breaks
    `correct_answer in options`. The input list is never mutated.
    """
    merged = {question.id: question for question in existing}
    kept_ids = set()
    added: List[Question] = []

    for index, entry in enumerate(incoming):
        label = f"index {index}"
        if not entry.id:
            added.append(_new_question(entry, label))
            continue

        current = merged.get(entry.id)
        if current is None:
            raise ValidationError(f"Invalid question id {entry.id}: question id not found in this quiz")

        changes = entry.model_dump(exclude={"id"}, exclude_none=True)
        updated = current.model_copy(update=changes)
        _check_question(updated.question, updated.options, updated.correct_answer, label)
        merged[entry.id] = updated
        kept_ids.add(entry.id)

    survivors = [merged[question.id] for question in existing if question.id in kept_ids]
    return survivors + added


def create_quiz(identity: Identity, payload, db_conn: Optional[Database] = None) -> Quiz:
    """Create a quiz owned by the calling tutor."""
    request = parse_payload(QuizCreateRequest, payload)
    _require_metadata(request.title, request.subject, request.class_grade)
    if not request.questions:
        raise ValidationError("questions must be a non-empty array")
    _check_due_date(request.due_date)

    questions = [
        _new_question(entry, f"index {index}")
        for index, entry in enumerate(request.questions)
    ]
    now = datetime.now(timezone.utc)
    quiz = Quiz(
        _id=new_id(),
        title=request.title,
        subject=request.subject,
        class_grade=request.class_grade,
        description=request.description,
        due_date=request.due_date or None,
        questions=questions,
        created_by=identity.id,
        created_at=now,
        updated_at=now,
    )

    MongoQuizRepository(_get_db(db_conn)).create(quiz)
    logger.info(
        "Created quiz",
        extra={
            "quiz_id": quiz.id,
            "tutor_id": identity.id,
            "questions": len(questions),
            "component": "quiz_service",
        },
    )
    return quiz


def update_quiz(quiz_id: str, identity: Identity, payload, db_conn: Optional[Database] = None) -> Quiz:
    """
    Reconcile a quiz with the tutor's desired state.

    Ownership is checked before the payload is looked at, so a caller who
    does not own the quiz is refused whatever they send. One read and one
    version-checked write; any failure leaves the stored quiz unchanged.
    """
    repo = MongoQuizRepository(_get_db(db_conn))
    quiz = _load_owned_quiz(repo, quiz_id, identity)

    request = parse_payload(QuizUpdateRequest, payload)
    _require_metadata(request.title, request.subject, request.class_grade)
    _check_due_date(request.due_date)
    if request.version is not None and request.version != quiz.version:
        raise ConflictError(
            f"Quiz version mismatch: expected {quiz.version}, got {request.version}"
        )

    questions = quiz.questions
    if request.questions is not None:
        questions = reconcile_questions(quiz.questions, request.questions)

    changes = {
        "title": request.title,
        "subject": request.subject,
        "class_grade": request.class_grade,
        "questions": questions,
        "version": quiz.version + 1,
        "updated_at": datetime.now(timezone.utc),
    }
    if request.description is not None:
        changes["description"] = request.description
    if request.due_date is not None:
        changes["due_date"] = request.due_date or None
    updated = quiz.model_copy(update=changes)

    repo.save(updated, expected_version=quiz.version)
    logger.info(
        "Updated quiz",
        extra={
            "quiz_id": quiz.id,
            "tutor_id": identity.id,
            "questions_before": len(quiz.questions),
            "questions_after": len(questions),
            "version": updated.version,
            "component": "quiz_service",
        },
    )
    return updated


def delete_quiz(quiz_id: str, identity: Identity, db_conn: Optional[Database] = None) -> dict:
    """Hard-delete a quiz owned by the caller and echo a short summary."""
    repo = MongoQuizRepository(_get_db(db_conn))
    quiz = _load_owned_quiz(repo, quiz_id, identity)

    deleted = repo.delete(quiz.id)
    if deleted is None:
        # Removed by someone else between the read and the delete
        raise NotFoundError("Quiz not found")

    logger.info(
        "Deleted quiz",
        extra={"quiz_id": quiz.id, "tutor_id": identity.id, "component": "quiz_service"},
    )
    return {"id": deleted.id, "title": deleted.title, "subject": deleted.subject}


def get_quiz(quiz_id: str, identity: Identity, db_conn: Optional[Database] = None) -> dict:
    """
    Fetch one quiz for display.

    Owners and admins see everything. Students see quizzes for their own
    class grade, without the answers.
    """
    _require_valid_id(quiz_id)
    db = _get_db(db_conn)
    quiz = MongoQuizRepository(db).get_by_id(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")

    if identity.is_admin or quiz.created_by == identity.id:
        return quiz.to_public_dict()

    if identity.role == UserRole.STUDENT:
        student = MongoUserRepository(db).get_by_id(identity.id)
        if student is not None and student.class_grade == quiz.class_grade:
            return quiz.to_student_dict()

    raise ForbiddenError("Forbidden: this quiz is not available to you")


def quiz_status(quiz: Quiz, today: Optional[date] = None) -> str:
    """'completed' once the due date has passed, otherwise 'active'."""
    today = today or datetime.now(timezone.utc).date()
    if quiz.due_date and quiz.due_date < today.isoformat():
        return "completed"
    return "active"


def list_tutor_quizzes(
    identity: Identity,
    subject: Optional[str] = None,
    class_grade: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    db_conn: Optional[Database] = None,
) -> dict:
    """A page of the caller's quizzes, newest first."""
    skip, limit, page = page_window(page, limit)
    query: dict = {"created_by": identity.id}
    if subject:
        query["subject"] = subject
    if class_grade:
        query["class_grade"] = class_grade

    repo = MongoQuizRepository(_get_db(db_conn))
    quizzes = repo.find(query, sort=[("created_at", -1)], skip=skip, limit=limit)
    total = repo.count(query)

    return {
        "data": [
            {
                "id": quiz.id,
                "title": quiz.title,
                "subject": quiz.subject,
                "class_grade": quiz.class_grade,
                "due_date": quiz.due_date,
                "total_questions": len(quiz.questions),
                "status": quiz_status(quiz),
            }
            for quiz in quizzes
        ],
        "page": page,
        "limit": limit,
        "total": total,
    }
