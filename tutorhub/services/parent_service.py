import re
from typing import Optional

from pymongo.database import Database

from tutorhub.infrastructure.database import db as flask_db
from tutorhub.infrastructure.repositories import (
    MongoParentRequestRepository,
    MongoStudentRepository,
    MongoUserRepository,
)
from tutorhub.domain.errors import ForbiddenError, ValidationError
from tutorhub.domain.identity import Identity
from tutorhub.domain.models.api_models import (
    AddStudentRequest,
    ParentRequestCreate,
    ParentRequestFilters,
    TutorSearchFilters,
    parse_payload,
)
from tutorhub.domain.models.db_models import ParentRequest, Student, UserRole, new_id
from hub_utils.logger_utils import logger
from hub_utils.validation import is_class_grade

# Fields a parent gets to see when browsing tutors
TUTOR_CARD_FIELDS = (
    "id",
    "full_name",
    "email",
    "subjects",
    "teaching_mode",
    "price",
    "years_of_experience",
    "availability",
    "rating",
    "testimonial",
)


def _get_db(db_conn: Optional[Database] = None) -> Database:
    return db_conn if db_conn is not None else flask_db


def _require_parent(identity: Identity) -> None:
    if not identity.has_role(UserRole.PARENT):
        raise ForbiddenError("Forbidden")


def add_student(identity: Identity, payload, db_conn: Optional[Database] = None) -> Student:
    """Register a child under the calling parent."""
    _require_parent(identity)
    request = parse_payload(AddStudentRequest, payload)
    if not is_class_grade(request.class_grade):
        raise ValidationError("Invalid class_grade format.")

    student = Student(
        _id=new_id(),
        full_name=request.full_name,
        class_grade=request.class_grade,
        parent_id=identity.id,
    )
    MongoStudentRepository(_get_db(db_conn)).create(student)
    logger.info("Student added", extra={"student_id": student.id, "parent_id": identity.id})
    return student


def list_students(identity: Identity, db_conn: Optional[Database] = None) -> list:
    _require_parent(identity)
    students = MongoStudentRepository(_get_db(db_conn)).list_by_parent(identity.id)
    return [student.to_public_dict() for student in students]


def build_tutor_query(filters: TutorSearchFilters) -> dict:
    """Translate search filters into a Mongo query over tutor accounts."""
    query = {"role": UserRole.TUTOR.value}
    if filters.subject:
        query["subjects"] = {"$regex": re.escape(filters.subject), "$options": "i"}
    if filters.teaching_mode:
        query["teaching_mode"] = filters.teaching_mode
    if filters.min_price is not None or filters.max_price is not None:
        price = {}
        if filters.min_price is not None:
            price["$gte"] = filters.min_price
        if filters.max_price is not None:
            price["$lte"] = filters.max_price
        query["price"] = price
    if filters.min_experience is not None:
        query["years_of_experience"] = {"$gte": filters.min_experience}
    if filters.availability:
        query["availability"] = filters.availability
    if filters.min_rating is not None:
        query["rating"] = {"$gte": filters.min_rating}
    return query


def search_tutors(filters, db_conn: Optional[Database] = None) -> list:
    """
    Browse tutor profiles, best rated first.

    Any filter left out (or blank) does not narrow the search.
    """
    parsed = parse_payload(TutorSearchFilters, filters)
    if parsed.min_price is not None and parsed.max_price is not None and parsed.min_price > parsed.max_price:
        raise ValidationError("min_price cannot be greater than max_price")

    query = build_tutor_query(parsed)
    logger.debug("Tutor search", extra={"query": str(query)})
    tutors = MongoUserRepository(_get_db(db_conn)).find(query, sort=[("rating", -1)])

    results = []
    for tutor in tutors:
        card = tutor.to_public_dict()
        results.append({field: card.get(field) for field in TUTOR_CARD_FIELDS})
    return results


def submit_request(identity: Identity, payload, db_conn: Optional[Database] = None) -> ParentRequest:
    """File a tutoring request for admins to review."""
    _require_parent(identity)
    request = parse_payload(ParentRequestCreate, payload)
    parent_request = ParentRequest(
        _id=new_id(),
        parent_id=identity.id,
        academic_needs=request.academic_needs,
        scheduling=request.scheduling,
        location=request.location,
        urgency=request.urgency,
    )
    MongoParentRequestRepository(_get_db(db_conn)).create(parent_request)
    logger.info(
        "Parent request submitted",
        extra={"request_id": parent_request.id, "parent_id": identity.id, "urgency": parent_request.urgency},
    )
    return parent_request


def list_my_requests(identity: Identity, db_conn: Optional[Database] = None) -> list:
    _require_parent(identity)
    requests = MongoParentRequestRepository(_get_db(db_conn)).find(
        {"parent_id": identity.id}, sort=[("created_at", -1)]
    )
    return [item.to_public_dict() for item in requests]


def list_requests(identity: Identity, filters, db_conn: Optional[Database] = None) -> dict:
    """
    Admin view of parent requests, newest first.

    Unknown urgency or status values are rejected rather than ignored.
    """
    if not identity.is_admin:
        raise ForbiddenError("Forbidden")
    parsed = parse_payload(ParentRequestFilters, filters)

    query = {}
    if parsed.urgency:
        query["urgency"] = parsed.urgency
    if parsed.status:
        query["status"] = parsed.status
    if parsed.subject:
        query["academic_needs"] = {"$regex": re.escape(parsed.subject), "$options": "i"}

    db = _get_db(db_conn)
    requests = MongoParentRequestRepository(db).find(query, sort=[("created_at", -1)], limit=parsed.limit)
    names = MongoUserRepository(db).get_names(item.parent_id for item in requests)

    data = []
    for item in requests:
        row = item.to_public_dict()
        row["parent_name"] = names.get(item.parent_id, "")
        data.append(row)
    return {"count": len(data), "data": data}
