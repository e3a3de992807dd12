from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError as SchemaValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from tutorhub.domain.errors import ConflictError, InternalError, NotFoundError
from tutorhub.domain.repositories import (
    IAssignmentRepository,
    IMaterialRepository,
    IParentRequestRepository,
    IQuizRepository,
    IStudentRepository,
    IUserRepository,
)
from tutorhub.domain.models.db_models import (
    Assignment,
    ParentRequest,
    Quiz,
    Student,
    StudyMaterial,
    User,
)
from hub_utils.logger_utils import logger


@contextmanager
def _mongo_errors(operation: str, **context):
    """Translate driver failures into InternalError, logging the original."""
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        logger.error(
            f"{operation}.failed",
            extra={**context, "error": str(exc)},
            exc_info=True,
        )
        raise InternalError("Database operation failed") from exc


class _MongoRepository:
    """Shared plumbing for repositories that map one collection to one model."""

    collection_name: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, db: Database):
        self.db = db
        self.collection = getattr(self.db, self.collection_name)

    @property
    def _name(self) -> str:
        return self.__class__.__name__

    def _parse(self, data: Optional[dict]):
        if not data:
            return None
        try:
            return self.model(**data)
        except SchemaValidationError as exc:
            logger.error(
                f"{self._name}.parse_error",
                extra={"_id": str(data.get("_id")), "error": str(exc)},
                exc_info=True,
            )
            raise InternalError(f"Stored {self.collection_name} record is malformed") from exc

    def get_by_id(self, entity_id: str):
        with _mongo_errors(f"{self._name}.get_by_id", entity_id=entity_id):
            data = self.collection.find_one({"_id": entity_id})
        if not data:
            logger.warning(f"{self._name}.get_by_id.missing", extra={"entity_id": entity_id})
        return self._parse(data)

    def create(self, entity) -> None:
        with _mongo_errors(f"{self._name}.create", entity_id=entity.id):
            self.collection.insert_one(entity.to_dict())
        logger.info(f"Created {self.collection_name} record with ID: {entity.id}")

    def delete(self, entity_id: str):
        with _mongo_errors(f"{self._name}.delete", entity_id=entity_id):
            data = self.collection.find_one_and_delete({"_id": entity_id})
        if data:
            logger.info(f"Deleted {self.collection_name} record with ID: {entity_id}")
        return self._parse(data)

    def find(self, query: dict, sort: Optional[List[Tuple[str, int]]] = None, skip: int = 0, limit: int = 0):
        with _mongo_errors(f"{self._name}.find"):
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            rows = list(cursor)
        return [self._parse(row) for row in rows]

    def count(self, query: dict) -> int:
        with _mongo_errors(f"{self._name}.count"):
            return self.collection.count_documents(query)


class MongoQuizRepository(_MongoRepository, IQuizRepository):
    """MongoDB implementation of the quiz repository."""

    collection_name = "quizzes"
    model = Quiz

    def save(self, quiz: Quiz, expected_version: int) -> None:
        """
        Replace the whole quiz document in one write.

        The filter pins the version read earlier, so a concurrent save in
        between makes this one match nothing.
        """
        # Documents written before versioning have no field; {"$in": [0, None]} matches those too
        version_filter = expected_version if expected_version else {"$in": [0, None]}
        with _mongo_errors(f"{self._name}.save", quiz_id=quiz.id):
            result = self.collection.replace_one(
                {"_id": quiz.id, "version": version_filter},
                quiz.to_dict(),
            )
        if result.matched_count == 0:
            logger.warning(
                "MongoQuizRepository.save.version_conflict",
                extra={"quiz_id": quiz.id, "expected_version": expected_version},
            )
            raise ConflictError("Quiz was modified by another request; reload it and try again")
        logger.info(
            "MongoQuizRepository.save.ok",
            extra={"quiz_id": quiz.id, "version": quiz.version},
        )


class MongoAssignmentRepository(_MongoRepository, IAssignmentRepository):
    """MongoDB implementation of the assignment repository."""

    collection_name = "assignments"
    model = Assignment

    def update(self, assignment: Assignment) -> None:
        doc = assignment.to_dict()
        assignment_id = doc.pop("_id")
        with _mongo_errors(f"{self._name}.update", assignment_id=assignment_id):
            result = self.collection.update_one({"_id": assignment_id}, {"$set": doc})
        if result.matched_count == 0:
            logger.warning(
                "MongoAssignmentRepository.update.not_found",
                extra={"assignment_id": assignment_id},
            )
            raise NotFoundError("Assignment not found")
        logger.info(
            "MongoAssignmentRepository.update.ok",
            extra={"assignment_id": assignment_id},
        )


class MongoUserRepository(_MongoRepository, IUserRepository):
    """MongoDB implementation of the user repository."""

    collection_name = "users"
    model = User

    def get_by_email(self, email: str) -> Optional[User]:
        with _mongo_errors(f"{self._name}.get_by_email"):
            data = self.collection.find_one({"email": email.lower()})
        return self._parse(data)

    def create(self, user: User) -> None:
        try:
            super().create(user)
        except DuplicateKeyError as exc:
            raise ConflictError("User already exists") from exc

    def update_fields(self, user_id: str, fields: dict) -> bool:
        fields = {**fields, "updated_at": datetime.now(timezone.utc)}
        with _mongo_errors(f"{self._name}.update_fields", user_id=user_id):
            result = self.collection.update_one({"_id": user_id}, {"$set": fields})
        return result.matched_count > 0

    def find_by_reset_token(self, token_digest: str, now: datetime) -> Optional[User]:
        with _mongo_errors(f"{self._name}.find_by_reset_token"):
            data = self.collection.find_one(
                {"reset_password_token": token_digest, "reset_password_expires": {"$gt": now}}
            )
        return self._parse(data)

    def get_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        with _mongo_errors(f"{self._name}.get_names"):
            rows = list(
                self.collection.find({"_id": {"$in": ids}}, {"first_name": 1, "last_name": 1})
            )
        return {
            row["_id"]: f"{row.get('first_name', '')} {row.get('last_name', '')}".strip()
            for row in rows
        }


class MongoStudentRepository(_MongoRepository, IStudentRepository):
    """MongoDB implementation of the children-of-parents repository."""

    collection_name = "students"
    model = Student

    def list_by_parent(self, parent_id: str) -> List[Student]:
        return self.find({"parent_id": parent_id}, sort=[("created_at", 1)])


class MongoParentRequestRepository(_MongoRepository, IParentRequestRepository):
    """MongoDB implementation of the parent request repository."""

    collection_name = "parent_requests"
    model = ParentRequest


class MongoMaterialRepository(_MongoRepository, IMaterialRepository):
    """MongoDB implementation of the study material repository."""

    collection_name = "materials"
    model = StudyMaterial
