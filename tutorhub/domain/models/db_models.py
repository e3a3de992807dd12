from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
import uuid


DEFAULT_QUESTION_TYPE = "Multiple Choice"


class UserRole(str, Enum):
    ADMIN = "admin"
    PARENT = "parent"
    TUTOR = "tutor"
    STUDENT = "student"


class TeachingMode(str, Enum):
    ONLINE = "online"
    IN_PERSON = "in_person"
    HYBRID = "hybrid"


class Urgency(str, Enum):
    WITHIN_24_HOURS = "within_24_hours"
    WITHIN_3_DAYS = "within_3_days"
    WITHIN_A_WEEK = "within_a_week"


class RequestStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    CLOSED = "closed"


def _utc_now():
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Identifiers are UUID strings, for documents and question subdocuments alike."""
    return str(uuid.uuid4())


class MongoModel(BaseModel):
    """Base for persisted documents: `_id` in Mongo, `id` everywhere else."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str = Field(default_factory=new_id, alias="_id")

    def to_dict(self):
        """Convert model to dictionary for MongoDB."""
        return self.model_dump(by_alias=True)

    def to_public_dict(self):
        """JSON-safe representation for API responses."""
        return self.model_dump(mode="json")


class User(MongoModel):
    """User account for every role."""
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    password_hash: str
    role: UserRole = UserRole.STUDENT
    # Student info
    class_grade: Optional[str] = None
    # Tutor profile, searched by parents
    subjects: List[str] = Field(default_factory=list)
    teaching_mode: Optional[TeachingMode] = None
    price: Optional[float] = None
    years_of_experience: Optional[int] = None
    availability: Optional[str] = None
    rating: float = 0.0
    testimonial: str = ""
    # Password reset (sha256 digest of the emailed token)
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_public_dict(self):
        data = self.model_dump(
            mode="json",
            exclude={"password_hash", "reset_password_token", "reset_password_expires"},
        )
        data["full_name"] = self.full_name
        return data


class Question(MongoModel):
    """A quiz question, stored as a subdocument of its quiz."""
    question: str
    options: List[str]
    correct_answer: str
    type: str = DEFAULT_QUESTION_TYPE


class Quiz(MongoModel):
    """A quiz owned by the tutor who created it."""
    title: str
    subject: str
    class_grade: str
    description: str = ""
    due_date: Optional[str] = None  # YYYY-MM-DD
    questions: List[Question] = Field(default_factory=list)
    created_by: str
    # Bumped on every save; used as an optimistic lock
    version: int = 0
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    def to_student_dict(self):
        """Public view without the answers."""
        data = self.to_public_dict()
        for question in data["questions"]:
            question.pop("correct_answer", None)
        return data


class Assignment(MongoModel):
    """An assignment with an optional attachment."""
    title: str
    subject: str
    class_grade: str
    instructions: str = ""
    attachment_url: str = ""
    attachment_name: str = ""
    attachment_file_id: Optional[str] = None
    due_date: str  # YYYY-MM-DD
    allow_submission_online: bool = False
    created_by: str
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Student(MongoModel):
    """A child registered by a parent account."""
    full_name: str
    class_grade: str
    parent_id: str
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class StudyMaterial(MongoModel):
    """A file a tutor shares with a class grade."""
    title: str
    subject: str
    class_grade: str
    description: str = ""
    file_url: str
    file_name: str
    file_id: str
    content_type: str
    file_size: int = 0
    uploaded_by: str
    created_at: datetime = Field(default_factory=_utc_now)


class ParentRequest(MongoModel):
    """A parent's request for tutoring help, reviewed by admins."""
    parent_id: str
    academic_needs: List[str]
    scheduling: List[str] = Field(default_factory=list)
    location: str
    urgency: Urgency
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
