import re
from typing import List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from tutorhub.domain.errors import ValidationError
from tutorhub.domain.models.db_models import (
    DEFAULT_QUESTION_TYPE,
    RequestStatus,
    TeachingMode,
    Urgency,
    UserRole,
)

T = TypeVar("T", bound=BaseModel)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def describe_errors(exc: SchemaValidationError) -> str:
    """Flatten pydantic errors into one readable message."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def parse_payload(model: Type[T], payload) -> T:
    """
    Validate a raw payload into a request model.

    Shape errors surface as the domain ValidationError so services can
    validate after their ownership checks and still map to a 400.
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload or {})
    except SchemaValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


class RequestModel(BaseModel):
    """Base for incoming payloads."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


# --- Auth ---

class SignupRequest(RequestModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str
    phone: str = ""
    password: str
    role: UserRole = UserRole.STUDENT
    class_grade: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    teaching_mode: Optional[TeachingMode] = None
    price: Optional[float] = Field(None, ge=0)
    years_of_experience: Optional[int] = Field(None, ge=0)
    availability: Optional[str] = None
    testimonial: str = ""

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError("must be a valid email address")
        return value.lower()


class LoginRequest(RequestModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(RequestModel):
    email: str = Field(..., min_length=1)


class ResetPasswordRequest(RequestModel):
    token: str = Field(..., min_length=1)
    password: str


# --- Quizzes ---

class QuestionCreate(RequestModel):
    """A question in a create-quiz payload. Invariants are checked by the service."""
    question: str
    options: List[str]
    correct_answer: str
    type: str = DEFAULT_QUESTION_TYPE


class QuizCreateRequest(RequestModel):
    title: Optional[str] = None
    subject: Optional[str] = None
    class_grade: Optional[str] = None
    description: str = ""
    due_date: Optional[str] = None
    questions: Optional[List[QuestionCreate]] = None


class QuestionPatch(RequestModel):
    """
    A question entry in an update payload.

    With an id it edits that question, without one it is a new question.
    Fields left out keep their stored value.
    """
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "_id"))
    question: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    type: Optional[str] = None


class QuizUpdateRequest(RequestModel):
    title: Optional[str] = None
    subject: Optional[str] = None
    class_grade: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    questions: Optional[List[QuestionPatch]] = None
    version: Optional[int] = None


# --- Assignments & materials (multipart form fields) ---

class AssignmentCreateRequest(RequestModel):
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    class_grade: str = Field(..., min_length=1)
    due_date: str = Field(..., min_length=1)
    instructions: str = ""
    allow_submission_online: bool = False


class AssignmentUpdateRequest(RequestModel):
    title: Optional[str] = None
    subject: Optional[str] = None
    class_grade: Optional[str] = None
    due_date: Optional[str] = None
    instructions: Optional[str] = None
    allow_submission_online: Optional[bool] = None


class MaterialUploadRequest(RequestModel):
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    class_grade: str = Field(..., min_length=1)
    description: str = ""


# --- Parents ---

class AddStudentRequest(RequestModel):
    full_name: str = Field(..., min_length=1)
    class_grade: str = Field(..., min_length=1)


class TutorSearchFilters(RequestModel):
    subject: Optional[str] = None
    teaching_mode: Optional[TeachingMode] = Field(
        None, validation_alias=AliasChoices("teaching_mode", "teachingMode")
    )
    min_price: Optional[float] = Field(None, ge=0, validation_alias=AliasChoices("min_price", "minPrice"))
    max_price: Optional[float] = Field(None, ge=0, validation_alias=AliasChoices("max_price", "maxPrice"))
    min_experience: Optional[int] = Field(
        None, ge=0, validation_alias=AliasChoices("min_experience", "minExperience")
    )
    availability: Optional[str] = None
    min_rating: Optional[float] = Field(None, ge=0, validation_alias=AliasChoices("min_rating", "minRating"))

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ParentRequestCreate(RequestModel):
    academic_needs: List[str] = Field(
        ..., min_length=1, validation_alias=AliasChoices("academic_needs", "academicNeeds")
    )
    scheduling: List[str] = Field(default_factory=list)
    location: str = Field(..., min_length=1)
    urgency: Urgency


class ParentRequestFilters(RequestModel):
    urgency: Optional[Urgency] = None
    status: Optional[RequestStatus] = None
    subject: Optional[str] = None
    limit: int = Field(50, ge=1, le=100)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value, info):
        if isinstance(value, str) and not value.strip():
            return 50 if info.field_name == "limit" else None
        return value
