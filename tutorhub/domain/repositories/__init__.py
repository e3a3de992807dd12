from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple
from ..models.db_models import (
    Assignment,
    ParentRequest,
    Quiz,
    Student,
    StudyMaterial,
    User,
)

class IQuizRepository(ABC):
    """Interface for a quiz repository."""
    @abstractmethod
    def get_by_id(self, quiz_id: str) -> Optional[Quiz]:
        pass

    @abstractmethod
    def create(self, quiz: Quiz) -> None:
        pass

    @abstractmethod
    def save(self, quiz: Quiz, expected_version: int) -> None:
        """Replace the stored quiz if its version still equals expected_version."""
        pass

    @abstractmethod
    def delete(self, quiz_id: str) -> Optional[Quiz]:
        pass

    @abstractmethod
    def find(self, query: dict, sort: List[Tuple[str, int]], skip: int = 0, limit: int = 0) -> List[Quiz]:
        pass

    @abstractmethod
    def count(self, query: dict) -> int:
        pass

class IAssignmentRepository(ABC):
    """Interface for an assignment repository."""
    @abstractmethod
    def get_by_id(self, assignment_id: str) -> Optional[Assignment]:
        pass

    @abstractmethod
    def create(self, assignment: Assignment) -> None:
        pass

    @abstractmethod
    def update(self, assignment: Assignment) -> None:
        pass

    @abstractmethod
    def delete(self, assignment_id: str) -> Optional[Assignment]:
        pass

    @abstractmethod
    def find(self, query: dict, sort: List[Tuple[str, int]], skip: int = 0, limit: int = 0) -> List[Assignment]:
        pass

class IUserRepository(ABC):
    """Interface for a user repository."""
    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def create(self, user: User) -> None:
        pass

    @abstractmethod
    def update_fields(self, user_id: str, fields: dict) -> bool:
        pass

    @abstractmethod
    def find(self, query: dict, sort: List[Tuple[str, int]]) -> List[User]:
        pass

    @abstractmethod
    def get_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        pass

class IStudentRepository(ABC):
    """Interface for a repository of parents' children."""
    @abstractmethod
    def create(self, student: Student) -> None:
        pass

    @abstractmethod
    def list_by_parent(self, parent_id: str) -> List[Student]:
        pass

class IParentRequestRepository(ABC):
    """Interface for a parent request repository."""
    @abstractmethod
    def create(self, request: ParentRequest) -> None:
        pass

    @abstractmethod
    def find(self, query: dict, limit: int = 0) -> List[ParentRequest]:
        pass

class IMaterialRepository(ABC):
    """Interface for a study material repository."""
    @abstractmethod
    def create(self, material: StudyMaterial) -> None:
        pass

    @abstractmethod
    def find(self, query: dict) -> List[StudyMaterial]:
        pass
