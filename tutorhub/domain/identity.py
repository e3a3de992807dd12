from dataclasses import dataclass

from tutorhub.domain.models.db_models import UserRole


@dataclass(frozen=True)
class Identity:
    """
    The verified caller of an operation.

    Built once from the bearer token and passed explicitly into services,
    which trust it as-is.
    """
    id: str
    role: UserRole

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
