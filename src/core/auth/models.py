from dataclasses import dataclass
from enum import StrEnum


class UserRole(StrEnum):
    """Roles carried in access tokens issued by the auth service."""

    ADMIN = "admin"
    MENTOR = "mentor"
    STUDENT = "student"


@dataclass(frozen=True)
class Principal:
    """
    Authenticated caller.

    Users are owned by the external auth service; this side only sees the
    token claims, so there is no users table here.
    """

    user_id: int
    role: str

    def has_role(self, *roles: UserRole) -> bool:
        """Check if principal has any of the specified roles."""
        return self.role in [r.value for r in roles]

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
