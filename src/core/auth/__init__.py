from src.core.auth.models import Principal, UserRole
from src.core.auth.jwt import create_access_token, decode_token
from src.core.auth.dependencies import get_current_principal, require_roles

__all__ = [
    "Principal",
    "UserRole",
    "create_access_token",
    "decode_token",
    "get_current_principal",
    "require_roles",
]
