from typing import Annotated

from fastapi import Depends, Header

from src.core.auth.jwt import decode_token
from src.core.auth.models import Principal, UserRole
from src.core.exceptions import AuthenticationError, AuthorizationError


def _principal_from_header(authorization: str) -> Principal:
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization.replace("Bearer ", "")
    payload = decode_token(token, token_type="access")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject")

    role = str(payload["role"]).lower()
    if role not in {r.value for r in UserRole}:
        raise AuthenticationError(f"Unknown role: {role}")

    return Principal(user_id=user_id, role=role)


async def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """
    Dependency to get the authenticated caller from the bearer token.

    Usage:
        @router.get("/invoices/my")
        async def my_invoices(principal: Principal = Depends(get_current_principal)):
            ...
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")
    return _principal_from_header(authorization)


def require_roles(*roles: UserRole):
    """
    Dependency factory to require specific roles.

    Usage:
        @router.post("/batches")
        async def create_batch(
            principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.MENTOR))
        ):
            ...
    """

    async def role_checker(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not principal.has_role(*roles):
            allowed = ", ".join(r.value for r in roles)
            raise AuthorizationError(f"Required role: {allowed}")
        return principal

    return role_checker


# Convenience dependencies
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminUser = Annotated[Principal, Depends(require_roles(UserRole.ADMIN))]
StaffUser = Annotated[Principal, Depends(require_roles(UserRole.ADMIN, UserRole.MENTOR))]
StudentUser = Annotated[Principal, Depends(require_roles(UserRole.STUDENT))]
