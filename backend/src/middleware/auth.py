"""
Authentication context and role dependencies for API routes.

Authentication is performed by the identity-aware proxy in front of the
API (e.g. oauth2-proxy backed by Keycloak), which forwards the verified
identity in trusted headers:

- X-User-Id: user identifier (required)
- X-User-Email: email address
- X-User-Roles: comma-separated role names (readonly, maintainer, owner)

Provides:
- AuthContext: Dataclass describing the authenticated caller
- get_auth_context: FastAPI dependency reading the trusted headers
- require_role: Dependency factory enforcing the role hierarchy
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from fastapi import Depends, Header, HTTPException, status

from backend.src.utils.logging_config import get_logger


logger = get_logger("auth")


class UserRole(str, Enum):
    """Roles in ascending order of privilege."""

    READONLY = "readonly"
    MAINTAINER = "maintainer"
    OWNER = "owner"


ROLE_RANK = {
    UserRole.READONLY: 1,
    UserRole.MAINTAINER: 2,
    UserRole.OWNER: 3,
}


@dataclass
class AuthContext:
    """
    The authenticated caller for a request.

    Attributes:
        user_id: Identity-provider user id
        email: Email address, if forwarded
        roles: Role names granted to the user
    """

    user_id: str
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)

    def has_role(self, role: UserRole) -> bool:
        """Check whether the caller holds the role or a higher one."""
        required = ROLE_RANK[role]
        for name in self.roles:
            try:
                if ROLE_RANK[UserRole(name)] >= required:
                    return True
            except ValueError:
                continue
        return False


def parse_roles(header_value: Optional[str]) -> List[str]:
    """Split a comma-separated roles header into normalized role names."""
    if not header_value:
        return []
    return [role.strip().lower() for role in header_value.split(",") if role.strip()]


async def get_auth_context(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_roles: Optional[str] = Header(None, alias="X-User-Roles"),
) -> AuthContext:
    """
    FastAPI dependency building the AuthContext from proxy headers.

    Raises:
        HTTPException 401: If no user id was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return AuthContext(
        user_id=x_user_id.strip(),
        email=x_user_email,
        roles=parse_roles(x_user_roles),
    )


def require_role(minimum: UserRole) -> Callable:
    """
    Build a dependency requiring at least the given role.

    Example:
        @router.post("/teams")
        async def create_team(ctx: AuthContext = Depends(require_role(UserRole.OWNER))):
            ...
    """
    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not ctx.has_role(minimum):
            logger.warning(
                "Insufficient role for request",
                extra={
                    "event": "auth.forbidden",
                    "user_id": ctx.user_id,
                    "required_role": minimum.value,
                    "roles": ctx.roles,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{minimum.value.capitalize()} role or higher required",
            )
        return ctx

    return dependency


require_auth = get_auth_context
require_maintainer = require_role(UserRole.MAINTAINER)
require_owner = require_role(UserRole.OWNER)


__all__ = [
    "AuthContext",
    "UserRole",
    "get_auth_context",
    "parse_roles",
    "require_role",
    "require_auth",
    "require_maintainer",
    "require_owner",
]
