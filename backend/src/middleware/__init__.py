"""
Middleware components for the ScaledTest backend.

This module provides:
- AuthContext: Dataclass representing the authenticated caller
- get_auth_context: FastAPI dependency reading trusted proxy headers
- require_role: FastAPI dependency factory enforcing the role hierarchy
"""

from backend.src.middleware.auth import (
    AuthContext,
    UserRole,
    get_auth_context,
    require_role,
    require_auth,
    require_maintainer,
    require_owner,
)

__all__ = [
    "AuthContext",
    "UserRole",
    "get_auth_context",
    "require_role",
    "require_auth",
    "require_maintainer",
    "require_owner",
]
