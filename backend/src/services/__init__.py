"""
Service layer for business logic.

Exports the exception types and the team access helpers used by API
endpoints. Backend implementations are imported from their own modules.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    ProtectedResourceError,
    UpstreamError,
    UpstreamUnavailableError,
)
from backend.src.services.team_filters import (
    DEMO_DATA_TEAM,
    build_team_access_filter,
    get_effective_team_ids,
    should_mark_as_demo_data,
)

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "ProtectedResourceError",
    "UpstreamError",
    "UpstreamUnavailableError",
    "DEMO_DATA_TEAM",
    "build_team_access_filter",
    "get_effective_team_ids",
    "should_mark_as_demo_data",
]
