"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.team import (
    CreateTeamRequest,
    UpdateTeamRequest,
    TeamAssignmentRequest,
    TeamResponse,
    TeamWithMemberCountResponse,
    TeamPermissionsResponse,
    TeamListResponse,
    UserTeamsResponse,
    MessageResponse,
)
from backend.src.schemas.report import (
    CtrfReportRequest,
    ReportMetadataResponse,
    StoredReportResponse,
    ReportListResponse,
    ReportResponse,
)

__all__ = [
    # Teams
    "CreateTeamRequest",
    "UpdateTeamRequest",
    "TeamAssignmentRequest",
    "TeamResponse",
    "TeamWithMemberCountResponse",
    "TeamPermissionsResponse",
    "TeamListResponse",
    "UserTeamsResponse",
    "MessageResponse",
    # Reports
    "CtrfReportRequest",
    "ReportMetadataResponse",
    "StoredReportResponse",
    "ReportListResponse",
    "ReportResponse",
]
