"""
Team Pydantic schemas for API request/response validation.

Defines schemas for team management, team assignment and the caller's
own team listing. Wire field names follow the report metadata style
(camelCase) via aliases; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


TEAM_NAME_PATTERN = r"^[a-zA-Z0-9\s\-_]+$"
TEAM_NAME_MAX_LENGTH = 50
TEAM_DESCRIPTION_MAX_LENGTH = 255


# ============================================================================
# Request Schemas
# ============================================================================


class CreateTeamRequest(BaseModel):
    """Request schema for creating a new team."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Platform QA",
                "description": "Owns the end-to-end suites",
            }
        }
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=TEAM_NAME_MAX_LENGTH,
        pattern=TEAM_NAME_PATTERN,
        description="Team name (letters, numbers, spaces, hyphens, underscores)",
        json_schema_extra={"example": "Platform QA"}
    )
    description: Optional[str] = Field(
        None,
        max_length=TEAM_DESCRIPTION_MAX_LENGTH,
        description="Optional team description",
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Team name cannot be empty")
        return stripped


class UpdateTeamRequest(BaseModel):
    """Request schema for a partial team update. Omitted fields are kept."""

    name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=TEAM_NAME_MAX_LENGTH,
        pattern=TEAM_NAME_PATTERN,
        description="New team name",
    )
    description: Optional[str] = Field(
        None,
        max_length=TEAM_DESCRIPTION_MAX_LENGTH,
        description="New team description",
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        """Reject names that are only whitespace."""
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            raise ValueError("Team name cannot be empty")
        return stripped


class TeamAssignmentRequest(BaseModel):
    """Request schema for assigning a user to a team or removing them."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, description="User identifier (UUID)")
    team_id: str = Field(..., alias="teamId", min_length=1, description="Team identifier (UUID)")


# ============================================================================
# Response Schemas
# ============================================================================


class TeamResponse(BaseModel):
    """Response schema for a single team."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(..., description="Team identifier (UUID)")
    name: str = Field(..., description="Team name")
    description: Optional[str] = Field(None, description="Team description")
    is_default: bool = Field(False, alias="isDefault", description="Whether this is the default team")
    created_by: Optional[str] = Field(None, alias="createdBy", description="Creator user id")
    created_at: Optional[datetime] = Field(None, alias="createdAt", description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt", description="Last update timestamp")


class TeamWithMemberCountResponse(TeamResponse):
    """Response schema for a team in the admin listing."""

    member_count: int = Field(0, alias="memberCount", description="Number of members")


class TeamPermissionsResponse(BaseModel):
    """What the caller may do with teams."""

    model_config = ConfigDict(populate_by_name=True)

    can_create_team: bool = Field(False, alias="canCreateTeam")
    can_delete_team: bool = Field(False, alias="canDeleteTeam")
    can_assign_users: bool = Field(False, alias="canAssignUsers")
    can_view_all_teams: bool = Field(False, alias="canViewAllTeams")


class TeamListResponse(BaseModel):
    """Response schema for the admin team listing."""

    teams: List[TeamWithMemberCountResponse] = Field(..., description="Teams with member counts")
    total: int = Field(..., description="Total number of teams")
    permissions: TeamPermissionsResponse = Field(..., description="Caller's team permissions")


class UserTeamsResponse(BaseModel):
    """Response schema for the caller's own teams."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    teams: List[TeamResponse]


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str


# ============================================================================
# Helper Functions
# ============================================================================


def team_to_response(team) -> TeamResponse:
    """
    Convert a TeamInfo to a TeamResponse.

    Args:
        team: TeamInfo instance

    Returns:
        TeamResponse schema
    """
    return TeamResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        is_default=team.is_default,
        created_by=team.created_by,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


def team_with_count_to_response(entry) -> TeamWithMemberCountResponse:
    """Convert a TeamWithMemberCount to its response schema."""
    team = entry.team
    return TeamWithMemberCountResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        is_default=team.is_default,
        created_by=team.created_by,
        created_at=team.created_at,
        updated_at=team.updated_at,
        member_count=entry.member_count,
    )
