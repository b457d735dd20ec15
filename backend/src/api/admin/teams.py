"""
Admin Teams API endpoints for team management.

Listing requires the maintainer role; creating, updating and deleting
teams require the owner role. Service errors are translated to HTTP
responses by the application exception handlers.
"""

from fastapi import APIRouter, Depends

from backend.src.api.dependencies import get_team_provider
from backend.src.middleware.auth import AuthContext, require_maintainer, require_owner
from backend.src.schemas.team import (
    CreateTeamRequest,
    UpdateTeamRequest,
    TeamResponse,
    TeamListResponse,
    TeamPermissionsResponse,
    MessageResponse,
    team_to_response,
    team_with_count_to_response,
)
from backend.src.services.team_provider import TeamMembershipProvider, get_team_permissions
from backend.src.utils.logging_config import get_logger
from backend.src.utils.validation import validate_uuid


logger = get_logger("api")

router = APIRouter(prefix="/teams", tags=["Admin - Teams"])


@router.get("", response_model=TeamListResponse)
async def list_teams(
    ctx: AuthContext = Depends(require_maintainer),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    List all teams with member counts.

    **Requires maintainer role or higher.**

    The response also carries the caller's team permissions so clients
    can enable or hide management actions.
    """
    teams = await provider.get_all_teams_with_member_count()
    permissions = get_team_permissions(ctx.roles)

    return TeamListResponse(
        teams=[team_with_count_to_response(entry) for entry in teams],
        total=len(teams),
        permissions=TeamPermissionsResponse(
            can_create_team=permissions.can_create_team,
            can_delete_team=permissions.can_delete_team,
            can_assign_users=permissions.can_assign_users,
            can_view_all_teams=permissions.can_view_all_teams,
        ),
    )


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    request: CreateTeamRequest,
    ctx: AuthContext = Depends(require_owner),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    Create a new team.

    **Requires owner role.**

    - **name**: Team name (unique, letters/numbers/spaces/hyphens/underscores)
    - **description**: Optional description
    """
    team = await provider.create_team(request, created_by=ctx.user_id)

    logger.info(
        "Admin created team",
        extra={
            "event": "admin.team.created",
            "user_id": ctx.user_id,
            "team_id": team.id,
            "team_name": team.name,
        }
    )
    return team_to_response(team)


@router.put("/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: str,
    request: UpdateTeamRequest,
    ctx: AuthContext = Depends(require_owner),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    Update a team's name and/or description.

    **Requires owner role.**
    """
    validate_uuid(team_id, "teamId")
    team = await provider.update_team(team_id, request, updated_by=ctx.user_id)

    logger.info(
        "Admin updated team",
        extra={"event": "admin.team.updated", "user_id": ctx.user_id, "team_id": team.id}
    )
    return team_to_response(team)


@router.delete("/{team_id}", response_model=MessageResponse)
async def delete_team(
    team_id: str,
    ctx: AuthContext = Depends(require_owner),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    Delete a team and its memberships.

    **Requires owner role.** The default team cannot be deleted.
    """
    validate_uuid(team_id, "teamId")
    await provider.delete_team(team_id, deleted_by=ctx.user_id)

    logger.info(
        "Admin deleted team",
        extra={"event": "admin.team.deleted", "user_id": ctx.user_id, "team_id": team_id}
    )
    return MessageResponse(message="Team deleted successfully")
