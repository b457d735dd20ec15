"""
Admin Team Assignment API endpoints.

Assign users to teams and remove them. Requires the maintainer role.
Both ids are validated as UUIDs before reaching the provider.
"""

from fastapi import APIRouter, Depends

from backend.src.api.dependencies import get_team_provider
from backend.src.middleware.auth import AuthContext, require_maintainer
from backend.src.schemas.team import MessageResponse, TeamAssignmentRequest
from backend.src.services.team_provider import TeamMembershipProvider
from backend.src.utils.logging_config import get_logger
from backend.src.utils.validation import validate_uuids


logger = get_logger("api")

router = APIRouter(prefix="/team-assignments", tags=["Admin - Team Assignments"])


@router.post("", response_model=MessageResponse)
async def assign_user_to_team(
    request: TeamAssignmentRequest,
    ctx: AuthContext = Depends(require_maintainer),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    Assign a user to a team.

    **Requires maintainer role or higher.** Assigning an existing member
    succeeds without change.
    """
    validate_uuids([(request.user_id, "userId"), (request.team_id, "teamId")])
    await provider.assign_user_to_team(request.user_id, request.team_id, assigned_by=ctx.user_id)

    logger.info(
        "Admin assigned user to team",
        extra={
            "event": "admin.team_assignment.created",
            "user_id": ctx.user_id,
            "target_user_id": request.user_id,
            "team_id": request.team_id,
        }
    )
    return MessageResponse(message="User assigned to team successfully")


@router.delete("", response_model=MessageResponse)
async def remove_user_from_team(
    request: TeamAssignmentRequest,
    ctx: AuthContext = Depends(require_maintainer),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    Remove a user from a team.

    **Requires maintainer role or higher.** Users cannot be removed from
    the default team.
    """
    validate_uuids([(request.user_id, "userId"), (request.team_id, "teamId")])
    await provider.remove_user_from_team(request.user_id, request.team_id, removed_by=ctx.user_id)

    logger.info(
        "Admin removed user from team",
        extra={
            "event": "admin.team_assignment.removed",
            "user_id": ctx.user_id,
            "target_user_id": request.user_id,
            "team_id": request.team_id,
        }
    )
    return MessageResponse(message="User removed from team successfully")
