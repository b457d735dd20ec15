"""
User Teams API endpoint.

Returns the teams of the authenticated caller.
"""

from fastapi import APIRouter, Depends

from backend.src.api.dependencies import get_team_provider
from backend.src.middleware.auth import AuthContext, require_auth
from backend.src.schemas.team import UserTeamsResponse, team_to_response
from backend.src.services.team_provider import TeamMembershipProvider


router = APIRouter(prefix="/user-teams", tags=["Teams"])


@router.get("", response_model=UserTeamsResponse)
async def get_my_teams(
    ctx: AuthContext = Depends(require_auth),
    provider: TeamMembershipProvider = Depends(get_team_provider),
):
    """
    List the caller's teams.

    An empty list means the caller only sees their own uploads and demo data.
    """
    teams = await provider.get_user_teams(ctx.user_id)
    return UserTeamsResponse(
        user_id=ctx.user_id,
        teams=[team_to_response(team) for team in teams],
    )
