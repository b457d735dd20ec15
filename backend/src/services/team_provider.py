"""
Team membership provider contract.

A TeamMembershipProvider answers "which teams does this user belong to?"
and manages team lifecycle and membership. Two interchangeable backends
exist:

- DatabaseTeamProvider: relational tables (teams, user_teams)
- KeycloakTeamProvider: identity-provider groups with a name prefix

Exactly one backend is selected at startup from AppSettings.auth_provider
and shared by every request; callers depend only on this protocol.

Read operations never raise for lookup failures: they log a
"teams.lookup.degraded" warning and return an empty list, which the
access filter turns into "own uploads and demo data only".
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from backend.src.config.settings import (
    AppSettings,
    AUTH_PROVIDER_DATABASE,
    AUTH_PROVIDER_KEYCLOAK,
)
from backend.src.schemas.team import CreateTeamRequest, UpdateTeamRequest
from backend.src.services.team_filters import DEMO_DATA_TEAM
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


DEFAULT_TEAM_DESCRIPTION = "Default team for all users"
SYSTEM_USER = "system"


@dataclass(frozen=True)
class TeamInfo:
    """
    A team as seen by callers, independent of the backing store.

    Raises:
        ValueError: If id collides with the reserved demo-data sentinel
    """

    id: str
    name: str
    description: Optional[str] = None
    is_default: bool = False
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.id == DEMO_DATA_TEAM:
            raise ValueError(f"Team id '{DEMO_DATA_TEAM}' is reserved")


@dataclass(frozen=True)
class TeamWithMemberCount:
    """A team plus its current number of members."""

    team: TeamInfo
    member_count: int


@dataclass(frozen=True)
class TeamPermissions:
    """Team management capabilities granted by a user's roles."""

    can_create_team: bool = False
    can_delete_team: bool = False
    can_assign_users: bool = False
    can_view_all_teams: bool = False


def get_team_permissions(roles: Iterable[str]) -> TeamPermissions:
    """
    Derive team permissions from role names.

    owner: everything; maintainer: assign users and view all teams;
    readonly (or no role): nothing.
    """
    role_set = set(roles)
    if "owner" in role_set:
        return TeamPermissions(
            can_create_team=True,
            can_delete_team=True,
            can_assign_users=True,
            can_view_all_teams=True,
        )
    if "maintainer" in role_set:
        return TeamPermissions(can_assign_users=True, can_view_all_teams=True)
    return TeamPermissions()


@runtime_checkable
class TeamMembershipProvider(Protocol):
    """Capability interface shared by all team backends."""

    async def get_user_teams(self, user_id: str) -> List[TeamInfo]:
        """Teams the user belongs to. Degrades to [] on lookup failure."""
        ...

    async def get_all_teams(self) -> List[TeamInfo]:
        """Every team. Degrades to [] on lookup failure."""
        ...

    async def get_all_teams_with_member_count(self) -> List[TeamWithMemberCount]:
        """Every team with its member count."""
        ...

    async def create_team(self, request: CreateTeamRequest, created_by: str) -> TeamInfo:
        """Create a team. Raises ConflictError on a duplicate name."""
        ...

    async def update_team(self, team_id: str, patch: UpdateTeamRequest, updated_by: str) -> TeamInfo:
        """Apply a partial update. Raises NotFoundError / ConflictError."""
        ...

    async def delete_team(self, team_id: str, deleted_by: str) -> None:
        """Delete a team. Raises ProtectedResourceError for the default team."""
        ...

    async def assign_user_to_team(self, user_id: str, team_id: str, assigned_by: str) -> None:
        """Add a membership. Assigning an existing member is a no-op."""
        ...

    async def remove_user_from_team(self, user_id: str, team_id: str, removed_by: str) -> None:
        """Remove a membership. Raises ProtectedResourceError for the default team."""
        ...

    async def ensure_default_team_exists(self) -> TeamInfo:
        """Return the default team, creating it if missing."""
        ...

    async def assign_user_to_default_team(self, user_id: str) -> None:
        """Add the user to the default team (registration-time hook)."""
        ...

    async def aclose(self) -> None:
        """Release backend resources."""
        ...


async def get_user_team_ids(provider: TeamMembershipProvider, user_id: str) -> List[str]:
    """
    Resolve a user's team ids for filter building and report stamping.

    Args:
        provider: Configured team provider
        user_id: Authenticated user id

    Returns:
        List of team ids; empty when the user has no teams or the
        lookup degraded
    """
    teams = await provider.get_user_teams(user_id)
    return [team.id for team in teams]


def log_degraded_lookup(operation: str, backend: str, error: Exception, **context) -> None:
    """Record a read-path failure that was absorbed into an empty result."""
    logger.warning(
        f"Team lookup degraded to empty result: {operation}",
        extra={
            "event": "teams.lookup.degraded",
            "operation": operation,
            "backend": backend,
            "error": str(error),
            **context,
        },
    )


def create_team_provider(settings: AppSettings, session_factory=None) -> TeamMembershipProvider:
    """
    Build the configured team provider.

    Args:
        settings: Application settings
        session_factory: SQLAlchemy sessionmaker for the database backend;
            created from settings.database_url when omitted

    Returns:
        The single provider instance for this process

    Raises:
        ValueError: If the provider is unknown or its settings are incomplete
    """
    if settings.auth_provider == AUTH_PROVIDER_KEYCLOAK:
        if not settings.keycloak_configured:
            raise ValueError(
                "Keycloak provider selected but KEYCLOAK_URL, KEYCLOAK_ADMIN_USERNAME "
                "and KEYCLOAK_ADMIN_PASSWORD are not all set"
            )
        from backend.src.auth.keycloak_admin import KeycloakAdminClient
        from backend.src.services.keycloak_team_provider import KeycloakTeamProvider

        client = KeycloakAdminClient(
            base_url=settings.keycloak_url,
            realm=settings.keycloak_realm,
            admin_username=settings.keycloak_admin_username,
            admin_password=settings.keycloak_admin_password,
            timeout=settings.keycloak_timeout_seconds,
        )
        provider = KeycloakTeamProvider(
            client,
            group_prefix=settings.keycloak_team_group_prefix,
            default_team_name=settings.default_team_name,
        )
    elif settings.auth_provider == AUTH_PROVIDER_DATABASE:
        from backend.src.services.database_team_provider import DatabaseTeamProvider

        if session_factory is None:
            from backend.src.db.database import create_db_engine, create_session_factory
            session_factory = create_session_factory(create_db_engine(settings.database_url))
        provider = DatabaseTeamProvider(
            session_factory,
            default_team_name=settings.default_team_name,
        )
    else:
        raise ValueError(f"Unknown team provider: {settings.auth_provider}")

    logger.info(
        "Team provider initialized",
        extra={"event": "teams.provider.initialized", "backend": settings.auth_provider},
    )
    return provider
