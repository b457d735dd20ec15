"""
Group-based team membership backend (Keycloak).

Teams are top-level Keycloak groups whose name starts with a reserved
prefix (default "team-"); the team name is the group name without the
prefix. Groups without the prefix are ignored. Team properties live in
group attributes, which Keycloak stores as lists of strings:

    description, isDefault ("true"/"false"), createdBy, createdAt, updatedAt

Every user and team id is checked against the UUID pattern before it is
placed in an admin URL.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.src.auth.keycloak_admin import KeycloakAdminClient
from backend.src.schemas.team import CreateTeamRequest, UpdateTeamRequest
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ProtectedResourceError,
    UpstreamError,
)
from backend.src.services.team_provider import (
    DEFAULT_TEAM_DESCRIPTION,
    SYSTEM_USER,
    TeamInfo,
    TeamWithMemberCount,
    log_degraded_lookup,
)
from backend.src.utils.logging_config import get_logger
from backend.src.utils.validation import is_valid_uuid, validate_uuid, validate_uuids


logger = get_logger("services")

BACKEND_NAME = "keycloak"

MEMBERS_PAGE_SIZE = 100


def _first_attribute(attributes: Dict[str, Any], key: str) -> Optional[str]:
    values = attributes.get(key) or []
    if isinstance(values, str):
        return values
    return values[0] if values else None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring malformed team timestamp attribute: {value!r}")
        return None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class KeycloakTeamProvider:
    """
    Team provider backed by Keycloak groups.

    Usage:
        >>> provider = KeycloakTeamProvider(KeycloakAdminClient(...))
        >>> teams = await provider.get_user_teams(user_id)
    """

    def __init__(
        self,
        client: KeycloakAdminClient,
        group_prefix: str = "team-",
        default_team_name: str = "Default Team",
    ):
        """
        Initialize the provider.

        Args:
            client: Admin API client for the realm
            group_prefix: Group name prefix marking team groups
            default_team_name: Name used when bootstrapping the default team
        """
        self.client = client
        self.group_prefix = group_prefix
        self.default_team_name = default_team_name

    # ------------------------------------------------------------------
    # Group <-> team mapping
    # ------------------------------------------------------------------

    def is_team_group(self, group: Dict[str, Any]) -> bool:
        """Check whether a group represents a team."""
        name = group.get("name") or ""
        return name.startswith(self.group_prefix) and len(name) > len(self.group_prefix)

    def group_to_team(self, group: Dict[str, Any]) -> TeamInfo:
        """Convert a team group representation into a TeamInfo."""
        attributes = group.get("attributes") or {}
        return TeamInfo(
            id=group["id"],
            name=group["name"][len(self.group_prefix):],
            description=_first_attribute(attributes, "description"),
            is_default=_first_attribute(attributes, "isDefault") == "true",
            created_by=_first_attribute(attributes, "createdBy"),
            created_at=_parse_timestamp(_first_attribute(attributes, "createdAt")),
            updated_at=_parse_timestamp(_first_attribute(attributes, "updatedAt")),
        )

    def _teams_from_groups(self, groups: List[Dict[str, Any]]) -> List[TeamInfo]:
        teams = [self.group_to_team(g) for g in groups if self.is_team_group(g)]
        return sorted(teams, key=lambda t: t.name.lower())

    async def _list_team_groups(self) -> List[Dict[str, Any]]:
        groups = await self.client.get_json(
            "/groups",
            params={"search": self.group_prefix, "briefRepresentation": "false"},
            resource="Groups",
        )
        return [g for g in groups if self.is_team_group(g)]

    async def _get_team_group(self, team_id: str) -> Dict[str, Any]:
        validate_uuid(team_id, "teamId")
        group = await self.client.get_json(
            f"/groups/{team_id}", resource="Team", identifier=team_id
        )
        if not self.is_team_group(group):
            raise NotFoundError("Team", team_id)
        return group

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_teams(self, user_id: str) -> List[TeamInfo]:
        """
        Get the teams a user belongs to.

        Returns:
            Teams ordered by name; [] for unknown users, malformed ids or
            when Keycloak is unreachable
        """
        if not is_valid_uuid(user_id):
            log_degraded_lookup(
                "get_user_teams", BACKEND_NAME, ValueError("userId must be a valid UUID"),
                user_id=user_id,
            )
            return []

        try:
            groups = await self.client.get_json(
                f"/users/{user_id}/groups",
                params={"briefRepresentation": "false"},
                resource="User",
                identifier=user_id,
            )
        except NotFoundError:
            logger.info(f"User {user_id} not found in Keycloak; no teams")
            return []
        except UpstreamError as e:
            log_degraded_lookup("get_user_teams", BACKEND_NAME, e, user_id=user_id)
            return []

        return self._teams_from_groups(groups)

    async def get_all_teams(self) -> List[TeamInfo]:
        """Get every team ordered by name; [] when Keycloak is unreachable."""
        try:
            groups = await self._list_team_groups()
        except (NotFoundError, UpstreamError) as e:
            log_degraded_lookup("get_all_teams", BACKEND_NAME, e)
            return []
        return self._teams_from_groups(groups)

    async def _count_members(self, group_id: str) -> int:
        count = 0
        first = 0
        while True:
            members = await self.client.get_json(
                f"/groups/{group_id}/members",
                params={"briefRepresentation": "true", "first": first, "max": MEMBERS_PAGE_SIZE},
                resource="Team",
                identifier=group_id,
            )
            count += len(members)
            if len(members) < MEMBERS_PAGE_SIZE:
                return count
            first += MEMBERS_PAGE_SIZE

    async def get_all_teams_with_member_count(self) -> List[TeamWithMemberCount]:
        """Get every team with its number of members."""
        teams = self._teams_from_groups(await self._list_team_groups())
        result = []
        for team in teams:
            result.append(TeamWithMemberCount(team=team, member_count=await self._count_members(team.id)))
        return result

    # ------------------------------------------------------------------
    # Team lifecycle
    # ------------------------------------------------------------------

    async def _create_group(self, name: str, attributes: Dict[str, List[str]]) -> TeamInfo:
        existing = await self._list_team_groups()
        for group in existing:
            if group["name"][len(self.group_prefix):].lower() == name.lower():
                raise ConflictError(f"Team with name '{name}' already exists")

        group_name = f"{self.group_prefix}{name}"
        try:
            response = await self.client.request(
                "POST",
                "/groups",
                json={"name": group_name, "attributes": attributes},
                resource="Team",
            )
        except ConflictError:
            raise ConflictError(f"Team with name '{name}' already exists")

        location = response.headers.get("Location", "")
        group_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not group_id:
            # Older servers omit Location; look the group up by name
            for group in await self._list_team_groups():
                if group["name"] == group_name:
                    group_id = group["id"]
                    break
        if not group_id:
            raise UpstreamError(f"Keycloak did not return an id for group '{group_name}'")

        return self.group_to_team({"id": group_id, "name": group_name, "attributes": attributes})

    async def create_team(self, request: CreateTeamRequest, created_by: str) -> TeamInfo:
        """
        Create a team group.

        Raises:
            ConflictError: If a team with the same name exists
        """
        now = _now_iso()
        attributes = {
            "description": [request.description] if request.description else [],
            "isDefault": ["false"],
            "createdBy": [created_by],
            "createdAt": [now],
            "updatedAt": [now],
        }
        team = await self._create_group(request.name, attributes)
        logger.info(
            f"Created team: {team.name} ({team.id})",
            extra={"event": "team.created", "team_id": team.id, "created_by": created_by},
        )
        return team

    async def update_team(self, team_id: str, patch: UpdateTeamRequest, updated_by: str) -> TeamInfo:
        """
        Update a team group's name and/or description.

        Raises:
            ValidationError: If team_id is not a UUID
            NotFoundError: If no such team exists
            ConflictError: If the new name is taken
        """
        group = await self._get_team_group(team_id)
        current = self.group_to_team(group)

        if patch.name is not None and patch.name.lower() != current.name.lower():
            for other in await self._list_team_groups():
                if other["id"] != team_id and other["name"][len(self.group_prefix):].lower() == patch.name.lower():
                    raise ConflictError(f"Team with name '{patch.name}' already exists")

        attributes = dict(group.get("attributes") or {})
        if patch.description is not None:
            attributes["description"] = [patch.description]
        attributes["updatedAt"] = [_now_iso()]

        updated = dict(group)
        updated["attributes"] = attributes
        if patch.name is not None:
            updated["name"] = f"{self.group_prefix}{patch.name}"

        await self.client.request(
            "PUT", f"/groups/{team_id}", json=updated, resource="Team", identifier=team_id
        )
        team = self.group_to_team(updated)
        logger.info(
            f"Updated team: {team.name} ({team.id})",
            extra={"event": "team.updated", "team_id": team.id, "updated_by": updated_by},
        )
        return team

    async def delete_team(self, team_id: str, deleted_by: str) -> None:
        """
        Delete a team group.

        Raises:
            ValidationError: If team_id is not a UUID
            NotFoundError: If no such team exists
            ProtectedResourceError: If the team is the default team
        """
        team = self.group_to_team(await self._get_team_group(team_id))
        if team.is_default:
            raise ProtectedResourceError("Cannot delete the default team")

        await self.client.request("DELETE", f"/groups/{team_id}", resource="Team", identifier=team_id)
        logger.info(
            f"Deleted team: {team.name} ({team_id})",
            extra={"event": "team.deleted", "team_id": team_id, "deleted_by": deleted_by},
        )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def assign_user_to_team(self, user_id: str, team_id: str, assigned_by: str) -> None:
        """
        Add a user to a team group. Keycloak treats re-joining as a no-op.

        Raises:
            ValidationError: If either id is not a UUID
            NotFoundError: If the team or the user does not exist
        """
        validate_uuids([(user_id, "userId"), (team_id, "teamId")])
        await self._get_team_group(team_id)
        await self.client.request(
            "PUT", f"/users/{user_id}/groups/{team_id}", resource="User", identifier=user_id
        )
        logger.info(
            "Assigned user to team",
            extra={
                "event": "team.user.assigned",
                "user_id": user_id,
                "team_id": team_id,
                "assigned_by": assigned_by,
            },
        )

    async def remove_user_from_team(self, user_id: str, team_id: str, removed_by: str) -> None:
        """
        Remove a user from a team group.

        Raises:
            ValidationError: If either id is not a UUID
            NotFoundError: If the team or the user does not exist
            ProtectedResourceError: If the team is the default team
        """
        validate_uuids([(user_id, "userId"), (team_id, "teamId")])
        team = self.group_to_team(await self._get_team_group(team_id))
        if team.is_default:
            raise ProtectedResourceError("Cannot remove user from the default team")

        await self.client.request(
            "DELETE", f"/users/{user_id}/groups/{team_id}", resource="User", identifier=user_id
        )
        logger.info(
            "Removed user from team",
            extra={
                "event": "team.user.removed",
                "user_id": user_id,
                "team_id": team_id,
                "removed_by": removed_by,
            },
        )

    # ------------------------------------------------------------------
    # Default team
    # ------------------------------------------------------------------

    async def ensure_default_team_exists(self) -> TeamInfo:
        """Return the default team group, creating it on first run."""
        for team in self._teams_from_groups(await self._list_team_groups()):
            if team.is_default:
                return team

        now = _now_iso()
        team = await self._create_group(
            self.default_team_name,
            {
                "description": [DEFAULT_TEAM_DESCRIPTION],
                "isDefault": ["true"],
                "createdBy": [SYSTEM_USER],
                "createdAt": [now],
                "updatedAt": [now],
            },
        )
        logger.info(
            f"Created default team: {team.name} ({team.id})",
            extra={"event": "team.default.created", "team_id": team.id},
        )
        return team

    async def assign_user_to_default_team(self, user_id: str) -> None:
        """Add a newly registered user to the default team group."""
        team = await self.ensure_default_team_exists()
        await self.assign_user_to_team(user_id, team.id, SYSTEM_USER)

    async def aclose(self) -> None:
        """Close the admin client."""
        await self.client.aclose()
