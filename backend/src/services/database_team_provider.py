"""
Relational team membership backend.

Stores teams and memberships in the teams/user_teams tables. Each
operation opens its own Session from the injected sessionmaker and runs
in Starlette's threadpool so async callers never block the event loop.

Design:
- Team names are unique (case-insensitive check, unique index as backstop)
- Membership is a set: UNIQUE(user_id, team_id); re-assigning is a no-op
- The default team cannot be deleted and users cannot be removed from it
"""

from typing import Callable, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from backend.src.models import Team, UserTeam
from backend.src.models.team import utc_now
from backend.src.schemas.team import CreateTeamRequest, UpdateTeamRequest
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ProtectedResourceError,
)
from backend.src.services.team_provider import (
    DEFAULT_TEAM_DESCRIPTION,
    SYSTEM_USER,
    TeamInfo,
    TeamWithMemberCount,
    log_degraded_lookup,
)
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

T = TypeVar("T")

BACKEND_NAME = "database"


def team_to_info(team: Team) -> TeamInfo:
    """Convert an ORM Team row into a TeamInfo."""
    return TeamInfo(
        id=team.id,
        name=team.name,
        description=team.description,
        is_default=bool(team.is_default),
        created_by=team.created_by,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )


class DatabaseTeamProvider:
    """
    Team provider backed by SQLAlchemy.

    Usage:
        >>> provider = DatabaseTeamProvider(session_factory)
        >>> teams = await provider.get_user_teams(user_id)
    """

    def __init__(self, session_factory: sessionmaker, default_team_name: str = "Default Team"):
        """
        Initialize the provider.

        Args:
            session_factory: sessionmaker bound to the teams database
            default_team_name: Name used when bootstrapping the default team
        """
        self.session_factory = session_factory
        self.default_team_name = default_team_name

    async def _run(self, fn: Callable[[Session], T]) -> T:
        """Run fn with a fresh session in the threadpool."""
        def work() -> T:
            with self.session_factory() as db:
                return fn(db)
        return await run_in_threadpool(work)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_teams(self, user_id: str) -> List[TeamInfo]:
        """
        Get the teams a user belongs to.

        Returns:
            Teams ordered by name; [] if the user has none or the
            lookup failed
        """
        def query(db: Session) -> List[TeamInfo]:
            rows = (
                db.query(Team)
                .join(UserTeam, UserTeam.team_id == Team.id)
                .filter(UserTeam.user_id == user_id)
                .order_by(Team.name)
                .all()
            )
            return [team_to_info(row) for row in rows]

        try:
            return await self._run(query)
        except SQLAlchemyError as e:
            log_degraded_lookup("get_user_teams", BACKEND_NAME, e, user_id=user_id)
            return []

    async def get_all_teams(self) -> List[TeamInfo]:
        """Get every team ordered by name; [] if the lookup failed."""
        def query(db: Session) -> List[TeamInfo]:
            return [team_to_info(row) for row in db.query(Team).order_by(Team.name).all()]

        try:
            return await self._run(query)
        except SQLAlchemyError as e:
            log_degraded_lookup("get_all_teams", BACKEND_NAME, e)
            return []

    async def get_all_teams_with_member_count(self) -> List[TeamWithMemberCount]:
        """Get every team with its number of members."""
        def query(db: Session) -> List[TeamWithMemberCount]:
            rows = (
                db.query(Team, func.count(UserTeam.id))
                .outerjoin(UserTeam, UserTeam.team_id == Team.id)
                .group_by(Team.id)
                .order_by(Team.name)
                .all()
            )
            return [
                TeamWithMemberCount(team=team_to_info(team), member_count=count)
                for team, count in rows
            ]

        return await self._run(query)

    # ------------------------------------------------------------------
    # Team lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _find_by_name(db: Session, name: str, exclude_id: Optional[str] = None) -> Optional[Team]:
        query = db.query(Team).filter(func.lower(Team.name) == func.lower(name))
        if exclude_id:
            query = query.filter(Team.id != exclude_id)
        return query.first()

    @staticmethod
    def _get_team(db: Session, team_id: str) -> Team:
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise NotFoundError("Team", team_id)
        return team

    async def create_team(self, request: CreateTeamRequest, created_by: str) -> TeamInfo:
        """
        Create a new team.

        Raises:
            ConflictError: If a team with the same name exists
        """
        def create(db: Session) -> TeamInfo:
            if self._find_by_name(db, request.name):
                raise ConflictError(f"Team with name '{request.name}' already exists")

            team = Team(
                name=request.name,
                description=request.description,
                is_default=False,
                created_by=created_by,
            )
            db.add(team)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.error(f"Failed to create team '{request.name}': {e}")
                raise ConflictError(f"Team with name '{request.name}' already exists")
            db.refresh(team)
            return team_to_info(team)

        team = await self._run(create)
        logger.info(
            f"Created team: {team.name} ({team.id})",
            extra={"event": "team.created", "team_id": team.id, "created_by": created_by},
        )
        return team

    async def update_team(self, team_id: str, patch: UpdateTeamRequest, updated_by: str) -> TeamInfo:
        """
        Update a team's name and/or description.

        Raises:
            NotFoundError: If the team does not exist
            ConflictError: If the new name is taken by another team
        """
        def update(db: Session) -> TeamInfo:
            team = self._get_team(db, team_id)

            if patch.name is not None and patch.name != team.name:
                if self._find_by_name(db, patch.name, exclude_id=team.id):
                    raise ConflictError(f"Team with name '{patch.name}' already exists")
                team.name = patch.name
            if patch.description is not None:
                team.description = patch.description
            team.updated_at = utc_now()

            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.error(f"Failed to update team {team_id}: {e}")
                raise ConflictError(f"Team with name '{patch.name}' already exists")
            db.refresh(team)
            return team_to_info(team)

        team = await self._run(update)
        logger.info(
            f"Updated team: {team.name} ({team.id})",
            extra={"event": "team.updated", "team_id": team.id, "updated_by": updated_by},
        )
        return team

    async def delete_team(self, team_id: str, deleted_by: str) -> None:
        """
        Delete a team and its memberships.

        Raises:
            NotFoundError: If the team does not exist
            ProtectedResourceError: If the team is the default team
        """
        def delete(db: Session) -> str:
            team = self._get_team(db, team_id)
            if team.is_default:
                raise ProtectedResourceError("Cannot delete the default team")
            name = team.name
            db.delete(team)
            db.commit()
            return name

        name = await self._run(delete)
        logger.info(
            f"Deleted team: {name} ({team_id})",
            extra={"event": "team.deleted", "team_id": team_id, "deleted_by": deleted_by},
        )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def assign_user_to_team(self, user_id: str, team_id: str, assigned_by: str) -> None:
        """
        Add a user to a team. Already being a member is not an error.

        Raises:
            NotFoundError: If the team does not exist
        """
        def assign(db: Session) -> bool:
            self._get_team(db, team_id)
            existing = (
                db.query(UserTeam)
                .filter(UserTeam.user_id == user_id, UserTeam.team_id == team_id)
                .first()
            )
            if existing:
                return False

            db.add(UserTeam(user_id=user_id, team_id=team_id, assigned_by=assigned_by))
            try:
                db.commit()
            except IntegrityError:
                # Concurrent assignment won the unique constraint
                db.rollback()
                return False
            return True

        created = await self._run(assign)
        if created:
            logger.info(
                "Assigned user to team",
                extra={
                    "event": "team.user.assigned",
                    "user_id": user_id,
                    "team_id": team_id,
                    "assigned_by": assigned_by,
                },
            )
        else:
            logger.info(
                "User already assigned to team",
                extra={"event": "team.user.already_assigned", "user_id": user_id, "team_id": team_id},
            )

    async def remove_user_from_team(self, user_id: str, team_id: str, removed_by: str) -> None:
        """
        Remove a user from a team.

        Raises:
            NotFoundError: If the team or the membership does not exist
            ProtectedResourceError: If the team is the default team
        """
        def remove(db: Session) -> None:
            team = self._get_team(db, team_id)
            if team.is_default:
                raise ProtectedResourceError("Cannot remove user from the default team")
            membership = (
                db.query(UserTeam)
                .filter(UserTeam.user_id == user_id, UserTeam.team_id == team_id)
                .first()
            )
            if not membership:
                raise NotFoundError("Team membership", f"{user_id}/{team_id}")
            db.delete(membership)
            db.commit()

        await self._run(remove)
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
        """
        Return the default team, creating it on first run.

        Idempotent: a second call returns the same team.
        """
        def ensure(db: Session) -> tuple:
            team = db.query(Team).filter(Team.is_default.is_(True)).first()
            if team:
                return team_to_info(team), False

            team = Team(
                name=self.default_team_name,
                description=DEFAULT_TEAM_DESCRIPTION,
                is_default=True,
                created_by=SYSTEM_USER,
            )
            db.add(team)
            try:
                db.commit()
            except IntegrityError:
                # Another process created it first
                db.rollback()
                team = db.query(Team).filter(Team.is_default.is_(True)).first()
                if not team:
                    raise ConflictError(
                        f"Cannot create default team: name '{self.default_team_name}' is taken"
                    )
                return team_to_info(team), False
            db.refresh(team)
            return team_to_info(team), True

        team, created = await self._run(ensure)
        if created:
            logger.info(
                f"Created default team: {team.name} ({team.id})",
                extra={"event": "team.default.created", "team_id": team.id},
            )
        return team

    async def assign_user_to_default_team(self, user_id: str) -> None:
        """Add a newly registered user to the default team."""
        team = await self.ensure_default_team_exists()
        await self.assign_user_to_team(user_id, team.id, SYSTEM_USER)

    async def aclose(self) -> None:
        """Nothing to release; sessions are closed per operation."""
        return None
