"""
UserTeam model: many-to-many membership between users and teams.

Users live in the identity provider, so user_id is an opaque string and
not a foreign key. A (user_id, team_id) pair is unique; membership is a
set, not a multiset.
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.team import utc_now


class UserTeam(Base):
    """
    Membership row linking a user to a team.

    Attributes:
        id: UUID string primary key
        user_id: Identity-provider user id
        team_id: FK to teams.id (ON DELETE CASCADE)
        assigned_by: User id (or "system") that created the membership
        assigned_at: Assignment timestamp
    """

    __tablename__ = "user_teams"
    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_user_teams_user_team"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String(255), nullable=False, index=True)
    team_id = Column(
        String(36),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    assigned_by = Column(String(255), nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    team = relationship("Team", back_populates="memberships")

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<UserTeam(user_id='{self.user_id}', team_id='{self.team_id}')>"
