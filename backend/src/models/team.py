"""
Team model for team-based report visibility.

Teams group users for access control over stored test reports. A user can
belong to many teams and a team has many users (see UserTeam).

Design Rationale:
- id is a UUID string so it can be stamped into report metadata and used
  as a keyword term in document store queries
- exactly one team has is_default=true; it is created by the first-run
  bootstrap and cannot be deleted
- updated_at is refreshed by the ORM and, on PostgreSQL, by the
  update_teams_updated_at trigger (migration 001_teams_schema)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship

from backend.src.models import Base


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def generate_team_id() -> str:
    """Generate a new team identifier (UUID v4 string)."""
    return str(uuid.uuid4())


class Team(Base):
    """
    Team model.

    Attributes:
        id: UUID string primary key
        name: Unique human-readable name
        description: Optional description
        is_default: Whether this is the system default team
        created_by: User id (or "system") that created the team
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        memberships: UserTeam rows (one-to-many, cascade delete)

    Constraints:
        - name must be unique
        - the default team cannot be deleted (enforced in the service layer)
    """

    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=generate_team_id)

    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    is_default = Column(Boolean, default=False, nullable=False, index=True)

    created_by = Column(String(255), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    memberships = relationship(
        "UserTeam",
        back_populates="team",
        lazy="select",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Team("
            f"id='{self.id}', "
            f"name='{self.name}', "
            f"default={self.is_default}"
            f")>"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return self.name
