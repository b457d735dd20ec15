"""Create teams and user_teams tables.

Revision ID: 001_teams_schema
Revises:
Create Date: 2025-09-02

- teams: team definitions, unique name, single default team
- user_teams: many-to-many membership with UNIQUE(user_id, team_id)
- PostgreSQL: BEFORE UPDATE trigger keeping teams.updated_at current

The default team is not seeded here; ensure_default_team_exists() creates
it on first startup so its id is a generated UUID like every other team.
"""
from alembic import op
import sqlalchemy as sa

revision = '001_teams_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create teams/user_teams, their indexes and the updated_at trigger."""
    bind = op.get_bind()
    is_pg = bind.dialect.name == "postgresql"

    op.create_table(
        'teams',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_teams_name', 'teams', ['name'])
    op.create_index('ix_teams_created_by', 'teams', ['created_by'])
    op.create_index('ix_teams_is_default', 'teams', ['is_default'])

    op.create_table(
        'user_teams',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column(
            'team_id',
            sa.String(36),
            sa.ForeignKey('teams.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('assigned_by', sa.String(255), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'team_id', name='uq_user_teams_user_team'),
    )
    op.create_index('ix_user_teams_user_id', 'user_teams', ['user_id'])
    op.create_index('ix_user_teams_team_id', 'user_teams', ['team_id'])

    if is_pg:
        op.execute("""
            CREATE OR REPLACE FUNCTION update_updated_at_column()
            RETURNS TRIGGER AS $$
            BEGIN
                NEW.updated_at = now();
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql;
        """)
        op.execute("""
            CREATE TRIGGER update_teams_updated_at
            BEFORE UPDATE ON teams
            FOR EACH ROW
            EXECUTE FUNCTION update_updated_at_column();
        """)


def downgrade() -> None:
    """Drop the trigger, then both tables."""
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS update_teams_updated_at ON teams")
        op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    op.drop_index('ix_user_teams_team_id', table_name='user_teams')
    op.drop_index('ix_user_teams_user_id', table_name='user_teams')
    op.drop_table('user_teams')
    op.drop_index('ix_teams_is_default', table_name='teams')
    op.drop_index('ix_teams_created_by', table_name='teams')
    op.drop_index('ix_teams_name', table_name='teams')
    op.drop_table('teams')
