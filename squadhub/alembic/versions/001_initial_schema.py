"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Creates the players, teams, team_members, team_join_requests and
queue_entries tables with their unique constraints and partial indexes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("tag", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("region", sa.String(), nullable=True),
        sa.Column("logo_url", sa.String(), nullable=True),
        sa.Column("cover_url", sa.String(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_recruiting", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_teams_rating", "teams", ["rating"])
    op.create_index("idx_teams_recruiting", "teams", ["is_recruiting"])

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("auth_id", sa.String(), nullable=True, unique=True),
        sa.Column("steam_id", sa.String(), nullable=True, unique=True),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_players_display_name", "players", ["display_name"])
    op.create_index("idx_players_team", "players", ["team_id"])
    op.create_index("idx_players_rating", "players", ["rating"])

    op.create_table(
        "team_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="Entry"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("player_id", name="uq_team_members_player"),
    )
    op.create_index("idx_team_members_team", "team_members", ["team_id"])
    op.create_index(
        "uq_team_members_one_captain",
        "team_members",
        ["team_id"],
        unique=True,
        postgresql_where=sa.text("role = 'IGL'"),
    )

    op.create_table(
        "team_join_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')", name="ck_team_join_requests_status"
        ),
    )
    op.create_index(
        "idx_team_join_requests_team_status", "team_join_requests", ["team_id", "status"]
    )
    op.create_index(
        "uq_team_join_requests_pending",
        "team_join_requests",
        ["team_id", "player_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "queue_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("game_mode", sa.String(32), nullable=False),
        sa.Column("map_preference", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="searching"),
        sa.Column("queue_start", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("player_id", name="uq_queue_entries_player"),
        sa.CheckConstraint(
            "status IN ('searching', 'ready', 'matched')", name="ck_queue_entries_status"
        ),
    )
    op.create_index(
        "idx_queue_entries_mode_status_start",
        "queue_entries",
        ["game_mode", "status", "queue_start"],
    )


def downgrade() -> None:
    op.drop_table("queue_entries")
    op.drop_table("team_join_requests")
    op.drop_table("team_members")
    op.drop_table("players")
    op.drop_table("teams")
