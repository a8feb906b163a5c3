"""
SQLAlchemy ORM models for the team and matchmaking system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from squadhub.database.db import Base
from squadhub.utils.constants import CAPTAIN_ROLE, DEFAULT_MEMBER_ROLE, DEFAULT_RATING
from squadhub.utils.datetime_utils import utcnow


class JoinRequestStatus(str, enum.Enum):
    """Team join request status enum."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class QueueStatus(str, enum.Enum):
    """Matchmaking queue entry status enum."""

    SEARCHING = "searching"
    READY = "ready"
    MATCHED = "matched"


class Player(Base):
    """Player profiles, linked to an external auth identity."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    auth_id = Column(String, nullable=True, unique=True)  # External auth id; null until claimed
    steam_id = Column(String, nullable=True, unique=True)
    display_name = Column(String, nullable=False)  # Not unique
    avatar_url = Column(String, nullable=True)
    city = Column(String, nullable=True)
    rating = Column(Integer, default=DEFAULT_RATING, nullable=False, server_default=str(DEFAULT_RATING))
    matches_played = Column(Integer, default=0, nullable=False, server_default="0")
    matches_won = Column(Integer, default=0, nullable=False, server_default="0")
    matches_lost = Column(Integer, default=0, nullable=False, server_default="0")
    # Non-null iff a TeamMember row exists for this player
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    team = relationship("Team", foreign_keys=[team_id])
    membership = relationship("TeamMember", back_populates="player", uselist=False)
    queue_entry = relationship("QueueEntry", back_populates="player", uselist=False)

    __table_args__ = (
        Index("idx_players_display_name", "display_name"),
        Index("idx_players_team", "team_id"),
        Index("idx_players_rating", "rating"),
    )


class Team(Base):
    """Team rosters (capped at TEAM_MAX_MEMBERS members)."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    tag = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    region = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    cover_url = Column(String, nullable=True)
    rating = Column(Integer, default=DEFAULT_RATING, nullable=False, server_default=str(DEFAULT_RATING))
    wins = Column(Integer, default=0, nullable=False, server_default="0")
    losses = Column(Integer, default=0, nullable=False, server_default="0")
    is_recruiting = Column(Boolean, default=True, nullable=False, server_default="true")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    join_requests = relationship("TeamJoinRequest", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_teams_rating", "rating"),
        Index("idx_teams_recruiting", "is_recruiting"),
    )


class TeamMember(Base):
    """Join table (Player ↔ Team)."""

    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    role = Column(String(32), default=DEFAULT_MEMBER_ROLE, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    team = relationship("Team", back_populates="members")
    player = relationship("Player", back_populates="membership")

    __table_args__ = (
        # A player belongs to at most one team
        UniqueConstraint("player_id", name="uq_team_members_player"),
        # At most one captain per team
        Index(
            "uq_team_members_one_captain",
            "team_id",
            unique=True,
            postgresql_where=text(f"role = '{CAPTAIN_ROLE}'"),
            sqlite_where=text(f"role = '{CAPTAIN_ROLE}'"),
        ),
        Index("idx_team_members_team", "team_id"),
    )


class TeamJoinRequest(Base):
    """A player's request to join a team, resolved once by the captain."""

    __tablename__ = "team_join_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    status = Column(String(20), default=JoinRequestStatus.PENDING.value, nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    team = relationship("Team", back_populates="join_requests")
    player = relationship("Player", backref="team_join_requests")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')", name="ck_team_join_requests_status"
        ),
        # At most one pending request per (team, player)
        Index(
            "uq_team_join_requests_pending",
            "team_id",
            "player_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_team_join_requests_team_status", "team_id", "status"),
    )


class QueueEntry(Base):
    """A player's presence in the matchmaking queue (one per player, any mode)."""

    __tablename__ = "queue_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game_mode = Column(String(32), nullable=False)
    map_preference = Column(String(32), nullable=True)
    status = Column(String(20), default=QueueStatus.SEARCHING.value, nullable=False)
    queue_start = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    player = relationship("Player", back_populates="queue_entry")

    __table_args__ = (
        UniqueConstraint("player_id", name="uq_queue_entries_player"),
        CheckConstraint(
            "status IN ('searching', 'ready', 'matched')", name="ck_queue_entries_status"
        ),
        Index("idx_queue_entries_mode_status_start", "game_mode", "status", "queue_start"),
    )
