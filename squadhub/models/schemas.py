"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field


# Players
class PlayerResponse(BaseModel):
    """Current player profile (degraded=True when served without the database)."""

    id: Optional[int] = None
    auth_id: Optional[str] = None
    steam_id: Optional[str] = None
    display_name: str
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    rating: int
    matches_played: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    team_id: Optional[int] = None
    degraded: bool = False


class RankedPlayer(BaseModel):
    """One row of the player ranking."""

    rank: int
    player_id: int
    display_name: str
    avatar_url: Optional[str] = None
    rating: int
    matches_played: int
    matches_won: int
    matches_lost: int
    win_rate: float
    team_tag: Optional[str] = None


class PlayerRankingResponse(BaseModel):
    items: List[RankedPlayer]
    total_count: int


# Teams
class TeamCreate(BaseModel):
    """Request to create a team."""

    name: str = Field(..., min_length=1, max_length=50)
    tag: str = Field(..., min_length=1, max_length=10)
    region: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)


class TeamUpdate(BaseModel):
    """Partial team update (captain only). Unset fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    tag: Optional[str] = Field(None, min_length=1, max_length=10)
    description: Optional[str] = Field(None, max_length=1000)
    region: Optional[str] = Field(None, max_length=50)
    logo_url: Optional[str] = None
    cover_url: Optional[str] = None
    is_recruiting: Optional[bool] = None


class TeamMemberResponse(BaseModel):
    player_id: int
    team_id: int
    role: str
    joined_at: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    rating: Optional[int] = None


class TeamResponse(BaseModel):
    """Team data, with members when fetched individually."""

    id: int
    name: str
    tag: str
    description: Optional[str] = None
    region: Optional[str] = None
    logo_url: Optional[str] = None
    cover_url: Optional[str] = None
    rating: int
    wins: int
    losses: int
    is_recruiting: bool
    member_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    members: Optional[List[TeamMemberResponse]] = None


class TeamListResponse(BaseModel):
    items: List[TeamResponse]
    total_count: int


class MemberRoleUpdate(BaseModel):
    role: str = Field(..., min_length=1, max_length=32)


class CaptaincyTransfer(BaseModel):
    new_captain_id: int


# Join requests
class JoinRequestCreate(BaseModel):
    message: Optional[str] = Field(None, max_length=500)


class JoinRequestRespond(BaseModel):
    accept: bool


class JoinRequestResponse(BaseModel):
    """Team join request."""

    id: int
    team_id: int
    player_id: int
    player_name: str
    player_avatar: Optional[str] = None
    status: str  # pending, accepted, or rejected
    message: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# Matchmaking queue
class QueueJoin(BaseModel):
    game_mode: str = Field(..., min_length=1, max_length=32)
    map_preference: Optional[str] = Field("random", max_length=32)


class QueueEntryResponse(BaseModel):
    id: int
    player_id: int
    game_mode: str
    map_preference: Optional[str] = None
    status: str
    queue_start: Optional[str] = None
    updated_at: Optional[str] = None


class QueueStatusResponse(BaseModel):
    in_queue: bool
    entry: Optional[QueueEntryResponse] = None


class QueuedPlayer(BaseModel):
    """A player searching in a game mode, with elapsed wait time."""

    player_id: int
    display_name: str
    avatar_url: Optional[str] = None
    rating: Optional[int] = None
    status: str
    game_mode: str
    map_preference: Optional[str] = None
    queue_start: Optional[str] = None
    wait_seconds: int


class MapResponse(BaseModel):
    id: str
    name: str
    image: Optional[str] = None
