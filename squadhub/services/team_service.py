"""
Team service for managing rosters.

Handles team creation, captain-only roster management (roles, removals,
captaincy transfer), leaving a team, the recruiting flag, and team listings.

All functions flush but never commit: the caller's transaction (one per
HTTP request) makes each multi-step workflow atomic.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from squadhub.database.models import Player, Team, TeamMember
from squadhub.services.errors import (
    AlreadyOnTeam,
    CannotRemoveSelf,
    CaptainMustTransfer,
    InvalidRole,
    NotAMember,
    NotCaptain,
    TeamFull,
    TeamNotFound,
)
from squadhub.utils.constants import (
    CAPTAIN_ROLE,
    DEFAULT_MEMBER_ROLE,
    DEFAULT_RATING,
    MAX_ROLE_LENGTH,
    TEAM_MAX_MEMBERS,
)
from squadhub.utils.datetime_utils import utcnow, isoformat_or_none
import logging

logger = logging.getLogger(__name__)

# Fields a captain may change through update_team
UPDATABLE_TEAM_FIELDS = (
    "name",
    "tag",
    "description",
    "region",
    "logo_url",
    "cover_url",
    "is_recruiting",
)

# Columns that reject NULL; an explicit null in a patch leaves them untouched
NON_NULLABLE_TEAM_FIELDS = ("name", "tag", "is_recruiting")


async def get_team_or_raise(session: AsyncSession, team_id: int, for_update: bool = False) -> Team:
    """
    Load a team by id.

    Args:
        session: Database session
        team_id: Team ID
        for_update: Lock the team row until the transaction ends

    Raises:
        TeamNotFound: If the team does not exist
    """
    query = select(Team).where(Team.id == team_id)
    if for_update:
        query = query.with_for_update()  # Serializes concurrent roster changes on this team
    result = await session.execute(query)
    team = result.scalar_one_or_none()
    if not team:
        raise TeamNotFound()
    return team


async def get_player_or_raise(session: AsyncSession, player_id: int) -> Player:
    result = await session.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise NotAMember("Player not found")
    return player


async def get_membership(
    session: AsyncSession, team_id: int, player_id: int
) -> Optional[TeamMember]:
    """
    Get a player's membership row in a team.

    Args:
        session: Database session
        team_id: Team ID
        player_id: Player ID

    Returns:
        TeamMember or None
    """
    result = await session.execute(
        select(TeamMember).where(
            TeamMember.team_id == team_id,
            TeamMember.player_id == player_id,
        )
    )
    return result.scalar_one_or_none()


async def require_captain(session: AsyncSession, team_id: int, player_id: int) -> TeamMember:
    """
    Verify a player is the team's captain.

    Raises:
        NotCaptain: If the player has no membership in the team or is not the IGL
    """
    membership = await get_membership(session, team_id, player_id)
    if not membership or membership.role != CAPTAIN_ROLE:
        raise NotCaptain()
    return membership


async def count_members(session: AsyncSession, team_id: int) -> int:
    result = await session.execute(
        select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
    )
    return result.scalar_one() or 0


async def create_team(
    session: AsyncSession,
    player_id: int,
    name: str,
    tag: str,
    region: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict:
    """
    Create a team with the requesting player as captain.

    Team row, captain membership and the player's team reference are written
    in the caller's transaction, so a failure in any step leaves nothing behind.

    Args:
        session: Database session
        player_id: Creating player (becomes IGL)
        name: Team name
        tag: Short team tag
        region: Optional region
        description: Optional description

    Returns:
        Dict with team data (including members)

    Raises:
        AlreadyOnTeam: If the player already belongs to a team
    """
    player = await get_player_or_raise(session, player_id)
    if player.team_id is not None:
        raise AlreadyOnTeam(
            "You are already a member of a team. Leave your current team before creating a new one."
        )

    team = Team(
        name=name.strip(),
        tag=tag.strip(),
        region=region,
        description=description,
        rating=DEFAULT_RATING,
        wins=0,
        losses=0,
        is_recruiting=True,
    )
    session.add(team)
    await session.flush()

    session.add(
        TeamMember(
            team_id=team.id,
            player_id=player_id,
            role=CAPTAIN_ROLE,
            joined_at=utcnow(),
        )
    )
    player.team_id = team.id
    await session.flush()

    logger.info(f"Player {player_id} created team {team.id} [{team.tag}]")
    return await get_team(session, team.id)


async def update_team(
    session: AsyncSession, team_id: int, player_id: int, patch: Dict
) -> Dict:
    """
    Update team details (captain only).

    Only keys in UPDATABLE_TEAM_FIELDS are applied; others are ignored.
    A null for name, tag or is_recruiting is ignored as well.
    Re-opening recruitment on a full roster is refused so the flag cannot
    advertise a slot that does not exist.

    Args:
        session: Database session
        team_id: Team ID
        player_id: Requesting player
        patch: Fields to change

    Returns:
        Dict with updated team data

    Raises:
        NotCaptain: If the requester is not the captain
        TeamFull: If is_recruiting=True is requested on a full roster
    """
    await require_captain(session, team_id, player_id)
    team = await get_team_or_raise(session, team_id, for_update=True)

    changes = {
        key: value
        for key, value in patch.items()
        if key in UPDATABLE_TEAM_FIELDS
        and not (value is None and key in NON_NULLABLE_TEAM_FIELDS)
    }
    if changes.get("is_recruiting") is True and not team.is_recruiting:
        if await count_members(session, team_id) >= TEAM_MAX_MEMBERS:
            raise TeamFull("Cannot open recruitment while the roster is full")

    for key, value in changes.items():
        if key in ("name", "tag") and isinstance(value, str):
            value = value.strip()
        setattr(team, key, value)
    team.updated_at = utcnow()
    await session.flush()

    logger.info(f"Team {team_id} updated by captain {player_id}: {sorted(changes)}")
    return await get_team(session, team_id)


async def update_member_role(
    session: AsyncSession, team_id: int, player_id: int, member_id: int, new_role: str
) -> Dict:
    """
    Change a member's combat role (captain only).

    The captain role itself never moves through here: granting IGL would
    create a second captain and changing the captain's own role would leave
    none. Both go through transfer_captaincy instead.

    Raises:
        NotCaptain: If the requester is not the captain
        InvalidRole: If the role is empty/too long, is IGL, or targets the captain
        NotAMember: If member_id is not on the team
    """
    await require_captain(session, team_id, player_id)

    role = (new_role or "").strip()
    if not role or len(role) > MAX_ROLE_LENGTH:
        raise InvalidRole(f"Role must be between 1 and {MAX_ROLE_LENGTH} characters")
    if role == CAPTAIN_ROLE:
        raise InvalidRole("Use captaincy transfer to make someone the IGL")

    membership = await get_membership(session, team_id, member_id)
    if not membership:
        raise NotAMember()
    if membership.role == CAPTAIN_ROLE:
        raise InvalidRole("The captain's role changes only through captaincy transfer")

    membership.role = role
    await session.flush()

    logger.info(f"Team {team_id}: member {member_id} role set to {role}")
    return _format_member_row(membership, None)


async def remove_member(
    session: AsyncSession, team_id: int, player_id: int, member_id: int
) -> None:
    """
    Remove a member from the team (captain only).

    Deletes the membership, clears the removed player's team reference and
    reopens recruitment (removal always frees a slot).

    Raises:
        NotCaptain: If the requester is not the captain
        CannotRemoveSelf: If the captain targets themselves
        NotAMember: If member_id is not on the team
    """
    await require_captain(session, team_id, player_id)
    if member_id == player_id:
        raise CannotRemoveSelf()

    team = await get_team_or_raise(session, team_id, for_update=True)
    membership = await get_membership(session, team_id, member_id)
    if not membership:
        raise NotAMember()

    await _drop_membership(session, team, membership)
    logger.info(f"Team {team_id}: captain {player_id} removed member {member_id}")


async def leave_team(session: AsyncSession, team_id: int, player_id: int) -> None:
    """
    Leave a team voluntarily.

    A captain may only leave when they are the last member; otherwise they
    must transfer captaincy first. A team left with no members stops
    recruiting, since nobody remains to answer join requests.

    Raises:
        NotAMember: If the player is not on the team
        CaptainMustTransfer: If the captain leaves a team with other members
    """
    team = await get_team_or_raise(session, team_id, for_update=True)
    membership = await get_membership(session, team_id, player_id)
    if not membership:
        raise NotAMember("You are not a member of this team")

    if membership.role == CAPTAIN_ROLE and await count_members(session, team_id) > 1:
        raise CaptainMustTransfer()

    await _drop_membership(session, team, membership)
    logger.info(f"Player {player_id} left team {team_id}")


async def _drop_membership(session: AsyncSession, team: Team, membership: TeamMember) -> None:
    """
    Delete a membership and clear the player's team reference.

    Recruitment reopens while members remain and closes once the team is empty.
    """
    player = await get_player_or_raise(session, membership.player_id)
    await session.delete(membership)
    player.team_id = None
    await session.flush()
    team.is_recruiting = await count_members(session, team.id) > 0
    team.updated_at = utcnow()
    await session.flush()


async def transfer_captaincy(
    session: AsyncSession, team_id: int, player_id: int, new_captain_id: int
) -> Dict:
    """
    Hand the IGL role to another member (captain only).

    The old captain is demoted and flushed before the new one is promoted so
    the one-captain-per-team index never sees two IGLs; both writes share
    the caller's transaction, so a failure leaves the original captain.

    Raises:
        NotCaptain: If the requester is not the captain
        NotAMember: If new_captain_id is not on the team
    """
    current = await require_captain(session, team_id, player_id)
    if new_captain_id == player_id:
        return await get_team(session, team_id)

    new_captain = await get_membership(session, team_id, new_captain_id)
    if not new_captain:
        raise NotAMember("The selected player is not a member of this team")

    current.role = DEFAULT_MEMBER_ROLE
    await session.flush()
    new_captain.role = CAPTAIN_ROLE
    await session.flush()

    logger.info(f"Team {team_id}: captaincy transferred from {player_id} to {new_captain_id}")
    return await get_team(session, team_id)


async def get_team(session: AsyncSession, team_id: int) -> Dict:
    """
    Get a team with its members.

    Raises:
        TeamNotFound: If the team does not exist
    """
    team = await get_team_or_raise(session, team_id)
    result = await session.execute(
        select(TeamMember, Player.display_name, Player.avatar_url, Player.rating)
        .join(Player, Player.id == TeamMember.player_id)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.joined_at.asc(), TeamMember.id.asc())
    )
    members = [_format_member_row(member, row) for member, *row in result.all()]
    return _format_team(team, members, len(members))


async def list_teams(
    session: AsyncSession,
    search: Optional[str] = None,
    status: str = "all",
    limit: int = 50,
    offset: int = 0,
) -> Dict:
    """
    List teams ordered by rating (highest first).

    Args:
        session: Database session
        search: Optional case-insensitive match on name, tag or region
        status: "all", "recruiting" or "full"
        limit: Max results
        offset: Pagination offset

    Returns:
        Dict with items (team dicts with member_count) and total_count
    """
    query = select(Team)
    if status == "recruiting":
        query = query.where(Team.is_recruiting.is_(True))
    elif status == "full":
        query = query.where(Team.is_recruiting.is_(False))

    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Team.name).like(pattern),
                func.lower(Team.tag).like(pattern),
                func.lower(Team.region).like(pattern),
            )
        )

    count_result = await session.execute(select(func.count()).select_from(query.subquery()))
    total_count = count_result.scalar_one() or 0

    result = await session.execute(
        query.order_by(Team.rating.desc(), Team.id.asc()).limit(limit).offset(offset)
    )
    teams = result.scalars().all()
    if not teams:
        return {"items": [], "total_count": total_count}

    counts_result = await session.execute(
        select(TeamMember.team_id, func.count(TeamMember.id))
        .where(TeamMember.team_id.in_([t.id for t in teams]))
        .group_by(TeamMember.team_id)
    )
    counts = {team_id: count for team_id, count in counts_result.all()}

    items = [_format_team(team, None, counts.get(team.id, 0)) for team in teams]
    return {"items": items, "total_count": total_count}


def _format_member_row(member: TeamMember, player_row) -> Dict:
    display_name, avatar_url, rating = player_row if player_row else (None, None, None)
    return {
        "player_id": member.player_id,
        "team_id": member.team_id,
        "role": member.role,
        "joined_at": isoformat_or_none(member.joined_at),
        "display_name": display_name,
        "avatar_url": avatar_url,
        "rating": rating,
    }


def _format_team(team: Team, members: Optional[List[Dict]], member_count: int) -> Dict:
    data = {
        "id": team.id,
        "name": team.name,
        "tag": team.tag,
        "description": team.description,
        "region": team.region,
        "logo_url": team.logo_url,
        "cover_url": team.cover_url,
        "rating": team.rating,
        "wins": team.wins,
        "losses": team.losses,
        "is_recruiting": team.is_recruiting,
        "member_count": member_count,
        "created_at": isoformat_or_none(team.created_at),
        "updated_at": isoformat_or_none(team.updated_at),
    }
    if members is not None:
        data["members"] = members
    return data
