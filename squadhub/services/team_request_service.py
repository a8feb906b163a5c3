"""
Team join request service.

A player asks to join a recruiting team; the team's captain accepts or
rejects the request exactly once. Accepting adds the player to the roster
and closes recruitment when the roster reaches the cap.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from squadhub.database.models import JoinRequestStatus, Player, TeamJoinRequest, TeamMember
from squadhub.services import team_service
from squadhub.services.errors import (
    AlreadyOnTeam,
    AlreadyResolved,
    DuplicateRequest,
    RequestNotFound,
    TeamFull,
    TeamNotRecruiting,
)
from squadhub.utils.constants import DEFAULT_MEMBER_ROLE, TEAM_MAX_MEMBERS
from squadhub.utils.datetime_utils import utcnow, isoformat_or_none
import logging

logger = logging.getLogger(__name__)

REQUEST_STATUS_FILTERS = ("pending", "accepted", "rejected", "all")


async def get_pending_request(
    session: AsyncSession, team_id: int, player_id: int
) -> Optional[TeamJoinRequest]:
    """
    Get the pending join request for a (team, player) pair.

    Args:
        session: Database session
        team_id: Team ID
        player_id: Requesting player ID

    Returns:
        TeamJoinRequest or None
    """
    result = await session.execute(
        select(TeamJoinRequest).where(
            TeamJoinRequest.team_id == team_id,
            TeamJoinRequest.player_id == player_id,
            TeamJoinRequest.status == JoinRequestStatus.PENDING.value,
        )
    )
    return result.scalar_one_or_none()


async def request_to_join(
    session: AsyncSession, team_id: int, player_id: int, message: Optional[str] = None
) -> Dict:
    """
    Create a pending request to join a team.

    Args:
        session: Database session
        team_id: Team to join
        player_id: Requesting player
        message: Optional note to the captain

    Returns:
        Dict with join request data

    Raises:
        TeamNotFound: If the team does not exist
        TeamNotRecruiting: If the team is closed to new members
        AlreadyOnTeam: If the player already belongs to a team
        DuplicateRequest: If a pending request already exists for this team
    """
    team = await team_service.get_team_or_raise(session, team_id)
    if not team.is_recruiting:
        raise TeamNotRecruiting()

    player = await team_service.get_player_or_raise(session, player_id)
    if player.team_id is not None:
        raise AlreadyOnTeam()

    if await get_pending_request(session, team_id, player_id):
        raise DuplicateRequest()

    join_request = TeamJoinRequest(
        team_id=team_id,
        player_id=player_id,
        status=JoinRequestStatus.PENDING.value,
        message=message,
    )
    try:
        # The partial unique index catches a concurrent duplicate that slipped
        # past the check above.
        async with session.begin_nested():
            session.add(join_request)
    except IntegrityError:
        raise DuplicateRequest()

    logger.info(f"Player {player_id} requested to join team {team_id} (request {join_request.id})")
    return (await _format_requests(session, [join_request]))[0]


async def respond_to_request(
    session: AsyncSession, request_id: int, team_id: int, player_id: int, accept: bool
) -> Dict:
    """
    Accept or reject a pending join request (captain only).

    On accept the team row is locked for the rest of the transaction, so the
    roster count read here is the count the insert lands on; concurrent
    accepts for the same team queue up behind the lock instead of both
    slipping under the cap. A failed accept leaves the request pending.

    Args:
        session: Database session
        request_id: Join request ID
        team_id: Team the request belongs to
        player_id: Responding player (must be captain)
        accept: True to accept, False to reject

    Returns:
        Dict with the resolved request data

    Raises:
        NotCaptain: If the responder is not the captain
        RequestNotFound: If no such request exists for this team
        AlreadyResolved: If the request is no longer pending
        TeamFull: If accepting would exceed the roster cap
        AlreadyOnTeam: If the requester joined another team in the meantime
    """
    await team_service.require_captain(session, team_id, player_id)

    result = await session.execute(
        select(TeamJoinRequest).where(
            TeamJoinRequest.id == request_id,
            TeamJoinRequest.team_id == team_id,
        )
    )
    join_request = result.scalar_one_or_none()
    if not join_request:
        raise RequestNotFound()
    if join_request.status != JoinRequestStatus.PENDING.value:
        raise AlreadyResolved()

    if not accept:
        join_request.status = JoinRequestStatus.REJECTED.value
        join_request.updated_at = utcnow()
        await session.flush()
        logger.info(f"Team {team_id}: request {request_id} rejected by captain {player_id}")
        return (await _format_requests(session, [join_request]))[0]

    team = await team_service.get_team_or_raise(session, team_id, for_update=True)
    member_count = await team_service.count_members(session, team_id)
    if member_count >= TEAM_MAX_MEMBERS:
        raise TeamFull(f"The team is already full ({TEAM_MAX_MEMBERS} members)")

    requester = await team_service.get_player_or_raise(session, join_request.player_id)
    if requester.team_id is not None:
        raise AlreadyOnTeam("This player has already joined a team")

    try:
        async with session.begin_nested():
            session.add(
                TeamMember(
                    team_id=team_id,
                    player_id=requester.id,
                    role=DEFAULT_MEMBER_ROLE,
                    joined_at=utcnow(),
                )
            )
    except IntegrityError:
        # Unique player_id on team_members: joined another team concurrently
        raise AlreadyOnTeam("This player has already joined a team")

    requester.team_id = team_id
    join_request.status = JoinRequestStatus.ACCEPTED.value
    join_request.updated_at = utcnow()
    if member_count + 1 >= TEAM_MAX_MEMBERS:
        team.is_recruiting = False
        logger.info(f"Team {team_id} is full, recruitment closed")
    team.updated_at = utcnow()
    await session.flush()

    logger.info(f"Team {team_id}: request {request_id} accepted, player {requester.id} joined")
    return (await _format_requests(session, [join_request]))[0]


async def list_pending_requests(
    session: AsyncSession, team_id: int, player_id: int, status: str = "pending"
) -> List[Dict]:
    """
    List a team's join requests, newest first (captain only).

    Args:
        session: Database session
        team_id: Team ID
        player_id: Requesting player (must be captain)
        status: "pending", "accepted", "rejected" or "all"

    Returns:
        List of join request dicts with requester name and avatar

    Raises:
        NotCaptain: If the requester is not the captain
    """
    await team_service.require_captain(session, team_id, player_id)

    query = select(TeamJoinRequest).where(TeamJoinRequest.team_id == team_id)
    if status != "all":
        query = query.where(TeamJoinRequest.status == status)
    query = query.order_by(TeamJoinRequest.created_at.desc(), TeamJoinRequest.id.desc())

    result = await session.execute(query)
    return await _format_requests(session, result.scalars().all())


async def _format_requests(
    session: AsyncSession, requests: List[TeamJoinRequest]
) -> List[Dict]:
    """
    Batch-format TeamJoinRequest rows with requester display info.

    Fetches all referenced players in a single query instead of per-request.
    """
    if not requests:
        return []

    player_ids = list({req.player_id for req in requests})
    result = await session.execute(
        select(Player.id, Player.display_name, Player.avatar_url).where(Player.id.in_(player_ids))
    )
    player_map = {row.id: row for row in result.all()}

    formatted = []
    for req in requests:
        player = player_map.get(req.player_id)
        formatted.append({
            "id": req.id,
            "team_id": req.team_id,
            "player_id": req.player_id,
            "player_name": player.display_name if player else "Unknown",
            "player_avatar": player.avatar_url if player else None,
            "status": req.status,
            "message": req.message,
            "created_at": isoformat_or_none(req.created_at),
            "updated_at": isoformat_or_none(req.updated_at),
        })
    return formatted
