"""
Identity service: maps an externally authenticated session to a Player.

The hosted auth provider owns sessions (including sessions that started with
a Steam OpenID login); this module only asks it who a bearer token belongs to
and then finds or creates the matching player row.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squadhub.database.models import Player
from squadhub.services.errors import StoreUnavailable, Unauthenticated
from squadhub.utils.constants import DEFAULT_DISPLAY_NAME_PREFIX, DEFAULT_RATING

logger = logging.getLogger(__name__)

AUTH_URL = os.getenv("AUTH_URL", "http://localhost:54321")
AUTH_API_KEY = os.getenv("AUTH_API_KEY", "")
AUTH_TIMEOUT_SECONDS = float(os.getenv("AUTH_TIMEOUT_SECONDS", "5"))

# Metadata keys checked, in order, for a display name
_DISPLAY_NAME_KEYS = ("nickname", "full_name", "name", "personaname")
_AVATAR_KEYS = ("avatar_url", "avatarfull", "picture")


@dataclass
class ExternalIdentity:
    """The identity provider's view of the caller."""

    external_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def steam_id(self) -> Optional[str]:
        steam_id = self.metadata.get("steam_id")
        return str(steam_id) if steam_id else None


@dataclass
class DegradedIdentity:
    """
    Unpersisted profile returned when the store cannot be reached.

    Deliberately not a Player: callers must check for it and refuse any
    operation that needs a stored player.
    """

    external_id: str
    display_name: str
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    rating: int = DEFAULT_RATING
    reason: str = "store_unavailable"


ResolvedPlayer = Union[Player, DegradedIdentity]


def display_name_from_metadata(external_id: str, metadata: Dict[str, Any]) -> str:
    """
    Pick a display name from provider metadata, falling back to Player_<id prefix>.

    Examples:
        >>> display_name_from_metadata("76561198000000000", {})
        'Player_76561'
    """
    for key in _DISPLAY_NAME_KEYS:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return f"{DEFAULT_DISPLAY_NAME_PREFIX}{external_id[:5]}"


def avatar_from_metadata(metadata: Dict[str, Any]) -> Optional[str]:
    for key in _AVATAR_KEYS:
        value = metadata.get(key)
        if value:
            return value
    return None


async def get_current_user(token: str) -> Optional[ExternalIdentity]:
    """
    Ask the auth provider who owns a bearer token.

    Args:
        token: Access token issued by the auth provider

    Returns:
        ExternalIdentity, or None when the token has no live session

    Raises:
        StoreUnavailable: If the provider cannot be reached or answers with a server error
    """
    if not token:
        return None

    headers = {"Authorization": f"Bearer {token}"}
    if AUTH_API_KEY:
        headers["apikey"] = AUTH_API_KEY

    try:
        async with httpx.AsyncClient(timeout=AUTH_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{AUTH_URL.rstrip('/')}/auth/v1/user", headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Identity provider request failed: {e}")
        raise StoreUnavailable("Identity provider unavailable")

    if response.status_code in (401, 403):
        return None
    if response.status_code >= 500:
        logger.error(f"Identity provider returned {response.status_code}")
        raise StoreUnavailable("Identity provider unavailable")
    if response.status_code != 200:
        logger.warning(f"Unexpected identity provider status {response.status_code}")
        return None

    data = response.json()
    external_id = data.get("id")
    if not external_id:
        return None
    return ExternalIdentity(external_id=str(external_id), metadata=data.get("user_metadata") or {})


async def get_player_by_auth_id(session: AsyncSession, auth_id: str) -> Optional[Player]:
    result = await session.execute(select(Player).where(Player.auth_id == auth_id))
    return result.scalar_one_or_none()


async def get_unclaimed_player_by_steam_id(session: AsyncSession, steam_id: str) -> Optional[Player]:
    """Find a pre-registered (not yet linked) player by Steam id."""
    result = await session.execute(
        select(Player).where(Player.steam_id == steam_id, Player.auth_id.is_(None))
    )
    return result.scalar_one_or_none()


async def _create_player(session: AsyncSession, identity: ExternalIdentity) -> Player:
    """
    Insert the player row for a first-time identity.

    The insert runs in a SAVEPOINT so that losing a race against a concurrent
    first-time resolution (unique violation on auth_id) only rolls back this
    insert; the winner's row is then returned instead.
    """
    metadata = identity.metadata
    player = Player(
        auth_id=identity.external_id,
        steam_id=identity.steam_id,
        display_name=display_name_from_metadata(identity.external_id, metadata),
        avatar_url=avatar_from_metadata(metadata),
        city=metadata.get("city") or None,
        rating=DEFAULT_RATING,
    )
    try:
        async with session.begin_nested():
            session.add(player)
    except IntegrityError:
        logger.info(f"Player for auth id {identity.external_id} created concurrently, re-reading")
        existing = await get_player_by_auth_id(session, identity.external_id)
        if existing is None:
            raise
        return existing

    await session.refresh(player)
    logger.info(f"Created player {player.id} for auth id {identity.external_id}")
    return player


async def resolve_current_player(
    session: AsyncSession, identity: Optional[ExternalIdentity]
) -> ResolvedPlayer:
    """
    Resolve the caller's Player, creating it on first sight.

    Args:
        session: Database session
        identity: Identity returned by get_current_user (None if no session)

    Returns:
        The stored Player, or a DegradedIdentity if the store is unreachable

    Raises:
        Unauthenticated: If there is no external session
    """
    if identity is None:
        raise Unauthenticated()

    try:
        player = await get_player_by_auth_id(session, identity.external_id)
        if player is not None:
            return player

        # Pre-registered players (created from a Steam login before they had
        # an auth account) are claimed instead of duplicated.
        if identity.steam_id:
            pre_registered = await get_unclaimed_player_by_steam_id(session, identity.steam_id)
            if pre_registered is not None:
                pre_registered.auth_id = identity.external_id
                await session.flush()
                logger.info(
                    f"Linked pre-registered player {pre_registered.id} to auth id {identity.external_id}"
                )
                return pre_registered

        return await _create_player(session, identity)
    except (OperationalError, InterfaceError) as e:
        logger.warning(f"Store unavailable while resolving {identity.external_id}, using degraded profile: {e}")
        try:
            await session.rollback()
        except SQLAlchemyError as rollback_error:
            logger.debug(f"Rollback after store failure also failed: {rollback_error}")
        return DegradedIdentity(
            external_id=identity.external_id,
            display_name=display_name_from_metadata(identity.external_id, identity.metadata),
            avatar_url=avatar_from_metadata(identity.metadata),
            city=identity.metadata.get("city") or None,
        )


def format_player(player: ResolvedPlayer) -> Dict:
    """Format a resolved player (stored or degraded) for API responses."""
    if isinstance(player, DegradedIdentity):
        return {
            "id": None,
            "auth_id": player.external_id,
            "steam_id": None,
            "display_name": player.display_name,
            "avatar_url": player.avatar_url,
            "city": player.city,
            "rating": player.rating,
            "matches_played": 0,
            "matches_won": 0,
            "matches_lost": 0,
            "team_id": None,
            "degraded": True,
        }
    return {
        "id": player.id,
        "auth_id": player.auth_id,
        "steam_id": player.steam_id,
        "display_name": player.display_name,
        "avatar_url": player.avatar_url,
        "city": player.city,
        "rating": player.rating,
        "matches_played": player.matches_played,
        "matches_won": player.matches_won,
        "matches_lost": player.matches_lost,
        "team_id": player.team_id,
        "degraded": False,
    }
