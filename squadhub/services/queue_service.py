"""
Matchmaking queue service.

Keeps one queue entry per player (across all game modes), lists the players
searching in a mode in first-come-first-served order, and lets observers
follow a mode's queue live through the change notifier. Pairing players
into matches is not done here.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from squadhub.database import db
from squadhub.database.models import Player, QueueEntry, QueueStatus
from squadhub.services.change_notifier import ChangeNotifier, get_change_notifier, queue_topic
from squadhub.utils.constants import MAPS
from squadhub.utils.datetime_utils import utcnow, isoformat_or_none, seconds_since
import logging

logger = logging.getLogger(__name__)

QueueUpdateCallback = Callable[[List[Dict]], Awaitable[Any]]


def get_maps() -> List[Dict]:
    """Maps players can express a preference for."""
    return [dict(m) for m in MAPS]


async def get_queue_entry(session: AsyncSession, player_id: int) -> Optional[QueueEntry]:
    result = await session.execute(select(QueueEntry).where(QueueEntry.player_id == player_id))
    return result.scalar_one_or_none()


async def join_queue(
    session: AsyncSession,
    player_id: int,
    game_mode: str,
    map_preference: Optional[str],
    notifier: Optional[ChangeNotifier] = None,
) -> Dict:
    """
    Put a player in the queue for a game mode.

    A player already queued (in any mode) has their entry updated in place:
    mode and preference replaced, status back to searching, queue time reset.
    Calling this again with the same arguments only refreshes queue_start.
    When a concurrent first join wins the insert, its entry is updated instead.

    Commits before notifying so observers re-read the new state.

    Args:
        session: Database session
        player_id: Player joining
        game_mode: Game mode to search in
        map_preference: Preferred map id
        notifier: Change notifier (defaults to the global one)

    Returns:
        Dict with the queue entry data
    """
    notifier = notifier or get_change_notifier()
    now = utcnow()

    entry = await get_queue_entry(session, player_id)
    previous_mode = entry.game_mode if entry else None
    if entry:
        _requeue(entry, game_mode, map_preference, now)
    else:
        entry = QueueEntry(
            player_id=player_id,
            game_mode=game_mode,
            map_preference=map_preference,
            status=QueueStatus.SEARCHING.value,
            queue_start=now,
            updated_at=now,
        )
        try:
            async with session.begin_nested():
                session.add(entry)
        except IntegrityError:
            logger.info(f"Queue entry for player {player_id} created concurrently, updating it")
            entry = await get_queue_entry(session, player_id)
            if entry is None:
                raise
            previous_mode = entry.game_mode
            _requeue(entry, game_mode, map_preference, now)
    await session.commit()

    logger.info(f"Player {player_id} queued for {game_mode} (map: {map_preference})")
    if previous_mode and previous_mode != game_mode:
        await notifier.publish(queue_topic(previous_mode))
    await notifier.publish(queue_topic(game_mode))
    return _format_entry(entry)


def _requeue(entry: QueueEntry, game_mode: str, map_preference: Optional[str], now: datetime) -> None:
    """Point an existing entry at a mode and send it to the back of the line."""
    entry.game_mode = game_mode
    entry.map_preference = map_preference
    entry.status = QueueStatus.SEARCHING.value
    entry.queue_start = now
    entry.updated_at = now


async def leave_queue(
    session: AsyncSession, player_id: int, notifier: Optional[ChangeNotifier] = None
) -> bool:
    """
    Remove a player from the queue. Not queued is not an error.

    Args:
        session: Database session
        player_id: Player leaving
        notifier: Change notifier (defaults to the global one)

    Returns:
        True if an entry was removed, False if the player was not queued
    """
    notifier = notifier or get_change_notifier()

    entry = await get_queue_entry(session, player_id)
    if not entry:
        return False

    game_mode = entry.game_mode
    await session.delete(entry)
    await session.commit()

    logger.info(f"Player {player_id} left the {game_mode} queue")
    await notifier.publish(queue_topic(game_mode))
    return True


async def queue_status(session: AsyncSession, player_id: int) -> Dict:
    """
    Report whether a player is queued.

    Returns:
        Dict with in_queue and the entry data (None when not queued)
    """
    entry = await get_queue_entry(session, player_id)
    return {"in_queue": entry is not None, "entry": _format_entry(entry) if entry else None}


async def list_queued_players(
    session: AsyncSession, game_mode: str, now: Optional[datetime] = None
) -> List[Dict]:
    """
    List players searching in a game mode, oldest entry first.

    Args:
        session: Database session
        game_mode: Game mode
        now: Reference time for wait_seconds (defaults to current UTC time)

    Returns:
        List of dicts with player info, entry data and wait_seconds
    """
    now = now or utcnow()
    result = await session.execute(
        select(QueueEntry, Player.display_name, Player.avatar_url, Player.rating)
        .join(Player, Player.id == QueueEntry.player_id)
        .where(
            QueueEntry.game_mode == game_mode,
            QueueEntry.status == QueueStatus.SEARCHING.value,
        )
        .order_by(QueueEntry.queue_start.asc(), QueueEntry.id.asc())
    )

    players = []
    for entry, display_name, avatar_url, rating in result.all():
        players.append({
            "player_id": entry.player_id,
            "display_name": display_name,
            "avatar_url": avatar_url,
            "rating": rating,
            "status": entry.status,
            "game_mode": entry.game_mode,
            "map_preference": entry.map_preference,
            "queue_start": isoformat_or_none(entry.queue_start),
            "wait_seconds": seconds_since(entry.queue_start, now),
        })
    return players


class QueueObservation:
    """Handle for a live queue subscription returned by observe_queue."""

    def __init__(self, game_mode: str):
        self.game_mode = game_mode
        self.cancelled = False
        self._unsubscribe = None

    async def cancel(self) -> None:
        """
        Stop further deliveries. A refresh already in flight may still deliver once.
        """
        if self.cancelled:
            return
        self.cancelled = True
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None


async def observe_queue(
    game_mode: str,
    on_update: QueueUpdateCallback,
    session_factory=None,
    notifier: Optional[ChangeNotifier] = None,
) -> QueueObservation:
    """
    Follow the queue of a game mode.

    Delivers the current list immediately, then re-lists and redelivers on
    every change published for the mode. There is no reconnection logic:
    if the subscription is dropped (e.g. on_update raised), deliveries stop
    until the caller observes again.

    Args:
        game_mode: Game mode to watch
        on_update: Coroutine function receiving the list_queued_players result
        session_factory: Session factory for the re-reads (defaults to db.AsyncSessionLocal)
        notifier: Change notifier (defaults to the global one)

    Returns:
        QueueObservation whose cancel() ends the subscription
    """
    session_factory = session_factory or db.AsyncSessionLocal
    notifier = notifier or get_change_notifier()
    observation = QueueObservation(game_mode)

    async def refresh() -> None:
        if observation.cancelled:
            return
        async with session_factory() as session:
            players = await list_queued_players(session, game_mode)
        await on_update(players)

    await refresh()
    observation._unsubscribe = await notifier.subscribe(queue_topic(game_mode), refresh)
    return observation


def _format_entry(entry: QueueEntry) -> Dict:
    return {
        "id": entry.id,
        "player_id": entry.player_id,
        "game_mode": entry.game_mode,
        "map_preference": entry.map_preference,
        "status": entry.status,
        "queue_start": isoformat_or_none(entry.queue_start),
        "updated_at": isoformat_or_none(entry.updated_at),
    }
