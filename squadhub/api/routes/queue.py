"""Matchmaking queue and queue WebSocket route handlers."""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squadhub.database.db import get_db_session
from squadhub.services import identity_service, queue_service
from squadhub.services.errors import StoreUnavailable
from squadhub.api.auth_dependencies import require_player
from squadhub.api.routes import limiter, store_unavailable_response, internal_error_response
from squadhub.models.schemas import (
    MapResponse,
    QueueJoin,
    QueueEntryResponse,
    QueueStatusResponse,
    QueuedPlayer,
)

logger = logging.getLogger(__name__)
router = APIRouter()

# Seconds without client traffic before the server pings
WS_IDLE_SECONDS = 30


@router.get("/api/queue/maps", response_model=List[MapResponse])
async def get_maps():
    """Get the maps a player can prefer when queueing."""
    return queue_service.get_maps()


@router.post("/api/queue", response_model=QueueEntryResponse)
@limiter.limit("30/minute")
async def join_queue(
    request: Request,
    payload: QueueJoin,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Join (or re-join) the queue for a game mode."""
    try:
        return await queue_service.join_queue(
            session, user["player_id"], payload.game_mode, payload.map_preference
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error joining queue: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error joining queue: {e}")
        raise internal_error_response("Error joining queue")


@router.delete("/api/queue")
async def leave_queue(
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave the queue. Succeeds even when not queued."""
    try:
        removed = await queue_service.leave_queue(session, user["player_id"])
        return {"status": "ok", "removed": removed}
    except SQLAlchemyError as e:
        logger.error(f"Database error leaving queue: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error leaving queue: {e}")
        raise internal_error_response("Error leaving queue")


@router.get("/api/queue/status", response_model=QueueStatusResponse)
async def get_queue_status(
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Get whether the current player is queued."""
    try:
        return await queue_service.queue_status(session, user["player_id"])
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching queue status: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error fetching queue status: {e}")
        raise internal_error_response("Error fetching queue status")


@router.get("/api/queue/{game_mode}/players", response_model=List[QueuedPlayer])
async def list_queued_players(
    game_mode: str,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """List players searching in a game mode, longest waiting first."""
    try:
        return await queue_service.list_queued_players(session, game_mode)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing {game_mode} queue: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error listing {game_mode} queue: {e}")
        raise internal_error_response("Error listing queue")


@router.websocket("/api/ws/queue/{game_mode}")
async def websocket_queue(websocket: WebSocket, game_mode: str):
    """
    WebSocket endpoint pushing the queue of a game mode.

    Requires the auth provider's access token in a query parameter: ?token=<token>
    Sends {"type": "queue_update", "game_mode": ..., "players": [...]} on connect
    and after every queue change in that mode.
    """
    await websocket.accept()

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008, reason="Missing authentication token")
        return

    try:
        identity = await identity_service.get_current_user(token)
    except StoreUnavailable:
        await websocket.close(code=1011, reason="Identity provider unavailable")
        return
    if identity is None:
        await websocket.close(code=1008, reason="Invalid authentication token")
        return

    async def push(players):
        await websocket.send_json({"type": "queue_update", "game_mode": game_mode, "players": players})

    try:
        observation = await queue_service.observe_queue(game_mode, push)
    except SQLAlchemyError as e:
        logger.error(f"Database error starting {game_mode} queue observation: {e}")
        await websocket.close(code=1011, reason="Store unavailable")
        return

    try:
        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=WS_IDLE_SECONDS)
                if data == "ping":
                    await websocket.send_text("pong")
            except asyncio.TimeoutError:
                try:
                    await websocket.send_text("ping")
                except Exception:
                    break
    except WebSocketDisconnect:
        logger.info(f"Queue WebSocket disconnected for {identity.external_id} ({game_mode})")
    except Exception as e:
        logger.error(f"Queue WebSocket error for {identity.external_id}: {e}")
    finally:
        await observation.cancel()
