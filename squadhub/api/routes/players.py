"""Player profile and ranking route handlers."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squadhub.database.db import get_db_session
from squadhub.services import identity_service, player_service
from squadhub.services.identity_service import ResolvedPlayer
from squadhub.api.auth_dependencies import get_current_player, require_player
from squadhub.api.routes import store_unavailable_response, internal_error_response
from squadhub.models.schemas import PlayerResponse, PlayerRankingResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players/me", response_model=PlayerResponse)
async def get_me(player: ResolvedPlayer = Depends(get_current_player)):
    """
    Get the current player's profile.

    Creates the profile on first login. When the database is unreachable the
    profile is built from the identity provider and flagged degraded=True.
    """
    return identity_service.format_player(player)


@router.get("/api/players/rankings", response_model=PlayerRankingResponse)
async def get_rankings(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Get the player ranking (paginated, highest rating first)."""
    try:
        offset = (page - 1) * page_size
        return await player_service.get_player_rankings(session, limit=page_size, offset=offset)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching rankings: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error fetching rankings: {e}")
        raise internal_error_response("Error fetching rankings")
