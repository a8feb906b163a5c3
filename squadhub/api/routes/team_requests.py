"""Team join request route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squadhub.database.db import get_db_session
from squadhub.services import team_request_service
from squadhub.services.errors import SquadError
from squadhub.api.auth_dependencies import require_player
from squadhub.api.routes import limiter, service_error_response, store_unavailable_response, internal_error_response
from squadhub.models.schemas import (
    JoinRequestCreate,
    JoinRequestRespond,
    JoinRequestResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams/{team_id}/requests", response_model=JoinRequestResponse, status_code=201)
@limiter.limit("20/minute")
async def request_to_join(
    request: Request,
    team_id: int,
    payload: JoinRequestCreate,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Ask to join a recruiting team."""
    try:
        return await team_request_service.request_to_join(
            session, team_id, user["player_id"], message=payload.message
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error creating join request for team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error creating join request: {e}")
        raise internal_error_response("Error creating join request")


@router.get("/api/teams/{team_id}/requests", response_model=List[JoinRequestResponse])
async def list_join_requests(
    team_id: int,
    status: str = Query("pending", pattern="^(pending|accepted|rejected|all)$"),
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """List the team's join requests, newest first (captain only)."""
    try:
        return await team_request_service.list_pending_requests(
            session, team_id, user["player_id"], status=status
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing join requests for team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error listing join requests: {e}")
        raise internal_error_response("Error listing join requests")


@router.post(
    "/api/teams/{team_id}/requests/{request_id}/respond", response_model=JoinRequestResponse
)
async def respond_to_request(
    team_id: int,
    request_id: int,
    payload: JoinRequestRespond,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept or reject a pending join request (captain only)."""
    try:
        return await team_request_service.respond_to_request(
            session, request_id, team_id, user["player_id"], payload.accept
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error responding to join request {request_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error responding to join request: {e}")
        raise internal_error_response("Error responding to join request")
