"""Team roster route handlers."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from squadhub.database.db import get_db_session
from squadhub.services import team_service
from squadhub.services.errors import SquadError
from squadhub.api.auth_dependencies import require_player
from squadhub.api.routes import limiter, service_error_response, store_unavailable_response, internal_error_response
from squadhub.models.schemas import (
    TeamCreate,
    TeamUpdate,
    TeamResponse,
    TeamListResponse,
    TeamMemberResponse,
    MemberRoleUpdate,
    CaptaincyTransfer,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams", response_model=TeamListResponse)
async def list_teams(
    search: str = Query(None, max_length=100),
    status: str = Query("all", pattern="^(all|recruiting|full)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """List teams, highest rated first, optionally filtered."""
    try:
        offset = (page - 1) * page_size
        return await team_service.list_teams(
            session, search=search, status=status, limit=page_size, offset=offset
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error listing teams: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error listing teams: {e}")
        raise internal_error_response("Error listing teams")


@router.post("/api/teams", response_model=TeamResponse, status_code=201)
@limiter.limit("10/minute")
async def create_team(
    request: Request,
    payload: TeamCreate,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team. The caller becomes its captain (IGL)."""
    try:
        return await team_service.create_team(
            session,
            user["player_id"],
            payload.name,
            payload.tag,
            region=payload.region,
            description=payload.description,
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error creating team: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error creating team: {e}")
        raise internal_error_response("Error creating team")


@router.get("/api/teams/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: int,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Get a team with its members."""
    try:
        return await team_service.get_team(session, team_id)
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error fetching team {team_id}: {e}")
        raise internal_error_response("Error fetching team")


@router.patch("/api/teams/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Update team details (captain only)."""
    try:
        return await team_service.update_team(
            session, team_id, user["player_id"], payload.model_dump(exclude_unset=True)
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error updating team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error updating team {team_id}: {e}")
        raise internal_error_response("Error updating team")


@router.put("/api/teams/{team_id}/members/{member_id}/role", response_model=TeamMemberResponse)
async def update_member_role(
    team_id: int,
    member_id: int,
    payload: MemberRoleUpdate,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Change a member's role (captain only)."""
    try:
        return await team_service.update_member_role(
            session, team_id, user["player_id"], member_id, payload.role
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error updating role in team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error updating member role: {e}")
        raise internal_error_response("Error updating member role")


@router.delete("/api/teams/{team_id}/members/{member_id}")
async def remove_member(
    team_id: int,
    member_id: int,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a member from the team (captain only)."""
    try:
        await team_service.remove_member(session, team_id, user["player_id"], member_id)
        return {"status": "ok", "message": "Member removed"}
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error removing member from team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error removing member: {e}")
        raise internal_error_response("Error removing member")


@router.post("/api/teams/{team_id}/leave")
async def leave_team(
    team_id: int,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave a team."""
    try:
        await team_service.leave_team(session, team_id, user["player_id"])
        return {"status": "ok", "message": "Left team"}
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error leaving team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error leaving team: {e}")
        raise internal_error_response("Error leaving team")


@router.post("/api/teams/{team_id}/transfer-captaincy", response_model=TeamResponse)
async def transfer_captaincy(
    team_id: int,
    payload: CaptaincyTransfer,
    user: dict = Depends(require_player),
    session: AsyncSession = Depends(get_db_session),
):
    """Hand the captain (IGL) role to another member."""
    try:
        return await team_service.transfer_captaincy(
            session, team_id, user["player_id"], payload.new_captain_id
        )
    except SquadError as e:
        raise service_error_response(e)
    except SQLAlchemyError as e:
        logger.error(f"Database error transferring captaincy of team {team_id}: {e}")
        raise store_unavailable_response()
    except Exception as e:
        logger.error(f"Error transferring captaincy: {e}")
        raise internal_error_response("Error transferring captaincy")
