"""
Authentication dependencies for FastAPI routes.

Routes never read ambient auth state: these dependencies resolve the caller
and the resolved player id is passed explicitly to every service call.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from squadhub.services import identity_service
from squadhub.services.errors import StoreUnavailable, Unauthenticated
from squadhub.services.identity_service import DegradedIdentity, ExternalIdentity, ResolvedPlayer
from squadhub.database.db import get_db_session

security = HTTPBearer(auto_error=False)


def _unauthenticated(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=Unauthenticated(message).to_detail(),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> ExternalIdentity:
    """
    Dependency to get the caller's external identity from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        ExternalIdentity

    Raises:
        HTTPException: 401 if the token is missing or has no session, 503 if the
            identity provider is unreachable
    """
    if credentials is None:
        raise _unauthenticated("Authentication required")

    try:
        identity = await identity_service.get_current_user(credentials.credentials)
    except StoreUnavailable as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    if identity is None:
        raise _unauthenticated("Invalid authentication token")
    return identity


async def get_current_player(
    identity: ExternalIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db_session),
) -> ResolvedPlayer:
    """
    Resolve the caller's player, creating it on first sight.

    May return a DegradedIdentity; use require_player when a stored player is needed.
    """
    return await identity_service.resolve_current_player(session, identity)


async def require_player(player: ResolvedPlayer = Depends(get_current_player)) -> dict:
    """
    Require a stored player profile.

    Returns a dict with player_id, auth_id and display_name.
    Raises 503 when the profile could only be resolved in degraded mode.
    """
    if isinstance(player, DegradedIdentity):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StoreUnavailable("Player profile temporarily unavailable").to_detail(),
        )
    return {
        "player_id": player.id,
        "auth_id": player.auth_id,
        "display_name": player.display_name,
    }
