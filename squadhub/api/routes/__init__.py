"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error translation) lives here; every
sub-router imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from squadhub.services.errors import InternalError, SquadError, StoreUnavailable

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared error responses
# ---------------------------------------------------------------------------
def service_error_response(error: SquadError) -> HTTPException:
    """Translate a service error into the HTTPException the caller sees."""
    return HTTPException(status_code=error.status_code, detail=error.to_detail())


def store_unavailable_response() -> HTTPException:
    """503 for a database failure. A new exception is built for every raise."""
    return service_error_response(StoreUnavailable())


def internal_error_response(message: str = None) -> HTTPException:
    return service_error_response(InternalError(message))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from squadhub.api.routes.players import router as players_router
from squadhub.api.routes.teams import router as teams_router
from squadhub.api.routes.team_requests import router as team_requests_router
from squadhub.api.routes.queue import router as queue_router

router = APIRouter()
router.include_router(players_router)
router.include_router(teams_router)
router.include_router(team_requests_router)
router.include_router(queue_router)
