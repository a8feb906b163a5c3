"""
Business errors raised by the team, join-request, queue and identity services.

Every error pairs a short machine-checkable ``kind`` with a display message,
and knows the HTTP status the API layer should answer with.
"""

from typing import Dict


class SquadError(ValueError):
    """Base class for caller-facing service errors."""

    kind = "SquadError"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_detail(self) -> Dict[str, str]:
        """Payload used as the HTTPException detail."""
        return {"kind": self.kind, "message": self.message}


class Unauthenticated(SquadError):
    """Raised when no resolvable identity is attached to the call."""

    kind = "Unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class NotCaptain(SquadError):
    """Raised when a captain-only operation is attempted by someone else."""

    kind = "NotCaptain"
    status_code = 403
    default_message = "Only the team captain can do this"


class AlreadyOnTeam(SquadError):
    """Raised when a player who already has a team tries to create or join one."""

    kind = "AlreadyOnTeam"
    status_code = 409
    default_message = "You are already a member of a team"


class NotAMember(SquadError):
    kind = "NotAMember"
    status_code = 404
    default_message = "Player is not a member of this team"


class CannotRemoveSelf(SquadError):
    kind = "CannotRemoveSelf"
    status_code = 409
    default_message = "The captain cannot remove themselves. Transfer captaincy first."


class CaptainMustTransfer(SquadError):
    kind = "CaptainMustTransfer"
    status_code = 409
    default_message = "The captain cannot leave while other members remain. Transfer captaincy first."


class InvalidRole(SquadError):
    kind = "InvalidRole"
    status_code = 400
    default_message = "Invalid role"


class TeamNotFound(SquadError):
    kind = "TeamNotFound"
    status_code = 404
    default_message = "Team not found"


class TeamFull(SquadError):
    kind = "TeamFull"
    status_code = 409
    default_message = "The team is already full"


class TeamNotRecruiting(SquadError):
    kind = "TeamNotRecruiting"
    status_code = 409
    default_message = "This team is not recruiting right now"


class DuplicateRequest(SquadError):
    kind = "DuplicateRequest"
    status_code = 409
    default_message = "You already have a pending request for this team"


class RequestNotFound(SquadError):
    kind = "RequestNotFound"
    status_code = 404
    default_message = "Join request not found"


class AlreadyResolved(SquadError):
    kind = "AlreadyResolved"
    status_code = 409
    default_message = "This join request has already been processed"


class StoreUnavailable(SquadError):
    """Raised (or mapped to) when the database or identity provider cannot be reached."""

    kind = "StoreUnavailable"
    status_code = 503
    default_message = "Service temporarily unavailable"


class InternalError(SquadError):
    """Used by the API layer for unexpected failures outside the error catalogue."""

    kind = "InternalError"
    status_code = 500
    default_message = "Internal server error"
