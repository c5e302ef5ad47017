"""Domain error taxonomy.

Every error carries an HTTP status and a single-sentence message that is safe
to show to clients. Internal detail is logged at the point of translation and
never attached to the message.
"""

from enum import Enum


class ConflictReason(str, Enum):
    """Fixed set of user-facing reasons for state conflicts."""

    INSUFFICIENT_BALANCE = "insufficient_balance"
    BET_CLOSED = "bet_closed"
    ALREADY_PLACED = "already_placed"
    BET_NOT_OPEN = "bet_not_open"
    BET_STILL_OPEN = "bet_still_open"
    INVALID_OPTION = "invalid_option"


CONFLICT_MESSAGES: dict[ConflictReason, str] = {
    ConflictReason.INSUFFICIENT_BALANCE: "You do not have enough coins for this wager.",
    ConflictReason.BET_CLOSED: "This bet is closed for wagering.",
    ConflictReason.ALREADY_PLACED: "You have already wagered on this bet.",
    ConflictReason.BET_NOT_OPEN: "This bet is no longer open.",
    ConflictReason.BET_STILL_OPEN: "This bet cannot be settled before its close time.",
    ConflictReason.INVALID_OPTION: "The selected option does not exist on this bet.",
}


class WagerFeedError(Exception):
    """Base exception for domain errors."""

    status_code: int = 500
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(WagerFeedError):
    """Missing or invalid credential."""

    status_code = 401
    default_message = "Authentication is required."


class Unauthorized(WagerFeedError):
    """Authenticated caller is not allowed to act on this resource."""

    status_code = 403
    default_message = "Only the creator of this bet can do that."


class BetValidationError(WagerFeedError):
    """Malformed create/update payload."""

    status_code = 400
    default_message = "The request is invalid."


class NotFound(WagerFeedError):
    """Unknown bet or placement."""

    status_code = 404
    default_message = "Bet not found."


class StateConflict(WagerFeedError):
    """Action is invalid for the bet's current status or time."""

    status_code = 409

    def __init__(self, reason: ConflictReason):
        self.reason = reason
        super().__init__(CONFLICT_MESSAGES[reason])


class UpstreamFailure(WagerFeedError):
    """Storage, object storage or notification transport failed."""

    status_code = 502
    default_message = "The service is temporarily unavailable. Please try again."
