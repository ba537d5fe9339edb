"""Error taxonomy for the release portal.

Every error carries an HTTP-style ``status_code`` hint and a human-readable
``message``. The confirmation errors are shown verbatim on the dealer page.
"""

from typing import Optional


class ReleaseError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(ReleaseError):
    """No load matches the id or token."""

    status_code = 404
    default_message = "Load not found"


class ValidationError(ReleaseError):
    """Missing or malformed field on create/update."""

    status_code = 400
    default_message = "Invalid load data"


class InvalidTransition(ReleaseError):
    """Status change not permitted from the current state."""

    status_code = 400
    default_message = "Status transition not allowed"


class GenerationExhausted(ReleaseError):
    """A unique load id could not be produced within the retry budget."""

    status_code = 500
    default_message = "Could not generate a unique load id"


# =============================================================================
# Release confirmation failures
# =============================================================================

class ConfirmationError(ReleaseError):
    """Base class for PIN confirmation protocol violations."""

    status_code = 400
    reason: str = "rejected"


class AlreadyUsed(ConfirmationError):
    default_message = "ALREADY USED"
    reason = "already_used"


class NotReleasable(ConfirmationError):
    default_message = "DO NOT RELEASE - Status is not VALID"
    reason = "not_releasable"


class NotYetActive(ConfirmationError):
    default_message = "LOAD NOT YET ACTIVE"
    reason = "not_yet_active"

    def __init__(self, starts_at: Optional[str] = None):
        message = None
        if starts_at:
            message = f"LOAD NOT YET ACTIVE - Pickup window starts at {starts_at}"
        super().__init__(message)
        self.starts_at = starts_at


class WindowExpired(ConfirmationError):
    default_message = "LOAD EXPIRED"
    reason = "window_expired"


class InvalidPin(ConfirmationError):
    default_message = "INVALID PIN"
    reason = "invalid_pin"
