"""Scheduling service errors.

Every error carries a machine-readable ``code`` that routers return to the
UI next to the human-readable message.
"""


class SchedulingError(Exception):
    """Base exception for scheduling core errors."""

    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class BookingValidationError(SchedulingError):
    """Caller-correctable input problem (bad services, past slot)."""

    code = "VALIDATION_ERROR"


class SlotConflictError(SchedulingError):
    """The requested slot was taken between quote and commit."""

    code = "SLOT_TAKEN"


class InsufficientResourceError(SchedulingError):
    """A required credit or payment gateway is not available."""

    code = "INSUFFICIENT_RESOURCE"


class InsufficientCreditError(InsufficientResourceError):
    """Subscription has no credit left to consume."""

    code = "INSUFFICIENT_CREDIT"


class InvalidTransitionError(SchedulingError):
    """Status change not allowed from the current status."""

    code = "INVALID_TRANSITION"


class NotFoundError(SchedulingError):
    """Referenced entity does not exist in this tenant."""

    code = "NOT_FOUND"


class PermissionDeniedError(SchedulingError):
    """Actor's role does not allow the operation."""

    code = "FORBIDDEN"


# Codes
INVALID_SERVICE = "INVALID_SERVICE"
INVALID_TIME = "INVALID_TIME"
SLOT_IN_PAST = "SLOT_IN_PAST"
SLOT_TAKEN = "SLOT_TAKEN"
NO_CREDIT = "NO_CREDIT"
GATEWAY_NOT_CONFIGURED = "GATEWAY_NOT_CONFIGURED"
COMPLETED_NOT_DELETABLE = "COMPLETED_NOT_DELETABLE"
