"""
Error taxonomy for the booking engine.

Every error carries a stable ``error_code`` and the HTTP status the API layer
should answer with. Only PersistenceFailure passes a low-level message through;
the others build a fixed, human-readable message from their arguments.
"""


class BookingWorkflowError(Exception):
    error_code = "booking_error"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidTransition(BookingWorkflowError):
    error_code = "invalid_transition"
    http_status = 400

    def __init__(self, transition):
        super().__init__(f"Invalid transition: {transition}")
        self.transition = transition


class Unauthorized(BookingWorkflowError):
    error_code = "unauthorized"
    http_status = 403

    def __init__(self, role, transition):
        super().__init__(f"Role {role} not allowed for transition {transition}")
        self.role = role
        self.transition = transition


class InvalidStateTransition(BookingWorkflowError):
    error_code = "invalid_state_transition"
    http_status = 409

    def __init__(self, current_status, target_status):
        super().__init__(f"Cannot transition from {current_status} to {target_status}")
        self.current_status = current_status
        self.target_status = target_status


class OwnershipViolation(BookingWorkflowError):
    error_code = "ownership_violation"
    http_status = 403

    DONOR = "Donors can only modify their own bookings"
    MONASTERY = "Monastery admins can only modify bookings for their monastery"


class CapacityExceeded(BookingWorkflowError):
    error_code = "capacity_exceeded"
    http_status = 409

    def __init__(self, requested: int, remaining: int):
        super().__init__(
            f"Requested {requested} servings but only {remaining} remaining for this slot"
        )
        self.requested = requested
        self.remaining = remaining


class PersistenceFailure(BookingWorkflowError):
    error_code = "persistence_failure"
    http_status = 500


class NotFound(BookingWorkflowError):
    error_code = "not_found"
    http_status = 404


class ValidationFailed(BookingWorkflowError):
    error_code = "validation_failed"
    http_status = 400
