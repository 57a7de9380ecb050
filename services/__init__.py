from .errors import (
    BookingWorkflowError,
    InvalidTransition,
    Unauthorized,
    InvalidStateTransition,
    OwnershipViolation,
    CapacityExceeded,
    PersistenceFailure,
    NotFound,
    ValidationFailed,
)
from .result import WorkflowResult
from .booking_workflow import BOOKING_WORKFLOW, execute_transition, get_available_actions
from .capacity import create_booking, create_guest_booking, overcommitted_slots, slot_availability
