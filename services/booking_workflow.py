"""
Booking workflow engine.

Transitions are static data: each name maps to the statuses it may leave from,
the status it enters, the roles allowed to request it and the extra data it
needs. ``execute_transition`` re-validates everything against freshly read
state and applies the change with a conditional UPDATE, so the available
actions list is only ever a hint.
"""
import logging
from collections import namedtuple
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import (
    Booking,
    CAPACITY_STATUSES,
    CANCELLED,
    CONFIRMED,
    DELIVERED,
    MONASTERY_APPROVED,
    NOT_DELIVERED,
    PENDING,
)
from models.booking_transition import BookingTransition
from services.capacity import clean_text, ensure_capacity, lock_slot, refresh_committed
from services.errors import (
    BookingWorkflowError,
    InvalidStateTransition,
    InvalidTransition,
    NotFound,
    OwnershipViolation,
    PersistenceFailure,
    Unauthorized,
    ValidationFailed,
)
from services.result import WorkflowResult
from utils.roles import DONOR, MONASTERY_ADMIN, SUPER_ADMIN

logger = logging.getLogger(__name__)

Transition = namedtuple("Transition", ["from_states", "to", "allowed_roles", "requires_data"])

BOOKING_WORKFLOW = {
    "approve": Transition(
        from_states=(PENDING,),
        to=MONASTERY_APPROVED,
        allowed_roles=(MONASTERY_ADMIN, SUPER_ADMIN),
        requires_data=(),
    ),
    "confirm": Transition(
        from_states=(MONASTERY_APPROVED,),
        to=CONFIRMED,
        allowed_roles=(DONOR,),
        requires_data=(),
    ),
    "markDelivered": Transition(
        from_states=(CONFIRMED, MONASTERY_APPROVED),
        to=DELIVERED,
        allowed_roles=(MONASTERY_ADMIN, SUPER_ADMIN),
        requires_data=("delivery_confirmed_by",),
    ),
    "markNotDelivered": Transition(
        from_states=(CONFIRMED, MONASTERY_APPROVED),
        to=NOT_DELIVERED,
        allowed_roles=(MONASTERY_ADMIN, SUPER_ADMIN),
        requires_data=("delivery_confirmed_by",),
    ),
    "cancel": Transition(
        from_states=(PENDING, MONASTERY_APPROVED, CONFIRMED),
        to=CANCELLED,
        allowed_roles=(DONOR, MONASTERY_ADMIN, SUPER_ADMIN),
        requires_data=(),
    ),
    "reopen": Transition(
        from_states=(CANCELLED,),
        to=PENDING,
        allowed_roles=(MONASTERY_ADMIN, SUPER_ADMIN),
        requires_data=(),
    ),
}


def _monastery_admin_id(booking: Booking):
    slot = booking.slot
    if slot is None or slot.monastery is None:
        return None
    return slot.monastery.admin_id


def _owns(booking: Booking, actor_id, actor_role) -> bool:
    if actor_role == DONOR:
        return booking.donor_id is not None and booking.donor_id == actor_id
    if actor_role == MONASTERY_ADMIN:
        return _monastery_admin_id(booking) == actor_id
    return True


def get_available_actions(booking: Booking, actor_id, actor_role) -> list:
    actions = []
    for name, rule in BOOKING_WORKFLOW.items():
        if actor_role not in rule.allowed_roles:
            continue
        if booking.status not in rule.from_states:
            continue
        if not _owns(booking, actor_id, actor_role):
            continue
        actions.append(name)
    return actions


def _check_ownership(booking: Booking, actor_id, actor_role) -> None:
    if _owns(booking, actor_id, actor_role):
        return
    if actor_role == DONOR:
        raise OwnershipViolation(OwnershipViolation.DONOR)
    raise OwnershipViolation(OwnershipViolation.MONASTERY)


def _resolve_required(rule: Transition, actor_id, extra_data: dict) -> dict:
    resolved = {}
    for key in rule.requires_data:
        # the confirmer defaults to whoever performs the transition
        value = extra_data.get(key, actor_id)
        if value is None:
            raise ValidationFailed(f"{key} is required")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationFailed(f"{key} must be a user id")
        resolved[key] = value
    return resolved


def _transition_values(name: str, rule: Transition, actor_id, extra_data: dict, required: dict) -> dict:
    now = datetime.utcnow()
    values = {"status": rule.to, "updated_at": now}

    if name == "approve":
        values["monastery_approved_at"] = now
        values["monastery_approved_by"] = actor_id
    elif name == "confirm":
        values["confirmed_at"] = now
    elif name in ("markDelivered", "markNotDelivered"):
        values["delivery_confirmed_at"] = now
        values["delivery_confirmed_by"] = required["delivery_confirmed_by"]
        values["delivery_status"] = "received" if name == "markDelivered" else "not_received"
        notes = clean_text(extra_data.get("delivery_notes"), "delivery_notes")
        if notes:
            values["delivery_notes"] = notes
    elif name == "cancel":
        values["cancelled_at"] = now
        reason = clean_text(extra_data.get("cancellation_reason"), "cancellation_reason", 255)
        if reason:
            values["cancellation_reason"] = reason
    elif name == "reopen":
        # the reason survives only in the transition history
        values["cancelled_at"] = None
        values["cancellation_reason"] = None

    return values


def _history_notes(name: str, from_status: str, to_status: str, booking: Booking) -> str:
    notes = f"Status changed from {from_status} to {to_status}"
    if name == "reopen" and booking.cancellation_reason:
        notes += f" (was cancelled: {booking.cancellation_reason})"
    return notes[:255]


def record_transition(booking_id, name, from_status, to_status, actor_id, notes=None) -> None:
    """Append to the booking's transition history. Never fails the caller."""
    try:
        db.session.add(BookingTransition(
            booking_id=booking_id,
            transition=name,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            notes=notes,
        ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to log transition %s for booking %s", name, booking_id)


def execute_transition(booking_id, transition, actor_id, actor_role, extra_data=None) -> WorkflowResult:
    try:
        rule = BOOKING_WORKFLOW.get(transition)
        if rule is None:
            raise InvalidTransition(transition)

        if actor_role not in rule.allowed_roles:
            raise Unauthorized(actor_role, transition)

        booking = Booking.query.get(booking_id)
        if booking is None:
            raise NotFound("Booking not found")

        # Serialize with other writers on the slot, then re-read the booking
        slot = lock_slot(booking.slot_id)
        booking = Booking.query.filter_by(id=booking_id).populate_existing().one()
        from_status = booking.status

        if from_status not in rule.from_states:
            raise InvalidStateTransition(from_status, rule.to)

        _check_ownership(booking, actor_id, actor_role)
        if extra_data is None:
            extra_data = {}
        elif not isinstance(extra_data, dict):
            raise ValidationFailed("Transition data must be an object")
        required = _resolve_required(rule, actor_id, extra_data)

        if rule.to in CAPACITY_STATUSES and from_status not in CAPACITY_STATUSES:
            ensure_capacity(slot, booking.estimated_servings)

        notes = _history_notes(transition, from_status, rule.to, booking)
        values = _transition_values(transition, rule, actor_id, extra_data, required)
        result = db.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Someone else moved the booking between our read and our write
            current = db.session.query(Booking.status).filter(Booking.id == booking_id).scalar()
            raise InvalidStateTransition(current, rule.to)

        refresh_committed(slot)
        db.session.commit()
    except BookingWorkflowError as exc:
        db.session.rollback()
        logger.warning("Booking %s %s rejected for %s %s: %s",
                       booking_id, transition, actor_role, actor_id, exc.message)
        return WorkflowResult.failed(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Booking %s %s failed", booking_id, transition)
        return WorkflowResult.failed(PersistenceFailure(f"Failed to update booking: {exc}"))

    record_transition(booking_id, transition, from_status, rule.to, actor_id, notes)

    booking = Booking.query.get(booking_id)
    logger.info("Booking %s %s: %s -> %s by %s %s",
                booking_id, transition, from_status, rule.to, actor_role, actor_id)
    return WorkflowResult.ok(booking, f"Booking {transition} successful")
