"""
Slot capacity accounting.

Committed capacity is never trusted from a counter: it is the live sum of
``estimated_servings`` over a slot's bookings in capacity-consuming statuses,
read after taking the slot's write lock and inside the same transaction as the
write that depends on it.
"""
import logging
import re
from datetime import date, datetime

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, CAPACITY_STATUSES, PENDING, MONASTERY_APPROVED, CONFIRMED
from models.guest_profile import GuestProfile
from models.slot import DonationSlot
from services.errors import (
    BookingWorkflowError,
    CapacityExceeded,
    NotFound,
    OwnershipViolation,
    PersistenceFailure,
    Unauthorized,
    ValidationFailed,
)
from services.result import WorkflowResult
from utils.roles import MONASTERY_ADMIN, SUPER_ADMIN

logger = logging.getLogger(__name__)

CONTACT_PHONE_RE = re.compile(r"^\+?[\d\s\-\(\)]+$")

# A donor holds at most one of these per slot
OPEN_STATUSES = (PENDING, MONASTERY_APPROVED, CONFIRMED)


def lock_slot(slot_id) -> DonationSlot:
    """
    Take the slot's row write lock and return a freshly loaded slot.

    The no-op UPDATE makes concurrent writers on the same slot queue behind each
    other on every backend; FOR UPDATE is added where the dialect supports it.
    """
    result = db.session.execute(
        update(DonationSlot)
        .where(DonationSlot.id == slot_id)
        .values(updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("Slot not found")

    return (
        DonationSlot.query
        .filter(DonationSlot.id == slot_id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def committed_servings(slot_id, exclude_booking_id=None) -> int:
    q = db.session.query(func.coalesce(func.sum(Booking.estimated_servings), 0)).filter(
        Booking.slot_id == slot_id,
        Booking.status.in_(CAPACITY_STATUSES),
    )
    if exclude_booking_id is not None:
        q = q.filter(Booking.id != exclude_booking_id)
    return int(q.scalar() or 0)


def effective_capacity(slot: DonationSlot) -> int:
    monastery = slot.monastery
    if monastery is not None and monastery.capacity is not None:
        return monastery.capacity
    return slot.capacity


def remaining_capacity(slot: DonationSlot, exclude_booking_id=None) -> int:
    return effective_capacity(slot) - committed_servings(slot.id, exclude_booking_id)


def ensure_capacity(slot: DonationSlot, requested: int) -> int:
    remaining = remaining_capacity(slot)
    if requested > remaining:
        raise CapacityExceeded(requested, max(remaining, 0))
    return remaining


def refresh_committed(slot: DonationSlot) -> None:
    db.session.flush()
    slot.committed_servings = committed_servings(slot.id)


def slot_availability(slot: DonationSlot) -> dict:
    capacity = effective_capacity(slot)
    committed = committed_servings(slot.id)
    return {
        "capacity": capacity,
        "committed": committed,
        "remaining": max(capacity - committed, 0),
    }


def _parse_count(requested_count) -> int:
    if isinstance(requested_count, bool):
        raise ValidationFailed("Estimated servings must be a positive number")
    try:
        count = int(str(requested_count).strip())
    except ValueError:
        raise ValidationFailed("Estimated servings must be a positive number")
    if count <= 0:
        raise ValidationFailed("Estimated servings must be a positive number")
    return count


def clean_text(value, field: str, limit: int = None):
    """Trim a caller-supplied text field. Blank becomes None; non-text is rejected."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f"{field} must be text")
    value = value.strip()
    if limit:
        value = value[:limit]
    return value or None


def _mapping(value, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationFailed(f"{what} must be an object")
    return value


def _clean_details(details) -> dict:
    details = _mapping(details, "Booking details")
    food_type = clean_text(details.get("food_type"), "food_type", 160)
    if not food_type:
        raise ValidationFailed("Please specify the type of food")

    contact_phone = clean_text(details.get("contact_phone"), "contact_phone", 30)
    if contact_phone and not CONTACT_PHONE_RE.match(contact_phone):
        raise ValidationFailed("Please enter a valid phone number")

    return {
        "food_type": food_type,
        "contact_phone": contact_phone,
        "special_notes": clean_text(details.get("special_notes"), "special_notes"),
    }


def _check_bookable(slot: DonationSlot) -> None:
    if not slot.is_available or (slot.monastery is not None and not slot.monastery.is_active):
        raise ValidationFailed("This donation slot is no longer active")
    if slot.date < date.today():
        raise ValidationFailed("Cannot book past slots")


def _insert_booking(slot: DonationSlot, count: int, fields: dict) -> Booking:
    ensure_capacity(slot, count)

    now = datetime.utcnow()
    booking = Booking(
        slot_id=slot.id,
        estimated_servings=count,
        status=PENDING,
        created_at=now,
        updated_at=now,
        **fields,
    )
    db.session.add(booking)
    refresh_committed(slot)
    db.session.commit()
    return booking


def _fail(exc: BookingWorkflowError, operation: str) -> WorkflowResult:
    db.session.rollback()
    if isinstance(exc, PersistenceFailure):
        logger.error("%s failed: %s", operation, exc.message)
    else:
        logger.warning("%s rejected: %s", operation, exc.message)
    return WorkflowResult.failed(exc)


def create_booking(slot_id, donor_id, details, requested_count) -> WorkflowResult:
    """
    Capacity-checked booking insert for a registered donor.

    The slot lock, the committed-capacity aggregate, the insert and the
    committed counter rewrite all happen in one transaction.
    """
    try:
        count = _parse_count(requested_count)
        fields = _clean_details(details)

        slot = lock_slot(slot_id)
        _check_bookable(slot)

        existing = (
            Booking.query
            .filter(
                Booking.slot_id == slot.id,
                Booking.donor_id == donor_id,
                Booking.status.in_(OPEN_STATUSES),
            )
            .first()
        )
        if existing:
            raise ValidationFailed("You already have a booking for this slot")

        booking = _insert_booking(slot, count, dict(fields, donor_id=donor_id))
    except BookingWorkflowError as exc:
        return _fail(exc, "create_booking")
    except SQLAlchemyError as exc:
        logger.exception("create_booking persistence error for slot %s", slot_id)
        return _fail(PersistenceFailure(str(exc)), "create_booking")

    logger.info("Booking %s created on slot %s for %s servings", booking.id, slot_id, count)
    return WorkflowResult.ok(booking, "Your donation has been booked successfully!", http_status=201)


def _upsert_guest(monastery_id, guest) -> GuestProfile:
    guest = _mapping(guest, "Guest details")
    phone = clean_text(guest.get("phone"), "phone", 30)
    full_name = clean_text(guest.get("full_name"), "full_name", 120)
    if not phone or not CONTACT_PHONE_RE.match(phone):
        raise ValidationFailed("Please enter a valid phone number")
    if not full_name:
        raise ValidationFailed("Guest full name is required")

    values = {
        "full_name": full_name,
        "email": clean_text(guest.get("email"), "email", 255),
        "address": clean_text(guest.get("address"), "address", 255),
        "notes": clean_text(guest.get("notes"), "notes"),
    }

    profile = GuestProfile.query.filter_by(monastery_id=monastery_id, phone=phone).first()
    if profile is None:
        profile = GuestProfile(monastery_id=monastery_id, phone=phone, **values)
        db.session.add(profile)
    else:
        for key, value in values.items():
            if getattr(profile, key) != value:
                setattr(profile, key, value)
    db.session.flush()
    return profile


def create_guest_booking(slot_id, actor_id, actor_role, guest, details, requested_count) -> WorkflowResult:
    """Booking entered by a monastery admin for a donor who phoned in."""
    try:
        if actor_role not in (MONASTERY_ADMIN, SUPER_ADMIN):
            raise Unauthorized(actor_role, "createGuestBooking")

        count = _parse_count(requested_count)
        fields = _clean_details(details)

        slot = lock_slot(slot_id)
        if actor_role == MONASTERY_ADMIN and slot.monastery.admin_id != actor_id:
            raise OwnershipViolation(OwnershipViolation.MONASTERY)
        _check_bookable(slot)

        profile = _upsert_guest(slot.monastery_id, guest)
        fields["contact_phone"] = fields["contact_phone"] or profile.phone

        booking = _insert_booking(
            slot,
            count,
            dict(fields, guest_profile_id=profile.id, created_by=actor_id),
        )
    except BookingWorkflowError as exc:
        return _fail(exc, "create_guest_booking")
    except SQLAlchemyError as exc:
        logger.exception("create_guest_booking persistence error for slot %s", slot_id)
        return _fail(PersistenceFailure(str(exc)), "create_guest_booking")

    logger.info("Guest booking %s created on slot %s by %s", booking.id, slot_id, actor_id)
    return WorkflowResult.ok(booking, "Guest booking created successfully!", http_status=201)


def overcommitted_slots(monastery_id, capacity=None) -> list:
    """
    Upcoming slots of a monastery whose committed servings would exceed their
    capacity under the override `capacity` (None means each slot's own).
    """
    totals = (
        db.session.query(
            DonationSlot.id,
            DonationSlot.capacity,
            func.coalesce(func.sum(Booking.estimated_servings), 0),
        )
        .join(Booking, Booking.slot_id == DonationSlot.id)
        .filter(
            DonationSlot.monastery_id == monastery_id,
            DonationSlot.date >= date.today(),
            Booking.status.in_(CAPACITY_STATUSES),
        )
        .group_by(DonationSlot.id, DonationSlot.capacity)
        .all()
    )
    return sorted(
        slot_id
        for slot_id, slot_capacity, committed in totals
        if committed > (capacity if capacity is not None else slot_capacity)
    )
