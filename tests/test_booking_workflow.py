import pytest
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models.booking import (
    Booking,
    BOOKING_STATUSES,
    CANCELLED,
    CONFIRMED,
    DELIVERED,
    MONASTERY_APPROVED,
    NOT_DELIVERED,
    PENDING,
)
from models.booking_transition import BookingTransition
from services import booking_workflow
from services.booking_workflow import BOOKING_WORKFLOW, execute_transition, get_available_actions
from utils.roles import DONOR, MONASTERY_ADMIN, SUPER_ADMIN


def _set_status(db, booking, status):
    booking.status = status
    db.session.commit()


def test_full_happy_path_reaches_delivered(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor, servings=4)

    approved = execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)
    assert approved.success, approved.error
    assert approved.booking.status == MONASTERY_APPROVED
    assert approved.booking.monastery_approved_by == monastery_admin.id
    assert approved.booking.monastery_approved_at is not None

    confirmed = execute_transition(booking.id, "confirm", donor.id, DONOR)
    assert confirmed.success, confirmed.error
    assert confirmed.booking.status == CONFIRMED
    assert confirmed.booking.confirmed_at is not None

    delivered = execute_transition(
        booking.id, "markDelivered", monastery_admin.id, MONASTERY_ADMIN,
        {"delivery_notes": "Dana received with thanks"},
    )
    assert delivered.success, delivered.error
    assert delivered.message == "Booking markDelivered successful"
    b = delivered.booking
    assert b.status == DELIVERED
    assert b.delivery_status == "received"
    assert b.delivery_confirmed_by == monastery_admin.id
    assert b.delivery_notes == "Dana received with thanks"
    assert b.delivery_confirmed_at is not None


def test_mark_not_delivered_straight_from_approved(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor, servings=4)
    execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    result = execute_transition(booking.id, "markNotDelivered", monastery_admin.id, MONASTERY_ADMIN)

    assert result.success, result.error
    assert result.booking.status == NOT_DELIVERED
    assert result.booking.delivery_status == "not_received"
    # not_delivered frees the slot
    assert slot.committed_servings == 0


@pytest.mark.parametrize("name", ["markDelivered", "markNotDelivered"])
def test_delivery_outcomes_unreachable_from_pending(slot, donor, monastery_admin, make_booking, name):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, name, monastery_admin.id, MONASTERY_ADMIN)

    assert not result.success
    assert result.error_code == "invalid_state_transition"
    assert result.error == f"Cannot transition from pending to {BOOKING_WORKFLOW[name].to}"
    assert Booking.query.get(booking.id).status == PENDING


def test_no_rule_enters_a_delivery_outcome_from_pending():
    for rule in BOOKING_WORKFLOW.values():
        if rule.to in (DELIVERED, NOT_DELIVERED):
            assert PENDING not in rule.from_states
            assert set(rule.from_states) <= {CONFIRMED, MONASTERY_APPROVED}


@pytest.mark.parametrize("status", BOOKING_STATUSES)
def test_donor_can_never_approve(db, slot, donor, make_booking, status):
    booking = make_booking(slot, donor)
    _set_status(db, booking, status)

    result = execute_transition(booking.id, "approve", donor.id, DONOR)

    assert not result.success
    assert result.error_code == "unauthorized"
    assert result.error == "Role donor not allowed for transition approve"
    assert result.http_status == 403


def test_donor_cannot_cancel_someone_elses_booking(slot, donor, other_donor, make_booking):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "cancel", other_donor.id, DONOR)

    assert not result.success
    assert result.error_code == "ownership_violation"
    assert result.error == "Donors can only modify their own bookings"
    assert Booking.query.get(booking.id).status == PENDING


def test_admin_of_another_monastery_cannot_approve(slot, donor, other_admin, make_booking):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "approve", other_admin.id, MONASTERY_ADMIN)

    assert not result.success
    assert result.error_code == "ownership_violation"
    assert result.error == "Monastery admins can only modify bookings for their monastery"


def test_super_admin_can_approve_any_booking(slot, donor, super_admin, make_booking):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "approve", super_admin.id, SUPER_ADMIN)

    assert result.success
    assert result.booking.monastery_approved_by == super_admin.id


def test_approve_twice_fails_second_time(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)

    first = execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)
    second = execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    assert first.success
    assert first.booking.status == MONASTERY_APPROVED
    assert not second.success
    assert second.error_code == "invalid_state_transition"
    assert second.error == "Cannot transition from monastery_approved to monastery_approved"


def test_cancel_then_reopen_only_touches_status_and_timestamps(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor, servings=3)
    columns = [c.name for c in Booking.__table__.columns]
    untouched = [c for c in columns if c not in ("status", "updated_at", "cancelled_at")]
    before = {c: getattr(booking, c) for c in untouched}

    cancelled = execute_transition(booking.id, "cancel", donor.id, DONOR, {"cancellation_reason": "Sick"})
    assert cancelled.success
    assert cancelled.booking.status == CANCELLED
    assert cancelled.booking.cancelled_at is not None
    assert cancelled.booking.cancellation_reason == "Sick"

    reopened = execute_transition(booking.id, "reopen", monastery_admin.id, MONASTERY_ADMIN)
    assert reopened.success, reopened.error
    after = reopened.booking
    assert after.status == PENDING
    assert after.cancelled_at is None
    assert {c: getattr(after, c) for c in untouched} == before


def test_reopen_clears_reason_but_history_keeps_it(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)
    execute_transition(booking.id, "cancel", donor.id, DONOR, {"cancellation_reason": "Family emergency"})

    result = execute_transition(booking.id, "reopen", monastery_admin.id, MONASTERY_ADMIN)

    assert result.success
    assert result.booking.cancellation_reason is None
    last = BookingTransition.query.filter_by(booking_id=booking.id, transition="reopen").one()
    assert "Family emergency" in last.notes


def test_reopen_rechecks_slot_capacity(slot, donor, other_donor, monastery_admin, make_booking):
    first = make_booking(slot, donor, servings=6)
    execute_transition(first.id, "cancel", donor.id, DONOR)
    make_booking(slot, other_donor, servings=6)

    result = execute_transition(first.id, "reopen", monastery_admin.id, MONASTERY_ADMIN)

    assert not result.success
    assert result.error_code == "capacity_exceeded"
    assert result.details == {"remaining": 4}
    assert Booking.query.get(first.id).status == CANCELLED


def test_unknown_transition_is_rejected(slot, donor, make_booking):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "teleport", donor.id, DONOR)

    assert not result.success
    assert result.error_code == "invalid_transition"
    assert result.error == "Invalid transition: teleport"


def test_missing_booking(app, monastery_admin):
    result = execute_transition(9999, "approve", monastery_admin.id, MONASTERY_ADMIN)

    assert not result.success
    assert result.error_code == "not_found"


def test_each_transition_is_recorded(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)
    execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)
    execute_transition(booking.id, "confirm", donor.id, DONOR)

    rows = (
        BookingTransition.query
        .filter_by(booking_id=booking.id)
        .order_by(BookingTransition.id.asc())
        .all()
    )
    assert [(r.transition, r.from_status, r.to_status, r.actor_id) for r in rows] == [
        ("approve", PENDING, MONASTERY_APPROVED, monastery_admin.id),
        ("confirm", MONASTERY_APPROVED, CONFIRMED, donor.id),
    ]


def test_history_failure_does_not_undo_transition(monkeypatch, slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)

    def broken_history(**kwargs):
        raise SQLAlchemyError("booking_transitions unavailable")

    monkeypatch.setattr(booking_workflow, "BookingTransition", broken_history)

    result = execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    assert result.success
    assert Booking.query.get(booking.id).status == MONASTERY_APPROVED


def test_concurrent_status_change_loses_conditional_update(monkeypatch, db, slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)
    original = booking_workflow._resolve_required

    def racing(rule, actor_id, extra_data):
        # another request cancels between our read and our write
        db.session.execute(
            update(Booking).where(Booking.id == booking.id).values(status=CANCELLED)
        )
        return original(rule, actor_id, extra_data)

    monkeypatch.setattr(booking_workflow, "_resolve_required", racing)

    result = execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    assert not result.success
    assert result.error_code == "invalid_state_transition"
    assert result.error == "Cannot transition from cancelled to monastery_approved"


def test_available_actions(db, slot, donor, other_donor, monastery_admin, other_admin, super_admin, make_booking):
    booking = make_booking(slot, donor)

    assert get_available_actions(booking, monastery_admin.id, MONASTERY_ADMIN) == ["approve", "cancel"]
    assert get_available_actions(booking, other_admin.id, MONASTERY_ADMIN) == []
    assert get_available_actions(booking, donor.id, DONOR) == ["cancel"]

    _set_status(db, booking, MONASTERY_APPROVED)
    assert get_available_actions(booking, donor.id, DONOR) == ["confirm", "cancel"]
    assert get_available_actions(booking, other_donor.id, DONOR) == []
    assert get_available_actions(booking, super_admin.id, SUPER_ADMIN) == [
        "markDelivered", "markNotDelivered", "cancel",
    ]

    _set_status(db, booking, CANCELLED)
    assert get_available_actions(booking, super_admin.id, SUPER_ADMIN) == ["reopen"]
    assert get_available_actions(booking, donor.id, DONOR) == []

    _set_status(db, booking, DELIVERED)
    for role, actor in ((DONOR, donor), (MONASTERY_ADMIN, monastery_admin), (SUPER_ADMIN, super_admin)):
        assert get_available_actions(booking, actor.id, role) == []


@pytest.mark.parametrize("value", [12, ["late"], {"why": "late"}])
def test_cancel_reason_must_be_text(slot, donor, make_booking, value):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "cancel", donor.id, DONOR, {"cancellation_reason": value})

    assert not result.success
    assert result.error_code == "validation_failed"
    assert result.error == "cancellation_reason must be text"
    assert Booking.query.get(booking.id).status == PENDING


@pytest.mark.parametrize("value", [7, ["served"], {"served": True}])
def test_delivery_notes_must_be_text(slot, donor, monastery_admin, make_booking, value):
    booking = make_booking(slot, donor)
    execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    result = execute_transition(
        booking.id, "markDelivered", monastery_admin.id, MONASTERY_ADMIN, {"delivery_notes": value},
    )

    assert not result.success
    assert result.error_code == "validation_failed"
    assert Booking.query.get(booking.id).status == MONASTERY_APPROVED


def test_delivery_confirmer_must_be_a_user_id(slot, donor, monastery_admin, make_booking):
    booking = make_booking(slot, donor)
    execute_transition(booking.id, "approve", monastery_admin.id, MONASTERY_ADMIN)

    result = execute_transition(
        booking.id, "markNotDelivered", monastery_admin.id, MONASTERY_ADMIN,
        {"delivery_confirmed_by": "the abbot"},
    )

    assert result.error_code == "validation_failed"
    assert result.error == "delivery_confirmed_by must be a user id"


@pytest.mark.parametrize("extra", [["cancellation_reason"], "Sick", 3])
def test_transition_data_must_be_a_mapping(slot, donor, make_booking, extra):
    booking = make_booking(slot, donor)

    result = execute_transition(booking.id, "cancel", donor.id, DONOR, extra)

    assert not result.success
    assert result.error_code == "validation_failed"
    assert result.http_status == 400
