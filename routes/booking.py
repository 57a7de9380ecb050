from datetime import date

from flask import Blueprint, request, jsonify, g

from models.booking import Booking, BOOKING_STATUSES
from models.booking_transition import BookingTransition
from models.monastery import Monastery
from models.slot import DonationSlot
from security.rbac import require_roles
from services import create_booking, create_guest_booking, execute_transition
from services.booking_workflow import BOOKING_WORKFLOW
from utils.audit import log_event
from utils.auth_context import acting_role, login_required
from utils.roles import DONOR, MONASTERY_ADMIN, SUPER_ADMIN
from utils.serializers import booking_dict, transition_dict

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _result_error(result):
    body = {"error": result.error, "code": result.error_code}
    body.update(result.details)
    return jsonify(body), result.http_status


def _forbidden_role():
    return jsonify(error="You do not hold the requested role"), 403


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _slot_id(data):
    slot_id = data.get("slot_id")
    if isinstance(slot_id, bool):
        return None
    if isinstance(slot_id, int):
        return slot_id
    if isinstance(slot_id, str) and slot_id.strip().isdigit():
        return int(slot_id)
    return None


def _bad_body():
    return jsonify(error="Request body must be a JSON object"), 400


def _can_view(booking, role) -> bool:
    if role == SUPER_ADMIN:
        return True
    if booking.donor_id is not None and booking.donor_id == g.user.id:
        return True
    slot = booking.slot
    return role == MONASTERY_ADMIN and slot is not None and slot.monastery.admin_id == g.user.id


# ---------- DONORS: book a slot (capacity checked) ----------
@booking_bp.post("")
@login_required
def create_donor_booking():
    data = _json_body()
    if data is None:
        return _bad_body()
    slot_id = _slot_id(data)
    if not slot_id:
        return jsonify(error="slot_id required"), 400

    result = create_booking(slot_id, g.user.id, data, data.get("estimated_servings"))
    if not result.success:
        log_event(
            "BOOKING_CREATE_FAIL",
            user_id=g.user.id,
            entity="slot",
            entity_id=slot_id,
            metadata={"code": result.error_code},
        )
        return _result_error(result)

    booking = result.booking
    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "servings": booking.estimated_servings})
    return jsonify(message=result.message, booking=booking_dict(booking, g.user.id, DONOR)), 201


# ---------- MONASTERY ADMINS: phone-in guest booking ----------
@booking_bp.post("/guest")
@require_roles(MONASTERY_ADMIN)
def create_guest():
    data = _json_body()
    if data is None:
        return _bad_body()
    role = acting_role(data)
    if role is None:
        return _forbidden_role()

    slot_id = _slot_id(data)
    if not slot_id:
        return jsonify(error="slot_id required"), 400

    result = create_guest_booking(
        slot_id,
        g.user.id,
        role,
        data.get("guest"),
        data,
        data.get("estimated_servings"),
    )
    if not result.success:
        return _result_error(result)

    booking = result.booking
    log_event("GUEST_BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"slot_id": slot_id, "guest_profile_id": booking.guest_profile_id})
    return jsonify(message=result.message, booking=booking_dict(booking, g.user.id, role)), 201


# ---------- DONORS: my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    q = Booking.query.filter_by(donor_id=g.user.id)
    if status:
        if status not in BOOKING_STATUSES:
            return jsonify(error="Unknown status"), 400
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    return jsonify([booking_dict(b, g.user.id, DONOR) for b in rows]), 200


# ---------- MONASTERY ADMINS: bookings for my monastery ----------
@booking_bp.get("/monastery")
@require_roles(MONASTERY_ADMIN)
def monastery_bookings():
    role = acting_role()
    if role is None:
        return _forbidden_role()

    status = request.args.get("status")
    date_str = request.args.get("date")  # YYYY-MM-DD
    monastery_id = request.args.get("monastery_id", type=int)

    q = (
        Booking.query
        .join(DonationSlot, Booking.slot_id == DonationSlot.id)
        .join(Monastery, DonationSlot.monastery_id == Monastery.id)
    )
    if role != SUPER_ADMIN:
        q = q.filter(Monastery.admin_id == g.user.id)
    if monastery_id:
        q = q.filter(Monastery.id == monastery_id)

    if status:
        if status not in BOOKING_STATUSES:
            return jsonify(error="Unknown status"), 400
        q = q.filter(Booking.status == status)

    if date_str:
        try:
            day = date.fromisoformat(date_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        q = q.filter(DonationSlot.date == day)

    rows = q.order_by(DonationSlot.date.asc(), Booking.created_at.asc()).limit(200).all()
    return jsonify([booking_dict(b, g.user.id, role) for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def booking_detail(booking_id: int):
    role = acting_role()
    if role is None:
        return _forbidden_role()

    booking = Booking.query.get(booking_id)
    if not booking or not _can_view(booking, role):
        return jsonify(error="Booking not found"), 404
    return jsonify(booking_dict(booking, g.user.id, role)), 200


@booking_bp.get("/<int:booking_id>/actions")
@login_required
def available_actions(booking_id: int):
    role = acting_role()
    if role is None:
        return _forbidden_role()

    booking = Booking.query.get(booking_id)
    if not booking or not _can_view(booking, role):
        return jsonify(error="Booking not found"), 404
    return jsonify(booking_id=booking.id, role=role,
                   actions=booking_dict(booking, g.user.id, role)["available_actions"]), 200


# ---------- ALL ROLES: workflow transitions ----------
@booking_bp.post("/<int:booking_id>/transitions/<transition>")
@login_required
def transition_booking(booking_id: int, transition: str):
    data = _json_body()
    if data is None:
        return _bad_body()
    role = acting_role(data)
    if role is None:
        return _forbidden_role()

    extra = {
        key: data[key]
        for key in ("delivery_notes", "cancellation_reason")
        if key in data
    }
    result = execute_transition(booking_id, transition, g.user.id, role, extra)
    if not result.success:
        return _result_error(result)

    booking = result.booking
    log_event(
        "BOOKING_" + BOOKING_WORKFLOW[transition].to.upper(),
        user_id=g.user.id,
        entity="booking",
        entity_id=booking.id,
        metadata={"transition": transition, "role": role},
    )
    return jsonify(message=result.message, booking=booking_dict(booking, g.user.id, role)), 200


@booking_bp.get("/<int:booking_id>/history")
@login_required
def booking_history(booking_id: int):
    role = acting_role()
    if role is None:
        return _forbidden_role()

    booking = Booking.query.get(booking_id)
    if not booking or not _can_view(booking, role):
        return jsonify(error="Booking not found"), 404

    rows = (
        BookingTransition.query
        .filter_by(booking_id=booking.id)
        .order_by(BookingTransition.created_at.asc(), BookingTransition.id.asc())
        .all()
    )
    return jsonify([transition_dict(t) for t in rows]), 200
