from datetime import date

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.monastery import Monastery
from models.slot import DonationSlot, TIME_SLOTS
from security.rbac import require_roles
from utils.audit import log_event
from utils.roles import MONASTERY_ADMIN, SUPER_ADMIN
from utils.serializers import slot_dict

slot_bp = Blueprint("slot", __name__, url_prefix="/slots")


def _parse_date(value):
    # Expect ISO format like "2026-01-20"
    return date.fromisoformat(value)


def _can_manage(monastery) -> bool:
    return monastery.admin_id == g.user.id or g.user.has_role(SUPER_ADMIN)


@slot_bp.post("")
@require_roles(MONASTERY_ADMIN)
def create_slot():
    data = request.get_json(silent=True) or {}
    monastery_id = data.get("monastery_id")
    date_str = data.get("date")
    time_slot = (data.get("time_slot") or "").strip().lower()

    if not monastery_id or not date_str or not time_slot:
        return jsonify(error="monastery_id, date, time_slot are required"), 400
    if time_slot not in TIME_SLOTS:
        return jsonify(error=f"time_slot must be one of {', '.join(TIME_SLOTS)}"), 400

    try:
        slot_date = _parse_date(date_str)
    except (TypeError, ValueError):
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if slot_date < date.today():
        return jsonify(error="Cannot create slots in the past"), 400

    max_capacity = current_app.config.get("MAX_SLOT_CAPACITY", 1000)
    try:
        capacity = int(data.get("capacity") or current_app.config.get("DEFAULT_SLOT_CAPACITY", 50))
    except (TypeError, ValueError):
        return jsonify(error="capacity must be a positive integer"), 400
    if capacity <= 0 or capacity > max_capacity:
        return jsonify(error=f"capacity must be between 1 and {max_capacity}"), 400

    monastery = Monastery.query.get(monastery_id)
    if not monastery or not monastery.is_active:
        return jsonify(error="Monastery not found"), 404
    if not _can_manage(monastery):
        return jsonify(error="You are not authorized to perform this action."), 403

    slot = DonationSlot(
        monastery_id=monastery.id,
        date=slot_date,
        time_slot=time_slot,
        capacity=capacity,
        special_requirements=(data.get("special_requirements") or "").strip() or None,
        created_by=g.user.id,
    )
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Slot already exists for that monastery, date and time"), 409

    log_event("SLOT_CREATE", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(slot_dict(slot)), 201


@slot_bp.get("")
def list_slots():
    # optional filters: monastery_id, date (YYYY-MM-DD)
    monastery_id = request.args.get("monastery_id", type=int)
    date_str = request.args.get("date")

    q = DonationSlot.query.filter(DonationSlot.is_available.is_(True))
    if monastery_id:
        q = q.filter(DonationSlot.monastery_id == monastery_id)

    if date_str:
        try:
            day = _parse_date(date_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        q = q.filter(DonationSlot.date == day)
    else:
        q = q.filter(DonationSlot.date >= date.today())

    slots = q.order_by(DonationSlot.date.asc(), DonationSlot.time_slot.asc()).limit(200).all()
    return jsonify([slot_dict(s) for s in slots]), 200


@slot_bp.post("/<int:slot_id>/deactivate")
@require_roles(MONASTERY_ADMIN)
def deactivate_slot(slot_id: int):
    slot = DonationSlot.query.get(slot_id)
    if not slot:
        return jsonify(error="Slot not found"), 404
    if not _can_manage(slot.monastery):
        return jsonify(error="You are not authorized to perform this action."), 403

    slot.is_available = False
    db.session.commit()

    log_event("SLOT_DEACTIVATE", user_id=g.user.id, entity="slot", entity_id=slot_id)
    return jsonify(message="Slot deactivated"), 200
