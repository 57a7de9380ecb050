from datetime import date

from flask import Blueprint, request, jsonify, g

from models import db
from models.monastery import Monastery
from models.slot import DonationSlot
from security.rbac import require_roles
from services import overcommitted_slots
from utils.audit import log_event
from utils.auth_context import login_required
from utils.roles import MONASTERY_ADMIN, SUPER_ADMIN
from utils.seed import get_or_create_role
from utils.serializers import monastery_dict, slot_dict

monastery_bp = Blueprint("monastery", __name__, url_prefix="/monasteries")


def _parse_capacity(value):
    if value in (None, ""):
        return None, None
    try:
        capacity = int(value)
    except (TypeError, ValueError):
        return None, "capacity must be a positive integer"
    if capacity <= 0:
        return None, "capacity must be a positive integer"
    return capacity, None


@monastery_bp.post("")
@login_required
def create_monastery():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    address = (data.get("address") or "").strip()

    if len(name) < 2:
        return jsonify(error="Monastery name must be at least 2 characters"), 400
    if len(address) < 5:
        return jsonify(error="Please enter a complete address"), 400

    capacity, err = _parse_capacity(data.get("capacity"))
    if err:
        return jsonify(error=err), 400

    monastery = Monastery(
        name=name,
        address=address,
        description=(data.get("description") or "").strip() or None,
        phone=(data.get("phone") or "").strip() or None,
        email=(data.get("email") or "").strip() or None,
        capacity=capacity,
        admin_id=g.user.id,
    )
    db.session.add(monastery)

    if not g.user.has_role(MONASTERY_ADMIN):
        g.user.roles.append(get_or_create_role(MONASTERY_ADMIN))
    db.session.commit()

    log_event("MONASTERY_CREATE", user_id=g.user.id, entity="monastery", entity_id=monastery.id)
    return jsonify(monastery_dict(monastery)), 201


@monastery_bp.get("")
def list_monasteries():
    name_query = (request.args.get("name") or "").strip()

    q = Monastery.query.filter(Monastery.is_active.is_(True))
    if name_query:
        q = q.filter(Monastery.name.ilike(f"%{name_query}%"))

    rows = q.order_by(Monastery.name.asc()).limit(200).all()
    return jsonify([monastery_dict(m) for m in rows]), 200


@monastery_bp.get("/me")
@require_roles(MONASTERY_ADMIN)
def my_monasteries():
    rows = (
        Monastery.query
        .filter_by(admin_id=g.user.id)
        .order_by(Monastery.created_at.desc())
        .all()
    )
    if not rows:
        return jsonify(error="No monastery found for this account"), 404
    return jsonify([monastery_dict(m) for m in rows]), 200


@monastery_bp.get("/<int:monastery_id>")
def monastery_detail(monastery_id: int):
    monastery = Monastery.query.get(monastery_id)
    if not monastery or not monastery.is_active:
        return jsonify(error="Monastery not found"), 404

    upcoming = (
        DonationSlot.query
        .filter(
            DonationSlot.monastery_id == monastery.id,
            DonationSlot.is_available.is_(True),
            DonationSlot.date >= date.today(),
        )
        .order_by(DonationSlot.date.asc(), DonationSlot.time_slot.asc())
        .limit(60)
        .all()
    )
    return jsonify(monastery=monastery_dict(monastery), slots=[slot_dict(s) for s in upcoming]), 200


@monastery_bp.patch("/<int:monastery_id>")
@require_roles(MONASTERY_ADMIN)
def update_monastery(monastery_id: int):
    monastery = Monastery.query.get(monastery_id)
    if not monastery:
        return jsonify(error="Monastery not found"), 404
    if monastery.admin_id != g.user.id and not g.user.has_role(SUPER_ADMIN):
        return jsonify(error="You are not authorized to perform this action."), 403

    data = request.get_json(silent=True) or {}
    for field in ("name", "address", "description", "phone", "email"):
        if field in data:
            value = data.get(field)
            if value is not None and not isinstance(value, str):
                return jsonify(error=f"{field} must be text"), 400
            value = (value or "").strip() or None
            if field in ("name", "address") and not value:
                return jsonify(error=f"{field} cannot be empty"), 400
            setattr(monastery, field, value)

    if "capacity" in data:
        capacity, err = _parse_capacity(data.get("capacity"))
        if err:
            return jsonify(error=err), 400
        over = overcommitted_slots(monastery.id, capacity)
        if over:
            db.session.rollback()
            return jsonify(
                error="Upcoming slots already have more servings booked than this capacity",
                slot_ids=over,
            ), 409
        monastery.capacity = capacity

    db.session.commit()
    log_event(
        "MONASTERY_UPDATE",
        user_id=g.user.id,
        entity="monastery",
        entity_id=monastery.id,
        metadata={k: data[k] for k in data if k != "as_role"},
    )
    return jsonify(monastery_dict(monastery)), 200
