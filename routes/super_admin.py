from flask import Blueprint, jsonify, g, request

from models import db
from models.booking_transition import BookingTransition
from models.monastery import Monastery
from models.user import User, Role
from security.rbac import require_roles
from security.session import revoke_user_sessions
from utils.audit import log_event
from utils.roles import ALLOWED_ROLES, SUPER_ADMIN, filter_role_names
from utils.serializers import monastery_dict, transition_dict, user_dict

super_admin_bp = Blueprint("super_admin", __name__, url_prefix="/super-admin")


@super_admin_bp.get("/users")
@require_roles(SUPER_ADMIN)
def list_users():
    role_filter = (request.args.get("role") or "").strip().lower()
    q = User.query
    if role_filter:
        q = q.join(User.roles).filter(Role.name == role_filter)

    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify([user_dict(u) for u in users]), 200


@super_admin_bp.post("/users/<int:user_id>/roles")
@require_roles(SUPER_ADMIN)
def update_user_roles(user_id: int):
    data = request.get_json(silent=True) or {}
    roles = data.get("roles")
    if not isinstance(roles, list) or not roles:
        return jsonify(error="roles must be a non-empty list"), 400

    role_names = {name.strip().lower() for name in roles if isinstance(name, str) and name.strip()}
    unknown = role_names - ALLOWED_ROLES
    if not role_names or unknown:
        return jsonify(error="Unknown role(s)", missing=sorted(unknown)), 400

    user = User.query.get(user_id)
    if not user:
        return jsonify(error="User not found"), 404

    if user.id == g.user.id and SUPER_ADMIN not in role_names:
        return jsonify(error="Cannot remove your own super_admin role"), 403

    available_roles = Role.query.filter(Role.name.in_(role_names)).all()
    missing = role_names - {r.name for r in available_roles}
    for name in missing:
        role = Role(name=name)
        db.session.add(role)
        available_roles.append(role)

    user.roles = available_roles
    db.session.commit()
    if user.id != g.user.id:
        # sign them in again under the new role set
        revoke_user_sessions(user.id)

    log_event(
        "SUPER_ADMIN_UPDATE_ROLES",
        user_id=g.user.id,
        entity="user",
        entity_id=user.id,
        metadata={"roles": sorted(role_names)},
    )
    return jsonify(message="Roles updated", roles=filter_role_names(user.roles)), 200


@super_admin_bp.get("/monasteries")
@require_roles(SUPER_ADMIN)
def list_all_monasteries():
    rows = Monastery.query.order_by(Monastery.created_at.desc()).limit(200).all()
    return jsonify([monastery_dict(m) for m in rows]), 200


@super_admin_bp.post("/monasteries/<int:monastery_id>/status")
@require_roles(SUPER_ADMIN)
def update_monastery_status(monastery_id: int):
    data = request.get_json(silent=True) or {}
    active = data.get("is_active")
    if active is None:
        return jsonify(error="is_active is required"), 400

    monastery = Monastery.query.get(monastery_id)
    if not monastery:
        return jsonify(error="Monastery not found"), 404

    monastery.is_active = bool(active)
    db.session.commit()

    log_event(
        "SUPER_ADMIN_MONASTERY_STATUS",
        user_id=g.user.id,
        entity="monastery",
        entity_id=monastery.id,
        metadata={"is_active": monastery.is_active},
    )
    return jsonify(message="Updated", is_active=monastery.is_active), 200


@super_admin_bp.get("/booking-transitions")
@require_roles(SUPER_ADMIN)
def list_booking_transitions():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = BookingTransition.query
    booking_id = request.args.get("booking_id", type=int)
    if booking_id:
        q = q.filter(BookingTransition.booking_id == booking_id)

    rows = q.order_by(BookingTransition.created_at.desc(), BookingTransition.id.desc()).limit(limit).all()
    return jsonify([transition_dict(t) for t in rows]), 200
