from datetime import date

from flask import Blueprint, jsonify, g
from sqlalchemy import func

from models import db
from models.booking import Booking, BOOKING_STATUSES, PENDING
from models.monastery import Monastery
from models.slot import DonationSlot
from security.rbac import require_roles
from utils.audit import log_event
from utils.roles import MONASTERY_ADMIN
from utils.serializers import monastery_dict, slot_dict

admin_bp = Blueprint("admin", __name__, url_prefix="/manage")


def _get_monasteries_for_admin(user):
    if not user:
        return []
    return (
        Monastery.query
        .filter_by(admin_id=user.id)
        .order_by(Monastery.created_at.desc())
        .all()
    )


@admin_bp.get("/dashboard")
@require_roles(MONASTERY_ADMIN)
def dashboard():
    monasteries = _get_monasteries_for_admin(g.user)
    if not monasteries:
        return jsonify(error="No monastery found for this account"), 404

    monastery_ids = [m.id for m in monasteries]
    slot_count = DonationSlot.query.filter(DonationSlot.monastery_id.in_(monastery_ids)).count()

    by_status = dict(
        db.session.query(Booking.status, func.count(Booking.id))
        .join(DonationSlot, Booking.slot_id == DonationSlot.id)
        .filter(DonationSlot.monastery_id.in_(monastery_ids))
        .group_by(Booking.status)
        .all()
    )

    upcoming = (
        DonationSlot.query
        .filter(
            DonationSlot.monastery_id.in_(monastery_ids),
            DonationSlot.is_available.is_(True),
            DonationSlot.date >= date.today(),
        )
        .order_by(DonationSlot.date.asc())
        .limit(14)
        .all()
    )

    log_event("MANAGE_DASHBOARD_VIEW", user_id=g.user.id)
    return jsonify(
        monasteries=[monastery_dict(m) for m in monasteries],
        stats={
            "monasteries": len(monasteries),
            "slots": slot_count,
            "bookings": sum(by_status.values()),
            "awaiting_approval": by_status.get(PENDING, 0),
            "by_status": {s: by_status.get(s, 0) for s in BOOKING_STATUSES},
        },
        upcoming_slots=[slot_dict(s) for s in upcoming],
    ), 200
