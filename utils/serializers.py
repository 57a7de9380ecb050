from services.booking_workflow import get_available_actions
from services.capacity import slot_availability
from utils.roles import filter_role_names, primary_role


def _iso(value):
    return value.isoformat() if value else None


def user_dict(u):
    roles = filter_role_names(u.roles)
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "phone": u.phone,
        "address": u.address,
        "roles": roles,
        "primary_role": primary_role(roles),
        "created_at": _iso(u.created_at),
    }


def monastery_dict(m):
    return {
        "id": m.id,
        "name": m.name,
        "address": m.address,
        "description": m.description,
        "phone": m.phone,
        "email": m.email,
        "admin_id": m.admin_id,
        "capacity": m.capacity,
        "is_active": m.is_active,
        "created_at": _iso(m.created_at),
    }


def slot_dict(s, with_availability=True):
    out = {
        "id": s.id,
        "monastery_id": s.monastery_id,
        "date": s.date.isoformat(),
        "time_slot": s.time_slot,
        "capacity": s.capacity,
        "committed_servings": s.committed_servings,
        "special_requirements": s.special_requirements,
        "is_available": s.is_available,
    }
    if with_availability:
        out["availability"] = slot_availability(s)
    return out


def booking_dict(b, actor_id=None, actor_role=None):
    out = {
        "id": b.id,
        "slot_id": b.slot_id,
        "donor_id": b.donor_id,
        "guest_profile_id": b.guest_profile_id,
        "is_guest": b.is_guest,
        "food_type": b.food_type,
        "estimated_servings": b.estimated_servings,
        "contact_phone": b.contact_phone,
        "special_notes": b.special_notes,
        "status": b.status,
        "created_at": _iso(b.created_at),
        "updated_at": _iso(b.updated_at),
        "monastery_approved_at": _iso(b.monastery_approved_at),
        "monastery_approved_by": b.monastery_approved_by,
        "confirmed_at": _iso(b.confirmed_at),
        "delivery_confirmed_at": _iso(b.delivery_confirmed_at),
        "delivery_confirmed_by": b.delivery_confirmed_by,
        "delivery_status": b.delivery_status,
        "delivery_notes": b.delivery_notes,
        "cancelled_at": _iso(b.cancelled_at),
        "cancellation_reason": b.cancellation_reason,
    }
    if b.slot is not None:
        out["slot"] = {
            "date": b.slot.date.isoformat(),
            "time_slot": b.slot.time_slot,
            "monastery_id": b.slot.monastery_id,
        }
    if actor_role:
        out["available_actions"] = get_available_actions(b, actor_id, actor_role)
    return out


def transition_dict(t):
    return {
        "id": t.id,
        "booking_id": t.booking_id,
        "transition": t.transition,
        "from_status": t.from_status,
        "to_status": t.to_status,
        "actor_id": t.actor_id,
        "notes": t.notes,
        "created_at": _iso(t.created_at),
    }
