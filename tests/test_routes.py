from datetime import date, datetime, timedelta

from models import db
from models.audit_log import AuditLog
from models.session import Session
from models.user import User
from utils.roles import MONASTERY_ADMIN


def _future(days=3):
    return (date.today() + timedelta(days=days)).isoformat()


def _book(client, slot_id, servings=2, **extra):
    body = {"slot_id": slot_id, "food_type": "Rice and curry", "estimated_servings": servings}
    body.update(extra)
    return client.post("/bookings", json=body)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_register_login_and_me(client):
    resp = client.post("/auth/register", json={
        "email": "Donor@Example.com", "password": "secret123", "full_name": "Kamal Donor",
    })
    assert resp.status_code == 201
    assert resp.get_json()["user"]["roles"] == ["donor"]

    dup = client.post("/auth/register", json={
        "email": "donor@example.com", "password": "secret123", "full_name": "Kamal Donor",
    })
    assert dup.status_code == 409

    assert client.get("/auth/me").status_code == 401
    assert client.post("/auth/login", json={"email": "donor@example.com", "password": "nope"}).status_code == 401

    assert client.post("/auth/login", json={"email": "donor@example.com", "password": "secret123"}).status_code == 200
    me = client.get("/auth/me").get_json()
    assert me["email"] == "donor@example.com"
    assert me["primary_role"] == "donor"

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_register_rejects_short_password(client):
    resp = client.post("/auth/register", json={
        "email": "a@example.com", "password": "abc", "full_name": "Short Pass",
    })
    assert resp.status_code == 400
    assert resp.get_json()["details"] == ["Password must be at least 6 characters"]


def test_creating_a_monastery_grants_admin_role(client, login, donor):
    login(donor)

    resp = client.post("/monasteries", json={
        "name": "Gangaramaya", "address": "61 Sri Jinarathana Road, Colombo", "capacity": 40,
    })

    assert resp.status_code == 201
    assert resp.get_json()["admin_id"] == donor.id
    assert MONASTERY_ADMIN in User.query.get(donor.id).role_names
    assert client.get("/auth/me").get_json()["primary_role"] == MONASTERY_ADMIN


def test_slot_management(client, login, monastery, monastery_admin, donor):
    login(donor)
    assert client.post("/slots", json={
        "monastery_id": monastery.id, "date": _future(), "time_slot": "lunch",
    }).status_code == 403

    login(monastery_admin)
    bad = client.post("/slots", json={"monastery_id": monastery.id, "date": _future(), "time_slot": "supper"})
    assert bad.status_code == 400

    resp = client.post("/slots", json={
        "monastery_id": monastery.id, "date": _future(), "time_slot": "lunch", "capacity": 12,
    })
    assert resp.status_code == 201
    slot = resp.get_json()
    assert slot["availability"] == {"capacity": 12, "committed": 0, "remaining": 12}

    dup = client.post("/slots", json={"monastery_id": monastery.id, "date": _future(), "time_slot": "lunch"})
    assert dup.status_code == 409

    listed = client.get(f"/slots?monastery_id={monastery.id}").get_json()
    assert [s["id"] for s in listed] == [slot["id"]]

    assert client.post(f"/slots/{slot['id']}/deactivate").status_code == 200
    assert client.get(f"/slots?monastery_id={monastery.id}").get_json() == []


def test_booking_lifecycle_over_http(client, login, slot, donor, monastery_admin):
    login(donor)
    created = _book(client, slot.id, servings=4)
    assert created.status_code == 201
    booking = created.get_json()["booking"]
    assert booking["status"] == "pending"
    assert booking["available_actions"] == ["cancel"]

    denied = client.post(f"/bookings/{booking['id']}/transitions/approve")
    assert denied.status_code == 403
    assert denied.get_json()["code"] == "unauthorized"

    login(monastery_admin)
    approved = client.post(f"/bookings/{booking['id']}/transitions/approve")
    assert approved.status_code == 200
    assert approved.get_json()["booking"]["status"] == "monastery_approved"

    listing = client.get("/bookings/monastery?status=monastery_approved").get_json()
    assert [b["id"] for b in listing] == [booking["id"]]
    assert listing[0]["available_actions"] == ["markDelivered", "markNotDelivered", "cancel"]

    login(donor)
    confirmed = client.post(f"/bookings/{booking['id']}/transitions/confirm")
    assert confirmed.get_json()["booking"]["status"] == "confirmed"

    login(monastery_admin)
    delivered = client.post(
        f"/bookings/{booking['id']}/transitions/markDelivered",
        json={"delivery_notes": "All monks served"},
    )
    body = delivered.get_json()["booking"]
    assert body["status"] == "delivered"
    assert body["delivery_notes"] == "All monks served"
    assert body["delivery_confirmed_by"] == monastery_admin.id

    history = client.get(f"/bookings/{booking['id']}/history").get_json()
    assert [h["transition"] for h in history] == ["approve", "confirm", "markDelivered"]

    again = client.post(f"/bookings/{booking['id']}/transitions/approve")
    assert again.status_code == 409
    assert again.get_json()["code"] == "invalid_state_transition"


def test_acting_role_must_be_held(client, login, slot, donor, monastery_admin):
    login(donor)
    booking = _book(client, slot.id).get_json()["booking"]

    resp = client.post(
        f"/bookings/{booking['id']}/transitions/approve", json={"as_role": "super_admin"},
    )
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "You do not hold the requested role"

    login(monastery_admin)
    as_donor = client.get(f"/bookings/{booking['id']}/actions?as_role=donor")
    assert as_donor.status_code == 404

    actions = client.get(f"/bookings/{booking['id']}/actions").get_json()
    assert actions == {"booking_id": booking["id"], "role": MONASTERY_ADMIN, "actions": ["approve", "cancel"]}


def test_capacity_exceeded_over_http(client, login, slot, donor, other_donor):
    login(donor)
    assert _book(client, slot.id, servings=7).status_code == 201

    login(other_donor)
    resp = _book(client, slot.id, servings=5)
    assert resp.status_code == 409
    assert resp.get_json() == {
        "error": "Requested 5 servings but only 3 remaining for this slot",
        "code": "capacity_exceeded",
        "remaining": 3,
    }


def test_my_bookings_only_lists_own(client, login, slot, donor, other_donor):
    login(donor)
    theirs = _book(client, slot.id).get_json()["booking"]
    login(other_donor)
    _book(client, slot.id)

    mine = client.get("/bookings/me").get_json()
    assert len(mine) == 1
    assert mine[0]["donor_id"] == other_donor.id

    assert client.get(f"/bookings/{theirs['id']}").status_code == 404


def test_guest_booking_over_http(client, login, slot, monastery_admin, donor):
    payload = {
        "slot_id": slot.id,
        "food_type": "Milk rice",
        "estimated_servings": 3,
        "guest": {"phone": "0771234567", "full_name": "Amara Perera"},
    }

    login(donor)
    assert client.post("/bookings/guest", json=payload).status_code == 403

    login(monastery_admin)
    resp = client.post("/bookings/guest", json=payload)
    assert resp.status_code == 201
    booking = resp.get_json()["booking"]
    assert booking["is_guest"] is True
    assert booking["donor_id"] is None
    assert booking["contact_phone"] == "0771234567"


def test_manage_dashboard(client, login, slot, donor, monastery_admin, make_booking):
    make_booking(slot, donor, servings=3)
    login(monastery_admin)

    resp = client.get("/manage/dashboard")

    assert resp.status_code == 200
    stats = resp.get_json()["stats"]
    assert stats["bookings"] == 1
    assert stats["awaiting_approval"] == 1
    assert stats["by_status"]["pending"] == 1


def test_super_admin_roles_and_audit(client, login, slot, donor, super_admin):
    login(donor)
    _book(client, slot.id)
    assert client.get("/super-admin/users").status_code == 403

    login(super_admin)
    users = client.get("/super-admin/users?role=donor").get_json()
    assert donor.id in [u["id"] for u in users]

    resp = client.post(f"/super-admin/users/{donor.id}/roles", json={"roles": ["donor", "monastery_admin"]})
    assert resp.status_code == 200
    assert resp.get_json()["roles"] == ["monastery_admin", "donor"]

    bad = client.post(f"/super-admin/users/{donor.id}/roles", json={"roles": ["abbot"]})
    assert bad.status_code == 400

    logs = client.get("/super-admin/audit-logs?action=BOOKING_CREATE").get_json()
    assert len(logs) == 1
    assert logs[0]["user_id"] == donor.id
    assert AuditLog.query.filter_by(action="SUPER_ADMIN_UPDATE_ROLES").count() == 1


def test_csrf_required_when_enabled(app, client, login, slot, donor):
    login(donor)
    app.config["CSRF_ENABLED"] = True

    blocked = _book(client, slot.id)
    assert blocked.status_code == 403
    assert blocked.get_json()["error"] == "CSRF validation failed"

    token = client.get_cookie("dhaana_csrf").value
    allowed = client.post(
        "/bookings",
        json={"slot_id": slot.id, "food_type": "Rice and curry", "estimated_servings": 2},
        headers={"X-CSRF-Token": token},
    )
    assert allowed.status_code == 201


def test_wrongly_typed_fields_get_validation_errors(client, login, slot, donor):
    login(donor)

    bad_food = _book(client, slot.id, food_type=5)
    assert bad_food.status_code == 400
    assert bad_food.get_json() == {"error": "food_type must be text", "code": "validation_failed"}

    assert client.post("/bookings", json=[slot.id]).status_code == 400
    assert client.post("/bookings", json={"slot_id": {"id": slot.id}}).status_code == 400

    booking = _book(client, slot.id).get_json()["booking"]
    bad_reason = client.post(
        f"/bookings/{booking['id']}/transitions/cancel", json={"cancellation_reason": 12},
    )
    assert bad_reason.status_code == 400
    assert bad_reason.get_json()["code"] == "validation_failed"
    assert client.get(f"/bookings/{booking['id']}").get_json()["status"] == "pending"


def test_monastery_capacity_cannot_drop_below_booked_servings(client, login, slot, monastery, donor, monastery_admin, make_booking):
    make_booking(slot, donor, servings=7)
    login(monastery_admin)

    too_low = client.patch(f"/monasteries/{monastery.id}", json={"capacity": 5, "name": "Renamed"})
    assert too_low.status_code == 409
    assert too_low.get_json()["slot_ids"] == [slot.id]
    assert client.get(f"/monasteries/{monastery.id}").get_json()["monastery"]["name"] == "Sri Maha Viharaya"

    ok = client.patch(f"/monasteries/{monastery.id}", json={"capacity": 7})
    assert ok.status_code == 200
    assert ok.get_json()["capacity"] == 7


def test_role_change_signs_the_user_out(app, client, login, donor, super_admin):
    donor_client = app.test_client()
    assert donor_client.post("/auth/login", json={"email": donor.email, "password": "secret123"}).status_code == 200
    assert donor_client.get("/auth/me").status_code == 200

    login(super_admin)
    client.post(f"/super-admin/users/{donor.id}/roles", json={"roles": ["donor", "monastery_admin"]})

    assert donor_client.get("/auth/me").status_code == 401
    assert client.get("/auth/me").status_code == 200


def test_idle_sessions_expire(app, client, login, donor):
    login(donor)
    sess = Session.query.filter_by(user_id=donor.id, revoked=False).one()
    sess.last_seen_at = datetime.utcnow() - timedelta(seconds=app.config["IDLE_TIMEOUT_SECONDS"] + 1)
    db.session.commit()

    assert client.get("/auth/me").status_code == 401


def test_login_replaces_earlier_sessions(app, client, login, donor):
    first = app.test_client()
    first.post("/auth/login", json={"email": donor.email, "password": "secret123"})

    login(donor)

    assert first.get("/auth/me").status_code == 401
    assert Session.query.filter_by(user_id=donor.id, revoked=False).count() == 1
