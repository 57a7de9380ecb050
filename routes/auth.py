from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.password import hash_password, verify_password, validate_password
from security.session import end_session, start_session
from utils.audit import log_event
from utils.auth_context import login_required
from utils.roles import DONOR, SUPER_ADMIN
from utils.seed import get_or_create_role
from utils.serializers import user_dict


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip()

    if not _is_valid_email(email):
        return jsonify(error="Please enter a valid email address"), 400
    if len(full_name) < 2:
        return jsonify(error="Full name must be at least 2 characters"), 400
    valid, errors = validate_password(password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = User(
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        full_name=full_name,
        phone=(data.get("phone") or "").strip() or None,
    )
    db.session.add(user)
    db.session.flush()

    user.roles.append(get_or_create_role(DONOR))
    if email in current_app.config.get("SUPER_ADMIN_EMAILS", []):
        user.roles.append(get_or_create_role(SUPER_ADMIN))

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)

    return jsonify(message="Registered successfully", user=user_dict(user)), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    resp = jsonify(message="Logged in", user=user_dict(user))
    start_session(user.id, resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.post("/logout")
@login_required
def logout():
    user_id = g.user.id
    resp = jsonify(message="Logged out")
    end_session(resp)
    log_event("LOGOUT", user_id=user_id)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(user_dict(g.user)), 200


@auth_bp.patch("/me")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    if "full_name" in data:
        full_name = (data.get("full_name") or "").strip()
        if len(full_name) < 2:
            return jsonify(error="Full name must be at least 2 characters"), 400
        g.user.full_name = full_name
    if "phone" in data:
        g.user.phone = (data.get("phone") or "").strip() or None
    if "address" in data:
        g.user.address = (data.get("address") or "").strip() or None

    db.session.commit()
    log_event("PROFILE_UPDATE", user_id=g.user.id, entity="user", entity_id=g.user.id)
    return jsonify(user_dict(g.user)), 200
