"""
Cookie-backed server sessions.

The browser only holds the raw token; the sessions table keeps its SHA-256
digest. Opening a session revokes any the user already had, so a donor or
monastery admin is signed in from one place at a time.
"""
import hashlib
import secrets
from datetime import datetime, timedelta

from flask import current_app, has_request_context, request

from models import db
from models.session import Session
from security.csrf import clear_csrf_token, issue_csrf_token


def _digest(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "dhaana_session")


def _client():
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    return ip, (request.headers.get("User-Agent") or "")[:255]


def _revoke_open(user_id: int) -> int:
    return (
        Session.query
        .filter_by(user_id=user_id, revoked=False)
        .update({"revoked": True}, synchronize_session=False)
    )


def start_session(user_id: int, resp) -> Session:
    """Open a fresh session for `user_id` and put its cookies on `resp`."""
    now = datetime.utcnow()
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)
    raw_token = secrets.token_urlsafe(32)
    ip, user_agent = _client()

    _revoke_open(user_id)
    sess = Session(
        user_id=user_id,
        token_hash=_digest(raw_token),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=lifetime),
        ip=ip,
        user_agent=user_agent,
    )
    db.session.add(sess)
    db.session.commit()

    resp.set_cookie(
        _cookie_name(),
        raw_token,
        max_age=lifetime,
        httponly=current_app.config.get("SESSION_COOKIE_HTTPONLY", True),
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    issue_csrf_token(resp)
    return sess


def current_session():
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return None

    sess = Session.query.filter_by(token_hash=_digest(raw_token), revoked=False).first()
    if sess is None:
        return None

    now = datetime.utcnow()
    if sess.is_expired(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def end_session(resp) -> bool:
    """Revoke the session behind this request and clear its cookies on `resp`."""
    revoked = 0
    raw_token = request.cookies.get(_cookie_name())
    if raw_token:
        revoked = (
            Session.query
            .filter_by(token_hash=_digest(raw_token), revoked=False)
            .update({"revoked": True}, synchronize_session=False)
        )
        db.session.commit()

    resp.delete_cookie(_cookie_name(), path="/")
    clear_csrf_token(resp)
    return revoked > 0


def revoke_user_sessions(user_id: int) -> int:
    """Sign a user out everywhere, e.g. after their roles change."""
    count = _revoke_open(user_id)
    db.session.commit()
    return count
