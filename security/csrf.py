import secrets
from flask import request, jsonify, current_app

CSRF_HEADER = "X-CSRF-Token"

def _cookie_name():
    return current_app.config.get("CSRF_COOKIE_NAME", "dhaana_csrf")

def issue_csrf_token(resp):
    token = secrets.token_urlsafe(32)
    resp.set_cookie(
        _cookie_name(),
        token,
        httponly=False,  # read by the frontend and echoed in the header
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp

def clear_csrf_token(resp):
    resp.delete_cookie(_cookie_name(), path="/")
    return resp

def require_csrf():
    if not current_app.config.get("CSRF_ENABLED", True):
        return None
    cookie_token = request.cookies.get(_cookie_name())
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None
