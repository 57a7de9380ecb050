from functools import wraps
from flask import g, jsonify, request
from security.session import current_session
from models.user import User
from utils.roles import filter_role_names, primary_role

def load_current_user():
    sess = current_session()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = User.query.get(sess.user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def acting_role(data=None):
    """
    Role the current user is acting under for this request.
    An explicit `as_role` (JSON body or query string) wins when the user holds it,
    otherwise the primary role.
    """
    user = getattr(g, "user", None)
    if user is None:
        return None
    held = filter_role_names(user.roles)
    source = data if isinstance(data, dict) else {}
    requested = source.get("as_role") or request.args.get("as_role")
    if not requested:
        return primary_role(held)
    if not isinstance(requested, str):
        return None
    requested = requested.strip().lower()
    return requested if requested in held else None
