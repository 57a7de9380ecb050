from flask import Blueprint, jsonify

from .auth import auth_bp
from .monasteries import monastery_bp
from .slots import slot_bp
from .booking import booking_bp
from .admin import admin_bp
from .super_admin import super_admin_bp
from .audit_logs import audit_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200
