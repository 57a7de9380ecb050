import logging

import click
from flask import Flask, request, g
from flask_migrate import Migrate
from sqlalchemy.exc import OperationalError, ProgrammingError

from config import Config
from models import db
from models.user import User
from routes import (
    health_bp,
    auth_bp,
    monastery_bp,
    slot_bp,
    booking_bp,
    admin_bp,
    super_admin_bp,
    audit_bp,
)
from security.csrf import require_csrf
from utils.auth_context import load_current_user
from utils.roles import SUPER_ADMIN
from utils.seed import seed_roles, get_or_create_role

logger = logging.getLogger(__name__)

CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/health",
}


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(monastery_bp)
    app.register_blueprint(slot_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(super_admin_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    if app.config.get("SEED_ROLES_ON_STARTUP", True):
        with app.app_context():
            try:
                seed_roles()
            except (OperationalError, ProgrammingError):
                # tables not created yet; run `flask db upgrade` then `flask seed-roles`
                db.session.rollback()
                logger.warning("Skipping role seeding: database schema not initialised")

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_cli(app):
    @app.cli.command("seed-roles")
    def seed_roles_command():
        """Create the donor, monastery_admin and super_admin roles."""
        seed_roles()
        click.echo("Roles seeded")

    @app.cli.command("make-super-admin")
    @click.argument("email")
    def make_super_admin(email):
        """Promote a user to super_admin by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        role = get_or_create_role(SUPER_ADMIN)
        if role not in user.roles:
            user.roles.append(role)
        db.session.commit()

        click.echo(f"{user.email} promoted to {SUPER_ADMIN}")


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
