import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

def _env_list(name):
    return [item.strip().lower() for item in os.getenv(name, "").split(",") if item.strip()]

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # Postgres in production (DATABASE_URL), SQLite file for local development
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "dhaana.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "dhaana_session"
    CSRF_COOKIE_NAME = "dhaana_csrf"
    CSRF_ENABLED = True

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # bcrypt cost factor
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Slot capacity (servings)
    DEFAULT_SLOT_CAPACITY = int(os.getenv("DEFAULT_SLOT_CAPACITY", "50"))
    MAX_SLOT_CAPACITY = int(os.getenv("MAX_SLOT_CAPACITY", "1000"))

    # Listing page size cap
    MAX_PAGE_SIZE = 200

    # Emails promoted to super_admin on registration (comma separated)
    SUPER_ADMIN_EMAILS = _env_list("SUPER_ADMIN_EMAILS")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Basic app settings
    DEBUG = False
