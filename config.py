import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as manege.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "manege.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Schema normally comes from `flask db upgrade`; tests and demos can skip migrations
    CREATE_TABLES_ON_STARTUP = os.getenv("CREATE_TABLES_ON_STARTUP", "false").lower() == "true"

    # Header set by the upstream auth proxy with the authenticated user's id
    AUTH_USER_HEADER = os.getenv("AUTH_USER_HEADER", "X-User-Id")

    # The riding hall, created at startup when missing
    DEFAULT_RESOURCE_SLUG = os.getenv("DEFAULT_RESOURCE_SLUG", "rijhal-binnen")
    DEFAULT_RESOURCE_NAME = os.getenv("DEFAULT_RESOURCE_NAME", "Binnenrijhal")

    # New reservations start as CONFIRMED, or PENDING when admins approve each one
    RESERVATION_INITIAL_STATUS = os.getenv("RESERVATION_INITIAL_STATUS", "CONFIRMED").upper()
    RESERVATION_NOTES_MAX_LENGTH = 500

    # Conflict lookups load whole UTC days around the requested interval
    CONFLICT_WINDOW_WHOLE_DAYS = os.getenv("CONFLICT_WINDOW_WHOLE_DAYS", "true").lower() == "true"

    # Longest range the calendar endpoint serves in one request
    CALENDAR_MAX_RANGE_DAYS = int(os.getenv("CALENDAR_MAX_RANGE_DAYS", "62"))

    # Cancellation reasons recorded when none is given
    USER_CANCEL_REASON = "Cancelled by user"
    ADMIN_CANCEL_REASON = "Cancelled by administrator"
    DEACTIVATION_CANCEL_REASON = "Account disabled by administrator"

    # Audit log paging
    AUDIT_LOG_DEFAULT_LIMIT = 50
    AUDIT_LOG_MAX_LIMIT = 500

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Basic app settings
    DEBUG = False
