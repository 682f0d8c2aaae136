# waterlily/config.py
import logging
import os
import secrets

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load the .env from the project root (one level above the package) if there is one,
# otherwise let python-dotenv search upwards from the working directory.
dotenv_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)
else:
    load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL is None:
    sqlite_db_path = os.path.join(os.path.dirname(__file__), "waterlily_fallback.db")
    DATABASE_URL = f"sqlite+aiosqlite:///{sqlite_db_path}"
    logger.warning(
        "DATABASE_URL is not set, falling back to local SQLite database at %s",
        sqlite_db_path,
    )
SQL_ECHO = _env_bool("SQL_ECHO")

# --- Identity provider ---
AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY")
if not AUTH_SECRET_KEY:
    # Tokens signed with a per-process key do not survive a restart.
    AUTH_SECRET_KEY = secrets.token_urlsafe(32)
    logger.warning(
        "AUTH_SECRET_KEY is not set, using a random key; issued tokens become "
        "invalid when the process restarts."
    )
AUTH_TOKEN_TTL_MINUTES = int(os.getenv("AUTH_TOKEN_TTL_MINUTES", str(60 * 24)))
PASSWORD_HASH_ROUNDS = int(os.getenv("PASSWORD_HASH_ROUNDS", "12"))

# --- Session cookie / edge gate ---
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "waterlily-auth")
SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE")

# --- HTTP ---
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://127.0.0.1:8000").rstrip("/")

fallback_origins = [
    "http://127.0.0.1:3000",
    "http://localhost:3000",
]
env_origins = os.getenv("BACKEND_ALLOWED_ORIGINS")
if env_origins:
    ALLOWED_ORIGINS = [origin.strip() for origin in env_origins.split(",") if origin.strip()]
else:
    ALLOWED_ORIGINS = []
if not ALLOWED_ORIGINS:
    ALLOWED_ORIGINS = fallback_origins

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
