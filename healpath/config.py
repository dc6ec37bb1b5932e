"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Tokens ───────────────────────────────────────────────────────────
# Access and refresh tokens are signed with distinct secrets.
ACCESS_TOKEN_SECRET = os.getenv("JWT_SECRET", "dev-access-secret-change-in-production")
REFRESH_TOKEN_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-in-production")
ACCESS_TOKEN_EXPIRY_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRY_DAYS = int(os.getenv("JWT_REFRESH_EXPIRE_DAYS", "7"))
JWT_ALGORITHM = "HS256"

# ── Passwords / access codes ─────────────────────────────────────────
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MIN_PASSWORD_LENGTH = 8
ACCESS_CODE_LENGTH = 6
ACCESS_CODE_MAX_ATTEMPTS = 10

# ── API server ───────────────────────────────────────────────────────
DB_URI = os.getenv("DB_URI", "sqlite:///healpath.db")
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5001"))
FLASK_ENV = os.getenv("FLASK_ENV", "development")
DEFAULT_SYMPTOM_LIMIT = 30
EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")

# ── Client ───────────────────────────────────────────────────────────
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5001/api")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))
CLIENT_STATE_PATH = os.getenv("CLIENT_STATE_PATH", os.path.expanduser("~/.healpath/state.json"))


def is_production() -> bool:
    """True when the server runs with FLASK_ENV=production."""
    return os.getenv("FLASK_ENV", FLASK_ENV) == "production"


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
