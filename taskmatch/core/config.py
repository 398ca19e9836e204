import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskmatch.db")

# JWT
AUTH_SECRET = os.getenv("AUTH_SECRET")
if not AUTH_SECRET:
    import warnings

    warnings.warn(
        "AUTH_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    AUTH_SECRET = "dev-secret-change-me"

ACCESS_TTL_SECONDS = int(os.getenv("ACCESS_TTL_SECONDS", "900"))  # 15m
REFRESH_TTL_SECONDS = int(os.getenv("REFRESH_TTL_SECONDS", "1209600"))  # 14d
AUTH_ISSUER = os.getenv("AUTH_ISSUER", "taskmatch-auth")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Full dashboard re-send over the realtime socket after this many idle seconds
REALTIME_RECONCILE_SECONDS = float(os.getenv("REALTIME_RECONCILE_SECONDS", "30"))

# Frontend base URL for login redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
