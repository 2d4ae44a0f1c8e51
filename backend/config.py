import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))

# Relative paths are resolved against the backend directory, where alembic also runs
DATABASE_PATH = os.path.join(BACKEND_DIR, os.getenv("DAYCLOCK_DATABASE_PATH", "dayclock.db"))

# Comma separated list, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("DAYCLOCK_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

SEED_DEFAULT_TASKS = _env_bool("DAYCLOCK_SEED_DEFAULT_TASKS", True)

LOG_LEVEL = os.getenv("DAYCLOCK_LOG_LEVEL", "INFO").upper()

HOST = os.getenv("DAYCLOCK_HOST", "0.0.0.0")
PORT = int(os.getenv("DAYCLOCK_PORT", "8000"))
