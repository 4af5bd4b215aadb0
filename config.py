import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# "memory" keeps everything in process, "sqlite" goes through SQLAlchemy
STORAGE_BACKEND = os.getenv("FINTRACK_STORAGE", "memory").strip().lower()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fintrack.db")
SEED_DEMO_DATA = _flag("SEED_DEMO_DATA", "true")

ALERT_CHECK_ENABLED = _flag("ALERT_CHECK_ENABLED", "true")
ALERT_CHECK_INTERVAL_MINUTES = int(os.getenv("ALERT_CHECK_INTERVAL_MINUTES", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
