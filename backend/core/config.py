import os
from datetime import time



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    return time.fromisoformat(value.strip())

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Slot length is part of the data model, not a tunable.
SLOT_DURATION_MINUTES = 30
SLOT_QUERY_MAX_DAYS = int(os.getenv("SLOT_QUERY_MAX_DAYS", "7"))
MAX_BOOKING_NOTES_LENGTH = 500

# Daily template used by the seeding script only.
SLOT_DAY_START = _get_time(os.getenv("SLOT_DAY_START"), time(9, 0))
SLOTS_PER_DAY = int(os.getenv("SLOTS_PER_DAY", "16"))
SLOT_HORIZON_DAYS = int(os.getenv("SLOT_HORIZON_DAYS", "7"))
SLOT_RETENTION_DAYS = int(os.getenv("SLOT_RETENTION_DAYS", "7"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOTS_PER_DAY < 1:
        raise RuntimeError("SLOTS_PER_DAY must be at least 1.")
