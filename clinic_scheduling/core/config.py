import os
from datetime import tzinfo
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduling.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
BOOKING_LOCK_TIMEOUT_SECONDS = float(os.getenv("BOOKING_LOCK_TIMEOUT_SECONDS", "5"))

# IANA zone name; empty means naive datetimes are already clinic-local.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "")


def get_clinic_timezone() -> tzinfo | None:
    if not CLINIC_TIMEZONE:
        return None
    return ZoneInfo(CLINIC_TIMEZONE)


def validate_runtime_config() -> None:
    if SLOT_DURATION_MINUTES <= 0:
        raise RuntimeError("SLOT_DURATION_MINUTES must be a positive number of minutes.")
    if BOOKING_LOCK_TIMEOUT_SECONDS < 0:
        raise RuntimeError("BOOKING_LOCK_TIMEOUT_SECONDS cannot be negative.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
    get_clinic_timezone()
