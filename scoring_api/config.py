# scoring_api/config.py
from __future__ import annotations

import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()


def _get_env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


# -------------------------
# Match store
# -------------------------
DATABASE_URL: str = _get_env("DATABASE_URL", "sqlite:///./scoring.db")

# Used when a match is created without an explicit overs limit (T20 by default)
DEFAULT_TOTAL_OVERS: int = _get_env_int("DEFAULT_TOTAL_OVERS", 20)


# -------------------------
# Logging
# -------------------------
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO").upper()


# -------------------------
# Push channel
# -------------------------
# Undelivered events a viewer may fall behind by before it is dropped
WS_SEND_QUEUE_SIZE: int = _get_env_int("WS_SEND_QUEUE_SIZE", 100)


# -------------------------
# Roster service (OPTIONAL, only feeds squad lists to the scoring UI)
# -------------------------
ROSTER_ENABLED: bool = _get_env("ROSTER_ENABLED", "0") == "1"
ROSTER_API_BASE_URL: str = _get_env("ROSTER_API_BASE_URL", "http://localhost:5000/api")
ROSTER_CACHE_TTL_SECONDS: int = _get_env_int("ROSTER_CACHE_TTL_SECONDS", 300)
ROSTER_TIMEOUT_SECONDS: int = _get_env_int("ROSTER_TIMEOUT_SECONDS", 10)


def validate_config() -> None:
    if not DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set")

    if DEFAULT_TOTAL_OVERS <= 0:
        raise RuntimeError("DEFAULT_TOTAL_OVERS must be positive")

    if LOG_LEVEL not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"LOG_LEVEL has an unknown value: {LOG_LEVEL}")

    if WS_SEND_QUEUE_SIZE <= 0:
        raise RuntimeError("WS_SEND_QUEUE_SIZE must be positive")

    # Roster URL only matters when the lookup is switched on
    if ROSTER_ENABLED and not ROSTER_API_BASE_URL.startswith("http"):
        raise RuntimeError("ROSTER_API_BASE_URL must start with http/https")

    if ROSTER_CACHE_TTL_SECONDS <= 0:
        raise RuntimeError("ROSTER_CACHE_TTL_SECONDS must be positive")

    if ROSTER_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("ROSTER_TIMEOUT_SECONDS must be positive")
