"""Runtime defaults resolved from environment variables.

Values are read once at import time. The hosting application can still pass
explicit values to the service constructors, which take precedence.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_number(name: str, default: float, cast=float):
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return cast(default)
    try:
        value = cast(raw_value)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using default %s", name, raw_value, default)
        return cast(default)
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using default %s", name, raw_value, default)
        return cast(default)
    return value


MOBILE_PHLEBOTOMY = "Mobile Phlebotomy"

DEFAULT_LOOKAHEAD_DAYS = _env_number("CADENCE_LOOKAHEAD_DAYS", 7, int)
DEFAULT_ALERT_TIMEOUT_SECONDS = _env_number("CADENCE_ALERT_TIMEOUT_SECONDS", 30.0)
DEFAULT_DATABASE_URL = os.getenv("CADENCE_DATABASE_URL", "sqlite:///cadence.db")
DEFAULT_TASK_LOG_PATH = Path(
    os.getenv("CADENCE_TASK_LOG", str(Path(__file__).resolve().parents[1] / "task_log.json"))
)

__all__ = [
    "DEFAULT_ALERT_TIMEOUT_SECONDS",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_LOOKAHEAD_DAYS",
    "DEFAULT_TASK_LOG_PATH",
    "MOBILE_PHLEBOTOMY",
]
