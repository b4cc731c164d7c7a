from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(float(raw))
    except ValueError:
        return default
    return max(minimum, value)


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class DoctorConfig:
    # Retry budget for cluster reads (seconds)
    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    retry_backoff_multiplier: float = 2.0

    # Log tails
    log_tail_lines: int = 500
    previous_log_tail_lines: int = 50

    # List-query cache and fetch fan-out
    cache_ttl_seconds: float = 30.0
    fetch_workers: int = 4

    metrics_enabled: bool = True
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def load_doctor_config() -> DoctorConfig:
    """
    Load configuration from environment variables.

    Unparseable values fall back to defaults rather than failing startup.
    """
    log_level = (os.getenv("DOCTOR_LOG_LEVEL") or "").strip().upper() or "INFO"

    return DoctorConfig(
        retry_max_attempts=_env_int("DOCTOR_RETRY_MAX_ATTEMPTS", 3, minimum=1),
        retry_initial_delay_seconds=_env_float("DOCTOR_RETRY_INITIAL_DELAY_SECONDS", 1.0),
        retry_max_delay_seconds=_env_float("DOCTOR_RETRY_MAX_DELAY_SECONDS", 10.0),
        retry_backoff_multiplier=_env_float("DOCTOR_RETRY_BACKOFF_MULTIPLIER", 2.0, minimum=1.0),
        log_tail_lines=_env_int("DOCTOR_LOG_TAIL_LINES", 500, minimum=1),
        previous_log_tail_lines=_env_int("DOCTOR_PREVIOUS_LOG_TAIL_LINES", 50, minimum=1),
        cache_ttl_seconds=_env_float("DOCTOR_CACHE_TTL_SECONDS", 30.0),
        fetch_workers=_env_int("DOCTOR_FETCH_WORKERS", 4, minimum=1),
        metrics_enabled=_env_bool("DOCTOR_METRICS_ENABLED", True),
        log_level=log_level,
    )
