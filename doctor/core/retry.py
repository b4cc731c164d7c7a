"""Bounded retry with exponential backoff for read-only cluster calls.

Every wrapped operation must be safe to re-invoke (idempotent reads only). Retries are
logged; the operation's own side effects are never altered.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, TypeVar

from doctor.config import DoctorConfig, load_doctor_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_CODES = frozenset({"ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND"})


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def default_should_retry(error: BaseException) -> bool:
    """
    Retry transport failures and 5xx responses; never retry 4xx.

    4xx responses are deterministic and will not succeed on replay. Anything we cannot
    classify is retried.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() in _RETRYABLE_CODES:
        return True
    if isinstance(error, (ConnectionRefusedError, TimeoutError, socket.gaierror)):
        return True

    status = _status_of(error)
    if status is not None:
        if status >= 500:
            return True
        if 400 <= status < 500:
            return False

    return True


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    should_retry: Callable[[BaseException], bool] = default_should_retry
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None
    """Called as on_retry(attempt, error, delay) before sleeping."""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


@dataclass
class RetryStats:
    attempts: int = 0
    retries: int = 0
    errors: List[str] = field(default_factory=list)


def retry_options_from_config(config: Optional[DoctorConfig] = None, **overrides: Any) -> RetryOptions:
    cfg = config or load_doctor_config()
    base = RetryOptions(
        max_attempts=cfg.retry_max_attempts,
        initial_delay=cfg.retry_initial_delay_seconds,
        max_delay=cfg.retry_max_delay_seconds,
        backoff_multiplier=cfg.retry_backoff_multiplier,
    )
    return replace(base, **overrides) if overrides else base


def execute(
    operation: Callable[[], T],
    options: Optional[RetryOptions] = None,
    *,
    stats: Optional[RetryStats] = None,
    sleep: Optional[Callable[[float], None]] = None,
    description: str = "operation",
) -> T:
    """
    Run `operation`, retrying retryable failures with exponential backoff.

    Non-retryable errors and the final attempt's error are re-raised unchanged.
    """
    opts = options or RetryOptions()
    st = stats if stats is not None else RetryStats()
    delay = opts.initial_delay

    for attempt in range(1, opts.max_attempts + 1):
        st.attempts = attempt
        try:
            return operation()
        except Exception as e:
            st.errors.append(str(e))

            if attempt == opts.max_attempts:
                logger.warning("%s: all %d attempts failed: %s", description, opts.max_attempts, e)
                raise

            if not opts.should_retry(e):
                logger.warning("%s: non-retryable error on attempt %d: %s", description, attempt, e)
                raise

            wait = min(delay, opts.max_delay)
            logger.warning(
                "%s: attempt %d/%d failed: %s. Retrying in %.2fs",
                description,
                attempt,
                opts.max_attempts,
                e,
                wait,
            )
            st.retries += 1
            if opts.on_retry is not None:
                opts.on_retry(attempt, e, wait)
            (sleep or time.sleep)(wait)
            delay = min(delay * opts.backoff_multiplier, opts.max_delay)

    # Unreachable: the loop either returns or raises.
    raise RuntimeError("retry loop exited without result")
