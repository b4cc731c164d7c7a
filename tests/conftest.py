"""
Pytest config.

Local imports like `import doctor` rely on the repo root being on sys.path. When invoking a
global `pytest` entrypoint that doesn't happen reliably during collection, so we pin it here
(and the tests directory itself, for the shared `fakes` helpers).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_on_syspath(path: Path) -> None:
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_on_syspath(Path(__file__).resolve().parents[1])
_ensure_on_syspath(Path(__file__).resolve().parent)


@pytest.fixture(autouse=True)
def _no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retries in unit tests must not actually wait."""
    monkeypatch.setattr("doctor.core.retry.time.sleep", lambda _s: None)


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "DOCTOR_RETRY_MAX_ATTEMPTS",
        "DOCTOR_RETRY_INITIAL_DELAY_SECONDS",
        "DOCTOR_METRICS_ENABLED",
        "DOCTOR_LOG_TAIL_LINES",
        "DOCTOR_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    from doctor.config import load_doctor_config

    load_doctor_config.cache_clear()
