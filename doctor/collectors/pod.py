"""Concurrent pod-scoped input collection (pod, events, metrics).

The three reads are independent, so they run in parallel on a small thread pool (the
`kubernetes` client is synchronous). Each read fills its own FetchResult; nothing is shared
between workers.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from dateutil.parser import isoparse

from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.errors import PodFetchError
from doctor.core.models import ClusterEvent, PodSnapshot
from doctor.core.retry import execute, retry_options_from_config
from doctor.providers.k8s_provider import K8sProvider, get_k8s_provider

logger = logging.getLogger(__name__)

FetchStatus = Literal["ok", "failed", "not_applicable"]

POD_FETCH_ATTEMPTS = 3
AUX_FETCH_ATTEMPTS = 2
FETCH_INITIAL_DELAY_SECONDS = 0.5

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class FetchResult:
    """Outcome of one best-effort read. `not_applicable` means the read was never attempted."""

    status: FetchStatus
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class PodInputs:
    snapshot: PodSnapshot
    events: List[ClusterEvent] = field(default_factory=list)
    metrics: FetchResult = field(default_factory=lambda: FetchResult(status="not_applicable"))
    errors: List[str] = field(default_factory=list)


def _event_time(e: ClusterEvent) -> datetime:
    raw = e.last_timestamp or e.first_timestamp
    if not raw:
        return _EPOCH
    try:
        dt = isoparse(raw)
    except (TypeError, ValueError):
        return _EPOCH
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def sort_events_newest_first(events: List[ClusterEvent]) -> List[ClusterEvent]:
    return sorted(events, key=_event_time, reverse=True)


def _fetch(operation, *, attempts: int, description: str, config: DoctorConfig) -> FetchResult:
    try:
        value = execute(
            operation,
            retry_options_from_config(config, max_attempts=attempts, initial_delay=FETCH_INITIAL_DELAY_SECONDS),
            description=description,
        )
    except Exception as e:
        return FetchResult(status="failed", error=str(e))
    return FetchResult(status="ok", value=value)


def collect_pod_inputs(
    namespace: str,
    pod_name: str,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> PodInputs:
    """
    Fetch pod, events and metrics concurrently and join.

    Raises PodFetchError when the pod itself cannot be read. Events degrade to [] and metrics
    to spec-only reporting; both failures are logged and recorded in `errors`.
    """
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    where = f"{namespace}/{pod_name}"

    with ThreadPoolExecutor(max_workers=min(3, cfg.fetch_workers)) as pool:
        pod_future = pool.submit(
            _fetch,
            lambda: k8s.get_pod_info(pod_name, namespace),
            attempts=POD_FETCH_ATTEMPTS,
            description=f"read pod {where}",
            config=cfg,
        )
        events_future = pool.submit(
            _fetch,
            lambda: k8s.get_pod_events(pod_name, namespace),
            attempts=AUX_FETCH_ATTEMPTS,
            description=f"list events {where}",
            config=cfg,
        )
        metrics_future = None
        if cfg.metrics_enabled:
            metrics_future = pool.submit(
                _fetch,
                lambda: k8s.get_pod_metrics(pod_name, namespace),
                attempts=AUX_FETCH_ATTEMPTS,
                description=f"read metrics {where}",
                config=cfg,
            )

        pod_result = pod_future.result()
        events_result = events_future.result()
        metrics_result = metrics_future.result() if metrics_future is not None else FetchResult(status="not_applicable")

    if not pod_result.ok:
        logger.error("Failed to get pod info for %s: %s", where, pod_result.error)
        raise PodFetchError(f"Cannot read pod {pod_name}: {pod_result.error}")

    info: Dict[str, Any] = pod_result.value or {}
    snapshot = PodSnapshot.from_pod_info(info)
    if not snapshot.name or not snapshot.namespace:
        snapshot = snapshot.model_copy(
            update={"name": snapshot.name or pod_name, "namespace": snapshot.namespace or namespace}
        )

    errors: List[str] = []
    events: List[ClusterEvent] = []
    if events_result.ok:
        events = sort_events_newest_first([ClusterEvent.from_k8s(e) for e in events_result.value or []])
    else:
        logger.warning("Failed to get events for %s (non-fatal): %s", where, events_result.error)
        errors.append(f"Events unavailable: {events_result.error}")

    if metrics_result.status == "failed":
        logger.warning("Failed to get metrics for %s (non-fatal): %s", where, metrics_result.error)
        errors.append(f"Metrics unavailable: {metrics_result.error}")

    return PodInputs(snapshot=snapshot, events=events, metrics=metrics_result, errors=errors)
