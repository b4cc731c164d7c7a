"""Resource usage aggregation: container spec requests/limits plus metrics-server usage."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from doctor.core.models import ContainerResourceSpec, CpuUsage, MemoryUsage, PodSnapshot, ResourceUsage
from doctor.core.quantity import parse_cpu, parse_memory


def _sum_declared(values: List[Optional[float]]) -> Optional[float]:
    """Sum declared quantities; None when nothing (or only zero) is declared."""
    total = sum(v for v in values if v is not None)
    return total if total > 0 else None


def sum_metrics_usage(metrics: Optional[Dict[str, Any]]) -> Tuple[Optional[float], Optional[float]]:
    """Return (cpu millicores, memory bytes) summed over a pod's containers, None when unknown."""
    if not metrics:
        return None, None
    cpu_total: Optional[float] = None
    mem_total: Optional[float] = None
    for c in metrics.get("containers") or []:
        usage = c.get("usage") or {}
        cpu = parse_cpu(usage.get("cpu"))
        if cpu is not None:
            cpu_total = (cpu_total or 0.0) + cpu
        mem = parse_memory(usage.get("memory"))
        if mem is not None:
            mem_total = (mem_total or 0.0) + mem
    return cpu_total, mem_total


def analyze_resource_usage(snapshot: PodSnapshot, metrics: Optional[Dict[str, Any]] = None) -> ResourceUsage:
    """
    Combine the pod spec's declared resources with live usage (when metrics are available).

    Without metrics, `current` stays None and so does `usage_percent`: no percentage is
    ever fabricated.
    """
    containers = snapshot.containers
    cpu_current, mem_current = sum_metrics_usage(metrics)

    return ResourceUsage(
        cpu=CpuUsage(
            current=cpu_current,
            requested=_sum_declared([parse_cpu(c.requests.get("cpu")) for c in containers]),
            limit=_sum_declared([parse_cpu(c.limits.get("cpu")) for c in containers]),
        ),
        memory=MemoryUsage(
            current=mem_current,
            requested=_sum_declared([parse_memory(c.requests.get("memory")) for c in containers]),
            limit=_sum_declared([parse_memory(c.limits.get("memory")) for c in containers]),
        ),
    )


def container_resource_specs(snapshot: PodSnapshot) -> List[ContainerResourceSpec]:
    return [
        ContainerResourceSpec(
            container=c.name,
            cpu_request=c.requests.get("cpu"),
            cpu_limit=c.limits.get("cpu"),
            memory_request=c.requests.get("memory"),
            memory_limit=c.limits.get("memory"),
        )
        for c in snapshot.containers
    ]
