"""Deterministic health scoring (findings -> 0..100).

This module is intentionally explainable:
- start from 100
- subtract fixed deductions for phase/readiness and for each issue by severity
- clamp 0..100
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Optional

from doctor.core.models import DiagnosticIssue, Severity

POD_PHASE_DEDUCTIONS = MappingProxyType({"Failed": 100, "Pending": 30, "Unknown": 50})

POD_ISSUE_DEDUCTIONS = MappingProxyType(
    {
        Severity.CRITICAL: 30,
        Severity.HIGH: 20,
        Severity.MEDIUM: 10,
        Severity.LOW: 5,
    }
)

CLUSTER_ISSUE_DEDUCTIONS = MappingProxyType(
    {
        Severity.CRITICAL: 10,
        Severity.HIGH: 5,
        Severity.MEDIUM: 2,
    }
)

NODE_READINESS_WEIGHT = 0.5
POD_RUNNING_WEIGHT = 0.3
CRASH_LOOP_DEDUCTION = 5


def _clamp_0_100(x: float) -> float:
    return max(0.0, min(100.0, x))


def pod_health_score(phase: Optional[str], issues: Iterable[DiagnosticIssue]) -> int:
    score = 100
    score -= POD_PHASE_DEDUCTIONS.get(phase or "Unknown", 0)
    for issue in issues:
        score -= POD_ISSUE_DEDUCTIONS.get(issue.severity, 0)
    return int(_clamp_0_100(score))


def _percent(part: int, whole: int) -> float:
    # An empty population is treated as fully healthy.
    if whole <= 0:
        return 100.0
    return part / whole * 100.0


def cluster_health_score(
    total_nodes: int,
    ready_nodes: int,
    total_pods: int,
    running_pods: int,
    crash_looping: int,
    issues: Iterable[DiagnosticIssue],
) -> float:
    score = 100.0
    score -= (100.0 - _percent(ready_nodes, total_nodes)) * NODE_READINESS_WEIGHT
    score -= (100.0 - _percent(running_pods, total_pods)) * POD_RUNNING_WEIGHT
    score -= crash_looping * CRASH_LOOP_DEDUCTION
    for issue in issues:
        score -= CLUSTER_ISSUE_DEDUCTIONS.get(issue.severity, 0)
    return _clamp_0_100(score)
