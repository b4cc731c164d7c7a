"""Diagnostic rules (deterministic, read-only).

- classifier: pod/container/event state -> typed DiagnosticIssues
- log_analyzer: known failure signatures and repeated error clusters in log text
- crashloop_diagnostics: exit-code based root cause for restarting containers
- cluster_health: node/pod aggregation into a cluster score
"""

from .classifier import classify_pod
from .cluster_health import aggregate_cluster_health, diagnose_cluster_health
from .crashloop_diagnostics import diagnose_crash_loop, diagnose_exit_code
from .log_analyzer import analyze_log_text, analyze_logs
from .resources import analyze_resource_usage

__all__ = [
    "aggregate_cluster_health",
    "analyze_log_text",
    "analyze_logs",
    "analyze_resource_usage",
    "classify_pod",
    "diagnose_cluster_health",
    "diagnose_crash_loop",
    "diagnose_exit_code",
]
