"""Diagnostic entry points (one call = one independent diagnostic run)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from doctor.collectors.pod import collect_pod_inputs, sort_events_newest_first
from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.errors import DoctorError
from doctor.core.models import (
    ClusterEvent,
    ClusterHealth,
    DiagnosticIssue,
    EventsReport,
    LogAnalysis,
    NamespaceSummary,
    PodDiagnostics,
    PodInfo,
    PodListEntry,
    PodResourceReport,
    PodSnapshot,
    Severity,
)
from doctor.core.retry import execute, retry_options_from_config
from doctor.diagnostics import classifier, cluster_health, crashloop_diagnostics, log_analyzer
from doctor.diagnostics.resources import analyze_resource_usage, container_resource_specs
from doctor.pipeline.scoring import pod_health_score
from doctor.providers.k8s_provider import K8sProvider, get_k8s_provider

logger = logging.getLogger(__name__)


def build_pod_summary(snapshot: PodSnapshot, issues: List[DiagnosticIssue], health_score: int) -> str:
    ready = sum(1 for cs in snapshot.container_statuses if cs.ready)
    lines = [
        f'Pod "{snapshot.name}" is currently in {snapshot.phase} state.',
        f"Containers: {ready}/{len(snapshot.containers)} ready",
        f"Health: {health_score}/100",
        "",
    ]
    if not issues:
        lines.append("✅ No issues found!")
        return "\n".join(lines)

    lines.append(f"⚠️ {len(issues)} issue(s) detected.")
    critical = sum(1 for i in issues if i.severity == Severity.CRITICAL)
    high = sum(1 for i in issues if i.severity == Severity.HIGH)
    if critical:
        lines.append(f"  - Critical: {critical}")
    if high:
        lines.append(f"  - High: {high}")
    return "\n".join(lines)


def diagnose_pod(
    namespace: str,
    pod_name: str,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> PodDiagnostics:
    """
    Full pod diagnosis: concurrent fetch -> classify -> score -> summary.

    Raises PodFetchError when the pod cannot be read. Missing events or metrics only
    degrade the result (see PodDiagnostics.errors).
    """
    cfg = config or load_doctor_config()
    logger.info("Starting diagnostics for pod %s/%s", namespace, pod_name)

    inputs = collect_pod_inputs(namespace, pod_name, provider=provider, config=cfg)
    snapshot = inputs.snapshot

    resources = analyze_resource_usage(snapshot, inputs.metrics.value if inputs.metrics.ok else None)
    issues = classifier.classify_pod(snapshot, inputs.events, resources)
    score = pod_health_score(snapshot.phase, issues)

    return PodDiagnostics(
        pod_info=PodInfo(
            name=snapshot.name,
            namespace=snapshot.namespace,
            phase=snapshot.phase,
            start_time=snapshot.start_time,
            node_name=snapshot.node_name,
            host_ip=snapshot.host_ip,
            pod_ip=snapshot.pod_ip,
        ),
        containers=list(snapshot.container_statuses),
        issues=issues,
        resources=resources,
        events=inputs.events,
        summary=build_pod_summary(snapshot, issues, score),
        health_score=score,
        errors=inputs.errors,
    )


def diagnose_crash_loop(
    namespace: str,
    pod_name: str,
    container: Optional[str] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> List[DiagnosticIssue]:
    return crashloop_diagnostics.diagnose_crash_loop(
        namespace, pod_name, container, provider=provider, config=config
    )


def analyze_logs(
    namespace: str,
    pod_name: str,
    container: Optional[str] = None,
    tail_lines: Optional[int] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> LogAnalysis:
    return log_analyzer.analyze_logs(
        namespace, pod_name, container, tail_lines, provider=provider, config=config
    )


def diagnose_cluster_health(
    namespace: Optional[str] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> ClusterHealth:
    return cluster_health.diagnose_cluster_health(namespace, provider=provider, config=config)


def _metrics_by_pod(k8s: K8sProvider, namespace: str, cfg: DoctorConfig) -> Dict[str, Dict[str, Any]]:
    """Best-effort namespace metrics; empty when metrics-server is absent or disabled."""
    if not cfg.metrics_enabled:
        return {}
    try:
        items = execute(
            lambda: k8s.list_pod_metrics(namespace),
            retry_options_from_config(cfg, max_attempts=2),
            description=f"list pod metrics {namespace}",
        )
    except Exception as e:
        logger.warning("Metrics server not available for %s: %s", namespace, e)
        return {}
    return {str(m.get("name")): m for m in items or [] if m.get("name")}


def check_resources(
    namespace: str,
    pod_name: Optional[str] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> List[PodResourceReport]:
    """Declared requests/limits vs. live usage, for one pod or every pod in a namespace."""
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    opts = retry_options_from_config(cfg)

    try:
        if pod_name:
            raw_pods = [execute(lambda: k8s.get_pod_info(pod_name, namespace), opts, description="read pod")]
        else:
            raw_pods = execute(lambda: k8s.list_pods(namespace), opts, description=f"list pods {namespace}")
    except Exception as e:
        raise DoctorError(f"Resource check failed: {e}") from e

    metrics = _metrics_by_pod(k8s, namespace, cfg)
    reports: List[PodResourceReport] = []
    for raw in raw_pods:
        snapshot = PodSnapshot.from_pod_info(raw)
        pod_metrics = metrics.get(snapshot.name)
        reports.append(
            PodResourceReport(
                pod=snapshot.name,
                namespace=snapshot.namespace or namespace,
                containers=container_resource_specs(snapshot),
                usage=analyze_resource_usage(snapshot, pod_metrics),
                metrics_available=pod_metrics is not None,
            )
        )
    return reports


def check_events(
    namespace: str,
    resource_name: Optional[str] = None,
    show_normal: bool = False,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> EventsReport:
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()

    try:
        raw = execute(
            lambda: k8s.get_events(namespace=namespace, resource_name=resource_name),
            retry_options_from_config(cfg),
            description=f"list events {namespace}",
        )
    except Exception as e:
        raise DoctorError(f"Event query failed: {e}") from e

    events = sort_events_newest_first([ClusterEvent.from_k8s(e) for e in raw or []])
    return EventsReport(
        namespace=namespace,
        resource_name=resource_name,
        warnings=[e for e in events if e.is_warning],
        normals=[e for e in events if e.type == "Normal"],
        show_normal=show_normal,
    )


def list_namespaces(
    *, provider: Optional[K8sProvider] = None, config: Optional[DoctorConfig] = None
) -> List[NamespaceSummary]:
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    try:
        raw = execute(k8s.list_namespaces, retry_options_from_config(cfg), description="list namespaces")
    except Exception as e:
        raise DoctorError(f"Namespace query failed: {e}") from e
    return [NamespaceSummary(name=str(ns.get("name")), phase=ns.get("phase") or "Unknown") for ns in raw or []]


def pod_list_entry(snapshot: PodSnapshot) -> PodListEntry:
    return PodListEntry(
        name=snapshot.name,
        namespace=snapshot.namespace,
        phase=snapshot.phase,
        ready_containers=sum(1 for cs in snapshot.container_statuses if cs.ready),
        total_containers=len(snapshot.container_statuses),
        restarts=sum(cs.restart_count for cs in snapshot.container_statuses),
        node_name=snapshot.node_name,
    )


def list_pods(
    namespace: str,
    show_all: bool = False,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> List[PodListEntry]:
    """Pods in a namespace; by default only those not Running or with restarts."""
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    try:
        raw = execute(lambda: k8s.list_pods(namespace), retry_options_from_config(cfg), description="list pods")
    except Exception as e:
        raise DoctorError(f"Pod list query failed: {e}") from e

    entries = [pod_list_entry(PodSnapshot.from_pod_info(p)) for p in raw or []]
    if show_all:
        return entries
    return [e for e in entries if e.has_problem]
