"""
Cluster-wide health aggregation.

Counts node readiness and pod phases, raises a bounded sample of node/pod issues, and folds
everything into a cluster score with recommendations.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.errors import ClusterHealthError
from doctor.core.models import (
    ClusterHealth,
    ContainerStatus,
    DiagnosticIssue,
    IssueType,
    NodeHealth,
    PodHealth,
    PodSnapshot,
    ResourceRef,
    Severity,
)
from doctor.core.retry import execute, retry_options_from_config
from doctor.diagnostics.crashloop_diagnostics import diagnose_exit_code
from doctor.pipeline.scoring import cluster_health_score
from doctor.providers.k8s_provider import K8sProvider, get_k8s_provider

logger = logging.getLogger(__name__)

CLUSTER_CRASH_LOOP_RESTART_THRESHOLD = 5
MAX_SAMPLE_ISSUES = 5
MIN_HA_NODES = 3
PENDING_RECOMMENDATION_THRESHOLD = 5


def node_is_ready(node: Dict[str, Any]) -> bool:
    return any(c.get("type") == "Ready" and c.get("status") == "True" for c in (node.get("conditions") or []))


def _container_crash_looping(status: ContainerStatus) -> bool:
    return (
        status.waiting_reason == "CrashLoopBackOff" or status.restart_count > CLUSTER_CRASH_LOOP_RESTART_THRESHOLD
    )


def pod_is_crash_looping(pod: PodSnapshot) -> bool:
    return any(_container_crash_looping(cs) for cs in pod.container_statuses)


def _node_not_ready_issue(name: str) -> DiagnosticIssue:
    return DiagnosticIssue(
        type=IssueType.NODE_NOT_READY,
        title="Node Not Ready",
        severity=Severity.CRITICAL,
        message=f'Node "{name}" is not in Ready state',
        root_cause="Node has encountered a problem",
        solution=f"Check detailed cause with: kubectl describe node {name}",
        resource=ResourceRef(kind="Node", name=name),
    )


def _pending_issue(pod: PodSnapshot) -> DiagnosticIssue:
    return DiagnosticIssue(
        type=IssueType.POD_PENDING,
        title="Pod Pending",
        severity=Severity.HIGH,
        message=f'Pod "{pod.name}" is in Pending state',
        root_cause="Cannot be scheduled or image cannot be pulled",
        solution=f"kubectl describe pod {pod.name} -n {pod.namespace}",
        resource=ResourceRef(kind="Pod", name=pod.name, namespace=pod.namespace),
    )


def _crash_loop_issue(pod: PodSnapshot) -> DiagnosticIssue:
    root_cause = "Container is repeatedly failing"
    for cs in pod.container_statuses:
        if _container_crash_looping(cs) and cs.last_state is not None:
            root_cause = diagnose_exit_code(cs.last_state.exit_code).root_cause
            break
    return DiagnosticIssue(
        type=IssueType.CRASH_LOOP_BACKOFF,
        title="CrashLoopBackOff",
        severity=Severity.CRITICAL,
        message=f'Pod "{pod.name}" is in CrashLoop state',
        root_cause=root_cause,
        solution=f"kubectl logs {pod.name} -n {pod.namespace} --previous",
        resource=ResourceRef(kind="Pod", name=pod.name, namespace=pod.namespace),
    )


def build_cluster_recommendations(issues: List[DiagnosticIssue], pod_health: PodHealth, total_nodes: int) -> List[str]:
    recommendations: List[str] = []

    critical = [i for i in issues if i.severity == Severity.CRITICAL]
    if critical:
        recommendations.append(f"🔴 Resolve {len(critical)} Critical issue(s) as top priority")
    if pod_health.crash_looping > 0:
        recommendations.append(f"⚠️ {pod_health.crash_looping} pod(s) in CrashLoop state. Check logs immediately")
    if pod_health.pending > PENDING_RECOMMENDATION_THRESHOLD:
        recommendations.append(f"⚠️ {pod_health.pending} pod(s) in Pending state. Check for resource insufficiency")
    if total_nodes < MIN_HA_NODES:
        recommendations.append("💡 For high availability, running at least 3 nodes is recommended")

    if not recommendations:
        recommendations.append("✅ Cluster is healthy!")
    return recommendations


def build_cluster_summary(node_health: NodeHealth, pod_health: PodHealth, score: float) -> str:
    lines = [
        f"Cluster Health Score: {score:.1f}/100",
        "",
        f"Nodes: {node_health.ready}/{node_health.total} Ready",
        f"Pods: {pod_health.running}/{pod_health.total} Running",
    ]
    if pod_health.crash_looping > 0:
        lines.append(f"⚠️ CrashLoop: {pod_health.crash_looping}")
    if pod_health.pending > 0:
        lines.append(f"⚠️ Pending: {pod_health.pending}")
    if pod_health.failed > 0:
        lines.append(f"⚠️ Failed: {pod_health.failed}")
    return "\n".join(lines)


def aggregate_cluster_health(nodes: List[Dict[str, Any]], pods: List[PodSnapshot]) -> ClusterHealth:
    """Pure aggregation over already-fetched nodes and pods."""
    issues: List[DiagnosticIssue] = []

    ready_nodes = [n for n in nodes if node_is_ready(n)]
    not_ready_nodes = [n for n in nodes if not node_is_ready(n)]
    for node in not_ready_nodes:
        issues.append(_node_not_ready_issue(str(node.get("name") or "unknown")))

    pending = [p for p in pods if p.phase == "Pending"]
    crash_looping = [p for p in pods if pod_is_crash_looping(p)]
    for pod in pending[:MAX_SAMPLE_ISSUES]:
        issues.append(_pending_issue(pod))
    for pod in crash_looping[:MAX_SAMPLE_ISSUES]:
        issues.append(_crash_loop_issue(pod))

    node_health = NodeHealth(
        total=len(nodes),
        ready=len(ready_nodes),
        not_ready=len(not_ready_nodes),
        issues=[i for i in issues if i.resource is not None and i.resource.kind == "Node"],
    )
    pod_health = PodHealth(
        total=len(pods),
        running=sum(1 for p in pods if p.phase == "Running"),
        pending=len(pending),
        failed=sum(1 for p in pods if p.phase == "Failed"),
        crash_looping=len(crash_looping),
        issues=[i for i in issues if i.resource is not None and i.resource.kind == "Pod"],
    )

    score = cluster_health_score(
        node_health.total,
        node_health.ready,
        pod_health.total,
        pod_health.running,
        pod_health.crash_looping,
        issues,
    )

    return ClusterHealth(
        overall_score=score,
        node_health=node_health,
        pod_health=pod_health,
        critical_issues=[i for i in issues if i.severity == Severity.CRITICAL],
        recommendations=build_cluster_recommendations(issues, pod_health, node_health.total),
        summary=build_cluster_summary(node_health, pod_health, score),
    )


def diagnose_cluster_health(
    namespace: Optional[str] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> ClusterHealth:
    """Fetch nodes and pods (retried) and aggregate. Either list failing is fatal."""
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    opts = retry_options_from_config(cfg)

    try:
        nodes = execute(k8s.list_nodes, opts, description="list nodes")
        raw_pods = execute(lambda: k8s.list_pods(namespace), opts, description=f"list pods {namespace or '*'}")
    except Exception as e:
        raise ClusterHealthError(f"Cluster health check failed: {e}") from e

    pods = [PodSnapshot.from_pod_info(p) for p in raw_pods]
    health = aggregate_cluster_health(nodes, pods)
    logger.info(
        "Cluster health: score=%.1f nodes=%d/%d pods=%d/%d",
        health.overall_score,
        health.node_health.ready,
        health.node_health.total,
        health.pod_health.running,
        health.pod_health.total,
    )
    return health
