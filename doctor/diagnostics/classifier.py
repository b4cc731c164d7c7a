"""Rule-based issue classification for a single pod.

Five independent detectors run over the same snapshot and their findings are concatenated.
Order does not imply priority; sorting by severity is a presentation step.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import List, Sequence

from doctor.core.models import (
    ClusterEvent,
    DiagnosticIssue,
    IssueType,
    PodSnapshot,
    ResourceRef,
    ResourceUsage,
    Severity,
    TerminatedState,
    WaitingState,
)
from doctor.core.quantity import MIB

# Handled by the image-pull detector; skipped by the container-state detector.
IMAGE_PULL_WAITING_REASONS = frozenset({"ErrImagePull", "ImagePullBackOff"})

WAITING_SOLUTIONS = MappingProxyType(
    {
        "CreateContainerConfigError": "Check container configuration (ConfigMap, Secret, etc.)",
        "InvalidImageName": "Verify image name format",
        "CreateContainerError": "Check container creation settings",
    }
)
DEFAULT_WAITING_SOLUTION = "Check logs and events to identify the cause"

TERMINATED_SOLUTIONS = MappingProxyType(
    {
        1: "Check application logs to fix errors",
        137: "Increase memory limit (OOM killed)",
        143: "Verify graceful shutdown implementation",
        126: "Check executable permissions (chmod +x)",
        127: "Verify CMD/ENTRYPOINT path",
    }
)

DEFAULT_CPU_LIMIT_MILLICORES = 1000.0
DEFAULT_MEMORY_LIMIT_BYTES = 512.0 * MIB


def waiting_solution(reason: str) -> str:
    return WAITING_SOLUTIONS.get(reason, DEFAULT_WAITING_SOLUTION)


def terminated_solution(exit_code: int) -> str:
    return TERMINATED_SOLUTIONS.get(exit_code, f"Check logs for exit code {exit_code}")


def _pod_ref(snapshot: PodSnapshot) -> ResourceRef:
    return ResourceRef(kind="Pod", name=snapshot.name, namespace=snapshot.namespace)


def detect_container_issues(snapshot: PodSnapshot) -> List[DiagnosticIssue]:
    issues: List[DiagnosticIssue] = []
    ref = _pod_ref(snapshot)

    for container in snapshot.container_statuses:
        state = container.state

        if isinstance(state, WaitingState):
            if state.reason in IMAGE_PULL_WAITING_REASONS:
                continue
            reason = state.reason or "Unknown"
            issues.append(
                DiagnosticIssue(
                    type=IssueType.CONTAINER_WAITING,
                    title=f"Container Waiting: {reason}",
                    severity=Severity.HIGH,
                    message=f'Container "{container.name}" is in {reason} state',
                    root_cause=state.message or "Unknown reason",
                    solution=waiting_solution(state.reason),
                    resource=ref,
                )
            )

        elif isinstance(state, TerminatedState) and state.exit_code != 0:
            issues.append(
                DiagnosticIssue(
                    type=IssueType.CONTAINER_TERMINATED,
                    title="Container Terminated",
                    severity=Severity.HIGH,
                    message=f'Container "{container.name}" terminated with exit code {state.exit_code}',
                    root_cause=state.reason or "Unknown reason",
                    solution=terminated_solution(state.exit_code),
                    resource=ref,
                )
            )

    return issues


_REGISTRY_SECRET_SOLUTION = (
    "```bash\n"
    "kubectl create secret docker-registry regcred \\\n"
    "  --docker-server=<registry> \\\n"
    "  --docker-username=<username> \\\n"
    "  --docker-password=<password>\n"
    "\n"
    "# Add to Pod spec:\n"
    "spec:\n"
    "  imagePullSecrets:\n"
    "  - name: regcred\n"
    "```"
)


def _classify_pull_failure(message: str, snapshot: PodSnapshot) -> tuple:
    msg = message.lower()
    if "not found" in msg or "manifest unknown" in msg:
        return (
            "Image or tag does not exist",
            "1. Verify image name and tag\n2. Test locally with docker pull <image>",
        )
    if "unauthorized" in msg or "authentication" in msg:
        return "Image registry authentication failed", _REGISTRY_SECRET_SOLUTION
    if "timeout" in msg:
        return (
            "Network timeout - Cannot access registry",
            "1. Check cluster network connectivity\n2. Verify firewall/proxy settings\n3. Verify registry URL is correct",
        )
    return (
        "Cannot download image",
        f"kubectl describe pod {snapshot.name} -n {snapshot.namespace}  # inspect the pull error in Events",
    )


def detect_image_pull_issues(snapshot: PodSnapshot, events: Sequence[ClusterEvent]) -> List[DiagnosticIssue]:
    """
    Report one critical issue from the most recent failed pull event.

    Events are expected most-recent-first (provider ordering).
    """
    pull_events = [e for e in events if e.reason == "Failed" and "pull" in e.message.lower()]
    if not pull_events:
        return []

    event = pull_events[0]
    root_cause, solution = _classify_pull_failure(event.message, snapshot)
    return [
        DiagnosticIssue(
            type=IssueType.IMAGE_PULL_BACKOFF,
            title="Image Pull Failure",
            severity=Severity.CRITICAL,
            message="Cannot pull container image",
            root_cause=root_cause,
            solution=solution,
            resource=_pod_ref(snapshot),
            related_events=[event],
        )
    ]


def detect_resource_issues(snapshot: PodSnapshot, resources: ResourceUsage) -> List[DiagnosticIssue]:
    issues: List[DiagnosticIssue] = []
    ref = _pod_ref(snapshot)
    cpu = resources.cpu
    mem = resources.memory

    if cpu.is_throttled and cpu.usage_percent is not None:
        suggested = math.ceil((cpu.limit or DEFAULT_CPU_LIMIT_MILLICORES) * 1.5)
        issues.append(
            DiagnosticIssue(
                type=IssueType.HIGH_CPU_USAGE,
                title="High CPU Usage",
                severity=Severity.HIGH,
                message=f"CPU usage is high ({cpu.usage_percent:.1f}%)",
                root_cause="CPU limit may be too low for current workload",
                solution=(
                    "Increase CPU limit or optimize application:\n"
                    f'```yaml\nresources:\n  limits:\n    cpu: "{suggested}m"  # Increased by 50%\n```'
                ),
                resource=ref,
            )
        )

    if mem.is_oom_risk and mem.usage_percent is not None:
        suggested_mi = math.ceil((mem.limit or DEFAULT_MEMORY_LIMIT_BYTES) / MIB * 1.5)
        issues.append(
            DiagnosticIssue(
                type=IssueType.OOM_RISK,
                title="OOM Risk",
                severity=Severity.CRITICAL,
                message=f"Memory usage is critically high ({mem.usage_percent:.1f}%)",
                root_cause="Pod is at risk of OOM kill - memory usage exceeds 90% of limit",
                solution=(
                    "Increase memory limit immediately:\n"
                    f'```yaml\nresources:\n  limits:\n    memory: "{suggested_mi}Mi"  # Increased by 50%\n```'
                ),
                resource=ref,
            )
        )

    if not cpu.limit:
        issues.append(
            DiagnosticIssue(
                type=IssueType.MISSING_CPU_LIMIT,
                title="Missing CPU Limit",
                severity=Severity.MEDIUM,
                message="CPU limit is not set",
                root_cause="CPU usage can increase without limit",
                solution='```yaml\nresources:\n  limits:\n    cpu: "1000m"\n  requests:\n    cpu: "100m"\n```',
                resource=ref,
            )
        )

    # Unbounded memory can take the whole node down, hence the higher severity.
    if not mem.limit:
        issues.append(
            DiagnosticIssue(
                type=IssueType.MISSING_MEMORY_LIMIT,
                title="Missing Memory Limit",
                severity=Severity.HIGH,
                message="Memory limit is not set",
                root_cause="Memory leak can affect entire node",
                solution='```yaml\nresources:\n  limits:\n    memory: "512Mi"\n  requests:\n    memory: "128Mi"\n```',
                resource=ref,
            )
        )

    return issues


def detect_volume_issues(snapshot: PodSnapshot, events: Sequence[ClusterEvent]) -> List[DiagnosticIssue]:
    issues: List[DiagnosticIssue] = []
    for event in events:
        msg = event.message.lower()
        if not event.is_warning or not ("volume" in msg or "mount" in msg):
            continue
        issues.append(
            DiagnosticIssue(
                type=IssueType.VOLUME_MOUNT_ISSUE,
                title="Volume Mount Issue",
                severity=Severity.HIGH,
                message="Volume mount failed",
                root_cause=event.message,
                solution=(
                    "1. Verify PVC is in Bound state\n"
                    "2. Verify storage class is correct\n"
                    "3. Check status with kubectl describe pvc <pvc-name>"
                ),
                resource=_pod_ref(snapshot),
                related_events=[event],
            )
        )
    return issues


def detect_network_issues(snapshot: PodSnapshot, events: Sequence[ClusterEvent]) -> List[DiagnosticIssue]:
    issues: List[DiagnosticIssue] = []
    for event in events:
        if not event.is_warning or not ("network" in event.message.lower() or "CNI" in event.message):
            continue
        issues.append(
            DiagnosticIssue(
                type=IssueType.NETWORK_CONFIGURATION_ISSUE,
                title="Network Configuration Issue",
                severity=Severity.HIGH,
                message="Network configuration problem",
                root_cause=event.message,
                solution="1. Check CNI plugin status\n2. Check network policy\n3. Verify Pod CIDR range",
                resource=_pod_ref(snapshot),
                related_events=[event],
            )
        )
    return issues


def classify_pod(
    snapshot: PodSnapshot, events: Sequence[ClusterEvent], resources: ResourceUsage
) -> List[DiagnosticIssue]:
    """Run every detector and concatenate the findings."""
    issues: List[DiagnosticIssue] = []
    issues.extend(detect_container_issues(snapshot))
    issues.extend(detect_image_pull_issues(snapshot, events))
    issues.extend(detect_resource_issues(snapshot, resources))
    issues.extend(detect_volume_issues(snapshot, events))
    issues.extend(detect_network_issues(snapshot, events))
    return issues
