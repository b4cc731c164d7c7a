"""
CrashLoopBackOff root-cause resolution.

The previous container instance's exit code is the strongest signal: it is mapped through a
fixed table to a root cause and a fix. Previous-instance logs are attached as evidence when
they can be read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Optional

from doctor.config import DoctorConfig, load_doctor_config
from doctor.core.errors import CrashLoopDiagnosisError
from doctor.core.models import (
    ContainerStatus,
    DiagnosticIssue,
    IssueType,
    PodSnapshot,
    ResourceRef,
    Severity,
)
from doctor.core.retry import execute, retry_options_from_config
from doctor.providers.k8s_provider import K8sProvider, get_k8s_provider

logger = logging.getLogger(__name__)

CRASH_LOOP_RESTART_THRESHOLD = 3
MAX_RELEVANT_LOG_LINES = 10
CRASH_LOG_KEYWORDS = ("error", "exception", "fatal", "panic")


@dataclass(frozen=True)
class ExitCodeDiagnosis:
    root_cause: str
    solution: str


EXIT_CODE_DIAGNOSES = MappingProxyType(
    {
        0: ExitCodeDiagnosis(
            root_cause="Container exited normally but keeps restarting due to restart policy",
            solution='Change spec.restartPolicy to "Never" or "OnFailure"\n```yaml\nspec:\n  restartPolicy: OnFailure\n```',
        ),
        1: ExitCodeDiagnosis(
            root_cause="Application error caused termination",
            solution="Check logs to fix application errors\n```bash\nkubectl logs {pod} -n {namespace} -c {container} --previous\n```",
        ),
        137: ExitCodeDiagnosis(
            root_cause="OOM (Out Of Memory) - Container was killed due to insufficient memory",
            solution=(
                "Increase memory limit or optimize application memory usage\n"
                '```yaml\nresources:\n  limits:\n    memory: "512Mi"  # Set higher than current\n```'
            ),
        ),
        143: ExitCodeDiagnosis(
            root_cause="Terminated by SIGTERM - Received normal termination signal",
            solution="Graceful shutdown may not be properly implemented. Try increasing terminationGracePeriodSeconds",
        ),
        126: ExitCodeDiagnosis(
            root_cause="Permission denied - Executable file lacks execute permission",
            solution="Grant execute permission with chmod +x in Dockerfile",
        ),
        127: ExitCodeDiagnosis(
            root_cause="Command not found - CMD/ENTRYPOINT command does not exist",
            solution="Verify CMD/ENTRYPOINT path in Dockerfile",
        ),
    }
)

UNKNOWN_DIAGNOSIS = ExitCodeDiagnosis(
    root_cause="Unknown - no previous termination recorded",
    solution="Check logs to identify detailed cause",
)


def diagnose_exit_code(
    exit_code: Optional[int], *, pod: str = "<pod>", namespace: str = "<namespace>", container: str = "<container>"
) -> ExitCodeDiagnosis:
    """Map the last termination exit code to a root cause; None means no termination is known."""
    if exit_code is None:
        return UNKNOWN_DIAGNOSIS
    known = EXIT_CODE_DIAGNOSES.get(exit_code)
    if known is None:
        return ExitCodeDiagnosis(
            root_cause=f"Unknown error (exit code {exit_code})",
            solution="Check logs to identify detailed cause",
        )
    return ExitCodeDiagnosis(
        root_cause=known.root_cause,
        solution=known.solution.format(pod=pod, namespace=namespace, container=container),
    )


def is_crash_looping(status: ContainerStatus) -> bool:
    return status.restart_count > CRASH_LOOP_RESTART_THRESHOLD or status.waiting_reason == "CrashLoopBackOff"


def extract_crash_log_lines(text: Optional[str], limit: int = MAX_RELEVANT_LOG_LINES) -> List[str]:
    out: List[str] = []
    for line in (text or "").splitlines():
        lower = line.lower()
        if any(k in lower for k in CRASH_LOG_KEYWORDS):
            out.append(line.strip())
            if len(out) >= limit:
                break
    return out


def _fetch_previous_logs(
    k8s: K8sProvider, snapshot: PodSnapshot, container: str, cfg: DoctorConfig
) -> Optional[List[str]]:
    """Best-effort: returns None (and logs) when the previous instance's logs cannot be read."""
    try:
        text = execute(
            lambda: k8s.read_pod_log(
                pod_name=snapshot.name,
                namespace=snapshot.namespace,
                container=container,
                previous=True,
                tail_lines=cfg.previous_log_tail_lines,
            ),
            retry_options_from_config(cfg, max_attempts=2),
            description=f"read previous logs {snapshot.namespace}/{snapshot.name}/{container}",
        )
    except Exception as e:
        logger.warning("Failed to retrieve previous logs for container %s: %s", container, e)
        return None
    return extract_crash_log_lines(text)


def crash_loop_issues(
    snapshot: PodSnapshot,
    *,
    container: Optional[str] = None,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> List[DiagnosticIssue]:
    """One critical CrashLoopBackOff issue per qualifying container of an already-fetched pod."""
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    issues: List[DiagnosticIssue] = []

    for status in snapshot.container_statuses:
        if container and status.name != container:
            continue
        if not is_crash_looping(status):
            continue

        exit_code = status.last_state.exit_code if status.last_state is not None else None
        diagnosis = diagnose_exit_code(
            exit_code, pod=snapshot.name, namespace=snapshot.namespace, container=status.name
        )
        logs = _fetch_previous_logs(k8s, snapshot, status.name, cfg)

        issues.append(
            DiagnosticIssue(
                type=IssueType.CRASH_LOOP_BACKOFF,
                title="CrashLoopBackOff",
                severity=Severity.CRITICAL,
                message=f'Container "{status.name}" has restarted {status.restart_count} times',
                root_cause=diagnosis.root_cause,
                solution=diagnosis.solution,
                resource=ResourceRef(kind="Pod", name=snapshot.name, namespace=snapshot.namespace),
                relevant_logs=logs,
            )
        )

    return issues


def diagnose_crash_loop(
    namespace: str,
    pod_name: str,
    container: Optional[str] = None,
    *,
    provider: Optional[K8sProvider] = None,
    config: Optional[DoctorConfig] = None,
) -> List[DiagnosticIssue]:
    """
    Read the pod (retried; fatal on failure) and explain every crash-looping container.

    Returns an empty list when nothing is crash looping.
    """
    cfg = config or load_doctor_config()
    k8s = provider or get_k8s_provider()
    logger.info("Diagnosing crash loop for pod %s/%s", namespace, pod_name)

    try:
        info = execute(
            lambda: k8s.get_pod_info(pod_name, namespace),
            retry_options_from_config(cfg),
            description=f"read pod {namespace}/{pod_name}",
        )
    except Exception as e:
        raise CrashLoopDiagnosisError(f"CrashLoop diagnostics failed: {e}") from e

    snapshot = PodSnapshot.from_pod_info(info)
    if not snapshot.name:
        snapshot = snapshot.model_copy(update={"name": pod_name, "namespace": snapshot.namespace or namespace})

    return crash_loop_issues(snapshot, container=container, provider=k8s, config=cfg)
