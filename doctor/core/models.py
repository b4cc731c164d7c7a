"""Canonical domain models (single source of truth).

This file is the one place where we define models used across:
- gathering cluster state (pods, events, metrics, logs)
- analysis (issue classification, log patterns, scoring)
- rendering (markdown reports, JSON dumps)

Design note:
- Snapshots are built fresh per diagnostic run from provider dicts and never mutated.
  Provider dicts may use either the python client's snake_case keys or the API's camelCase
  keys; the `from_*` constructors accept both.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

CPU_THROTTLE_THRESHOLD_PERCENT = 80.0
MEMORY_OOM_THRESHOLD_PERCENT = 90.0

PodPhase = Literal["Pending", "Running", "Succeeded", "Failed", "Unknown"]
_POD_PHASES = ("Pending", "Running", "Succeeded", "Failed", "Unknown")


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BaseModelFrozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pick(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return None


def _int_or_none(value: Any) -> Optional[int]:
    """Unparseable numbers are treated as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _ts(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    s = str(value).strip()
    return s or None


@total_ordering
class Severity(Enum):
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class IssueType(str, Enum):
    CONTAINER_WAITING = "ContainerWaiting"
    CONTAINER_TERMINATED = "ContainerTerminated"
    IMAGE_PULL_BACKOFF = "ImagePullBackOff"
    CRASH_LOOP_BACKOFF = "CrashLoopBackOff"
    HIGH_CPU_USAGE = "HighCPUUsage"
    OOM_RISK = "OOMRisk"
    MISSING_CPU_LIMIT = "MissingCPULimit"
    MISSING_MEMORY_LIMIT = "MissingMemoryLimit"
    VOLUME_MOUNT_ISSUE = "VolumeMountIssue"
    NETWORK_CONFIGURATION_ISSUE = "NetworkConfigurationIssue"
    NODE_NOT_READY = "NodeNotReady"
    POD_PENDING = "PodPending"


# --- Container state (tagged union: exactly one variant is active) ---


class RunningState(BaseModelFrozen):
    kind: Literal["running"] = "running"
    started_at: Optional[str] = None


class WaitingState(BaseModelFrozen):
    kind: Literal["waiting"] = "waiting"
    reason: str = ""
    message: Optional[str] = None


class TerminatedState(BaseModelFrozen):
    kind: Literal["terminated"] = "terminated"
    reason: str = ""
    exit_code: int = 0
    message: Optional[str] = None
    finished_at: Optional[str] = None

    @classmethod
    def from_k8s(cls, raw: Dict[str, Any]) -> "TerminatedState":
        exit_code = _int_or_none(_pick(raw, "exit_code", "exitCode"))
        return cls(
            reason=str(_pick(raw, "reason") or ""),
            exit_code=exit_code if exit_code is not None else 0,
            message=_pick(raw, "message"),
            finished_at=_ts(_pick(raw, "finished_at", "finishedAt")),
        )


ContainerState = Annotated[Union[RunningState, WaitingState, TerminatedState], Field(discriminator="kind")]


def container_state_from_k8s(raw: Optional[Dict[str, Any]]) -> Optional[ContainerState]:
    """
    Convert a V1ContainerState-shaped dict ({running, waiting, terminated}) into one variant.

    The API populates at most one key. If a malformed payload carries several, the most
    actionable one wins (waiting, then terminated, then running).
    """
    if not isinstance(raw, dict):
        return None
    waiting = raw.get("waiting")
    if isinstance(waiting, dict):
        return WaitingState(reason=str(waiting.get("reason") or ""), message=waiting.get("message"))
    terminated = raw.get("terminated")
    if isinstance(terminated, dict):
        return TerminatedState.from_k8s(terminated)
    running = raw.get("running")
    if isinstance(running, dict):
        return RunningState(started_at=_ts(_pick(running, "started_at", "startedAt")))
    return None


class ContainerStatus(BaseModelFrozen):
    name: str
    ready: bool = False
    restart_count: int = Field(default=0, ge=0)
    state: Optional[ContainerState] = None
    last_state: Optional[TerminatedState] = None
    image: Optional[str] = None
    image_id: Optional[str] = None

    @property
    def waiting_reason(self) -> Optional[str]:
        return self.state.reason if isinstance(self.state, WaitingState) else None

    @classmethod
    def from_k8s(cls, raw: Dict[str, Any]) -> "ContainerStatus":
        last_raw = _pick(raw, "last_state", "lastState")
        last_terminated = None
        if isinstance(last_raw, dict) and isinstance(last_raw.get("terminated"), dict):
            last_terminated = TerminatedState.from_k8s(last_raw["terminated"])
        restarts = _int_or_none(_pick(raw, "restart_count", "restartCount"))
        return cls(
            name=str(raw.get("name") or ""),
            ready=bool(raw.get("ready") or False),
            restart_count=max(0, restarts or 0),
            state=container_state_from_k8s(raw.get("state")),
            last_state=last_terminated,
            image=raw.get("image"),
            image_id=_pick(raw, "image_id", "imageID"),
        )


class ContainerSpec(BaseModelFrozen):
    name: str
    image: Optional[str] = None
    requests: Dict[str, str] = Field(default_factory=dict)
    limits: Dict[str, str] = Field(default_factory=dict)


class PodSnapshot(BaseModelFrozen):
    """Point-in-time capture of one pod. Created per diagnostic run, never mutated."""

    name: str
    namespace: str
    phase: PodPhase = "Unknown"
    node_name: Optional[str] = None
    host_ip: Optional[str] = None
    pod_ip: Optional[str] = None
    start_time: Optional[str] = None
    containers: List[ContainerSpec] = Field(default_factory=list)
    container_statuses: List[ContainerStatus] = Field(default_factory=list)

    @classmethod
    def from_pod_info(cls, info: Dict[str, Any]) -> "PodSnapshot":
        phase = info.get("phase")
        requests = info.get("resource_requests") or {}
        limits = info.get("resource_limits") or {}
        containers = [
            ContainerSpec(
                name=str(c.get("name") or ""),
                image=c.get("image"),
                requests={k: str(v) for k, v in (requests.get(c.get("name")) or {}).items() if v is not None},
                limits={k: str(v) for k, v in (limits.get(c.get("name")) or {}).items() if v is not None},
            )
            for c in (info.get("containers") or [])
            if isinstance(c, dict)
        ]
        statuses = [
            ContainerStatus.from_k8s(cs) for cs in (info.get("container_statuses") or []) if isinstance(cs, dict)
        ]
        return cls(
            name=str(info.get("name") or ""),
            namespace=str(info.get("namespace") or ""),
            phase=phase if phase in _POD_PHASES else "Unknown",
            node_name=info.get("node_name"),
            host_ip=info.get("host_ip"),
            pod_ip=info.get("pod_ip"),
            start_time=_ts(info.get("start_time")),
            containers=containers,
            container_statuses=statuses,
        )


# --- Resources ---


class ResourceMetric(BaseModelStrict):
    current: Optional[float] = None
    requested: Optional[float] = None
    limit: Optional[float] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def usage_percent(self) -> Optional[float]:
        if self.current is None or self.limit is None or self.limit <= 0:
            return None
        return self.current / self.limit * 100.0


class CpuUsage(ResourceMetric):
    """CPU quantities in millicores."""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_throttled(self) -> bool:
        pct = self.usage_percent
        return pct is not None and pct >= CPU_THROTTLE_THRESHOLD_PERCENT


class MemoryUsage(ResourceMetric):
    """Memory quantities in bytes."""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_oom_risk(self) -> bool:
        pct = self.usage_percent
        return pct is not None and pct >= MEMORY_OOM_THRESHOLD_PERCENT


class ResourceUsage(BaseModelStrict):
    cpu: CpuUsage = Field(default_factory=CpuUsage)
    memory: MemoryUsage = Field(default_factory=MemoryUsage)


# --- Events & issues ---


class ResourceRef(BaseModelFrozen):
    kind: str
    name: str
    namespace: str = ""


class ClusterEvent(BaseModelFrozen):
    type: str = "Normal"
    reason: str = ""
    message: str = ""
    count: int = 1
    first_timestamp: Optional[str] = None
    last_timestamp: Optional[str] = None
    source: Optional[str] = None
    involved_object: Optional[ResourceRef] = None

    @property
    def is_warning(self) -> bool:
        return self.type == "Warning"

    @classmethod
    def from_k8s(cls, raw: Dict[str, Any]) -> "ClusterEvent":
        source = raw.get("source")
        if isinstance(source, dict):
            source = source.get("component")
        source = source or raw.get("reporting_component")

        involved = _pick(raw, "involved_object", "involvedObject")
        ref = None
        if isinstance(involved, dict) and involved.get("kind") and involved.get("name"):
            ref = ResourceRef(
                kind=str(involved["kind"]), name=str(involved["name"]), namespace=str(involved.get("namespace") or "")
            )

        last = _pick(raw, "last_timestamp", "lastTimestamp", "event_time", "eventTime")
        return cls(
            type=str(raw.get("type") or "Normal"),
            reason=str(raw.get("reason") or ""),
            message=str(raw.get("message") or ""),
            count=_int_or_none(raw.get("count")) or 1,
            first_timestamp=_ts(_pick(raw, "first_timestamp", "firstTimestamp")),
            last_timestamp=_ts(last),
            source=str(source) if source else None,
            involved_object=ref,
        )


class DiagnosticIssue(BaseModelFrozen):
    type: IssueType
    title: str
    severity: Severity
    message: str
    root_cause: str
    solution: str
    resource: Optional[ResourceRef] = None
    relevant_logs: Optional[List[str]] = None
    related_events: Optional[List[ClusterEvent]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


def sort_by_severity(issues: Iterable[DiagnosticIssue]) -> List[DiagnosticIssue]:
    """Most severe first; stable for equal severities."""
    return sorted(issues, key=lambda i: -i.severity.rank)


# --- Logs ---

LogLevel = Literal["ERROR", "WARN", "INFO", "DEBUG"]


class LogEntry(BaseModelFrozen):
    line_number: int
    content: str
    timestamp: Optional[str] = None
    level: Optional[LogLevel] = None


class PatternMatch(BaseModelFrozen):
    name: str
    matched_lines: List[int]
    description: str
    possible_causes: List[str]
    solutions: List[str]
    severity: Severity


class RepeatedError(BaseModelFrozen):
    message: str
    count: int = Field(ge=3)
    first_line: int
    last_line: int
    is_pattern: bool = True


class LogAnalysis(BaseModelStrict):
    total_lines: int = 0
    error_lines: List[LogEntry] = Field(default_factory=list)
    warning_lines: List[LogEntry] = Field(default_factory=list)
    patterns: List[PatternMatch] = Field(default_factory=list)
    repeated_errors: List[RepeatedError] = Field(default_factory=list)
    summary: str = ""
    recommendations: List[str] = Field(default_factory=list)


# --- Pod / cluster results ---


class PodInfo(BaseModelStrict):
    name: str
    namespace: str
    phase: PodPhase = "Unknown"
    start_time: Optional[str] = None
    node_name: Optional[str] = None
    host_ip: Optional[str] = None
    pod_ip: Optional[str] = None


class PodDiagnostics(BaseModelStrict):
    pod_info: PodInfo
    containers: List[ContainerStatus] = Field(default_factory=list)
    issues: List[DiagnosticIssue] = Field(default_factory=list)
    resources: ResourceUsage = Field(default_factory=ResourceUsage)
    events: List[ClusterEvent] = Field(default_factory=list)
    summary: str = ""
    health_score: int = Field(default=100, ge=0, le=100)
    errors: List[str] = Field(default_factory=list)


class NodeHealth(BaseModelStrict):
    total: int = 0
    ready: int = 0
    not_ready: int = 0
    issues: List[DiagnosticIssue] = Field(default_factory=list)


class PodHealth(BaseModelStrict):
    total: int = 0
    running: int = 0
    pending: int = 0
    failed: int = 0
    crash_looping: int = 0
    issues: List[DiagnosticIssue] = Field(default_factory=list)


class ClusterHealth(BaseModelStrict):
    overall_score: float = Field(ge=0, le=100)
    node_health: NodeHealth = Field(default_factory=NodeHealth)
    pod_health: PodHealth = Field(default_factory=PodHealth)
    critical_issues: List[DiagnosticIssue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    summary: str = ""


# --- Resource / event / listing reports ---


class ContainerResourceSpec(BaseModelStrict):
    container: str
    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None

    @property
    def has_limits(self) -> bool:
        return bool(self.cpu_limit or self.memory_limit)


class PodResourceReport(BaseModelStrict):
    pod: str
    namespace: str
    containers: List[ContainerResourceSpec] = Field(default_factory=list)
    usage: ResourceUsage = Field(default_factory=ResourceUsage)
    metrics_available: bool = False


class EventsReport(BaseModelStrict):
    namespace: str
    resource_name: Optional[str] = None
    warnings: List[ClusterEvent] = Field(default_factory=list)
    normals: List[ClusterEvent] = Field(default_factory=list)
    show_normal: bool = False

    @property
    def total(self) -> int:
        return len(self.warnings) + len(self.normals)


class NamespaceSummary(BaseModelStrict):
    name: str
    phase: str = "Unknown"


class PodListEntry(BaseModelStrict):
    name: str
    namespace: str
    phase: str = "Unknown"
    ready_containers: int = 0
    total_containers: int = 0
    restarts: int = 0
    node_name: Optional[str] = None

    @property
    def has_problem(self) -> bool:
        return self.phase != "Running" or self.restarts > 0
