"""Markdown report rendering.

Diagnostic results are the single source of truth; rendering is deterministic apart from
`time_ago`, which reads the clock unless `now` is passed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from dateutil.parser import isoparse

from doctor.core.models import (
    ClusterEvent,
    ClusterHealth,
    ContainerStatus,
    DiagnosticIssue,
    EventsReport,
    LogAnalysis,
    NamespaceSummary,
    PodDiagnostics,
    PodListEntry,
    PodResourceReport,
    ResourceUsage,
    RunningState,
    Severity,
    TerminatedState,
    WaitingState,
    sort_by_severity,
)

_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")

_SEVERITY_EMOJI = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
    Severity.INFO: "⚪",
}

METRICS_SERVER_TIP = (
    "💡 **Tip**: Install Metrics Server to see real-time usage:\n"
    "```bash\n"
    "kubectl apply -f https://github.com/kubernetes-sigs/metrics-server/releases/latest/download/components.yaml\n"
    "```"
)


# --- formatters ---


def format_bytes(num_bytes: float) -> str:
    """1024 -> "1.00 KiB", 1048576 -> "1.00 MiB"."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(_BYTE_UNITS) - 1:
        value /= 1024
        i += 1
    return f"{value:.2f} {_BYTE_UNITS[i]}"


def format_cpu(millicores: float) -> str:
    """1000 -> "1.00 core", 500 -> "0.50 cores"."""
    cores = millicores / 1000
    return f"{cores:.2f} {'core' if cores == 1 else 'cores'}"


def severity_emoji(severity: Severity) -> str:
    return _SEVERITY_EMOJI.get(severity, "⚪")


def health_emoji(score: float) -> str:
    if score >= 90:
        return "💚"
    if score >= 70:
        return "💛"
    if score >= 50:
        return "🧡"
    return "❤️"


def time_ago(timestamp: str, *, now: Optional[datetime] = None) -> str:
    past = isoparse(timestamp)
    if past.tzinfo is None:
        past = past.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    diff_sec = int((current - past).total_seconds())
    diff_min = diff_sec // 60
    diff_hour = diff_min // 60
    diff_day = diff_hour // 24

    if diff_day > 0:
        return f"{diff_day} days ago"
    if diff_hour > 0:
        return f"{diff_hour} hours ago"
    if diff_min > 0:
        return f"{diff_min} minutes ago"
    return f"{max(0, diff_sec)} seconds ago"


def create_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Padded markdown table; columns are as wide as their widest cell."""
    widths = [max([len(h)] + [len(r[i] if i < len(r) and r[i] else "") for r in rows]) for i, h in enumerate(headers)]

    def _row(cells: Sequence[str]) -> str:
        padded = [(cells[i] if i < len(cells) and cells[i] else "").ljust(w) for i, w in enumerate(widths)]
        return "| " + " | ".join(padded) + " |"

    lines = [_row(headers), "| " + " | ".join("-" * w for w in widths) + " |"]
    lines.extend(_row(r) for r in rows)
    return "\n".join(lines) + "\n"


def progress_bar(percent: float, width: int = 10) -> str:
    """85 -> "████████░░ 85.0%"."""
    filled = max(0, min(width, int(round(percent / 100 * width))))
    return "█" * filled + "░" * (width - filled) + f" {percent:.1f}%"


# --- sections ---


def format_issues(issues: Sequence[DiagnosticIssue]) -> str:
    if not issues:
        return "✅ No issues found!\n"

    lines: List[str] = [f"## 🔍 Detected Issues ({len(issues)})", ""]
    for issue in sort_by_severity(issues):
        lines.append(f"### {severity_emoji(issue.severity)} {issue.title}")
        lines.append("")
        lines.append(f"**Severity**: {issue.severity.value.upper()}")
        lines.append("")
        lines.append(f"**Problem**: {issue.message}")
        lines.append("")
        lines.append(f"**Root Cause**: {issue.root_cause}")
        lines.append("")
        lines.append(f"**Solution**:\n{issue.solution}")
        lines.append("")
        if issue.relevant_logs:
            lines.append("**Related Logs**:")
            lines.append("```")
            lines.extend(issue.relevant_logs)
            lines.append("```")
            lines.append("")
        if issue.resource is not None:
            r = issue.resource
            lines.append(f"**Resource**: {r.kind}/{r.name} (ns: {r.namespace})")
            lines.append("")
        lines.append("---")
        lines.append("")
    return "\n".join(lines)


def _state_label(cs: ContainerStatus) -> str:
    state = cs.state
    if isinstance(state, RunningState):
        return "Running"
    if isinstance(state, WaitingState):
        return f"Waiting: {state.reason}"
    if isinstance(state, TerminatedState):
        return f"Terminated: {state.reason}"
    return "Unknown"


def _usage_lines(usage: ResourceUsage) -> List[str]:
    cpu = usage.cpu
    mem = usage.memory
    lines: List[str] = ["**CPU**:"]
    if cpu.current is not None:
        line = f"  - Current: {format_cpu(cpu.current)}"
        if cpu.usage_percent is not None:
            flag = " ⚠️" if cpu.is_throttled else ""
            line += f" ({cpu.usage_percent:.1f}%{flag})"
        lines.append(line)
    if cpu.requested:
        lines.append(f"  - Requested: {format_cpu(cpu.requested)}")
    if cpu.limit:
        lines.append(f"  - Limit: {format_cpu(cpu.limit)}")
    if cpu.is_throttled:
        lines.append("  - ⚠️ **WARNING**: CPU usage is high (>80%)")

    lines.append("")
    lines.append("**Memory**:")
    if mem.current is not None:
        line = f"  - Current: {format_bytes(mem.current)}"
        if mem.usage_percent is not None:
            flag = " 🔴" if mem.is_oom_risk else (" ⚠️" if mem.usage_percent >= 80 else "")
            line += f" ({mem.usage_percent:.1f}%{flag})"
        lines.append(line)
    if mem.requested:
        lines.append(f"  - Requested: {format_bytes(mem.requested)}")
    if mem.limit:
        lines.append(f"  - Limit: {format_bytes(mem.limit)}")
    if mem.is_oom_risk:
        lines.append("  - 🔴 **CRITICAL**: OOM risk detected (>90%)")
    return lines


def render_pod_diagnostics(d: PodDiagnostics) -> str:
    info = d.pod_info
    lines: List[str] = [
        "# 🏥 Pod Diagnosis Report",
        "",
        f"**Pod**: {info.name}",
        f"**Namespace**: {info.namespace}",
        f"**Status**: {info.phase}",
        f"**Node**: {info.node_name or 'N/A'}",
        f"**Health**: {health_emoji(d.health_score)} {d.health_score}/100",
        "",
        "## 📊 Summary",
        "",
        d.summary,
        "",
        "## 🐳 Container Status",
        "",
        create_table(
            ["Name", "Ready", "Restarts", "State"],
            [[c.name, "✅" if c.ready else "❌", str(c.restart_count), _state_label(c)] for c in d.containers],
        ),
        "## 💾 Resources",
        "",
    ]
    lines.extend(_usage_lines(d.resources))
    if d.resources.cpu.current is None and d.resources.memory.current is None:
        lines.append("")
        lines.append(METRICS_SERVER_TIP)
    lines.append("")

    if d.errors:
        lines.append("## ⚠️ Partial Data")
        lines.append("")
        lines.extend(f"- {e}" for e in d.errors)
        lines.append("")

    lines.append(format_issues(d.issues))

    if d.events:
        lines.append("## 📋 Recent Events (last 5)")
        lines.append("")
        for event in d.events[:5]:
            icon = "⚠️" if event.is_warning else "ℹ️"
            lines.append(f"{icon} **{event.reason}** ({event.count} times)")
            lines.append(f"   {event.message}")
            lines.append("")
    return "\n".join(lines)


def render_crash_loop(pod_name: str, issues: Sequence[DiagnosticIssue]) -> str:
    lines: List[str] = ["# 🔍 CrashLoopBackOff Diagnostics", "", f"**Pod**: {pod_name}", ""]
    if not issues:
        lines.append("✅ No CrashLoop issues detected.")
    else:
        lines.append(format_issues(issues))
    return "\n".join(lines)


def render_log_analysis(analysis: LogAnalysis) -> str:
    lines: List[str] = ["# 📝 Log Analysis Results", "", analysis.summary, ""]

    if analysis.patterns:
        lines.append("## 🎯 Detected Error Patterns")
        lines.append("")
        for p in analysis.patterns:
            lines.append(f"### {p.name} ({len(p.matched_lines)} occurrences)")
            lines.append("")
            lines.append(f"**Description**: {p.description}")
            lines.append("")
            lines.append("**Possible Causes**:")
            lines.extend(f"  - {c}" for c in p.possible_causes)
            lines.append("")
            lines.append("**Solutions**:")
            lines.extend(f"  - {s}" for s in p.solutions)
            lines.append("")
            where = ", ".join(str(n) for n in p.matched_lines[:5])
            if len(p.matched_lines) > 5:
                where += f" and {len(p.matched_lines) - 5} more"
            lines.append(f"**Locations**: lines {where}")
            lines.append("")
            lines.append("---")
            lines.append("")

    if analysis.repeated_errors:
        lines.append("## 🔁 Repeated Errors")
        lines.append("")
        for r in analysis.repeated_errors[:5]:
            lines.append(f"- **{r.message}** ({r.count} times)")
            lines.append(f"  Lines {r.first_line} ~ {r.last_line}")
            lines.append("")

    lines.append("## 💡 Recommendations")
    lines.append("")
    for rec in analysis.recommendations:
        lines.append(rec)
        lines.append("")

    if analysis.error_lines:
        lines.append("## ❌ Error Log Samples (last 10)")
        lines.append("")
        lines.append("```")
        lines.extend(f"{e.line_number}: {e.content}" for e in analysis.error_lines[-10:])
        lines.append("```")
    return "\n".join(lines)


def render_cluster_health(health: ClusterHealth) -> str:
    nodes = health.node_health
    pods = health.pod_health
    lines: List[str] = [
        "# 🏥 Cluster Health Diagnosis",
        "",
        f"{health_emoji(health.overall_score)} {progress_bar(health.overall_score)}",
        "",
        health.summary,
        "",
        "## 🖥️ Node Status",
        "",
        f"- Total: {nodes.total}",
        f"- Ready: {nodes.ready} ✅",
    ]
    if nodes.not_ready:
        lines.append(f"- Not Ready: {nodes.not_ready} ❌")
    lines.extend(["", "## 🐳 Pod Status", "", f"- Total: {pods.total}", f"- Running: {pods.running} ✅"])
    if pods.pending:
        lines.append(f"- Pending: {pods.pending} ⏳")
    if pods.failed:
        lines.append(f"- Failed: {pods.failed} ❌")
    if pods.crash_looping:
        lines.append(f"- CrashLoop: {pods.crash_looping} 🔥")
    lines.append("")

    if health.critical_issues:
        lines.append("## 🔴 Critical Issues")
        lines.append("")
        lines.append(format_issues(health.critical_issues))

    lines.append("## 💡 Recommendations")
    lines.append("")
    for rec in health.recommendations:
        lines.append(rec)
        lines.append("")
    return "\n".join(lines)


def render_resources(reports: Sequence[PodResourceReport]) -> str:
    metrics_available = any(r.metrics_available for r in reports)
    lines: List[str] = ["# 💾 Resource Usage Check", ""]
    if metrics_available:
        lines.append("✅ **Real-time metrics available**")
    else:
        lines.append("⚠️ **Metrics Server not available** - showing only spec values")
    lines.append("")

    for report in reports:
        lines.append(f"## Pod: {report.pod}")
        lines.append("")
        if report.metrics_available:
            lines.append("**Current Usage**:")
            lines.extend(_usage_lines(report.usage))
            lines.append("")

        lines.append("**Resource Specs**:")
        lines.append(
            create_table(
                ["Container", "CPU Request", "CPU Limit", "Memory Request", "Memory Limit"],
                [
                    [
                        c.container,
                        c.cpu_request or "N/A",
                        c.cpu_limit or "⚠️ None",
                        c.memory_request or "N/A",
                        c.memory_limit or "⚠️ None",
                    ]
                    for c in report.containers
                ],
            )
        )
        no_limits = [c for c in report.containers if not c.has_limits]
        if no_limits:
            lines.append(f"⚠️ **Warning**: {len(no_limits)} container(s) have no resource limits set")
            lines.append("This can lead to unlimited resource consumption.")
            lines.append("")

    if not metrics_available:
        lines.append(METRICS_SERVER_TIP)
    return "\n".join(lines)


def _event_time(e: ClusterEvent, now: Optional[datetime]) -> str:
    ts = e.last_timestamp or e.first_timestamp
    if not ts:
        return "unknown"
    try:
        return f"{ts} ({time_ago(ts, now=now)})"
    except (TypeError, ValueError):
        return ts


def render_events(report: EventsReport, *, now: Optional[datetime] = None) -> str:
    lines: List[str] = ["# 📋 Event Analysis", "", f"**Namespace**: {report.namespace}"]
    if report.resource_name:
        lines.append(f"**Resource**: {report.resource_name}")
    lines.append("")
    lines.append(
        f"Total {report.total} events (Warning: {len(report.warnings)}, Normal: {len(report.normals)})"
    )
    lines.append("")

    if report.warnings:
        lines.append("## ⚠️ Warning Events")
        lines.append("")
        for e in report.warnings[:20]:
            target = f"{e.involved_object.kind}/{e.involved_object.name}" if e.involved_object else "unknown"
            lines.append(f"**{e.reason}** ({e.count} times)")
            lines.append(f"  - {e.message}")
            lines.append(f"  - Target: {target}")
            lines.append(f"  - Time: {_event_time(e, now)}")
            lines.append("")
    else:
        lines.append("✅ No Warning events!")
        lines.append("")

    if report.show_normal and report.normals:
        lines.append("## ℹ️ Normal Events (last 10)")
        lines.append("")
        lines.extend(f"- **{e.reason}**: {e.message}" for e in report.normals[:10])
        lines.append("")
    return "\n".join(lines)


def render_namespaces(namespaces: Sequence[NamespaceSummary]) -> str:
    lines: List[str] = ["# 📁 Namespace List", "", f"Total: {len(namespaces)}", ""]
    for ns in namespaces:
        icon = "✅" if ns.phase == "Active" else "❌"
        lines.append(f"{icon} **{ns.name}** ({ns.phase})")
    return "\n".join(lines)


def pod_status_icon(entry: PodListEntry) -> str:
    if entry.phase == "Running" and entry.restarts == 0:
        return "✅"
    if entry.phase == "Pending":
        return "⏳"
    if entry.phase == "Failed":
        return "❌"
    if entry.restarts > 5:
        return "🔥"
    return "⚠️"


def render_pod_list(namespace: str, entries: Sequence[PodListEntry]) -> str:
    lines: List[str] = [f"# 🐳 Pod List ({namespace})", ""]
    if not entries:
        lines.append("✅ All pods are healthy!")
        return "\n".join(lines)
    lines.append(
        create_table(
            ["Status", "Name", "Phase", "Ready", "Restarts", "Node"],
            [
                [
                    pod_status_icon(e),
                    e.name,
                    e.phase,
                    f"{e.ready_containers}/{e.total_containers}",
                    str(e.restarts),
                    e.node_name or "N/A",
                ]
                for e in entries
            ],
        )
    )
    return "\n".join(lines)
