from datetime import datetime, timezone

import pytest


@pytest.mark.parametrize(
    "value,expected",
    [(0, "0 B"), (-5, "0 B"), (512, "512.00 B"), (1024, "1.00 KiB"), (1536, "1.50 KiB"), (1024**3, "1.00 GiB")],
)
def test_format_bytes(value, expected) -> None:
    from doctor.report import format_bytes

    assert format_bytes(value) == expected


def test_format_cpu_and_emojis() -> None:
    from doctor.core.models import Severity
    from doctor.report import format_cpu, health_emoji, severity_emoji

    assert format_cpu(1000) == "1.00 core"
    assert format_cpu(250) == "0.25 cores"
    assert severity_emoji(Severity.CRITICAL) == "🔴"
    assert [health_emoji(s) for s in (95, 70, 50, 10)] == ["💚", "💛", "🧡", "❤️"]


def test_time_ago_buckets() -> None:
    from doctor.report import time_ago

    now = datetime(2025, 1, 3, 12, 0, 0, tzinfo=timezone.utc)
    assert time_ago("2025-01-01T12:00:00Z", now=now) == "2 days ago"
    assert time_ago("2025-01-03T09:30:00Z", now=now) == "2 hours ago"
    assert time_ago("2025-01-03T11:55:00+00:00", now=now) == "5 minutes ago"
    assert time_ago("2025-01-03T11:59:30", now=now) == "30 seconds ago"


def test_create_table_pads_columns() -> None:
    from doctor.report import create_table

    out = create_table(["Name", "Ready"], [["web-1", "✅"], ["a", ""]])
    assert out.splitlines() == [
        "| Name  | Ready |",
        "| ----- | ----- |",
        "| web-1 | ✅     |",
        "| a     |       |",
    ]


def test_progress_bar() -> None:
    from doctor.report import progress_bar

    assert progress_bar(85.0) == "████████░░ 85.0%"
    assert progress_bar(0) == "░░░░░░░░░░ 0.0%"
    assert progress_bar(100) == "██████████ 100.0%"


def test_issues_are_rendered_most_severe_first() -> None:
    from doctor.core.models import DiagnosticIssue, IssueType, ResourceRef, Severity
    from doctor.report import format_issues

    def issue(title, sev, logs=None):
        return DiagnosticIssue(
            type=IssueType.POD_PENDING,
            title=title,
            severity=sev,
            message="m",
            root_cause="r",
            solution="s",
            resource=ResourceRef(kind="Pod", name="web-1", namespace="default"),
            relevant_logs=logs,
        )

    text = format_issues([issue("Minor", Severity.LOW), issue("Major", Severity.CRITICAL, ["ERROR boom"])])

    assert text.startswith("## 🔍 Detected Issues (2)")
    assert text.index("🔴 Major") < text.index("🔵 Minor")
    assert "**Severity**: CRITICAL" in text
    assert "ERROR boom" in text
    assert "**Resource**: Pod/web-1 (ns: default)" in text
    assert format_issues([]) == "✅ No issues found!\n"


def test_pod_report_shows_partial_data_and_metrics_tip() -> None:
    from doctor.core.models import PodDiagnostics, PodInfo
    from doctor.report import METRICS_SERVER_TIP, render_pod_diagnostics

    d = PodDiagnostics(
        pod_info=PodInfo(name="web-1", namespace="default", phase="Running"),
        summary="ok",
        errors=["Events unavailable: timeout"],
    )
    text = render_pod_diagnostics(d)

    assert "**Pod**: web-1" in text
    assert "**Node**: N/A" in text
    assert "## ⚠️ Partial Data" in text
    assert "- Events unavailable: timeout" in text
    assert METRICS_SERVER_TIP in text


def test_events_report_hides_normals_unless_requested() -> None:
    from doctor.core.models import ClusterEvent, EventsReport, ResourceRef
    from doctor.report import render_events

    warning = ClusterEvent(
        type="Warning",
        reason="BackOff",
        message="Back-off restarting failed container",
        count=3,
        last_timestamp="2025-01-01T00:00:00Z",
        involved_object=ResourceRef(kind="Pod", name="web-1", namespace="default"),
    )
    normal = ClusterEvent(type="Normal", reason="Pulled", message="pulled")
    now = datetime(2025, 1, 1, 0, 10, tzinfo=timezone.utc)

    hidden = render_events(EventsReport(namespace="default", warnings=[warning], normals=[normal]), now=now)
    assert "Total 2 events (Warning: 1, Normal: 1)" in hidden
    assert "**BackOff** (3 times)" in hidden
    assert "Target: Pod/web-1" in hidden
    assert "(10 minutes ago)" in hidden
    assert "Pulled" not in hidden

    shown = render_events(
        EventsReport(namespace="default", warnings=[], normals=[normal], show_normal=True), now=now
    )
    assert "✅ No Warning events!" in shown
    assert "- **Pulled**: pulled" in shown


def test_pod_list_icons() -> None:
    from doctor.core.models import PodListEntry
    from doctor.report import pod_status_icon, render_pod_list

    def entry(phase, restarts=0):
        return PodListEntry(name="p", namespace="d", phase=phase, restarts=restarts)

    assert pod_status_icon(entry("Running")) == "✅"
    assert pod_status_icon(entry("Pending")) == "⏳"
    assert pod_status_icon(entry("Failed")) == "❌"
    assert pod_status_icon(entry("Running", 6)) == "🔥"
    assert pod_status_icon(entry("Running", 1)) == "⚠️"
    assert "✅ All pods are healthy!" in render_pod_list("default", [])


def test_cluster_report_lists_recommendations() -> None:
    from doctor.core.models import ClusterHealth
    from doctor.report import render_cluster_health

    text = render_cluster_health(
        ClusterHealth(overall_score=100.0, summary="Cluster Health Score: 100.0/100", recommendations=["✅ Cluster is healthy!"])
    )
    assert "💚 ██████████ 100.0%" in text
    assert "✅ Cluster is healthy!" in text
    assert "Critical Issues" not in text
