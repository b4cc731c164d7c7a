import pytest


def _issue(severity):
    from doctor.core.models import DiagnosticIssue, IssueType

    return DiagnosticIssue(
        type=IssueType.POD_PENDING,
        title="t",
        severity=severity,
        message="m",
        root_cause="r",
        solution="s",
    )


def test_healthy_running_pod_scores_100() -> None:
    from doctor.pipeline.scoring import pod_health_score

    assert pod_health_score("Running", []) == 100
    assert pod_health_score("Succeeded", []) == 100


@pytest.mark.parametrize("phase,expected", [("Pending", 70), ("Unknown", 50), ("Failed", 0), (None, 50)])
def test_phase_deductions(phase, expected) -> None:
    from doctor.pipeline.scoring import pod_health_score

    assert pod_health_score(phase, []) == expected


def test_issue_deductions_by_severity() -> None:
    from doctor.core.models import Severity
    from doctor.pipeline.scoring import pod_health_score

    issues = [_issue(Severity.CRITICAL), _issue(Severity.HIGH), _issue(Severity.MEDIUM), _issue(Severity.LOW)]
    assert pod_health_score("Running", issues) == 100 - 30 - 20 - 10 - 5
    assert pod_health_score("Running", [_issue(Severity.INFO)]) == 100


def test_pod_score_is_clamped_at_zero() -> None:
    from doctor.core.models import Severity
    from doctor.pipeline.scoring import pod_health_score

    assert pod_health_score("Pending", [_issue(Severity.CRITICAL)] * 5) == 0


def test_empty_cluster_is_fully_healthy() -> None:
    from doctor.pipeline.scoring import cluster_health_score

    assert cluster_health_score(0, 0, 0, 0, 0, []) == 100.0


def test_cluster_weights() -> None:
    from doctor.pipeline.scoring import cluster_health_score

    # Half the nodes ready costs 25; half the pods running costs 15.
    assert cluster_health_score(4, 2, 10, 5, 0, []) == pytest.approx(60.0)
    assert cluster_health_score(4, 4, 10, 10, 2, []) == pytest.approx(90.0)


def test_cluster_issue_deductions_and_clamp() -> None:
    from doctor.core.models import Severity
    from doctor.pipeline.scoring import cluster_health_score

    issues = [_issue(Severity.CRITICAL), _issue(Severity.HIGH), _issue(Severity.MEDIUM), _issue(Severity.LOW)]
    assert cluster_health_score(1, 1, 1, 1, 0, issues) == pytest.approx(83.0)
    assert cluster_health_score(1, 0, 1, 0, 30, issues) == 0.0
