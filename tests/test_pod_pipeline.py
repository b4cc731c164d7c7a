import pytest
from fakes import FakeK8sProvider, make_pod_info


def _metrics(cpu="450m", memory="100Mi", name="web-1"):
    return {"name": name, "namespace": "default", "containers": [{"name": "app", "usage": {"cpu": cpu, "memory": memory}}]}


def _raw_event(reason, message, *, type_="Warning", last="2025-01-01T00:00:00Z"):
    return {
        "type": type_,
        "reason": reason,
        "message": message,
        "count": 1,
        "last_timestamp": last,
        "involved_object": {"kind": "Pod", "name": "web-1", "namespace": "default"},
    }


def test_diagnose_pod_end_to_end() -> None:
    from doctor.core.models import IssueType
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(
        pod_info=make_pod_info(limits={"cpu": "500m", "memory": "256Mi"}),
        pod_events=[
            _raw_event("Pulled", "Container image already present", type_="Normal", last="2025-01-01T00:00:00Z"),
            _raw_event("Unhealthy", "Readiness probe failed", last="2025-01-01T00:10:00Z"),
        ],
        pod_metrics=_metrics(),
    )
    d = diagnose_pod("default", "web-1", provider=fake)

    assert d.pod_info.name == "web-1"
    assert d.pod_info.node_name == "node-a"
    assert d.resources.cpu.current == 450.0
    assert d.resources.cpu.is_throttled is True
    assert [i.type for i in d.issues] == [IssueType.HIGH_CPU_USAGE]
    assert d.health_score == 80
    assert [e.reason for e in d.events] == ["Unhealthy", "Pulled"]
    assert d.errors == []
    assert d.summary.splitlines() == [
        'Pod "web-1" is currently in Running state.',
        "Containers: 1/1 ready",
        "Health: 80/100",
        "",
        "⚠️ 1 issue(s) detected.",
        "  - High: 1",
    ]


def test_event_failure_degrades_instead_of_failing() -> None:
    from doctor.core.errors import ProviderError
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(
        pod_info=make_pod_info(limits={"cpu": "1", "memory": "1Gi"}),
        pod_events=ProviderError("apiserver unavailable", status=503),
        pod_metrics=_metrics(cpu="10m", memory="10Mi"),
    )
    d = diagnose_pod("default", "web-1", provider=fake)

    assert d.events == []
    assert d.issues == []
    assert d.health_score == 100
    assert len(d.errors) == 1
    assert d.errors[0].startswith("Events unavailable:")
    assert fake.calls.count("get_pod_events") == 2


def test_metrics_failure_keeps_spec_values_and_never_invents_usage() -> None:
    from doctor.core.errors import ProviderError
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(
        pod_info=make_pod_info(limits={"cpu": "500m", "memory": "256Mi"}),
        pod_metrics=ProviderError("the server could not find the requested resource", status=404),
    )
    d = diagnose_pod("default", "web-1", provider=fake)

    assert d.resources.cpu.limit == 500.0
    assert d.resources.cpu.current is None
    assert d.resources.cpu.usage_percent is None
    assert d.errors == ["Metrics unavailable: the server could not find the requested resource"]
    assert fake.calls.count("get_pod_metrics") == 1


def test_disabled_metrics_are_not_requested() -> None:
    from doctor.config import DoctorConfig
    from doctor.core.models import IssueType
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(pod_info=make_pod_info())
    d = diagnose_pod("default", "web-1", provider=fake, config=DoctorConfig(metrics_enabled=False))

    assert "get_pod_metrics" not in fake.calls
    assert d.errors == []
    assert [i.type for i in d.issues] == [IssueType.MISSING_CPU_LIMIT, IssueType.MISSING_MEMORY_LIMIT]
    assert d.health_score == 70


def test_unreadable_pod_is_fatal() -> None:
    from doctor.core.errors import PodFetchError, ProviderError
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(pod_info=ProviderError("etcdserver: request timed out", status=500))
    with pytest.raises(PodFetchError) as ei:
        diagnose_pod("default", "web-1", provider=fake)

    assert "web-1" in str(ei.value)
    assert fake.calls.count("get_pod_info") == 3


def test_collector_fills_missing_identity_and_reports_metrics_status() -> None:
    from doctor.collectors import collect_pod_inputs
    from doctor.config import DoctorConfig

    fake = FakeK8sProvider(pod_info={"phase": "Pending"})
    inputs = collect_pod_inputs("prod", "api-0", provider=fake, config=DoctorConfig(metrics_enabled=False))

    assert inputs.snapshot.name == "api-0"
    assert inputs.snapshot.namespace == "prod"
    assert inputs.snapshot.phase == "Pending"
    assert inputs.metrics.status == "not_applicable"
    assert inputs.metrics.ok is False


def test_events_with_missing_timestamps_sort_last() -> None:
    from doctor.collectors.pod import sort_events_newest_first
    from doctor.core.models import ClusterEvent

    events = [
        ClusterEvent(reason="none"),
        ClusterEvent(reason="old", last_timestamp="2025-01-01T00:00:00Z"),
        ClusterEvent(reason="new", last_timestamp="2025-01-02T00:00:00+00:00"),
        ClusterEvent(reason="garbage", last_timestamp="yesterday"),
    ]
    assert [e.reason for e in sort_events_newest_first(events)][:2] == ["new", "old"]


def test_check_resources_for_namespace() -> None:
    from doctor.pipeline.pipeline import check_resources

    fake = FakeK8sProvider(
        pods=[make_pod_info("web-1", limits={"cpu": "500m"}), make_pod_info("web-2")],
        pod_metrics_list=[_metrics(name="web-1")],
    )
    reports = check_resources("default", provider=fake)

    assert [r.pod for r in reports] == ["web-1", "web-2"]
    assert reports[0].metrics_available is True
    assert reports[0].usage.cpu.usage_percent == pytest.approx(90.0)
    assert reports[0].containers[0].cpu_limit == "500m"
    assert reports[1].metrics_available is False
    assert reports[1].containers[0].has_limits is False


def test_check_resources_single_pod_without_metrics_server() -> None:
    from doctor.core.errors import ProviderError
    from doctor.pipeline.pipeline import check_resources

    fake = FakeK8sProvider(
        pod_info=make_pod_info(requests={"memory": "64Mi"}),
        pod_metrics_list=ProviderError("not found", status=404),
    )
    reports = check_resources("default", "web-1", provider=fake)

    assert len(reports) == 1
    assert reports[0].metrics_available is False
    assert reports[0].usage.memory.requested == 64 * 1024 * 1024
    assert "list_pods" not in fake.calls


def test_check_resources_failure() -> None:
    from doctor.core.errors import DoctorError, ProviderError
    from doctor.pipeline.pipeline import check_resources

    fake = FakeK8sProvider(pods=ProviderError("forbidden", status=403))
    with pytest.raises(DoctorError, match="Resource check failed"):
        check_resources("default", provider=fake)


def test_check_events_splits_and_orders() -> None:
    from doctor.pipeline.pipeline import check_events

    fake = FakeK8sProvider(
        events=[
            _raw_event("Scheduled", "Successfully assigned", type_="Normal", last="2025-01-01T00:00:00Z"),
            _raw_event("BackOff", "Back-off restarting", last="2025-01-01T00:01:00Z"),
            _raw_event("FailedMount", "mount failed", last="2025-01-01T00:05:00Z"),
        ]
    )
    report = check_events("default", "web-1", provider=fake)

    assert [e.reason for e in report.warnings] == ["FailedMount", "BackOff"]
    assert [e.reason for e in report.normals] == ["Scheduled"]
    assert report.show_normal is False
    assert report.resource_name == "web-1"
    assert report.total == 3


def test_list_namespaces() -> None:
    from doctor.pipeline.pipeline import list_namespaces

    fake = FakeK8sProvider(namespaces=[{"name": "default", "phase": "Active"}, {"name": "old", "phase": None}])
    out = list_namespaces(provider=fake)
    assert [(n.name, n.phase) for n in out] == [("default", "Active"), ("old", "Unknown")]


def test_list_pods_filters_to_problems_by_default() -> None:
    from doctor.pipeline.pipeline import list_pods

    restarted = make_pod_info(
        "flaky", container_statuses=[{"name": "app", "ready": True, "restart_count": 2, "state": {"running": {}}}]
    )
    fake = FakeK8sProvider(pods=[make_pod_info("ok"), restarted, make_pod_info("waiting", phase="Pending")])

    assert [e.name for e in list_pods("default", provider=fake)] == ["flaky", "waiting"]
    everything = list_pods("default", show_all=True, provider=fake)
    assert [e.name for e in everything] == ["ok", "flaky", "waiting"]
    assert everything[1].restarts == 2
    assert everything[0].ready_containers == 1


def test_list_pods_failure() -> None:
    from doctor.core.errors import DoctorError, ProviderError
    from doctor.pipeline.pipeline import list_pods

    fake = FakeK8sProvider(pods=ProviderError("boom", status=500))
    with pytest.raises(DoctorError, match="Pod list query failed"):
        list_pods("default", provider=fake)


def test_malformed_status_fields_do_not_break_diagnosis() -> None:
    from doctor.config import DoctorConfig
    from doctor.pipeline.pipeline import diagnose_pod

    fake = FakeK8sProvider(
        pod_info=make_pod_info(
            limits={"cpu": "1", "memory": "1Gi"},
            container_statuses=[
                {"name": "app", "ready": True, "restart_count": "n/a", "state": {"running": {}}}
            ],
        ),
        pod_events=[dict(_raw_event("BackOff", "Back-off restarting failed container"), count="lots")],
    )
    d = diagnose_pod("default", "web-1", provider=fake, config=DoctorConfig(metrics_enabled=False))

    assert d.containers[0].restart_count == 0
    assert d.events[0].count == 1
    assert d.issues == []
