import json

from fakes import FakeK8sProvider, make_pod_info


def _use_fake(monkeypatch, fake) -> None:
    monkeypatch.setattr("doctor.pipeline.pipeline.get_k8s_provider", lambda: fake)
    monkeypatch.setattr("doctor.diagnostics.cluster_health.get_k8s_provider", lambda: fake)


def test_dump_json_prints_only_json(monkeypatch, capsys) -> None:
    import main

    fake = FakeK8sProvider(
        nodes=[{"name": "a", "conditions": [{"type": "Ready", "status": "True"}]}],
        pods=[make_pod_info("p1")],
    )
    _use_fake(monkeypatch, fake)

    main.main(["--dump-json", "cluster"])

    out = json.loads(capsys.readouterr().out)
    assert out["node_health"]["ready"] == 1
    assert out["pod_health"]["running"] == 1
    assert out["overall_score"] == 100.0


def test_list_results_dump_as_json_arrays(monkeypatch, capsys) -> None:
    import main

    _use_fake(monkeypatch, FakeK8sProvider(namespaces=[{"name": "default", "phase": "Active"}]))
    main.main(["--dump-json", "namespaces"])

    assert json.loads(capsys.readouterr().out) == [{"name": "default", "phase": "Active"}]


def test_markdown_report_by_default(monkeypatch, capsys) -> None:
    import main

    _use_fake(monkeypatch, FakeK8sProvider(pods=[make_pod_info("p1", phase="Pending")]))
    main.main(["pods", "-n", "default"])

    out = capsys.readouterr().out
    assert out.startswith("# 🐳 Pod List (default)")
    assert "⏳" in out


def test_failure_is_reported_and_reraised(monkeypatch, capsys) -> None:
    import pytest

    import main
    from doctor.core.errors import DoctorError, ProviderError

    _use_fake(monkeypatch, FakeK8sProvider(namespaces=ProviderError("forbidden", status=403)))
    with pytest.raises(DoctorError):
        main.main(["namespaces"])

    assert "❌ Diagnosis failed: Namespace query failed: forbidden" in capsys.readouterr().err
