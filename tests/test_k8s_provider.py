import socket
from types import SimpleNamespace


def _pod():
    from kubernetes import client

    return client.V1Pod(
        metadata=client.V1ObjectMeta(name="web-1", namespace="default"),
        spec=client.V1PodSpec(
            node_name="node-a",
            containers=[
                client.V1Container(
                    name="app",
                    image="example/app:1.0",
                    resources=client.V1ResourceRequirements(
                        requests={"cpu": "100m"}, limits={"cpu": "500m", "memory": "256Mi"}
                    ),
                )
            ],
        ),
        status=client.V1PodStatus(
            phase="Running",
            container_statuses=[
                client.V1ContainerStatus(
                    name="app",
                    image="example/app:1.0",
                    image_id="sha",
                    ready=False,
                    restart_count=7,
                    state=client.V1ContainerState(
                        waiting=client.V1ContainerStateWaiting(reason="CrashLoopBackOff")
                    ),
                    last_state=client.V1ContainerState(
                        terminated=client.V1ContainerStateTerminated(exit_code=137, reason="OOMKilled")
                    ),
                )
            ],
        ),
    )


class _FakeCoreV1:
    def __init__(self, pods=None, error=None):
        self.pods = pods or []
        self.error = error
        self.list_calls = 0

    def read_namespaced_pod(self, name, namespace):
        if self.error is not None:
            raise self.error
        return self.pods[0]

    def list_namespaced_pod(self, namespace):
        self.list_calls += 1
        return SimpleNamespace(items=self.pods)


def test_pod_dict_feeds_snapshot(monkeypatch) -> None:
    from doctor.core.models import PodSnapshot, WaitingState
    from doctor.providers import k8s_provider

    monkeypatch.setattr(k8s_provider, "_get_core_v1", lambda: _FakeCoreV1([_pod()]))
    info = k8s_provider.get_pod_info("web-1", "default")

    assert info["resource_limits"] == {"app": {"cpu": "500m", "memory": "256Mi"}}
    snap = PodSnapshot.from_pod_info(info)
    status = snap.container_statuses[0]
    assert isinstance(status.state, WaitingState)
    assert status.last_state.exit_code == 137
    assert snap.containers[0].requests == {"cpu": "100m"}


def test_api_errors_keep_their_status(monkeypatch) -> None:
    from kubernetes.client.rest import ApiException

    from doctor.core.errors import ProviderError
    from doctor.providers import k8s_provider

    monkeypatch.setattr(
        k8s_provider, "_get_core_v1", lambda: _FakeCoreV1(error=ApiException(status=404, reason="Not Found"))
    )
    try:
        k8s_provider.get_pod_info("missing", "default")
    except ProviderError as e:
        assert e.status == 404
        assert "Failed to fetch pod info" in str(e)
    else:
        raise AssertionError("expected ProviderError")


def test_transport_errors_get_retry_codes() -> None:
    from doctor.providers.k8s_provider import _wrap_error

    assert _wrap_error("x", ConnectionRefusedError("nope")).code == "ECONNREFUSED"
    assert _wrap_error("x", socket.gaierror("Name or service not known")).code == "ENOTFOUND"
    assert _wrap_error("x", RuntimeError("read timed out")).code == "ETIMEDOUT"
    assert _wrap_error("x", RuntimeError("weird")).code is None


def test_pod_listing_is_cached(monkeypatch) -> None:
    from doctor.core.cache import TTLCache
    from doctor.providers import k8s_provider

    core = _FakeCoreV1([_pod()])
    monkeypatch.setattr(k8s_provider, "_get_core_v1", lambda: core)
    provider = k8s_provider.DefaultK8sProvider(cache=TTLCache(60.0))

    assert provider.list_pods("default")[0]["name"] == "web-1"
    provider.list_pods("default")
    assert core.list_calls == 1
