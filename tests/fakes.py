"""In-memory cluster data source and provider-shaped fixtures for unit tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class FakeK8sProvider:
    """
    In-memory cluster data source.

    Each attribute may be a value or an Exception instance (raised on every call). `calls`
    records method names so tests can count invocations.
    """

    def __init__(
        self,
        *,
        pod_info: Any = None,
        pod_events: Any = None,
        events: Any = None,
        pod_metrics: Any = None,
        pod_metrics_list: Any = None,
        logs: Any = "",
        previous_logs: Any = "",
        pods: Any = None,
        nodes: Any = None,
        namespaces: Any = None,
    ) -> None:
        self.pod_info = pod_info
        self.pod_events = pod_events if pod_events is not None else []
        self.events = events if events is not None else []
        self.pod_metrics = pod_metrics
        self.pod_metrics_list = pod_metrics_list if pod_metrics_list is not None else []
        self.logs = logs
        self.previous_logs = previous_logs
        self.pods = pods if pods is not None else []
        self.nodes = nodes if nodes is not None else []
        self.namespaces = namespaces if namespaces is not None else []
        self.calls: List[str] = []
        self.log_calls: List[Dict[str, Any]] = []

    def _ret(self, name: str, value: Any) -> Any:
        self.calls.append(name)
        if isinstance(value, Exception):
            raise value
        return value

    def get_pod_info(self, pod_name: str, namespace: str) -> Dict[str, Any]:
        return self._ret("get_pod_info", self.pod_info)

    def get_pod_events(self, pod_name: str, namespace: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._ret("get_pod_events", self.pod_events)

    def get_events(
        self, *, namespace: str, resource_name: Optional[str] = None, limit: int = 200
    ) -> List[Dict[str, Any]]:
        return self._ret("get_events", self.events)

    def get_pod_metrics(self, pod_name: str, namespace: str) -> Dict[str, Any]:
        return self._ret("get_pod_metrics", self.pod_metrics)

    def list_pod_metrics(self, namespace: str) -> List[Dict[str, Any]]:
        return self._ret("list_pod_metrics", self.pod_metrics_list)

    def read_pod_log(
        self,
        pod_name: str,
        namespace: str,
        container: Optional[str] = None,
        previous: bool = False,
        tail_lines: int = 500,
    ) -> str:
        self.log_calls.append({"container": container, "previous": previous, "tail_lines": tail_lines})
        return self._ret("read_pod_log", self.previous_logs if previous else self.logs)

    def list_pods(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._ret("list_pods", self.pods)

    def list_nodes(self) -> List[Dict[str, Any]]:
        return self._ret("list_nodes", self.nodes)

    def list_namespaces(self) -> List[Dict[str, Any]]:
        return self._ret("list_namespaces", self.namespaces)


def make_pod_info(
    name: str = "web-1",
    namespace: str = "default",
    *,
    phase: str = "Running",
    container_statuses: Optional[List[Dict[str, Any]]] = None,
    requests: Optional[Dict[str, str]] = None,
    limits: Optional[Dict[str, str]] = None,
    container: str = "app",
) -> Dict[str, Any]:
    """Provider-shaped pod dict (as returned by `get_pod_info` / `list_pods`)."""
    return {
        "name": name,
        "namespace": namespace,
        "phase": phase,
        "node_name": "node-a",
        "host_ip": "10.0.0.10",
        "pod_ip": "10.1.0.5",
        "start_time": "2025-01-01T00:00:00+00:00",
        "containers": [{"name": container, "image": "example/app:1.0"}],
        "resource_requests": {container: dict(requests or {})},
        "resource_limits": {container: dict(limits or {})},
        "container_statuses": (
            container_statuses
            if container_statuses is not None
            else [{"name": container, "ready": True, "restart_count": 0, "state": {"running": {"started_at": None}}}]
        ),
    }


