"""Kubernetes API client for fetching pod, event, metric and log data (read-only)."""

from __future__ import annotations

import socket
import threading
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from doctor.config import load_doctor_config
from doctor.core.cache import TTLCache
from doctor.core.errors import ProviderError

_core_v1_api = None
_custom_objects_api = None
_config_loaded = False
_init_lock = threading.Lock()

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"


@runtime_checkable
class K8sProvider(Protocol):
    def get_pod_info(self, pod_name: str, namespace: str) -> Dict[str, Any]: ...

    def get_pod_events(self, pod_name: str, namespace: str, limit: int = 50) -> List[Dict[str, Any]]: ...

    def get_events(
        self, *, namespace: str, resource_name: Optional[str] = None, limit: int = 200
    ) -> List[Dict[str, Any]]: ...

    def get_pod_metrics(self, pod_name: str, namespace: str) -> Dict[str, Any]: ...

    def list_pod_metrics(self, namespace: str) -> List[Dict[str, Any]]: ...

    def read_pod_log(
        self,
        pod_name: str,
        namespace: str,
        container: Optional[str] = None,
        previous: bool = False,
        tail_lines: int = 500,
    ) -> str: ...

    def list_pods(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]: ...

    def list_nodes(self) -> List[Dict[str, Any]]: ...

    def list_namespaces(self) -> List[Dict[str, Any]]: ...


class DefaultK8sProvider:
    """
    Provider backed by the official kubernetes client.

    Namespace and pod listings are served from a short TTL cache; everything else is read live.
    """

    def __init__(self, cache: Optional[TTLCache] = None):
        self._cache = cache if cache is not None else TTLCache(load_doctor_config().cache_ttl_seconds)

    def get_pod_info(self, pod_name: str, namespace: str) -> Dict[str, Any]:
        return get_pod_info(pod_name, namespace)

    def get_pod_events(self, pod_name: str, namespace: str, limit: int = 50) -> List[Dict[str, Any]]:
        return get_pod_events(pod_name, namespace, limit=limit)

    def get_events(
        self, *, namespace: str, resource_name: Optional[str] = None, limit: int = 200
    ) -> List[Dict[str, Any]]:
        return get_events(namespace=namespace, resource_name=resource_name, limit=limit)

    def get_pod_metrics(self, pod_name: str, namespace: str) -> Dict[str, Any]:
        return get_pod_metrics(pod_name, namespace)

    def list_pod_metrics(self, namespace: str) -> List[Dict[str, Any]]:
        return list_pod_metrics(namespace)

    def read_pod_log(
        self,
        pod_name: str,
        namespace: str,
        container: Optional[str] = None,
        previous: bool = False,
        tail_lines: int = 500,
    ) -> str:
        return read_pod_log(
            pod_name=pod_name, namespace=namespace, container=container, previous=previous, tail_lines=tail_lines
        )

    def list_pods(self, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        key = f"pods:{namespace or '*'}"
        return self._cache.get_or_compute(key, lambda: list_pods(namespace))

    def list_nodes(self) -> List[Dict[str, Any]]:
        return list_nodes()

    def list_namespaces(self) -> List[Dict[str, Any]]:
        return self._cache.get_or_compute("namespaces", list_namespaces)


_default_provider: Optional[DefaultK8sProvider] = None


def get_k8s_provider() -> K8sProvider:
    """Seam for swapping provider implementations (tests inject fakes here)."""
    global _default_provider
    if _default_provider is None:
        with _init_lock:
            if _default_provider is None:
                _default_provider = DefaultK8sProvider()
    return _default_provider


def _load_config_once() -> None:
    global _config_loaded
    if _config_loaded:
        return
    from kubernetes import config

    # In-cluster service account first, then the local kubeconfig.
    try:
        config.load_incluster_config()
    except config.ConfigException:
        try:
            config.load_kube_config()
        except Exception as e:
            raise ProviderError(
                f"Cannot find kubeconfig. Verify kubectl is configured (try `kubectl cluster-info`): {e}"
            ) from e
    _config_loaded = True


def _get_core_v1():
    """Return a cached CoreV1Api client (thread-safe lazy init)."""
    global _core_v1_api

    if _core_v1_api is not None:
        return _core_v1_api

    with _init_lock:
        if _core_v1_api is not None:
            return _core_v1_api
        from kubernetes import client

        _load_config_once()
        _core_v1_api = client.CoreV1Api()
        return _core_v1_api


def _get_custom_objects():
    """Return a cached CustomObjectsApi client (metrics.k8s.io lives there)."""
    global _custom_objects_api

    if _custom_objects_api is not None:
        return _custom_objects_api

    with _init_lock:
        if _custom_objects_api is not None:
            return _custom_objects_api
        from kubernetes import client

        _load_config_once()
        _custom_objects_api = client.CustomObjectsApi()
        return _custom_objects_api


def _wrap_error(what: str, e: Exception) -> ProviderError:
    """
    Convert a client/transport exception into a ProviderError, keeping what the retry
    policy needs: the HTTP status of ApiExceptions, or an errno-style code for transport errors.
    """
    if isinstance(e, ProviderError):
        return e

    from kubernetes.client.rest import ApiException

    if isinstance(e, ApiException):
        return ProviderError(f"{what}: Kubernetes API error: {e.status} {e.reason}", status=e.status)

    code = None
    if isinstance(e, ConnectionRefusedError) or "connection refused" in str(e).lower():
        code = "ECONNREFUSED"
    elif isinstance(e, socket.gaierror) or "name or service not known" in str(e).lower():
        code = "ENOTFOUND"
    elif isinstance(e, TimeoutError) or "timed out" in str(e).lower():
        code = "ETIMEDOUT"
    return ProviderError(f"{what}: {e}", code=code)


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None and hasattr(value, "isoformat") else value


def _pod_to_dict(pod: Any) -> Dict[str, Any]:
    metadata = getattr(pod, "metadata", None)
    spec = getattr(pod, "spec", None)
    status = getattr(pod, "status", None)

    pod_info: Dict[str, Any] = {
        "name": getattr(metadata, "name", None),
        "namespace": getattr(metadata, "namespace", None),
        "uid": getattr(metadata, "uid", None),
        "creation_timestamp": _iso(getattr(metadata, "creation_timestamp", None)),
        "phase": getattr(status, "phase", None),
        "status_reason": getattr(status, "reason", None),
        "node_name": getattr(spec, "node_name", None),
        "host_ip": getattr(status, "host_ip", None),
        "pod_ip": getattr(status, "pod_ip", None),
        "start_time": _iso(getattr(status, "start_time", None)),
        "containers": [],
        "resource_requests": {},
        "resource_limits": {},
        "container_statuses": [],
    }

    for container in getattr(spec, "containers", None) or []:
        pod_info["containers"].append({"name": container.name, "image": container.image})

        resources = container.resources
        if not resources:
            continue
        for source, target in ((resources.requests, "resource_requests"), (resources.limits, "resource_limits")):
            if not source:
                continue
            picked = {k: source.get(k) for k in ("cpu", "memory") if source.get(k)}
            if picked:
                pod_info[target][container.name] = picked

    for cs in getattr(status, "container_statuses", None) or []:
        pod_info["container_statuses"].append(
            {
                "name": cs.name,
                "ready": cs.ready,
                "restart_count": cs.restart_count,
                "image": cs.image,
                "image_id": cs.image_id,
                "state": cs.state.to_dict() if getattr(cs, "state", None) else None,
                "last_state": cs.last_state.to_dict() if getattr(cs, "last_state", None) else None,
            }
        )

    return pod_info


def _event_to_dict(ev: Any) -> Dict[str, Any]:
    involved_obj = getattr(ev, "involved_object", None)
    source = getattr(ev, "source", None)
    return {
        "type": ev.type,
        "reason": ev.reason,
        "message": ev.message,
        "count": ev.count,
        "first_timestamp": _iso(getattr(ev, "first_timestamp", None)),
        "last_timestamp": _iso(getattr(ev, "last_timestamp", None)),
        "event_time": _iso(getattr(ev, "event_time", None)),
        "source": {"component": getattr(source, "component", None)} if source else None,
        "reporting_component": getattr(ev, "reporting_component", None),
        "involved_object": (
            {
                "kind": getattr(involved_obj, "kind", None),
                "name": getattr(involved_obj, "name", None),
                "namespace": getattr(involved_obj, "namespace", None),
            }
            if involved_obj
            else None
        ),
    }


def _ts_key(e: Dict[str, Any]) -> str:
    return e.get("last_timestamp") or e.get("event_time") or e.get("first_timestamp") or ""


def get_pod_info(pod_name: str, namespace: str) -> Dict[str, Any]:
    """
    Fetch pod information from the Kubernetes API.

    Returns:
        Dictionary with pod identity, phase, addresses, container specs (with resource
        requests/limits) and container statuses.
    """
    try:
        v1 = _get_core_v1()
        pod = v1.read_namespaced_pod(name=pod_name, namespace=namespace)
        return _pod_to_dict(pod)
    except Exception as e:
        raise _wrap_error("Failed to fetch pod info", e) from e


def get_pod_events(pod_name: str, namespace: str, limit: int = 50) -> List[Dict[str, Any]]:
    """
    List recent Events for a Pod (most recent first).
    """
    try:
        v1 = _get_core_v1()
        field_selector = ",".join(
            [
                "involvedObject.kind=Pod",
                f"involvedObject.name={pod_name}",
            ]
        )
        ev_list = v1.list_namespaced_event(namespace=namespace, field_selector=field_selector)
        events = [_event_to_dict(ev) for ev in ev_list.items or []]
        events.sort(key=_ts_key, reverse=True)
        return events[: max(0, limit)]
    except Exception as e:
        raise _wrap_error("Failed to fetch pod events", e) from e


def get_events(*, namespace: str, resource_name: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
    """List namespace events, optionally scoped to one involved object name (most recent first)."""
    try:
        v1 = _get_core_v1()
        if resource_name:
            ev_list = v1.list_namespaced_event(
                namespace=namespace, field_selector=f"involvedObject.name={resource_name}"
            )
        else:
            ev_list = v1.list_namespaced_event(namespace=namespace)
        events = [_event_to_dict(ev) for ev in ev_list.items or []]
        events.sort(key=_ts_key, reverse=True)
        return events[: max(0, limit)]
    except Exception as e:
        raise _wrap_error("Failed to fetch events", e) from e


def _metrics_item_to_dict(item: Dict[str, Any]) -> Dict[str, Any]:
    metadata = item.get("metadata") or {}
    return {
        "name": metadata.get("name"),
        "namespace": metadata.get("namespace"),
        "containers": [
            {"name": c.get("name"), "usage": dict(c.get("usage") or {})} for c in (item.get("containers") or [])
        ],
    }


def get_pod_metrics(pod_name: str, namespace: str) -> Dict[str, Any]:
    """
    Read live usage for one pod from metrics-server.

    Raises ProviderError(status=404) when metrics-server is not installed or has no sample yet.
    """
    try:
        api = _get_custom_objects()
        item = api.get_namespaced_custom_object(
            group=METRICS_GROUP, version=METRICS_VERSION, namespace=namespace, plural="pods", name=pod_name
        )
        return _metrics_item_to_dict(item or {})
    except Exception as e:
        raise _wrap_error("Failed to fetch pod metrics", e) from e


def list_pod_metrics(namespace: str) -> List[Dict[str, Any]]:
    try:
        api = _get_custom_objects()
        resp = api.list_namespaced_custom_object(
            group=METRICS_GROUP, version=METRICS_VERSION, namespace=namespace, plural="pods"
        )
        return [_metrics_item_to_dict(item) for item in (resp or {}).get("items") or []]
    except Exception as e:
        raise _wrap_error("Failed to list pod metrics", e) from e


def read_pod_log(
    pod_name: str,
    namespace: str,
    container: Optional[str] = None,
    previous: bool = False,
    tail_lines: int = 500,
) -> str:
    """Read logs from a pod container.

    Args:
        pod_name: Name of the pod
        namespace: Kubernetes namespace
        container: Container name (optional, defaults to the only container)
        previous: If True, read logs from the previous terminated container instance
        tail_lines: Number of lines from the end to return

    Returns:
        Raw log text ("" when the container wrote nothing).
    """
    try:
        v1 = _get_core_v1()
        kwargs: Dict[str, Any] = {
            "name": pod_name,
            "namespace": namespace,
            "previous": previous,
            "tail_lines": tail_lines,
        }
        if container:
            kwargs["container"] = container
        return v1.read_namespaced_pod_log(**kwargs) or ""
    except Exception as e:
        raise _wrap_error("Failed to read pod logs", e) from e


def list_pods(namespace: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    List pods in one namespace, or across all namespaces when `namespace` is None.

    Each entry has the same shape as `get_pod_info`.
    """
    try:
        v1 = _get_core_v1()
        if namespace:
            pod_list = v1.list_namespaced_pod(namespace=namespace)
        else:
            pod_list = v1.list_pod_for_all_namespaces()
        return [_pod_to_dict(pod) for pod in pod_list.items or []]
    except Exception as e:
        raise _wrap_error("Failed to list pods", e) from e


def list_nodes() -> List[Dict[str, Any]]:
    try:
        v1 = _get_core_v1()
        nodes: List[Dict[str, Any]] = []
        for node in v1.list_node().items or []:
            conditions = []
            for c in getattr(getattr(node, "status", None), "conditions", None) or []:
                conditions.append(
                    {
                        "type": c.type,
                        "status": c.status,
                        "reason": getattr(c, "reason", None),
                        "message": getattr(c, "message", None),
                    }
                )
            nodes.append(
                {
                    "name": getattr(getattr(node, "metadata", None), "name", None),
                    "unschedulable": bool(getattr(getattr(node, "spec", None), "unschedulable", False)),
                    "conditions": conditions,
                }
            )
        return nodes
    except Exception as e:
        raise _wrap_error("Failed to list nodes", e) from e


def list_namespaces() -> List[Dict[str, Any]]:
    try:
        v1 = _get_core_v1()
        return [
            {
                "name": getattr(getattr(ns, "metadata", None), "name", None),
                "phase": getattr(getattr(ns, "status", None), "phase", None),
            }
            for ns in v1.list_namespace().items or []
        ]
    except Exception as e:
        raise _wrap_error("Failed to list namespaces", e) from e
