"""Polling helpers that wait for cluster objects to reach a desired state."""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Protocol, Sequence

Obj = Mapping[str, Any]

POLL_INTERVAL = 1.0


class NotFoundError(LookupError):
    """The requested cluster object does not exist."""


class WaitTimeoutError(TimeoutError):
    """A condition was not met before the time limit."""


class Cluster(Protocol):
    """Read access to the cluster objects the helpers wait on.

    Getters raise NotFoundError for objects that do not exist.
    """

    def get_pod(self, namespace: str, name: str) -> Obj: ...

    def list_pods(self, namespace: str, selector: str) -> list[Obj]: ...

    def get_replica_set(self, namespace: str, name: str) -> Obj: ...

    def get_stateful_set(self, namespace: str, name: str) -> Obj: ...


class PoolSource(Protocol):
    def get_ip_pool(self, ip_range: str) -> Any: ...


def poll_immediate(interval: float, timeout: float, condition: Callable[[], bool]) -> None:
    """Check condition now and then every interval until it holds or timeout passes.

    Exceptions raised by the condition end the wait and propagate.
    """
    deadline = time.monotonic() + timeout
    while True:
        if condition():
            return
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeoutError("timed out waiting for the condition")
        time.sleep(min(interval, remaining))


def _status(obj: Obj) -> Mapping[str, Any]:
    return obj.get("status") or {}


def list_pods(cluster: Cluster, namespace: str, selector: str) -> list[Obj]:
    """Pods in namespace matching the label selector."""
    return list(cluster.list_pods(namespace, selector))


def _is_pod_running(cluster: Cluster, pod_name: str, namespace: str) -> Callable[[], bool]:
    def condition() -> bool:
        phase = _status(cluster.get_pod(namespace, pod_name)).get("phase")
        if phase == "Running":
            return True
        if phase == "Failed":
            raise RuntimeError("pod failed")
        if phase == "Succeeded":
            raise RuntimeError("pod succeeded")
        return False

    return condition


def _is_pod_gone(cluster: Cluster, pod_name: str, namespace: str) -> Callable[[], bool]:
    def condition() -> bool:
        try:
            cluster.get_pod(namespace, pod_name)
        except NotFoundError:
            return True
        except Exception as err:
            raise RuntimeError(f"something weird happened with the pod. Errors: {err}") from err
        return False

    return condition


def wait_for_pod_ready(cluster: Cluster, namespace: str, pod_name: str, timeout: float) -> None:
    """Wait for the pod to run; a pod that fails or completes is an error."""
    poll_immediate(POLL_INTERVAL, timeout, _is_pod_running(cluster, pod_name, namespace))


def wait_for_pod_to_disappear(cluster: Cluster, namespace: str, pod_name: str, timeout: float) -> None:
    """Wait until the pod no longer exists."""
    poll_immediate(POLL_INTERVAL, timeout, _is_pod_gone(cluster, pod_name, namespace))


def wait_for_pod_by_selector(cluster: Cluster, namespace: str, selector: str, timeout: float) -> None:
    """Wait for every pod matching the selector to run; no pods means nothing to wait for."""
    for pod in list_pods(cluster, namespace, selector):
        wait_for_pod_ready(cluster, namespace, pod["metadata"]["name"], timeout)


def is_replica_set_synchronized(replica_set: Obj, pods: Sequence[Obj]) -> bool:
    """Ready replicas and matching pods both equal the desired replica count."""
    desired = (replica_set.get("spec") or {}).get("replicas", 0)
    ready = _status(replica_set).get("readyReplicas", 0)
    return ready == desired and len(pods) == desired


def _is_replica_set_steady(
    cluster: Cluster, replica_set_name: str, namespace: str, label: str
) -> Callable[[], bool]:
    def condition() -> bool:
        pods = list_pods(cluster, namespace, label)
        replica_set = cluster.get_replica_set(namespace, replica_set_name)
        return is_replica_set_synchronized(replica_set, pods)

    return condition


def _is_replica_set_gone(cluster: Cluster, rs_name: str, namespace: str) -> Callable[[], bool]:
    def condition() -> bool:
        try:
            cluster.get_replica_set(namespace, rs_name)
        except NotFoundError:
            return True
        except Exception as err:
            raise RuntimeError(
                f"something weird happened with the replicaset. Errors: {err}"
            ) from err
        return False

    return condition


def wait_for_replica_set_steady_state(
    cluster: Cluster, namespace: str, label: str, replica_set: Obj, timeout: float
) -> None:
    """Wait for the replica set's pods to match its spec.

    Leftover pods matching the label from earlier runs will skew the count.
    """
    name = replica_set["metadata"]["name"]
    poll_immediate(POLL_INTERVAL, timeout, _is_replica_set_steady(cluster, name, namespace, label))


def wait_for_replica_set_to_disappear(cluster: Cluster, namespace: str, rs_name: str, timeout: float) -> None:
    """Wait until the replica set no longer exists."""
    poll_immediate(POLL_INTERVAL, timeout, _is_replica_set_gone(cluster, rs_name, namespace))


def is_stateful_set_ready_predicate(stateful_set: Obj, expected_replicas: int) -> bool:
    """Exactly the expected number of replicas are ready."""
    return _status(stateful_set).get("readyReplicas", 0) == expected_replicas


def is_stateful_set_degraded_predicate(stateful_set: Obj, expected_replicas: int) -> bool:
    """Fewer replicas than expected are ready."""
    return _status(stateful_set).get("readyReplicas", 0) < expected_replicas


def _is_stateful_set_gone(
    cluster: Cluster, service_name: str, namespace: str, label_selector: str
) -> Callable[[], bool]:
    def condition() -> bool:
        try:
            stateful_set: Obj = cluster.get_stateful_set(namespace, service_name)
        except NotFoundError:
            stateful_set = {}
        except Exception as err:
            raise RuntimeError(
                f"something weird happened with the stateful set. Errors: {err}"
            ) from err
        pods = cluster.list_pods(namespace, label_selector)
        empty = _status(stateful_set).get("currentReplicas", 0) == 0
        return empty and len(pods) == 0

    return condition


def wait_for_stateful_set_gone(
    cluster: Cluster, namespace: str, service_name: str, label_selector: str, timeout: float
) -> None:
    """Wait until the stateful set has no replicas and no pods match the selector."""
    poll_immediate(
        POLL_INTERVAL, timeout, _is_stateful_set_gone(cluster, service_name, namespace, label_selector)
    )


def wait_for_stateful_set_condition(
    cluster: Cluster,
    namespace: str,
    service_name: str,
    expected_replicas: int,
    timeout: float,
    predicate: Callable[[Obj, int], bool],
) -> None:
    """Wait until predicate holds for the stateful set and the expected replica count."""

    def condition() -> bool:
        return predicate(cluster.get_stateful_set(namespace, service_name), expected_replicas)

    poll_immediate(POLL_INTERVAL, timeout, condition)


def wait_for_zero_ip_pool_allocations(ipam: PoolSource, ip_pool_cidr: str, timeout: float) -> None:
    """Wait until the pool for the range holds no allocations."""

    def condition() -> bool:
        return len(ipam.get_ip_pool(ip_pool_cidr).allocations()) == 0

    poll_immediate(POLL_INTERVAL, timeout, condition)