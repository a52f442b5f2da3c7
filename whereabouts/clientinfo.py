"""High-level cluster operations that create objects and wait for them to settle."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from whereabouts.entities import (
    pod_network_selection_elements,
    pod_object,
    replica_set_object,
    replica_set_query,
    stateful_set_spec,
)
from whereabouts.waiting import (
    is_stateful_set_ready_predicate,
    wait_for_pod_by_selector,
    wait_for_pod_ready,
    wait_for_pod_to_disappear,
    wait_for_replica_set_to_disappear,
    wait_for_stateful_set_condition,
    wait_for_stateful_set_gone,
)

Obj = Mapping[str, Any]

POD = "Pod"
REPLICA_SET = "ReplicaSet"
STATEFUL_SET = "StatefulSet"
NET_ATTACH_DEF = "NetworkAttachmentDefinition"

FOREGROUND_PROPAGATION = "Foreground"

CREATE_TIMEOUT = 10.0
DELETE_TIMEOUT = 2 * CREATE_TIMEOUT
POD_CREATE_TIMEOUT = 10.0
POD_DELETE_TIMEOUT = 20.0
RS_CREATE_TIMEOUT = 600.0
RS_DELETE_TIMEOUT = 2 * RS_CREATE_TIMEOUT
STATEFUL_SET_CREATE_TIMEOUT = 60 * CREATE_TIMEOUT
STATEFUL_SET_DELETE_TIMEOUT = 6 * DELETE_TIMEOUT

log = logging.getLogger(__name__)


class _ClusterClient(Protocol):
    """Generic object access; get raises waiting.NotFoundError for missing objects."""

    def create(self, kind: str, namespace: str, obj: Obj) -> Obj: ...

    def get(self, kind: str, namespace: str, name: str) -> Obj: ...

    def update(self, kind: str, namespace: str, obj: Obj) -> Obj: ...

    def delete(
        self,
        kind: str,
        namespace: str,
        name: str,
        *,
        grace_period_seconds: Optional[int] = None,
        propagation_policy: Optional[str] = None,
    ) -> None: ...

    def list(self, kind: str, namespace: str, selector: str) -> list[Obj]: ...


@dataclass
class _ClusterView:
    """Adapts a generic client to the read access the waiting helpers need."""

    client: _ClusterClient

    def get_pod(self, namespace: str, name: str) -> Obj:
        return self.client.get(POD, namespace, name)

    def list_pods(self, namespace: str, selector: str) -> list[Obj]:
        return list(self.client.list(POD, namespace, selector))

    def get_replica_set(self, namespace: str, name: str) -> Obj:
        return self.client.get(REPLICA_SET, namespace, name)

    def get_stateful_set(self, namespace: str, name: str) -> Obj:
        return self.client.get(STATEFUL_SET, namespace, name)


def _meta(obj: Obj) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def _namespace(obj: Obj) -> str:
    return _meta(obj).get("namespace", "")


def _name(obj: Obj) -> str:
    return _meta(obj).get("name", "")


@dataclass
class ClientInfo:
    """Cluster operations used to drive end-to-end scenarios."""

    client: _ClusterClient

    @property
    def _view(self) -> _ClusterView:
        return _ClusterView(self.client)

    def add_net_attach_def(self, net_attach_def: Obj) -> Obj:
        """Create a network attachment definition in its own namespace."""
        return self.client.create(NET_ATTACH_DEF, _namespace(net_attach_def), net_attach_def)

    def del_net_attach_def(self, net_attach_def: Obj) -> None:
        """Delete a network attachment definition."""
        self.client.delete(NET_ATTACH_DEF, _namespace(net_attach_def), _name(net_attach_def))

    def provision_pod(
        self,
        pod_name: str,
        namespace: str,
        labels: Optional[Mapping[str, str]],
        annotations: Optional[Mapping[str, str]],
    ) -> Obj:
        """Create a pod, wait for it to run, and return its current state."""
        pod = pod_object(pod_name, namespace, labels, annotations)
        created = self.client.create(POD, _namespace(pod), pod)
        ns, name = _namespace(created), _name(created)
        wait_for_pod_ready(self._view, ns, name, POD_CREATE_TIMEOUT)
        return self.client.get(POD, ns, name)

    def delete_pod(self, pod: Obj) -> None:
        """Delete a pod and wait until it is gone."""
        ns, name = _namespace(pod), _name(pod)
        self.client.delete(POD, ns, name)
        wait_for_pod_to_disappear(self._view, ns, name, POD_DELETE_TIMEOUT)

    def provision_replica_set(
        self,
        rs_name: str,
        namespace: str,
        replica_count: int,
        labels: Optional[Mapping[str, str]],
        annotations: Optional[Mapping[str, str]],
    ) -> Obj:
        """Create a replica set, wait for its pods to run, and return its current state."""
        created = self.client.create(
            REPLICA_SET,
            namespace,
            replica_set_object(replica_count, rs_name, namespace, labels, annotations),
        )
        wait_for_pod_by_selector(self._view, namespace, replica_set_query(rs_name), RS_CREATE_TIMEOUT)
        return self.client.get(REPLICA_SET, namespace, _name(created))

    def update_replica_set(self, replica_set: Obj) -> Obj:
        """Replace a replica set with the given definition."""
        return self.client.update(REPLICA_SET, _namespace(replica_set), replica_set)

    def delete_replica_set(self, replica_set: Obj) -> None:
        """Delete a replica set and wait until it is gone."""
        ns, name = _namespace(replica_set), _name(replica_set)
        self.client.delete(REPLICA_SET, ns, name)
        wait_for_replica_set_to_disappear(self._view, ns, name, RS_DELETE_TIMEOUT)

    def provision_stateful_set(
        self,
        stateful_set_name: str,
        namespace: str,
        service_name: str,
        replicas: int,
        *network_names: str,
    ) -> Obj:
        """Create a stateful set attached to the networks and wait for all replicas to be ready."""
        created = self.client.create(
            STATEFUL_SET,
            namespace,
            stateful_set_spec(
                stateful_set_name,
                namespace,
                service_name,
                replicas,
                pod_network_selection_elements(*network_names),
            ),
        )
        wait_for_stateful_set_condition(
            self._view,
            namespace,
            service_name,
            replicas,
            STATEFUL_SET_CREATE_TIMEOUT,
            is_stateful_set_ready_predicate,
        )
        return created

    def delete_stateful_set(self, namespace: str, service_name: str, label_selector: str) -> None:
        """Delete a stateful set at once, with its pods, and wait until both are gone."""
        self.client.delete(
            STATEFUL_SET,
            namespace,
            service_name,
            grace_period_seconds=0,
            propagation_policy=FOREGROUND_PROPAGATION,
        )
        wait_for_stateful_set_gone(
            self._view, namespace, service_name, label_selector, STATEFUL_SET_DELETE_TIMEOUT
        )

    def scale_stateful_set(self, stateful_set_name: str, namespace: str, delta_instances: int) -> None:
        """Change a stateful set's desired replica count by delta_instances."""
        stateful_set = copy.deepcopy(dict(self.client.get(STATEFUL_SET, namespace, stateful_set_name)))
        spec = stateful_set.setdefault("spec", {})
        spec["replicas"] = spec.get("replicas", 0) + delta_instances
        log.debug("scaling %s/%s to %d replicas", namespace, stateful_set_name, spec["replicas"])
        self.client.update(STATEFUL_SET, namespace, stateful_set)