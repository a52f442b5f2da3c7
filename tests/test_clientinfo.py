import copy

import pytest

from whereabouts.clientinfo import ClientInfo
from whereabouts.entities import NETWORK_ATTACHMENT_ANNOTATION
from whereabouts.waiting import NotFoundError


class FakeCluster:
    def __init__(self, pod_phase="Running"):
        self.objects = {}
        self.pod_phase = pod_phase
        self.deletions = []

    def _key(self, kind, namespace, name):
        return (kind, namespace, name)

    def create(self, kind, namespace, obj):
        stored = copy.deepcopy(dict(obj))
        stored.setdefault("metadata", {}).setdefault("namespace", namespace)
        if kind == "Pod":
            stored["status"] = {"phase": self.pod_phase}
        if kind == "StatefulSet":
            replicas = stored["spec"]["replicas"]
            stored["status"] = {"readyReplicas": replicas, "currentReplicas": replicas}
        name = stored["metadata"].get("name", "")
        self.objects[self._key(kind, namespace, name)] = stored
        return copy.deepcopy(stored)

    def get(self, kind, namespace, name):
        try:
            return copy.deepcopy(self.objects[self._key(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(name) from None

    def update(self, kind, namespace, obj):
        key = self._key(kind, namespace, obj["metadata"]["name"])
        if key not in self.objects:
            raise NotFoundError(key[2])
        self.objects[key] = copy.deepcopy(dict(obj))
        return copy.deepcopy(self.objects[key])

    def delete(self, kind, namespace, name, *, grace_period_seconds=None, propagation_policy=None):
        key = self._key(kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(name)
        del self.objects[key]
        self.deletions.append((kind, name, grace_period_seconds, propagation_policy))

    def list(self, kind, namespace, selector):
        label_key, _, label_value = selector.partition("=")
        return [
            copy.deepcopy(obj)
            for (k, ns, _), obj in self.objects.items()
            if k == kind
            and ns == namespace
            and (obj.get("metadata", {}).get("labels") or {}).get(label_key) == label_value
        ]


def nad(name, namespace):
    return {"metadata": {"name": name, "namespace": namespace}, "spec": {"config": "{}"}}


def test_net_attach_def_round_trip():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    created = info.add_net_attach_def(nad("wa-nad", "default"))
    assert created["metadata"]["name"] == "wa-nad"
    assert cluster.get("NetworkAttachmentDefinition", "default", "wa-nad")["spec"] == {"config": "{}"}
    info.del_net_attach_def(created)
    with pytest.raises(NotFoundError):
        cluster.get("NetworkAttachmentDefinition", "default", "wa-nad")


def test_provision_pod_returns_running_pod():
    info = ClientInfo(FakeCluster())
    pod = info.provision_pod(
        "whereabouts-basic-test", "default", {"tier": "whereabouts-basic-test"}, {"k": "v"}
    )
    assert pod["metadata"]["name"] == "whereabouts-basic-test"
    assert pod["metadata"]["labels"] == {"tier": "whereabouts-basic-test"}
    assert pod["status"]["phase"] == "Running"


def test_provision_pod_that_fails_raises():
    info = ClientInfo(FakeCluster(pod_phase="Failed"))
    with pytest.raises(RuntimeError, match="pod failed"):
        info.provision_pod("p", "default", None, None)


def test_delete_pod_removes_it():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    pod = info.provision_pod("p", "default", None, None)
    info.delete_pod(pod)
    assert [d[:2] for d in cluster.deletions] == [("Pod", "p")]
    with pytest.raises(NotFoundError):
        cluster.get("Pod", "default", "p")


def test_delete_missing_pod_raises_not_found():
    info = ClientInfo(FakeCluster())
    with pytest.raises(NotFoundError):
        info.delete_pod({"metadata": {"name": "ghost", "namespace": "default"}})


def test_replica_set_lifecycle():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    labels = {"tier": "whereabouts-scale-test"}
    rs = info.provision_replica_set("whereabouts-scale-test", "default", 0, labels, None)
    assert rs["spec"]["replicas"] == 0
    assert rs["spec"]["selector"]["matchLabels"] == labels

    rs["spec"]["replicas"] = 3
    updated = info.update_replica_set(rs)
    assert updated["spec"]["replicas"] == 3
    assert cluster.get("ReplicaSet", "default", "whereabouts-scale-test")["spec"]["replicas"] == 3

    info.delete_replica_set(updated)
    with pytest.raises(NotFoundError):
        cluster.get("ReplicaSet", "default", "whereabouts-scale-test")


def test_provision_stateful_set_attaches_networks():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    created = info.provision_stateful_set("statefulthingy", "default", "web", 20, "net-a", "net-b")
    annotations = created["spec"]["template"]["metadata"]["annotations"]
    assert annotations[NETWORK_ATTACHMENT_ANNOTATION] == "net-a,net-b"
    assert cluster.get("StatefulSet", "default", "web")["status"]["readyReplicas"] == 20


def test_delete_stateful_set_is_immediate_and_foreground():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    info.provision_stateful_set("statefulthingy", "default", "web", 2, "meganet2000")
    info.delete_stateful_set("default", "web", "app=web")
    assert cluster.deletions == [("StatefulSet", "web", 0, "Foreground")]
    with pytest.raises(NotFoundError):
        cluster.get("StatefulSet", "default", "web")


def test_scale_stateful_set_up_and_down():
    cluster = FakeCluster()
    info = ClientInfo(cluster)
    info.provision_stateful_set("statefulthingy", "default", "web", 20, "wa-nad")
    info.scale_stateful_set("web", "default", 5)
    assert cluster.get("StatefulSet", "default", "web")["spec"]["replicas"] == 25
    info.scale_stateful_set("web", "default", -5)
    assert cluster.get("StatefulSet", "default", "web")["spec"]["replicas"] == 20


def test_scale_missing_stateful_set_raises():
    info = ClientInfo(FakeCluster())
    with pytest.raises(NotFoundError):
        info.scale_stateful_set("web", "default", 1)