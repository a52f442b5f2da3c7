from whereabouts.entities import (
    NETWORK_ATTACHMENT_ANNOTATION,
    TEST_IMAGE,
    pod_network_selection_elements,
    pod_object,
    replica_set_object,
    replica_set_query,
    stateful_set_spec,
)

COMMAND = ["/bin/ash", "-c", "trap : TERM INT; sleep infinity & wait"]


def test_pod_object_metadata_and_container():
    pod = pod_object("mypod", "ns1", {"tier": "x"}, {"a": "b"})
    assert pod["metadata"] == {
        "name": "mypod",
        "namespace": "ns1",
        "labels": {"tier": "x"},
        "annotations": {"a": "b"},
    }
    containers = pod["spec"]["containers"]
    assert len(containers) == 1
    assert containers[0]["name"] == "samplepod"
    assert containers[0]["image"] == "quay.io/dougbtv/alpine:latest"
    assert containers[0]["command"] == COMMAND


def test_pod_object_omits_missing_labels():
    pod = pod_object("mypod", "ns1", None, None)
    assert "labels" not in pod["metadata"]
    assert "annotations" not in pod["metadata"]


def test_pod_object_copies_labels():
    labels = {"tier": "x"}
    pod = pod_object("mypod", "ns1", labels, None)
    labels["tier"] = "changed"
    assert pod["metadata"]["labels"] == {"tier": "x"}


def test_stateful_set_spec():
    annotations = pod_network_selection_elements("net-a")
    sts = stateful_set_spec("thing", "default", "web", 3, annotations)
    assert sts["metadata"] == {"name": "web"}
    spec = sts["spec"]
    assert spec["replicas"] == 3
    assert spec["selector"]["matchLabels"] == {"app": "web"}
    assert spec["serviceName"] == "web"
    assert spec["podManagementPolicy"] == "Parallel"
    template = spec["template"]
    assert template["metadata"]["name"] == "thing"
    assert template["metadata"]["namespace"] == "default"
    assert template["metadata"]["labels"] == {"app": "web"}
    assert template["metadata"]["annotations"] == annotations
    assert template["spec"]["containers"][0]["name"] == "thing"
    assert template["spec"]["containers"][0]["image"] == TEST_IMAGE


def test_replica_set_object():
    labels = {"tier": "rs"}
    annotations = pod_network_selection_elements("n1")
    rs = replica_set_object(4, "rs", "default", labels, annotations)
    assert rs["apiVersion"] == "v1"
    assert rs["kind"] == "ReplicaSet"
    assert rs["metadata"] == {"name": "rs", "namespace": "default", "labels": labels}
    assert rs["spec"]["replicas"] == 4
    assert rs["spec"]["selector"]["matchLabels"] == labels
    template = rs["spec"]["template"]
    assert template["metadata"] == {
        "labels": labels,
        "annotations": annotations,
        "namespace": "default",
    }
    assert template["spec"]["containers"][0]["name"] == "samplepod"
    assert template["spec"]["containers"][0]["command"] == COMMAND


def test_replica_set_object_with_zero_replicas():
    rs = replica_set_object(0, "rs", "default", {"tier": "rs"}, None)
    assert rs["spec"]["replicas"] == 0


def test_replica_set_query():
    assert replica_set_query("whereabouts-scale-test") == "tier=whereabouts-scale-test"


def test_pod_network_selection_elements_joins_names():
    assert pod_network_selection_elements("a", "b", "c") == {
        NETWORK_ATTACHMENT_ANNOTATION: "a,b,c"
    }


def test_pod_network_selection_elements_key():
    result = pod_network_selection_elements("wa-nad")
    assert result == {"k8s.v1.cni.cncf.io/networks": "wa-nad"}


def test_pod_network_selection_elements_empty():
    assert pod_network_selection_elements() == {NETWORK_ATTACHMENT_ANNOTATION: ""}