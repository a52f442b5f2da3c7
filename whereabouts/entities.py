"""Kubernetes object manifests used to exercise the IPAM plugin in a cluster."""

from __future__ import annotations

from typing import Any, Mapping, Optional

TEST_IMAGE = "quay.io/dougbtv/alpine:latest"
NETWORK_ATTACHMENT_ANNOTATION = "k8s.v1.cni.cncf.io/networks"
PARALLEL_POD_MANAGEMENT = "Parallel"

_SAMPLE_POD_NAME = "samplepod"
_STATEFUL_SET_LABEL_KEY = "app"


def _container_command() -> list[str]:
    return ["/bin/ash", "-c", "trap : TERM INT; sleep infinity & wait"]


def _pod_spec(container_name: str) -> dict[str, Any]:
    return {
        "containers": [
            {
                "name": container_name,
                "command": _container_command(),
                "image": TEST_IMAGE,
            }
        ]
    }


def _without_empty(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value not in (None, "", {})}


def _pod_meta(
    pod_name: str,
    namespace: str,
    labels: Optional[Mapping[str, str]],
    annotations: Optional[Mapping[str, str]],
) -> dict[str, Any]:
    return _without_empty(
        {
            "name": pod_name,
            "namespace": namespace,
            "labels": dict(labels) if labels else None,
            "annotations": dict(annotations) if annotations else None,
        }
    )


def pod_object(
    pod_name: str,
    namespace: str,
    labels: Optional[Mapping[str, str]],
    annotations: Optional[Mapping[str, str]],
) -> dict[str, Any]:
    """A pod running a single idle container."""
    return {
        "metadata": _pod_meta(pod_name, namespace, labels, annotations),
        "spec": _pod_spec(_SAMPLE_POD_NAME),
    }


def stateful_set_spec(
    stateful_set_name: str,
    namespace: str,
    service_name: str,
    replica_number: int,
    annotations: Optional[Mapping[str, str]],
) -> dict[str, Any]:
    """A stateful set whose pods start in parallel and are selected by service name."""
    web_app_labels = {_STATEFUL_SET_LABEL_KEY: service_name}
    return {
        "metadata": {"name": service_name},
        "spec": {
            "replicas": int(replica_number),
            "selector": {"matchLabels": dict(web_app_labels)},
            "template": {
                "metadata": _pod_meta(stateful_set_name, namespace, web_app_labels, annotations),
                "spec": _pod_spec(stateful_set_name),
            },
            "serviceName": service_name,
            "podManagementPolicy": PARALLEL_POD_MANAGEMENT,
        },
    }


def replica_set_object(
    replica_count: int,
    rs_name: str,
    namespace: str,
    labels: Optional[Mapping[str, str]],
    annotations: Optional[Mapping[str, str]],
) -> dict[str, Any]:
    """A replica set of idle pods carrying the given labels and annotations."""
    return {
        "apiVersion": "v1",
        "kind": "ReplicaSet",
        "metadata": _without_empty(
            {
                "name": rs_name,
                "namespace": namespace,
                "labels": dict(labels) if labels else None,
            }
        ),
        "spec": {
            "replicas": int(replica_count),
            "selector": {"matchLabels": dict(labels) if labels else {}},
            "template": {
                "metadata": _without_empty(
                    {
                        "labels": dict(labels) if labels else None,
                        "annotations": dict(annotations) if annotations else None,
                        "namespace": namespace,
                    }
                ),
                "spec": _pod_spec(_SAMPLE_POD_NAME),
            },
        },
    }


def replica_set_query(rs_name: str) -> str:
    """Label selector matching the pods of a replica set."""
    return "tier=" + rs_name


def pod_network_selection_elements(*network_names: str) -> dict[str, str]:
    """Annotations attaching a pod to the given networks."""
    return {NETWORK_ATTACHMENT_ANNOTATION: ",".join(network_names)}