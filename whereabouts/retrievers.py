"""Read a pod's secondary interface addresses from its network status annotation."""

from __future__ import annotations

import json
from typing import Any, Mapping

NETWORK_STATUS_ANNOTATION = "k8s.v1.cni.cncf.io/network-status"
SECONDARY_INTERFACE = "net1"


def secondary_iface_ip_value(pod: Mapping[str, Any]) -> list[str]:
    """Addresses of the pod's secondary interface, as reported in its annotations."""
    annotations = (pod.get("metadata") or {}).get("annotations") or {}
    try:
        raw_status = annotations[NETWORK_STATUS_ANNOTATION]
    except KeyError:
        raise ValueError("the pod must feature the `networks-status` annotation") from None

    statuses = json.loads(raw_status) or []
    if not isinstance(statuses, list):
        raise ValueError("the network status annotation must hold a list")

    status = next(
        (entry for entry in statuses if entry.get("interface") == SECONDARY_INTERFACE),
        None,
    )
    if status is None:
        raise ValueError("the pod does not have the requested secondary interface")

    ips = status.get("ips") or []
    if not ips:
        raise ValueError("the pod does not have IPs for its secondary interfaces")
    return list(ips)