"""Compare an IP pool's allocations with the addresses live pods hold."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from whereabouts.allocate import IPReservation
from whereabouts.retrievers import secondary_iface_ip_value


class IPPool(Protocol):
    def allocations(self) -> Sequence[IPReservation]: ...


def _pod_ip(pod: Mapping[str, Any]) -> Optional[str]:
    try:
        return secondary_iface_ip_value(pod)[-1]
    except ValueError:
        return None


@dataclass
class PoolConsistencyChecker:
    """Checks a pool against the pods that should account for its allocations."""

    ip_pool: IPPool
    pods: Sequence[Mapping[str, Any]] = ()

    def _reserved_ips(self) -> list[str]:
        return [str(allocation.ip) for allocation in self.ip_pool.allocations()]

    def missing_ips(self) -> list[str]:
        """Pod addresses that the pool does not hold; empty if any pod is unreadable."""
        reserved = set(self._reserved_ips())
        missing = []
        for pod in self.pods:
            pod_ip = _pod_ip(pod)
            if pod_ip is None:
                return []
            if pod_ip not in reserved:
                missing.append(pod_ip)
        return missing

    def stale_ips(self) -> list[str]:
        """Pool addresses that no live pod holds."""
        live = {pod_ip for pod_ip in map(_pod_ip, self.pods) if pod_ip is not None}
        return [reserved for reserved in self._reserved_ips() if reserved not in live]