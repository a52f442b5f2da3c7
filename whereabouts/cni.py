"""CNI IPAM commands: build and print the ADD result, release on DEL."""

from __future__ import annotations

import ipaddress
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Union

from whereabouts.allocate import IPAddress, IPInterface, is_ipv4

ALLOCATE = "allocate"
DEALLOCATE = "deallocate"

_CURRENT_VERSIONS = frozenset({"0.3.0", "0.3.1", "0.4.0"})
_LEGACY_VERSIONS = frozenset({"0.1.0", "0.2.0"})

log = logging.getLogger(__name__)


class NotImplementedCheckError(NotImplementedError):
    """The CNI CHECK command is not supported."""


class _IPAM(Protocol):
    """An IPAM backend bound to one container."""

    config: Any

    def ip_management(self, mode: str, config: Any) -> Sequence[IPInterface]: ...


def _interface(value: Union[str, IPInterface]) -> IPInterface:
    if isinstance(value, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return value
    return ipaddress.ip_interface(value)


def _gateway(value: Union[None, str, IPAddress]) -> Optional[IPAddress]:
    if value is None or isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value
    return ipaddress.ip_address(value)


@dataclass
class IPConfig:
    """One address handed to the container."""

    version: str
    address: IPInterface
    gateway: Optional[IPAddress] = None

    def __post_init__(self) -> None:
        self.address = _interface(self.address)
        self.gateway = _gateway(self.gateway)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"version": self.version, "address": str(self.address)}
        if self.gateway is not None:
            out["gateway"] = str(self.gateway)
        return out


def _route_dict(route: Mapping[str, Any]) -> dict[str, str]:
    return {key: str(value) for key, value in route.items() if value is not None}


def _route_is_v4(route: Mapping[str, Any]) -> bool:
    return ipaddress.ip_network(str(route["dst"]), strict=False).version == 4


@dataclass
class CNIResult:
    """The result of an ADD command."""

    ips: list[IPConfig] = field(default_factory=list)
    routes: list[Mapping[str, Any]] = field(default_factory=list)
    dns: Mapping[str, Any] = field(default_factory=dict)

    def to_json(self, cni_version: str) -> str:
        """Serialize the result in the layout of the requested CNI spec version."""
        if cni_version in _CURRENT_VERSIONS:
            body = self._current(cni_version)
        elif cni_version in _LEGACY_VERSIONS:
            body = self._legacy(cni_version)
        else:
            raise ValueError(f"unsupported CNI result version {cni_version!r}")
        return json.dumps(body, indent=4)

    def _current(self, cni_version: str) -> dict[str, Any]:
        body: dict[str, Any] = {"cniVersion": cni_version}
        if self.ips:
            body["ips"] = [ip._to_dict() for ip in self.ips]
        if self.routes:
            body["routes"] = [_route_dict(route) for route in self.routes]
        body["dns"] = dict(self.dns)
        return body

    def _legacy(self, cni_version: str) -> dict[str, Any]:
        families: dict[str, dict[str, Any]] = {}
        for ip in self.ips:
            key = "ip4" if ip.version == "4" else "ip6"
            if key not in families:
                entry: dict[str, Any] = {"ip": str(ip.address)}
                if ip.gateway is not None:
                    entry["gateway"] = str(ip.gateway)
                families[key] = entry
        if not families:
            raise ValueError("cannot convert: no valid IP addresses")
        for route in self.routes:
            key = "ip4" if _route_is_v4(route) else "ip6"
            if key in families:
                families[key].setdefault("routes", []).append(_route_dict(route))
        body: dict[str, Any] = {"cniVersion": cni_version}
        body.update((key, families[key]) for key in ("ip4", "ip6") if key in families)
        body["dns"] = dict(self.dns)
        return body


def build_add_result(new_ips: Iterable[IPInterface], config: Any) -> CNIResult:
    """Allocated addresses behind the config's gateway, then the static addresses."""
    gateway = getattr(config, "gateway", None)
    ips = [
        IPConfig("4" if is_ipv4(ip.ip) else "6", ip, gateway)
        for ip in map(_interface, new_ips)
    ]
    ips.extend(
        IPConfig(static.version, static.address, static.gateway)
        for static in getattr(config, "addresses", None) or ()
    )
    return CNIResult(
        ips=ips,
        routes=list(getattr(config, "routes", None) or ()),
        dns=dict(getattr(config, "dns", None) or {}),
    )


def cmd_add(container_id: str, ipam: _IPAM, cni_version: str) -> CNIResult:
    """Allocate addresses for the container and print the result to stdout."""
    log.debug("Beginning IPAM for ContainerID: %s", container_id)
    try:
        new_ips = ipam.ip_management(ALLOCATE, ipam.config)
    except Exception as err:
        log.error("Error at storage engine: %s", err)
        raise RuntimeError(f"error at storage engine: {err}") from err
    result = build_add_result(new_ips, ipam.config)
    sys.stdout.write(result.to_json(cni_version))
    sys.stdout.flush()
    return result


def cmd_del(container_id: str, ipam: _IPAM) -> None:
    """Release the container's addresses; failures are logged, never raised."""
    log.debug("Beginning delete for ContainerID: %s", container_id)
    try:
        ipam.ip_management(DEALLOCATE, ipam.config)
    except Exception as err:
        log.info("WARNING: Problem deallocating IP: %s", err)


def cmd_check(container_id: str) -> None:
    """Reject a CHECK request for the container: the command is unsupported."""
    message = "CNI CHECK method is not implemented"
    log.error("CHECK requested for ContainerID %s: %s", container_id, message)
    raise NotImplementedCheckError(message)