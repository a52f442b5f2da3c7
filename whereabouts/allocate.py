"""IP address assignment and release within a range of addresses."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
Matcher = Callable[[Sequence["IPReservation"], str], int]

log = logging.getLogger(__name__)

_V4_MAPPED_PREFIX = 0xFFFF << 32
_ADDRESS_MASK = (1 << 128) - 1
_UINT64_MASK = (1 << 64) - 1
_MAX_UINT32 = 0xFFFFFFFF


def _address(value: Union[str, int, IPAddress]) -> IPAddress:
    """Parse an address, folding IPv4-mapped IPv6 addresses into IPv4."""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        ip = value
    else:
        ip = ipaddress.ip_address(value)
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _network(value: Union[str, IPNetwork]) -> IPNetwork:
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value
    return ipaddress.ip_network(value, strict=False)


def _wide(ip: IPAddress) -> int:
    """The 128-bit value of an address, IPv4 in its mapped form."""
    return _V4_MAPPED_PREFIX | int(ip) if ip.version == 4 else int(ip)


def _narrow(value: int) -> IPAddress:
    value &= _ADDRESS_MASK
    if value >> 32 == 0xFFFF:
        return ipaddress.IPv4Address(value & _MAX_UINT32)
    return ipaddress.IPv6Address(value)


class AssignmentError(Exception):
    """No free address is left in the requested range."""

    def __init__(self, first_ip: IPAddress, last_ip: IPAddress, ipnet: IPNetwork) -> None:
        self.first_ip = first_ip
        self.last_ip = last_ip
        self.ipnet = ipnet
        super().__init__(
            f"Could not allocate IP in range: ip: {first_ip} / - {last_ip} / range: {ipnet}"
        )


@dataclass
class IPReservation:
    """An address held by a container."""

    ip: IPAddress
    container_id: str = ""
    pod_ref: str = ""
    is_allocated: bool = False

    def __post_init__(self) -> None:
        self.ip = _address(self.ip)


@dataclass
class RangeConfiguration:
    """A CIDR to allocate from, optionally bounded and with omitted subnets."""

    range: str
    range_start: Optional[IPAddress] = None
    range_end: Optional[IPAddress] = None
    omit_ranges: list[str] = field(default_factory=list)


def assign_ip(
    range_config: RangeConfiguration,
    reservations: Sequence[IPReservation],
    container_id: str,
    pod_ref: str,
) -> tuple[IPInterface, list[IPReservation]]:
    """Reserve the first free address of the configured range."""
    ipnet = _network(range_config.range)
    start = range_config.range_start
    if start is None:
        start = ipnet.network_address
    ip, updated = iterate_for_assignment(
        ipnet,
        start,
        range_config.range_end,
        reservations,
        range_config.omit_ranges,
        container_id,
        pod_ref,
    )
    interface_type = ipaddress.IPv4Interface if ip.version == 4 else ipaddress.IPv6Interface
    return interface_type((ip, ipnet.prefixlen)), updated


def _matching_reservation_index(reservations: Sequence[IPReservation], container_id: str) -> int:
    return next(
        (idx for idx, reservation in enumerate(reservations) if reservation.container_id == container_id),
        -1,
    )


def deallocate_ip(
    reservations: Sequence[IPReservation], container_id: str
) -> tuple[list[IPReservation], IPAddress]:
    """Release the address held by a container."""
    updated, released = iterate_for_deallocation(reservations, container_id)
    log.debug("Deallocating given previously used IP: %s", released)
    return updated, released


def iterate_for_deallocation(
    reservations: Sequence[IPReservation],
    container_id: str,
    matcher: Optional[Matcher] = None,
) -> tuple[list[IPReservation], IPAddress]:
    """Remove the reservation the matcher picks; the last entry takes its place."""
    match = matcher if matcher is not None else _matching_reservation_index
    idx = match(reservations, container_id)
    if idx < 0:
        raise LookupError(f"did not find reserved IP for container {container_id}")
    released = reservations[idx].ip
    updated = list(reservations)
    updated[idx] = updated[-1]
    updated.pop()
    return updated, released


def ip_get_offset(ip1: Union[str, IPAddress], ip2: Union[str, IPAddress]) -> int:
    """Distance from ip2 up to ip1; 0 when the address families differ."""
    a, b = _address(ip1), _address(ip2)
    if a.version != b.version:
        return 0
    return (_wide(a) - _wide(b)) & _UINT64_MASK


def ip_add_offset(ip: Union[str, IPAddress], offset: int) -> Optional[IPAddress]:
    """The address offset steps above ip; None when the offset is too large for IPv4."""
    if not 0 <= offset <= _UINT64_MASK:
        raise ValueError(f"offset out of range: {offset}")
    address = _address(ip)
    if address.version == 4 and offset >= _MAX_UINT32:
        return None
    return _narrow(_wide(address) + offset)


def get_ip_range(ip: Union[str, IPAddress], ipnet: Union[str, IPNetwork]) -> tuple[IPAddress, IPAddress]:
    """First and last assignable address of ipnet, starting from ip."""
    address = _address(ip)
    network = _network(ipnet)
    if address.version != network.version:
        raise ValueError(f"address {address} does not belong to the family of {network}")
    host_bits = network.max_prefixlen - network.prefixlen
    if host_bits < 2:
        raise ValueError(f"net mask is too short, must be 2 or more: {host_bits}")

    hostmask = int(network.hostmask)
    network_part = int(address) & int(network.netmask)
    first = 0x1 if address == network.network_address else int(address) & hostmask
    last = hostmask - 1 if address.version == 4 else hostmask
    make = type(address)
    return make(network_part | first), make(network_part | last)


def _skip_excluded(candidate: IPAddress, subnet: IPNetwork) -> IPAddress:
    try:
        _, last_excluded = get_ip_range(subnet.network_address, subnet)
    except ValueError:
        return candidate
    if candidate.version == 4:
        skipped = ip_add_offset(last_excluded, 1)
    else:
        skipped = last_excluded
    log.debug("excluding %s and moving to the next available ip: %s", subnet, skipped)
    return skipped


def iterate_for_assignment(
    ipnet: Union[str, IPNetwork],
    range_start: Union[str, IPAddress],
    range_end: Optional[Union[str, IPAddress]],
    reservations: Sequence[IPReservation],
    exclude_ranges: Iterable[str],
    container_id: str,
    pod_ref: str,
) -> tuple[IPAddress, list[IPReservation]]:
    """Find the first address that is neither reserved nor excluded and reserve it."""
    network = _network(ipnet)
    start = _address(range_start)
    if range_end is not None:
        first, last = start, _address(range_end)
    else:
        try:
            first, last = get_ip_range(start, network)
        except ValueError as err:
            log.error("GetIPRange request failed with: %s", err)
            raise
    log.debug(
        "IterateForAssignment input >> ip: %s | ipnet: %s | first IP: %s | last IP: %s",
        start, network, first, last,
    )

    reserved = {reservation.ip for reservation in reservations}
    excluded = [_network(cidr) for cidr in exclude_ranges]

    end = ip_add_offset(last, 1)
    candidate = first
    while candidate != end:
        if candidate not in reserved:
            was_excluded = False
            for subnet in excluded:
                if candidate in subnet:
                    was_excluded = True
                    candidate = _skip_excluded(candidate, subnet)
            if not was_excluded:
                break
        candidate = ip_add_offset(candidate, 1)
    else:
        raise AssignmentError(first, last, network)

    log.debug("Reserving IP: |%s %s|", candidate, container_id)
    updated = [*reservations, IPReservation(candidate, container_id, pod_ref)]
    return candidate, updated


def is_ipv4(ip: Union[str, IPAddress]) -> bool:
    """Whether the address is IPv4, IPv4-mapped IPv6 included."""
    return _address(ip).version == 4