import ipaddress
import json

import pytest

from whereabouts.allocate import IPReservation
from whereabouts.poolconsistency import PoolConsistencyChecker
from whereabouts.retrievers import NETWORK_STATUS_ANNOTATION


class MockedPool:
    def __init__(self, *reservations):
        self.reservations = list(reservations)

    def allocations(self):
        return self.reservations


def new_pod(name, namespace, *ips):
    statuses = [
        {"name": f"net{i}", "interface": f"net{i}", "ips": [addr]}
        for i, addr in enumerate(ips, start=1)
    ]
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": {NETWORK_STATUS_ANNOTATION: json.dumps(statuses)},
        }
    }


def ip_reservation(addr):
    return IPReservation(ipaddress.ip_address(addr))


@pytest.mark.parametrize("pods", [[], [new_pod("1", "2", "111.111.111.111")]])
def test_empty_pool_has_no_stale_ips(pods):
    assert PoolConsistencyChecker(MockedPool(), pods).stale_ips() == []


def test_allocations_pointing_to_pods_with_other_addresses_are_stale():
    pool = MockedPool(
        IPReservation(ipaddress.ip_address("192.168.200.2"), "abc", "cba", True)
    )
    live = [new_pod("pod", "default", "192.168.123.200")]
    assert PoolConsistencyChecker(pool, live).stale_ips() == ["192.168.200.2"]


@pytest.mark.parametrize("pool", [MockedPool(), MockedPool(ip_reservation("192.168.200.2"))])
def test_no_running_pods_means_no_missing_ips(pool):
    assert PoolConsistencyChecker(pool, []).missing_ips() == []


def test_consistent_pool_has_no_missing_ips():
    live = [new_pod("1", "2", "192.168.200.2")]
    checker = PoolConsistencyChecker(MockedPool(ip_reservation("192.168.200.2")), live)
    assert checker.missing_ips() == []
    assert checker.stale_ips() == []


def test_inconsistent_pool_has_missing_ips():
    live = [new_pod("1", "2", "192.168.200.2")]
    checker = PoolConsistencyChecker(MockedPool(ip_reservation("192.168.123.200")), live)
    assert checker.missing_ips() == ["192.168.200.2"]


def test_unreadable_pod_yields_no_missing_ips():
    unreadable = {"metadata": {"annotations": {}}}
    live = [new_pod("1", "2", "192.168.200.2"), unreadable]
    assert PoolConsistencyChecker(MockedPool(), live).missing_ips() == []