"""Settings of an end-to-end test environment, read from the process environment."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

MAX_PODS_PER_NODE = 110

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _atoi(value: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise ValueError(f"invalid integer: {value!r}")
    return int(value)


@dataclass(frozen=True)
class Configuration:
    """Cluster size and load parameters of a test run."""

    kubeconfig_path: str
    num_compute_nodes: int
    fill_percent_capacity: int
    number_of_iterations: int

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "Configuration":
        """Read the configuration, filling in the defaults for unset variables."""
        env = os.environ if environ is None else environ
        return cls(
            kubeconfig_path=env.get("KUBECONFIG", "${HOME}/.kube/config"),
            num_compute_nodes=_atoi(env.get("NUMBER_OF_COMPUTE_NODES", "2")),
            fill_percent_capacity=_atoi(env.get("FILL_PERCENT_CAPACITY", "50")),
            number_of_iterations=_atoi(env.get("NUMBER_OF_THRASH_ITER", "1")),
        )

    def max_replicas(self, all_pods: Sequence[Any]) -> int:
        """Replicas that fill the configured share of the cluster's free pod slots."""
        scaled = (self.num_compute_nodes * MAX_PODS_PER_NODE - len(all_pods)) * self.fill_percent_capacity
        quotient = abs(scaled) // 100
        return quotient if scaled >= 0 else -quotient


def new_config(environ: Optional[Mapping[str, str]] = None) -> Configuration:
    """Configuration read from the given or the process environment."""
    return Configuration.from_environment(environ)