# whereabouts

A library for IP address management over shared ranges. It picks the lowest
free address in a range, skips reserved addresses and excluded subnets, and
releases addresses again. It builds the CNI ADD result for the addresses it
hands out, and it can check an IP pool against the addresses that live pods
report.

It uses only the standard library and needs Python 3.10 or later.

## Modules

### `whereabouts.allocate`

Address arithmetic and allocation. Addresses may be given as strings or
`ipaddress` objects. IPv4-mapped IPv6 addresses are treated as IPv4.

- `get_ip_range(ip, ipnet)` returns the first and last assignable address of
  `ipnet`, starting from `ip`.
  - If `ip` is the network address, the range starts at the next address.
  - For IPv4 the last address is the one before the broadcast address. For
    IPv6 it is the all-ones host address.
  - A network with fewer than two host bits raises `ValueError` ("net mask
    is too short"). So does an address of the other family.
- `ip_add_offset(ip, offset)` returns the address `offset` steps above `ip`.
  - For IPv4 it returns `None` when `offset` is 2³² − 1 or more.
  - An offset that is negative or does not fit in 64 bits raises
    `ValueError`.
- `ip_get_offset(ip1, ip2)` returns the distance from `ip2` up to `ip1`,
  reduced to 64 bits. It returns `0` when the two addresses are of
  different families.
- `iterate_for_assignment(ipnet, range_start, range_end, reservations,
  exclude_ranges, container_id, pod_ref)` reserves the lowest free address.
  - Without `range_end`, the range runs from `range_start` to the end given
    by `get_ip_range`.
  - Reserved addresses are skipped. An address inside an excluded subnet
    skips the whole subnet. For IPv4 the subnet's broadcast address is
    skipped as well.
  - It returns the address and a new list with an added `IPReservation`.
  - If no address is left it raises `AssignmentError`.
- `assign_ip(range_config, reservations, container_id, pod_ref)` does the
  same for a `RangeConfiguration`, which has the fields `range`,
  `range_start`, `range_end` and `omit_ranges`. It returns an
  `ipaddress` interface that carries the network's prefix length.
- `deallocate_ip(reservations, container_id)` and
  `iterate_for_deallocation(reservations, container_id, matcher=None)`
  remove the reservation held by the container.
  - The last entry of the list takes the place of the removed entry.
  - They return the new list and the released address.
  - If the container holds no reservation they raise `LookupError`.
- `is_ipv4(ip)` tells whether an address is IPv4.
- `IPReservation` has the fields `ip`, `container_id`, `pod_ref` and
  `is_allocated`.

### `whereabouts.cni`

The plugin's ADD, DEL and CHECK commands.

- `build_add_result(new_ips, config)` returns a `CNIResult`. Its `ips` list
  holds `IPConfig` entries in this order:
  1. Each allocated address, with version `"4"` or `"6"` and the gateway
     from `config.gateway`.
  2. The static `config.addresses`.

  The result also takes `config.routes` and `config.dns`.
- `CNIResult.to_json(cni_version)` serialises the result.
  - Versions `0.3.0`, `0.3.1` and `0.4.0` use the `ips`/`routes`/`dns`
    layout.
  - Versions `0.1.0` and `0.2.0` use the `ip4`/`ip6` layout.
  - Any other version raises `ValueError`.
- `cmd_add(container_id, ipam, cni_version)` allocates through the IPAM
  backend and writes the JSON result to standard output. It also returns
  the result. A backend failure is raised again as `RuntimeError`.
- `cmd_del(container_id, ipam)` releases through the backend. It logs
  failures and never raises.
- `cmd_check(container_id)` always raises `NotImplementedCheckError`.

The `ipam` argument is any object with these two members:

- a `config` attribute;
- an `ip_management(mode, config)` method, where `mode` is
  `cni.ALLOCATE` or `cni.DEALLOCATE`.

### `whereabouts.poolconsistency`

`PoolConsistencyChecker(ip_pool, pods)` compares a pool with pods. The pool
is any object with an `allocations()` method that returns `IPReservation`
entries. The pods are pod manifests given as dicts.

- `missing_ips()` lists pod addresses that the pool does not hold. It
  returns an empty list if any pod's address cannot be read.
- `stale_ips()` lists pool addresses that no pod holds.

A pod's address is the last address of its secondary interface.

### `whereabouts.retrievers`

`secondary_iface_ip_value(pod)` reads the
`k8s.v1.cni.cncf.io/network-status` annotation of a pod manifest. It
returns the addresses of interface `net1`. If the annotation, the interface
or its addresses are missing, it raises `ValueError`.

### `whereabouts.entities`

These functions build manifests as plain dicts:

- `pod_object`
- `stateful_set_spec`
- `replica_set_object`

Two helpers go with them:

- `replica_set_query(rs_name)` returns the label selector `tier=<rs_name>`.
- `pod_network_selection_elements(*names)` returns the annotation that
  attaches a pod to networks.

### `whereabouts.waiting`

`poll_immediate(interval, timeout, condition)` checks a condition at once
and then at each interval. If the condition does not hold before the
timeout, it raises `WaitTimeoutError`. An exception raised by the
condition ends the wait.

The helpers built on it wait for pods, replica sets and stateful sets to be
ready, steady or gone:

- `wait_for_pod_ready`
- `wait_for_pod_to_disappear`
- `wait_for_pod_by_selector`
- `wait_for_replica_set_steady_state`
- `wait_for_replica_set_to_disappear`
- `wait_for_stateful_set_condition`
- `wait_for_stateful_set_gone`
- `wait_for_zero_ip_pool_allocations`

`wait_for_zero_ip_pool_allocations` waits until an IP pool holds no
allocations.

The module also has the predicates `is_replica_set_synchronized`,
`is_stateful_set_ready_predicate` and `is_stateful_set_degraded_predicate`.

The cluster argument must provide `get_pod`, `list_pods`,
`get_replica_set` and `get_stateful_set`. A missing object is reported by
raising `NotFoundError`.

### `whereabouts.clientinfo`

`ClientInfo(client)` groups provisioning operations:

- creating and deleting network attachment definitions;
- creating pods, replica sets and stateful sets and waiting for them to
  settle;
- deleting them and waiting for them to go;
- `scale_stateful_set`.

The client must provide generic `create`, `get`, `update`, `delete` and
`list` methods keyed by object kind.

### `whereabouts.testenvironment`

`Configuration.from_environment(environ=None)` and `new_config(environ=None)`
read the settings of a test environment from these variables:

| Variable | Default |
| --- | --- |
| `KUBECONFIG` | `${HOME}/.kube/config` |
| `NUMBER_OF_COMPUTE_NODES` | `2` |
| `FILL_PERCENT_CAPACITY` | `50` |
| `NUMBER_OF_THRASH_ITER` | `1` |

`Configuration.max_replicas(all_pods)` returns the configured percentage of
the free pod slots, counting 110 slots per node.

## What it does not do

- It has no storage backend. Nothing here keeps IP pools in a cluster or
  talks to a Kubernetes API. The IPAM object given to `cmd_add` and
  `cmd_del`, the cluster object given to the waiting helpers and the client
  given to `ClientInfo` must all be supplied by the caller.
- It does not read plugin configuration from standard input.
- It installs no command-line program.
- It runs no background reconciler that cleans up stale allocations.