"""Snapshot records consumed by the validator.

The collection agent and the Kubernetes mirror populate these dataclasses
before a validation run.  The validator treats every record as read-only with
a single exception: the dataplane binding fields of :class:`Pod`, which are
filled in from the tap binder's result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence


class InterfaceType(Enum):
    """Dataplane interface types the validator distinguishes."""

    SOFTWARE_LOOPBACK = "software_loopback"
    VXLAN_TUNNEL = "vxlan_tunnel"
    TAP = "tap"
    OTHER = "other"


class NodeAddressType(Enum):
    """Kubernetes ``NodeAddress`` types."""

    HOSTNAME = "Hostname"
    EXTERNAL_IP = "ExternalIP"
    INTERNAL_IP = "InternalIP"
    EXTERNAL_DNS = "ExternalDNS"
    INTERNAL_DNS = "InternalDNS"


@dataclass(frozen=True)
class VxlanInfo:
    """VXLAN tunnel endpoint description."""

    src_address: str
    dst_address: str
    vni: int


@dataclass
class Interface:
    """Dataplane interface as reported by the node.

    Attributes
    ----------
    name:
        Logical (agent level) interface name, e.g. ``vxlanBVI``.
    type:
        The interface type, see :class:`InterfaceType`.
    phys_address:
        MAC address, empty for interfaces without one.
    ip_addresses:
        Addresses configured on the interface in CIDR notation.
    vxlan:
        Tunnel endpoints for ``VXLAN_TUNNEL`` interfaces.
    internal_name:
        The dataplane internal name (``loop0``, ``tap3``, ``vxlan_tunnel1``).
    sw_if_index:
        The dataplane software interface index.
    """

    name: str
    type: InterfaceType
    phys_address: str = ""
    ip_addresses: Sequence[str] = ()
    vxlan: Optional[VxlanInfo] = None
    internal_name: str = ""
    sw_if_index: int = 0


@dataclass(frozen=True)
class BridgeDomainInterface:
    """Membership record of an interface in a bridge domain."""

    name: str
    bvi: bool = False


@dataclass
class BridgeDomain:
    name: str
    interfaces: List[BridgeDomainInterface] = field(default_factory=list)
    index_to_name: Dict[int, str] = field(default_factory=dict)

    def name_to_index(self) -> Dict[str, int]:
        """Invert :attr:`index_to_name` so members can be resolved by name."""

        return {name: index for index, name in self.index_to_name.items()}


@dataclass(frozen=True)
class ArpEntry:
    phys_address: str
    ip_address: str
    static: bool
    if_index: int


@dataclass(frozen=True)
class L2FibEntry:
    phys_address: str
    bvi: bool
    static_config: bool
    bridge_domain_id: int
    outgoing_if_index: int
    outgoing_if_name: str = ""


@dataclass(eq=False)
class Pod:
    """A scheduled pod.

    Pods are compared by identity: the copy referenced from a node's pod map
    must be the very object held by the Kubernetes store.  The four
    ``bound_*`` fields stay empty until the tap binder resolves the pod's
    dataplane interface.
    """

    name: str
    host_ip_address: str
    ip_address: str
    namespace: str = "default"
    bound_if_ip_address: str = ""
    bound_if_internal_name: str = ""
    bound_if_name: str = ""
    bound_sw_if_index: Optional[int] = None

    @property
    def host_network(self) -> bool:
        return self.ip_address == self.host_ip_address


@dataclass(frozen=True)
class NodeAddress:
    type: NodeAddressType
    address: str


@dataclass
class K8sNode:
    name: str
    addresses: Sequence[NodeAddress] = ()
    pod_cidr: str = ""


@dataclass
class Node:
    """Dataplane snapshot of a single cluster node.

    Attributes
    ----------
    name:
        Unique node name, shared with the Kubernetes node object.
    id:
        Node ID allocated by the CNI.
    ip_address:
        Underlay address the VXLAN tunnels terminate on.
    management_ip_address:
        Host address Kubernetes reports for pods scheduled on the node.
    interfaces:
        Interfaces keyed by software interface index.
    bridge_domains:
        Bridge domains in dataplane order; the position is the BD id used by
        L2 FIB entries.
    arp_entries:
        The node's IP neighbour table.
    l2fib_entries:
        L2 FIB entries keyed by their identity (normally the MAC address).
    pods:
        Pods hosted on the node, keyed by pod name.
    """

    name: str
    id: int = 0
    ip_address: str = ""
    management_ip_address: str = ""
    interfaces: Dict[int, Interface] = field(default_factory=dict)
    bridge_domains: List[BridgeDomain] = field(default_factory=list)
    arp_entries: List[ArpEntry] = field(default_factory=list)
    l2fib_entries: Dict[str, L2FibEntry] = field(default_factory=dict)
    pods: Dict[str, Pod] = field(default_factory=dict)

    def interface_by_name(self, name: str) -> Optional[Interface]:
        """Return the interface called ``name`` if present."""

        return next((i for i in self.interfaces.values() if i.name == name), None)


@dataclass(frozen=True)
class PodBinding:
    """Dataplane interface resolved for a pod by the tap binder."""

    if_ip_address: str
    if_internal_name: str
    if_name: str
    sw_if_index: int

    def apply(self, pod: Pod) -> None:
        pod.bound_if_ip_address = self.if_ip_address
        pod.bound_if_internal_name = self.if_internal_name
        pod.bound_if_name = self.if_name
        pod.bound_sw_if_index = self.sw_if_index
