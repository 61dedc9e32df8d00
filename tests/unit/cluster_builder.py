from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from vpp_cni_validator import K8sCache, Report, Validator, ValidatorConfig, VppCache
from vpp_cni_validator.model import (
    ArpEntry,
    BridgeDomain,
    BridgeDomainInterface,
    Interface,
    InterfaceType,
    K8sNode,
    L2FibEntry,
    Node,
    NodeAddress,
    NodeAddressType,
    Pod,
    VxlanInfo,
)

UPLINK_INDEX = 1
LOOP_INDEX = 2
TAP_INDEX = 3


def node_name(i: int) -> str:
    return f"k8s-node{i}"


def loop_mac(i: int) -> str:
    return f"1a:2b:3c:4d:5e:{i:02x}"


def underlay_ip(i: int) -> str:
    return f"192.168.16.{i}"


def host_ip(i: int) -> str:
    return f"10.20.0.{10 + i}"


def tunnel_index(j: int) -> int:
    return 10 + j


@dataclass
class Cluster:
    nodes: List[Node]
    k8s_nodes: List[K8sNode]
    pods: List[Pod]

    def node(self, i: int) -> Node:
        return self.nodes[i - 1]

    def pod(self, name: str) -> Pod:
        return next(p for p in self.pods if p.name == name)

    def caches(self) -> Tuple[VppCache, K8sCache]:
        return VppCache(self.nodes), K8sCache(self.k8s_nodes, self.pods)

    def run(self, config: Optional[ValidatorConfig] = None) -> Report:
        vpp, k8s = self.caches()
        report = Report()
        Validator(vpp, k8s, report, config).validate()
        return report


def build_node(i: int, size: int) -> Node:
    peers = [j for j in range(1, size + 1) if j != i]
    interfaces = {
        UPLINK_INDEX: Interface(
            name="GigabitEthernet0/8/0",
            type=InterfaceType.OTHER,
            phys_address=f"08:00:27:00:00:{i:02x}",
            ip_addresses=(f"{underlay_ip(i)}/24",),
            internal_name="GigabitEthernet0/8/0",
            sw_if_index=UPLINK_INDEX,
        ),
        LOOP_INDEX: Interface(
            name="vxlanBVI",
            type=InterfaceType.SOFTWARE_LOOPBACK,
            phys_address=loop_mac(i),
            ip_addresses=(f"192.168.30.{i}/24",),
            internal_name="loop0",
            sw_if_index=LOOP_INDEX,
        ),
        TAP_INDEX: Interface(
            name=f"tap-pod-{i}",
            type=InterfaceType.TAP,
            phys_address=f"02:fe:00:00:00:{i:02x}",
            ip_addresses=(f"10.2.{i}.2/32",),
            internal_name="tap0",
            sw_if_index=TAP_INDEX,
        ),
    }
    for j in peers:
        interfaces[tunnel_index(j)] = Interface(
            name=f"vxlan{j}",
            type=InterfaceType.VXLAN_TUNNEL,
            vxlan=VxlanInfo(src_address=underlay_ip(i), dst_address=underlay_ip(j), vni=10),
            internal_name=f"vxlan_tunnel{j}",
            sw_if_index=tunnel_index(j),
        )

    bd = BridgeDomain(
        name="vxlanBD",
        interfaces=[BridgeDomainInterface("vxlanBVI", bvi=True)]
        + [BridgeDomainInterface(f"vxlan{j}") for j in peers],
        index_to_name={LOOP_INDEX: "vxlanBVI", **{tunnel_index(j): f"vxlan{j}" for j in peers}},
    )

    arp_entries = [ArpEntry(loop_mac(j), f"192.168.30.{j}", True, LOOP_INDEX) for j in peers]
    arp_entries.append(ArpEntry("52:54:00:12:35:02", "192.168.16.254", False, UPLINK_INDEX))

    l2fib = {loop_mac(i): L2FibEntry(loop_mac(i), True, True, 0, LOOP_INDEX, "vxlanBVI")}
    for j in peers:
        l2fib[loop_mac(j)] = L2FibEntry(
            loop_mac(j), False, True, 0, tunnel_index(j), f"vxlan{j}"
        )

    return Node(
        name=node_name(i),
        id=i,
        ip_address=f"{underlay_ip(i)}/24",
        management_ip_address=host_ip(i),
        interfaces=interfaces,
        bridge_domains=[bd],
        arp_entries=arp_entries,
        l2fib_entries=l2fib,
    )


def build_cluster(size: int = 3) -> Cluster:
    """Well-formed cluster: full VXLAN mesh, one pod per node plus a host
    network pod on the first node."""

    nodes = [build_node(i, size) for i in range(1, size + 1)]
    k8s_nodes = [
        K8sNode(
            name=node_name(i),
            addresses=(
                NodeAddress(NodeAddressType.INTERNAL_IP, host_ip(i)),
                NodeAddress(NodeAddressType.HOSTNAME, node_name(i)),
            ),
            pod_cidr=f"10.1.{i}.0/24",
        )
        for i in range(1, size + 1)
    ]
    pods = [Pod(name=f"pod-{i}", host_ip_address=host_ip(i), ip_address=f"10.1.{i}.2")
            for i in range(1, size + 1)]
    pods.append(Pod(name="kube-proxy-1", host_ip_address=host_ip(1), ip_address=host_ip(1),
                    namespace="kube-system"))

    for pod in pods:
        owner = next(n for i, n in enumerate(nodes, 1) if host_ip(i) == pod.host_ip_address)
        owner.pods[pod.name] = pod

    return Cluster(nodes=nodes, k8s_nodes=k8s_nodes, pods=pods)
