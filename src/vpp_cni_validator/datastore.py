"""In-memory snapshot stores with the secondary indices the validator uses.

``VppCache`` holds the dataplane view of every node and indexes it by the
overlay loopback MAC/IP, by the underlay (tunnel endpoint) address and by the
host address.  ``K8sCache`` holds the Kubernetes view and owns the canonical
:class:`~vpp_cni_validator.model.Pod` objects; node pod maps only ever
reference them through :meth:`VppCache.attach_pod`.

Lookups return ``None`` on a miss and never raise.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Dict, Iterable, List, Optional

from .config import DEFAULT_BVI_INTERFACE_NAME
from .model import Interface, InterfaceType, K8sNode, Node, Pod

LOG = logging.getLogger(__name__)


def normalize_ip(value: str) -> str:
    """Return ``value`` without its prefix length, canonically formatted."""

    try:
        return str(ipaddress.ip_interface(value.strip()).ip)
    except ValueError:
        return value.split("/", 1)[0].strip()


def normalize_mac(value: str) -> str:
    return value.strip().lower()


class VppCache:
    """Dataplane snapshot store."""

    def __init__(
        self,
        nodes: Iterable[Node] = (),
        *,
        bvi_interface_name: str = DEFAULT_BVI_INTERFACE_NAME,
    ) -> None:
        self._bvi_interface_name = bvi_interface_name
        self._nodes: Dict[str, Node] = {}
        self._loop_mac: Dict[str, Node] = {}
        self._loop_ip: Dict[str, Node] = {}
        self._underlay_ip: Dict[str, Node] = {}
        self._host_ip: Dict[str, Node] = {}
        for node in nodes:
            self.add_node(node)

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------
    def add_node(self, node: Node) -> None:
        if node.name in self._nodes:
            raise ValueError(f"node '{node.name}' already present in the cache")
        self._nodes[node.name] = node
        self._index_node(node)

    def attach_pod(self, node_name: str, pod: Pod) -> None:
        """Reference ``pod`` from the pod map of ``node_name``."""

        node = self._nodes.get(node_name)
        if node is None:
            raise ValueError(f"cannot attach pod '{pod.name}': unknown node '{node_name}'")
        node.pods[pod.name] = pod

    def reindex(self) -> None:
        """Rebuild every secondary index from the stored nodes."""

        for index in (self._loop_mac, self._loop_ip, self._underlay_ip, self._host_ip):
            index.clear()
        for node in self._nodes.values():
            self._index_node(node)

    def _index_node(self, node: Node) -> None:
        loop_if = self.loop_interface(node)
        if loop_if is not None:
            if loop_if.phys_address:
                self._insert(self._loop_mac, normalize_mac(loop_if.phys_address), node, "loop MAC")
            for address in loop_if.ip_addresses:
                self._insert(self._loop_ip, normalize_ip(address), node, "loop IP")

        underlay = [node.ip_address] if node.ip_address else []
        for interface in node.interfaces.values():
            if interface.type is InterfaceType.OTHER:
                underlay.extend(interface.ip_addresses)
        for address in dict.fromkeys(normalize_ip(a) for a in underlay):
            self._insert(self._underlay_ip, address, node, "underlay IP")

        if node.management_ip_address:
            self._insert(
                self._host_ip, normalize_ip(node.management_ip_address), node, "host IP"
            )

    @staticmethod
    def _insert(index: Dict[str, Node], key: str, node: Node, label: str) -> None:
        owner = index.get(key)
        if owner is not None and owner is not node:
            LOG.warning(
                "%s %s claimed by both %s and %s; keeping %s",
                label,
                key,
                owner.name,
                node.name,
                owner.name,
            )
            return
        index[key] = node

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    def retrieve_all_nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def retrieve_node(self, name: str) -> Optional[Node]:
        return self._nodes.get(name)

    def node_by_loop_mac(self, mac: str) -> Optional[Node]:
        return self._loop_mac.get(normalize_mac(mac))

    def node_by_loop_ip(self, ip: str) -> Optional[Node]:
        return self._loop_ip.get(normalize_ip(ip))

    def node_by_underlay_ip(self, ip: str) -> Optional[Node]:
        return self._underlay_ip.get(normalize_ip(ip))

    def node_by_host_ip(self, ip: str) -> Optional[Node]:
        return self._host_ip.get(normalize_ip(ip))

    def loop_interface(self, node: Node) -> Optional[Interface]:
        """Return the overlay BVI loopback of ``node`` if it has one."""

        return node.interface_by_name(self._bvi_interface_name)


class K8sCache:
    """Kubernetes snapshot store; the owner of all :class:`Pod` objects."""

    def __init__(self, k8s_nodes: Iterable[K8sNode] = (), pods: Iterable[Pod] = ()) -> None:
        self._nodes: Dict[str, K8sNode] = {}
        self._pods: Dict[str, Pod] = {}
        for k8s_node in k8s_nodes:
            self.add_k8s_node(k8s_node)
        for pod in pods:
            self.add_pod(pod)

    def add_k8s_node(self, k8s_node: K8sNode) -> None:
        if k8s_node.name in self._nodes:
            raise ValueError(f"k8s node '{k8s_node.name}' already present in the cache")
        self._nodes[k8s_node.name] = k8s_node

    def add_pod(self, pod: Pod) -> None:
        if pod.name in self._pods:
            raise ValueError(f"pod '{pod.name}' already present in the cache")
        self._pods[pod.name] = pod

    def retrieve_all_k8s_nodes(self) -> List[K8sNode]:
        return list(self._nodes.values())

    def retrieve_k8s_node(self, name: str) -> Optional[K8sNode]:
        return self._nodes.get(name)

    def retrieve_all_pods(self) -> List[Pod]:
        return list(self._pods.values())

    def retrieve_pod(self, name: str) -> Optional[Pod]:
        return self._pods.get(name)
