"""Load cluster snapshots from a JSON or YAML document.

The document stands in for the live telemetry collector and Kubernetes
mirror::

    nodes:
      - name: k8s-master
        ip_address: 192.168.16.1/24
        management_ip_address: 10.20.0.2
        interfaces: [...]
        bridge_domains: [...]
        arp_entries: [...]
        l2fib_entries: [...]
    k8s_nodes:
      - name: k8s-master
        pod_cidr: 10.1.1.0/24
        addresses: [{type: InternalIP, address: 10.20.0.2}]
    pods:
      - name: nginx
        host_ip_address: 10.20.0.2
        ip_address: 10.1.1.2

Pods are owned by the K8s store and referenced from the pod map of the node
named by their ``node`` key (or, without one, of the node owning their host
address).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from vpp_cni_validator.config import DEFAULT_BVI_INTERFACE_NAME
from vpp_cni_validator.datastore import K8sCache, VppCache
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

LOG = logging.getLogger(__name__)


@dataclass
class Snapshot:
    vpp: VppCache
    k8s: K8sCache


def _require(entry: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in entry:
        raise ValueError(f"{what} missing '{key}'")
    return entry[key]


def _parse_enum(enum_cls, value: Any, what: str):
    text = str(value)
    for member in enum_cls:
        if text in (member.value, member.name) or text.lower() == member.value.lower():
            return member
    raise ValueError(f"unsupported {what} '{value}'")


def _parse_interface(entry: dict) -> Interface:
    sw_if_index = int(_require(entry, "sw_if_index", "interface"))
    vxlan_raw = entry.get("vxlan")
    vxlan = None
    if vxlan_raw:
        vxlan = VxlanInfo(
            src_address=str(_require(vxlan_raw, "src_address", "vxlan")),
            dst_address=str(_require(vxlan_raw, "dst_address", "vxlan")),
            vni=int(_require(vxlan_raw, "vni", "vxlan")),
        )
    return Interface(
        name=str(_require(entry, "name", "interface")),
        type=_parse_enum(InterfaceType, entry.get("type", "other"), "interface type"),
        phys_address=str(entry.get("phys_address", "")),
        ip_addresses=tuple(str(a) for a in entry.get("ip_addresses", [])),
        vxlan=vxlan,
        internal_name=str(entry.get("internal_name", "")),
        sw_if_index=sw_if_index,
    )


def _parse_bridge_domain(entry: dict, interfaces: Dict[int, Interface]) -> BridgeDomain:
    members = [
        BridgeDomainInterface(name=str(m["name"]), bvi=bool(m.get("bvi", False)))
        for m in entry.get("interfaces", [])
    ]
    index_to_name_raw = entry.get("index_to_name")
    if index_to_name_raw is not None:
        index_to_name = {int(k): str(v) for k, v in index_to_name_raw.items()}
    else:
        member_names = {m.name for m in members}
        index_to_name = {
            index: intf.name
            for index, intf in interfaces.items()
            if intf.name in member_names
        }
    return BridgeDomain(
        name=str(_require(entry, "name", "bridge domain")),
        interfaces=members,
        index_to_name=index_to_name,
    )


def _parse_node(entry: dict) -> Node:
    name = str(_require(entry, "name", "node"))
    interfaces: Dict[int, Interface] = {}
    for raw in entry.get("interfaces", []):
        interface = _parse_interface(raw)
        if interface.sw_if_index in interfaces:
            raise ValueError(
                f"node '{name}' has duplicate sw_if_index {interface.sw_if_index}"
            )
        interfaces[interface.sw_if_index] = interface

    arp_entries = [
        ArpEntry(
            phys_address=str(a["phys_address"]),
            ip_address=str(a["ip_address"]),
            static=bool(a.get("static", False)),
            if_index=int(a["if_index"]),
        )
        for a in entry.get("arp_entries", [])
    ]

    l2fib_entries: Dict[str, L2FibEntry] = {}
    for raw in entry.get("l2fib_entries", []):
        fib = L2FibEntry(
            phys_address=str(raw["phys_address"]),
            bvi=bool(raw.get("bvi", False)),
            static_config=bool(raw.get("static_config", False)),
            bridge_domain_id=int(raw.get("bridge_domain_id", 0)),
            outgoing_if_index=int(raw.get("outgoing_if_index", 0)),
            outgoing_if_name=str(raw.get("outgoing_if_name", "")),
        )
        l2fib_entries[str(raw.get("key", fib.phys_address))] = fib

    return Node(
        name=name,
        id=int(entry.get("id", 0)),
        ip_address=str(entry.get("ip_address", "")),
        management_ip_address=str(entry.get("management_ip_address", "")),
        interfaces=interfaces,
        bridge_domains=[
            _parse_bridge_domain(bd, interfaces) for bd in entry.get("bridge_domains", [])
        ],
        arp_entries=arp_entries,
        l2fib_entries=l2fib_entries,
    )


def _parse_k8s_node(entry: dict) -> K8sNode:
    return K8sNode(
        name=str(_require(entry, "name", "k8s node")),
        addresses=tuple(
            NodeAddress(
                type=_parse_enum(NodeAddressType, a["type"], "node address type"),
                address=str(a["address"]),
            )
            for a in entry.get("addresses", [])
        ),
        pod_cidr=str(entry.get("pod_cidr", "")),
    )


def _parse_pod(entry: dict) -> Pod:
    return Pod(
        name=str(_require(entry, "name", "pod")),
        namespace=str(entry.get("namespace", "default")),
        host_ip_address=str(_require(entry, "host_ip_address", "pod")),
        ip_address=str(_require(entry, "ip_address", "pod")),
    )


def build_snapshot(
    payload: Mapping[str, Any], *, bvi_interface_name: str = DEFAULT_BVI_INTERFACE_NAME
) -> Snapshot:
    if not isinstance(payload, Mapping):
        raise ValueError("snapshot document must be a mapping")
    for key in ("nodes", "k8s_nodes", "pods"):
        if not isinstance(payload.get(key, []), list):
            raise ValueError(f"snapshot '{key}' section must be a list")

    try:
        vpp = VppCache(
            (_parse_node(n) for n in payload.get("nodes", [])),
            bvi_interface_name=bvi_interface_name,
        )
        k8s = K8sCache(_parse_k8s_node(n) for n in payload.get("k8s_nodes", []))

        pending: List[tuple] = []
        for raw in payload.get("pods", []):
            pod = _parse_pod(raw)
            k8s.add_pod(pod)
            pending.append((raw.get("node"), pod))
    except (TypeError, KeyError, AttributeError) as exc:
        # null or mistyped field values in an otherwise well-formed document
        raise ValueError(f"malformed snapshot entry: {exc!r}") from exc

    for node_name, pod in pending:
        if node_name is None:
            node = vpp.node_by_host_ip(pod.host_ip_address)
            if node is None:
                LOG.debug("pod %s: no node owns host IP %s", pod.name, pod.host_ip_address)
                continue
            node_name = node.name
        vpp.attach_pod(str(node_name), k8s.retrieve_pod(pod.name))

    return Snapshot(vpp=vpp, k8s=k8s)


def load_snapshot(
    path: Path, *, bvi_interface_name: str = DEFAULT_BVI_INTERFACE_NAME
) -> Snapshot:
    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"failed to parse snapshot {path}: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"failed to parse snapshot {path}: {exc}") from exc
    return build_snapshot(payload, bvi_interface_name=bvi_interface_name)
