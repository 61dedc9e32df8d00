"""L2 consistency validation of a VPP CNI cluster.

:class:`Validator` cross-references the per-node dataplane snapshots held in a
:class:`~vpp_cni_validator.datastore.VppCache` with the Kubernetes snapshot in
a :class:`~vpp_cni_validator.datastore.K8sCache` and records every
inconsistency in a :class:`~vpp_cni_validator.report.Report`.  Six checks run
in a fixed order:

* ARP tables of the overlay BVI;
* VXLAN full-mesh connectivity of the overlay bridge domain;
* static L2 FIB entries of the overlay bridge domain;
* K8s versus dataplane node lists;
* pod records versus node records;
* pod to tap interface binding.

A failing check never stops the next one.  The only state written back into
the snapshots is the pod interface binding, which the tap binder returns as a
value and :meth:`Validator.validate` applies at the end of the run.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Dict, List, Optional, Sequence

from .config import ValidatorConfig
from .datastore import K8sCache, VppCache, normalize_ip, normalize_mac
from .model import (
    BridgeDomain,
    Interface,
    InterfaceType,
    K8sNode,
    L2FibEntry,
    Node,
    NodeAddressType,
    Pod,
    PodBinding,
)
from .report import GLOBAL, Check, Finding, FindingCode, Report
from .tracking import ExpectedSet

LOG = logging.getLogger(__name__)


class _CheckRun:
    """Counts and records the findings of one check."""

    def __init__(self, report: Report, check: Check) -> None:
        self._report = report
        self.check = check
        self.errors = 0

    def add(self, target: str, code: FindingCode, *, log: bool = False, **fields) -> None:
        finding = Finding(self.check, code, **fields)
        if log:
            self._report.log_err_and_append(target, finding)
        else:
            self._report.append(target, finding)
        self.errors += 1

    def summarize(self) -> int:
        self._report.append(GLOBAL, Finding(self.check, FindingCode.SUMMARY, actual=self.errors))
        LOG.info("%s finished with %d error(s)", self.check.value, self.errors)
        return self.errors


def host_bits_mask(pod_cidr: str) -> Optional[int]:
    """Return a mask selecting the host bits of ``pod_cidr``.

    ``10.1.1.0/24`` yields ``0xff``.  ``None`` is returned for values that do
    not parse as a network.
    """

    try:
        network = ipaddress.ip_network(pod_cidr.strip(), strict=False)
    except ValueError:
        return None
    return (1 << (network.max_prefixlen - network.prefixlen)) - 1


def _other_names(nodes: Sequence[Node], node: Node) -> List[str]:
    return [n.name for n in nodes if n.name != node.name]


class Validator:
    """Validate L2 telemetry collected from every node of the cluster."""

    def __init__(
        self,
        vpp_cache: VppCache,
        k8s_cache: K8sCache,
        report: Report,
        config: Optional[ValidatorConfig] = None,
    ) -> None:
        self._vpp = vpp_cache
        self._k8s = k8s_cache
        self._report = report
        self._config = config or ValidatorConfig()

    def validate(self) -> None:
        """Run all checks and apply the resolved pod bindings."""

        LOG.info(
            "validating %d node(s), %d pod(s)",
            len(self._vpp.retrieve_all_nodes()),
            len(self._k8s.retrieve_all_pods()),
        )
        self.validate_arp_tables()
        self.validate_l2_connectivity()
        self.validate_l2fib_entries()
        self.validate_k8s_node_info()
        self.validate_pod_info()
        self.apply_pod_bindings(self.validate_tap_to_pod())

    # ------------------------------------------------------------------
    # ARP tables
    # ------------------------------------------------------------------
    def validate_arp_tables(self) -> int:
        """Check the static ARP entries on every node's overlay BVI.

        Each node needs one entry per peer whose MAC and IP both belong to
        that peer's overlay loopback.
        """

        run = _CheckRun(self._report, Check.ARP)
        nodes = self._vpp.retrieve_all_nodes()

        for node in nodes:
            LOG.debug("validating ARP table of node %s", node.name)
            peers = ExpectedSet(_other_names(nodes, node))

            for arp in node.arp_entries:
                if not arp.static:
                    continue

                entry = f"<'{arp.phys_address}'-'{arp.ip_address}'>"
                arp_if = node.interfaces.get(arp.if_index)
                if arp_if is None:
                    run.add(
                        node.name,
                        FindingCode.ARP_BAD_IF_INDEX,
                        node=node.name,
                        entry=entry,
                        actual=arp.if_index,
                    )
                    continue

                if not self._is_overlay_bvi(arp_if):
                    continue

                mac_node = self._vpp.node_by_loop_mac(arp.phys_address)
                if mac_node is None:
                    run.add(node.name, FindingCode.ARP_BAD_MAC, node=node.name, entry=entry)

                ip_node = self._vpp.node_by_loop_ip(arp.ip_address)
                if ip_node is None:
                    run.add(node.name, FindingCode.ARP_BAD_IP, node=node.name, entry=entry)

                if mac_node is None or ip_node is None:
                    continue

                if mac_node is not ip_node:
                    run.add(
                        node.name,
                        FindingCode.ARP_NODE_MISMATCH,
                        node=node.name,
                        entry=entry,
                        expected=mac_node.name,
                        actual=ip_node.name,
                    )
                    continue

                peers.discard(ip_node.name)

            for peer in peers:
                run.add(node.name, FindingCode.ARP_MISSING_ENTRY, node=node.name, peer=peer)

        return run.summarize()

    # ------------------------------------------------------------------
    # VXLAN mesh
    # ------------------------------------------------------------------
    def validate_l2_connectivity(self) -> int:
        """Check that every node's overlay BD forms a reciprocal full mesh.

        Besides the per-node findings, every node that did not pass all of
        its checks gets a final "failed to validate" finding.
        """

        run = _CheckRun(self._report, Check.L2_CONNECTIVITY)
        nodes = self._vpp.retrieve_all_nodes()
        unvalidated = ExpectedSet(n.name for n in nodes)

        for node in nodes:
            LOG.debug("validating VXLAN bridge domain of node %s", node.name)
            if self._validate_node_mesh(node, nodes, run):
                unvalidated.discard(node.name)

        for name in unvalidated:
            run.add(name, FindingCode.NODE_NOT_VALIDATED, node=name)

        return run.summarize()

    def _validate_node_mesh(self, node: Node, nodes: Sequence[Node], run: _CheckRun) -> bool:
        bd_name = self._config.vxlan_bd_name
        matches = [bd for bd in node.bridge_domains if bd.name == bd_name]
        if not matches:
            run.add(node.name, FindingCode.BD_MISSING, node=node.name, expected=bd_name)
            return False
        if len(matches) > 1:
            run.add(node.name, FindingCode.BD_DUPLICATE, node=node.name, expected=bd_name)
            return False

        bd: BridgeDomain = matches[0]
        name_to_index = bd.name_to_index()
        # The BVI accounts for the node itself, each tunnel for one peer.
        unaccounted = ExpectedSet(n.name for n in nodes)
        valid_members = 0
        has_bvi = False

        for member in bd.interfaces:
            if_index = name_to_index.get(member.name)
            interface = node.interfaces.get(if_index) if if_index is not None else None
            if interface is None:
                run.add(
                    node.name,
                    FindingCode.BD_IF_INDEX_INVALID,
                    node=node.name,
                    interface=member.name,
                    actual=if_index,
                )
                continue

            if member.bvi:
                if has_bvi:
                    run.add(
                        node.name,
                        FindingCode.BVI_DUPLICATE,
                        node=node.name,
                        interface=member.name,
                        actual=if_index,
                    )
                if interface.type is not InterfaceType.SOFTWARE_LOOPBACK:
                    run.add(
                        node.name,
                        FindingCode.BVI_BAD_TYPE,
                        node=node.name,
                        interface=member.name,
                        actual=interface.type.value,
                    )
                    continue

                has_bvi = True
                valid_members += 1
                owner = self._vpp.node_by_loop_mac(interface.phys_address)
                if owner is None:
                    run.add(
                        node.name,
                        FindingCode.LOOP_MAC_INDEX,
                        node=node.name,
                        interface=member.name,
                        actual=interface.phys_address,
                    )
                    continue
                unaccounted.discard(owner.name)
                continue

            peer = self._validate_tunnel(node, interface, run)
            if peer is None:
                continue
            valid_members += 1
            unaccounted.discard(peer.name)

        if valid_members != len(nodes):
            run.add(
                node.name,
                FindingCode.TUNNEL_COUNT,
                node=node.name,
                expected=len(nodes),
                actual=valid_members,
            )

        if not has_bvi:
            run.add(node.name, FindingCode.BVI_MISSING, node=node.name)
            return False

        if unaccounted:
            for peer_name in unaccounted:
                run.add(node.name, FindingCode.BD_PEER_MISSING, node=node.name, peer=peer_name)
            return False

        return valid_members == len(nodes)

    def _validate_tunnel(self, node: Node, interface: Interface, run: _CheckRun) -> Optional[Node]:
        """Validate one VXLAN member; return the peer it accounts for."""

        vxlan = interface.vxlan
        if interface.type is not InterfaceType.VXLAN_TUNNEL or vxlan is None:
            actual = interface.type.value
            if vxlan is None and interface.type is InterfaceType.VXLAN_TUNNEL:
                actual = f"{actual} without tunnel endpoints"
            run.add(
                node.name,
                FindingCode.BD_IF_BAD_TYPE,
                node=node.name,
                interface=interface.name,
                actual=actual,
            )
            return None

        if vxlan.vni != self._config.vxlan_vni:
            run.add(
                node.name,
                FindingCode.VNI_MISMATCH,
                node=node.name,
                interface=f"{interface.name} ({interface.internal_name})",
                expected=self._config.vxlan_vni,
                actual=vxlan.vni,
            )

        src_node = self._vpp.node_by_underlay_ip(vxlan.src_address)
        if src_node is None:
            run.add(
                node.name,
                FindingCode.TUNNEL_SRC_UNKNOWN,
                node=node.name,
                interface=interface.name,
                actual=vxlan.src_address,
            )
            return None
        if src_node is not node:
            run.add(
                node.name,
                FindingCode.TUNNEL_SRC_FOREIGN,
                node=node.name,
                peer=src_node.name,
                interface=interface.name,
                expected=node.name,
                actual=vxlan.src_address,
            )
            return None

        dst_node = self._vpp.node_by_underlay_ip(vxlan.dst_address)
        if dst_node is None:
            run.add(
                node.name,
                FindingCode.TUNNEL_DST_UNKNOWN,
                node=node.name,
                interface=interface.name,
                actual=vxlan.dst_address,
            )
            return None

        if not self._has_reciprocal_tunnel(dst_node, vxlan.src_address):
            run.add(
                node.name,
                FindingCode.TUNNEL_NO_REMOTE,
                node=node.name,
                peer=dst_node.name,
                interface=interface.name,
            )
        return dst_node

    @staticmethod
    def _has_reciprocal_tunnel(peer: Node, src_address: str) -> bool:
        wanted = normalize_ip(src_address)
        return any(
            intf.type is InterfaceType.VXLAN_TUNNEL
            and intf.vxlan is not None
            and normalize_ip(intf.vxlan.dst_address) == wanted
            for intf in peer.interfaces.values()
        )

    # ------------------------------------------------------------------
    # L2 FIB
    # ------------------------------------------------------------------
    def validate_l2fib_entries(self) -> int:
        """Check the static L2 FIB entries of every node's overlay BD.

        A node needs one BVI entry for its own loopback and one entry per peer
        pointing at the peer's loopback MAC through the tunnel to that peer.
        """

        run = _CheckRun(self._report, Check.L2FIB)
        nodes = self._vpp.retrieve_all_nodes()

        for node in nodes:
            LOG.debug("validating L2 FIB of node %s", node.name)
            bd_id = self._overlay_bd_id(node)
            if bd_id is None:
                run.add(
                    node.name,
                    FindingCode.FIB_NO_BD,
                    node=node.name,
                    expected=self._config.vxlan_bd_name,
                )
                continue

            qualifying = {
                key: entry
                for key, entry in node.l2fib_entries.items()
                if entry.bridge_domain_id == bd_id and entry.static_config
            }
            peers = ExpectedSet(_other_names(nodes, node))
            entries = ExpectedSet(qualifying)
            has_bvi_entry = False

            for key, entry in qualifying.items():
                if entry.bvi:
                    if self._validate_fib_bvi_entry(node, key, entry, run):
                        has_bvi_entry = True
                    entries.discard(key)
                    continue

                peer_name = self._validate_fib_remote_entry(node, key, entry, run)
                if peer_name is None:
                    continue
                peers.discard(peer_name)
                entries.discard(key)

            if not has_bvi_entry:
                run.add(node.name, FindingCode.FIB_NO_BVI_ENTRY, node=node.name)

            for peer_name in peers:
                run.add(node.name, FindingCode.FIB_MISSING, log=True, node=node.name, peer=peer_name)

            for key in entries:
                run.add(node.name, FindingCode.FIB_DANGLING, node=node.name, entry=key)

        return run.summarize()

    def _overlay_bd_id(self, node: Node) -> Optional[int]:
        for index, bd in enumerate(node.bridge_domains):
            if bd.name == self._config.vxlan_bd_name:
                return index
        return None

    def _validate_fib_bvi_entry(
        self, node: Node, key: str, entry: L2FibEntry, run: _CheckRun
    ) -> bool:
        loop_if = self._vpp.loop_interface(node)
        if loop_if is None:
            run.add(node.name, FindingCode.FIB_NO_LOCAL_LOOP, node=node.name, entry=key)
        elif normalize_mac(entry.phys_address) != normalize_mac(loop_if.phys_address):
            run.add(
                node.name,
                FindingCode.FIB_BVI_MAC,
                log=True,
                node=node.name,
                entry=key,
                expected=loop_if.phys_address,
                actual=entry.phys_address,
            )

        owner = self._vpp.node_by_loop_mac(entry.phys_address)
        if owner is None:
            run.add(
                node.name,
                FindingCode.FIB_MAC_INDEX,
                log=True,
                node=node.name,
                entry=key,
                actual=entry.phys_address,
            )
            return False
        if owner is not node:
            run.add(
                node.name,
                FindingCode.FIB_MAC_FOREIGN,
                node=node.name,
                peer=owner.name,
                entry=key,
                expected=node.name,
                actual=entry.phys_address,
            )
        return True

    def _validate_fib_remote_entry(
        self, node: Node, key: str, entry: L2FibEntry, run: _CheckRun
    ) -> Optional[str]:
        """Validate an entry towards a peer; return the peer it accounts for."""

        out_if = node.interfaces.get(entry.outgoing_if_index)
        if out_if is None:
            run.add(
                node.name,
                FindingCode.FIB_OUT_IF,
                node=node.name,
                entry=key,
                interface=entry.outgoing_if_name,
                actual=entry.outgoing_if_index,
            )
            return None

        dst_address = out_if.vxlan.dst_address if out_if.vxlan is not None else None
        peer = self._vpp.node_by_underlay_ip(dst_address) if dst_address else None
        if peer is None:
            run.add(
                node.name,
                FindingCode.FIB_REMOTE_UNKNOWN,
                node=node.name,
                entry=key,
                interface=out_if.name,
                actual=dst_address,
            )
            return None

        remote_loop = self._vpp.loop_interface(peer)
        if remote_loop is None:
            run.add(
                node.name,
                FindingCode.FIB_REMOTE_NO_LOOP,
                node=node.name,
                peer=peer.name,
                entry=key,
            )
            return peer.name

        if normalize_mac(remote_loop.phys_address) != normalize_mac(entry.phys_address):
            run.add(
                node.name,
                FindingCode.FIB_REMOTE_MAC,
                node=node.name,
                peer=peer.name,
                entry=key,
                expected=remote_loop.phys_address,
                actual=entry.phys_address,
            )

        owner = self._vpp.node_by_loop_mac(entry.phys_address)
        if owner is None:
            run.add(
                node.name,
                FindingCode.FIB_MAC_INDEX,
                node=node.name,
                entry=key,
                actual=entry.phys_address,
            )
        elif owner is not peer:
            run.add(
                node.name,
                FindingCode.FIB_MAC_FOREIGN,
                node=node.name,
                peer=owner.name,
                entry=key,
                expected=peer.name,
                actual=entry.phys_address,
            )
        return peer.name

    # ------------------------------------------------------------------
    # K8s nodes
    # ------------------------------------------------------------------
    def validate_k8s_node_info(self) -> int:
        """Check that the dataplane and K8s node lists match one to one."""

        run = _CheckRun(self._report, Check.K8S_NODES)
        nodes = self._vpp.retrieve_all_nodes()
        vpp_names = ExpectedSet(n.name for n in nodes)
        k8s_names = ExpectedSet(k.name for k in self._k8s.retrieve_all_k8s_nodes())

        for node in nodes:
            k8s_node = self._k8s.retrieve_k8s_node(node.name)
            if k8s_node is None:
                run.add(node.name, FindingCode.K8S_NODE_MISSING, node=node.name)
                vpp_names.discard(node.name)
                continue
            if k8s_node.name == node.name:
                vpp_names.discard(node.name)
                k8s_names.discard(k8s_node.name)

        for name in k8s_names:
            run.add(name, FindingCode.VPP_NODE_MISSING, node=name)
        for name in vpp_names:
            run.add(name, FindingCode.K8S_NODE_MISSING, node=name)

        return run.summarize()

    # ------------------------------------------------------------------
    # Pods
    # ------------------------------------------------------------------
    def validate_pod_info(self) -> int:
        """Check every pod against its host node's dataplane and K8s records."""

        run = _CheckRun(self._report, Check.POD_INFO)
        pods = self._k8s.retrieve_all_pods()
        unaccounted = ExpectedSet(p.name for p in pods)

        for pod in pods:
            node = self._vpp.node_by_host_ip(pod.host_ip_address)
            if node is None:
                run.add(
                    GLOBAL,
                    FindingCode.POD_HOST_UNKNOWN,
                    entry=pod.name,
                    actual=pod.host_ip_address,
                )
                continue

            node_pod = node.pods.get(pod.name)
            if node_pod is None:
                run.add(node.name, FindingCode.POD_NOT_ON_NODE, node=node.name, entry=pod.name)
                continue

            if node_pod is not pod:
                run.add(node.name, FindingCode.POD_COPY, node=node.name, entry=pod.name)
                continue

            k8s_node = self._k8s.retrieve_k8s_node(node.name)
            if k8s_node is None:
                run.add(
                    node.name, FindingCode.POD_K8S_NODE, log=True, node=node.name, entry=pod.name
                )
                continue

            if self._match_node_addresses(pod, node, k8s_node, run):
                unaccounted.discard(pod.name)

        for name in unaccounted:
            run.add(GLOBAL, FindingCode.POD_UNACCOUNTED, entry=name)

        return run.summarize()

    @staticmethod
    def _match_node_addresses(pod: Pod, node: Node, k8s_node: K8sNode, run: _CheckRun) -> bool:
        matched = 0
        host_ip = normalize_ip(pod.host_ip_address)
        for address in k8s_node.addresses:
            if address.type is NodeAddressType.INTERNAL_IP:
                if normalize_ip(address.address) != host_ip:
                    run.add(
                        node.name,
                        FindingCode.POD_HOST_IP_MISMATCH,
                        node=node.name,
                        entry=pod.name,
                        expected=pod.host_ip_address,
                        actual=address.address,
                    )
                    continue
                matched += 1
            elif address.type is NodeAddressType.HOSTNAME:
                if address.address != node.name:
                    run.add(
                        node.name,
                        FindingCode.POD_HOSTNAME_MISMATCH,
                        node=node.name,
                        entry=pod.name,
                        expected=node.name,
                        actual=address.address,
                    )
                    continue
                matched += 1
        return matched == 2

    def validate_tap_to_pod(self) -> Dict[str, PodBinding]:
        """Find the tap interface of every pod.

        The tap's address shares its host bits (as defined by the node's pod
        CIDR) with the pod address.  Host network pods have no tap.  Returns
        the resolved bindings keyed by pod name; nothing is written to the
        pods here.
        """

        run = _CheckRun(self._report, Check.TAP_BINDING)
        bindings: Dict[str, PodBinding] = {}
        pods = self._k8s.retrieve_all_pods()
        unbound = ExpectedSet(p.name for p in pods)

        for pod in pods:
            if pod.host_network:
                unbound.discard(pod.name)
                continue

            node = self._vpp.node_by_host_ip(pod.host_ip_address)
            if node is None:
                run.add(
                    GLOBAL,
                    FindingCode.TAP_HOST_UNKNOWN,
                    log=True,
                    entry=pod.name,
                    actual=pod.host_ip_address,
                )
                continue

            k8s_node = self._k8s.retrieve_k8s_node(node.name)
            if k8s_node is None:
                run.add(node.name, FindingCode.TAP_K8S_NODE, log=True, node=node.name, entry=pod.name)
                continue

            mask = host_bits_mask(k8s_node.pod_cidr)
            if mask is None:
                run.add(
                    k8s_node.name,
                    FindingCode.TAP_BAD_CIDR,
                    node=k8s_node.name,
                    entry=pod.name,
                    actual=k8s_node.pod_cidr,
                )
                continue

            binding = self._find_tap(node, pod, mask)
            if binding is not None:
                bindings[pod.name] = binding
                unbound.discard(pod.name)

        for name in unbound:
            run.add(GLOBAL, FindingCode.TAP_UNBOUND, entry=name)

        run.summarize()
        return bindings

    def _find_tap(self, node: Node, pod: Pod, mask: int) -> Optional[PodBinding]:
        try:
            pod_ip = ipaddress.ip_address(pod.ip_address.strip())
        except ValueError:
            LOG.debug("pod %s has unparsable IP %r", pod.name, pod.ip_address)
            return None

        for if_index in sorted(node.interfaces):
            interface = node.interfaces[if_index]
            if self._config.tap_marker not in interface.internal_name:
                continue
            for address in interface.ip_addresses:
                try:
                    tap_ip = ipaddress.ip_interface(address).ip
                except ValueError:
                    continue
                if tap_ip.version != pod_ip.version:
                    continue
                if int(tap_ip) & mask == int(pod_ip) & mask:
                    return PodBinding(
                        if_ip_address=address,
                        if_internal_name=interface.internal_name,
                        if_name=interface.name,
                        sw_if_index=interface.sw_if_index,
                    )
        return None

    def apply_pod_bindings(self, bindings: Dict[str, PodBinding]) -> None:
        for name, binding in bindings.items():
            pod = self._k8s.retrieve_pod(name)
            if pod is None:
                continue
            binding.apply(pod)
            LOG.debug("pod %s bound to %s (%s)", name, binding.if_name, binding.if_internal_name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _is_overlay_bvi(self, interface: Interface) -> bool:
        return (
            interface.type is InterfaceType.SOFTWARE_LOOPBACK
            and interface.name == self._config.bvi_interface_name
        )
