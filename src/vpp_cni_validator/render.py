"""Text rendering of validator findings."""

from __future__ import annotations

from typing import Dict, List

from .report import Finding, FindingCode, FindingKind, Report

INTERNAL_PREFIX = "validator internal error: "

TEMPLATES: Dict[FindingCode, str] = {
    FindingCode.ARP_BAD_IF_INDEX: "invalid ARP entry {entry}: bad ifIndex {actual}",
    FindingCode.ARP_BAD_MAC: "invalid ARP entry {entry}: bad MAC address",
    FindingCode.ARP_BAD_IP: "invalid ARP entry {entry}: bad IP address",
    FindingCode.ARP_NODE_MISMATCH: (
        "invalid ARP entry {entry}: MAC -> node {expected}, IP -> node {actual}"
    ),
    FindingCode.ARP_MISSING_ENTRY: "missing ARP entry for node {peer}",
    FindingCode.BD_MISSING: "no {expected} bridge domain - skipping L2 validation",
    FindingCode.BD_DUPLICATE: (
        "multiple {expected} bridge domains - skipping L2 validation"
    ),
    FindingCode.BD_IF_INDEX_INVALID: "ifIndex {actual} invalid for BD interface {interface}",
    FindingCode.BVI_DUPLICATE: "duplicate BVI {interface} (ifIndex {actual})",
    FindingCode.BVI_BAD_TYPE: "invalid BVI type {actual}, BVI {interface}",
    FindingCode.BVI_MISSING: "BVI in the cluster VXLAN BD is invalid or missing",
    FindingCode.LOOP_MAC_INDEX: "bad MAC address index, MAC {actual}, BVI {interface}",
    FindingCode.BD_IF_BAD_TYPE: "invalid BD interface type {actual}, interface {interface}",
    FindingCode.VNI_MISMATCH: "bad VNI for {interface}: got {actual}, expected {expected}",
    FindingCode.TUNNEL_SRC_UNKNOWN: (
        "error finding node with src IP {actual} of vxlan_tunnel {interface}"
    ),
    FindingCode.TUNNEL_SRC_FOREIGN: (
        "vxlan_tunnel {interface} has source IP {actual} which points to node "
        "{peer} instead of {expected}"
    ),
    FindingCode.TUNNEL_DST_UNKNOWN: (
        "node with dst IP {actual} in vxlan_tunnel {interface} not found"
    ),
    FindingCode.TUNNEL_NO_REMOTE: (
        "no matching vxlan_tunnel found on remote node {peer} for vxlan {interface}"
    ),
    FindingCode.TUNNEL_COUNT: (
        "the number of valid BD interfaces does not match the number of nodes "
        "in cluster: got {actual}, expected {expected}"
    ),
    FindingCode.BD_PEER_MISSING: "BD interface missing or invalid for node {peer}",
    FindingCode.NODE_NOT_VALIDATED: "failed to validate the cluster VXLAN BD",
    FindingCode.FIB_NO_BD: "{expected} not found - skipping L2Fib validation for node {node}",
    FindingCode.FIB_NO_LOCAL_LOOP: (
        "invalid L2Fib BVI entry '{entry}': loop interface not found on node {node}"
    ),
    FindingCode.FIB_BVI_MAC: (
        "L2Fib BVI entry '{entry}' invalid - bad MAC address; "
        "have '{actual}', expecting '{expected}'"
    ),
    FindingCode.FIB_MAC_INDEX: "L2Fib: inconsistent MAC address index, MAC {actual}",
    FindingCode.FIB_MAC_FOREIGN: (
        "L2Fib entry '{entry}': MAC {actual} belongs to node {peer}, expecting {expected}"
    ),
    FindingCode.FIB_OUT_IF: (
        "outgoing interface for L2Fib entry '{entry}' not found ifName {interface}, "
        "ifIndex {actual}"
    ),
    FindingCode.FIB_REMOTE_UNKNOWN: (
        "invalid L2Fib entry '{entry}': remote node for VXLAN DstIP '{actual}' not found"
    ),
    FindingCode.FIB_REMOTE_NO_LOOP: (
        "invalid L2Fib entry '{entry}': missing loop interface on remote node {peer}"
    ),
    FindingCode.FIB_REMOTE_MAC: (
        "invalid L2Fib entry '{entry}': have MAC address '{actual}', expecting '{expected}'"
    ),
    FindingCode.FIB_NO_BVI_ENTRY: "L2Fib entry for the BVI interface not found",
    FindingCode.FIB_MISSING: "missing L2Fib entry for node {peer}",
    FindingCode.FIB_DANGLING: "dangling L2Fib entry {entry} - no node for entry found",
    FindingCode.K8S_NODE_MISSING: "K8s node missing for dataplane node {node}",
    FindingCode.VPP_NODE_MISSING: "dataplane node missing for K8s node {node}",
    FindingCode.POD_HOST_UNKNOWN: "error finding node for pod {entry} with host IP {actual}",
    FindingCode.POD_NOT_ON_NODE: "pod {entry} not found in the pod map of node {node}",
    FindingCode.POD_COPY: (
        "pod {entry} in the pod map of node {node} is not the same object as the "
        "cluster pod record"
    ),
    FindingCode.POD_K8S_NODE: "cannot find k8s node for node with name {node}",
    FindingCode.POD_HOST_IP_MISMATCH: (
        "pod {entry} host IP {expected} does not match k8s node IP {actual}"
    ),
    FindingCode.POD_HOSTNAME_MISMATCH: (
        "k8s node host name {actual} does not match node name {expected}"
    ),
    FindingCode.POD_UNACCOUNTED: "error processing pod {entry}",
    FindingCode.TAP_HOST_UNKNOWN: (
        "inconsistent host IP address index, IP {actual} of pod {entry}"
    ),
    FindingCode.TAP_K8S_NODE: "inconsistent K8s node index, host name {node}",
    FindingCode.TAP_BAD_CIDR: "invalid pod CIDR '{actual}' on node {node}",
    FindingCode.TAP_UNBOUND: "did not find valid tap for pod {entry}",
}


def _render_summary(finding: Finding) -> str:
    errors = finding.actual or 0
    if not errors:
        return f"{finding.check.value}: OK"
    return f"{finding.check.value}: {errors} error{'s' if errors != 1 else ''} found"


def render_finding(finding: Finding) -> str:
    """Render a single finding as one report line."""

    if finding.kind is FindingKind.SUMMARY:
        return _render_summary(finding)

    fields = {
        "node": finding.node,
        "peer": finding.peer,
        "interface": finding.interface,
        "entry": finding.entry,
        "expected": finding.expected,
        "actual": finding.actual,
    }
    message = TEMPLATES[finding.code].format(**fields)
    if finding.kind is FindingKind.INTERNAL:
        return INTERNAL_PREFIX + message
    return message


def render_report(report: Report) -> Dict[str, List[str]]:
    """Render every bucket of ``report``, global bucket first."""

    return {
        target: [render_finding(f) for f in report.findings(target)]
        for target in report.targets()
    }


def format_text(report: Report) -> str:
    lines: List[str] = []
    for target, messages in render_report(report).items():
        lines.append(f"[{target}]")
        lines.extend(f"  {message}" for message in messages)
    return "\n".join(lines)
