"""Finding taxonomy and the report sink the sub-validators write to.

Every problem the validator detects becomes a :class:`Finding`: a closed
:class:`FindingCode` plus the structured fields that identify the offending
record.  Turning findings into text is left to :mod:`vpp_cni_validator.render`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

LOG = logging.getLogger(__name__)

GLOBAL = "<global>"
"""Report bucket for cluster-wide messages and per-check summaries."""


class FindingKind(Enum):
    STRUCTURAL = "structural"
    LOOKUP = "lookup"
    INTERNAL = "internal"
    SUMMARY = "summary"


class Check(Enum):
    """The sub-validators, in the order the orchestrator runs them."""

    ARP = "ARP table validation"
    L2_CONNECTIVITY = "L2 connectivity validation"
    L2FIB = "L2Fib validation"
    K8S_NODES = "K8s node validation"
    POD_INFO = "Pod info validation"
    TAP_BINDING = "Pod tap interface binding"


class FindingCode(Enum):
    """Every finding the validator can emit, with its kind."""

    def __init__(self, slug: str, kind: FindingKind) -> None:
        self.slug = slug
        self.kind = kind

    SUMMARY = ("summary", FindingKind.SUMMARY)

    ARP_BAD_IF_INDEX = ("arp-bad-if-index", FindingKind.LOOKUP)
    ARP_BAD_MAC = ("arp-bad-mac", FindingKind.LOOKUP)
    ARP_BAD_IP = ("arp-bad-ip", FindingKind.LOOKUP)
    ARP_NODE_MISMATCH = ("arp-node-mismatch", FindingKind.LOOKUP)
    ARP_MISSING_ENTRY = ("arp-missing-entry", FindingKind.LOOKUP)

    BD_MISSING = ("bd-missing", FindingKind.STRUCTURAL)
    BD_DUPLICATE = ("bd-duplicate", FindingKind.STRUCTURAL)
    BD_IF_INDEX_INVALID = ("bd-if-index-invalid", FindingKind.LOOKUP)
    BVI_DUPLICATE = ("bvi-duplicate", FindingKind.STRUCTURAL)
    BVI_BAD_TYPE = ("bvi-bad-type", FindingKind.STRUCTURAL)
    BVI_MISSING = ("bvi-missing", FindingKind.STRUCTURAL)
    LOOP_MAC_INDEX = ("loop-mac-index", FindingKind.INTERNAL)
    BD_IF_BAD_TYPE = ("bd-if-bad-type", FindingKind.STRUCTURAL)
    VNI_MISMATCH = ("vni-mismatch", FindingKind.LOOKUP)
    TUNNEL_SRC_UNKNOWN = ("tunnel-src-unknown", FindingKind.LOOKUP)
    TUNNEL_SRC_FOREIGN = ("tunnel-src-foreign", FindingKind.LOOKUP)
    TUNNEL_DST_UNKNOWN = ("tunnel-dst-unknown", FindingKind.LOOKUP)
    TUNNEL_NO_REMOTE = ("tunnel-no-remote", FindingKind.LOOKUP)
    TUNNEL_COUNT = ("tunnel-count", FindingKind.STRUCTURAL)
    BD_PEER_MISSING = ("bd-peer-missing", FindingKind.LOOKUP)
    NODE_NOT_VALIDATED = ("node-not-validated", FindingKind.STRUCTURAL)

    FIB_NO_BD = ("fib-no-bd", FindingKind.STRUCTURAL)
    FIB_NO_LOCAL_LOOP = ("fib-no-local-loop", FindingKind.STRUCTURAL)
    FIB_BVI_MAC = ("fib-bvi-mac", FindingKind.LOOKUP)
    FIB_MAC_INDEX = ("fib-mac-index", FindingKind.INTERNAL)
    FIB_MAC_FOREIGN = ("fib-mac-foreign", FindingKind.LOOKUP)
    FIB_OUT_IF = ("fib-out-if", FindingKind.LOOKUP)
    FIB_REMOTE_UNKNOWN = ("fib-remote-unknown", FindingKind.LOOKUP)
    FIB_REMOTE_NO_LOOP = ("fib-remote-no-loop", FindingKind.STRUCTURAL)
    FIB_REMOTE_MAC = ("fib-remote-mac", FindingKind.LOOKUP)
    FIB_NO_BVI_ENTRY = ("fib-no-bvi-entry", FindingKind.STRUCTURAL)
    FIB_MISSING = ("fib-missing", FindingKind.LOOKUP)
    FIB_DANGLING = ("fib-dangling", FindingKind.LOOKUP)

    K8S_NODE_MISSING = ("k8s-node-missing", FindingKind.LOOKUP)
    VPP_NODE_MISSING = ("vpp-node-missing", FindingKind.LOOKUP)

    POD_HOST_UNKNOWN = ("pod-host-unknown", FindingKind.LOOKUP)
    POD_NOT_ON_NODE = ("pod-not-on-node", FindingKind.LOOKUP)
    POD_COPY = ("pod-copy", FindingKind.INTERNAL)
    POD_K8S_NODE = ("pod-k8s-node", FindingKind.INTERNAL)
    POD_HOST_IP_MISMATCH = ("pod-host-ip-mismatch", FindingKind.LOOKUP)
    POD_HOSTNAME_MISMATCH = ("pod-hostname-mismatch", FindingKind.LOOKUP)
    POD_UNACCOUNTED = ("pod-unaccounted", FindingKind.LOOKUP)

    TAP_HOST_UNKNOWN = ("tap-host-unknown", FindingKind.INTERNAL)
    TAP_K8S_NODE = ("tap-k8s-node", FindingKind.INTERNAL)
    TAP_BAD_CIDR = ("tap-bad-cidr", FindingKind.STRUCTURAL)
    TAP_UNBOUND = ("tap-unbound", FindingKind.LOOKUP)


@dataclass(frozen=True)
class Finding:
    """A single diagnostic.

    Attributes
    ----------
    check:
        The sub-validator that produced the finding.
    code:
        What went wrong.
    node:
        The node whose state was being validated, if any.
    peer:
        The remote node involved (tunnel peer, missing ARP/FIB peer).
    interface:
        Interface name involved.
    entry:
        Identity of the offending record (ARP entry, FIB key, pod name).
    expected / actual:
        The value the check wanted and the value it found.
    """

    check: Check
    code: FindingCode
    node: Optional[str] = None
    peer: Optional[str] = None
    interface: Optional[str] = None
    entry: Optional[str] = None
    expected: object = None
    actual: object = None

    @property
    def kind(self) -> FindingKind:
        return self.code.kind

    @property
    def is_error(self) -> bool:
        return self.kind is not FindingKind.SUMMARY


class Report:
    """Accumulates findings per node name, plus the :data:`GLOBAL` bucket."""

    def __init__(self) -> None:
        self._buckets: Dict[str, List[Finding]] = {}

    def append(self, target: str, finding: Finding) -> None:
        self._buckets.setdefault(target, []).append(finding)

    def log_err_and_append(self, target: str, finding: Finding) -> None:
        """Append ``finding`` and also emit it to the operator log."""

        from .render import render_finding

        LOG.error("%s: %s", target, render_finding(finding))
        self.append(target, finding)

    def targets(self) -> List[str]:
        """Bucket names, global bucket first, nodes in first-report order."""

        names = [name for name in self._buckets if name != GLOBAL]
        if GLOBAL in self._buckets:
            names.insert(0, GLOBAL)
        return names

    def findings(self, target: Optional[str] = None) -> List[Finding]:
        if target is not None:
            return list(self._buckets.get(target, []))
        return [f for name in self.targets() for f in self._buckets[name]]

    def errors(
        self, check: Optional[Check] = None, code: Optional[FindingCode] = None
    ) -> List[Finding]:
        """Return non-summary findings, optionally filtered."""

        return [
            f
            for f in self.findings()
            if f.is_error
            and (check is None or f.check is check)
            and (code is None or f.code is code)
        ]

    def has_errors(self) -> bool:
        return any(f.is_error for f in self.findings())

    def clear(self) -> None:
        self._buckets.clear()
