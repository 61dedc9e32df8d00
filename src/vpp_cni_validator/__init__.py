"""Consistency validator for VPP CNI cluster networking.

Each node of the cluster runs its own VPP dataplane.  The overlay is only
healthy when the per-node state is mutually consistent: every node holds a
VXLAN tunnel to every other node inside a single overlay bridge domain, static
ARP and L2 FIB entries point at the right peer loopbacks, and every pod is
wired to a tap interface on its host.

The package is read-only with respect to the dataplane.  It consumes
snapshots collected elsewhere and reports drift:

* :mod:`vpp_cni_validator.datastore` holds the snapshots and their indices;
* :class:`vpp_cni_validator.l2.Validator` runs the checks;
* :mod:`vpp_cni_validator.report` and :mod:`vpp_cni_validator.render`
  collect and print the findings.
"""

from .config import ValidatorConfig  # noqa: F401
from .datastore import K8sCache, VppCache  # noqa: F401
from .l2 import Validator  # noqa: F401
from .report import GLOBAL, Report  # noqa: F401

__all__ = [
    "GLOBAL",
    "K8sCache",
    "Report",
    "Validator",
    "ValidatorConfig",
    "VppCache",
]
