"""Overlay constants the validator checks the cluster against."""

from __future__ import annotations

from dataclasses import dataclass


DEFAULT_VXLAN_VNI = 10
DEFAULT_VXLAN_BD_NAME = "vxlanBD"
DEFAULT_BVI_INTERFACE_NAME = "vxlanBVI"
DEFAULT_TAP_MARKER = "tap"


@dataclass(frozen=True)
class ValidatorConfig:
    """Cluster-wide overlay settings.

    Attributes
    ----------
    vxlan_vni:
        VNI every overlay tunnel is expected to carry.
    vxlan_bd_name:
        Name of the bridge domain that forms the VXLAN full mesh.
    bvi_interface_name:
        Name of the loopback interface acting as BVI of the overlay BD.
    tap_marker:
        Substring identifying pod tap interfaces in dataplane internal names.
    """

    vxlan_vni: int = DEFAULT_VXLAN_VNI
    vxlan_bd_name: str = DEFAULT_VXLAN_BD_NAME
    bvi_interface_name: str = DEFAULT_BVI_INTERFACE_NAME
    tap_marker: str = DEFAULT_TAP_MARKER
