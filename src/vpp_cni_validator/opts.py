"""oslo.config options for services embedding the validator.

Services that already load their settings through oslo.config register these
options on their ``ConfigOpts`` instance and build a
:class:`~vpp_cni_validator.config.ValidatorConfig` from the parsed values.
"""

from oslo_config import cfg

from .config import (
    DEFAULT_BVI_INTERFACE_NAME,
    DEFAULT_TAP_MARKER,
    DEFAULT_VXLAN_BD_NAME,
    DEFAULT_VXLAN_VNI,
    ValidatorConfig,
)

GROUP = "validator"

validator_opts = [
    cfg.IntOpt('vxlan_vni',
               default=DEFAULT_VXLAN_VNI,
               min=0,
               max=16777215,
               help='VXLAN Network Identifier every overlay tunnel must use.'),
    cfg.StrOpt('vxlan_bd_name',
               default=DEFAULT_VXLAN_BD_NAME,
               help='Name of the bridge domain forming the VXLAN full mesh.'),
    cfg.StrOpt('bvi_interface_name',
               default=DEFAULT_BVI_INTERFACE_NAME,
               help='Name of the loopback interface acting as BVI of the '
                    'overlay bridge domain.'),
    cfg.StrOpt('tap_marker',
               default=DEFAULT_TAP_MARKER,
               help='Substring identifying pod tap interfaces in dataplane '
                    'internal interface names.'),
]


def register_validator_opts(conf=None):
    """Register the validator options in the ``validator`` group.

    Uses the global ``cfg.CONF`` unless another ``ConfigOpts`` is given.
    """
    conf = conf if conf is not None else cfg.CONF
    conf.register_opts(validator_opts, group=GROUP)
    return conf


def validator_config_from_conf(conf=None):
    """Build a ValidatorConfig from registered (and parsed) options."""
    conf = conf if conf is not None else cfg.CONF
    group = conf[GROUP]
    return ValidatorConfig(
        vxlan_vni=group.vxlan_vni,
        vxlan_bd_name=group.vxlan_bd_name,
        bvi_interface_name=group.bvi_interface_name,
        tap_marker=group.tap_marker,
    )


def list_opts():
    """Entry point for ``oslo-config-generator``."""
    return [(GROUP, validator_opts)]
