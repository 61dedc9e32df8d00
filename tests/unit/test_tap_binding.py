from vpp_cni_validator import GLOBAL, Report, Validator, ValidatorConfig
from vpp_cni_validator.l2 import host_bits_mask
from vpp_cni_validator.model import Interface, InterfaceType
from vpp_cni_validator.report import FindingCode, FindingKind

from cluster_builder import TAP_INDEX


def bind(cluster, config=None):
    vpp, k8s = cluster.caches()
    report = Report()
    bindings = Validator(vpp, k8s, report, config).validate_tap_to_pod()
    return bindings, report


def test_host_bits_mask():
    assert host_bits_mask("10.1.1.0/24") == 0xFF
    assert host_bits_mask("10.1.0.0/16") == 0xFFFF
    assert host_bits_mask("fd00:10::/120") == 0xFF
    assert host_bits_mask("not-a-cidr") is None


def test_bindings_returned_without_touching_pods(cluster):
    bindings, report = bind(cluster)

    assert sorted(bindings) == ["pod-1", "pod-2", "pod-3"]
    binding = bindings["pod-3"]
    assert binding.if_name == "tap-pod-3"
    assert binding.if_ip_address == "10.2.3.2/32"
    assert binding.sw_if_index == TAP_INDEX
    assert cluster.pod("pod-3").bound_if_name == ""
    assert report.errors() == []


def test_host_network_pod_is_skipped(cluster):
    bindings, report = bind(cluster)

    assert "kube-proxy-1" not in bindings
    assert report.errors(code=FindingCode.TAP_UNBOUND) == []


def test_pod_without_matching_tap(cluster):
    cluster.node(2).interfaces[TAP_INDEX].ip_addresses = ("10.2.2.9/32",)

    bindings, report = bind(cluster)

    assert "pod-2" not in bindings
    (unbound,) = report.errors()
    assert unbound.code is FindingCode.TAP_UNBOUND
    assert unbound.entry == "pod-2"
    assert unbound in report.findings(GLOBAL)


def test_bad_pod_cidr(cluster):
    cluster.k8s_nodes[2].pod_cidr = "garbage"

    bindings, report = bind(cluster)

    assert "pod-3" not in bindings
    (bad_cidr,) = report.findings("k8s-node3")
    assert bad_cidr.code is FindingCode.TAP_BAD_CIDR
    assert bad_cidr.actual == "garbage"
    assert [f.entry for f in report.errors(code=FindingCode.TAP_UNBOUND)] == ["pod-3"]


def test_lowest_interface_index_wins(cluster):
    node = cluster.node(1)
    node.interfaces[0] = Interface(
        name="tap-early",
        type=InterfaceType.TAP,
        ip_addresses=("10.7.1.2/32",),
        internal_name="tap5",
        sw_if_index=0,
    )
    node.interfaces[50] = Interface(
        name="tap-late",
        type=InterfaceType.TAP,
        ip_addresses=("10.9.1.2/32",),
        internal_name="tap6",
        sw_if_index=50,
    )

    bindings, _ = bind(cluster)

    assert bindings["pod-1"].if_name == "tap-early"
    assert bindings["pod-1"].sw_if_index == 0


def test_tap_marker_is_configurable(cluster):
    bindings, report = bind(cluster, ValidatorConfig(tap_marker="veth"))

    assert bindings == {}
    assert len(report.errors(code=FindingCode.TAP_UNBOUND)) == 3


def test_unknown_host_is_internal_error(cluster):
    cluster.pod("pod-1").host_ip_address = "10.20.0.99"

    _, report = bind(cluster)

    codes = [f.code for f in report.findings(GLOBAL) if f.is_error]
    assert codes == [FindingCode.TAP_HOST_UNKNOWN, FindingCode.TAP_UNBOUND]
    assert report.findings(GLOBAL)[0].kind is FindingKind.INTERNAL


def test_apply_pod_bindings(cluster):
    vpp, k8s = cluster.caches()
    validator = Validator(vpp, k8s, Report())

    validator.apply_pod_bindings(validator.validate_tap_to_pod())

    pod = cluster.pod("pod-1")
    assert pod.bound_if_internal_name == "tap0"
    assert pod.bound_sw_if_index == TAP_INDEX
    assert cluster.node(1).pods["pod-1"].bound_if_name == "tap-pod-1"
