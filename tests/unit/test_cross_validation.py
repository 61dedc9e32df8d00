import logging

from vpp_cni_validator import GLOBAL, Report, Validator
from vpp_cni_validator.model import K8sNode, NodeAddress, NodeAddressType, Pod
from vpp_cni_validator.report import FindingCode, FindingKind

from cluster_builder import host_ip


def run(cluster, method):
    vpp, k8s = cluster.caches()
    report = Report()
    errors = getattr(Validator(vpp, k8s, report), method)()
    return errors, report


def error_codes(report):
    return [f.code for f in report.errors()]


def test_node_lists_match(cluster):
    errors, report = run(cluster, "validate_k8s_node_info")

    assert errors == 0
    assert [f.code for f in report.findings(GLOBAL)] == [FindingCode.SUMMARY]


def test_k8s_node_without_dataplane_node(cluster):
    cluster.k8s_nodes.append(K8sNode(name="k8s-node9", pod_cidr="10.1.9.0/24"))

    errors, report = run(cluster, "validate_k8s_node_info")

    assert errors == 1
    (finding,) = report.findings("k8s-node9")
    assert finding.code is FindingCode.VPP_NODE_MISSING


def test_dataplane_node_without_k8s_node_reported_once(cluster):
    cluster.k8s_nodes.pop(1)

    errors, report = run(cluster, "validate_k8s_node_info")

    assert errors == 1
    assert error_codes(report) == [FindingCode.K8S_NODE_MISSING]
    assert report.errors()[0].node == "k8s-node2"


def test_pods_consistent(cluster):
    errors, _ = run(cluster, "validate_pod_info")

    assert errors == 0


def test_copied_pod_is_internal_error(cluster):
    shared = cluster.pod("pod-2")
    cluster.node(2).pods["pod-2"] = Pod(
        name=shared.name,
        host_ip_address=shared.host_ip_address,
        ip_address=shared.ip_address,
    )

    errors, report = run(cluster, "validate_pod_info")

    assert errors == 2
    (copy,) = report.findings("k8s-node2")
    assert copy.code is FindingCode.POD_COPY
    assert copy.kind is FindingKind.INTERNAL
    unaccounted = report.errors(code=FindingCode.POD_UNACCOUNTED)
    assert [f.entry for f in unaccounted] == ["pod-2"]


def test_pod_with_unknown_host(cluster):
    cluster.pod("pod-3").host_ip_address = "10.20.0.99"

    errors, report = run(cluster, "validate_pod_info")

    assert errors == 2
    assert [f.code for f in report.findings(GLOBAL) if f.is_error] == [
        FindingCode.POD_HOST_UNKNOWN,
        FindingCode.POD_UNACCOUNTED,
    ]
    assert report.findings(GLOBAL)[0].actual == "10.20.0.99"


def test_pod_missing_from_node_pod_map(cluster):
    del cluster.node(1).pods["pod-1"]

    _, report = run(cluster, "validate_pod_info")

    assert error_codes(report) == [FindingCode.POD_UNACCOUNTED]
    assert [f.code for f in report.findings("k8s-node1")] == [FindingCode.POD_NOT_ON_NODE]


def test_hostname_mismatch(cluster):
    k8s_node = cluster.k8s_nodes[1]
    k8s_node.addresses = (
        NodeAddress(NodeAddressType.INTERNAL_IP, host_ip(2)),
        NodeAddress(NodeAddressType.HOSTNAME, "node-two"),
    )

    errors, report = run(cluster, "validate_pod_info")

    assert errors == 2
    (mismatch,) = report.findings("k8s-node2")
    assert mismatch.code is FindingCode.POD_HOSTNAME_MISMATCH
    assert mismatch.actual == "node-two"
    assert mismatch.expected == "k8s-node2"


def test_host_ip_mismatch_reported_per_pod(cluster):
    k8s_node = cluster.k8s_nodes[0]
    k8s_node.addresses = (
        NodeAddress(NodeAddressType.INTERNAL_IP, "10.20.0.50"),
        NodeAddress(NodeAddressType.HOSTNAME, "k8s-node1"),
    )

    errors, report = run(cluster, "validate_pod_info")

    mismatches = report.errors(code=FindingCode.POD_HOST_IP_MISMATCH)
    assert sorted(f.entry for f in mismatches) == ["kube-proxy-1", "pod-1"]
    assert len(report.errors(code=FindingCode.POD_UNACCOUNTED)) == 2
    assert errors == 4


def test_extra_addresses_are_ignored(cluster):
    k8s_node = cluster.k8s_nodes[2]
    k8s_node.addresses = (
        *k8s_node.addresses,
        NodeAddress(NodeAddressType.EXTERNAL_IP, "203.0.113.3"),
    )

    errors, _ = run(cluster, "validate_pod_info")

    assert errors == 0


def test_pod_host_without_k8s_node_is_logged(cluster, caplog):
    cluster.k8s_nodes.pop(2)

    with caplog.at_level(logging.ERROR):
        errors, report = run(cluster, "validate_pod_info")

    assert errors == 2
    (finding,) = report.findings("k8s-node3")
    assert finding.code is FindingCode.POD_K8S_NODE
    assert "cannot find k8s node for node with name k8s-node3" in caplog.text
