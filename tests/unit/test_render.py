from vpp_cni_validator.render import (
    INTERNAL_PREFIX,
    TEMPLATES,
    format_text,
    render_finding,
    render_report,
)
from vpp_cni_validator.report import GLOBAL, Check, Finding, FindingCode, FindingKind, Report


def summary(check, errors):
    return Finding(check, FindingCode.SUMMARY, actual=errors)


def test_every_error_code_has_a_template():
    codes = {code for code in FindingCode if code.kind is not FindingKind.SUMMARY}
    assert codes == set(TEMPLATES)


def test_summary_lines():
    assert render_finding(summary(Check.ARP, 0)) == "ARP table validation: OK"
    assert render_finding(summary(Check.L2FIB, 1)) == "L2Fib validation: 1 error found"
    assert render_finding(summary(Check.POD_INFO, 3)) == "Pod info validation: 3 errors found"


def test_internal_findings_are_prefixed():
    finding = Finding(
        Check.L2FIB, FindingCode.FIB_MAC_INDEX, node="k8s-node1", actual="de:ad:be:ef:00:01"
    )

    assert render_finding(finding) == (
        INTERNAL_PREFIX + "L2Fib: inconsistent MAC address index, MAC de:ad:be:ef:00:01"
    )


def test_lookup_finding_text():
    finding = Finding(
        Check.L2_CONNECTIVITY,
        FindingCode.VNI_MISMATCH,
        node="k8s-node2",
        interface="vxlan3 (vxlan_tunnel3)",
        expected=10,
        actual=20,
    )

    assert render_finding(finding) == "bad VNI for vxlan3 (vxlan_tunnel3): got 20, expected 10"


def test_render_report_and_text():
    report = Report()
    report.append(
        "k8s-node1",
        Finding(Check.ARP, FindingCode.ARP_MISSING_ENTRY, node="k8s-node1", peer="k8s-node2"),
    )
    report.append(GLOBAL, summary(Check.ARP, 1))

    assert render_report(report) == {
        GLOBAL: ["ARP table validation: 1 error found"],
        "k8s-node1": ["missing ARP entry for node k8s-node2"],
    }
    assert format_text(report) == (
        "[<global>]\n"
        "  ARP table validation: 1 error found\n"
        "[k8s-node1]\n"
        "  missing ARP entry for node k8s-node2"
    )
