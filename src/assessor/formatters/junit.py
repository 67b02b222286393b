"""JUnit XML formatter for CI/CD integration.

Each framework category with gaps becomes a testsuite and each gap a
testcase; gaps at or above the failing severities are reported as failures,
the rest as skipped. Fully covered controls produce no testcase.
"""

from __future__ import annotations

from pathlib import Path
from xml.dom import minidom
from xml.etree import ElementTree as ET

from ..models.analysis import AnalysisResult, GapItem
from .report import ensure_completed


def build_junit_xml(
    analysis: AnalysisResult,
    fail_on: list[str] | None = None,
    suite_name: str = "Policy Assessor",
) -> bytes:
    """Render a completed analysis as JUnit XML.

    Args:
        analysis: Completed analysis record.
        fail_on: Severities to mark as failures. Default: critical, high.
        suite_name: Name for the testsuites element.
    """
    ensure_completed(analysis)
    if fail_on is None:
        fail_on = ["critical", "high"]
    fail_set = {s.lower() for s in fail_on}

    by_category: dict[str, list[GapItem]] = {}
    for gap in analysis.gaps:
        by_category.setdefault(gap.category_code, []).append(gap)

    testsuites = ET.Element("testsuites")
    testsuites.set("name", suite_name)
    if analysis.completed_at:
        testsuites.set("timestamp", analysis.completed_at.strftime("%Y-%m-%dT%H:%M:%S"))

    total_tests = 0
    total_failures = 0
    total_skipped = 0

    for category in analysis.category_scores:
        gaps = by_category.get(category.category_code, [])
        if not gaps:
            continue

        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", category.category_code)
        testsuite.set("tests", str(len(gaps)))
        total_tests += len(gaps)

        suite_failures = 0
        for gap in gaps:
            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", f"{gap.control_code}: {gap.control_title}")
            testcase.set("classname", category.category_code)

            severity = gap.severity.value
            if severity not in fail_set:
                skipped = ET.SubElement(testcase, "skipped")
                skipped.set("message", f"[{severity}] {gap.description}")
                continue

            suite_failures += 1
            failure = ET.SubElement(testcase, "failure")
            failure.set("message", f"[{severity.upper()}] {gap.control_title or gap.control_code}")
            failure.set("type", severity)
            failure.text = "\n".join([
                f"Severity: {severity}",
                f"Coverage: {gap.coverage.value}",
                f"\nDescription:\n{gap.description}",
                f"\nRemediation:\n{gap.remediation}",
            ])

        total_failures += suite_failures
        total_skipped += len(gaps) - suite_failures
        testsuite.set("failures", str(suite_failures))
        testsuite.set("errors", "0")
        testsuite.set("skipped", str(len(gaps) - suite_failures))

    testsuites.set("tests", str(total_tests))
    testsuites.set("failures", str(total_failures))
    testsuites.set("errors", "0")
    testsuites.set("skipped", str(total_skipped))

    rough = ET.tostring(testsuites, encoding="unicode")
    dom = minidom.parseString(rough)
    return dom.toprettyxml(indent="  ", encoding="UTF-8")


def export_junit_results(
    analysis: AnalysisResult,
    output_path: Path,
    fail_on: list[str] | None = None,
) -> dict:
    """Write JUnit XML for an analysis.

    Returns:
        Dict with: path, total_tests, failures, skipped, passed.
    """
    xml_bytes = build_junit_xml(analysis, fail_on=fail_on)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(xml_bytes)

    root = ET.fromstring(xml_bytes)
    total = int(root.get("tests", "0"))
    failures = int(root.get("failures", "0"))
    skipped = int(root.get("skipped", "0"))
    return {
        "path": str(output_path),
        "total_tests": total,
        "failures": failures,
        "skipped": skipped,
        "passed": total - failures - skipped,
    }
