"""CSV exports: gap list and per-category coverage."""

from __future__ import annotations

import csv
import io

from ..models.analysis import AnalysisResult
from .report import ensure_completed, format_score

GAP_COLUMNS = [
    "Control_Code",
    "Control_Title",
    "Category",
    "Severity",
    "Description",
    "Remediation",
    "Suggested_Policy",
]

COVERAGE_COLUMNS = [
    "Category_Code",
    "Category_Name",
    "Score",
    "Total_Controls",
    "Fully_Covered",
    "Partially_Covered",
    "Not_Covered",
]


def _write_rows(columns: list[str], rows: list[dict]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\r\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def generate_gaps_csv(analysis: AnalysisResult) -> str:
    ensure_completed(analysis)
    return _write_rows(GAP_COLUMNS, [
        {
            "Control_Code": g.control_code,
            "Control_Title": g.control_title,
            "Category": g.category_code,
            "Severity": g.severity.value,
            "Description": g.description,
            "Remediation": g.remediation,
            "Suggested_Policy": g.suggested_policy_type,
        }
        for g in analysis.gaps
    ])


def generate_coverage_csv(analysis: AnalysisResult) -> str:
    ensure_completed(analysis)
    return _write_rows(COVERAGE_COLUMNS, [
        {
            "Category_Code": c.category_code,
            "Category_Name": c.category_name,
            "Score": format_score(c.score),
            "Total_Controls": c.total_controls,
            "Fully_Covered": c.fully_covered,
            "Partially_Covered": c.partially_covered,
            "Not_Covered": c.not_covered,
        }
        for c in analysis.category_scores
    ])
