"""Markdown compliance report for a completed analysis."""

from __future__ import annotations

from typing import Optional

from .. import __version__
from ..core.errors import AnalysisNotCompletedError
from ..models.analysis import AnalysisResult, AnalysisStatus


def ensure_completed(analysis: AnalysisResult) -> AnalysisResult:
    """Exports only read completed analyses."""
    if analysis.status is not AnalysisStatus.COMPLETED:
        raise AnalysisNotCompletedError(analysis.id, analysis.status.value)
    return analysis


def format_score(score: Optional[float]) -> str:
    return "N/A" if score is None else f"{score:.1f}%"


def generate_markdown_report(
    analysis: AnalysisResult,
    framework_name: str = "",
) -> str:
    """Generate the compliance analysis report as Markdown."""
    ensure_completed(analysis)

    completed = analysis.completed_at.strftime("%Y-%m-%d %H:%M:%S") if analysis.completed_at else "N/A"

    lines: list[str] = []
    lines.append("# Compliance Analysis Report")
    lines.append("")
    lines.append(f"**Framework:** {framework_name or analysis.framework_id}")
    lines.append(f"**Analysis:** {analysis.id}")
    lines.append(f"**Date:** {completed}")
    lines.append(f"**Triggered by:** {analysis.triggered_by or 'N/A'}")
    lines.append(f"**Overall Score:** {format_score(analysis.overall_score)}")
    lines.append("")

    # Summary table
    lines.append("## Summary")
    lines.append("")
    lines.append("| Coverage | Controls |")
    lines.append("|----------|----------|")
    lines.append(f"| Full     | {analysis.controls_fully_covered} |")
    lines.append(f"| Partial  | {analysis.controls_partially_covered} |")
    lines.append(f"| None     | {analysis.controls_not_covered} |")
    lines.append(f"| **Total** | **{analysis.total_controls or 0}** |")
    lines.append("")

    if analysis.category_scores:
        lines.append("## Category Breakdown")
        lines.append("")
        lines.append("| Category | Name | Score | Full | Partial | None | Subtree |")
        lines.append("|----------|------|-------|------|---------|------|---------|")
        for cat in analysis.category_scores:
            indent = "&nbsp;&nbsp;" * cat.depth
            lines.append(
                f"| {indent}{cat.category_code} | {cat.category_name} | {format_score(cat.score)} | "
                f"{cat.fully_covered} | {cat.partially_covered} | {cat.not_covered} | "
                f"{format_score(cat.subtree_score)} |"
            )
        lines.append("")

    if analysis.gaps:
        lines.append("## Compliance Gaps")
        lines.append("")
        for gap in analysis.gaps:
            lines.append(f"### {gap.control_code}: {gap.control_title} [{gap.severity.value.upper()}]")
            lines.append(f"**Category:** {gap.category_code}")
            lines.append(f"**Suggested policy:** {gap.suggested_policy_type}")
            lines.append(f"\n{gap.description}")
            lines.append(f"\n**Remediation:** {gap.remediation}")
            lines.append("")

    if analysis.recommendations:
        lines.append("## Recommendations")
        lines.append("")
        for rec in analysis.recommendations:
            lines.append(f"{rec.priority}. **{rec.title}** [{rec.timeframe.value}]")
            lines.append(f"   {rec.description}")
        lines.append("")

    lines.append("---")
    lines.append(f"*Generated by Policy Assessor v{__version__}*")

    return "\n".join(lines)
