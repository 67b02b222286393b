"""Remediation recommendations synthesized from the gap list."""

from __future__ import annotations

from collections import Counter

from ..models.analysis import GapItem, Recommendation, Severity, Timeframe
from ..models.framework import CoverageLevel

DEFAULT_MAX_RECOMMENDATIONS = 10

_ACTIONABLE = (Severity.CRITICAL, Severity.HIGH)


def select_timeframe(gaps: list[GapItem]) -> Timeframe:
    """IMMEDIATE for any critical gap, SHORT_TERM for any high, else MEDIUM_TERM."""
    severities = {g.severity for g in gaps}
    if Severity.CRITICAL in severities:
        return Timeframe.IMMEDIATE
    if Severity.HIGH in severities:
        return Timeframe.SHORT_TERM
    return Timeframe.MEDIUM_TERM


def _summarize(policy_type: str, gaps: list[GapItem]) -> tuple[str, str]:
    counts = Counter(g.severity for g in gaps)
    breakdown = ", ".join(
        f"{counts[s]} {s.value}" for s in Severity if counts.get(s)
    )
    categories = sorted({g.category_code for g in gaps})
    uncovered = any(g.coverage is CoverageLevel.NONE for g in gaps)

    title = f"Establish {policy_type}" if uncovered else f"Strengthen {policy_type}"
    noun = "gap" if len(gaps) == 1 else "gaps"
    description = (
        f"Address {len(gaps)} {noun} ({breakdown}) in "
        f"{', '.join(categories)} by "
        f"{'adopting' if uncovered else 'extending'} a {policy_type}. "
        f"Controls: {', '.join(g.control_code for g in gaps)}."
    )
    return title, description


def synthesize_recommendations(
    gaps: list[GapItem],
    max_count: int = DEFAULT_MAX_RECOMMENDATIONS,
) -> list[Recommendation]:
    """Group gaps by suggested policy type and turn actionable groups into recommendations.

    A group qualifies when it holds at least one critical or high gap.
    Groups are ordered by timeframe, then by gap count (descending), then by
    where the group first appears in the gap list. Groups past ``max_count``
    are dropped whole.
    """
    groups: dict[str, list[GapItem]] = {}
    for gap in gaps:
        groups.setdefault(gap.suggested_policy_type, []).append(gap)

    candidates: list[tuple[tuple, str, list[GapItem], Timeframe]] = []
    for first_seen, (policy_type, group) in enumerate(groups.items()):
        if not any(g.severity in _ACTIONABLE for g in group):
            continue
        timeframe = select_timeframe(group)
        sort_key = (timeframe.rank, -len(group), first_seen)
        candidates.append((sort_key, policy_type, group, timeframe))

    candidates.sort(key=lambda c: c[0])

    recommendations: list[Recommendation] = []
    for priority, (_, policy_type, group, timeframe) in enumerate(
        candidates[:max(max_count, 0)], start=1
    ):
        title, description = _summarize(policy_type, group)
        recommendations.append(Recommendation(
            priority=priority,
            title=title,
            description=description,
            timeframe=timeframe,
            policy_type=policy_type,
            related_gaps=[g.control_code for g in group],
        ))

    return recommendations
