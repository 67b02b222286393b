"""Gap detection: every control short of full coverage becomes a gap item."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from ..models.analysis import GapItem, Severity
from ..models.framework import Category, Control, CoverageLevel, PolicyControlMapping
from .framework import FrameworkIndex


def assign_severity(coverage: CoverageLevel, high_priority: bool) -> Severity:
    """Severity policy.

    - none: HIGH, escalated to CRITICAL in a high-priority category
    - partial: MEDIUM
    """
    if coverage is CoverageLevel.NONE:
        return Severity.CRITICAL if high_priority else Severity.HIGH
    if coverage is CoverageLevel.PARTIAL:
        return Severity.MEDIUM
    return Severity.LOW


def suggested_policy_type(index: FrameworkIndex, control: Control) -> str:
    """Control override, else the nearest category that names one, else the root category."""
    if control.policy_type:
        return control.policy_type
    for category in index.lineage(control.category_id):
        if category.policy_type:
            return category.policy_type
    return f"{index.root_of(control.category_id).name} Policy"


def _describe(control: Control, coverage: CoverageLevel, policies: list[str]) -> str:
    label = f"{control.code} ({control.title})" if control.title else control.code
    if coverage is CoverageLevel.PARTIAL:
        return (
            f"{label} is only partially addressed by "
            f"{', '.join(policies)}; the requirement is not fully met."
        )
    if policies:
        return f"{label} is mapped to {', '.join(policies)} but none of them cover it."
    return f"No policy addresses {label}."


def _remediate(control: Control, coverage: CoverageLevel, policy_type: str) -> str:
    requirement = control.description.strip() or control.title or control.code
    if coverage is CoverageLevel.PARTIAL:
        return f"Extend the {policy_type} so it fully covers: {requirement}"
    return f"Adopt a {policy_type} that implements: {requirement}"


def detect_gaps(
    index: FrameworkIndex,
    effective: dict[str, CoverageLevel],
    mappings: Iterable[PolicyControlMapping] = (),
) -> list[GapItem]:
    """Build the ordered gap list.

    Ordering is severity, then category order, then control sort order and
    code, so identical input always yields identical output.
    """
    policies_by_control: dict[str, list[str]] = defaultdict(list)
    for mapping in mappings:
        if mapping.policy_id not in policies_by_control[mapping.control_id]:
            policies_by_control[mapping.control_id].append(mapping.policy_id)

    keyed: list[tuple[tuple, GapItem]] = []
    for control in index.controls():
        coverage = effective.get(control.id, CoverageLevel.NONE)
        if coverage is CoverageLevel.FULL:
            continue

        category: Category = index.category_of(control.id)
        severity = assign_severity(coverage, index.is_high_priority(category.id))
        policy_type = suggested_policy_type(index, control)
        policies = sorted(policies_by_control.get(control.id, []))

        gap = GapItem(
            control_id=control.id,
            control_code=control.code,
            control_title=control.title,
            category_code=category.code,
            coverage=coverage,
            severity=severity,
            description=_describe(control, coverage, policies),
            remediation=_remediate(control, coverage, policy_type),
            suggested_policy_type=policy_type,
            related_policies=policies,
        )
        sort_key = (
            severity.rank,
            index.category_rank(category.id),
            control.sort_order,
            control.code,
        )
        keyed.append((sort_key, gap))

    keyed.sort(key=lambda pair: pair[0])
    return [gap for _, gap in keyed]
