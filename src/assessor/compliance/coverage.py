"""Coverage aggregation: effective coverage per control and category scores.

A control's effective coverage is the best level any mapping gives it,
so one adequately covering policy is enough. Scores weight a full control
as 1.0 and a partial one as 0.5.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..core.errors import InvalidFrameworkError
from ..models.analysis import CategoryScore
from ..models.framework import CoverageLevel, PolicyControlMapping
from .framework import FrameworkIndex


@dataclass(frozen=True)
class CoverageTally:
    total: int = 0
    full: int = 0
    partial: int = 0

    @property
    def not_covered(self) -> int:
        return self.total - self.full - self.partial

    @property
    def score(self) -> Optional[float]:
        return coverage_score(self.full, self.partial, self.total)

    def __add__(self, other: "CoverageTally") -> "CoverageTally":
        return CoverageTally(
            self.total + other.total,
            self.full + other.full,
            self.partial + other.partial,
        )


@dataclass(frozen=True)
class CoverageSummary:
    effective: dict[str, CoverageLevel]
    overall: CoverageTally
    category_scores: list[CategoryScore]

    @property
    def overall_score(self) -> float:
        return self.overall.score or 0.0


def coverage_score(full: int, partial: int, total: int) -> Optional[float]:
    """(full + 0.5 * partial) / total * 100, rounded half-up to one decimal.

    Returns None for an empty set of controls.
    """
    if total <= 0:
        return None
    raw = Decimal(2 * full + partial) * 100 / Decimal(2 * total)
    return float(raw.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def effective_coverage(
    index: FrameworkIndex,
    mappings: Iterable[PolicyControlMapping],
) -> dict[str, CoverageLevel]:
    """Effective coverage for every control in the framework.

    Mappings for controls outside the framework are ignored.
    """
    levels: dict[str, list[CoverageLevel]] = defaultdict(list)
    for mapping in mappings:
        if index.has_control(mapping.control_id):
            levels[mapping.control_id].append(mapping.coverage)

    return {
        control.id: CoverageLevel.best(levels.get(control.id, []))
        for control in index.controls()
    }


def _tally(controls, effective: dict[str, CoverageLevel]) -> CoverageTally:
    total = full = partial = 0
    for control in controls:
        total += 1
        level = effective[control.id]
        if level is CoverageLevel.FULL:
            full += 1
        elif level is CoverageLevel.PARTIAL:
            partial += 1
    return CoverageTally(total, full, partial)


def aggregate_coverage(
    index: FrameworkIndex,
    mappings: Iterable[PolicyControlMapping],
) -> CoverageSummary:
    """Score every category and the framework as a whole.

    Raises InvalidFrameworkError when the framework has no controls.
    """
    if index.control_count == 0:
        raise InvalidFrameworkError(
            f"Framework {index.framework.code} has no controls; coverage cannot be scored"
        )

    effective = effective_coverage(index, mappings)

    own: dict[str, CoverageTally] = {
        category.id: _tally(category.controls, effective)
        for category in index.ordered_categories
    }

    category_scores: list[CategoryScore] = []
    for category in index.ordered_categories:
        tally = own[category.id]
        subtree = sum((own[c.id] for c in index.subtree(category.id)), CoverageTally())
        parent = index.category(category.parent_id) if category.parent_id else None
        category_scores.append(CategoryScore(
            category_id=category.id,
            category_code=category.code,
            category_name=category.name,
            parent_code=parent.code if parent else None,
            depth=index.depth(category.id),
            total_controls=tally.total,
            fully_covered=tally.full,
            partially_covered=tally.partial,
            not_covered=tally.not_covered,
            score=tally.score,
            subtree_total_controls=subtree.total,
            subtree_score=subtree.score,
        ))

    # Overall is computed over all controls, not averaged across categories
    overall = _tally(index.controls(), effective)

    return CoverageSummary(
        effective=effective,
        overall=overall,
        category_scores=category_scores,
    )
