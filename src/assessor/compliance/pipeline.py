"""Pure analysis pipeline: index -> aggregate -> gaps -> recommendations.

No I/O happens here. Unexpected faults in a stage are re-raised as
ComputationError naming the stage; InvalidFrameworkError passes through.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from ..core.errors import AssessorError, ComputationError
from ..models.analysis import AnalysisOutcome
from ..models.framework import Framework, PolicyControlMapping
from .coverage import aggregate_coverage
from .framework import FrameworkIndex
from .gaps import detect_gaps
from .recommendations import DEFAULT_MAX_RECOMMENDATIONS, synthesize_recommendations

T = TypeVar("T")


def _stage(name: str, fn: Callable[..., T], *args, **kwargs) -> T:
    try:
        return fn(*args, **kwargs)
    except AssessorError:
        raise
    except Exception as e:
        raise ComputationError(name, str(e) or type(e).__name__) from e


def run_pipeline(
    framework: Framework,
    mappings: list[PolicyControlMapping],
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS,
) -> AnalysisOutcome:
    """Compute a full coverage assessment for one framework and mapping set."""
    index = _stage("index", FrameworkIndex, framework)
    relevant = [m for m in mappings if index.has_control(m.control_id)]

    summary = _stage("aggregate", aggregate_coverage, index, relevant)
    gaps = _stage("gaps", detect_gaps, index, summary.effective, relevant)
    recommendations = _stage(
        "recommendations", synthesize_recommendations, gaps, max_recommendations
    )

    overall = summary.overall
    return AnalysisOutcome(
        total_controls=overall.total,
        controls_fully_covered=overall.full,
        controls_partially_covered=overall.partial,
        controls_not_covered=overall.not_covered,
        overall_score=summary.overall_score,
        category_scores=summary.category_scores,
        gaps=gaps,
        recommendations=recommendations,
        mappings_snapshot=sorted(relevant, key=lambda m: (m.control_id, m.policy_id, m.id)),
    )
