"""Analysis result data models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .framework import CoverageLevel, PolicyControlMapping


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.COMPLETED, AnalysisStatus.FAILED)


ALLOWED_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.PENDING: frozenset({AnalysisStatus.RUNNING}),
    AnalysisStatus.RUNNING: frozenset({AnalysisStatus.COMPLETED, AnalysisStatus.FAILED}),
    AnalysisStatus.COMPLETED: frozenset(),
    AnalysisStatus.FAILED: frozenset(),
}


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank; lower is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"

    @property
    def rank(self) -> int:
        return list(Timeframe).index(self)


class CategoryScore(BaseModel):
    category_id: str
    category_code: str
    category_name: str
    parent_code: Optional[str] = None
    depth: int = 0
    total_controls: int = 0
    fully_covered: int = 0
    partially_covered: int = 0
    not_covered: int = 0
    score: Optional[float] = None
    subtree_total_controls: int = 0
    subtree_score: Optional[float] = None


class GapItem(BaseModel):
    control_id: str
    control_code: str
    control_title: str
    category_code: str
    coverage: CoverageLevel
    severity: Severity
    description: str
    remediation: str
    suggested_policy_type: str
    related_policies: list[str] = []


class Recommendation(BaseModel):
    priority: int
    title: str
    description: str
    timeframe: Timeframe
    policy_type: str
    related_gaps: list[str]


class AnalysisOutcome(BaseModel):
    """Everything a successful run writes in its terminal snapshot."""

    total_controls: int
    controls_fully_covered: int
    controls_partially_covered: int
    controls_not_covered: int
    overall_score: float
    category_scores: list[CategoryScore] = []
    gaps: list[GapItem] = []
    recommendations: list[Recommendation] = []
    mappings_snapshot: list[PolicyControlMapping] = []


class AnalysisResult(BaseModel):
    id: str
    framework_id: str
    status: AnalysisStatus = AnalysisStatus.PENDING
    triggered_by: Optional[str] = None
    total_controls: Optional[int] = None
    controls_fully_covered: int = 0
    controls_partially_covered: int = 0
    controls_not_covered: int = 0
    overall_score: Optional[float] = None
    category_scores: list[CategoryScore] = []
    gaps: list[GapItem] = []
    recommendations: list[Recommendation] = []
    mappings_snapshot: list[PolicyControlMapping] = []
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
