"""Framework and mapping data models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CoverageLevel(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _COVERAGE_RANK[self]

    @classmethod
    def best(cls, levels) -> "CoverageLevel":
        """Highest level in ``levels``; NONE when empty."""
        return max(levels, key=lambda level: level.rank, default=cls.NONE)


_COVERAGE_RANK = {
    CoverageLevel.NONE: 0,
    CoverageLevel.PARTIAL: 1,
    CoverageLevel.FULL: 2,
}


class Control(BaseModel):
    """A single compliance requirement."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    title: str
    description: str = ""
    sort_order: int = 0
    category_id: str
    policy_type: Optional[str] = None


class Category(BaseModel):
    """A grouping of controls. ``parent_id`` links categories into a tree."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    name: str
    sort_order: int = 0
    parent_id: Optional[str] = None
    high_priority: bool = False
    policy_type: Optional[str] = None
    controls: tuple[Control, ...] = ()


class Framework(BaseModel):
    """A compliance framework. Categories are stored flat and addressed by id."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    name: str
    version: str = ""
    description: str = ""
    categories: tuple[Category, ...] = ()

    @property
    def control_count(self) -> int:
        return sum(len(c.controls) for c in self.categories)


class PolicyControlMapping(BaseModel):
    id: str
    policy_id: str
    control_id: str
    coverage: CoverageLevel
    verified: bool = False
    notes: Optional[str] = None
