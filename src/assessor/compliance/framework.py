"""In-memory index over a framework's category arena.

Built once per analysis run. Categories stay flat and are addressed by id;
parent/child links are derived lookups, never object pointers.
"""

from __future__ import annotations

from typing import Iterator, Optional

from ..core.errors import InvalidFrameworkError
from ..models.framework import Category, Control, Framework


def validate_hierarchy(framework: Framework) -> None:
    """Reject duplicate ids, dangling parents, and cycles."""
    by_id: dict[str, Category] = {}
    for category in framework.categories:
        if category.id in by_id:
            raise InvalidFrameworkError(
                f"Framework {framework.code}: duplicate category id {category.id}"
            )
        by_id[category.id] = category

    control_ids: set[str] = set()
    for category in framework.categories:
        if category.parent_id is not None and category.parent_id not in by_id:
            raise InvalidFrameworkError(
                f"Framework {framework.code}: category {category.code} "
                f"references unknown parent {category.parent_id}"
            )
        for control in category.controls:
            if control.id in control_ids:
                raise InvalidFrameworkError(
                    f"Framework {framework.code}: duplicate control id {control.id}"
                )
            if control.category_id != category.id:
                raise InvalidFrameworkError(
                    f"Framework {framework.code}: control {control.code} is listed "
                    f"under {category.code} but belongs to {control.category_id}"
                )
            control_ids.add(control.id)

    # Walk each chain upward; revisiting a category means a cycle
    for category in framework.categories:
        seen = {category.id}
        parent_id = category.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise InvalidFrameworkError(
                    f"Framework {framework.code}: category hierarchy cycle at {category.code}"
                )
            seen.add(parent_id)
            parent_id = by_id[parent_id].parent_id


class FrameworkIndex:
    """Lookups over a validated framework.

    - ``control(id)`` / ``category_of(control_id)``: O(1) control resolution
    - ``children(id)``: derived child ids, in sort order
    - ``ordered_categories``: depth-first pre-order, siblings by sort order
    - ``category_rank(id)``: position in that order, used for stable sorting
    """

    def __init__(self, framework: Framework):
        validate_hierarchy(framework)
        self.framework = framework
        self._categories: dict[str, Category] = {c.id: c for c in framework.categories}
        self._controls: dict[str, tuple[Control, Category]] = {}
        for category in framework.categories:
            for control in category.controls:
                self._controls[control.id] = (control, category)

        self._children: dict[Optional[str], list[str]] = {}
        for category in framework.categories:
            self._children.setdefault(category.parent_id, []).append(category.id)
        declared = {c.id: i for i, c in enumerate(framework.categories)}
        for ids in self._children.values():
            ids.sort(key=lambda cid: (self._categories[cid].sort_order, declared[cid]))

        self.ordered_categories: list[Category] = list(self._walk(None))
        self._rank = {c.id: i for i, c in enumerate(self.ordered_categories)}

    def _walk(self, parent_id: Optional[str]) -> Iterator[Category]:
        for child_id in self._children.get(parent_id, []):
            yield self._categories[child_id]
            yield from self._walk(child_id)

    @property
    def control_count(self) -> int:
        return len(self._controls)

    def has_control(self, control_id: str) -> bool:
        return control_id in self._controls

    def control(self, control_id: str) -> Control:
        return self._controls[control_id][0]

    def category_of(self, control_id: str) -> Category:
        return self._controls[control_id][1]

    def category(self, category_id: str) -> Category:
        return self._categories[category_id]

    def children(self, category_id: str) -> list[str]:
        return list(self._children.get(category_id, []))

    def category_rank(self, category_id: str) -> int:
        return self._rank[category_id]

    def depth(self, category_id: str) -> int:
        return sum(1 for _ in self.ancestors(category_id))

    def ancestors(self, category_id: str) -> Iterator[Category]:
        """Parent, grandparent, ... up to the root (excluding the category itself)."""
        parent_id = self._categories[category_id].parent_id
        while parent_id is not None:
            parent = self._categories[parent_id]
            yield parent
            parent_id = parent.parent_id

    def lineage(self, category_id: str) -> Iterator[Category]:
        """The category itself followed by its ancestors."""
        yield self._categories[category_id]
        yield from self.ancestors(category_id)

    def root_of(self, category_id: str) -> Category:
        *_, root = self.lineage(category_id)
        return root

    def subtree(self, category_id: str) -> Iterator[Category]:
        yield self._categories[category_id]
        for child_id in self._children.get(category_id, []):
            yield from self.subtree(child_id)

    def controls(self) -> Iterator[Control]:
        """All controls in category order, then control sort order."""
        for category in self.ordered_categories:
            yield from sorted_controls(category)

    def is_high_priority(self, category_id: str) -> bool:
        return any(c.high_priority for c in self.lineage(category_id))


def sorted_controls(category: Category) -> list[Control]:
    return sorted(category.controls, key=lambda c: (c.sort_order, c.code))
