"""Read adapters for framework definitions and policy-control mappings."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

from ..compliance.loader import get_framework_by_id, get_mappings_for_framework
from ..models.framework import Framework, PolicyControlMapping
from .errors import NotFoundError


@runtime_checkable
class FrameworkSource(Protocol):
    async def load_framework(self, framework_id: str) -> Framework: ...


@runtime_checkable
class MappingSource(Protocol):
    async def load_mappings_for_framework(
        self, framework_id: str
    ) -> list[PolicyControlMapping]: ...


class YamlFrameworkSource:
    """Frameworks read from a directory of YAML definitions."""

    def __init__(self, frameworks_dir: Path):
        self.frameworks_dir = Path(frameworks_dir)

    async def load_framework(self, framework_id: str) -> Framework:
        framework = await asyncio.to_thread(
            get_framework_by_id, framework_id, self.frameworks_dir
        )
        if framework is None:
            raise NotFoundError("Framework", framework_id)
        return framework


class YamlMappingSource:
    """Mappings read from YAML files keyed by ``framework_id``."""

    def __init__(self, mappings_dir: Path):
        self.mappings_dir = Path(mappings_dir)

    async def load_mappings_for_framework(self, framework_id: str) -> list[PolicyControlMapping]:
        return await asyncio.to_thread(
            get_mappings_for_framework, framework_id, self.mappings_dir
        )


class InMemoryFrameworkSource:
    def __init__(self, frameworks: Iterable[Framework] = ()):
        self._frameworks = {f.id: f for f in frameworks}

    def add(self, framework: Framework) -> None:
        self._frameworks[framework.id] = framework

    async def load_framework(self, framework_id: str) -> Framework:
        try:
            return self._frameworks[framework_id]
        except KeyError:
            raise NotFoundError("Framework", framework_id) from None


class InMemoryMappingSource:
    def __init__(self, mappings: dict[str, list[PolicyControlMapping]] | None = None):
        self._mappings = {k: list(v) for k, v in (mappings or {}).items()}

    def set(self, framework_id: str, mappings: list[PolicyControlMapping]) -> None:
        self._mappings[framework_id] = list(mappings)

    async def load_mappings_for_framework(self, framework_id: str) -> list[PolicyControlMapping]:
        # Copy so a job works on its own snapshot
        return list(self._mappings.get(framework_id, []))
