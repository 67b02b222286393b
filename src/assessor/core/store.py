"""Analysis record persistence.

Stores own the lifecycle rules: a record moves pending -> running ->
completed|failed, and terminal records are never written again. Every
transition is a single read-check-write under the store's lock.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from pydantic import ValidationError
from rich.console import Console

from ..models.analysis import (
    ALLOWED_TRANSITIONS,
    AnalysisOutcome,
    AnalysisResult,
    AnalysisStatus,
)
from .errors import InvalidTransitionError, NotFoundError, PersistenceError

console = Console()

_ANALYSIS_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@runtime_checkable
class AnalysisStore(Protocol):
    async def create_pending(self, framework_id: str, triggered_by: Optional[str]) -> AnalysisResult: ...

    async def get(self, analysis_id: str) -> AnalysisResult: ...

    async def mark_running(self, analysis_id: str) -> AnalysisResult: ...

    async def commit(self, analysis_id: str, outcome: AnalysisOutcome) -> AnalysisResult: ...

    async def mark_failed(self, analysis_id: str, error_message: str) -> AnalysisResult: ...

    async def list(
        self,
        framework_id: Optional[str] = None,
        status: Optional[AnalysisStatus] = None,
        limit: int = 20,
    ) -> list[AnalysisResult]: ...


class BaseAnalysisStore:
    """Lifecycle logic shared by concrete stores. Subclasses implement raw I/O."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def _load(self, analysis_id: str) -> Optional[AnalysisResult]:
        raise NotImplementedError

    async def _save(self, record: AnalysisResult) -> None:
        raise NotImplementedError

    async def _all(self) -> list[AnalysisResult]:
        raise NotImplementedError

    async def create_pending(self, framework_id: str, triggered_by: Optional[str]) -> AnalysisResult:
        record = AnalysisResult(
            id=str(uuid.uuid4()),
            framework_id=framework_id,
            triggered_by=triggered_by,
            status=AnalysisStatus.PENDING,
            created_at=utcnow(),
        )
        async with self._lock:
            await self._save(record)
        return record

    async def get(self, analysis_id: str) -> AnalysisResult:
        record = await self._load(analysis_id)
        if record is None:
            raise NotFoundError("Analysis", analysis_id)
        return record

    async def _transition(self, analysis_id: str, target: AnalysisStatus, **fields) -> AnalysisResult:
        async with self._lock:
            record = await self.get(analysis_id)
            if target not in ALLOWED_TRANSITIONS[record.status]:
                raise InvalidTransitionError(analysis_id, record.status.value, target.value)
            updated = record.model_copy(update={"status": target, **fields})
            await self._save(updated)
            return updated

    async def mark_running(self, analysis_id: str) -> AnalysisResult:
        return await self._transition(
            analysis_id, AnalysisStatus.RUNNING, started_at=utcnow()
        )

    async def commit(self, analysis_id: str, outcome: AnalysisOutcome) -> AnalysisResult:
        fields = {name: getattr(outcome, name) for name in AnalysisOutcome.model_fields}
        return await self._transition(
            analysis_id,
            AnalysisStatus.COMPLETED,
            completed_at=utcnow(),
            error_message=None,
            **fields,
        )

    async def mark_failed(self, analysis_id: str, error_message: str) -> AnalysisResult:
        return await self._transition(
            analysis_id,
            AnalysisStatus.FAILED,
            error_message=error_message,
            completed_at=utcnow(),
        )

    async def list(
        self,
        framework_id: Optional[str] = None,
        status: Optional[AnalysisStatus] = None,
        limit: int = 20,
    ) -> list[AnalysisResult]:
        records = [
            r for r in await self._all()
            if (framework_id is None or r.framework_id == framework_id)
            and (status is None or r.status == status)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit] if limit > 0 else records


class InMemoryAnalysisStore(BaseAnalysisStore):
    def __init__(self) -> None:
        super().__init__()
        self._records: dict[str, AnalysisResult] = {}

    async def _load(self, analysis_id: str) -> Optional[AnalysisResult]:
        return self._records.get(analysis_id)

    async def _save(self, record: AnalysisResult) -> None:
        self._records[record.id] = record

    async def _all(self) -> list[AnalysisResult]:
        return list(self._records.values())


class JsonAnalysisStore(BaseAnalysisStore):
    """One JSON file per analysis (UTF-8, no BOM), replaced atomically on write."""

    def __init__(self, analyses_dir: Path):
        super().__init__()
        self.analyses_dir = Path(analyses_dir)

    def _path(self, analysis_id: str) -> Path:
        # Ids become file names; anything else could escape analyses_dir
        if not _ANALYSIS_ID.match(analysis_id or ""):
            raise NotFoundError("Analysis", analysis_id)
        return self.analyses_dir / f"{analysis_id}.json"

    def _read_file(self, path: Path) -> AnalysisResult:
        try:
            return AnalysisResult.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise PersistenceError(f"Unreadable analysis record {path.name}: {e}") from e

    def _write_file(self, record: AnalysisResult) -> None:
        path = self._path(record.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.analyses_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(record.model_dump(mode="json"), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to write analysis {record.id}: {e}") from e

    async def _load(self, analysis_id: str) -> Optional[AnalysisResult]:
        path = self._path(analysis_id)
        if not path.exists():
            return None
        return await asyncio.to_thread(self._read_file, path)

    async def _save(self, record: AnalysisResult) -> None:
        await asyncio.to_thread(self._write_file, record)

    async def _all(self) -> list[AnalysisResult]:
        if not self.analyses_dir.exists():
            return []
        records: list[AnalysisResult] = []
        for path in sorted(self.analyses_dir.glob("*.json")):
            try:
                records.append(await asyncio.to_thread(self._read_file, path))
            except PersistenceError as e:
                console.print(f"  [yellow]WARN[/yellow] Skipping {path.name}: {e}")
        return records
