"""Analysis orchestrator: lifecycle, background execution, and notification.

``start_analysis`` creates a pending record and queues the job; worker
tasks pick jobs off the queue and drive each record through
pending -> running -> completed|failed. The triggering caller never waits
on the computation.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import __version__
from ..compliance.pipeline import run_pipeline
from ..compliance.recommendations import DEFAULT_MAX_RECOMMENDATIONS
from ..models.analysis import AnalysisResult, AnalysisStatus
from ..utils.sanitize import DEFAULT_MAX_LENGTH, sanitize_error
from .config import CONFIG_DIR, resolve_path
from .errors import AssessorError, InvalidRequestError, InvalidTransitionError
from .notifications import Notifier, NullNotifier, get_notifier
from .sources import FrameworkSource, MappingSource, YamlFrameworkSource, YamlMappingSource
from .store import AnalysisStore, JsonAnalysisStore, utcnow

console = Console()

ANALYSIS_LINK = "/compliance/analysis/{id}"


def initialize_project(project_path: Path) -> None:
    """Initialize the .assessor directory structure in a project."""
    assessor_dir = project_path / CONFIG_DIR
    (assessor_dir / "analyses").mkdir(parents=True, exist_ok=True)
    for subdir in ("frameworks", "mappings"):
        (project_path / subdir).mkdir(exist_ok=True)

    config_path = assessor_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# Policy Assessor project configuration\n"
            "\n"
            f"assessor_version: \"{__version__}\"\n"
            "\n"
            "project:\n"
            f'  name: "{project_path.name}"\n'
            "\n"
            "analysis:\n"
            "  max_recommendations: 10\n"
            "\n"
            "notifications:\n"
            "  provider: console\n",
            encoding="utf-8",
        )

    console.print(f"  [green]Initialized[/green] {CONFIG_DIR}/ in {project_path.name}")


class AnalysisOrchestrator:
    """Runs analyses on a pool of asyncio worker tasks.

    Use as an async context manager so workers are started and drained::

        async with AnalysisOrchestrator(frameworks, mappings, store) as orch:
            record = await orch.start_analysis("hipaa", "user-1")
            await orch.drain()
    """

    def __init__(
        self,
        frameworks: FrameworkSource,
        mappings: MappingSource,
        store: AnalysisStore,
        notifier: Optional[Notifier] = None,
        workers: int = 2,
        max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS,
        error_message_max_length: int = DEFAULT_MAX_LENGTH,
        notify_timeout: float = 10.0,
    ):
        self.frameworks = frameworks
        self.mappings = mappings
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.worker_count = max(1, workers)
        self.max_recommendations = max_recommendations
        self.error_message_max_length = error_message_max_length
        self.notify_timeout = notify_timeout
        self._queue: Optional[asyncio.Queue[str]] = None
        self._workers: list[asyncio.Task] = []

    @classmethod
    def from_config(cls, config: dict, notifier: Optional[Notifier] = None) -> "AnalysisOrchestrator":
        """Build an orchestrator over the project's YAML sources and JSON store."""
        analysis = config.get("analysis", {})
        return cls(
            frameworks=YamlFrameworkSource(resolve_path(config, "sources", "frameworks_dir")),
            mappings=YamlMappingSource(resolve_path(config, "sources", "mappings_dir")),
            store=JsonAnalysisStore(resolve_path(config, "storage", "analyses_dir")),
            notifier=notifier or get_notifier(config),
            workers=int(analysis.get("workers", 2)),
            max_recommendations=int(analysis.get("max_recommendations", DEFAULT_MAX_RECOMMENDATIONS)),
            error_message_max_length=int(analysis.get("error_message_max_length", DEFAULT_MAX_LENGTH)),
            notify_timeout=float(config.get("notifications", {}).get("timeout_seconds", 5)) + 1,
        )

    # -- worker pool -----------------------------------------------------

    async def __aenter__(self) -> "AnalysisOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop(drain=exc_type is None)

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"analysis-worker-{n}")
            for n in range(self.worker_count)
        ]

    async def stop(self, drain: bool = True) -> None:
        if drain:
            await self.drain()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def drain(self) -> None:
        """Wait until every queued analysis has reached the end of its job."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, number: int) -> None:
        assert self._queue is not None
        while True:
            analysis_id = await self._queue.get()
            try:
                await self.execute(analysis_id)
            except Exception as e:
                # execute() records expected failures itself; keep the worker alive
                console.print(
                    f"  [red]ERROR[/red] Worker {number} could not run analysis "
                    f"{analysis_id}: {sanitize_error(str(e))}"
                )
            finally:
                self._queue.task_done()

    # -- public operations ------------------------------------------------

    async def start_analysis(self, framework_id: str, triggered_by: str) -> AnalysisResult:
        """Create a pending analysis and queue it. Returns without waiting."""
        if not framework_id or not str(framework_id).strip():
            raise InvalidRequestError("framework_id is required", field="framework_id")
        if not triggered_by or not str(triggered_by).strip():
            raise InvalidRequestError("triggered_by is required", field="triggered_by")
        if self._queue is None:
            raise RuntimeError("Orchestrator is not started; use 'async with' or call start()")

        record = await self.store.create_pending(str(framework_id).strip(), str(triggered_by).strip())
        self._queue.put_nowait(record.id)
        console.print(f"  [dim]INFO[/dim] Queued analysis {record.id} for {record.framework_id}")
        return record

    async def get_analysis(self, analysis_id: str) -> AnalysisResult:
        return await self.store.get(analysis_id)

    async def list_analyses(self, framework_id: Optional[str] = None, limit: int = 20) -> list[AnalysisResult]:
        return await self.store.list(framework_id=framework_id, limit=limit)

    async def latest_completed(self, framework_id: Optional[str] = None) -> Optional[AnalysisResult]:
        completed = await self.store.list(
            framework_id=framework_id, status=AnalysisStatus.COMPLETED, limit=0
        )
        if not completed:
            return None
        return max(completed, key=lambda r: r.completed_at or r.created_at)

    async def execute(self, analysis_id: str) -> Optional[AnalysisResult]:
        """Run one analysis job end to end.

        Only a pending record is executed; anything else was already claimed
        or finished and is returned untouched. Returns None only when even
        the failure could not be recorded.
        """
        record = await self.store.get(analysis_id)
        if record.status is not AnalysisStatus.PENDING:
            console.print(
                f"  [yellow]WARN[/yellow] Analysis {analysis_id} is {record.status.value}; not re-running"
            )
            return record

        try:
            record = await self.store.mark_running(analysis_id)
        except InvalidTransitionError:
            return await self.store.get(analysis_id)

        started = time.time()
        try:
            framework = await self.frameworks.load_framework(record.framework_id)
            mappings = await self.mappings.load_mappings_for_framework(record.framework_id)
            outcome = run_pipeline(framework, mappings, self.max_recommendations)
        except Exception as e:
            return await self._finish_failed(record, e)

        try:
            final = await self.store.commit(analysis_id, outcome)
        except InvalidTransitionError:
            return await self.store.get(analysis_id)
        except Exception as e:
            return await self._finish_failed(record, e)

        console.print(
            f"  [green]OK[/green] Analysis {analysis_id}: {final.overall_score:.1f}% "
            f"({final.controls_fully_covered}F/{final.controls_partially_covered}P/"
            f"{final.controls_not_covered}N, {len(final.gaps)} gaps) "
            f"in {round(time.time() - started, 2)}s"
        )
        await self._notify(final)
        return final

    async def sweep_stale(
        self,
        older_than: timedelta,
        now: Optional[datetime] = None,
    ) -> list[AnalysisResult]:
        """Fail analyses stuck in running for longer than ``older_than``."""
        cutoff = (now or utcnow()) - older_than
        minutes = round(older_than.total_seconds() / 60, 1)
        swept: list[AnalysisResult] = []

        for record in await self.store.list(status=AnalysisStatus.RUNNING, limit=0):
            if record.started_at is None or record.started_at >= cutoff:
                continue
            try:
                failed = await self.store.mark_failed(
                    record.id, f"Analysis timed out: still running after {minutes} minutes"
                )
            except InvalidTransitionError:
                continue
            console.print(f"  [yellow]WARN[/yellow] Marked stale analysis {record.id} as failed")
            await self._notify(failed)
            swept.append(failed)

        return swept

    # -- internals --------------------------------------------------------

    def _error_message(self, error: Exception) -> str:
        text = str(error) or type(error).__name__
        if not isinstance(error, AssessorError):
            text = f"{type(error).__name__}: {text}"
        return sanitize_error(text, self.error_message_max_length)

    async def _finish_failed(self, record: AnalysisResult, error: Exception) -> Optional[AnalysisResult]:
        message = self._error_message(error)
        try:
            final = await self.store.mark_failed(record.id, message)
        except InvalidTransitionError:
            return await self.store.get(record.id)
        except Exception as e:
            console.print(
                f"  [red]ERROR[/red] Could not record failure of analysis {record.id}: "
                f"{sanitize_error(str(e))}"
            )
            return None

        console.print(f"  [red]FAILED[/red] Analysis {record.id}: {message}")
        await self._notify(final)
        return final

    async def _notify(self, record: AnalysisResult) -> None:
        if not record.triggered_by:
            return

        if record.status is AnalysisStatus.COMPLETED:
            type_ = "analysis.completed"
            title = "Compliance analysis completed"
            message = (
                f"Score: {record.overall_score:.1f}% - "
                f"{record.controls_fully_covered} fully covered, "
                f"{record.controls_partially_covered} partially covered, "
                f"{record.controls_not_covered} gaps found."
            )
        else:
            type_ = "analysis.failed"
            title = "Compliance analysis failed"
            message = record.error_message or "Unknown error"

        try:
            await asyncio.wait_for(
                self.notifier.notify(
                    record.triggered_by,
                    type_,
                    title,
                    message,
                    ANALYSIS_LINK.format(id=record.id),
                ),
                timeout=self.notify_timeout,
            )
        except Exception as e:
            console.print(
                f"  [yellow]WARN[/yellow] Notification for analysis {record.id} not delivered: "
                f"{sanitize_error(str(e)) or type(e).__name__}"
            )
