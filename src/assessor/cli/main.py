"""Policy Assessor (assessor) - compliance coverage analysis CLI."""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..core.errors import (
    AnalysisNotCompletedError,
    AssessorError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from ..models.analysis import AnalysisResult, AnalysisStatus

console = Console()

EXIT_FAILED = 1
EXIT_USAGE = 11
EXIT_NOT_INITIALIZED = 12
EXIT_NOT_FOUND = 13

EXPORT_FORMATS = ["gaps-csv", "coverage-csv", "markdown", "junit"]


def _load_config(project: str, overrides: Optional[dict] = None) -> dict:
    from ..core.config import CONFIG_DIR, get_effective_config

    project_path = Path(project).resolve()
    if not (project_path / CONFIG_DIR).exists():
        click.echo(f"Error: Project not initialized. Run: assessor init -p {project}", err=True)
        sys.exit(EXIT_NOT_INITIALIZED)
    return get_effective_config(project_path, cli_overrides=overrides)


def _build_orchestrator(config: dict):
    from ..core.orchestrator import AnalysisOrchestrator

    try:
        return AnalysisOrchestrator.from_config(config)
    except ValueError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(EXIT_USAGE)


def _status_color(status: AnalysisStatus) -> str:
    return {
        AnalysisStatus.COMPLETED: "green",
        AnalysisStatus.FAILED: "red",
        AnalysisStatus.RUNNING: "cyan",
    }.get(status, "yellow")


def print_analysis(record: AnalysisResult) -> None:
    color = _status_color(record.status)
    console.print()
    console.print(f"  [bold cyan]ANALYSIS[/bold cyan] {record.id}")
    console.print(f"  Framework: [white]{record.framework_id}[/white]")
    console.print(f"  Status:    [{color}]{record.status.value.upper()}[/{color}]")

    if record.status is AnalysisStatus.FAILED:
        console.print(f"  Error:     [red]{record.error_message}[/red]")
        return
    if record.status is not AnalysisStatus.COMPLETED:
        return

    console.print(f"  Score:     [white]{record.overall_score:.1f}%[/white]")
    console.print(
        f"  Controls:  {record.total_controls} "
        f"({record.controls_fully_covered} full / {record.controls_partially_covered} partial / "
        f"{record.controls_not_covered} none)"
    )

    table = Table(title="Categories", show_lines=False)
    for column in ("Category", "Name", "Score", "Full", "Partial", "None"):
        table.add_column(column)
    for cat in record.category_scores:
        score = "N/A" if cat.score is None else f"{cat.score:.1f}%"
        table.add_row(
            "  " * cat.depth + cat.category_code,
            cat.category_name,
            score,
            str(cat.fully_covered),
            str(cat.partially_covered),
            str(cat.not_covered),
        )
    console.print(table)

    if record.recommendations:
        console.print("  [bold]Recommendations[/bold]")
        for rec in record.recommendations:
            console.print(f"  {rec.priority}. {rec.title} [dim]({rec.timeframe.value})[/dim]")


@click.group()
def cli() -> None:
    """Policy Assessor - compliance coverage analysis."""


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
def init(project: str) -> None:
    """Initialize Policy Assessor in a project."""
    from ..core.orchestrator import initialize_project

    initialize_project(Path(project))


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
def frameworks(project: str) -> None:
    """List available frameworks."""
    from ..compliance.loader import get_available_frameworks
    from ..core.config import resolve_path

    config = _load_config(project)
    available = get_available_frameworks(resolve_path(config, "sources", "frameworks_dir"))
    if not available:
        console.print("  [yellow]WARN[/yellow] No frameworks found")
        return

    table = Table(title="Frameworks")
    for column in ("ID", "Code", "Name", "Version"):
        table.add_column(column)
    for fw in available:
        table.add_row(fw["id"], fw["code"], fw["name"], fw["version"])
    console.print(table)


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("framework_id")
@click.option("--user", "-u", "user", required=True, help="User triggering the analysis")
@click.option("--max-recommendations", type=int, help="Cap on recommendations")
@click.option("--ci", is_flag=True, help="CI mode: exit 1 when the analysis fails")
def analyze(project: str, framework_id: str, user: str, max_recommendations: Optional[int], ci: bool) -> None:
    """Run a coverage analysis for FRAMEWORK_ID."""
    overrides = {}
    if max_recommendations is not None:
        overrides["analysis"] = {"max_recommendations": max_recommendations}
    config = _load_config(project, overrides or None)
    orchestrator = _build_orchestrator(config)

    async def _run() -> AnalysisResult:
        async with orchestrator:
            pending = await orchestrator.start_analysis(framework_id, user)
            await orchestrator.drain()
            return await orchestrator.get_analysis(pending.id)

    try:
        record = asyncio.run(_run())
    except InvalidRequestError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_USAGE)
    except PersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)

    print_analysis(record)
    if ci and record.status is not AnalysisStatus.COMPLETED:
        sys.exit(EXIT_FAILED)


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("analysis_id")
def show(project: str, analysis_id: str) -> None:
    """Show a stored analysis."""
    orchestrator = _build_orchestrator(_load_config(project))
    try:
        record = asyncio.run(orchestrator.get_analysis(analysis_id))
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_FOUND)
    except PersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    print_analysis(record)


@cli.command(name="list")
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.option("--framework", "framework_id", type=str, help="Only analyses of this framework")
@click.option("--limit", type=int, default=20)
def list_cmd(project: str, framework_id: Optional[str], limit: int) -> None:
    """List recent analyses."""
    orchestrator = _build_orchestrator(_load_config(project))
    try:
        records = asyncio.run(orchestrator.list_analyses(framework_id, limit=limit))
    except PersistenceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)

    table = Table(title="Analyses")
    for column in ("ID", "Framework", "Status", "Score", "Created"):
        table.add_column(column)
    for r in records:
        score = "" if r.overall_score is None else f"{r.overall_score:.1f}%"
        color = _status_color(r.status)
        table.add_row(
            r.id,
            r.framework_id,
            f"[{color}]{r.status.value}[/{color}]",
            score,
            r.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.argument("analysis_id")
@click.option("--format", "-f", "output_format", type=click.Choice(EXPORT_FORMATS), default="markdown")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file (default: stdout)")
def export(project: str, analysis_id: str, output_format: str, output: Optional[str]) -> None:
    """Export a completed analysis."""
    from ..formatters.csv_export import generate_coverage_csv, generate_gaps_csv
    from ..formatters.junit import build_junit_xml
    from ..formatters.report import generate_markdown_report

    orchestrator = _build_orchestrator(_load_config(project))
    try:
        record = asyncio.run(orchestrator.get_analysis(analysis_id))
        if output_format == "gaps-csv":
            content: str | bytes = generate_gaps_csv(record)
        elif output_format == "coverage-csv":
            content = generate_coverage_csv(record)
        elif output_format == "junit":
            content = build_junit_xml(record)
        else:
            content = generate_markdown_report(record)
    except NotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_FOUND)
    except (AnalysisNotCompletedError, PersistenceError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)

    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        click.echo(f"Wrote {output_format} to {path}")
    else:
        click.echo(content.decode("utf-8") if isinstance(content, bytes) else content)


@cli.command()
@click.option("--project", "-p", type=click.Path(exists=True), required=True)
@click.option("--older-than", type=float, help="Minutes a run may stay running (default: config)")
def sweep(project: str, older_than: Optional[float]) -> None:
    """Fail analyses stuck in the running state."""
    config = _load_config(project)
    minutes = older_than if older_than is not None else float(
        config.get("analysis", {}).get("stale_after_minutes", 30)
    )
    orchestrator = _build_orchestrator(config)
    try:
        swept = asyncio.run(orchestrator.sweep_stale(timedelta(minutes=minutes)))
    except AssessorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    click.echo(f"Marked {len(swept)} stale analyses as failed")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
