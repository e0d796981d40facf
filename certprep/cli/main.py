"""
Typer CLI for the certprep exam session engine.

Commands:
    certprep db init            - Initialize database tables
    certprep db seed FILE       - Load a catalog JSON document
    certprep exams              - Grouped practice exam catalog for a user
    certprep in-progress        - Attempts the user can resume
    certprep results ATTEMPT    - Detailed results of a completed attempt
    certprep info               - Show configuration

Usage:
    certprep --help
    certprep db init
    certprep exams --user u-123 --enrolled --sort score --desc
    certprep results 5f0c... --user u-123
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from certprep import __version__
from certprep.catalog.grouping import ExamSort, SortDirection, SortField, grouped_stats, next_recommended_exam
from certprep.exam.errors import ExamEngineError
from certprep.exam.models import CatalogFilters, ExamStatus
from config import get_settings

app = typer.Typer(help="certprep CLI: practice exam catalog and attempt results")
console = Console()

STATUS_STYLE = {
    ExamStatus.IN_PROGRESS: "yellow",
    ExamStatus.NOT_STARTED: "dim",
    ExamStatus.COMPLETED: "green",
}


def _service(session):
    from certprep.db.repository import SqlExamRepository
    from certprep.exam.session import ExamSessionService

    repository = SqlExamRepository(session, default_passing_threshold=get_settings().default_passing_threshold)
    return ExamSessionService(repository)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management (init, seed)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from certprep.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("seed")
def db_seed(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Catalog JSON document"),
) -> None:
    """Load categories, certifications, exams and enrollments from JSON."""
    from certprep.db.database import session_scope
    from certprep.db.seed import seed_from_file

    try:
        with session_scope() as session:
            counts = seed_from_file(session, file)
    except (ValueError, KeyError) as exc:
        logger.exception("Seeding failed")
        rprint(f"[red]✗[/red] Seeding failed: {exc}")
        raise typer.Exit(code=1)

    table = Table(title=f"Seeded from {file.name}")
    table.add_column("Section", style="cyan")
    table.add_column("Rows", justify="right", style="green")
    for section, count in counts.items():
        table.add_row(section, str(count))
    console.print(table)


# ========================================
# CATALOG COMMANDS
# ========================================


@app.command("exams")
def list_exams(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
    category: Optional[str] = typer.Option(None, "--category", help="Category ID"),
    certification: Optional[str] = typer.Option(None, "--certification", help="Certification ID"),
    free: bool = typer.Option(False, "--free", help="Only free certifications"),
    enrolled: bool = typer.Option(False, "--enrolled", help="Only enrolled certifications"),
    status: Optional[ExamStatus] = typer.Option(None, "--status", help="Only exams with this status"),
    sort: SortField = typer.Option(SortField.SORT_ORDER, "--sort", help="Sort exams within each certification"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
) -> None:
    """Show the practice exam catalog grouped by certification."""
    from certprep.db.database import session_scope

    filters = CatalogFilters(
        category_id=category,
        certification_id=certification,
        free_only=free,
        enrolled_only=enrolled,
        status=status,
    )
    exam_sort = ExamSort(sort, SortDirection.DESC if desc else SortDirection.ASC)

    with session_scope() as session:
        groups = _service(session).list_grouped_exams(user, filters, exam_sort)

    if not groups:
        rprint("[yellow]⚠[/yellow] No practice exams match these filters")
        return

    for group in groups:
        badges = []
        if group.is_enrolled:
            badges.append("[green]enrolled[/green]")
        if group.certification.is_free:
            badges.append("[cyan]free[/cyan]")
        title = f"{group.certification.name} ({group.category.name}) {' '.join(badges)}".rstrip()

        table = Table(title=title, show_header=True)
        table.add_column("Exam", style="bold")
        table.add_column("Status")
        table.add_column("Best", justify="right")
        table.add_column("Attempts", justify="right", style="dim")
        table.add_column("Questions", justify="right", style="dim")
        for exam in group.exams:
            style = STATUS_STYLE[exam.status]
            table.add_row(
                exam.name,
                f"[{style}]{exam.status.value}[/{style}]",
                f"{exam.best_score}%" if exam.best_score is not None else "-",
                str(exam.attempt_count),
                str(exam.exam.question_count),
            )
        console.print(table)

    stats = grouped_stats(groups)
    rprint(
        f"\n[bold]{stats.total_exams}[/bold] exams in {stats.total_certifications} certifications: "
        f"{stats.completed_exams} completed, {stats.in_progress_exams} in progress, "
        f"average best score {stats.average_score}%"
    )
    recommended = next_recommended_exam(groups)
    if recommended is not None:
        rprint(f"[bold cyan]Next up:[/bold cyan] {recommended.name}")


@app.command("in-progress")
def in_progress(user: str = typer.Option(..., "--user", "-u", help="User ID")) -> None:
    """List attempts the user can resume, newest first."""
    from certprep.db.database import session_scope

    with session_scope() as session:
        views = _service(session).list_in_progress(user)

    if not views:
        rprint("[dim]No exams in progress[/dim]")
        return

    table = Table(title="Exams in progress")
    table.add_column("Attempt", style="dim")
    table.add_column("Exam", style="cyan")
    table.add_column("Mode")
    table.add_column("Started")
    table.add_column("Progress", justify="right", style="green")
    for view in views:
        p = view.progress
        table.add_row(
            view.attempt.id[:8],
            view.attempt.exam_id,
            view.attempt.mode.value,
            view.attempt.started_at.strftime("%Y-%m-%d %H:%M"),
            f"{p.questions_answered}/{p.total_questions} ({p.percentage}%)",
        )
    console.print(table)


@app.command("results")
def results(
    attempt_id: str = typer.Argument(..., help="Completed attempt ID"),
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
) -> None:
    """Show the score report of a completed attempt."""
    from certprep.db.database import session_scope

    try:
        with session_scope() as session:
            report = _service(session).get_results(user, attempt_id)
    except ExamEngineError as exc:
        rprint(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)

    verdict = "[green]PASSED[/green]" if report.passed else "[red]FAILED[/red]"
    rprint(
        f"\n{verdict} {report.score_percentage}% "
        f"({report.correct_answers}/{report.total_questions}, pass mark {report.passing_threshold}%)"
    )
    rprint(f"Performance: {report.performance_level}  Pace: {report.time_efficiency}\n")

    table = Table(title="Knowledge areas")
    table.add_column("Area", style="cyan")
    table.add_column("Weight", justify="right", style="dim")
    table.add_column("Correct", justify="right")
    table.add_column("Score", justify="right", style="green")
    for area in report.knowledge_area_scores:
        table.add_row(
            area.name,
            f"{area.weight_percentage:g}%",
            f"{area.correct_answers}/{area.total_questions}",
            f"{area.score_percentage}%",
        )
    console.print(table)

    difficulty = Table(title="By difficulty")
    difficulty.add_column("Level", style="cyan")
    difficulty.add_column("Correct", justify="right")
    difficulty.add_column("Score", justify="right", style="green")
    for level, score in report.difficulty_breakdown.items():
        if score.total:
            difficulty.add_row(level, f"{score.correct}/{score.total}", f"{score.percentage}%")
    console.print(difficulty)


# ========================================
# INFO
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="certprep Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Default mode", settings.exam_default_mode)
    table.add_row("Default pass mark", f"{settings.default_passing_threshold}%")
    table.add_row("Auto-save debounce", f"{settings.autosave_debounce_seconds}s")
    table.add_row("Log Level", settings.log_level)
    table.add_row("Version", __version__)

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format="<level>{message}</level>")
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)

    app()


if __name__ == "__main__":
    main()
