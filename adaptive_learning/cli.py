"""
learn: operator CLI for the adaptive learning engine.

Runs against the database named by DATABASE_URL.

Commands:
- learn init-db                          - Create tables
- learn due STUDENT                      - Questions due for review
- learn review STUDENT QUESTION QUALITY  - Record one SM-2 review
- learn practice STUDENT                 - Generate a practice quiz
- learn weak-areas STUDENT               - Most-missed tags
- learn record STUDENT QUESTION          - Show a scheduling record
- learn progress STUDENT                 - Graded scores over time
"""
from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adaptive_learning.core.exceptions import LearningEngineError
from adaptive_learning.engine import LearningEngine, build_command_table, dispatch
from config import get_settings


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="learn",
    help="Adaptive learning engine: spaced repetition, practice quizzes and weak areas",
    no_args_is_help=True,
)
console = Console()


def _run(command: str, **kwargs):
    commands = build_command_table(LearningEngine.from_settings())
    try:
        return dispatch(commands, command, **kwargs)
    except LearningEngineError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


# =============================================================================
# Commands
# =============================================================================


@app.command("init-db")
def init_db_command() -> None:
    """Create database tables."""
    from adaptive_learning.db.database import init_db

    init_db()
    console.print(f"[bold green]Database initialized[/bold green] ({get_settings().database_url})")


@app.command()
def due(
    student_id: str = typer.Argument(..., help="Student ID"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum questions"),
    no_new: bool = typer.Option(False, "--no-new", help="Do not back-fill with new questions"),
) -> None:
    """List questions due for review."""
    question_ids = _run("due_questions", student_id=student_id, limit=limit, include_new=not no_new)

    if not question_ids:
        console.print("[dim]Nothing due.[/dim]")
        return

    table = Table(title=f"Due for {student_id}")
    table.add_column("#", style="dim")
    table.add_column("Question")
    for i, question_id in enumerate(question_ids, 1):
        table.add_row(str(i), question_id)
    console.print(table)


@app.command()
def review(
    student_id: str = typer.Argument(..., help="Student ID"),
    question_id: str = typer.Argument(..., help="Question ID"),
    quality: int = typer.Argument(..., help="Recall quality 0-5"),
) -> None:
    """Record one review and show the new schedule."""
    record = _run("review", student_id=student_id, question_id=question_id, quality=quality)
    _print_record(record)


@app.command()
def practice(
    student_id: str = typer.Argument(..., help="Student ID"),
    count: Optional[int] = typer.Option(None, "--count", "-n", help="Number of questions"),
) -> None:
    """Generate a practice quiz from missed and related questions."""
    question_ids = _run("practice_quiz", student_id=student_id, question_count=count)

    if not question_ids:
        console.print("[dim]No missed questions yet - nothing to practice.[/dim]")
        return

    table = Table(title=f"Practice quiz for {student_id}")
    table.add_column("#", style="dim")
    table.add_column("Question")
    for i, question_id in enumerate(question_ids, 1):
        table.add_row(str(i), question_id)
    console.print(table)


@app.command("weak-areas")
def weak_areas(
    student_id: str = typer.Argument(..., help="Student ID"),
    limit: Optional[int] = typer.Option(10, "--limit", "-l", help="Number of tags"),
) -> None:
    """Show the tags a student misses most."""
    areas = _run("weak_areas", student_id=student_id, limit=limit)

    if not areas:
        console.print("[dim]No weak areas found.[/dim]")
        return

    table = Table(title=f"Weak areas for {student_id}")
    table.add_column("Tag")
    table.add_column("Misses", justify="right", style="bold red")
    for tag, count in areas:
        table.add_row(tag, str(count))
    console.print(table)


@app.command()
def record(
    student_id: str = typer.Argument(..., help="Student ID"),
    question_id: str = typer.Argument(..., help="Question ID"),
) -> None:
    """Show the scheduling record for a student and question."""
    engine = LearningEngine.from_settings()
    current = engine.stores.records.get(student_id, question_id)
    if current is None:
        console.print(f"[yellow]No scheduling record for {student_id} / {question_id}[/yellow]")
        raise typer.Exit(code=1)
    _print_record(current)


@app.command()
def progress(student_id: str = typer.Argument(..., help="Student ID")) -> None:
    """Show graded assignment scores over time."""
    dates, scores = _run("progress_over_time", student_id=student_id)

    if not dates:
        console.print("[dim]No graded assignments yet.[/dim]")
        return

    table = Table(title=f"Progress for {student_id}")
    table.add_column("Graded")
    table.add_column("Score", justify="right")
    for graded_at, score in zip(dates, scores):
        style = "green" if score >= 80 else "yellow" if score >= 60 else "red"
        table.add_row(_fmt_date(graded_at), f"[{style}]{score:.1f}%[/{style}]")
    console.print(table)


def _print_record(current) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Ease factor", f"{current.ease_factor:.2f}")
    table.add_row("Interval", f"{current.interval_days} day(s)")
    table.add_row("Repetitions", str(current.repetitions))
    table.add_row("Next review", _fmt_date(current.next_review_date))
    table.add_row("Last review", _fmt_date(current.last_review_date))
    console.print(Panel(table, title=f"{current.student_id} / {current.question_id}", border_style="cyan"))


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention="7 days")

    app()


if __name__ == "__main__":
    main()
