"""Rich console setup and pipeline progress helpers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

if TYPE_CHECKING:
    from .models import ImprovementResult, ParsedOutline, VerificationResult

console = Console()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logger with Rich handler."""
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Pipeline callbacks protocol
# ---------------------------------------------------------------------------


class PipelineCallbacks(Protocol):
    """Protocol for pipeline progress reporting."""

    def on_phase_start(self, phase: str, description: str) -> None: ...
    def on_phase_end(self, phase: str, success: bool) -> None: ...
    def on_section_start(self, section_id: str, title: str) -> None: ...
    def on_section_end(self, section_id: str) -> None: ...
    def on_verification(self, scope: str, attempt: int, result: VerificationResult) -> None: ...
    def on_improvement(self, scope: str, attempt: int, result: ImprovementResult) -> None: ...
    def on_progress(self, value: int) -> None: ...
    def on_warning(self, message: str) -> None: ...
    def on_error(self, message: str) -> None: ...


class RichCallbacks:
    """Rich-based implementation of PipelineCallbacks."""

    def __init__(self, progress: Progress | None = None) -> None:
        self._progress = progress
        self._task: TaskID | None = None
        if progress is not None:
            self._task = progress.add_task("Generating", total=100)

    def on_phase_start(self, phase: str, description: str) -> None:
        console.rule(f"[bold blue]{phase}[/] {description}")

    def on_phase_end(self, phase: str, success: bool) -> None:
        status = "[green]OK[/]" if success else "[red]FAILED[/]"
        console.print(f"  Phase {phase}: {status}")

    def on_section_start(self, section_id: str, title: str) -> None:
        console.print(f"  [dim]Generating section:[/] {section_id} {title}")

    def on_section_end(self, section_id: str) -> None:
        console.print(f"  [dim]Done:[/] {section_id}")

    def on_verification(self, scope: str, attempt: int, result: VerificationResult) -> None:
        verdict = "[green]valid[/]" if result.is_valid else "[yellow]invalid[/]"
        words = ""
        if result.word_count is not None and result.target_words is not None:
            words = f" ({result.word_count}/{result.target_words} words)"
        console.print(
            f"  [cyan]{scope}[/] attempt {attempt}: {verdict}{words}, "
            f"{len(result.issues)} issue(s) [{result.verdict.value}]"
        )

    def on_improvement(self, scope: str, attempt: int, result: ImprovementResult) -> None:
        if result.failed:
            console.print(f"  [yellow]{scope}[/] improvement {attempt} failed, keeping text")
        elif not result.changed:
            console.print(f"  [yellow]{scope}[/] improvement {attempt} made no changes")
        else:
            console.print(f"  [cyan]{scope}[/] improvement {attempt} applied")

    def on_progress(self, value: int) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=value)

    def on_warning(self, message: str) -> None:
        console.print(f"  [yellow]WARNING:[/] {message}")

    def on_error(self, message: str) -> None:
        console.print(f"  [red]ERROR:[/] {message}")


def create_progress() -> Progress:
    """Create a Rich progress bar for the composite run progress."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )


def render_outline_table(outline: ParsedOutline, words_per_minute: int) -> Table:
    """Build a Rich table of parsed sections with their word targets."""
    from .tools.text_metrics import target_words

    table = Table(title="Outline Sections", show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Number", style="cyan")
    table.add_column("Title")
    table.add_column("Minutes", justify="right")
    table.add_column("Target Words", justify="right")

    for i, section in enumerate(outline.sections, 1):
        table.add_row(
            str(i),
            section.number,
            section.title,
            f"{section.duration_minutes:g}",
            str(target_words(section.duration_minutes, words_per_minute)),
        )
    return table
