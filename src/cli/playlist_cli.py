"""
Playlist CLI - Drive a learner's module playlist from the terminal.

Host for the adaptive playlist engine: builds a session from a catalog
file, resolves and applies decisions, records gate results and mastery,
and renders the sidebar projection. Every change is auto-saved through
the session store.

Usage:
    playlist init catalog.json -e enr-1 -m mod-1 --mode full
    playlist show -e enr-1 -m mod-1
    playlist next -e enr-1 -m mod-1
    playlist gate quiz-1 --passed --score 0.9 -e enr-1 -m mod-1
    playlist mastery node-a 0.85 -e enr-1 -m mod-1
    playlist goto 0 -e enr-1 -m mod-1
    playlist sessions
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from src.playlist import (
    AdaptiveMode,
    DecisionAction,
    GateResult,
    NodeProgress,
    PlaylistContractError,
    PlaylistEngine,
    PlaylistInvariantError,
    SessionStore,
    StoredSession,
    gate_attempts,
    load_catalog,
    progress_summary,
)

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="playlist",
    help="Adaptive playlist engine - inspect and drive module sessions",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

EXIT_INVARIANT = 1
EXIT_CONTRACT = 2

EnrollmentOpt = Annotated[str, typer.Option("--enrollment", "-e", help="Enrollment id")]
ModuleOpt = Annotated[str, typer.Option("--module", "-m", help="Module id")]


@app.callback()
def main() -> None:
    """Configure logging once per invocation."""
    _configure_logging(get_settings())


def _configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="5 MB")


def _store() -> SessionStore:
    settings = get_settings()
    return SessionStore(settings.session_dir, expiry_hours=settings.session_expiry_hours)


@contextmanager
def _engine_errors() -> Iterator[None]:
    """Translate engine errors into exit codes."""
    try:
        yield
    except PlaylistInvariantError as e:
        console.print(f"[red]✗ Blocked:[/] {e}")
        raise typer.Exit(EXIT_INVARIANT)
    except PlaylistContractError as e:
        console.print(f"[red]✗ Invalid request:[/] {e}")
        raise typer.Exit(EXIT_CONTRACT)


def _open_engine(store: SessionStore, enrollment: str, module: str) -> PlaylistEngine:
    """Restore a stored session into an engine that auto-saves on change."""
    record = store.load(enrollment, module)
    if record is None:
        console.print(f"[yellow]No session for enrollment '{enrollment}', module '{module}'.[/]")
        console.print("[dim]Create one with: playlist init CATALOG -e ... -m ...[/]")
        raise typer.Exit(EXIT_INVARIANT)

    engine = PlaylistEngine(record.config, enrollment_id=enrollment, module_id=module)
    engine.restore(record.session)
    engine.subscribe(lambda session: store.save(session, engine.config))
    return engine


# =============================================================================
# Session Commands
# =============================================================================


@app.command()
def init(
    catalog: Annotated[Path, typer.Argument(help="Catalog JSON file", exists=True, dir_okay=False)],
    enrollment: EnrollmentOpt,
    module: ModuleOpt,
    mode: Annotated[
        Optional[AdaptiveMode], typer.Option("--mode", help="off, guided or full")
    ] = None,
    threshold: Annotated[
        Optional[float], typer.Option("--threshold", min=0.0, max=1.0, help="Mastery threshold")
    ] = None,
    pre_assessment: Annotated[
        Optional[bool], typer.Option("--pre-assessment/--no-pre-assessment")
    ] = None,
    learner_choice: Annotated[
        Optional[bool], typer.Option("--learner-choice/--no-learner-choice")
    ] = None,
    max_attempts: Annotated[
        Optional[int], typer.Option("--max-attempts", min=1, help="Attempts allowed per gate")
    ] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing session")] = False,
) -> None:
    """Build a new playlist session from a catalog."""
    store = _store()
    if store.load(enrollment, module) is not None and not force:
        console.print("[yellow]Session already exists. Use --force to rebuild it.[/]")
        raise typer.Exit(EXIT_INVARIANT)

    overrides = {
        "mode": mode,
        "mastery_threshold": threshold,
        "pre_assessment_enabled": pre_assessment,
        "allow_learner_choice": learner_choice,
        "max_gate_attempts": max_attempts,
    }
    config = get_settings().get_adaptive_config().model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    with _engine_errors():
        units = load_catalog(catalog)
        engine = PlaylistEngine(config, units, enrollment_id=enrollment, module_id=module)
        engine.subscribe(lambda session: store.save(session, config))
        session = engine.initialize()

    console.print(
        Panel(
            f"[bold cyan]PLAYLIST SESSION CREATED[/]\n"
            f"Module: {module}\n"
            f"Entries: {len(session.playlist)}\n"
            f"Mode: {config.mode.value.upper()}",
            border_style="cyan",
        )
    )


@app.command()
def show(enrollment: EnrollmentOpt, module: ModuleOpt) -> None:
    """Show the playlist sidebar for a session."""
    engine = _open_engine(_store(), enrollment, module)
    navigable = set(engine.navigable_indices())

    table = Table(title=f"Module {module}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title")
    table.add_column("Type", style="cyan")
    table.add_column("Gate")
    table.add_column("Status")

    for index, entry in enumerate(engine.display_entries()):
        if entry.is_current:
            status = "[bold yellow]▶ current[/]"
        elif entry.is_skipped:
            status = "[dim]skipped[/]"
        elif entry.is_completed:
            status = "[green]✓ done[/]"
        elif index in navigable:
            status = ""
        else:
            status = "[dim]locked[/]"
        gate = f"{entry.gate_status.icon} {entry.gate_status.value}" if entry.gate_status else ""
        table.add_row(str(index), entry.title, entry.unit_type, gate, status)

    console.print(table)

    summary = progress_summary(engine.session)
    console.print(
        f"Progress: {summary['percentage']}% "
        f"({summary['completed']} completed, {summary['skipped']} skipped, "
        f"{summary['remaining']} remaining)"
    )
    if engine.is_complete():
        console.print("[green]Module complete! 🎉[/]")


@app.command("next")
def next_entry(enrollment: EnrollmentOpt, module: ModuleOpt) -> None:
    """Resolve and apply the next step."""
    engine = _open_engine(_store(), enrollment, module)

    with _engine_errors():
        decision = engine.step()

    if decision.action is DecisionAction.COMPLETE:
        console.print("[green]✓ Module complete[/]")
    elif decision.action is DecisionAction.RETRY_GATE:
        console.print(f"[yellow]↻ Retry gate:[/] {decision.reason}")
    elif decision.action is DecisionAction.HOLD:
        console.print(f"[red]■ Hold:[/] {decision.reason}")
    elif decision.action is DecisionAction.BRANCH:
        console.print(f"[cyan]⤳ Skipped {', '.join(decision.skipped_ids)}[/] ({decision.reason})")

    entry = engine.current_entry()
    if entry is not None:
        console.print(f"Now at [bold]{entry.title}[/] ({entry.unit.type})")


@app.command()
def gate(
    unit_id: Annotated[str, typer.Argument(help="Gate unit id")],
    enrollment: EnrollmentOpt,
    module: ModuleOpt,
    passed: Annotated[bool, typer.Option("--passed/--failed", help="Gate outcome")],
    score: Annotated[float, typer.Option("--score", help="Score between 0 and 1")],
    failed_nodes: Annotated[
        Optional[list[str]], typer.Option("--failed-node", help="Node not demonstrated")
    ] = None,
    attempt: Annotated[
        Optional[int], typer.Option("--attempt", help="Attempt number (defaults to next)")
    ] = None,
) -> None:
    """Record a gate attempt."""
    engine = _open_engine(_store(), enrollment, module)
    number = attempt if attempt is not None else len(gate_attempts(engine.session, unit_id)) + 1

    with _engine_errors():
        engine.record_gate_result(
            GateResult(
                unit_id=unit_id,
                passed=passed,
                score=score,
                attempt_number=number,
                failed_nodes=tuple(failed_nodes or ()),
            )
        )

    status = engine.gate_status(unit_id)
    console.print(f"Gate '{unit_id}' attempt #{number}: {status.icon} {status.value}")


@app.command()
def mastery(
    node_id: Annotated[str, typer.Argument(help="Knowledge node id")],
    value: Annotated[float, typer.Argument(help="Mastery between 0 and 1")],
    enrollment: EnrollmentOpt,
    module: ModuleOpt,
    attempts: Annotated[int, typer.Option("--attempts", help="Attempts behind this mastery")] = 1,
) -> None:
    """Store mastery for a knowledge node."""
    engine = _open_engine(_store(), enrollment, module)

    with _engine_errors():
        engine.update_node_progress(node_id, NodeProgress(mastery=value, attempts=attempts))

    console.print(f"Node '{node_id}' mastery set to {value:.0%}")


@app.command()
def goto(
    index: Annotated[int, typer.Argument(help="Playlist position")],
    enrollment: EnrollmentOpt,
    module: ModuleOpt,
) -> None:
    """Jump directly to a playlist position (review/instructor override)."""
    engine = _open_engine(_store(), enrollment, module)

    with _engine_errors():
        engine.go_to_index(index)

    entry = engine.current_entry()
    console.print(f"Now at [bold]{entry.title}[/]")


@app.command()
def sessions() -> None:
    """List stored sessions."""
    records: list[StoredSession] = _store().list_sessions()
    if not records:
        console.print("[dim]No stored sessions.[/]")
        return

    table = Table(title="Stored Sessions")
    table.add_column("Enrollment", style="cyan")
    table.add_column("Module", style="cyan")
    table.add_column("Mode")
    table.add_column("Progress", justify="right")
    table.add_column("Saved")
    for record in records:
        summary = progress_summary(record.session)
        table.add_row(
            record.session.enrollment_id,
            record.session.module_id,
            record.config.mode.value,
            f"{summary['percentage']}%",
            record.saved_at[:19],
        )
    console.print(table)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
