"""
IdeaForge CLI - generate, score and deduplicate business ideas from the terminal.

Usage:
    ideaforge generate                 # One idea on the first idle slot
    ideaforge generate -n 5 --follow   # Five ideas across the slot pool, live logs
    ideaforge generate --slot 2 --framework "X for Y" --domain FinTech
    ideaforge generate -n 3 --json     # Session records as JSON
    ideaforge show-config              # Effective settings
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from ideaforge import __version__
from ideaforge.core.errors import AdmissionError, IdeaForgeError
from ideaforge.core.models import (
    GenerationRequest,
    LogEntry,
    LogLevel,
    Session,
    SessionStatus,
    SlotState,
    SlotStatus,
)
from ideaforge.generation.slot_manager import SessionHandle
from ideaforge.service import GenerationService

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="ideaforge",
    help="💡 IdeaForge - concurrent AI idea generation with scoring and duplicate detection",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

LEVEL_STYLES = {
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "cyan",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
    LogLevel.SUCCESS: "green",
}


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Route loguru to stderr (and the log file when configured)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


# =============================================================================
# Generation Commands
# =============================================================================


@app.command()
def generate(
    count: Annotated[
        int, typer.Option("--count", "-n", min=1, help="Number of ideas to generate")
    ] = 1,
    slot: Annotated[
        int | None, typer.Option("--slot", "-s", help="Run on this slot only")
    ] = None,
    profile: Annotated[
        str | None, typer.Option("--profile", "-p", help="Configuration profile id")
    ] = None,
    framework: Annotated[
        str | None, typer.Option("--framework", "-f", help="Framework name (random if omitted)")
    ] = None,
    domain: Annotated[
        str | None, typer.Option("--domain", "-d", help="Domain hint for the prompt")
    ] = None,
    slots: Annotated[
        int | None, typer.Option("--slots", help="Slot pool size for this run")
    ] = None,
    skip_duplicate_check: Annotated[
        bool, typer.Option("--skip-duplicate-check", help="Do not compare against stored ideas")
    ] = False,
    follow: Annotated[
        bool, typer.Option("--follow", help="Stream session logs while generating")
    ] = False,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print session records (and followed log entries) as JSON")
    ] = False,
) -> None:
    """Generate ideas across the slot pool."""
    settings = get_settings()
    if not settings.has_ai_configured():
        console.print(
            f"[red]No API key configured for provider '{settings.ai_provider}'.[/] "
            "Set ANTHROPIC_API_KEY or GEMINI_API_KEY."
        )
        raise typer.Exit(1)

    template = GenerationRequest(
        slot_number=slot,
        profile_id=profile,
        domain=domain,
        framework=framework,
        skip_duplicate_check=skip_duplicate_check,
    )
    try:
        sessions = asyncio.run(_run_generation(settings, template, count, slots, follow, as_json))
    except IdeaForgeError as e:
        console.print(f"[red]{e.message}[/]")
        raise typer.Exit(1)

    if as_json:
        print(json.dumps([s.to_dict() for s in sessions], indent=2, default=str))
    else:
        _print_results(sessions)
    if any(s.status is SessionStatus.FAILED for s in sessions):
        raise typer.Exit(1)


async def _run_generation(
    settings: Settings,
    template: GenerationRequest,
    count: int,
    slot_count: int | None,
    follow: bool,
    as_json: bool = False,
) -> list[Session]:
    service = GenerationService.from_settings(settings)
    if slot_count:
        await service.set_slot_count(slot_count)

    running: dict[asyncio.Task, SessionHandle] = {}
    followers: list[asyncio.Task] = []
    finished: list[Session] = []

    try:
        for _ in range(count):
            while True:
                try:
                    handle = await service.generate(_copy_request(template))
                    break
                except AdmissionError as e:
                    if not running:
                        raise
                    logger.debug("Waiting for a free slot: {}", e.message)
                    finished.extend(await _wait_any(running))

            if not as_json:
                console.print(
                    f"[cyan]▶ Slot {handle.slot_number}[/] session [bold]{handle.session_id}[/]"
                )
            running[asyncio.create_task(handle.wait())] = handle
            if follow:
                followers.append(asyncio.create_task(_follow(service, handle, as_json)))

        if not as_json:
            _print_slots(service.get_slot_statuses())
        while running:
            finished.extend(await _wait_any(running))
        if followers:
            await asyncio.gather(*followers)
    finally:
        await service.shutdown()

    return finished


def _copy_request(template: GenerationRequest) -> GenerationRequest:
    return GenerationRequest(
        slot_number=template.slot_number,
        profile_id=template.profile_id,
        domain=template.domain,
        framework=template.framework,
        skip_duplicate_check=template.skip_duplicate_check,
    )


async def _wait_any(running: dict[asyncio.Task, SessionHandle]) -> list[Session]:
    done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
    for task in done:
        running.pop(task)
    return [task.result() for task in done]


async def _follow(service: GenerationService, handle: SessionHandle, as_json: bool = False) -> None:
    async for entry in service.subscribe(handle.session_id):
        if as_json:
            print(json.dumps(entry.to_dict(), default=str), flush=True)
        else:
            _print_entry(handle.slot_number, entry)


def _print_entry(slot_number: int, entry: LogEntry) -> None:
    style = LEVEL_STYLES[entry.level]
    duration = f" [dim]({entry.duration_ms} ms)[/]" if entry.duration_ms is not None else ""
    console.print(
        f"[dim]{entry.timestamp:%H:%M:%S}[/] [magenta]#{slot_number}[/] "
        f"[{style}]{entry.stage.value:<16}[/] {entry.message}{duration}",
        highlight=False,
    )


def _print_results(sessions: list[Session]) -> None:
    table = Table(title="Generation Results")
    table.add_column("Slot", style="magenta", justify="right")
    table.add_column("Session", style="dim")
    table.add_column("Status")
    table.add_column("Idea / Error")
    table.add_column("Duplicate", justify="right")

    for session in sorted(sessions, key=lambda s: s.started_at):
        if session.status is SessionStatus.COMPLETED:
            status = "[green]✓ completed[/]"
            detail = session.idea_id or ""
        else:
            status = "[red]✗ failed[/]"
            error = session.error or {}
            detail = f"{error.get('kind', '')}: {error.get('message', '')}"
        duplicate = ""
        if session.duplicate and session.duplicate.is_duplicate:
            duplicate = f"[yellow]{session.duplicate.similarity:.2f}[/]"
        table.add_row(
            str(session.slot_number), session.session_id[:8], status, detail, duplicate
        )

    console.print(table)


def _print_slots(statuses: list[SlotStatus]) -> None:
    table = Table(title=f"Slot Pool ({len(statuses)} slots)")
    table.add_column("Slot", style="cyan", justify="right")
    table.add_column("State")
    table.add_column("Session", style="dim")
    table.add_column("Profile")
    table.add_column("Enabled")

    for status in statuses:
        state = "[yellow]busy[/]" if status.state is SlotState.BUSY else "[green]idle[/]"
        table.add_row(
            str(status.slot_number),
            state,
            (status.session_id or "")[:8],
            status.profile_id or "[dim]default[/]",
            "yes" if status.enabled else "[red]no[/]",
        )
    console.print(table)


# =============================================================================
# Inspection Commands
# =============================================================================


@app.command("show-config")
def show_config() -> None:
    """Show effective settings (secrets masked)."""
    settings = get_settings()

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        if name.endswith("_api_key"):
            value = "set" if value else "[red]not set[/]"
        table.add_row(name, str(value))

    console.print(Panel.fit(f"IdeaForge v{__version__}", style="bold"))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Debug logging")
    ] = False,
) -> None:
    """💡 IdeaForge - concurrent AI idea generation."""
    configure_logging(get_settings(), verbose)


def run() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    run()
