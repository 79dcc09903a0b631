"""
BrainDeck: Main CLI for Leitner flashcard study.

A Rich terminal interface over the Leitner review engine.

Commands:
- braindeck study        - Review the cards due today
- braindeck add          - Add a card
- braindeck list         - List cards (optionally only due ones)
- braindeck stats        - Show deck statistics
- braindeck delete       - Delete a card
- braindeck reset        - Restart the whole deck's schedule
- braindeck fetch        - Load fresh trivia cards into an empty deck
- braindeck clear-cache  - Drop cached trivia cards
- braindeck export       - Write the deck to JSON
- braindeck import       - Read cards from JSON
- braindeck remind ...   - Manage the daily reminder
"""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from braindeck.core import (
    BraindeckError,
    Card,
    Confidence,
    DeckEvent,
    EventBus,
    EventKind,
    PreconditionError,
)
from config import get_settings

from .card_source import OpenTriviaSource
from .deck_service import DeckService
from .deck_store import DeckStore
from .reminders import EventBusNotifier, ReminderService

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="braindeck",
    help="BrainDeck: Leitner flashcards in the terminal",
    no_args_is_help=True,
)
remind_app = typer.Typer(help="Manage the daily study reminder", no_args_is_help=True)
app.add_typer(remind_app, name="remind")

console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "level": {
        0: "red",
        1: "yellow",
        2: "yellow",
        3: "cyan",
        4: "blue",
        5: "green",
    },
    "notice": {
        "success": "green",
        "info": "cyan",
        "warning": "yellow",
        "error": "red",
    },
}


def style_level(level: int) -> str:
    """Get styled level string."""
    color = STYLES["level"].get(level, "white")
    return f"[{color}]L{level}[/{color}]"


# =============================================================================
# Wiring
# =============================================================================


def _print_notice(event: DeckEvent) -> None:
    color = STYLES["notice"].get(event.payload.get("level", "info"), "white")
    console.print(
        f"[{color}]{event.payload.get('title', '')}:[/{color}] {event.payload.get('body', '')}"
    )


def _build_service(load: bool = True) -> DeckService:
    """Create store, source and bus, and load the deck."""
    settings = get_settings()
    store = DeckStore(settings.db_path)
    bus = EventBus()
    bus.subscribe(_print_notice, kinds=[EventKind.NOTICE])

    service = DeckService(store, source=OpenTriviaSource(store), bus=bus)
    if load:
        service.load()
    return service


def _resolve_id(service: DeckService, prefix: str) -> str:
    """Expand a unique id prefix (as shown by `list`) to a full card id."""
    matches = [card.id for card in service.cards if card.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise PreconditionError(f"No card matches id {prefix!r}")
    raise PreconditionError(f"Id prefix {prefix!r} is ambiguous ({len(matches)} cards)")


def _truncate(text: str, width: int = 60) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 1] + "…"


# =============================================================================
# Display Helpers
# =============================================================================


def display_card_front(card: Card, index: int, total: int) -> None:
    """Display the front of a card."""
    header = f"Card {index}/{total}  |  {style_level(card.level)}  |  Reviews {card.review_count}"
    console.print(Panel(
        card.question,
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_card_back(card: Card) -> None:
    """Display the answer."""
    console.print(Panel(card.answer, border_style="blue", padding=(1, 2)))


def _ask_confidence() -> Confidence:
    choice = Prompt.ask(
        "Did you know it? [red]f[/red]=forgot / [green]k[/green]=know",
        choices=["f", "k"],
    )
    return Confidence.KNOW if choice == "k" else Confidence.FORGOT


# =============================================================================
# Commands
# =============================================================================


@app.command()
def study(
    limit: Optional[int] = typer.Option(
        None,
        "--limit", "-l",
        help="Maximum cards this session",
    ),
) -> None:
    """
    Start an interactive study session.

    Presents every due card in deck order. Rate each one Forgot or Know;
    the card's Leitner level and next review date update immediately.
    """
    console.print("\n[bold cyan]BrainDeck[/bold cyan] - Study", style="bold")
    console.print("=" * 40)

    service = _build_service()
    if not service.cards:
        console.print("\n[yellow]Your deck is empty.[/yellow]")
        console.print("Add cards with `braindeck add` or load some with `braindeck fetch`.")
        raise typer.Exit(0)

    queue = service.due_cards
    if limit is not None:
        queue = queue[:limit]

    if not queue:
        console.print("\n[green]Nothing due for review![/green]")
        console.print("All caught up. Check back tomorrow.")
        raise typer.Exit(0)

    known = 0
    completed = 0
    started = time.time()

    try:
        for i, card in enumerate(queue, 1):
            console.print()
            display_card_front(card, i, len(queue))
            Prompt.ask("[dim]Press Enter to reveal[/dim]", default="", show_default=False)
            display_card_back(card)

            confidence = _ask_confidence()
            result = service.review(card.id, confidence)
            completed += 1

            if confidence is Confidence.KNOW:
                known += 1
                console.print(
                    f"[green]Level {result.previous_level} -> {result.new_level}[/green]"
                    f"  next review {result.next_review_date:%Y-%m-%d}"
                )
            else:
                console.print("[red]Back to level 0[/red]  review again today")

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")

    _display_session_summary(completed, known, time.time() - started, service)


def _display_session_summary(
    completed: int,
    known: int,
    elapsed_seconds: float,
    service: DeckService,
) -> None:
    """Display end-of-session summary."""
    accuracy = (known / completed * 100) if completed else 0.0
    stats = service.stats
    console.print("\n")
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Duration: {elapsed_seconds / 60:.1f} minutes\n"
        f"Cards reviewed: {completed}\n"
        f"Known: {accuracy:.1f}%\n"
        f"Still due: {stats.due_count}",
        title="Summary",
        border_style="green",
    ))


@app.command()
def add(
    question: str = typer.Argument(..., help="Front of the card"),
    answer: str = typer.Argument(..., help="Back of the card"),
) -> None:
    """Add a new card (due immediately)."""
    service = _build_service()
    card = service.add_card(question, answer)
    console.print(f"[green]Added card {card.id[:8]}[/green]")


@app.command("list")
def list_cards(
    due: bool = typer.Option(False, "--due", help="Only cards due today"),
) -> None:
    """List cards with their Leitner state."""
    service = _build_service()
    cards = service.due_cards if due else service.cards

    if not cards:
        console.print("[dim]No cards.[/dim]")
        return

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Question")
    table.add_column("Level")
    table.add_column("Next review")
    table.add_column("Reviews", justify="right")

    for card in cards:
        table.add_row(
            card.id[:8],
            _truncate(card.question),
            style_level(card.level),
            f"{card.next_review_date:%Y-%m-%d}",
            str(card.review_count),
        )

    console.print(table)


@app.command()
def stats() -> None:
    """Show deck statistics and progress."""
    service = _build_service()
    deck_stats = service.stats

    console.print("\n[bold cyan]Deck Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Total cards", str(deck_stats.total_cards))
    table.add_row("Due today", str(deck_stats.due_count))
    table.add_row("Mastered (L5)", str(deck_stats.mastered_count))
    table.add_row("Average level", f"{deck_stats.average_level:.1f}")

    console.print(table)

    # Level distribution
    if deck_stats.total_cards:
        counts = [0] * 6
        for card in service.cards:
            counts[card.level] += 1
        dist = Table(title="Levels")
        for level in range(6):
            dist.add_column(style_level(level), justify="right")
        dist.add_row(*(str(c) for c in counts))
        console.print(dist)


@app.command()
def delete(
    card_id: str = typer.Argument(..., help="Card id or unique prefix"),
) -> None:
    """Delete a card."""
    service = _build_service()
    removed = service.delete_card(_resolve_id(service, card_id))
    console.print(f"[green]Deleted card {removed.id[:8]}[/green]: {_truncate(removed.question)}")


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Reset every card to level 0, due today. Card content is kept."""
    if not confirm and not Confirm.ask("Reset the schedule of ALL cards?", default=False):
        raise typer.Exit(0)

    service = _build_service()
    count = service.reset_deck()
    console.print(f"[green]Reset {count} cards.[/green]")


@app.command()
def fetch() -> None:
    """Load fresh trivia cards into an empty deck."""
    service = _build_service()
    result = service.refresh_from_source()

    if result.added:
        source = "cache" if result.from_cache else "source"
        console.print(f"[green]Added {result.added} cards from {source}.[/green]")
    elif result.message:
        console.print(f"[dim]{result.message}[/dim]")


@app.command("clear-cache")
def clear_cache() -> None:
    """Drop cached trivia cards."""
    service = _build_service(load=False)
    service.clear_cache()
    console.print("[green]Flashcard cache cleared.[/green]")


@app.command("export")
def export_deck(
    path: Path = typer.Argument(..., help="Destination JSON file"),
) -> None:
    """Export the deck to JSON."""
    service = _build_service()
    count = service.export_deck(path)
    console.print(f"[green]Exported {count} cards to {path}[/green]")


@app.command("import")
def import_deck(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file to read"),
    replace: bool = typer.Option(False, "--replace", help="Replace the deck instead of appending"),
) -> None:
    """Import cards from JSON."""
    service = _build_service()
    added = service.import_deck(path, replace=replace)
    console.print(f"[green]Imported {added} cards.[/green]")


# =============================================================================
# Reminder Commands
# =============================================================================


def _build_reminders(service: DeckService) -> ReminderService:
    settings = get_settings()
    return ReminderService(
        service.store,
        EventBusNotifier(service.bus),
        poll_seconds=settings.reminder_poll_seconds,
        due_counter=lambda: len(service.due_cards),
    )


def _parse_hhmm(value: str) -> tuple[int, int]:
    try:
        hour_text, minute_text = value.split(":")
        return int(hour_text), int(minute_text)
    except ValueError:
        raise PreconditionError(f"Expected HH:MM, got {value!r}") from None


@remind_app.command("set")
def remind_set(
    at: Optional[str] = typer.Argument(None, help="Time as HH:MM (default from config)"),
) -> None:
    """Enable the daily reminder."""
    settings = get_settings()
    hour, minute = _parse_hhmm(at) if at else (settings.reminder_hour, settings.reminder_minute)

    reminders = _build_reminders(_build_service(load=False))
    record = reminders.schedule_daily(hour, minute)
    console.print(
        f"[green]Daily reminder set for {hour:02d}:{minute:02d}[/green]"
        f"  (next: {record.next_fire_at:%Y-%m-%d %H:%M})"
    )


@remind_app.command("cancel")
def remind_cancel() -> None:
    """Disable the daily reminder."""
    reminders = _build_reminders(_build_service(load=False))
    reminders.cancel()
    console.print("[green]Daily reminder cancelled.[/green]")


@remind_app.command("status")
def remind_status() -> None:
    """Show the reminder schedule."""
    reminders = _build_reminders(_build_service(load=False))
    record = reminders.load_record()
    if record is None:
        console.print("[dim]No daily reminder set.[/dim]")
        return
    console.print(
        f"Daily at [bold]{record.hour:02d}:{record.minute:02d}[/bold]"
        f"  (next: {record.next_fire_at:%Y-%m-%d %H:%M})"
    )


@remind_app.command("run")
def remind_run() -> None:
    """Run the reminder loop in the foreground until Ctrl-C."""
    service = _build_service()
    reminders = _build_reminders(service)
    if not reminders.is_enabled():
        console.print("[yellow]No daily reminder set. Use `braindeck remind set HH:MM`.[/yellow]")
        raise typer.Exit(1)

    reminders.init()
    console.print("[cyan]Reminder loop running. Press Ctrl-C to stop.[/cyan]")
    try:
        while reminders.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print()
    finally:
        reminders.shutdown()


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="1 MB",
            retention=5,
        )

    try:
        app()
    except BraindeckError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
