"""
CLI entry point for flashdeck.
"""

# Standard library imports
import os
from pathlib import Path
from typing import Optional

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from flashdeck.auto_advance import AutoAdvanceTimer
from flashdeck.card_store import CardStore
from flashdeck.cli.study_ui import display_summary, start_study_flow
from flashdeck.exceptions import StateError, StorageError, ValidationError
from flashdeck.models import Difficulty, FontSize, Theme
from flashdeck.preferences import PreferencesStore
from flashdeck.session_engine import SessionEngine
from flashdeck.storage import KeyValueStore


console = Console()

app = typer.Typer(
    name="flashdeck",
    help="Flashdeck: flip through flashcards and track what you know.",
    add_completion=False,
    rich_markup_mode="markdown",
)

cards_app = typer.Typer(name="cards", help="Manage your card collection.")
app.add_typer(cards_app)

settings_app = typer.Typer(name="settings", help="View or change presentation settings.")
app.add_typer(settings_app)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (FLASHDECK_DB envvar)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from CLI flag or FLASHDECK_DB envvar. Exits on missing."""
    if db is not None:
        return db
    env_val = os.environ.get("FLASHDECK_DB")
    if env_val:
        return Path(env_val)
    console.print(
        "[bold red]Error: --db is required "
        "(or set the FLASHDECK_DB environment variable).[/bold red]"
    )
    raise typer.Exit(code=1)


_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the storage file. Falls back to FLASHDECK_DB env var.",
    envvar="FLASHDECK_DB",
)


def _fail(message: str, error: Exception) -> typer.Exit:
    console.print(f"[bold red]{message}:[/bold red] {error}")
    return typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Study commands
# ---------------------------------------------------------------------------


@app.command()
def study(
    db: Optional[Path] = _db_option,
    reset: bool = typer.Option(
        False, "--reset", help="Reshuffle the deck and start from the first card."
    ),
):
    """Study the deck, resuming where the last session stopped."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            cards = CardStore(storage).list()
            prefs = PreferencesStore(storage).load()
            start_study_flow(
                SessionEngine(storage),
                cards,
                prefs,
                AutoAdvanceTimer(),
                reset=reset,
            )
    except (StateError, StorageError) as e:
        raise _fail("Study session failed", e) from e


@app.command()
def summary(db: Optional[Path] = _db_option):
    """Show known/unknown counts for the saved session."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            saved = SessionEngine(storage).saved_summary()
    except StorageError as e:
        raise _fail("A storage error occurred", e) from e

    if saved is None:
        console.print("[yellow]No study session found. Run `study` first.[/yellow]")
        return
    display_summary(saved)


@app.command()
def reset(db: Optional[Path] = _db_option):
    """Reshuffle the deck and clear progress."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            cards = CardStore(storage).list()
            SessionEngine(storage).reset(cards)
    except StorageError as e:
        raise _fail("A storage error occurred", e) from e
    console.print("[bold cyan]Progress reset! Ready to start again.[/bold cyan]")


# ---------------------------------------------------------------------------
# Card management
# ---------------------------------------------------------------------------


@cards_app.command("list")
def list_cards(db: Optional[Path] = _db_option):
    """List every card in the collection."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            cards = CardStore(storage).list()
    except StorageError as e:
        raise _fail("A storage error occurred", e) from e

    table = Table(title=f"My Flashcards ({len(cards)})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Question", style="magenta")
    table.add_column("Answer", style="green")
    for card in cards:
        table.add_row(str(card.id), card.question, card.answer)
    console.print(table)


@cards_app.command("add")
def add_card(
    question: str = typer.Argument(..., help="Question for the front of the card."),
    answer: str = typer.Argument(..., help="Answer for the back of the card."),
    db: Optional[Path] = _db_option,
):
    """Add a card to the collection."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            card = CardStore(storage).add(question, answer)
    except ValidationError as e:
        raise _fail("Error", e) from e
    except StorageError as e:
        raise _fail("Error adding flashcard", e) from e
    console.print(f"[bold green]Flashcard added successfully![/bold green] (id {card.id})")


@cards_app.command("delete")
def delete_card(
    card_id: int = typer.Argument(..., help="Id of the card to delete."),
    db: Optional[Path] = _db_option,
):
    """Delete a card from the collection."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            removed = CardStore(storage).delete(card_id)
    except StorageError as e:
        raise _fail("Error deleting flashcard", e) from e
    if removed:
        console.print(f"[cyan]Flashcard {card_id} deleted.[/cyan]")
    else:
        console.print(f"[yellow]No flashcard with id {card_id}.[/yellow]")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@settings_app.command("show")
def show_settings(db: Optional[Path] = _db_option):
    """Show the current presentation settings."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            prefs = PreferencesStore(storage).load()
    except StorageError as e:
        raise _fail("A storage error occurred", e) from e

    table = Table(title="Settings", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Theme", prefs.theme.value)
    table.add_row("Font size", prefs.font_size.value)
    table.add_row("Flip speed", f"{prefs.flip_speed_ms} ms")
    table.add_row("Difficulty", prefs.difficulty.value)
    table.add_row("Effective flip", f"{prefs.effective_flip_ms} ms")
    table.add_row("Auto-flip", "on" if prefs.auto_flip else "off")
    console.print(table)


@settings_app.command("set")
def set_settings(
    db: Optional[Path] = _db_option,
    theme: Optional[Theme] = typer.Option(None, "--theme"),
    font_size: Optional[FontSize] = typer.Option(None, "--font-size"),
    flip_speed: Optional[int] = typer.Option(
        None, "--flip-speed", help="Flip duration in ms (200-1200)."
    ),
    difficulty: Optional[Difficulty] = typer.Option(None, "--difficulty"),
    auto_flip: Optional[bool] = typer.Option(
        None, "--auto-flip/--no-auto-flip", help="Advance automatically after revealing an answer."
    ),
):
    """Change one or more settings; the rest keep their current values."""
    db_path = _resolve_db_path(db)
    try:
        with KeyValueStore(db_path) as storage:
            store = PreferencesStore(storage)
            updated = store.load().to_storage()
            changes = {
                "theme": theme.value if theme else None,
                "fontSize": font_size.value if font_size else None,
                "flipSpeedMs": flip_speed,
                "difficulty": difficulty.value if difficulty else None,
                "autoFlip": auto_flip,
            }
            updated.update({k: v for k, v in changes.items() if v is not None})
            store.apply(updated)
    except ValidationError as e:
        raise _fail("Invalid settings", e) from e
    except StorageError as e:
        raise _fail("A storage error occurred", e) from e
    console.print("[bold green]Settings saved.[/bold green]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application, printing a bold red error and exiting with
    status 1 on anything unexpected.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
