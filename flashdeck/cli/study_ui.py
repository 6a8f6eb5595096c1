"""
Command-line study flow: shows each card, captures known/unknown answers and
prints the summary when the deck is finished.
"""

import logging
import time
from typing import Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from flashdeck.auto_advance import AutoAdvanceTimer
from flashdeck.exceptions import StateError
from flashdeck.models import Card, FontSize, Preferences, SessionSummary, Theme
from flashdeck.session_engine import SessionEngine

logger = logging.getLogger(__name__)
console = Console()

# (question border, answer border) per theme
THEME_STYLES: Dict[Theme, tuple] = {
    Theme.DEFAULT: ("cyan", "blue"),
    Theme.DARK: ("grey50", "grey23"),
    Theme.VIBRANT: ("magenta", "bright_magenta"),
}

FONT_STYLES: Dict[FontSize, str] = {
    FontSize.SMALL: "dim",
    FontSize.MEDIUM: "",
    FontSize.LARGE: "bold",
}

KNOW = "k"
DONT_KNOW = "d"
QUIT = "q"


def _get_choice() -> str:
    """Prompt until the user enters k, d or q."""
    while True:
        choice = console.input(
            "[bold](k) I know it, (d) I don't know, (q) quit: [/bold]"
        ).strip().lower()
        if choice in (KNOW, DONT_KNOW, QUIT):
            return choice
        console.print("[bold red]Invalid choice. Please enter k, d or q.[/bold red]")


def _styled(text: str, prefs: Preferences) -> Text:
    return Text(text, style=FONT_STYLES[prefs.font_size])


def _display_question(card: Card, prefs: Preferences) -> None:
    border, _ = THEME_STYLES[prefs.theme]
    console.print(Panel(_styled(card.question, prefs), title="Question", border_style=border))


def _display_answer(card: Card, prefs: Preferences) -> None:
    """Flip the card (taking the difficulty-adjusted flip time), then show the answer."""
    _, border = THEME_STYLES[prefs.theme]
    with console.status("Flipping..."):
        time.sleep(prefs.effective_flip_ms / 1000)
    console.print(Panel(_styled(card.answer, prefs), title="Answer", border_style=border))


def _handle_dont_know(
    engine: SessionEngine, card: Card, prefs: Preferences, timer: AutoAdvanceTimer
) -> None:
    _display_answer(card, prefs)
    if not prefs.auto_flip:
        console.input("[italic]Press Enter to continue...[/italic]")
        engine.record_answer(False)
        return

    timer.schedule_for(engine, card.id, known=False)
    console.print(f"[italic]Moving on in {timer.delay_ms / 1000:g}s...[/italic]")
    try:
        timer.fired.wait()
    finally:
        # Interrupted while waiting: never answer for a card the user left.
        timer.cancel()
    if timer.error is not None:
        raise timer.error


def display_summary(summary: SessionSummary) -> None:
    table = Table(title="Flashcard Results", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Cards Known", str(summary.known))
    table.add_row("Cards to Review", str(summary.unknown))
    table.add_row("Remaining", str(summary.remaining))
    table.add_row("Known", f"{summary.known_percentage}%")
    console.print(table)


def start_study_flow(
    engine: SessionEngine,
    cards: List[Card],
    prefs: Preferences,
    timer: AutoAdvanceTimer,
    reset: bool = False,
) -> bool:
    """
    Run an interactive study session over `cards`, resuming saved progress
    unless `reset` is given.

    Returns:
        True if the deck was finished, False if the user quit early.
    """
    engine.initialize(cards, force_reset=reset)
    if engine.deck_length == 0:
        console.print("[bold yellow]No cards to study. Add some first.[/bold yellow]")
        return False

    if engine.progress.cursor:
        console.print(
            f"[cyan]Resuming at card {engine.progress.cursor + 1} of {engine.deck_length}.[/cyan]"
        )

    while (card := engine.current_card()) is not None:
        console.rule(
            f"[bold]Card {engine.progress.cursor + 1} of {engine.deck_length}[/bold]"
        )
        _display_question(card, prefs)

        choice = _get_choice()
        if choice == QUIT:
            console.print("[bold cyan]Progress saved. See you next time.[/bold cyan]")
            return False

        try:
            if choice == KNOW:
                engine.record_answer(True)
                console.print("[green]Marked as known.[/green]")
            else:
                _handle_dont_know(engine, card, prefs, timer)
        except StateError as e:
            logger.error(f"Failed to record answer for card {card.id}: {e}")
            console.print(f"[bold red]Could not record answer: {e}[/bold red]")
            return False
        console.print("")

    console.print("[bold cyan]Session finished. Well done![/bold cyan]")
    display_summary(engine.summary())
    return True
