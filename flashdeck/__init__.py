"""Flashdeck - flashcard study sessions with durable local progress."""

from .models import Card, Preferences, SessionProgress, SessionState, SessionSummary
from .card_store import CardStore
from .session_engine import SessionEngine
from .preferences import PreferencesStore
from .auto_advance import AutoAdvanceTimer
from .storage import KeyValueStore

__all__ = [
    "Card",
    "Preferences",
    "SessionProgress",
    "SessionState",
    "SessionSummary",
    "CardStore",
    "SessionEngine",
    "PreferencesStore",
    "AutoAdvanceTimer",
    "KeyValueStore",
]
