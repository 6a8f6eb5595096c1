"""
This module defines the SessionEngine class, which drives one study session:
it builds a shuffled deck from the current cards, tracks which cards were
known or unknown, and persists both the deck order and the progress so that a
session can be resumed after a restart.
"""

import logging
import random
import threading
from typing import List, Optional, Sequence

from .constants import DECK_KEY, PROGRESS_KEY
from .exceptions import StateError, StorageCorruptError
from .models import Card, SessionProgress, SessionState, SessionSummary
from .storage import KeyValueStore
from .storage.codec import decode_cards, decode_progress, encode_cards, encode_progress

logger = logging.getLogger(__name__)


def shuffle_cards(cards: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """
    Return a uniformly random permutation of `cards` (Fisher-Yates).

    The input sequence is not modified.
    """
    rng = rng or random.Random()
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class SessionEngine:
    """
    Manages the deck and progress of a study session.

    States:
    - UNINITIALIZED until `initialize` (or `reset`) builds a deck.
    - ACTIVE while the cursor points at an unanswered card.
    - COMPLETE once every deck entry has been answered. Only `reset` leaves
      this state.

    `record_answer` is the only operation that changes progress.
    """

    def __init__(self, storage: KeyValueStore, rng: Optional[random.Random] = None):
        """
        Args:
            storage: Durable store for the deck order and progress.
            rng: Random source for shuffling; injectable for repeatable tests.
        """
        self.storage = storage
        self._rng = rng or random.Random()
        self._deck: Optional[List[Card]] = None
        self._progress = SessionProgress()
        # Guards the check-then-write of an answer against a concurrent one.
        self._lock = threading.RLock()

    # --- Read-only views ---

    @property
    def deck(self) -> List[Card]:
        return list(self._deck or [])

    @property
    def deck_length(self) -> int:
        return len(self._deck or [])

    @property
    def progress(self) -> SessionProgress:
        return self._progress

    @property
    def state(self) -> SessionState:
        if self._deck is None:
            return SessionState.UNINITIALIZED
        if self._progress.cursor >= len(self._deck):
            return SessionState.COMPLETE
        return SessionState.ACTIVE

    # --- Lifecycle ---

    def initialize(self, cards: Sequence[Card], force_reset: bool = False) -> List[Card]:
        """
        Build the deck for `cards`.

        With `force_reset`, progress is discarded and a new shuffle is made.
        Otherwise the persisted deck is reused when its length still matches
        `len(cards)`, so a restart resumes the same order; a mismatch means
        cards were added or deleted, and the deck and its progress are
        replaced.

        Returns:
            The deck now in use.
        """
        logger.info(f"Initializing session for {len(cards)} cards, force reset: {force_reset}")

        with self._lock:
            if not force_reset:
                saved_deck = self._load_saved_deck()
                if saved_deck is not None and len(saved_deck) == len(cards):
                    self._deck = saved_deck
                    self._progress = self._load_saved_progress() or SessionProgress()
                    logger.info(
                        f"Loaded saved card order, resuming at index {self._progress.cursor}."
                    )
                    return self.deck
                if saved_deck is not None:
                    logger.info(
                        f"Saved card order has {len(saved_deck)} cards but the store has {len(cards)}; reshuffling."
                    )

            self._start_new_deck(cards)
            return self.deck

    def reset(self, cards: Sequence[Card]) -> List[Card]:
        """Reshuffle and clear progress as one operation, from any state."""
        return self.initialize(cards, force_reset=True)

    def clear(self) -> None:
        """Forget the persisted deck and progress; the engine becomes uninitialized."""
        with self._lock:
            self.storage.remove(PROGRESS_KEY)
            self.storage.remove(DECK_KEY)
            self._deck = None
            self._progress = SessionProgress()
        logger.info("Cleared saved session.")

    def restore_progress(self) -> SessionProgress:
        """
        Load persisted progress and make it current.

        Missing, malformed or inconsistent progress, or a cursor outside
        [0, deck length), gives empty progress instead of an error.

        Raises:
            StateError: If no deck has been initialized.
        """
        with self._lock:
            self._require_deck()
            self._progress = self._load_saved_progress() or SessionProgress()
        logger.info(f"Restored progress at index {self._progress.cursor}.")
        return self._progress

    # --- Study operations ---

    def current_card(self) -> Optional[Card]:
        """The card at the cursor, or None once the session is complete."""
        if self._deck is None or self._progress.cursor >= len(self._deck):
            return None
        return self._deck[self._progress.cursor]

    def record_answer(self, known: bool) -> SessionProgress:
        """
        Classify the current card and advance the cursor.

        Raises:
            StateError: If there is no current card.
            StorageWriteError: If the new progress could not be persisted;
                progress is left unchanged.
        """
        with self._lock:
            card = self.current_card()
            if card is None:
                raise StateError("No current card to answer; the session is not active.")
            return self._apply_answer(card, known)

    def record_answer_for(self, card_id: int, known: bool) -> SessionProgress:
        """
        Record an answer only if `card_id` is still the current card. The
        check and the write happen under one lock, so an answer made in
        between can never shift this one onto the next card.

        Raises:
            StateError: If there is no current card or it is a different one.
            StorageWriteError: As for `record_answer`.
        """
        with self._lock:
            card = self.current_card()
            if card is None or card.id != card_id:
                raise StateError(f"Card {card_id} is no longer the current card.")
            return self._apply_answer(card, known)

    def _apply_answer(self, card: Card, known: bool) -> SessionProgress:
        progress = self._progress
        updated = SessionProgress(
            known_ids=progress.known_ids + [card.id] if known else progress.known_ids,
            unknown_ids=progress.unknown_ids if known else progress.unknown_ids + [card.id],
            cursor=progress.cursor + 1,
        )
        self.storage.set(PROGRESS_KEY, encode_progress(updated))
        self._progress = updated
        logger.debug(
            f"Card {card.id} marked {'known' if known else 'unknown'}; cursor now {updated.cursor}."
        )
        if self.is_complete():
            logger.info("Session complete.")
        return updated

    def is_complete(self) -> bool:
        return self.state == SessionState.COMPLETE

    def summary(self) -> SessionSummary:
        return SessionSummary(
            total_cards=self.deck_length,
            known=len(self._progress.known_ids),
            unknown=len(self._progress.unknown_ids),
            remaining=max(0, self.deck_length - self._progress.cursor),
        )

    def saved_summary(self) -> Optional[SessionSummary]:
        """
        Summarize the persisted session without loading it, including a
        finished one (which `restore_progress` would discard).

        Returns:
            None if no readable deck and progress are stored.
        """
        deck = self._load_saved_deck()
        raw = self.storage.get(PROGRESS_KEY)
        if deck is None or not raw:
            return None
        try:
            progress = decode_progress(raw)
        except StorageCorruptError as e:
            logger.warning(f"Cannot summarize saved progress: {e}")
            return None
        return SessionSummary(
            total_cards=len(deck),
            known=len(progress.known_ids),
            unknown=len(progress.unknown_ids),
            remaining=max(0, len(deck) - progress.cursor),
        )

    # --- Persistence helpers ---

    def _start_new_deck(self, cards: Sequence[Card]) -> None:
        deck = shuffle_cards(cards, self._rng)
        empty = SessionProgress()
        # One transaction: a new deck is never stored next to stale progress.
        self.storage.set_many(
            {DECK_KEY: encode_cards(deck), PROGRESS_KEY: encode_progress(empty)}
        )
        self._deck = deck
        self._progress = empty
        logger.info(f"Created new shuffled order of {len(deck)} cards.")

    def _load_saved_deck(self) -> Optional[List[Card]]:
        raw = self.storage.get(DECK_KEY)
        if not raw:
            return None
        try:
            return decode_cards(raw)
        except StorageCorruptError as e:
            logger.warning(f"Error parsing saved card order: {e}")
            return None

    def _load_saved_progress(self) -> Optional[SessionProgress]:
        raw = self.storage.get(PROGRESS_KEY)
        if not raw:
            logger.info("No saved progress found, using defaults.")
            return None
        try:
            progress = decode_progress(raw)
        except StorageCorruptError as e:
            logger.warning(f"Invalid progress structure, using defaults: {e}")
            return None

        if not 0 <= progress.cursor < self.deck_length:
            logger.info(f"Index {progress.cursor} out of bounds, resetting to 0.")
            return None
        if not progress.is_consistent():
            logger.warning("Saved progress lists do not match its index, using defaults.")
            return None
        return progress

    def _require_deck(self) -> None:
        if self._deck is None:
            raise StateError("Session has not been initialized.")
