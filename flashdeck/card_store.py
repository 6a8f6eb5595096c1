"""
This module defines the CardStore class, the single owner of the user's card
collection. It loads the collection from durable storage, seeds the default
cards when nothing usable is stored, and persists the complete list after
every change.
"""

import logging
from typing import Callable, List, Optional

from .constants import CARDS_KEY, DEFAULT_CARDS
from .exceptions import StorageCorruptError, ValidationError
from .models import Card
from .storage import KeyValueStore
from .storage.codec import decode_cards, encode_cards

logger = logging.getLogger(__name__)

CardsListener = Callable[[List[Card]], None]


def default_cards() -> List[Card]:
    """Return a fresh copy of the built-in general-knowledge cards."""
    return [
        Card(id=card_id, question=question, answer=answer)
        for card_id, question, answer in DEFAULT_CARDS
    ]


class CardStore:
    """
    Owns the canonical list of flashcards.

    Cards are loaded lazily on first access and held in memory afterwards;
    call `refresh()` to pick up changes written by another process.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage
        self._cards: Optional[List[Card]] = None
        self._listeners: List[CardsListener] = []

    def list(self) -> List[Card]:
        """Return the current cards, loading them on first access."""
        if self._cards is None:
            self._cards = self._load()
        return list(self._cards)

    def refresh(self) -> List[Card]:
        """Discard the in-memory list and reload it from storage."""
        self._cards = self._load()
        logger.info(f"Refreshed card store: {len(self._cards)} cards.")
        return list(self._cards)

    def get(self, card_id: int) -> Optional[Card]:
        for card in self.list():
            if card.id == card_id:
                return card
        return None

    def add(self, question: str, answer: str) -> Card:
        """
        Append a new card with the next free id and persist the collection.

        Raises:
            ValidationError: If question or answer is empty after trimming.
            StorageWriteError: If the collection could not be persisted; the
                in-memory list is left unchanged.
        """
        question = (question or "").strip()
        answer = (answer or "").strip()
        if not question or not answer:
            raise ValidationError("Question and answer are required.")

        cards = self.list()
        next_id = max((card.id for card in cards), default=0) + 1
        new_card = Card(id=next_id, question=question, answer=answer)

        self._commit(cards + [new_card])
        logger.info(f"Added card {new_card.id}.")
        return new_card

    def delete(self, card_id: int) -> bool:
        """
        Remove the card with `card_id`. Deleting an absent id is a no-op.

        Returns:
            True if a card was removed.
        """
        cards = self.list()
        remaining = [card for card in cards if card.id != card_id]
        removed = len(remaining) != len(cards)

        if removed:
            self._commit(remaining)
            logger.info(f"Deleted card {card_id}.")
        else:
            self.storage.set(CARDS_KEY, encode_cards(remaining))
            logger.debug(f"Card {card_id} not found; nothing deleted.")
        return removed

    def subscribe(self, listener: CardsListener) -> Callable[[], None]:
        """
        Register `listener(cards)`, called after each successful mutation.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, cards: List[Card]) -> None:
        # Persist first so a failed write leaves memory untouched.
        self.storage.set(CARDS_KEY, encode_cards(cards))
        self._cards = cards
        for listener in list(self._listeners):
            try:
                listener(list(cards))
            except Exception as e:
                logger.warning(f"Card store listener failed: {e}")

    def _load(self) -> List[Card]:
        raw = self.storage.get(CARDS_KEY)
        if raw:
            try:
                cards = decode_cards(raw)
                if cards:
                    return cards
                logger.info("Stored card list is empty.")
            except StorageCorruptError as e:
                logger.warning(f"Error loading stored cards, using defaults: {e}")

        cards = default_cards()
        self.storage.set(CARDS_KEY, encode_cards(cards))
        logger.info(f"Seeded {len(cards)} default cards.")
        return cards
