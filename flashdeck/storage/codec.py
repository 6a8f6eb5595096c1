"""
Conversion between the models and the JSON strings kept in durable storage.

Decoders raise StorageCorruptError for anything they cannot turn back into a
valid model; callers recover from it locally.
"""

import json
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from ..exceptions import StorageCorruptError
from ..models import Card, SessionProgress


def _load_json(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorageCorruptError(
            f"Stored {what} is not valid JSON: {e}", original_exception=e
        ) from e


def encode_cards(cards: Sequence[Card]) -> str:
    """Serialize cards as a JSON array of {id, question, answer}."""
    return json.dumps([card.model_dump() for card in cards], ensure_ascii=False)


def decode_cards(raw: str) -> List[Card]:
    """
    Parse a JSON array of cards.

    Raises:
        StorageCorruptError: If the JSON is malformed, is not an array,
            contains an invalid card, or repeats an id.
    """
    data = _load_json(raw, "cards")
    if not isinstance(data, list):
        raise StorageCorruptError(
            f"Stored cards must be a JSON array, got {type(data).__name__}."
        )

    try:
        cards = [Card.model_validate(item) for item in data]
    except ValidationError as e:
        raise StorageCorruptError(
            f"Failed to parse stored card: {e}", original_exception=e
        ) from e

    ids = [card.id for card in cards]
    if len(ids) != len(set(ids)):
        raise StorageCorruptError("Stored cards contain duplicate ids.")
    return cards


def encode_progress(progress: SessionProgress) -> str:
    return json.dumps(progress.to_storage())


def decode_progress(raw: str) -> SessionProgress:
    """
    Parse {known, unknown, currentIndex}. Only structure is checked here;
    bounds against the deck are the session engine's business.

    Raises:
        StorageCorruptError: If the JSON is malformed or the lists/cursor
            have the wrong types.
    """
    data = _load_json(raw, "progress")
    if not isinstance(data, dict):
        raise StorageCorruptError("Stored progress must be a JSON object.")
    try:
        return SessionProgress.model_validate(data)
    except ValidationError as e:
        raise StorageCorruptError(
            f"Failed to parse stored progress: {e}", original_exception=e
        ) from e


def decode_object(raw: str, what: str) -> Dict[str, Any]:
    """Parse a JSON object without validating its fields."""
    data = _load_json(raw, what)
    if not isinstance(data, dict):
        raise StorageCorruptError(f"Stored {what} must be a JSON object.")
    return data
