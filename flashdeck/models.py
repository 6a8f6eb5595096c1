"""
Pydantic models for cards, study progress and presentation preferences.

Field aliases reproduce the JSON shapes persisted in durable storage
(`currentIndex`, `fontSize`, `flipSpeedMs`, `autoFlip`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from .constants import (
    DEFAULT_FLIP_SPEED_MS,
    EASY_MIN_FLIP_MS,
    HARD_MAX_FLIP_MS,
    MAX_FLIP_SPEED_MS,
    MIN_FLIP_SPEED_MS,
)


class Theme(str, Enum):
    """Colour scheme for card borders."""

    DEFAULT = "default"
    DARK = "dark"
    VIBRANT = "vibrant"


class FontSize(str, Enum):
    """Text size of card contents; a terminal renders it as a text style."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Difficulty(str, Enum):
    """
    Study difficulty. Changes how long the card flip takes, not which
    cards are shown.
    """

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SessionState(str, Enum):
    """Lifecycle of one study session."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    COMPLETE = "complete"


class Card(BaseModel):
    """
    A question/answer pair. Cards are immutable; edits happen by deleting
    and adding.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(
        ...,
        ge=0,
        description="Unique id within the card store (max existing id + 1).",
    )
    question: str = Field(
        ...,
        min_length=1,
        description="Question shown on the front of the card.",
    )
    answer: str = Field(
        ...,
        min_length=1,
        description="Answer revealed on the back of the card.",
    )


class SessionProgress(BaseModel):
    """
    Known/unknown outcomes for the cards answered so far in a session.

    `cursor` is the index of the next unanswered deck entry. Instances are
    frozen; the session engine replaces the whole record on every answer.
    """

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", strict=True
    )

    known_ids: List[int] = Field(
        default_factory=list,
        alias="known",
        description="Card ids marked known, in answer order.",
    )
    unknown_ids: List[int] = Field(
        default_factory=list,
        alias="unknown",
        description="Card ids marked unknown, in answer order.",
    )
    cursor: int = Field(
        default=0,
        alias="currentIndex",
        description="Index of the next unanswered card in the deck.",
    )

    @property
    def answered(self) -> int:
        return len(self.known_ids) + len(self.unknown_ids)

    def is_consistent(self) -> bool:
        """Every answered card has exactly one classification."""
        if self.cursor < 0 or self.answered != self.cursor:
            return False
        return not set(self.known_ids) & set(self.unknown_ids)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Preferences(BaseModel):
    """
    Presentation settings. Replaced as a whole record by
    PreferencesStore.apply, never edited field by field.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    theme: Theme = Field(default=Theme.DEFAULT)
    font_size: FontSize = Field(default=FontSize.MEDIUM, alias="fontSize")
    flip_speed_ms: int = Field(
        default=DEFAULT_FLIP_SPEED_MS,
        ge=MIN_FLIP_SPEED_MS,
        le=MAX_FLIP_SPEED_MS,
        alias="flipSpeedMs",
        description="Raw flip transition duration in milliseconds.",
    )
    difficulty: Difficulty = Field(default=Difficulty.MEDIUM)
    auto_flip: bool = Field(
        default=True,
        alias="autoFlip",
        description="Advance automatically after revealing an unknown answer.",
    )

    @property
    def effective_flip_ms(self) -> int:
        """Flip duration after the difficulty adjustment."""
        if self.difficulty == Difficulty.EASY:
            return max(self.flip_speed_ms, EASY_MIN_FLIP_MS)
        if self.difficulty == Difficulty.HARD:
            return min(self.flip_speed_ms, HARD_MAX_FLIP_MS)
        return self.flip_speed_ms

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class SessionSummary:
    """Outcome counts shown when a session ends."""

    total_cards: int
    known: int
    unknown: int
    remaining: int

    @property
    def known_percentage(self) -> float:
        answered = self.known + self.unknown
        if answered == 0:
            return 0.0
        return round(self.known / answered * 100, 1)
