"""
Storage keys, preference bounds and the default card set.

Pure constants only. No runtime configuration or path defaults.
"""
from typing import Tuple

# Durable storage keys. Changing a name orphans data already stored under it.
CARDS_KEY: str = "flashcards"
DECK_KEY: str = "shuffledCards"
PROGRESS_KEY: str = "flashcardProgress"
PREFERENCES_KEY: str = "flashcard-settings"

# Flip animation bounds (milliseconds).
MIN_FLIP_SPEED_MS: int = 200
MAX_FLIP_SPEED_MS: int = 1200
DEFAULT_FLIP_SPEED_MS: int = 600

# Difficulty adjusts the effective flip duration.
EASY_MIN_FLIP_MS: int = 800
HARD_MAX_FLIP_MS: int = 400

# Delay before a revealed "don't know" answer advances on its own.
AUTO_ADVANCE_DELAY_MS: int = 2000

# Seeded on first run, or whenever stored cards are missing or unreadable.
# (id, question, answer)
DEFAULT_CARDS: Tuple[Tuple[int, str, str], ...] = (
    (1, "What is the capital of France?", "Paris"),
    (2, "What is 2 + 2?", "4"),
    (3, "Who wrote Hamlet?", "William Shakespeare"),
    (4, "What is the boiling point of water in Celsius?", "100°C"),
    (5, "What planet is known as the Red Planet?", "Mars"),
    (6, "Who painted the Mona Lisa?", "Leonardo da Vinci"),
    (7, "What is the largest mammal?", "Blue Whale"),
    (8, "What is the chemical symbol for gold?", "Au"),
    (9, "Who discovered penicillin?", "Alexander Fleming"),
    (10, "What is the square root of 64?", "8"),
    (11, "What is the fastest land animal?", "Cheetah"),
    (12, "What is the main language spoken in Brazil?", "Portuguese"),
)
