"""
Cancellable auto-advance used after an answer is revealed through the
"don't know" path.
"""

import logging
import threading
from typing import Callable, Optional

from .constants import AUTO_ADVANCE_DELAY_MS
from .exceptions import StateError
from .session_engine import SessionEngine

logger = logging.getLogger(__name__)


class AutoAdvanceTimer:
    """
    Runs one delayed callback at a time. Scheduling again, or calling
    `cancel`, drops the pending call.
    """

    def __init__(self, delay_ms: int = AUTO_ADVANCE_DELAY_MS):
        self.delay_ms = delay_ms
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.fired = threading.Event()
        self.error: Optional[Exception] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, callback: Callable[[], None], delay_ms: Optional[int] = None) -> None:
        delay = self.delay_ms if delay_ms is None else delay_ms
        with self._lock:
            self._cancel_locked()
            self.fired.clear()
            self.error = None
            timer = threading.Timer(delay / 1000, self._run, args=(callback,))
            timer.daemon = True
            self._timer = timer
            timer.start()
        logger.debug(f"Auto-advance scheduled in {delay} ms.")

    def schedule_for(self, engine: SessionEngine, card_id: int, known: bool = False) -> None:
        """
        Record an answer for `card_id` when the timer fires, but only if that
        card is still the engine's current card.
        """

        def advance() -> None:
            try:
                engine.record_answer_for(card_id, known)
            except StateError as e:
                logger.info(f"Auto-advance skipped: {e}")

        self.schedule(advance)

    def cancel(self) -> bool:
        """Cancel the pending call. Returns True if one was pending."""
        with self._lock:
            cancelled = self._cancel_locked()
        if cancelled:
            logger.debug("Auto-advance cancelled.")
        return cancelled

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def _run(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        try:
            callback()
        except Exception as e:
            # Raised again by whoever waits on `fired`.
            logger.error(f"Auto-advance failed: {e}")
            self.error = e
        finally:
            self.fired.set()
