"""
PreferencesStore: persistence and change notification for presentation
settings (theme, font size, flip speed, difficulty, auto-flip).
"""

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .constants import MAX_FLIP_SPEED_MS, MIN_FLIP_SPEED_MS, PREFERENCES_KEY
from .exceptions import StorageCorruptError, ValidationError
from .models import Preferences
from .storage import KeyValueStore
from .storage.codec import decode_object

logger = logging.getLogger(__name__)

PreferencesListener = Callable[[Preferences], None]

# Field names written by older releases, mapped to their current alias.
_LEGACY_FIELD_NAMES: Dict[str, str] = {"flipSpeed": "flipSpeedMs"}


class PreferencesStore:
    """
    Owns the user's Preferences. The record only changes through `apply`,
    which validates, persists the whole record in one write and then notifies
    subscribers so open views can re-render.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage
        self._current: Optional[Preferences] = None
        self._listeners: List[PreferencesListener] = []

    @property
    def current(self) -> Preferences:
        if self._current is None:
            self._current = self.load()
        return self._current

    def load(self) -> Preferences:
        """
        Read preferences from storage.

        Each stored field that validates is kept; anything missing or invalid
        falls back to its default. Unreadable data gives the defaults.
        """
        raw = self.storage.get(PREFERENCES_KEY)
        if not raw:
            self._current = Preferences()
            return self._current

        try:
            stored = decode_object(raw, "preferences")
        except StorageCorruptError as e:
            logger.warning(f"Error parsing settings, using defaults: {e}")
            self._current = Preferences()
            return self._current

        self._current = _recover_fields(stored)
        return self._current

    def apply(self, new_preferences: Union[Preferences, Mapping[str, Any]]) -> Preferences:
        """
        Replace the stored preferences.

        Args:
            new_preferences: A Preferences instance, or a mapping of field
                names/aliases validated into one.

        Raises:
            ValidationError: If the flip speed is outside the allowed range or
                a field has an invalid value.
            StorageWriteError: If the record could not be persisted.
        """
        if isinstance(new_preferences, Preferences):
            prefs = new_preferences
        else:
            try:
                prefs = Preferences.model_validate(dict(new_preferences))
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Invalid preferences: {e}", original_exception=e
                ) from e

        if not MIN_FLIP_SPEED_MS <= prefs.flip_speed_ms <= MAX_FLIP_SPEED_MS:
            raise ValidationError(
                f"Flip speed must be between {MIN_FLIP_SPEED_MS} and "
                f"{MAX_FLIP_SPEED_MS} ms, got {prefs.flip_speed_ms}."
            )

        self.storage.set(PREFERENCES_KEY, json.dumps(prefs.to_storage()))
        self._current = prefs
        logger.info(f"Applied preferences: {prefs.to_storage()}")

        for listener in list(self._listeners):
            try:
                listener(prefs)
            except Exception as e:
                logger.warning(f"Preferences listener failed: {e}")
        return prefs

    def subscribe(self, listener: PreferencesListener) -> Callable[[], None]:
        """
        Register `listener(preferences)`, called after each successful apply.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


def _recover_fields(stored: Mapping[str, Any]) -> Preferences:
    """Merge every individually valid stored field onto the defaults."""
    recovered = Preferences().to_storage()
    for key, value in stored.items():
        key = _LEGACY_FIELD_NAMES.get(key, key)
        candidate = {**recovered, key: value}
        try:
            recovered = Preferences.model_validate(candidate).to_storage()
        except PydanticValidationError:
            logger.warning(f"Ignoring invalid stored setting {key}={value!r}.")
    return Preferences.model_validate(recovered)
