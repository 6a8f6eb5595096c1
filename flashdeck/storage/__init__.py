"""Durable storage package for flashdeck.

Only KeyValueStore is exported as the public API.
"""

from .store import KeyValueStore

__all__ = ["KeyValueStore"]
