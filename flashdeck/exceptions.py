from typing import Optional


class FlashdeckError(Exception):
    """Base exception for flashdeck errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class ValidationError(FlashdeckError, ValueError):
    """Raised when input fails a precondition (empty text, bad flip speed)."""

    pass


class StateError(FlashdeckError):
    """Raised when an operation is invoked in an invalid session state."""

    pass


class StorageError(FlashdeckError):
    """Base exception for durable storage errors."""

    pass


class StorageConnectionError(StorageError):
    """Raised for errors connecting to the storage database."""

    pass


class SchemaInitializationError(StorageError):
    """Raised for errors during schema setup."""

    pass


class StorageReadError(StorageError):
    """Raised when a value cannot be read from storage."""

    pass


class StorageWriteError(StorageError):
    """Raised when a value cannot be written to or removed from storage."""

    pass


class StorageCorruptError(StorageError):
    """Indicates persisted data that could not be decoded.

    Always recovered locally by falling back to defaults or empty state.
    """

    pass
