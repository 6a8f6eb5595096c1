"""
DuckDB-backed durable key/value storage for flashdeck.

Every value is a string (JSON documents in practice). Keys are flat names
such as "flashcards"; there is no namespacing.
"""

import duckdb
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import (
    SchemaInitializationError,
    StorageConnectionError,
    StorageReadError,
    StorageWriteError,
)
from .schema import DB_SCHEMA_SQL, KV_TABLE

logger = logging.getLogger(__name__)

StorageListener = Callable[[str, Optional[str]], None]

MEMORY_PATH = ":memory:"


class KeyValueStore:
    """
    String key/value storage in a single DuckDB table.

    The connection is opened lazily and the table created on first use.
    Writes are serialized by a lock and run in one transaction each, so
    `set_many` either stores every key or none of them. Subscribers are told
    about every successful write or removal, which is how other components
    learn that a key changed.
    """

    _UPSERT_SQL = f"""
        INSERT INTO {KV_TABLE} (key, value, updated_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (key) DO UPDATE SET
            value = EXCLUDED.value,
            updated_at = EXCLUDED.updated_at;
        """

    _DELETE_SQL = f"DELETE FROM {KV_TABLE} WHERE key = $1;"

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path (str | Path): Storage file, or ':memory:' for a store that
                lives as long as its connection.
            read_only (bool): Refuse all writes.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
            self.db_path_resolved = Path(MEMORY_PATH)
        else:
            self.db_path_resolved = Path(db_path).resolve()
        self.read_only = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._schema_ready = False
        self._lock = threading.RLock()
        self._listeners: List[StorageListener] = []
        logger.info(f"KeyValueStore initialized for {self.db_path_resolved}")

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    # --- Connection lifecycle ---

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, connecting on first use.

        Raises:
            StorageConnectionError: If the storage file cannot be opened.
        """
        with self._lock:
            if self._connection is None:
                try:
                    if not self.is_memory and not self.read_only:
                        self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
                    self._connection = duckdb.connect(
                        database=str(self.db_path_resolved), read_only=self.read_only
                    )
                except (duckdb.Error, OSError) as e:
                    raise StorageConnectionError(
                        f"Failed to connect to storage: {e}", original_exception=e
                    ) from e
                logger.info(f"Connected to storage at {self.db_path_resolved}")
            return self._connection

    def close_connection(self) -> None:
        """Close the connection if open. In-memory contents are lost."""
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
            except duckdb.Error as e:
                logger.error(f"Error closing the storage connection: {e}")
            finally:
                self._connection = None
                self._schema_ready = False
            logger.info(f"Storage connection to {self.db_path_resolved} closed.")

    def __enter__(self) -> "KeyValueStore":
        self._ensure_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_connection()

    def initialize_schema(self) -> None:
        """
        Create the storage table if it does not exist. Skipped for a
        read-only store, which can only read what is already there.

        Raises:
            SchemaInitializationError: If the table cannot be created.
        """
        with self._lock:
            conn = self.get_connection()
            if self.read_only:
                self._schema_ready = True
                return
            try:
                with conn.cursor() as cursor:
                    cursor.execute(DB_SCHEMA_SQL)
            except duckdb.Error as e:
                logger.error(f"Error initializing storage at {self.db_path_resolved}: {e}")
                raise SchemaInitializationError(
                    f"Failed to initialize schema: {e}", original_exception=e
                ) from e
            self._schema_ready = True

    def _ensure_schema(self) -> duckdb.DuckDBPyConnection:
        conn = self.get_connection()
        if not self._schema_ready:
            self.initialize_schema()
        return conn

    # --- Listeners ---

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """
        Register `listener(key, value)`; value is None after a removal.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception as e:
                logger.warning(f"Storage listener failed for key '{key}': {e}")

    # --- Key/value operations ---

    def get(self, key: str) -> Optional[str]:
        """
        Return the stored string for `key`, or None if absent.

        Raises:
            StorageReadError: If the query fails.
        """
        with self._lock:
            conn = self._ensure_schema()
            try:
                row = conn.execute(
                    f"SELECT value FROM {KV_TABLE} WHERE key = $1;", [key]
                ).fetchone()
            except duckdb.Error as e:
                logger.error(f"Failed to read key '{key}': {e}")
                raise StorageReadError(
                    f"Failed to read key '{key}': {e}", original_exception=e
                ) from e
        return row[0] if row else None

    def keys(self) -> List[str]:
        """Return all stored keys in sorted order."""
        with self._lock:
            conn = self._ensure_schema()
            try:
                rows = conn.execute(
                    f"SELECT key FROM {KV_TABLE} ORDER BY key;"
                ).fetchall()
            except duckdb.Error as e:
                raise StorageReadError(
                    f"Failed to list keys: {e}", original_exception=e
                ) from e
        return [row[0] for row in rows]

    def set(self, key: str, value: str) -> None:
        """
        Store `value` under `key`.

        Raises:
            StorageWriteError: In read-only mode or if the write fails.
        """
        self.set_many({key: value})

    def set_many(self, items: Mapping[str, str]) -> None:
        """
        Store several keys in one transaction: after a failure none of them
        has changed.

        Raises:
            StorageWriteError: In read-only mode or if any write fails.
        """
        if not items:
            return
        keys = ", ".join(f"'{key}'" for key in items)
        now = datetime.now(timezone.utc)
        self._write(
            f"key {keys}" if len(items) == 1 else f"keys {keys}",
            [(self._UPSERT_SQL, [key, value, now]) for key, value in items.items()],
        )
        logger.debug(f"Stored {keys}.")
        for key, value in items.items():
            self._notify(key, value)

    def remove(self, key: str) -> bool:
        """
        Delete `key` if present.

        Returns:
            True if a value was removed, False if the key was absent.

        Raises:
            StorageWriteError: In read-only mode or if the delete fails.
        """
        if self.read_only:
            raise StorageWriteError(f"Cannot remove key '{key}' in read-only mode.")

        with self._lock:
            if self.get(key) is None:
                return False
            self._write(f"key '{key}'", [(self._DELETE_SQL, [key])])
        logger.debug(f"Removed '{key}'.")
        self._notify(key, None)
        return True

    def _write(self, what: str, statements: Sequence[Tuple[str, List[Any]]]) -> None:
        """Run `statements` in a single transaction, rolling back on failure."""
        if self.read_only:
            raise StorageWriteError(f"Cannot write {what} in read-only mode.")

        with self._lock:
            conn = self._ensure_schema()
            try:
                with conn.cursor() as cursor:
                    cursor.begin()
                    try:
                        for sql, params in statements:
                            cursor.execute(sql, params)
                        cursor.commit()
                    except duckdb.Error:
                        self._rollback(cursor)
                        raise
            except duckdb.Error as e:
                logger.error(f"Failed to write {what}: {e}")
                raise StorageWriteError(
                    f"Failed to write {what}: {e}", original_exception=e
                ) from e

    @staticmethod
    def _rollback(cursor: duckdb.DuckDBPyConnection) -> None:
        # A rollback failure is logged; the original error is the one raised.
        try:
            cursor.rollback()
            logger.info("Transaction rolled back due to write error.")
        except duckdb.Error as rb_err:
            logger.error(f"Failed to rollback transaction: {rb_err}")
