import random
import sys
import duckdb
import pytest
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List
from unittest.mock import patch

from flashdeck.card_store import CardStore
from flashdeck.models import Card
from flashdeck.preferences import PreferencesStore
from flashdeck.session_engine import SessionEngine
from flashdeck.storage import KeyValueStore


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Run each test with its tmpdir as the working directory and at the front
    of sys.path.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


# --- Storage Fixtures ---
@pytest.fixture
def storage_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def storage_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_flashdeck.db"


@pytest.fixture(params=["memory", "file"])
def storage(
    request, storage_path_memory: str, storage_path_file: Path
) -> Generator[KeyValueStore, None, None]:
    """
    KeyValueStore for tests, either in-memory or file-backed, closed on
    teardown.
    """
    if request.param == "memory":
        store = KeyValueStore(storage_path_memory)
    else:
        store = KeyValueStore(storage_path_file)
    try:
        yield store
    finally:
        store.close_connection()


@pytest.fixture
def memory_storage() -> Generator[KeyValueStore, None, None]:
    store = KeyValueStore(":memory:")
    store.initialize_schema()
    try:
        yield store
    finally:
        store.close_connection()


@pytest.fixture
def card_store(memory_storage: KeyValueStore) -> CardStore:
    return CardStore(memory_storage)


@pytest.fixture
def engine(memory_storage: KeyValueStore) -> SessionEngine:
    """SessionEngine with a fixed seed so shuffles are repeatable."""
    return SessionEngine(memory_storage, rng=random.Random(1234))


@pytest.fixture
def prefs_store(memory_storage: KeyValueStore) -> PreferencesStore:
    return PreferencesStore(memory_storage)


def make_cards(count: int, start: int = 1) -> List[Card]:
    return [
        Card(id=i, question=f"Question {i}", answer=f"Answer {i}")
        for i in range(start, start + count)
    ]


@pytest.fixture
def card_factory():
    """Provides make_cards(count, start=1) for tests that need a custom set."""
    return make_cards


@pytest.fixture
def three_cards() -> List[Card]:
    return make_cards(3)


@pytest.fixture
def five_cards() -> List[Card]:
    return make_cards(5)


# --- Write failure injection ---
class _FailingCursor:
    """Wraps a real DuckDB cursor and fails its Nth execute."""

    def __init__(self, cursor, state):
        self._cursor = cursor
        self._state = state

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._cursor.__exit__(exc_type, exc_val, exc_tb)

    def execute(self, sql, params=None):
        self._state["count"] += 1
        if self._state["count"] == self._state["fail_at"]:
            raise duckdb.Error("simulated write failure")
        return self._cursor.execute(sql, params)

    def __getattr__(self, name):
        return getattr(self._cursor, name)


class _FailingConnection:
    def __init__(self, conn, fail_at):
        self._conn = conn
        self._state = {"count": 0, "fail_at": fail_at}

    def cursor(self):
        return _FailingCursor(self._conn.cursor(), self._state)

    def __getattr__(self, name):
        return getattr(self._conn, name)


@pytest.fixture
def failing_write():
    """
    Context manager factory: `with failing_write(storage, statement=2):` makes
    the second write statement fail inside a real DuckDB transaction.
    """

    @contextmanager
    def _failing_write(storage: KeyValueStore, statement: int = 1):
        proxy = _FailingConnection(storage.get_connection(), statement)
        with patch.object(storage, "get_connection", return_value=proxy):
            yield

    return _failing_write
