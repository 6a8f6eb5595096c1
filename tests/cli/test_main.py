# Standard library imports
import json
import re
from pathlib import Path
from unittest.mock import patch

# Third-party imports
import pytest
from typer.testing import CliRunner

# Local application imports
from flashdeck.cli.main import app
from flashdeck.constants import CARDS_KEY, PREFERENCES_KEY
from flashdeck.exceptions import StorageWriteError
from flashdeck.session_engine import SessionEngine
from flashdeck.storage import KeyValueStore
from flashdeck.storage.codec import encode_cards


runner = CliRunner()


def strip_ansi(text: str) -> str:
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def normalize_output(text: str) -> str:
    """Strip ANSI codes and collapse whitespace so wrapped rich output compares cleanly."""
    return re.sub(r"\s+", " ", strip_ansi(text)).strip()


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.delenv("FLASHDECK_DB", raising=False)
    return tmp_path / "flashdeck.db"


@pytest.fixture
def seeded_db(db_path: Path, card_factory) -> Path:
    """A storage file holding three cards with auto-flip turned off."""
    with KeyValueStore(db_path) as storage:
        storage.set(CARDS_KEY, encode_cards(card_factory(3)))
        storage.set(PREFERENCES_KEY, json.dumps({"autoFlip": False}))
    return db_path


def _read(db_path: Path, key: str):
    with KeyValueStore(db_path) as storage:
        raw = storage.get(key)
    return json.loads(raw) if raw else None


def _saved_summary(db_path: Path):
    with KeyValueStore(db_path) as storage:
        return SessionEngine(storage).saved_summary()


# --- Configuration ---

def test_missing_db_path_exits_with_error(db_path):
    result = runner.invoke(app, ["cards", "list"])
    assert result.exit_code == 1
    assert "--db is required" in normalize_output(result.stdout)


def test_db_path_from_environment(db_path, monkeypatch):
    monkeypatch.setenv("FLASHDECK_DB", str(db_path))
    result = runner.invoke(app, ["cards", "list"])
    assert result.exit_code == 0
    assert db_path.exists()


# --- Cards ---

def test_cards_list_seeds_defaults(db_path):
    result = runner.invoke(app, ["cards", "list", "--db", str(db_path)])

    output = normalize_output(result.stdout)
    assert result.exit_code == 0, output
    assert "My Flashcards (12)" in output
    assert "Paris" in output


def test_cards_add_and_delete(seeded_db):
    result = runner.invoke(
        app, ["cards", "add", "What is H2O?", "Water", "--db", str(seeded_db)]
    )
    assert result.exit_code == 0
    assert "Flashcard added successfully! (id 4)" in normalize_output(result.stdout)
    assert [card["id"] for card in _read(seeded_db, CARDS_KEY)] == [1, 2, 3, 4]

    result = runner.invoke(app, ["cards", "delete", "2", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "Flashcard 2 deleted." in normalize_output(result.stdout)
    assert [card["id"] for card in _read(seeded_db, CARDS_KEY)] == [1, 3, 4]


def test_cards_add_rejects_blank_question(seeded_db):
    result = runner.invoke(app, ["cards", "add", "   ", "Water", "--db", str(seeded_db)])

    assert result.exit_code == 1
    assert "Question and answer are required." in normalize_output(result.stdout)
    assert len(_read(seeded_db, CARDS_KEY)) == 3


def test_cards_delete_unknown_id(seeded_db):
    result = runner.invoke(app, ["cards", "delete", "99", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "No flashcard with id 99." in normalize_output(result.stdout)


def test_cards_add_storage_failure(seeded_db):
    with patch(
        "flashdeck.cli.main.CardStore.add",
        side_effect=StorageWriteError("disk full"),
    ):
        result = runner.invoke(app, ["cards", "add", "Q", "A", "--db", str(seeded_db)])

    assert result.exit_code == 1
    assert "Error adding flashcard: disk full" in normalize_output(result.stdout)


# --- Settings ---

def test_settings_show_defaults(db_path):
    result = runner.invoke(app, ["settings", "show", "--db", str(db_path)])

    output = normalize_output(result.stdout)
    assert result.exit_code == 0, output
    assert re.search(r"Flip speed\W+600 ms", output)
    assert re.search(r"Auto-flip\W+on", output)


def test_settings_set_changes_only_given_fields(db_path):
    result = runner.invoke(
        app,
        [
            "settings", "set", "--db", str(db_path),
            "--theme", "dark", "--difficulty", "easy", "--no-auto-flip",
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert "Settings saved." in result.stdout

    assert _read(db_path, PREFERENCES_KEY) == {
        "theme": "dark",
        "fontSize": "medium",
        "flipSpeedMs": 600,
        "difficulty": "easy",
        "autoFlip": False,
    }

    result = runner.invoke(app, ["settings", "show", "--db", str(db_path)])
    assert re.search(r"Effective flip\W+800 ms", normalize_output(result.stdout))


def test_settings_set_rejects_invalid_flip_speed(db_path):
    result = runner.invoke(
        app, ["settings", "set", "--db", str(db_path), "--flip-speed", "1500"]
    )

    assert result.exit_code == 1
    assert "Invalid settings" in normalize_output(result.stdout)
    assert _read(db_path, PREFERENCES_KEY) is None


# --- Study ---

@patch("flashdeck.cli.study_ui.time.sleep")
def test_study_full_session(mock_sleep, seeded_db):
    with patch("rich.console.Console.input", side_effect=["k", "d", "", "k"]):
        result = runner.invoke(app, ["study", "--db", str(seeded_db)])

    output = normalize_output(result.stdout)
    assert result.exit_code == 0, output
    assert "Session finished. Well done!" in output
    assert "Flashcard Results" in output
    mock_sleep.assert_called_once_with(0.6)

    summary = _saved_summary(seeded_db)
    assert (summary.known, summary.unknown, summary.remaining) == (2, 1, 0)


@patch("flashdeck.cli.study_ui.time.sleep")
def test_study_quit_then_resume(mock_sleep, seeded_db):
    with patch("rich.console.Console.input", side_effect=["k", "q"]):
        result = runner.invoke(app, ["study", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "Progress saved." in normalize_output(result.stdout)

    result = runner.invoke(app, ["summary", "--db", str(seeded_db)])
    output = normalize_output(result.stdout)
    assert re.search(r"Cards Known\W+1\b", output)
    assert re.search(r"Remaining\W+2\b", output)

    with patch("rich.console.Console.input", side_effect=["d", "", "q"]):
        result = runner.invoke(app, ["study", "--db", str(seeded_db)])
    assert "Resuming at card 2 of 3." in normalize_output(result.stdout)

    summary = _saved_summary(seeded_db)
    assert (summary.known, summary.unknown, summary.remaining) == (1, 1, 1)


def test_summary_without_session(seeded_db):
    result = runner.invoke(app, ["summary", "--db", str(seeded_db)])
    assert result.exit_code == 0
    assert "No study session found." in normalize_output(result.stdout)


@patch("flashdeck.cli.study_ui.time.sleep")
def test_reset_clears_progress(mock_sleep, seeded_db):
    with patch("rich.console.Console.input", side_effect=["k", "q"]):
        runner.invoke(app, ["study", "--db", str(seeded_db)])

    result = runner.invoke(app, ["reset", "--db", str(seeded_db)])

    assert result.exit_code == 0
    assert "Progress reset! Ready to start again." in normalize_output(result.stdout)
    summary = _saved_summary(seeded_db)
    assert (summary.known, summary.unknown, summary.remaining) == (0, 0, 3)
