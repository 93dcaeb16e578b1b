"""Tests for StateManager."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from core.sync.state_manager import METADATA_KEY, StateManager
from core.version import VERSION
from models.config_models import Config
from models.state_models import ComparisonResult, ComparisonStats


@pytest.fixture
def manager(tmp_path: Path) -> StateManager:
    return StateManager(tmp_path)


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def test_state_path_follows_config(tmp_path: Path) -> None:
    """The state directory and file name come from the SYNC section."""
    config = Config()
    config.SYNC.STATE_DIR = "state"
    config.SYNC.STATE_FILE = "sync.json"

    assert StateManager.from_config(config, tmp_path).state_path == tmp_path / "state" / "sync.json"


def test_generate_state_hashes_values() -> None:
    """Strings are hashed as UTF-8; other leaves through type-tagged canonical JSON."""
    state: dict[str, str] = StateManager.generate_state({"a": "Hello", "b": 3, "c": ["x", "y"]})

    assert state["a"] == sha256("Hello")
    assert state["b"] == sha256("int:3")
    assert state["c"] == sha256('list:["x","y"]')


def test_type_only_change_is_a_modification() -> None:
    """A leaf changing from the string "1" to the number 1 is reported as modified."""
    previous: dict[str, str] = StateManager.generate_state({"count": "1"})
    current: dict[str, str] = StateManager.generate_state({"count": 1})

    assert StateManager.compare_states(previous, current).modified_keys == ("count",)


def test_compare_states_classifies_keys() -> None:
    """Keys are new, modified, deleted or unchanged; metadata is ignored."""
    previous: dict[str, object] = {"same": "h1", "changed": "h2", "gone": "h3", METADATA_KEY: {"version": "1"}}
    current: dict[str, str] = {"same": "h1", "changed": "h2b", "added": "h4"}

    result: ComparisonResult = StateManager.compare_states(previous, current)

    assert result.new_keys == ("added",)
    assert result.modified_keys == ("changed",)
    assert result.deleted_keys == ("gone",)
    assert result.unchanged_keys == ("same",)
    assert result.has_changes is True


def test_first_run_everything_is_new(manager: StateManager) -> None:
    """Without a previous state every key is new."""
    result: ComparisonResult = StateManager.compare_states(manager.load_state(), {"a": "h", "b": "h"})

    assert result.new_keys == ("a", "b")
    assert result.deleted_keys == ()


def test_no_changes() -> None:
    """Identical states report no changes."""
    result: ComparisonResult = StateManager.compare_states({"a": "h"}, {"a": "h"})

    assert result.has_changes is False


def test_save_and_load_round_trip(manager: StateManager) -> None:
    """The saved file holds the hashes plus a metadata block."""
    state: dict[str, str] = StateManager.generate_state({"home.title": "Welcome"})

    assert manager.save_state(state) is True
    assert manager.load_state() == state

    raw = json.loads(manager.state_path.read_text(encoding="utf-8"))
    assert raw[METADATA_KEY]["version"] == StateManager.STATE_VERSION
    assert raw[METADATA_KEY]["toolVersion"] == VERSION
    assert "lastUpdated" in raw[METADATA_KEY]

    metadata = manager.load_metadata()
    assert metadata is not None
    assert metadata.tool_version == VERSION


def test_corrupt_state_is_treated_as_first_run(manager: StateManager, caplog: pytest.LogCaptureFixture) -> None:
    """A malformed state file is logged and ignored."""
    manager.state_path.parent.mkdir(parents=True)
    manager.state_path.write_text("{not json", encoding="utf-8")

    assert manager.load_state() == {}
    assert manager.load_metadata() is None
    assert "state_corrupt" in caplog.text


def test_malformed_entries_are_skipped(manager: StateManager) -> None:
    """Non-string hashes are dropped on load."""
    manager.state_path.parent.mkdir(parents=True)
    manager.state_path.write_text(json.dumps({"ok": "h", "bad": 3}), encoding="utf-8")

    assert manager.load_state() == {"ok": "h"}


def test_save_failure_returns_false(tmp_path: Path) -> None:
    """Write errors are reported, not raised."""
    (tmp_path / StateManager.DEFAULT_STATE_DIR).write_text("a file, not a directory", encoding="utf-8")
    manager = StateManager(tmp_path)

    assert manager.save_state({"a": "h"}) is False


def test_comparison_stats() -> None:
    """Counts and the change rate in percent."""
    result = ComparisonResult(new_keys=("a",), modified_keys=("b",), deleted_keys=("c",), unchanged_keys=("d", "e"))

    assert StateManager.get_comparison_stats(result) == ComparisonStats(
        total=4, new=1, modified=1, deleted=1, unchanged=2, change_rate=50.0
    )
    assert StateManager.get_comparison_stats(ComparisonResult()).change_rate == 0.0


def test_cleanup_state_drops_obsolete_keys(manager: StateManager) -> None:
    """Entries for keys no longer in the source are removed and persisted."""
    manager.save_state({"keep": "h1", "drop": "h2"})

    assert manager.cleanup_state(["keep"]) == {"keep": "h1"}
    assert manager.load_state() == {"keep": "h1"}
