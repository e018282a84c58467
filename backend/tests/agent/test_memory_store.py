"""
Unit tests for MemoryStore.

Tests sequence persistence, element mappings and execution history.
"""

import pytest
import sqlite3
import threading
from pathlib import Path
from unittest.mock import patch
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from memory_agent.errors import ValidationError
from memory_agent.knowledge.memory_store import MemoryStore, parse_locator_strategy
from memory_agent.models import LocatorStrategy, SequenceAction


class FailingInsertConnection:
    """SQLite connection wrapper whose bulk insert fails."""

    def __init__(self, conn):
        self._conn = conn

    def executemany(self, *args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    def __getattr__(self, name):
        return getattr(self._conn, name)


class TestMemoryStoreInit:
    """Test MemoryStore initialization."""

    def test_init_creates_database(self, tmp_path):
        """Test that init creates the parent directory and database file."""
        db_path = tmp_path / "nested" / "dir" / "memory.db"
        MemoryStore(str(db_path))

        assert db_path.exists()

    def test_init_is_idempotent(self, tmp_path):
        """Test that re-opening an existing database keeps its data."""
        db_path = str(tmp_path / "memory.db")
        MemoryStore(db_path).save_sequence("login", "Log in", "", [])

        reopened = MemoryStore(db_path)

        assert reopened.get_sequence("login") is not None

    @pytest.mark.parametrize("db_path", [":memory:", ""])
    def test_in_memory_path_rejected(self, db_path):
        """Test that a store without a database file is refused."""
        with pytest.raises(ValidationError):
            MemoryStore(db_path)

    def test_schema_has_four_tables(self, memory_store):
        """Test that all tables are created."""
        conn = sqlite3.connect(memory_store.db_path)
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        conn.close()

        assert {"action_sequences", "sequence_actions", "element_mappings", "execution_history"} <= tables


class TestSaveSequence:
    """Test saving and loading sequences."""

    def test_save_and_get(self, memory_store, login_actions):
        """Test a saved sequence comes back with actions in step order."""
        saved = memory_store.save_sequence("login", "Log in", "log me in", login_actions)

        loaded = memory_store.get_sequence("login")

        assert saved.name == "login"
        assert loaded.description == "Log in"
        assert loaded.trigger_pattern == "log me in"
        assert [a.tool_name for a in loaded.actions] == ["navigate", "send_keys", "click_element"]
        assert [a.step_order for a in loaded.actions] == [1, 2, 3]
        assert loaded.actions[1].parameters == {"by": "name", "value": "user", "text": "{{u}}"}

    def test_resave_replaces_actions(self, memory_store):
        """Test that saving twice under one name replaces the action list entirely."""
        memory_store.save_sequence("n", "", "", [
            {"tool_name": "navigate", "parameters": {"url": "a"}},
            {"tool_name": "navigate", "parameters": {"url": "b"}},
        ])
        memory_store.save_sequence("n", "", "", [
            {"tool_name": "press_key", "parameters": {"key": "Enter"}},
        ])

        loaded = memory_store.get_sequence("n")

        assert len(loaded.actions) == 1
        assert loaded.actions[0].tool_name == "press_key"
        assert loaded.actions[0].step_order == 1

    def test_resave_preserves_created_at(self, memory_store):
        """Test that created_at survives a re-save and updated_at moves forward."""
        first = memory_store.save_sequence("n", "v1", "", [])
        second = memory_store.save_sequence("n", "v2", "", [])

        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.description == "v2"

    def test_accepts_sequence_action_objects(self, memory_store):
        """Test that SequenceAction objects are renumbered densely from 1."""
        actions = [
            SequenceAction("navigate", {"url": "https://x.test"}, step_order=7),
            SequenceAction("press_key", {"key": "Tab"}, step_order=3),
        ]

        loaded = memory_store.save_sequence("s", "", "", actions)

        assert [a.step_order for a in loaded.actions] == [1, 2]
        assert loaded.actions[0].tool_name == "navigate"

    def test_accepts_camel_case_tool_name(self, memory_store):
        """Test that toolName is accepted for authored actions."""
        loaded = memory_store.save_sequence("s", "", "", [{"toolName": "navigate", "parameters": {"url": "u"}}])

        assert loaded.actions[0].tool_name == "navigate"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, memory_store, name):
        """Test that an empty name is a ValidationError."""
        with pytest.raises(ValidationError):
            memory_store.save_sequence(name, "", "", [])

    def test_action_without_tool_name_rejected(self, memory_store):
        """Test that an action without a tool name is rejected and nothing is stored."""
        with pytest.raises(ValidationError):
            memory_store.save_sequence("bad", "", "", [{"parameters": {}}])

        assert memory_store.get_sequence("bad") is None

    def test_failed_resave_keeps_previous_actions(self, memory_store):
        """Test that a write failing mid-transaction leaves the old sequence intact."""
        before = [
            {"tool_name": "navigate", "parameters": {"url": "https://a.test"}},
            {"tool_name": "press_key", "parameters": {"key": "Enter"}},
        ]
        memory_store.save_sequence("n", "old", "", before)
        real_connect = memory_store._connect

        with patch.object(memory_store, "_connect", side_effect=lambda: FailingInsertConnection(real_connect())):
            with pytest.raises(sqlite3.OperationalError):
                memory_store.save_sequence("n", "new", "", [{"tool_name": "navigate", "parameters": {"url": "b"}}])

        loaded = memory_store.get_sequence("n")
        assert loaded.description == "old"
        assert [(a.tool_name, a.parameters) for a in loaded.actions] == [
            (a["tool_name"], a["parameters"]) for a in before
        ]

    def test_concurrent_reader_sees_complete_action_lists(self, memory_store):
        """Test that a reader never observes a half-replaced action list."""
        short = [{"tool_name": "press_key", "parameters": {"key": str(i)}} for i in range(5)]
        long = [{"tool_name": "press_key", "parameters": {"key": str(i)}} for i in range(20)]
        memory_store.save_sequence("busy", "", "", short)

        seen, errors = [], []
        done = threading.Event()

        def read():
            while not done.is_set():
                try:
                    actions = memory_store.get_sequence("busy").actions
                    seen.append([a.step_order for a in actions])
                except Exception as e:
                    errors.append(e)

        reader = threading.Thread(target=read)
        reader.start()
        try:
            for i in range(100):
                memory_store.save_sequence("busy", "", "", long if i % 2 == 0 else short)
        finally:
            done.set()
            reader.join()

        assert errors == []
        assert seen
        assert all(steps in (list(range(1, 6)), list(range(1, 21))) for steps in seen)

    def test_non_mapping_parameters_rejected(self, memory_store):
        """Test that parameters must be a mapping."""
        with pytest.raises(ValidationError):
            memory_store.save_sequence("bad", "", "", [{"tool_name": "navigate", "parameters": ["x"]}])

    def test_get_missing_returns_none(self, memory_store):
        """Test that an unknown name is absent, not an error."""
        assert memory_store.get_sequence("nope") is None


class TestListAndSearch:
    """Test listing and searching sequences."""

    def test_list_newest_first_with_counts(self, memory_store, login_actions):
        """Test listing order and action counts."""
        memory_store.save_sequence("old", "", "", [])
        memory_store.save_sequence("new", "", "", login_actions)

        listing = memory_store.list_sequences()

        assert [s.name for s in listing] == ["new", "old"]
        assert listing[0].action_count == 3
        assert listing[1].action_count == 0

    def test_resave_moves_to_front(self, memory_store):
        """Test that re-saving bumps a sequence to the top of the list."""
        memory_store.save_sequence("a", "", "", [])
        memory_store.save_sequence("b", "", "", [])
        memory_store.save_sequence("a", "again", "", [])

        assert [s.name for s in memory_store.list_sequences()] == ["a", "b"]

    def test_count_sequences(self, memory_store):
        """Test sequence count."""
        assert memory_store.count_sequences() == 0
        memory_store.save_sequence("a", "", "", [])
        memory_store.save_sequence("b", "", "", [])

        assert memory_store.count_sequences() == 2

    def test_search_is_case_insensitive(self, memory_store):
        """Test search over name, description and trigger pattern."""
        memory_store.save_sequence("Checkout", "Buy the cart", "", [])
        memory_store.save_sequence("login", "", "Sign In to GitHub", [])
        memory_store.save_sequence("other", "", "", [])

        assert [s.name for s in memory_store.search_sequences("checkout")] == ["Checkout"]
        assert [s.name for s in memory_store.search_sequences("CART")] == ["Checkout"]
        assert [s.name for s in memory_store.search_sequences("github")] == ["login"]

    def test_search_no_match_is_empty(self, memory_store):
        """Test that no match is an empty list."""
        memory_store.save_sequence("a", "", "", [])

        assert memory_store.search_sequences("zzz") == []


class TestDeleteSequence:
    """Test deleting sequences."""

    def test_delete_existing(self, memory_store, login_actions):
        """Test delete returns True and removes the sequence."""
        memory_store.save_sequence("login", "", "", login_actions)

        assert memory_store.delete_sequence("login") is True
        assert memory_store.get_sequence("login") is None

    def test_delete_missing(self, memory_store):
        """Test delete of an unknown name returns False."""
        assert memory_store.delete_sequence("nope") is False

    def test_delete_cascades_to_actions(self, memory_store, login_actions):
        """Test that no orphan action rows remain after delete."""
        memory_store.save_sequence("login", "", "", login_actions)
        memory_store.delete_sequence("login")

        conn = sqlite3.connect(memory_store.db_path)
        orphans = conn.execute("SELECT COUNT(*) FROM sequence_actions").fetchone()[0]
        conn.close()

        assert orphans == 0


class TestElementMappings:
    """Test element mapping upsert and lookup."""

    def test_save_and_get(self, memory_store):
        """Test an exact lookup on the composite key."""
        memory_store.save_element_mapping("github\\.com", "login_button", "css", "input[type=submit]", "Sign in")

        mapping = memory_store.get_element_mapping("github\\.com", "login_button")

        assert mapping.locator_by == LocatorStrategy.CSS
        assert mapping.locator_value == "input[type=submit]"
        assert mapping.description == "Sign in"

    def test_upsert_on_composite_key(self, memory_store):
        """Test that saving the same pair again updates the locator."""
        first = memory_store.save_element_mapping("example", "btn", "id", "old")
        second = memory_store.save_element_mapping("example", "btn", "xpath", "//button")

        assert second.locator_by == LocatorStrategy.XPATH
        assert second.locator_value == "//button"
        assert second.created_at == first.created_at

    def test_same_name_on_different_sites(self, memory_store):
        """Test that one friendly name may map differently per site pattern."""
        memory_store.save_element_mapping("github", "search", "name", "q")
        memory_store.save_element_mapping("gitlab", "search", "id", "search")

        assert memory_store.get_element_mapping("github", "search").locator_value == "q"
        assert memory_store.get_element_mapping("gitlab", "search").locator_value == "search"

    def test_mappings_for_site_sorted_by_pattern(self, memory_store):
        """Test matching mappings are returned sorted by site pattern."""
        memory_store.save_element_mapping("github\\.com/login", "b", "id", "b")
        memory_store.save_element_mapping("github\\.com", "a", "id", "a")
        memory_store.save_element_mapping("gitlab\\.com", "c", "id", "c")

        mappings = memory_store.get_element_mappings_for_site("https://github.com/login")

        assert [m.site_pattern for m in mappings] == ["github\\.com", "github\\.com/login"]

    def test_invalid_locator_strategy(self, memory_store):
        """Test that an unknown strategy is rejected."""
        with pytest.raises(ValidationError):
            memory_store.save_element_mapping("example", "btn", "text", "Go")

    @pytest.mark.parametrize("site,name,value", [("", "n", "v"), ("s", "", "v"), ("s", "n", "")])
    def test_required_fields(self, memory_store, site, name, value):
        """Test that pattern, name and value are required."""
        with pytest.raises(ValidationError):
            memory_store.save_element_mapping(site, name, "id", value)

    def test_parse_locator_strategy_case_insensitive(self):
        """Test strategy parsing."""
        assert parse_locator_strategy("XPath") == LocatorStrategy.XPATH
        assert parse_locator_strategy(LocatorStrategy.TAG) == LocatorStrategy.TAG


class TestExecutionHistory:
    """Test the append-only execution history."""

    def test_limit_returns_most_recent_first(self, memory_store):
        """Test that a limit of 2 after 5 entries returns the 2 newest."""
        for i in range(5):
            memory_store.log_execution(None, f"tool_{i}", {"i": i}, True)

        history = memory_store.get_execution_history(2)

        assert [h.tool_name for h in history] == ["tool_4", "tool_3"]

    def test_default_limit_is_50(self, memory_store):
        """Test the default history limit."""
        for i in range(55):
            memory_store.log_execution(None, "navigate", {"i": i}, True)

        assert len(memory_store.get_execution_history()) == 50

    def test_entry_fields(self, memory_store):
        """Test that all fields are stored."""
        memory_store.log_execution("login", "click_element", {"by": "id", "value": "go"}, False, "boom")

        entry = memory_store.get_execution_history(1)[0]

        assert entry.sequence_name == "login"
        assert entry.parameters == {"by": "id", "value": "go"}
        assert entry.success is False
        assert entry.error_message == "boom"
        assert entry.executed_at

    def test_invalid_json_returns_placeholder(self, memory_store):
        """Test that a corrupt snapshot degrades to a placeholder."""
        memory_store.log_execution(None, "navigate", {"url": "ok"}, True)
        conn = sqlite3.connect(memory_store.db_path)
        conn.execute(
            "INSERT INTO execution_history (sequence_name, tool_name, parameters, success, executed_at) "
            "VALUES (NULL, 'navigate', '{not json', 1, '9999-01-01T00:00:00')"
        )
        conn.commit()
        conn.close()

        history = memory_store.get_execution_history(10)

        assert history[0].parameters["_error"]
        assert history[0].parameters["_raw_preview"] == "{not json"
        assert history[1].parameters == {"url": "ok"}

    def test_limit_below_one_rejected(self, memory_store):
        """Test that a non-positive limit is a ValidationError."""
        with pytest.raises(ValidationError):
            memory_store.get_execution_history(0)
