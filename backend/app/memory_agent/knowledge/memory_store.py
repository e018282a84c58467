"""
Memory Store - Persistent storage for learned sequences

SQLite-backed storage for:
- Action sequences and their ordered steps
- Site-specific element mappings (friendly name -> locator)
- Append-only execution history

Every mutating call runs in a single transaction and is committed
before it returns, so readers never see a sequence with a partial
action list.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..errors import ValidationError
from ..models import (
    ActionSequence,
    ElementMapping,
    ExecutionHistoryEntry,
    LocatorStrategy,
    SequenceAction,
    SequenceSummary,
)
from .site_matcher import matches_site

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

IN_MEMORY_PATHS = ("", ":memory:")

SCHEMA = """
CREATE TABLE IF NOT EXISTS action_sequences (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    description TEXT,
    trigger_pattern TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sequence_actions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sequence_id INTEGER NOT NULL,
    step_order INTEGER NOT NULL,
    tool_name TEXT NOT NULL,
    parameters TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (sequence_id) REFERENCES action_sequences(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_sequence_actions_sequence
    ON sequence_actions(sequence_id, step_order);

CREATE TABLE IF NOT EXISTS element_mappings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    site_pattern TEXT NOT NULL,
    element_name TEXT NOT NULL,
    locator_by TEXT NOT NULL,
    locator_value TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(site_pattern, element_name)
);

CREATE TABLE IF NOT EXISTS execution_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sequence_name TEXT,
    tool_name TEXT NOT NULL,
    parameters TEXT,
    success INTEGER NOT NULL,
    error_message TEXT,
    executed_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.utcnow().isoformat()


class MemoryStore:
    """
    Durable store for sequences, element mappings and execution history.

    Uses one short-lived connection per operation. Writes are serialized
    through a lock; SQLite transactions give readers a consistent view.
    db_path must name a file: an in-memory database would vanish with
    each connection.
    """

    def __init__(self, db_path: str):
        if not db_path or str(db_path).strip() in IN_MEMORY_PATHS:
            raise ValidationError("Memory store needs a database file path", {"db_path": db_path})

        self.db_path = db_path
        self._lock = threading.Lock()

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialized write transaction, committed on success"""
        with self._lock:
            conn = self._connect()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        """Read-only snapshot spanning every query in the block"""
        conn = self._connect()
        try:
            conn.execute("BEGIN")
            yield conn
        finally:
            conn.rollback()
            conn.close()

    def _init_schema(self):
        """Create tables if they don't exist"""
        with self._transaction() as conn:
            conn.executescript(SCHEMA)
        logger.info(f"Memory store ready at {self.db_path}")

    # ==================== Sequences ====================

    def save_sequence(
        self,
        name: str,
        description: str = "",
        trigger_pattern: str = "",
        actions: Optional[List[Any]] = None
    ) -> ActionSequence:
        """
        Save a sequence, replacing any existing one with the same name.

        Upsert the sequence row, drop its previous steps and insert the new
        steps numbered from 1, all in one transaction. created_at survives
        a re-save; updated_at is bumped.

        Args:
            name: Unique sequence name
            description: Human-readable description
            trigger_pattern: Free-text phrase used for discovery
            actions: SequenceAction objects or dicts with tool_name/parameters

        Returns:
            The stored sequence
        """
        if not name or not name.strip():
            raise ValidationError("Sequence name is required")

        normalized = [self._normalize_action(a, i) for i, a in enumerate(actions or [], start=1)]
        now = _now()

        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO action_sequences (name, description, trigger_pattern, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    description = excluded.description,
                    trigger_pattern = excluded.trigger_pattern,
                    updated_at = excluded.updated_at""",
                (name, description or "", trigger_pattern or "", now, now),
            )
            sequence_id = conn.execute(
                "SELECT id FROM action_sequences WHERE name = ?", (name,)
            ).fetchone()["id"]

            conn.execute("DELETE FROM sequence_actions WHERE sequence_id = ?", (sequence_id,))
            conn.executemany(
                """INSERT INTO sequence_actions (sequence_id, step_order, tool_name, parameters, created_at)
                VALUES (?, ?, ?, ?, ?)""",
                [
                    (sequence_id, action.step_order, action.tool_name, json.dumps(action.parameters), now)
                    for action in normalized
                ],
            )

        logger.info(f"Saved sequence '{name}' with {len(normalized)} actions")
        return self.get_sequence(name)

    def _normalize_action(self, action: Any, step_order: int) -> SequenceAction:
        """Accept SequenceAction objects or plain dicts"""
        if isinstance(action, SequenceAction):
            tool_name, parameters = action.tool_name, action.parameters
        elif isinstance(action, dict):
            tool_name = action.get("tool_name") or action.get("toolName")
            parameters = action.get("parameters", {})
        else:
            raise ValidationError(f"Action {step_order} has unsupported type {type(action).__name__}")

        if not tool_name:
            raise ValidationError(f"Action {step_order} is missing a tool name", {"step": step_order})
        if parameters is None:
            parameters = {}
        if not isinstance(parameters, dict):
            raise ValidationError(f"Action {step_order} parameters must be a mapping", {"step": step_order})

        try:
            json.dumps(parameters)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Action {step_order} parameters are not JSON-serializable: {e}") from e

        return SequenceAction(tool_name=tool_name, parameters=dict(parameters), step_order=step_order)

    def get_sequence(self, name: str) -> Optional[ActionSequence]:
        """Load a sequence with its actions in step order"""
        with self._reader() as conn:
            row = conn.execute(
                "SELECT * FROM action_sequences WHERE name = ?", (name,)
            ).fetchone()
            if not row:
                return None
            return self._load_sequence(conn, row)

    def _load_sequence(self, conn: sqlite3.Connection, row: sqlite3.Row) -> ActionSequence:
        action_rows = conn.execute(
            """SELECT tool_name, parameters, step_order FROM sequence_actions
            WHERE sequence_id = ? ORDER BY step_order""",
            (row["id"],),
        ).fetchall()

        return ActionSequence(
            name=row["name"],
            description=row["description"] or "",
            trigger_pattern=row["trigger_pattern"] or "",
            actions=[
                SequenceAction(
                    tool_name=a["tool_name"],
                    parameters=json.loads(a["parameters"]),
                    step_order=a["step_order"],
                )
                for a in action_rows
            ],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list_sequences(self) -> List[SequenceSummary]:
        """List all sequences, most recently updated first"""
        with self._reader() as conn:
            rows = conn.execute(
                """SELECT s.name, s.description, s.trigger_pattern, s.created_at, s.updated_at,
                    COUNT(a.id) AS action_count
                FROM action_sequences s
                LEFT JOIN sequence_actions a ON a.sequence_id = s.id
                GROUP BY s.id
                ORDER BY s.updated_at DESC, s.id DESC"""
            ).fetchall()

        return [
            SequenceSummary(
                name=r["name"],
                description=r["description"] or "",
                trigger_pattern=r["trigger_pattern"] or "",
                action_count=r["action_count"],
                created_at=r["created_at"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    def count_sequences(self) -> int:
        with self._reader() as conn:
            return conn.execute("SELECT COUNT(*) FROM action_sequences").fetchone()[0]

    def search_sequences(self, query: str) -> List[ActionSequence]:
        """
        Case-insensitive substring search over name, description
        and trigger pattern. No match is an empty list.
        """
        needle = (query or "").lower()
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT * FROM action_sequences ORDER BY updated_at DESC, id DESC"
            ).fetchall()
            return [
                self._load_sequence(conn, row)
                for row in rows
                if needle in (row["name"] or "").lower()
                or needle in (row["description"] or "").lower()
                or needle in (row["trigger_pattern"] or "").lower()
            ]

    def delete_sequence(self, name: str) -> bool:
        """Delete a sequence and its actions. Returns True if it existed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM action_sequences WHERE name = ?", (name,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted sequence '{name}'")
        return deleted

    # ==================== Element Mappings ====================

    def save_element_mapping(
        self,
        site_pattern: str,
        element_name: str,
        locator_by: str,
        locator_value: str,
        description: str = ""
    ) -> ElementMapping:
        """Insert or update the mapping for (site_pattern, element_name)"""
        if not site_pattern:
            raise ValidationError("Site pattern is required")
        if not element_name:
            raise ValidationError("Element name is required")
        if not locator_value:
            raise ValidationError("Locator value is required")

        strategy = parse_locator_strategy(locator_by)
        now = _now()

        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO element_mappings
                    (site_pattern, element_name, locator_by, locator_value, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(site_pattern, element_name) DO UPDATE SET
                    locator_by = excluded.locator_by,
                    locator_value = excluded.locator_value,
                    description = excluded.description,
                    updated_at = excluded.updated_at""",
                (site_pattern, element_name, strategy.value, locator_value, description or "", now, now),
            )

        logger.info(f"Saved element '{element_name}' for site pattern '{site_pattern}'")
        return self.get_element_mapping(site_pattern, element_name)

    def get_element_mapping(self, site_pattern: str, element_name: str) -> Optional[ElementMapping]:
        """Exact lookup on the composite key"""
        with self._reader() as conn:
            row = conn.execute(
                "SELECT * FROM element_mappings WHERE site_pattern = ? AND element_name = ?",
                (site_pattern, element_name),
            ).fetchone()
        return self._row_to_mapping(row) if row else None

    def get_element_mappings_for_site(self, url: str) -> List[ElementMapping]:
        """All mappings whose site pattern matches the URL, sorted by pattern"""
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT * FROM element_mappings ORDER BY site_pattern, element_name"
            ).fetchall()

        return [self._row_to_mapping(r) for r in rows if matches_site(r["site_pattern"], url)]

    def _row_to_mapping(self, row: sqlite3.Row) -> ElementMapping:
        return ElementMapping(
            site_pattern=row["site_pattern"],
            element_name=row["element_name"],
            locator_by=LocatorStrategy(row["locator_by"]),
            locator_value=row["locator_value"],
            description=row["description"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ==================== Execution History ====================

    def log_execution(
        self,
        sequence_name: Optional[str],
        tool_name: str,
        parameters: Optional[Dict[str, Any]],
        success: bool,
        error_message: Optional[str] = None
    ):
        """Append one immutable history entry"""
        try:
            params_json = json.dumps(parameters if parameters is not None else {})
        except (TypeError, ValueError):
            params_json = json.dumps({"_unserializable": repr(parameters)[:200]})

        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO execution_history
                    (sequence_name, tool_name, parameters, success, error_message, executed_at)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (sequence_name, tool_name, params_json, 1 if success else 0, error_message, _now()),
            )

    def get_execution_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[ExecutionHistoryEntry]:
        """
        Most recent history entries first.

        Entries whose stored parameters cannot be parsed come back with a
        diagnostic placeholder instead of failing the query.
        """
        if limit < 1:
            raise ValidationError("History limit must be at least 1", {"limit": limit})

        with self._reader() as conn:
            rows = conn.execute(
                "SELECT * FROM execution_history ORDER BY executed_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()

        entries = []
        for row in rows:
            raw = row["parameters"]
            try:
                parameters = json.loads(raw or "{}")
            except ValueError:
                logger.warning(f"Invalid JSON in history entry {row['id']}")
                parameters = {
                    "_error": "Invalid JSON in stored parameters",
                    "_entry_id": row["id"],
                    "_raw_preview": (raw or "")[:50],
                }

            entries.append(ExecutionHistoryEntry(
                id=row["id"],
                sequence_name=row["sequence_name"],
                tool_name=row["tool_name"],
                parameters=parameters,
                success=row["success"] == 1,
                error_message=row["error_message"],
                executed_at=row["executed_at"],
            ))

        return entries


def parse_locator_strategy(value: Any) -> LocatorStrategy:
    """Convert a string to a LocatorStrategy, raising ValidationError"""
    if isinstance(value, LocatorStrategy):
        return value
    try:
        return LocatorStrategy(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in LocatorStrategy)
        raise ValidationError(
            f"Unsupported locator strategy: {value}",
            {"allowed": allowed},
        ) from None
