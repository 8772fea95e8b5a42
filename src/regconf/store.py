"""SQLite storage for registry entries.

Entries form a tree of folders and leaves. Leaf values are stored as YAML text
and every value change appends a row to ``entry_versions``. Child lookup goes
through the unique ``(parent_id, key)`` index.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

from .exceptions import EntryKindError
from .utils import KEY_PATH, dump_yaml, load_yaml, split_key_path

logger = logging.getLogger(__name__)

_TABLES = [
    ("entries",
     "id INTEGER PRIMARY KEY AUTOINCREMENT, "
     "parent_id INTEGER REFERENCES entries(id), "
     "key TEXT NOT NULL, folder BOOLEAN NOT NULL DEFAULT 0, "
     "value TEXT, updated_at TEXT NOT NULL"),
    ("entry_versions",
     "id INTEGER PRIMARY KEY AUTOINCREMENT, "
     "entry_id INTEGER NOT NULL, value TEXT, created_at TEXT NOT NULL"),
]

_INDEXES = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_entries_parent_key ON entries(parent_id, key)",
    "CREATE INDEX IF NOT EXISTS idx_versions_entry ON entry_versions(entry_id)",
]

ROOT_KEY = ""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Entry:
    """One durable node of the registry tree."""

    id: int
    parent_id: Optional[int]
    key: str
    folder: bool
    value: Optional[str]
    updated_at: str

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class EntryVersion:
    """A recorded value of a leaf entry."""

    id: int
    entry_id: int
    value: Optional[str]
    created_at: str


class EntryStore:
    """SQLite-based storage for registry entries and their value history."""

    def __init__(self, database: str = ":memory:") -> None:
        self._database = database
        if database != ":memory:":
            os.makedirs(os.path.dirname(database) or ".", exist_ok=True)
        self._conn = sqlite3.connect(database, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_tables()

    def __enter__(self) -> "EntryStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"EntryStore({self._database!r})"

    @property
    def database(self) -> str:
        return self._database

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        cur = self._conn.cursor()
        try:
            yield cur
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _init_tables(self) -> None:
        with self._cursor() as cur:
            for name, cols in _TABLES:
                cur.execute(f"CREATE TABLE IF NOT EXISTS {name} ({cols})")
            for idx in _INDEXES:
                cur.execute(idx)

    # -- Values ------------------------------------------------------------
    @staticmethod
    def encode_value(value: Any) -> str:
        return dump_yaml(value)

    def decode_value(self, entry: Entry) -> Any:
        """Decode the stored value of a leaf entry.

        Raises:
            EntryKindError: If the entry is a folder
        """
        if entry.folder:
            raise EntryKindError(f"Entry '{entry.key}' is a folder and has no value")
        if entry.value is None:
            return None
        return load_yaml(entry.value)

    @staticmethod
    def is_folder(entry: Entry) -> bool:
        return entry.folder

    # -- Lookup ------------------------------------------------------------
    def root(self) -> Entry:
        """Return the root folder, creating it if the tree is empty."""
        with self._cursor() as cur:
            cur.execute("SELECT * FROM entries WHERE parent_id IS NULL ORDER BY id LIMIT 1")
            row = cur.fetchone()
            if row is None:
                cur.execute(
                    "INSERT INTO entries (parent_id, key, folder, value, updated_at) VALUES (NULL, ?, 1, NULL, ?)",
                    (ROOT_KEY, _now_iso()))
                cur.execute("SELECT * FROM entries WHERE id = ?", (cur.lastrowid,))
                row = cur.fetchone()
                logger.debug("Created root entry %d in %s", row["id"], self._database)
        return _row_to_entry(row)

    def get_entry(self, entry_id: int) -> Optional[Entry]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM entries WHERE id = ?", (entry_id,))
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def find_child(self, parent: Entry, key: str) -> Optional[Entry]:
        """Find the child of ``parent`` named ``key`` (exact, case sensitive)."""
        with self._cursor() as cur:
            cur.execute("SELECT * FROM entries WHERE parent_id = ? AND key = ?", (parent.id, key))
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def children(self, parent: Entry) -> List[Entry]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM entries WHERE parent_id = ? ORDER BY key", (parent.id,))
            rows = cur.fetchall()
        return [_row_to_entry(r) for r in rows]

    def find(self, key_path: KEY_PATH) -> Optional[Entry]:
        """Walk a key path from the root. Returns None if any key is missing."""
        entry = self.root()
        for key in split_key_path(key_path):
            if not entry.folder:
                return None
            entry = self.find_child(entry, key)
            if entry is None:
                return None
        return entry

    # -- Writes ------------------------------------------------------------
    def create_folder(self, parent: Entry, key: str) -> Entry:
        self._check_parent(parent, key)
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO entries (parent_id, key, folder, value, updated_at) VALUES (?, ?, 1, NULL, ?)",
                (parent.id, key, _now_iso()))
            entry_id = cur.lastrowid
        logger.debug("Created folder '%s' under entry %d", key, parent.id)
        return self.get_entry(entry_id)

    def create_leaf(self, parent: Entry, key: str, value: Any) -> Entry:
        self._check_parent(parent, key)
        encoded = self.encode_value(value)
        now = _now_iso()
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO entries (parent_id, key, folder, value, updated_at) VALUES (?, ?, 0, ?, ?)",
                (parent.id, key, encoded, now))
            entry_id = cur.lastrowid
            cur.execute(
                "INSERT INTO entry_versions (entry_id, value, created_at) VALUES (?, ?, ?)",
                (entry_id, encoded, now))
        logger.debug("Created leaf '%s' under entry %d", key, parent.id)
        return self.get_entry(entry_id)

    def update_value(self, entry: Entry, value: Any) -> Entry:
        """Store a new value for a leaf, recording a version if it changed.

        Returns:
            The refreshed entry
        """
        if entry.folder:
            raise EntryKindError(f"Entry '{entry.key}' is a folder and cannot hold a value")
        encoded = self.encode_value(value)
        current = self.get_entry(entry.id)
        if current is not None and current.value == encoded:
            return current

        now = _now_iso()
        with self._cursor() as cur:
            cur.execute("UPDATE entries SET value = ?, updated_at = ? WHERE id = ?", (encoded, now, entry.id))
            cur.execute(
                "INSERT INTO entry_versions (entry_id, value, created_at) VALUES (?, ?, ?)",
                (entry.id, encoded, now))
        logger.debug("Updated value of entry '%s' (%d)", entry.key, entry.id)
        return self.get_entry(entry.id)

    def delete(self, entry: Entry) -> None:
        """Delete an entry, its descendants and their version history."""
        ids = [entry.id]
        pending = [entry]
        while pending:
            for child in self.children(pending.pop()):
                ids.append(child.id)
                pending.append(child)

        marks = ",".join("?" * len(ids))
        with self._cursor() as cur:
            cur.execute(f"DELETE FROM entry_versions WHERE entry_id IN ({marks})", ids)
            cur.execute(f"DELETE FROM entries WHERE id IN ({marks})", ids)
        logger.debug("Deleted %d entries starting at '%s'", len(ids), entry.key)

    def delete_all(self) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM entries")
        logger.debug("Deleted all entries in %s", self._database)

    def delete_all_version_history(self) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM entry_versions")
        logger.debug("Deleted all version history in %s", self._database)

    def _check_parent(self, parent: Entry, key: str) -> None:
        if not parent.folder:
            raise EntryKindError(f"Cannot create '{key}' under leaf entry '{parent.key}'")
        if not key:
            raise ValueError("Entry key must be a non-empty string")

    # -- History -----------------------------------------------------------
    def versions(self, entry: Entry) -> List[EntryVersion]:
        """Recorded values of an entry, oldest first."""
        with self._cursor() as cur:
            cur.execute("SELECT * FROM entry_versions WHERE entry_id = ? ORDER BY id", (entry.id,))
            rows = cur.fetchall()
        return [EntryVersion(r["id"], r["entry_id"], r["value"], r["created_at"]) for r in rows]

    def count_entries(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM entries")
            return cur.fetchone()[0]

    def count_versions(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM entry_versions")
            return cur.fetchone()[0]

    # -- Export ------------------------------------------------------------
    def export(self, entry: Optional[Entry] = None) -> Dict[str, Any]:
        """Render the durable subtree under ``entry`` (default: root) as a nested dict."""
        entry = entry or self.root()
        if not entry.folder:
            raise EntryKindError(f"Entry '{entry.key}' is a leaf; use decode_value()")

        result = {}  # Dict[str, Any] (decoded subtree)
        for child in self.children(entry):
            result[child.key] = self.export(child) if child.folder else self.decode_value(child)
        return result


def _row_to_entry(r: sqlite3.Row) -> Entry:
    return Entry(
        id=r["id"], parent_id=r["parent_id"], key=r["key"],
        folder=bool(r["folder"]), value=r["value"], updated_at=r["updated_at"])
