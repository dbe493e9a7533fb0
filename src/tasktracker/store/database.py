"""
=============================================================================
JSON TABLE DATABASE
=============================================================================

A tiny table store: named tables of rows, held in memory and mirrored to
one JSON file.

    db.json
    ───────
    {
      "tasks": [
        {"id": "3f2a...", "title": "Buy milk", "description": "...",
         "created_at": "...", "updated_at": "...", "completed_at": null}
      ]
    }

=============================================================================
GUARANTEES
=============================================================================

- Rows keep insertion order. select() returns them in that order.
- Every insert, and every update or delete that found its row, rewrites
  the whole file. Misses write nothing.
- Writes are queued to a SnapshotWriter thread; callers return before the
  file is written unless the database was opened with sync=True.
- One re-entrant lock guards the tables. Snapshots are serialized under
  it, so each queued snapshot is a consistent image.
- Rows handed out are copies. Changing them never changes the database.

Not provided: multi-process safety, multi-row transactions, indexes
(lookups by id scan the table), schemas.

=============================================================================
STARTUP
=============================================================================

A snapshot that is missing, unreadable, not JSON, or not shaped like
{"table": [row, ...]} is replaced by an empty database. The problem is
logged as a warning and the empty snapshot is written right away, so the
next start is clean. The broken file is not kept.

=============================================================================
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .persistence import SnapshotWriter


logger = logging.getLogger(__name__)


Row = Dict[str, Any]
Search = Mapping[str, Union[str, Iterable[str], None]]


class Database:
    """
    In-memory tables mirrored to a JSON snapshot.

        db = Database("db.json")
        db.insert("tasks", {"id": "t1", "title": "Buy milk"})
        db.select("tasks", {"title": "milk"})       # [{"id": "t1", ...}]
        db.update("tasks", "t1", {"title": "Buy oat milk"})
        db.delete("tasks", "t1")
        db.close()

    Args:
        path: Snapshot file location.
        sync: Write the snapshot before mutating calls return.
    """

    def __init__(self, path: Union[str, "os.PathLike[str]"] = "db.json", sync: bool = False):
        self.path = os.fspath(path)
        self.sync = sync

        self._lock = threading.RLock()
        self._writer = SnapshotWriter(self.path)
        self._tables: Dict[str, List[Row]] = self._load()

    def __repr__(self) -> str:
        return f"Database(path={self.path!r}, tables={self.tables()!r})"

    # =========================================================================
    # LOADING
    # =========================================================================

    def _load(self) -> Dict[str, List[Row]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Snapshot {self.path} not found, starting with an empty database")
            return self._reset()
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Snapshot {self.path} unreadable ({e}), starting with an empty database")
            return self._reset()

        if not _is_valid_snapshot(data):
            logger.warning(
                f"Snapshot {self.path} is not a table collection, starting with an empty database"
            )
            return self._reset()

        total = sum(len(rows) for rows in data.values())
        logger.info(f"Loaded {total} row(s) in {len(data)} table(s) from {self.path}")
        return data

    def _reset(self) -> Dict[str, List[Row]]:
        tables: Dict[str, List[Row]] = {}
        self._writer.write(_serialize(tables))
        return tables

    # =========================================================================
    # READS
    # =========================================================================

    def select(self, table: str, search: Optional[Search] = None) -> List[Row]:
        """
        Rows of `table`, in insertion order.

        With a non-empty `search`, keep the rows where ANY listed field
        contains ANY of its substrings (plain, case-sensitive `in`):

            db.select("tasks", {"title": "milk", "description": "milk"})
            db.select("tasks", {"title": ["milk", "bread"]})

        Fields that are missing or null never match. An unknown table
        gives an empty list.
        """
        needles = _normalize_search(search)

        with self._lock:
            rows = self._tables.get(table, [])
            if not needles:
                return [dict(row) for row in rows]
            return [dict(row) for row in rows if _row_matches(row, needles)]

    def get(self, table: str, row_id: str) -> Optional[Row]:
        with self._lock:
            row = self._find(table, row_id)
            return dict(row) if row is not None else None

    def tables(self) -> List[str]:
        with self._lock:
            return list(self._tables)

    # =========================================================================
    # WRITES
    # =========================================================================

    def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        """
        Append a row, creating the table on first use.

        The row is stored as given; ids are the caller's business and are
        not checked for duplicates.
        """
        stored = dict(row)
        with self._lock:
            self._tables.setdefault(table, []).append(stored)
            self._persist()
            return dict(stored)

    def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Merge `fields` into the row with this id.

        Keys not in `fields` are kept. The "id" key is never changed.

        Returns:
            False (and nothing is written) if the table or row is missing.
        """
        with self._lock:
            row = self._find(table, row_id)
            if row is None:
                return False

            row.update({k: v for k, v in fields.items() if k != "id"})
            self._persist()
            return True

    def delete(self, table: str, row_id: str) -> bool:
        """
        Remove the row with this id.

        Returns:
            False (and nothing is written) if the table or row is missing.
        """
        with self._lock:
            rows = self._tables.get(table)
            if not rows:
                return False

            for index, row in enumerate(rows):
                if row.get("id") == row_id:
                    del rows[index]
                    self._persist()
                    return True
            return False

    @contextmanager
    def locked(self) -> Iterator["Database"]:
        """
        Hold the database lock across several calls.

            with db.locked():
                row = db.get("tasks", task_id)
                db.update("tasks", task_id, {"done": not row["done"]})
        """
        with self._lock:
            yield self

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _find(self, table: str, row_id: str) -> Optional[Row]:
        for row in self._tables.get(table, []):
            if row.get("id") == row_id:
                return row
        return None

    def _persist(self) -> None:
        """Serialize now (caller holds the lock), write now or later."""
        text = _serialize(self._tables)
        if self.sync:
            self._writer.write(text)
        else:
            self._writer.submit(text)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued snapshots. False if the timeout expired."""
        return self._writer.flush(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Write outstanding snapshots and stop the writer thread."""
        self._writer.close(timeout)
        logger.debug(f"Database {self.path} closed")

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


# =============================================================================
# HELPERS
# =============================================================================

def _serialize(tables: Dict[str, List[Row]]) -> str:
    return json.dumps(tables, indent=2, ensure_ascii=False)


def _is_valid_snapshot(data: Any) -> bool:
    """{"table": [{...}, ...], ...}"""
    if not isinstance(data, dict):
        return False
    for rows in data.values():
        if not isinstance(rows, list):
            return False
        if not all(isinstance(row, dict) for row in rows):
            return False
    return True


def _normalize_search(search: Optional[Search]) -> Dict[str, List[str]]:
    """{"title": "milk", "tags": ["a", None]} → {"title": ["milk"], "tags": ["a"]}"""
    if not search:
        return {}

    needles: Dict[str, List[str]] = {}
    for field_name, value in search.items():
        if value is None:
            continue
        values = [value] if isinstance(value, str) else list(value)
        terms = [str(v) for v in values if v is not None]
        if terms:
            needles[field_name] = terms
    return needles


def _row_matches(row: Row, needles: Dict[str, List[str]]) -> bool:
    for field_name, candidates in needles.items():
        value = row.get(field_name)
        if value is None:
            continue
        haystack = str(value)
        if any(candidate in haystack for candidate in candidates):
            return True
    return False
