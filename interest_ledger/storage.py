"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). Records are JSON documents keyed by table and id.
Transactions nest: only the outermost atomic() block commits.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Tuple, Union
import copy
import sqlite3
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from contextlib import contextmanager


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a (possibly nested) transaction"""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the innermost transaction"""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the innermost transaction"""
        pass

    @property
    @abstractmethod
    def lock(self) -> threading.RLock:
        """Re-entrant lock serializing every operation on this storage"""
        pass

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        return self.load(table, record_id) is not None

    @contextmanager
    def atomic(self):
        """
        Unit of work: everything saved inside commits together or not at all.

        Holds the storage lock for the whole block, so concurrent callers are
        applied in a strict total order.
        """
        with self.lock:
            self.begin_transaction()
            try:
                yield
            except Exception:
                self.rollback()
                raise
            else:
                self.commit()


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(key in record and record[key] == value for key, value in filters.items())


_ABSENT = object()


class InMemoryStorage(StorageInterface):
    """
    In-memory storage; transactions keep an undo log

    Each open transaction remembers the prior value of every record it
    changes, so the cost of a transaction follows what it writes rather
    than the size of the store.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._undo: List[Dict[Tuple[str, str], Any]] = []
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._remember(table, record_id)
            # Round-trip through JSON so stored records match what SQLite returns
            self._data.setdefault(table, {})[record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._data.get(table, {}).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._data.get(table, {}).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._remember(table, record_id)
            return self._data.get(table, {}).pop(record_id, None) is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._data.get(table, {}).values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._data.get(table, {}))

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def _remember(self, table: str, record_id: str) -> None:
        """Record the value a key had before the innermost transaction touched it"""
        if self._undo and (table, record_id) not in self._undo[-1]:
            # Stored records are replaced, never mutated, so a reference suffices
            self._undo[-1][(table, record_id)] = self._data.get(table, {}).get(record_id, _ABSENT)

    def begin_transaction(self) -> None:
        with self._lock:
            self._undo.append({})

    def commit(self) -> None:
        with self._lock:
            if not self._undo:
                return
            changes = self._undo.pop()
            if self._undo:
                # The enclosing transaction keeps its own, older prior values
                for key, previous in changes.items():
                    self._undo[-1].setdefault(key, previous)

    def rollback(self) -> None:
        with self._lock:
            if not self._undo:
                return
            for (table, record_id), previous in self._undo.pop().items():
                if previous is _ABSENT:
                    self._data.get(table, {}).pop(record_id, None)
                else:
                    self._data.setdefault(table, {})[record_id] = previous

    @property
    def in_transaction(self) -> bool:
        return bool(self._undo)


class SQLiteStorage(StorageInterface):
    """SQLite storage; nested transactions map onto savepoints"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Autocommit mode; transactions are issued explicitly as savepoints
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            rows = self._connection.execute(
                f"SELECT data FROM {table} ORDER BY created_at, id"
            ).fetchall()
            return [json.loads(row['data']) for row in rows]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()['n']

    def begin_transaction(self) -> None:
        with self._lock:
            self._depth += 1
            self._connection.execute(f"SAVEPOINT sp_{self._depth}")

    def commit(self) -> None:
        with self._lock:
            if self._depth:
                self._connection.execute(f"RELEASE SAVEPOINT sp_{self._depth}")
                self._depth -= 1

    def rollback(self) -> None:
        with self._lock:
            if self._depth:
                self._connection.execute(f"ROLLBACK TO SAVEPOINT sp_{self._depth}")
                self._connection.execute(f"RELEASE SAVEPOINT sp_{self._depth}")
                self._depth -= 1
                # Tables created inside the savepoint are gone too
                self._tables.clear()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL.

    Supported: "memory://" and "sqlite:///path/to/file.db" ("sqlite://" alone
    is an in-memory SQLite database).
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
