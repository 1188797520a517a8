"""
Embedding record storage.

Holds chunk text + vector + provenance for every indexed chunk. Two stores
implement the same RecordStore interface:
- InMemoryRecordStore: process-local, lock-protected
- SQLiteRecordStore: metadata rows with vectors as float64 blobs

Both keep insertion order, which is also the tie-break order for search.
"""

import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Literal, Optional, Sequence

import numpy as np

from logging_utils import get_class_logger

from .exceptions import PersistenceError

# Source types
SourceType = Literal["meeting", "note"]
SOURCE_TYPES: list[SourceType] = ["meeting", "note"]

# Vectors are persisted as little-endian float64
VECTOR_DTYPE = np.dtype("<f8")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EmbeddingRecord:
    """One embedded chunk, owned by exactly one meeting or note."""
    chunk_text: str
    vector: tuple[float, ...]
    source_type: SourceType
    chunk_index: int
    parent_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.chunk_text:
            raise ValueError("chunk_text must not be empty")
        if self.source_type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {self.source_type!r}")
        if self.chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")
        # Freeze whatever sequence we were given
        object.__setattr__(self, "vector", tuple(float(x) for x in self.vector))

    @property
    def dimensions(self) -> int:
        return len(self.vector)


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    """Encode a vector as a little-endian float64 blob."""
    return np.asarray(vector, dtype=VECTOR_DTYPE).tobytes()


def vector_from_bytes(data: bytes) -> tuple[float, ...]:
    """Decode a float64 blob. Trailing bytes that don't form a whole value are ignored."""
    usable = len(data) - (len(data) % VECTOR_DTYPE.itemsize)
    if usable <= 0:
        return ()
    return tuple(np.frombuffer(data[:usable], dtype=VECTOR_DTYPE).tolist())


class RecordStore(ABC):
    """
    Capability interface for the embedding record store.

    The indexer is the only writer; search only calls all_records().
    """

    @abstractmethod
    def all_records(self) -> list[EmbeddingRecord]:
        """Every record, in insertion order."""

    def fetch(
        self,
        source_type: Optional[SourceType] = None,
        parent_id: Optional[str] = None,
    ) -> list[EmbeddingRecord]:
        """Records filtered by source type and/or parent, in insertion order."""
        return [
            r for r in self.all_records()
            if (source_type is None or r.source_type == source_type)
            and (parent_id is None or r.parent_id == parent_id)
        ]

    def get(self, record_id: str) -> Optional[EmbeddingRecord]:
        for record in self.all_records():
            if record.id == record_id:
                return record
        return None

    @abstractmethod
    def insert(self, records: Iterable[EmbeddingRecord]) -> list[str]:
        """Insert records, returning their ids."""

    @abstractmethod
    def delete(self, record_ids: Iterable[str]) -> int:
        """Delete records by id, returning how many were removed."""

    @abstractmethod
    def delete_by_parent(self, parent_id: str) -> int:
        """Delete every record owned by a parent."""

    @abstractmethod
    def replace_parent(self, parent_id: str, records: Iterable[EmbeddingRecord]) -> list[str]:
        """Delete a parent's records and insert new ones as one save."""

    @abstractmethod
    def clear(self):
        """Remove every record."""

    def count(
        self,
        source_type: Optional[SourceType] = None,
        parent_id: Optional[str] = None,
    ) -> int:
        return len(self.fetch(source_type=source_type, parent_id=parent_id))

    def stats(self) -> dict:
        """Record counts per source type and per vector dimension."""
        records = self.all_records()
        by_type = Counter(r.source_type for r in records)
        by_dim = Counter(r.dimensions for r in records)
        return {
            "total_records": len(records),
            "by_source_type": {t: by_type.get(t, 0) for t in SOURCE_TYPES},
            "by_dimensions": dict(sorted(by_dim.items())),
            "parents": len({r.parent_id for r in records}),
        }


class InMemoryRecordStore(RecordStore):
    """Process-local store. All mutations hold a single re-entrant lock."""

    def __init__(self):
        self._records: list[EmbeddingRecord] = []
        self._lock = threading.RLock()

    def all_records(self) -> list[EmbeddingRecord]:
        with self._lock:
            return list(self._records)

    def insert(self, records: Iterable[EmbeddingRecord]) -> list[str]:
        records = list(records)
        with self._lock:
            self._check_new_ids({r.id for r in self._records}, records)
            self._records.extend(records)
        return [r.id for r in records]

    def delete(self, record_ids: Iterable[str]) -> int:
        ids = set(record_ids)
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.id not in ids]
            return before - len(self._records)

    def delete_by_parent(self, parent_id: str) -> int:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.parent_id != parent_id]
            return before - len(self._records)

    def replace_parent(self, parent_id: str, records: Iterable[EmbeddingRecord]) -> list[str]:
        records = list(records)
        with self._lock:
            kept = [r for r in self._records if r.parent_id != parent_id]
            self._check_new_ids({r.id for r in kept}, records)
            self._records = kept + records
        return [r.id for r in records]

    @staticmethod
    def _check_new_ids(existing: set[str], records: list[EmbeddingRecord]):
        for record in records:
            if record.id in existing:
                raise PersistenceError(f"Duplicate record id: {record.id}")
            existing.add(record.id)

    def clear(self):
        with self._lock:
            self._records = []


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed store.

    A connection is opened per operation, so instances can be shared across
    threads. replace_parent runs its delete and inserts in one transaction.
    """

    def __init__(self, db_path: str | Path):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = get_class_logger(self.__class__)
        self._init_db()

    def _init_db(self):
        """Initialize the records table."""
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS embedding_records (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    parent_id TEXT NOT NULL,
                    source_type TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    chunk_text TEXT NOT NULL,
                    vector BLOB NOT NULL,
                    dimensions INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_records_parent_id ON embedding_records(parent_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_records_source_type ON embedding_records(source_type)')

    @contextmanager
    def _get_db(self):
        """Get a database connection. sqlite errors surface as PersistenceError."""
        try:
            conn = sqlite3.connect(str(self._db_path))
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open record store at {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=row['id'],
            parent_id=row['parent_id'],
            source_type=row['source_type'],
            chunk_index=row['chunk_index'],
            chunk_text=row['chunk_text'],
            vector=vector_from_bytes(row['vector']),
            created_at=datetime.fromisoformat(row['created_at']),
        )

    @staticmethod
    def _insert_rows(cursor: sqlite3.Cursor, records: list[EmbeddingRecord]):
        cursor.executemany('''
            INSERT INTO embedding_records
            (id, parent_id, source_type, chunk_index, chunk_text, vector, dimensions, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ''', [
            (r.id, r.parent_id, r.source_type, r.chunk_index, r.chunk_text,
             vector_to_bytes(r.vector), r.dimensions, r.created_at.isoformat())
            for r in records
        ])

    def all_records(self) -> list[EmbeddingRecord]:
        with self._get_db() as conn:
            rows = conn.execute('SELECT * FROM embedding_records ORDER BY seq').fetchall()
        return [self._row_to_record(row) for row in rows]

    def fetch(
        self,
        source_type: Optional[SourceType] = None,
        parent_id: Optional[str] = None,
    ) -> list[EmbeddingRecord]:
        query_sql = 'SELECT * FROM embedding_records WHERE 1 = 1'
        params: list = []
        if source_type is not None:
            query_sql += ' AND source_type = ?'
            params.append(source_type)
        if parent_id is not None:
            query_sql += ' AND parent_id = ?'
            params.append(parent_id)
        query_sql += ' ORDER BY seq'

        with self._get_db() as conn:
            rows = conn.execute(query_sql, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get(self, record_id: str) -> Optional[EmbeddingRecord]:
        with self._get_db() as conn:
            row = conn.execute(
                'SELECT * FROM embedding_records WHERE id = ?', (record_id,)
            ).fetchone()
        return self._row_to_record(row) if row else None

    def insert(self, records: Iterable[EmbeddingRecord]) -> list[str]:
        records = list(records)
        if not records:
            return []
        with self._get_db() as conn:
            self._insert_rows(conn.cursor(), records)
        return [r.id for r in records]

    def delete(self, record_ids: Iterable[str]) -> int:
        ids = list(record_ids)
        if not ids:
            return 0
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.executemany('DELETE FROM embedding_records WHERE id = ?', [(i,) for i in ids])
            return cursor.rowcount

    def delete_by_parent(self, parent_id: str) -> int:
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM embedding_records WHERE parent_id = ?', (parent_id,))
            return cursor.rowcount

    def replace_parent(self, parent_id: str, records: Iterable[EmbeddingRecord]) -> list[str]:
        records = list(records)
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM embedding_records WHERE parent_id = ?', (parent_id,))
            removed = cursor.rowcount
            if records:
                self._insert_rows(cursor, records)
        self.logger.debug(
            "Replaced records for parent=%s removed=%d inserted=%d", parent_id, removed, len(records)
        )
        return [r.id for r in records]

    def count(
        self,
        source_type: Optional[SourceType] = None,
        parent_id: Optional[str] = None,
    ) -> int:
        query_sql = 'SELECT COUNT(*) AS count FROM embedding_records WHERE 1 = 1'
        params: list = []
        if source_type is not None:
            query_sql += ' AND source_type = ?'
            params.append(source_type)
        if parent_id is not None:
            query_sql += ' AND parent_id = ?'
            params.append(parent_id)

        with self._get_db() as conn:
            row = conn.execute(query_sql, params).fetchone()
        return row['count'] if row else 0

    def clear(self):
        with self._get_db() as conn:
            conn.execute('DELETE FROM embedding_records')


def create_record_store(db_path: str | Path) -> RecordStore:
    """Build the store named by config: 'memory' or a SQLite file path."""
    if str(db_path).strip().lower() in ("memory", ":memory:"):
        return InMemoryRecordStore()
    return SQLiteRecordStore(db_path)
