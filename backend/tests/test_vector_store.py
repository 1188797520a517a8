"""
Tests for embedding records and both record stores.

RecordStoreContract runs the same checks against the in-memory and SQLite
stores.
"""

import struct
import tempfile
import unittest
from pathlib import Path

from rag.exceptions import PersistenceError
from rag.vector_store import (
    EmbeddingRecord,
    InMemoryRecordStore,
    SQLiteRecordStore,
    create_record_store,
    vector_from_bytes,
    vector_to_bytes,
)

from fakes import make_record, unit_vector


class TestEmbeddingRecord(unittest.TestCase):

    def test_vector_is_immutable_tuple(self):
        record = make_record("chunk", [1.0, 2.0])
        self.assertEqual(record.vector, (1.0, 2.0))
        self.assertEqual(record.dimensions, 2)
        with self.assertRaises(AttributeError):
            record.vector = (3.0,)

    def test_rejects_empty_text(self):
        with self.assertRaises(ValueError):
            make_record("", [1.0])

    def test_rejects_unknown_source_type(self):
        with self.assertRaises(ValueError):
            make_record("chunk", [1.0], source_type="calendar")

    def test_rejects_negative_chunk_index(self):
        with self.assertRaises(ValueError):
            make_record("chunk", [1.0], chunk_index=-1)

    def test_ids_are_unique(self):
        self.assertNotEqual(make_record("a", [1.0]).id, make_record("a", [1.0]).id)


class TestVectorEncoding(unittest.TestCase):

    def test_little_endian_float64(self):
        data = vector_to_bytes([1.5, -2.25])
        self.assertEqual(data, struct.pack("<2d", 1.5, -2.25))
        self.assertEqual(vector_from_bytes(data), (1.5, -2.25))

    def test_trailing_partial_value_ignored(self):
        data = struct.pack("<2d", 0.5, 0.25) + b"\x01\x02\x03"
        self.assertEqual(vector_from_bytes(data), (0.5, 0.25))

    def test_empty_blob(self):
        self.assertEqual(vector_from_bytes(b""), ())
        self.assertEqual(vector_from_bytes(b"\x00\x01"), ())


class RecordStoreContract:
    """Mixin with checks every RecordStore must pass."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_insert_and_fetch_in_order(self):
        records = [make_record(f"chunk {i}", unit_vector(i), chunk_index=i) for i in range(3)]
        ids = self.store.insert(records)

        self.assertEqual(ids, [r.id for r in records])
        self.assertEqual([r.chunk_text for r in self.store.all_records()], ["chunk 0", "chunk 1", "chunk 2"])

    def test_round_trip_preserves_fields(self):
        record = make_record("budget notes", [0.1, -0.2, 0.3], source_type="note", parent_id="n1", chunk_index=2)
        self.store.insert([record])

        loaded = self.store.get(record.id)
        self.assertEqual(loaded.chunk_text, "budget notes")
        self.assertEqual(loaded.vector, (0.1, -0.2, 0.3))
        self.assertEqual(loaded.source_type, "note")
        self.assertEqual(loaded.parent_id, "n1")
        self.assertEqual(loaded.chunk_index, 2)
        self.assertEqual(loaded.created_at, record.created_at)

    def test_get_missing(self):
        self.assertIsNone(self.store.get("missing"))

    def test_fetch_filters(self):
        self.store.insert([
            make_record("m1", [1.0], source_type="meeting", parent_id="m"),
            make_record("n1", [1.0], source_type="note", parent_id="n"),
            make_record("n2", [1.0], source_type="note", parent_id="n"),
        ])

        self.assertEqual([r.chunk_text for r in self.store.fetch(source_type="note")], ["n1", "n2"])
        self.assertEqual([r.chunk_text for r in self.store.fetch(parent_id="m")], ["m1"])
        self.assertEqual(self.store.fetch(source_type="meeting", parent_id="n"), [])
        self.assertEqual(self.store.count(source_type="note"), 2)
        self.assertEqual(self.store.count(), 3)

    def test_delete_by_id(self):
        a, b = make_record("a", [1.0]), make_record("b", [1.0])
        self.store.insert([a, b])

        self.assertEqual(self.store.delete([a.id, "missing"]), 1)
        self.assertEqual([r.id for r in self.store.all_records()], [b.id])
        self.assertEqual(self.store.delete([]), 0)

    def test_delete_by_parent(self):
        self.store.insert([
            make_record("a", [1.0], parent_id="p1"),
            make_record("b", [1.0], parent_id="p2"),
            make_record("c", [1.0], parent_id="p1"),
        ])

        self.assertEqual(self.store.delete_by_parent("p1"), 2)
        self.assertEqual([r.chunk_text for r in self.store.all_records()], ["b"])

    def test_replace_parent(self):
        self.store.insert([
            make_record("old 1", [1.0], parent_id="p1"),
            make_record("other", [1.0], parent_id="p2"),
            make_record("old 2", [1.0], parent_id="p1"),
        ])
        new = [make_record("new", [2.0], parent_id="p1")]

        self.store.replace_parent("p1", new)

        self.assertEqual([r.chunk_text for r in self.store.fetch(parent_id="p1")], ["new"])
        self.assertEqual([r.chunk_text for r in self.store.fetch(parent_id="p2")], ["other"])

    def test_replace_parent_with_nothing(self):
        self.store.insert([make_record("old", [1.0], parent_id="p1")])
        self.assertEqual(self.store.replace_parent("p1", []), [])
        self.assertEqual(self.store.count(parent_id="p1"), 0)

    def test_duplicate_id_rejected(self):
        record = make_record("a", [1.0])
        self.store.insert([record])
        with self.assertRaises(PersistenceError):
            self.store.insert([record])
        self.assertEqual(self.store.count(), 1)

    def test_stats(self):
        self.store.insert([
            make_record("a", [1.0, 0.0], source_type="meeting", parent_id="m"),
            make_record("b", [1.0, 0.0, 0.0], source_type="note", parent_id="n"),
            make_record("c", [1.0, 0.0, 0.0], source_type="note", parent_id="n"),
        ])

        stats = self.store.stats()
        self.assertEqual(stats["total_records"], 3)
        self.assertEqual(stats["by_source_type"], {"meeting": 1, "note": 2})
        self.assertEqual(stats["by_dimensions"], {2: 1, 3: 2})
        self.assertEqual(stats["parents"], 2)

    def test_clear(self):
        self.store.insert([make_record("a", [1.0])])
        self.store.clear()
        self.assertEqual(self.store.all_records(), [])


class TestInMemoryRecordStore(RecordStoreContract, unittest.TestCase):

    def make_store(self):
        return InMemoryRecordStore()


class TestSQLiteRecordStore(RecordStoreContract, unittest.TestCase):

    def make_store(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.db_path = Path(self._tmp.name) / "nested" / "rag.db"
        return SQLiteRecordStore(self.db_path)

    def test_records_survive_reopen(self):
        record = make_record("persisted", unit_vector(3))
        self.store.insert([record])

        reopened = SQLiteRecordStore(self.db_path)
        self.assertEqual(reopened.get(record.id).vector, tuple(unit_vector(3)))

    def test_unopenable_path_raises_persistence_error(self):
        # A directory can't be opened as a database file
        with self.assertRaises(PersistenceError):
            SQLiteRecordStore(Path(self._tmp.name))


class TestCreateRecordStore(unittest.TestCase):

    def test_memory(self):
        self.assertIsInstance(create_record_store("memory"), InMemoryRecordStore)
        self.assertIsInstance(create_record_store(":memory:"), InMemoryRecordStore)

    def test_sqlite(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = create_record_store(Path(tmp) / "rag.db")
            self.assertIsInstance(store, SQLiteRecordStore)


if __name__ == "__main__":
    unittest.main()
