import threading
import time
import unittest
from unittest.mock import patch

from craftshop.db import DuplicateKeyError, SqlDocumentStore


class SqlDocumentStoreTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store.
    """

    def setUp(self):
        self.db = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        self.assertTrue(self.db.connect())
        self.addCleanup(self.db.close)

    def test_empty_collection(self):
        self.assertEqual(self.db.find_all("inventory"), [])
        self.assertEqual(self.db.count("inventory"), 0)

    def test_replace_all_assigns_ids(self):
        ids = self.db.replace_all(
            "inventory", [{"description": "Green Yarn", "quantity": 5, "price": 12.99}]
        )
        self.assertEqual(len(ids), 1)
        docs = self.db.find_all("inventory")
        self.assertEqual(
            docs,
            [{"_id": ids[0], "description": "Green Yarn", "quantity": 5, "price": 12.99}],
        )

    def test_replace_all_discards_previous_records(self):
        self.db.replace_all("customers", [{"name": "A"}, {"name": "B"}])
        self.db.replace_all("customers", [{"name": "C"}])
        self.assertEqual([d["name"] for d in self.db.find_all("customers")], ["C"])

        self.db.replace_all("customers", [])
        self.assertEqual(self.db.count("customers"), 0)

    def test_collections_are_independent(self):
        self.db.replace_all("sales", [{"_id": "same", "price": 1}])
        self.db.replace_all("ideas", [{"_id": "same", "title": "note"}])
        self.db.replace_all("sales", [])
        self.assertEqual(self.db.find_all("ideas"), [{"_id": "same", "title": "note"}])

    def test_update_one_merges_fields(self):
        self.db.replace_all("inventory", [{"_id": "i1", "description": "Yarn", "quantity": 5}])
        result = self.db.update_one("inventory", "i1", {"quantity": 3, "_id": "other"})
        self.assertEqual((result.matched_count, result.modified_count), (1, 1))
        self.assertEqual(
            self.db.find_all("inventory"),
            [{"_id": "i1", "description": "Yarn", "quantity": 3}],
        )

        unchanged = self.db.update_one("inventory", "i1", {"quantity": 3})
        self.assertEqual((unchanged.matched_count, unchanged.modified_count), (1, 0))

        missing = self.db.update_one("inventory", "nope", {"quantity": 1})
        self.assertEqual(missing.matched_count, 0)

    def test_duplicate_ids_are_rejected(self):
        self.db.insert_many("gallery", [{"_id": "g1"}])
        with self.assertRaises(DuplicateKeyError):
            self.db.insert_many("gallery", [{"_id": "g1"}])
        with self.assertRaises(DuplicateKeyError):
            self.db.replace_all("gallery", [{"_id": "g2"}, {"_id": "g2"}])
        self.assertEqual(self.db.count("gallery"), 1)

    def test_ids_keep_their_type(self):
        self.db.replace_all("inventory", [{"_id": 7, "quantity": 1}, {"_id": "7b"}])
        self.assertEqual(
            self.db.find_all("inventory"), [{"_id": 7, "quantity": 1}, {"_id": "7b"}]
        )
        result = self.db.update_one("inventory", "7", {"quantity": 2})
        self.assertEqual(result.matched_count, 1)
        self.assertEqual(self.db.find_all("inventory")[0], {"_id": 7, "quantity": 2})

        with self.assertRaises(DuplicateKeyError):
            self.db.replace_all("inventory", [{"_id": 7}, {"_id": "7"}])

    def test_unknown_collection(self):
        with self.assertRaises(KeyError):
            self.db.find_all("projects")


class SqlDocumentStoreConnectionTests(unittest.TestCase):
    def test_failed_connection_is_reported(self):
        db = SqlDocumentStore("sqlite:////nonexistent-dir/craftshop/db.sqlite")
        self.assertFalse(db.connect())
        self.assertFalse(db.connected)

    def test_on_connect_runs_once(self):
        calls = []
        db = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        db.on_connect = calls.append
        self.assertTrue(db.connect())
        self.assertTrue(db.connect())
        self.assertEqual(calls, [db])
        db.close()

    def test_concurrent_first_connects_open_once(self):
        calls = []
        db = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        db.on_connect = calls.append
        self.addCleanup(db.close)
        real_open = db._open

        def slow_open():
            time.sleep(0.05)
            real_open()

        results = []
        with patch.object(db, "_open", side_effect=slow_open) as mock_open:
            threads = [
                threading.Thread(target=lambda: results.append(db.connect()))
                for _ in range(5)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(results, [True] * 5)
        self.assertEqual(mock_open.call_count, 1)
        self.assertEqual(calls, [db])

    def test_reopen_disposes_previous_engine(self):
        db = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        self.addCleanup(db.close)
        self.assertTrue(db.connect())
        first = db.engine
        with patch.object(first, "dispose") as dispose:
            db._open()
        dispose.assert_called_once_with()
        self.assertIsNot(db.engine, first)


if __name__ == "__main__":
    unittest.main()
