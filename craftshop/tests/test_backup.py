import json
import os
import tempfile
import time
import unittest
from datetime import datetime, timezone
from pathlib import Path

from craftshop.backup import (
    BACKUP_INFO_FILE,
    backup_timestamp,
    create_backup,
    prune_backups,
)
from craftshop.db import InMemoryDocumentStore


class BackupTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)
        self.store = InMemoryDocumentStore()
        self.store.replace_all("inventory", [{"description": "Yarn"}, {"description": "Floss"}])
        self.store.replace_all("ideas", [{"title": "Coasters"}])

    def _make_old_backups(self, count: int) -> list[Path]:
        base = time.time() - 10 * 24 * 3600
        paths = []
        for i in range(count):
            path = self.root / f"auto_backup_old-{i:03d}"
            path.mkdir()
            os.utime(path, (base + i * 60, base + i * 60))
            paths.append(path)
        return paths

    def test_timestamp_is_filesystem_safe(self):
        stamp = backup_timestamp(datetime(2026, 10, 19, 5, 57, 1, 123000, tzinfo=timezone.utc))
        self.assertEqual(stamp, "2026-10-19T05-57-01-123Z")

    def test_writes_collections_and_manifest(self):
        result = create_backup(self.store, self.root)
        self.assertTrue(result.path.name.startswith("auto_backup_"))
        for name in ("inventory", "customers", "sales", "gallery", "ideas"):
            self.assertTrue((result.path / f"{name}.json").is_file(), name)

        inventory = json.loads((result.path / "inventory.json").read_text())
        self.assertEqual(sorted(i["description"] for i in inventory), ["Floss", "Yarn"])

        info = json.loads((result.path / BACKUP_INFO_FILE).read_text())
        self.assertEqual(info["backup_type"], "automatic")
        self.assertEqual(
            info["counts"],
            {"inventory": 2, "customers": 0, "sales": 0, "gallery": 0, "ideas": 1},
        )
        self.assertIn("timestamp", info)

    def test_keeps_thirty_newest(self):
        old = self._make_old_backups(31)
        result = create_backup(self.store, self.root)

        remaining = sorted(p.name for p in self.root.iterdir())
        self.assertEqual(len(remaining), 30)
        self.assertIn(result.path.name, remaining)
        self.assertEqual(sorted(result.removed), sorted(old[:2]))
        self.assertFalse(old[0].exists())
        self.assertFalse(old[1].exists())
        self.assertTrue(old[2].exists())

    def test_prune_ignores_other_entries(self):
        self._make_old_backups(3)
        (self.root / "manual_backup").mkdir()
        (self.root / "notes.txt").write_text("keep me")
        removed = prune_backups(self.root, retention=1)
        self.assertEqual(len(removed), 2)
        self.assertTrue((self.root / "manual_backup").exists())
        self.assertTrue((self.root / "notes.txt").exists())

    def test_prune_missing_root(self):
        self.assertEqual(prune_backups(self.root / "missing"), [])


if __name__ == "__main__":
    unittest.main()
