from __future__ import annotations

import os
import tempfile
import time
import unittest
from pathlib import Path
from unittest import mock

from ark.config import parse_config
from ark.retention import list_archives, prune


DAY = 86400


class RetentionTestCase(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name) / "backups"
        self.dir.mkdir()
        self.now = time.time()

    def add(self, name: str, age_days: float, size: int = 10) -> Path:
        p = self.dir / name
        p.write_bytes(b"x" * size)
        when = self.now - age_days * DAY
        os.utime(p, (when, when))
        return p

    def config(self, **retention):
        return parse_config({"baseDir": str(self.dir.parent), "backupDir": str(self.dir), "retention": retention})


class ListArchivesTests(RetentionTestCase):
    def test_missing_dir(self):
        self.assertEqual(list_archives(str(self.dir / "absent")), [])

    def test_backup_dir_is_a_file(self):
        not_a_dir = self.dir / "plain.ocbak"
        not_a_dir.write_bytes(b"x")
        self.assertEqual(list_archives(str(not_a_dir)), [])
        self.assertEqual(prune(parse_config({"backupDir": str(not_a_dir)})), [])

    def test_newest_first_and_suffix_filter(self):
        self.add("openclaw-backup-a.ocbak", 3)
        self.add("openclaw-backup-b.ocbak", 1, size=42)
        self.add("openclaw-backup-c.ocbak", 2)
        self.add("notes.txt", 0)
        (self.dir / "sub.ocbak").mkdir()

        archives = list_archives(str(self.dir))
        self.assertEqual(
            [a.filename for a in archives],
            ["openclaw-backup-b.ocbak", "openclaw-backup-c.ocbak", "openclaw-backup-a.ocbak"],
        )
        self.assertEqual(archives[0].size_bytes, 42)
        self.assertEqual(archives[0].path, str(self.dir / "openclaw-backup-b.ocbak"))
        self.assertAlmostEqual(archives[0].mtime, self.now - DAY, delta=1)


class PruneTests(RetentionTestCase):
    def test_prune_by_count(self):
        self.add("one.ocbak", 3)
        self.add("two.ocbak", 2)
        self.add("three.ocbak", 1)
        lines = []
        pruned = prune(self.config(maxBackups=1), now=self.now, log=lines.append)
        self.assertEqual(pruned, ["two.ocbak", "one.ocbak"])
        self.assertEqual(sorted(p.name for p in self.dir.iterdir()), ["three.ocbak"])
        self.assertTrue(all("Pruned (count)" in line for line in lines))

    def test_prune_by_age_then_count(self):
        self.add("ancient.ocbak", 45)
        self.add("old.ocbak", 31)
        self.add("recent.ocbak", 5)
        self.add("fresh.ocbak", 0.1)
        lines = []
        pruned = prune(self.config(maxBackups=5, maxAgeDays=30), now=self.now, log=lines.append)
        self.assertEqual(sorted(pruned), ["ancient.ocbak", "old.ocbak"])
        self.assertEqual(sorted(p.name for p in self.dir.iterdir()), ["fresh.ocbak", "recent.ocbak"])
        self.assertIn("[backup] Pruned (age): old.ocbak", lines)

    def test_nothing_to_prune(self):
        self.add("fresh.ocbak", 0)
        self.assertEqual(prune(self.config(), now=self.now), [])
        self.assertEqual(prune(parse_config({"backupDir": str(self.dir / "absent")})), [])

    def test_file_vanishing_during_prune_is_tolerated(self):
        self.add("old.ocbak", 40)
        real_unlink = os.unlink

        def racing_unlink(path):
            real_unlink(path)
            raise FileNotFoundError(path)

        with mock.patch("ark.retention.os.unlink", side_effect=racing_unlink):
            pruned = prune(self.config(), now=self.now)
        self.assertEqual(pruned, ["old.ocbak"])

    def test_unlink_failure_does_not_stop_prune(self):
        self.add("a.ocbak", 40)
        self.add("b.ocbak", 41)
        real_unlink = os.unlink

        def flaky_unlink(path):
            if str(path).endswith("a.ocbak"):
                raise PermissionError(path)
            real_unlink(path)

        with mock.patch("ark.retention.os.unlink", side_effect=flaky_unlink):
            pruned = prune(self.config(), now=self.now)
        self.assertEqual(pruned, ["b.ocbak"])
        self.assertEqual([p.name for p in self.dir.iterdir()], ["a.ocbak"])


if __name__ == "__main__":
    unittest.main()
