from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from ark.categories import (
    CATEGORIES,
    PathKind,
    discover_workspaces,
    get_category,
    resolve_roots,
    workspace_roots,
)
from ark.collector import collect, collect_category


class RegistryTests(unittest.TestCase):
    def test_ten_unique_categories(self):
        ids = [c.id for c in CATEGORIES]
        self.assertEqual(len(ids), 10)
        self.assertEqual(len(set(ids)), 10)
        for c in CATEGORIES:
            self.assertTrue(c.label)
            self.assertNotIn("/", c.id)
            self.assertNotIn(".", c.id)

    def test_sensitive_categories(self):
        sensitive = sorted(c.id for c in CATEGORIES if c.sensitive)
        self.assertEqual(sensitive, ["config", "credentials", "wallet"])

    def test_config_is_file_valued(self):
        file_valued = [c.id for c in CATEGORIES if c.kind is PathKind.FILE]
        self.assertEqual(file_valued, ["config"])

    def test_resolve_roots(self):
        base = os.path.abspath("/opt/oc")
        self.assertEqual(resolve_roots("config", base, []), [os.path.join(base, "openclaw.json")])
        self.assertEqual(resolve_roots("wallet", base, []), [os.path.join(base, "doge")])
        ws = [os.path.abspath("/w/main"), os.path.abspath("/opt/oc/workspace-b")]
        self.assertEqual(resolve_roots("workspace", base, ws), ws)
        with self.assertRaises(KeyError):
            resolve_roots("nope", base, [])

    def test_get_category(self):
        self.assertEqual(get_category("brain").label, "Brain Data")
        self.assertIsNone(get_category("manifest.json"))


class WorkspaceDiscoveryTests(unittest.TestCase):
    def test_discovery_uses_injected_lister(self):
        base = os.path.abspath("/srv/oc")
        snapshot = [
            ("workspace", True),
            ("workspace-zeta", True),
            ("workspace-alpha", True),
            ("workspace-", True),
            ("workspace-file.txt", False),
            ("brain", True),
        ]
        calls = []

        def lister(path):
            calls.append(path)
            return snapshot

        found = discover_workspaces(base, lister)
        self.assertEqual(calls, [base])
        self.assertEqual(
            found,
            [os.path.join(base, "workspace-alpha"), os.path.join(base, "workspace-zeta")],
        )

    def test_primary_comes_first_and_is_not_duplicated(self):
        base = os.path.abspath("/srv/oc")
        primary = os.path.join(base, "workspace-alpha")
        roots = workspace_roots(primary, base, lambda _p: [("workspace-alpha", True), ("workspace-b", True)])
        self.assertEqual(roots, [primary, os.path.join(base, "workspace-b")])

    def test_missing_base_dir(self):
        self.assertEqual(discover_workspaces("/nonexistent-dir-12345"), [])


class CollectTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_walk_skips_transient_dirs(self):
        def scenario(tmp: Path):
            ws = tmp / "ws"
            (ws / "memory").mkdir(parents=True)
            (ws / "AGENTS.md").write_text("# Agents")
            (ws / "memory" / "log.md").write_text("# Log")
            for junk in ("node_modules", ".git", ".cache"):
                (ws / junk).mkdir()
                (ws / junk / "x").write_text("junk")
            (ws / "memory" / "node_modules").mkdir()
            (ws / "memory" / "node_modules" / "deep.js").write_text("junk")

            res = collect([str(ws)], "workspace")
            self.assertEqual(
                res.files,
                [
                    ("workspace/AGENTS.md", str(ws / "AGENTS.md")),
                    ("workspace/memory/log.md", str(ws / "memory" / "log.md")),
                ],
            )
            self.assertEqual(res.skipped, 0)

        self.run_with_tmpdir(scenario)

    def test_single_file_root(self):
        def scenario(tmp: Path):
            cfg = tmp / "openclaw.json"
            cfg.write_text("{}")
            res = collect([str(cfg)], "config")
            self.assertEqual(res.files, [("config/openclaw.json", str(cfg))])

        self.run_with_tmpdir(scenario)

    def test_missing_root_yields_nothing(self):
        def scenario(tmp: Path):
            res = collect([str(tmp / "absent")], "brain")
            self.assertEqual(res.files, [])
            self.assertEqual(res.skipped, 0)

        self.run_with_tmpdir(scenario)

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not available")
    def test_symlinks_not_collected(self):
        def scenario(tmp: Path):
            root = tmp / "brain"
            root.mkdir()
            (root / "real.json").write_text("{}")
            try:
                os.symlink(str(root / "real.json"), str(root / "link.json"))
            except OSError:
                self.skipTest("cannot create symlinks")
            res = collect([str(root)], "brain")
            self.assertEqual([n for n, _ in res.files], ["brain/real.json"])

        self.run_with_tmpdir(scenario)

    def test_sibling_roots_nest_under_basename(self):
        def scenario(tmp: Path):
            base = tmp / "oc"
            primary = base / "workspace"
            sibling = base / "workspace-helper"
            primary.mkdir(parents=True)
            sibling.mkdir()
            (primary / "a.md").write_text("a")
            (sibling / "b.md").write_text("b")
            roots = workspace_roots(str(primary), str(base))
            res = collect_category(get_category("workspace"), str(base), roots)
            self.assertEqual(
                [n for n, _ in res.files],
                ["workspace/a.md", "workspace/workspace-helper/b.md"],
            )
            self.assertEqual(res.siblings, ["workspace-helper"])

        self.run_with_tmpdir(scenario)

    def test_subdir_named_like_sibling_is_left_out(self):
        def scenario(tmp: Path):
            base = tmp / "oc"
            primary = base / "workspace"
            sibling = base / "workspace-notes"
            (primary / "workspace-notes").mkdir(parents=True)
            sibling.mkdir()
            (primary / "top.md").write_text("top")
            (primary / "workspace-notes" / "a.md").write_text("shadowed")
            (sibling / "a.md").write_text("sibling")
            roots = workspace_roots(str(primary), str(base))
            res = collect_category(get_category("workspace"), str(base), roots)
            self.assertEqual(
                res.files,
                [
                    ("workspace/top.md", str(primary / "top.md")),
                    ("workspace/workspace-notes/a.md", str(sibling / "a.md")),
                ],
            )
            self.assertEqual(res.skipped, 1)
            self.assertEqual(res.siblings, ["workspace-notes"])

        self.run_with_tmpdir(scenario)

    def test_transient_names_only_skip_directories(self):
        def scenario(tmp: Path):
            root = tmp / "brain"
            root.mkdir()
            (root / ".cache").write_text("a plain file")
            (root / "node_modules").mkdir()
            (root / "node_modules" / "x.js").write_text("junk")
            res = collect([str(root)], "brain")
            self.assertEqual([n for n, _ in res.files], ["brain/.cache"])

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
