import tempfile
import unittest
from pathlib import Path

from agent.repo_context import gather_repo_context, needs_repo_context


class TestRepoContext(unittest.TestCase):
    def test_needs_repo_context(self):
        self.assertTrue(needs_repo_context("Summarize this project"))
        self.assertTrue(needs_repo_context("what does main.py do?"))
        self.assertTrue(needs_repo_context("Tell me ABOUT THIS repo"))
        self.assertFalse(needs_repo_context("create hello.py"))

    def test_gather_lists_entries_and_previews_key_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "src").mkdir()
            (root / "README.md").write_text("# Demo\n" + "x" * 3000, encoding="utf-8")
            (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")

            context = gather_repo_context(root)

            self.assertTrue(context.startswith("FILES:\n📄 README.md\n📄 pyproject.toml\n📁 src\n"))
            self.assertIn("\n--- README.md ---\n# Demo\n", context)
            self.assertIn("\n--- pyproject.toml ---\n[project]\nname = 'demo'\n", context)
            self.assertNotIn("x" * 1500, context)
            self.assertNotIn("--- Cargo.toml ---", context)

    def test_missing_root_yields_empty_listing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertEqual(gather_repo_context(Path(tmpdir) / "absent"), "FILES:\n")
