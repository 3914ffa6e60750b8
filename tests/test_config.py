import json
import os
import tempfile
import unittest
from pathlib import Path

from agent.config import detect_provider, load_config, load_env
from agent.exceptions import ConfigError


class TestConfig(unittest.TestCase):
    def _write(self, tmpdir: str, data: dict) -> str:
        config_path = Path(tmpdir) / "config.json"
        config_path.write_text(json.dumps({"data_dir": str(Path(tmpdir) / "data"), **data}))
        return str(config_path)

    def test_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_config(self._write(tmpdir, {}), env={})

            self.assertEqual(config.provider.provider, "gemini")
            self.assertEqual(config.provider.model, "gemini-3-flash-preview")
            self.assertIsNone(config.provider.gemini_api_key)
            self.assertIsNone(config.provider.groq_api_key)
            self.assertEqual(config.provider.ollama_url, "http://localhost:11434")
            self.assertEqual(config.http.connect_timeout, 5.0)
            self.assertEqual(config.http.read_timeout, 120.0)
            self.assertEqual(config.http.total_timeout, 300.0)
            self.assertEqual(config.http.max_retries, 3)
            self.assertTrue(config.http.health_check_on_start)
            self.assertFalse(config.tools.confine_list_dir)
            self.assertEqual(config.max_iterations, 10)
            self.assertTrue(config.run_log_enabled)
            self.assertEqual(config.log_dir, str(Path(tmpdir) / "data" / "logs"))
            self.assertTrue(os.path.isdir(config.log_dir))

    def test_file_values(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write(tmpdir, {
                "provider": {"provider": "groq", "model": "compound-beta", "groq_api_key": "gsk"},
                "http": {"read_timeout": 30},
                "tools": {"confine_list_dir": True},
                "max_iterations": 4,
            })
            config = load_config(path, env={})
            self.assertEqual(config.provider.provider, "groq")
            self.assertEqual(config.provider.model, "compound-beta")
            self.assertEqual(config.provider.groq_api_key, "gsk")
            self.assertEqual(config.http.read_timeout, 30.0)
            self.assertTrue(config.tools.confine_list_dir)
            self.assertEqual(config.max_iterations, 4)

    def test_environment_overrides_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = self._write(tmpdir, {"provider": {"provider": "gemini", "model": "gemini-2.5-pro"}})
            config = load_config(path, env={
                "PROVIDER": "ollama",
                "MODEL": "llama3.2",
                "OLLAMA_URL": "http://ollama:11434",
                "GEMINI_API_KEY": "key",
            })
            self.assertEqual(config.provider.provider, "ollama")
            self.assertEqual(config.provider.model, "llama3.2")
            self.assertEqual(config.provider.ollama_url, "http://ollama:11434")
            self.assertEqual(config.provider.gemini_api_key, "key")

    def test_invalid_values_raise(self):
        cases = [
            {"provider": {"provider": "openai"}},
            {"http": {"connect_timeout": -1}},
            {"http": {"health_check_on_start": "yes"}},
            {"tools": {"confine_list_dir": 1}},
            {"max_iterations": 0},
        ]
        for data in cases:
            with self.subTest(data=data), tempfile.TemporaryDirectory() as tmpdir:
                with self.assertRaises(ConfigError):
                    load_config(self._write(tmpdir, data), env={})

    def test_malformed_json_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text("{not json")
            with self.assertRaises(ConfigError):
                load_config(str(path), env={})

    def test_missing_explicit_file_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ConfigError):
                load_config(str(Path(tmpdir) / "absent.json"), env={})

    def test_load_env_reads_dotenv_in_cwd(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".env").write_text("CLIO_TEST_ONLY_KEY=from-dotenv\n")
            env = load_env(cwd=tmpdir)
            self.assertEqual(env["CLIO_TEST_ONLY_KEY"], "from-dotenv")
            self.assertNotIn("CLIO_TEST_ONLY_KEY", os.environ)

    def test_detect_provider(self):
        self.assertEqual(detect_provider("gemini-2.5-flash"), "gemini")
        self.assertEqual(detect_provider("compound-beta"), "groq")
        self.assertEqual(detect_provider("meta-llama/llama-4-scout-17b-16e-instruct"), "groq")
        self.assertEqual(detect_provider("llama-3.3-70b-versatile"), "groq")
        self.assertEqual(detect_provider("llama3.2"), "ollama")
        self.assertEqual(detect_provider("qwen2.5-coder"), "ollama")
