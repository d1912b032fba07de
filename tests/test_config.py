import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from heal_deploy.config import AppConfig, load_config

_ENV_KEYS = (
    "HEAL_DEPLOY_LLM_API_KEY",
    "HEAL_DEPLOY_GEMINI_API_KEY",
    "HEAL_DEPLOY_OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "HEAL_DEPLOY_MAX_ATTEMPTS",
    "HEAL_DEPLOY_SITES_ROOT",
    "HEAL_DEPLOY_LLM_PROXY",
)


class ConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {})
        patcher.start()
        self.addCleanup(patcher.stop)
        for key in _ENV_KEYS:
            os.environ.pop(key, None)
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def _write(self, payload: dict) -> str:
        path = Path(self._tmp.name) / "config.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    def test_loads_default_config(self) -> None:
        config = load_config()
        self.assertIsInstance(config, AppConfig)
        self.assertEqual(config.repair.max_attempts, 3)
        self.assertEqual(config.llm.provider, "gemini")
        self.assertEqual(config.hosting.provider, "local")

    def test_loads_custom_config(self) -> None:
        path = self._write({
            "llm": {"provider": "openai", "_comment": "ignored"},
            "repair": {"max_attempts": 5},
            "hosting": {"sites_root": "/tmp/sites"},
            "log_dir": "/tmp/logs",
        })
        config = load_config(path)
        self.assertEqual(config.llm.provider, "openai")
        self.assertEqual(config.llm.model, "gpt-4o")
        self.assertEqual(config.llm.endpoint, "https://api.openai.com/v1")
        self.assertEqual(config.repair.max_attempts, 5)
        self.assertEqual(config.repair.request_timeout, 120)
        self.assertEqual(config.hosting.sites_root, "/tmp/sites")
        self.assertEqual(config.log_dir, "/tmp/logs")

    def test_missing_explicit_path(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config(str(Path(self._tmp.name) / "absent.json"))

    def test_env_var_populates_api_key(self) -> None:
        path = self._write({"llm": {"provider": "openai", "api_key": None}})
        os.environ["HEAL_DEPLOY_LLM_API_KEY"] = "secret-key"
        self.assertEqual(load_config(path).llm.api_key, "secret-key")

    def test_provider_specific_env_wins(self) -> None:
        path = self._write({"llm": {"provider": "gemini"}})
        os.environ["HEAL_DEPLOY_LLM_API_KEY"] = "generic"
        os.environ["HEAL_DEPLOY_GEMINI_API_KEY"] = "gemini-key"
        self.assertEqual(load_config(path).llm.api_key, "gemini-key")

    def test_gemini_api_key_fallback(self) -> None:
        path = self._write({"llm": {"provider": "gemini"}})
        os.environ["GEMINI_API_KEY"] = "from-google"
        self.assertEqual(load_config(path).llm.api_key, "from-google")

    def test_file_key_is_not_overridden(self) -> None:
        path = self._write({"llm": {"provider": "openai", "api_key": "in-file"}})
        os.environ["HEAL_DEPLOY_LLM_API_KEY"] = "from-env"
        self.assertEqual(load_config(path).llm.api_key, "in-file")

    def test_env_overrides_attempts_and_sites(self) -> None:
        path = self._write({})
        os.environ["HEAL_DEPLOY_MAX_ATTEMPTS"] = "7"
        os.environ["HEAL_DEPLOY_SITES_ROOT"] = "/srv/sites"
        config = load_config(path)
        self.assertEqual(config.repair.max_attempts, 7)
        self.assertEqual(config.hosting.sites_root, "/srv/sites")

    def test_invalid_attempts(self) -> None:
        path = self._write({"repair": {"max_attempts": 0}})
        with self.assertRaises(ValueError):
            load_config(path)


if __name__ == "__main__":
    unittest.main()
