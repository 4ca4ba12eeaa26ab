import errno
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml

from cronos.config_manager import ConfigManager, ConfigValidationError
from cronos.models import AppConfig


class ConfigManagerTests(unittest.TestCase):
    def test_creates_default_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "nested" / "config.yaml"
            manager = ConfigManager(str(config_path))
            self.assertTrue(config_path.exists())
            config = manager.load()
            self.assertEqual(config.board.first_weekday, 6)
            self.assertTrue(config.templates.seed_defaults)

    def test_update_deep_merges(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            manager = ConfigManager(str(Path(temp_dir) / "config.yaml"))
            manager.update({"board": {"timezone": "America/Sao_Paulo"}})
            config = manager.update({"storage": {"write_workers": 2}})
            self.assertEqual(config.board.timezone, "America/Sao_Paulo")
            self.assertEqual(config.board.first_weekday, 6)
            self.assertEqual(manager.load().storage.write_workers, 2)

    def test_non_mapping_file_loads_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text("- just\n- a list\n", encoding="utf-8")
            manager = ConfigManager(str(config_path))
            self.assertEqual(manager.load().storage.write_workers, 4)

    def test_update_rejects_malformed_payload(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            manager = ConfigManager(str(config_path))
            before = config_path.read_text(encoding="utf-8")
            for payload in (["board"], {"bogus": {}}, {"board": "oops"}):
                with self.assertRaises(ConfigValidationError):
                    manager.update(payload)
            self.assertEqual(config_path.read_text(encoding="utf-8"), before)

    def test_stray_keys_and_scalar_sections_load_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text("board: oops\nlegacy: true\nstorage:\n  write_workers: 2\n", encoding="utf-8")
            config = ConfigManager(str(config_path)).load()
            self.assertEqual(config.board.first_weekday, 6)
            self.assertEqual(config.storage.write_workers, 2)

    def test_save_fallback_when_replace_ebusy(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            manager = ConfigManager(str(config_path))
            config = AppConfig.from_dict(
                {
                    "board": {"first_weekday": 0, "timezone": "Europe/Lisbon"},
                    "templates": {"seed_defaults": False},
                }
            )

            original_replace = Path.replace

            def replace_side_effect(self: Path, target: Path) -> Path:
                if str(self).endswith(".tmp"):
                    raise OSError(errno.EBUSY, "Device or resource busy")
                return original_replace(self, target)

            with mock.patch("pathlib.Path.replace", new=replace_side_effect):
                manager.save(config)

            self.assertTrue(config_path.exists())
            self.assertFalse(Path(str(config_path) + ".tmp").exists())
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
            self.assertEqual(data["board"]["timezone"], "Europe/Lisbon")
            self.assertFalse(data["templates"]["seed_defaults"])


if __name__ == "__main__":
    unittest.main()
