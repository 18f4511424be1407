import unittest
from pathlib import Path
from unittest.mock import patch

from chesslog import config


class ConfigTests(unittest.TestCase):
    def test_overrides_reach_nested_groups(self) -> None:
        with patch("chesslog.config.load_dotenv") as load_dotenv, patch.object(
            config.Settings, "ensure_dirs"
        ):
            settings = config.get_settings(
                username="hikaru",
                max_retries=0,
                bullet_max_s=120,
                duckdb_path="/tmp/chesslog-test/db.duckdb",
            )

        load_dotenv.assert_called_once()
        self.assertEqual(settings.username, "hikaru")
        self.assertEqual(settings.api.max_retries, 0)
        self.assertEqual(settings.thresholds.bullet_max_s, 120)
        self.assertEqual(settings.duckdb_path, Path("/tmp/chesslog-test/db.duckdb"))

    def test_unknown_override_is_rejected(self) -> None:
        with self.assertRaises(TypeError):
            config.get_settings(stockfish_depth=12)

    def test_groups_are_not_shared_between_instances(self) -> None:
        first = config.Settings()
        second = config.Settings()
        first.api.max_retries = 9
        self.assertNotEqual(second.api.max_retries, 9)


if __name__ == "__main__":
    unittest.main()
