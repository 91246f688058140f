# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import unittest
from unittest.mock import patch

from ibja_rates.config.logging_config import setup_logging
from ibja_rates.config.settings import Settings


def _project_logger() -> logging.Logger:
    return logging.getLogger("ibja_rates")


def _console_levels(logger: logging.Logger) -> list[int]:
    return [
        h.level for h in logger.handlers
        if isinstance(h, logging.StreamHandler)
        and not isinstance(h, logging.FileHandler)
    ]


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Start each test with bare ibja_rates and uvicorn loggers."""
        for name in ("ibja_rates", "uvicorn"):
            logger = logging.getLogger(name)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_log_file_created_in_logs_dir(self) -> None:
        """setup_logging returns a run_YYYYMMDD_HHMMSS.log under LOGS_DIR."""
        log_path = setup_logging()
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent, Settings.LOGS_DIR)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_handler_levels(self) -> None:
        """File handler logs DEBUG; the console follows Settings.LOG_LEVEL."""
        with patch.object(Settings, "LOG_LEVEL", "WARNING"):
            setup_logging()
        handlers = _project_logger().handlers
        file_levels = [
            h.level for h in handlers if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(file_levels, [logging.DEBUG])
        self.assertEqual(_console_levels(_project_logger()), [logging.WARNING])
        self.assertEqual(_project_logger().level, logging.DEBUG)

    def test_console_level_override(self) -> None:
        setup_logging("debug")
        self.assertEqual(_console_levels(_project_logger()), [logging.DEBUG])

    def test_unknown_level_rejected(self) -> None:
        with self.assertRaises(ValueError):
            setup_logging("LOUD")
        self.assertEqual(_project_logger().handlers, [])

    def test_repeated_calls_reuse_run_file(self) -> None:
        """A second call adds no handlers and reports the same file."""
        first = setup_logging()
        count_before = len(_project_logger().handlers)
        second = setup_logging()
        self.assertEqual(len(_project_logger().handlers), count_before)
        self.assertEqual(second, first)

    def test_module_loggers_reach_run_file(self) -> None:
        """Child loggers such as ibja_rates.history write to the run file."""
        log_path = setup_logging()
        logging.getLogger("ibja_rates.history").info("retention purge ran")
        for handler in _project_logger().handlers:
            handler.flush()
        self.assertIn(
            "retention purge ran", log_path.read_text(encoding="utf-8"),
        )

    def test_uvicorn_access_lines_reach_run_file(self) -> None:
        log_path = setup_logging()
        logging.getLogger("uvicorn.access").info('"GET /latest HTTP/1.1" 200')
        for handler in logging.getLogger("uvicorn").handlers:
            handler.flush()
        self.assertIn("GET /latest", log_path.read_text(encoding="utf-8"))
        self.assertFalse(logging.getLogger("uvicorn").propagate)


if __name__ == "__main__":
    unittest.main()
