# ibja_rates/config/logging_config.py

"""Per-run timestamped logging configuration for ibja_rates.

Each launch of the API server or CLI creates a dedicated log file inside
``logs/`` named after the launch time (``logs/run_20260214_153045.log``).
Every ``ibja_rates.*`` logger writes to that file.  The ``uvicorn``
loggers do too once the server runs with ``log_config=None``, so request
lines and scrape failures land in one place.  The console only shows
records at ``IBJA_LOG_LEVEL`` (default WARNING) and above.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from ibja_rates.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers routed into the run file besides the project's own
_SERVER_LOGGERS = ("uvicorn",)


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def _existing_log_file(logger: logging.Logger) -> Path | None:
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def setup_logging(console_level: str | None = None) -> Path:
    """Initialise the ``ibja_rates`` and uvicorn loggers for this run.

    Args:
        console_level: Level name for the stderr handler.  Defaults to
            ``Settings.LOG_LEVEL``.

    Returns:
        The :class:`~pathlib.Path` to the run's log file.  Repeated calls
        (tests, uvicorn reload) keep the first handlers and return the
        file they already write to.

    Raises:
        ValueError: if the console level is not a logging level name.
    """
    level = _resolve_level(console_level or Settings.LOG_LEVEL)

    root_logger = logging.getLogger("ibja_rates")
    root_logger.setLevel(logging.DEBUG)

    existing = _existing_log_file(root_logger)
    if existing is not None:
        return existing

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.setLevel(logging.INFO)
        server_logger.propagate = False
        server_logger.addHandler(file_handler)
        server_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, log file: %s", log_file)

    return log_file
