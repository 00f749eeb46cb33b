"""File logging for the Threads client.

Library code only ever calls ``logging.getLogger("threads_api")`` /
``logging.getLogger("threads_auth")``; nothing is configured on import.
Applications call ``setup_logging()`` once at startup.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

LIBRARY_LOGGERS = {
    "threads_api": "threads_api.log",
    "threads_auth": "threads_auth.log",
}

NOISY_LOGGERS = ["httpx", "httpcore", "aiohttp.access"]


def setup_logging(log_dir: Path | str | None = None, level: int = logging.INFO) -> Path:
    """Configure file logging for API and auth calls.

    - One log file per library logger, no console output
    - Suppresses httpx/httpcore request logging (it would print the
      access token as part of the URL)

    Args:
        log_dir: Directory for the log files (default: ./logs)
        level: Level for the library loggers

    Returns:
        The resolved log directory
    """
    log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    formatter = logging.Formatter(LOG_FORMAT)
    for logger_name, filename in LIBRARY_LOGGERS.items():
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        logger.propagate = False
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler):
                logger.removeHandler(handler)
                handler.close()
        file_handler = logging.FileHandler(log_dir / filename, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return log_dir
