from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
ACCESS_LOGGER = "anic_site.access"


def setup_logging(level: str, logs_dir: str | None) -> Path | None:
    """Configure the root logger for the server process.

    Always logs to stderr. When ``logs_dir`` is set, a per-run file
    ``run-YYYYmmdd-HHMMSS.log`` is added there and its path returned.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if not logs_dir:
        return None

    target_dir = Path(logs_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    return log_file


def access_logger() -> logging.Logger:
    return logging.getLogger(ACCESS_LOGGER)
