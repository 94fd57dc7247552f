"""Pipeline log: `odyssey/data/logs.txt`, one `EVENT key=value ...` line per event."""

from __future__ import annotations

import logging
from collections import deque

from odyssey.core.config import settings
from odyssey.core.paths import get_data_path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def trim_log_file(keep_lines: int | None = None) -> int:
    """Keep only the newest `keep_lines` lines of the log (LOG_MAX_LINES).

    The file is trimmed once it grows past 1.5x the limit, so trimming does
    not run on every start.

    Returns:
        Number of lines dropped
    """
    keep = keep_lines or settings.log_max_lines
    log_path = get_data_path("logs.txt")
    if not log_path.exists():
        return 0

    with open(log_path, "r", encoding="utf-8", errors="replace") as f:
        total = 0
        tail: deque[str] = deque(maxlen=keep)
        for line in f:
            total += 1
            tail.append(line)

    if total <= keep + keep // 2:
        return 0

    tmp_path = log_path.with_suffix(".txt.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.writelines(tail)
    tmp_path.replace(log_path)
    return total - len(tail)


def configure_logging() -> logging.Logger:
    """Attach the file handler to the `odyssey` logger (idempotent)."""
    logger = logging.getLogger("odyssey")
    logger.setLevel(settings.log_level.upper())

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        get_data_path().mkdir(parents=True, exist_ok=True)
        try:
            dropped = trim_log_file()
        except OSError as e:
            dropped = 0
            logger.warning(f"LOG_TRIM_FAILED reason={e}")

        handler = logging.FileHandler(get_data_path("logs.txt"), encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
        logger.addHandler(handler)
        if dropped:
            logger.info(f"LOG_TRIMMED dropped={dropped} kept={settings.log_max_lines}")

    return logger


log = configure_logging()
