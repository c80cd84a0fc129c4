# src/checklist_sync/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# First matching prefix wins; unmatched loggers reach the console only at ERROR+.
_CONSOLE_FLOORS: tuple[tuple[str, int], ...] = (
    ("checklist_sync.api.", logging.WARNING),
    ("checklist_sync.", logging.NOTSET),
)


class _ConsoleNoiseFilter(logging.Filter):
    """Keep the prompt readable: our own logs pass, the HTTP layer and libraries stay quiet."""

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, floor in _CONSOLE_FLOORS:
            if record.name.startswith(prefix):
                return record.levelno >= floor
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/checklist",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Filtered stderr for the console, everything at file_level to <log_dir>/checklist.log.

    Call once, before the first log line. Returns the log file path.
    """
    log_file = Path(log_dir) / "checklist.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.addFilter(_ConsoleNoiseFilter())

    file = logging.FileHandler(log_file, encoding="utf-8")
    file.setLevel(file_level)

    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[console, file],
        force=True,
    )

    # httpx logs every request at INFO.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_file
