"""Logging configuration for linkdex."""

import datetime
import itertools
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

MAX_LOG_FILE_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
NOISY_LIBRARIES = ("urllib3", "requests", "charset_normalizer")
_ARCHIVED_THIS_RUN: set[Path] = set()


def _archive_previous_log(log_path: Path) -> Optional[Path]:
    """Move the last run's log aside, named after its modification time.

    Only the first call per path in a process archives; later calls keep
    appending to the current file.
    """
    key = log_path.resolve()
    if key in _ARCHIVED_THIS_RUN:
        return None
    _ARCHIVED_THIS_RUN.add(key)
    if not log_path.exists():
        return None

    stamp = datetime.datetime.fromtimestamp(log_path.stat().st_mtime)
    prefix = stamp.strftime("%Y-%m-%d_%H-%M-%S")
    for attempt in itertools.count():
        infix = f"{prefix}_{attempt}" if attempt else prefix
        target = log_path.with_name(f"{infix}_{log_path.name}")
        if not target.exists():
            return log_path.rename(target)


def setup_logging(
    level_name: str = "INFO", log_file: Optional[Union[str, Path]] = None
) -> Optional[Path]:
    """Send root logging to a rotating ``log_file``; returns the path in use.

    Without ``log_file`` logging is left untouched.
    """
    if not log_file:
        return None
    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _archive_previous_log(log_path)

    handler = RotatingFileHandler(
        log_path,
        maxBytes=MAX_LOG_FILE_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    for previous in list(root.handlers):
        root.removeHandler(previous)
        previous.close()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path
