from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FILE_NAME = "task_tracker.log"


class _PackageOnlyFilter(logging.Filter):
    """Keep console output to this package's logs; other libraries only at WARNING+."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("task_tracker"):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    console_level: int = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler on stderr, filtered to this package
    - File handler with full debug logs when log_dir is given

    Call this ONCE from the host application, or let
    open_session(configure_logging=True) call it with the configured level
    and directory. The library never configures logging on its own.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_PackageOnlyFilter())
    root.addHandler(ch)

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path / LOG_FILE_NAME), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)
