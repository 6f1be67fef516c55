"""
Logging configuration — console output plus per-run text logs.

``setup_logging`` is called once by main.py. Every module logs through
``logger = logging.getLogger(__name__)``.

Console level, in precedence order:
    -v / -q / --debug  >  MACSETUP_LOG_LEVEL  >  WARNING

MACSETUP_LOG_FILE (and MACSETUP_LOG_FILE_LEVEL) add a persistent log
file. Each install run additionally writes ``logs/install-<ts>.log``
through ``run_log``, which records INFO even when the console is quiet.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

DEFAULT_LEVEL = logging.WARNING
RUN_LOG_LEVEL = "INFO"

# Console formats by level: terse for operators, file:line for debugging.
_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}
_CONSOLE_DEFAULT = ("%(message)s", None)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _file_handler(path: Path | str, level: int) -> logging.FileHandler:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _lower_root(level: int) -> None:
    root = logging.getLogger()
    if root.level == logging.NOTSET or root.level > level:
        root.setLevel(level)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the console handler and the optional persistent log file.

    Replaces any handlers already on the root logger, so calling it
    again (as each CLI invocation in tests does) starts clean.
    """
    numeric_level = _parse_level(level)
    fmt, datefmt = next(
        (f for threshold, f in sorted(_CONSOLE_FORMATS.items()) if numeric_level <= threshold),
        _CONSOLE_DEFAULT,
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        root.addHandler(_file_handler(log_file, file_level))
        _lower_root(file_level)


@contextmanager
def run_log(path: Path, level: str = RUN_LOG_LEVEL) -> Iterator[logging.Handler]:
    """Copy log records into ``path`` for the duration of one run.

    The root level is lowered if needed so the file gets ``level``
    records, and restored on exit; the console handler keeps its own
    level, so a quiet console stays quiet.
    """
    numeric_level = _parse_level(level)
    handler = _file_handler(path, numeric_level)

    root = logging.getLogger()
    previous_level = root.level
    root.addHandler(handler)
    _lower_root(numeric_level)
    try:
        yield handler
    finally:
        root.removeHandler(handler)
        root.setLevel(previous_level)
        handler.close()


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown names fall back to WARNING."""
    if not level:
        return DEFAULT_LEVEL
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return DEFAULT_LEVEL
    return numeric
