"""Structured logging for :mod:`symgraph`.

Everything logs through :func:`get_logger`. Console records go to stderr via
Rich so that graph JSON on stdout stays parseable. An optional log directory
receives one JSON object per line.

Run-wide context (the command, the unit being graphed) is bound with
:func:`log_context` and carried into worker threads by :func:`propagate`.
"""

from __future__ import annotations

import contextlib
import contextvars
import gzip
import logging
import shutil
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

import structlog
from rich.console import Console
from rich.logging import RichHandler

Logger = structlog.stdlib.BoundLogger

LOG_FILENAME = "symgraph.log"
_KEEP_ARCHIVES = 7

_T = TypeVar("_T")

_SHARED_PROCESSORS: tuple[Any, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
)


def _level_number(level: str) -> int:
    name = level.strip().upper()
    try:
        return logging.getLevelNamesMapping()[name]
    except KeyError:
        raise ValueError(f"Unsupported log level: {level!r}") from None


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=list(_SHARED_PROCESSORS),
    )


class JSONLogFileHandler(TimedRotatingFileHandler):
    """Daily-rotated JSON-lines file whose archives are gzip-compressed."""

    def __init__(self, path: Path, level: int) -> None:
        super().__init__(
            path,
            when="midnight",
            backupCount=_KEEP_ARCHIVES,
            utc=True,
            encoding="utf-8",
            delay=True,
        )
        self.suffix = "%Y-%m-%d"
        self.namer = self._archive_name
        self.rotator = self._compress
        self.setLevel(level)
        self.setFormatter(
            _formatter(structlog.processors.JSONRenderer(sort_keys=True))
        )

    @staticmethod
    def _archive_name(default_name: str) -> str:
        return f"{default_name}.gz"

    @staticmethod
    def _compress(source: str, dest: str) -> None:
        with open(source, "rb") as raw, gzip.open(dest, "wb") as packed:
            shutil.copyfileobj(raw, packed)
        Path(source).unlink(missing_ok=True)


def _console_handler(level: int, console: Console | None) -> RichHandler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
        log_time_format="%H:%M:%S",
    )
    handler.setLevel(level)
    handler.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer(colors=False))
    )
    return handler


def configure_logging(
    *,
    level: str = "INFO",
    log_dir: str | Path | None = None,
    console: Console | None = None,
) -> None:
    """Route structlog and stdlib logging to the console and ``log_dir``.

    Calling it again replaces the previously installed handlers.

    Args:
        level: Level name applied to the root logger (case-insensitive).
        log_dir: Directory that receives ``symgraph.log``; created on demand.
        console: Rich console to render to instead of stderr.

    Raises:
        ValueError: If ``level`` is not a known level name.
    """

    number = _level_number(level)

    structlog.reset_defaults()
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [_console_handler(number, console)]
    if log_dir is not None:
        directory = Path(log_dir).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        handlers.append(JSONLogFileHandler(directory / LOG_FILENAME, number))

    root = logging.getLogger()
    for stale in list(root.handlers):
        root.removeHandler(stale)
        stale.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(number)
    logging.captureWarnings(True)


def get_logger(name: str | None = None, **initial_context: Any) -> Logger:
    """Return a structured logger bound to an optional context.

    Example:
        >>> logger = get_logger(__name__, component="emitter")
        >>> logger.info("graph-unit-start")  # doctest: +SKIP
    """

    return structlog.get_logger(name).bind(**initial_context)


@contextlib.contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Attach ``values`` to every record logged inside the block."""

    with structlog.contextvars.bound_contextvars(**values):
        yield


def propagate(fn: Callable[..., _T]) -> Callable[..., _T]:
    """Wrap ``fn`` so worker threads log with the caller's bound context."""

    snapshot = contextvars.copy_context()

    def run(*args: Any, **kwargs: Any) -> _T:
        return snapshot.copy().run(fn, *args, **kwargs)

    return run


__all__ = [
    "JSONLogFileHandler",
    "LOG_FILENAME",
    "Logger",
    "configure_logging",
    "get_logger",
    "log_context",
    "propagate",
]
