"""Tests for :mod:`symgraph.core.logging`."""

from __future__ import annotations

import gzip
import io
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import pytest
from rich.console import Console
from rich.logging import RichHandler

from symgraph.core.logging import (
    LOG_FILENAME,
    configure_logging,
    get_logger,
    log_context,
    propagate,
)


def _clear_root_handlers() -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Ensure each test runs with a clean logging configuration."""

    _clear_root_handlers()
    yield
    _clear_root_handlers()


def _build_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=120), buffer


def _file_handler() -> TimedRotatingFileHandler:
    return next(
        h
        for h in logging.getLogger().handlers
        if isinstance(h, TimedRotatingFileHandler)
    )


def test_configure_logging_writes_json_file(tmp_path: Path) -> None:
    console, _ = _build_console()
    configure_logging(level="debug", log_dir=tmp_path / "logs", console=console)

    root = logging.getLogger()
    assert len([h for h in root.handlers if isinstance(h, RichHandler)]) == 1

    logger = get_logger(__name__, component="emitter")
    logger.info("unit-emitted", file="foo/Bar.java", defs=2)
    for handler in root.handlers:
        handler.flush()

    log_file = tmp_path / "logs" / "symgraph.log"
    payload = json.loads(log_file.read_text(encoding="utf-8").strip())

    assert payload["event"] == "unit-emitted"
    assert payload["component"] == "emitter"
    assert payload["defs"] == 2
    assert payload["level"] == "info"


def test_console_output_goes_to_supplied_console() -> None:
    console, buffer = _build_console()
    configure_logging(level="info", console=console)

    get_logger("symgraph.test").warning("registry-fetch-retry", attempt=1)
    get_logger("symgraph.test").debug("hidden-event")

    output = buffer.getvalue()
    assert "registry-fetch-retry" in output
    assert "hidden-event" not in output
    assert all(
        not isinstance(h, TimedRotatingFileHandler)
        for h in logging.getLogger().handlers
    )


def test_configure_logging_rejects_unknown_level() -> None:
    console, _ = _build_console()

    with pytest.raises(ValueError, match="Unsupported log level"):
        configure_logging(level="chatty", console=console)


def test_rotation_compresses_archives(tmp_path: Path) -> None:
    console, _ = _build_console()
    configure_logging(level="warning", log_dir=tmp_path, console=console)

    get_logger("rotate").warning("pre-rotation", task="rotation")
    handler = _file_handler()
    handler.flush()
    handler.doRollover()

    archives = sorted(tmp_path.glob("symgraph.log.*.gz"))
    assert archives

    with gzip.open(archives[-1], "rt", encoding="utf-8") as fh:
        archived = fh.read()

    assert "pre-rotation" in archived


def test_log_context_reaches_worker_threads(tmp_path: Path) -> None:
    console, _ = _build_console()
    configure_logging(level="info", log_dir=tmp_path, console=console)
    logger = get_logger("symgraph.workers")

    def work(index: int) -> int:
        logger.info("worker-ran", index=index)
        return index

    with log_context(command="graph", unit="com.acme/app"):
        task = propagate(work)
        with ThreadPoolExecutor(max_workers=2) as executor:
            assert sorted(executor.map(task, range(3))) == [0, 1, 2]
    logger.info("after-context")
    _file_handler().flush()

    lines = (tmp_path / LOG_FILENAME).read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    workers = [r for r in records if r["event"] == "worker-ran"]

    assert len(workers) == 3
    assert all(r["unit"] == "com.acme/app" for r in workers)
    assert all(r["command"] == "graph" for r in workers)
    after = next(r for r in records if r["event"] == "after-context")
    assert "unit" not in after
