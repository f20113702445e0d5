"""Shared state and helpers for ``symgraph`` commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer

from symgraph.core.config import AppConfig
from symgraph.core.logging import Logger


@dataclass(slots=True)
class CLIContext:
    """Context object carried from the app callback into each command."""

    config: AppConfig
    logger: Logger


def require_context(ctx: typer.Context) -> CLIContext:
    context = getattr(ctx, "obj", None)
    if not isinstance(context, CLIContext):
        typer.secho(
            "Internal error: CLI context not initialized.",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    return context


def fail(
    context: CLIContext,
    *,
    action: str,
    error: Exception,
    **extra: Any,
) -> None:
    """Report ``error`` and exit with status 1."""

    typer.secho(f"{action} failed: {error}", fg=typer.colors.RED, err=True)
    context.logger.bind(action=action).error(
        "command-failed", error=str(error), **extra
    )
    raise typer.Exit(code=1) from error


def write_json(payload: Any, output: Path | None) -> None:
    """Write ``payload`` to ``output`` or stdout as indented JSON."""

    text = json.dumps(payload, indent=2, sort_keys=False)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")


__all__ = ["CLIContext", "fail", "require_context", "write_json"]
