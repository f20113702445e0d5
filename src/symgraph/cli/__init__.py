"""Command-line interface for :mod:`symgraph`.

This module exposes the Typer application behind the ``symgraph`` console
script. The app callback loads configuration and logging once; each command
then reads its inputs and writes JSON to stdout or ``--output``.

Example:
    >>> import typer
    >>> from symgraph.cli import create_app
    >>> app = create_app()
    >>> isinstance(app, typer.Typer)
    True
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from symgraph.cli.context import CLIContext, require_context
from symgraph.cli.depresolve import depresolve_command
from symgraph.cli.graph import graph_command
from symgraph.core.config import (
    env_overrides,
    load_config,
    load_user_config,
    render_config,
)
from symgraph.core.logging import configure_logging, get_logger

_app_help = (
    "Build portable code graphs from resolved syntax forests."
    "\n\n"
    "Use `symgraph graph` to emit Defs and Refs and `symgraph depresolve` "
    "to map dependencies to their upstream repositories."
)


def _cli_layer(log_level: str | None) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    if log_level:
        layer["log_level"] = log_level
    return layer


def create_app() -> "typer.Typer":
    """Return the Typer application powering the ``symgraph`` CLI.

    Returns:
        A configured Typer application ready to be invoked by ``symgraph``.
    """

    app = typer.Typer(
        help=_app_help,
        no_args_is_help=True,
        rich_markup_mode="rich",
        invoke_without_command=False,
        cls=typer.core.TyperGroup,
    )

    @app.callback()
    def main_callback(
        ctx: typer.Context,
        config_file: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="User TOML config layered over the packaged defaults.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            "-l",
            help="Override the logging level (DEBUG/INFO/WARNING/ERROR).",
        ),
    ) -> None:
        """Load configuration and logging for the invoked command."""

        try:
            user_config = (
                load_user_config(config_file) if config_file else None
            )
            config = load_config(
                user_config=user_config,
                env_config=env_overrides(),
                cli_overrides=_cli_layer(log_level),
            )
            configure_logging(level=config.log_level, log_dir=config.log_dir)
        except (OSError, ValueError) as exc:
            typer.secho(
                f"Configuration error: {exc}", fg=typer.colors.RED, err=True
            )
            raise typer.Exit(code=1) from exc

        ctx.obj = CLIContext(
            config=config,
            logger=get_logger(__name__, command=ctx.invoked_subcommand),
        )

    app.command(
        "graph",
        help="Emit Defs, Refs and Docs for a resolved syntax forest.",
    )(graph_command)

    app.command(
        "depresolve",
        help="Resolve a source unit's dependencies to upstream repositories.",
    )(depresolve_command)

    @app.command("config", help="Print the effective configuration as TOML.")
    def config_command(ctx: typer.Context) -> None:
        context = require_context(ctx)
        typer.echo(render_config(context.config), nl=False)

    return app


__all__ = ["create_app"]
