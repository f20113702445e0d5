"""``symgraph depresolve``: resolve a unit's dependencies to repositories."""

from __future__ import annotations

from pathlib import Path

import typer

from symgraph.core.logging import log_context
from symgraph.origins import (
    InvalidSourceUnitError,
    OriginResolver,
    ResolverContext,
    implicit_dependencies,
    read_source_unit,
)

from .context import fail, require_context, write_json


def depresolve_command(
    ctx: typer.Context,
    unit_file: Path = typer.Argument(
        ...,
        metavar="UNIT",
        help="Source unit JSON describing the project and its dependencies.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the resolution JSON here instead of stdout.",
    ),
) -> None:
    """Resolve declared and implicit dependencies of a source unit."""

    context = require_context(ctx)
    logger = context.logger.bind(command="depresolve")

    try:
        unit = read_source_unit(unit_file)
    except InvalidSourceUnitError as exc:
        fail(context, action="depresolve", error=exc, unit=str(unit_file))
        return

    resolver_context = ResolverContext.from_config(
        context.config, unit=unit, logger=logger
    )
    try:
        with log_context(unit=unit.name):
            resolver = OriginResolver(resolver_context)
            resolutions = resolver.resolve_dependencies(
                unit.raw_dependencies
            )
    finally:
        resolver_context.close()
    resolutions.extend(implicit_dependencies(unit))

    write_json([resolution.to_dict() for resolution in resolutions], output)
    logger.info(
        "depresolve-complete",
        unit=unit.name,
        dependencies=len(resolutions),
        unresolved=sum(1 for item in resolutions if item.error is not None),
    )


__all__ = ["depresolve_command"]
