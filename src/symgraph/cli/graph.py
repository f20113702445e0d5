"""``symgraph graph``: emit Defs, Refs and Docs for a compilation forest."""

from __future__ import annotations

from pathlib import Path

import typer

from symgraph.core.logging import Logger, log_context
from symgraph.graph import (
    EmitState,
    FatalInputError,
    Forest,
    GraphSink,
    emit_forest,
    read_forest,
)
from symgraph.origins import (
    OriginResolver,
    ResolverContext,
    SourceUnit,
    read_source_unit,
)

from .context import CLIContext, fail, require_context, write_json


def graph_command(
    ctx: typer.Context,
    unit_file: Path = typer.Argument(
        ...,
        metavar="UNIT",
        help="Source unit JSON describing the project and its dependencies.",
    ),
    forest_file: Path = typer.Argument(
        ...,
        metavar="FOREST",
        help="Resolved syntax forest JSON produced by the front end.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the graph JSON here instead of stdout.",
    ),
    no_resolve: bool = typer.Option(
        False,
        "--no-resolve",
        help="Skip resolving Ref origins to upstream repositories.",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-j",
        min=1,
        help="Compilation units walked concurrently (overrides config).",
    ),
) -> None:
    """Walk every compilation unit and write the resulting graph."""

    context = require_context(ctx)
    logger = context.logger.bind(command="graph")

    try:
        unit = read_source_unit(unit_file)
        forest = read_forest(forest_file)
    except FatalInputError as exc:
        fail(context, action="graph", error=exc, unit=str(unit_file))
        return

    with log_context(unit=unit.name):
        sink, summary = _build_graph(
            context,
            unit,
            forest,
            logger=logger,
            resolve=not no_resolve,
            workers=workers,
        )
        write_json(
            sink.to_payload(unit=unit.name, unit_type=unit.type), output
        )
        logger.info("graph-complete", **summary)


def _build_graph(
    context: CLIContext,
    unit: SourceUnit,
    forest: Forest,
    *,
    logger: Logger,
    resolve: bool,
    workers: int | None,
) -> tuple[GraphSink, dict[str, object]]:
    settings = context.config.graph
    sink = GraphSink(encoding=settings.byte_encoding)
    results = emit_forest(
        forest,
        sink,
        state=EmitState(),
        error_budget=settings.error_budget,
        workers=workers or settings.workers,
        logger=logger,
    )

    attached = 0
    if resolve:
        resolver_context = ResolverContext.from_config(
            context.config, unit=unit, logger=logger
        )
        try:
            attached = sink.attach_targets(OriginResolver(resolver_context))
        finally:
            resolver_context.close()

    summary: dict[str, object] = {
        "files": len(results),
        "aborted": [result.file for result in results if result.aborted],
        "defs": len(sink.defs),
        "refs": len(sink.refs),
        "diagnostics": len(sink.diagnostics),
        "resolved_refs": attached,
    }
    return sink, summary


__all__ = ["graph_command"]
