"""``python -m symgraph`` and the ``symgraph`` console script."""

from __future__ import annotations

from symgraph.cli import create_app

PROG_NAME = "symgraph"


def main() -> None:
    """Build the Typer app and dispatch ``sys.argv`` to it."""

    create_app()(prog_name=PROG_NAME)


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["PROG_NAME", "main"]
