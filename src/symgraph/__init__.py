"""Cross-reference graphs for Java compilation units.

:mod:`symgraph.graph` turns a resolved syntax forest into Defs, Refs and Docs.
:mod:`symgraph.origins` maps class-file origins and Maven coordinates to the
repositories that define them.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("symgraph")
except PackageNotFoundError:  # pragma: no cover - source checkout
    __version__ = "0.0.0"

__all__ = ["__version__"]
