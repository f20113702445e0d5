"""TOML tables shipped inside the wheel.

``symgraph.defaults.toml`` seeds :class:`symgraph.core.config.AppConfig` and
``resolver-overrides.toml`` maps ``group/artifact`` prefixes to clone URLs.
"""

from __future__ import annotations

import tomllib
from importlib import resources
from importlib.resources.abc import Traversable
from typing import Any


def get_resource(name: str) -> Traversable:
    """Locate ``name`` beside this module or raise ``FileNotFoundError``.

    Example:
        >>> get_resource("symgraph.defaults.toml").name
        'symgraph.defaults.toml'
    """

    handle = resources.files(__name__) / name
    if not handle.is_file():
        raise FileNotFoundError(f"packaged resource not found: {name}")
    return handle


def load_toml_resource(name: str) -> dict[str, Any]:
    """Parse a packaged TOML table."""

    return tomllib.loads(get_resource(name).read_text(encoding="utf-8"))


__all__ = ["get_resource", "load_toml_resource"]
