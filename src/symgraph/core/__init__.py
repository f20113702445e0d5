"""Core utilities shared across :mod:`symgraph` modules.

The core namespace provides configuration loading and logging setup so the
graph and origin packages stay focused on their own concerns.
"""

from __future__ import annotations

from .config import AppConfig, GraphSettings, ResolverSettings, load_config
from .logging import Logger, configure_logging, get_logger, log_context

__all__ = [
    "AppConfig",
    "GraphSettings",
    "Logger",
    "ResolverSettings",
    "configure_logging",
    "get_logger",
    "load_config",
    "log_context",
]
