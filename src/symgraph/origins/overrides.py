"""Curated ``group/artifact`` to clone-URL overrides."""

from __future__ import annotations

from typing import Mapping

__all__ = ["OverrideTable"]


class OverrideTable:
    """Longest-prefix lookup over a static override map.

    Example:
        >>> table = OverrideTable({
        ...     "org.hamcrest/": "https://github.com/hamcrest/JavaHamcrest",
        ...     "org.hamcrest/hamcrest-core": "https://example.com/core",
        ... })
        >>> table.lookup("org.hamcrest/x")
        'https://github.com/hamcrest/JavaHamcrest'
        >>> table.lookup("org.hamcrest/hamcrest-core")
        'https://example.com/core'
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries = dict(entries or {})
        self._prefixes = sorted(self._entries, key=len, reverse=True)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, coordinate: str) -> str | None:
        """Return the URL of the longest prefix matching ``coordinate``."""

        for prefix in self._prefixes:
            if coordinate.startswith(prefix):
                return self._entries[prefix]
        return None
