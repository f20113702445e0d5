"""Coarse categorization of physical origin locators."""

from __future__ import annotations

import bisect
from enum import StrEnum
from pathlib import Path
from typing import Iterable, Sequence

from symgraph.graph.models import Locator

__all__ = [
    "OriginCategory",
    "OriginClassifier",
    "STANDARD_ARCHIVES",
    "load_membership",
]

STANDARD_ARCHIVES: tuple[str, ...] = ("tools.jar", "nashorn.jar")


class OriginCategory(StrEnum):
    STANDARD_LIBRARY = "standard_library"
    PLATFORM_CORE = "platform_core"
    PLATFORM_SDK = "platform_sdk"
    EXTERNAL = "external"


def load_membership(path: Path | None) -> list[str] | None:
    """Read a newline-separated class list and return it sorted.

    Blank lines are ignored. Returns ``None`` when ``path`` is unset or the
    file does not exist.

    Example:
        >>> load_membership(None) is None
        True
    """

    if path is None or not path.is_file():
        return None
    lines = path.read_text(encoding="utf-8").splitlines()
    return sorted(line.strip() for line in lines if line.strip())


class OriginClassifier:
    """Place a locator into one of the :class:`OriginCategory` buckets.

    Platform archives bundle two upstream components. A class belongs to
    the core component when its top-level class path appears in the sorted
    ``membership`` list, and to the SDK component otherwise.

    Example:
        >>> classifier = OriginClassifier(membership=["com/a/X", "com/a/Y"])
        >>> classifier.classify(
        ...     Locator("jar:file:/sdk/android.jar!/com/a/X$Inner.class")
        ... ).value
        'platform_core'
        >>> classifier.classify(
        ...     Locator("jar:file:/sdk/android.jar!/com/a/Z.class")
        ... ).value
        'platform_sdk'
    """

    def __init__(
        self,
        *,
        membership: Iterable[str] | None = None,
        platform_archives: Sequence[str] = ("android.jar",),
        stdlib_markers: Sequence[str] = ("jre/lib/",),
    ) -> None:
        self._membership = (
            sorted(membership) if membership is not None else None
        )
        self.platform_archives = tuple(platform_archives)
        self.stdlib_markers = tuple(stdlib_markers)

    @property
    def has_membership(self) -> bool:
        return self._membership is not None

    def is_member(self, class_path: str) -> bool:
        """Binary-search ``class_path`` in the membership list."""

        members = self._membership or []
        index = bisect.bisect_left(members, class_path)
        return index < len(members) and members[index] == class_path

    def is_standard_archive(self, locator: Locator) -> bool:
        path = locator.archive_path
        if path is None:
            return False
        normalized = path.replace("\\", "/")
        if any(marker in normalized for marker in self.stdlib_markers):
            return True
        return locator.archive_name in STANDARD_ARCHIVES

    def is_platform_archive(self, locator: Locator) -> bool:
        return locator.archive_name in self.platform_archives

    def platform_component(
        self,
        locator: Locator,
        *,
        force: bool,
    ) -> OriginCategory:
        """Split a platform class between the core and SDK components.

        With ``force`` the locator is known to belong to the platform, so a
        class missing from the membership list is SDK. Without it, only
        members are claimed and everything else is external.
        """

        class_path = locator.top_level_class
        if self._membership is None or class_path is None:
            return OriginCategory.EXTERNAL
        if self.is_member(class_path):
            return OriginCategory.PLATFORM_CORE
        if force:
            return OriginCategory.PLATFORM_SDK
        return OriginCategory.EXTERNAL

    def classify(
        self,
        locator: Locator,
        *,
        platform_unit: bool = False,
    ) -> OriginCategory:
        if not locator.is_archive:
            return OriginCategory.EXTERNAL
        if self.is_standard_archive(locator):
            bundled = locator.archive_name in STANDARD_ARCHIVES
            if platform_unit and not bundled:
                return self.platform_component(locator, force=True)
            return OriginCategory.STANDARD_LIBRARY
        if self.is_platform_archive(locator):
            return self.platform_component(locator, force=True)
        if platform_unit:
            return self.platform_component(locator, force=False)
        return OriginCategory.EXTERNAL
