"""Errors raised while resolving dependency origins."""

from __future__ import annotations

from dataclasses import dataclass

from symgraph.graph.errors import FatalInputError

__all__ = [
    "ResolutionFailure",
    "RegistryLookupError",
    "DescriptorNotFoundError",
    "MissingScmError",
    "InvalidSourceUnitError",
]


class ResolutionFailure(RuntimeError):
    """Base error for a strategy that could not produce a target.

    The resolver converts these into a ``None`` target plus an error string.
    """


@dataclass(slots=True)
class RegistryLookupError(ResolutionFailure):
    """Raised when a registry descriptor cannot be fetched or parsed."""

    message: str
    url: str
    status_code: int | None = None
    attempts: int = 1

    def __post_init__(self) -> None:
        RuntimeError.__init__(self, self.message)


@dataclass(slots=True)
class DescriptorNotFoundError(RegistryLookupError):
    """Raised when the registry answers 404 for a descriptor."""


class MissingScmError(ResolutionFailure):
    """Raised when no descriptor in the parent chain declares an SCM URL."""


class InvalidSourceUnitError(FatalInputError):
    """Raised when a source unit description cannot be read or validated."""
