"""Typed error hierarchy for graph extraction."""

from __future__ import annotations


class GraphError(RuntimeError):
    """Base error for symbol-graph extraction failures."""


class NodeProcessingError(GraphError):
    """Raised when a single syntax node cannot be turned into a record.

    The tree emitter catches these, records a diagnostic and skips the node.
    """

    code = "node-processing"


class BrokenChainError(NodeProcessingError):
    """Raised when a binding's enclosing chain cannot produce a path."""

    code = "broken-chain"


class SpanError(NodeProcessingError):
    """Base error for identifier span lookups."""

    code = "span"


class IllegalIdentifierError(SpanError):
    """Raised when the requested name is not a legal identifier."""

    code = "illegal-identifier"


class MissingBoundsError(SpanError):
    """Raised when a node has no start or end position in the source."""

    code = "missing-bounds"


class InvertedBoundsError(SpanError):
    """Raised when a node ends before it starts."""

    code = "inverted-bounds"


class NameNotFoundError(SpanError):
    """Raised when the identifier text does not occur in the node window."""

    code = "name-not-found"


class MissingBindingError(NodeProcessingError):
    """Raised when a declaration node carries no resolved binding."""

    code = "missing-binding"


class FatalInputError(GraphError):
    """Raised when input is unusable and the current unit or run must stop."""


class ErrorBudgetExceeded(FatalInputError):
    """Raised when a compilation unit skips more nodes than allowed."""

    def __init__(self, file: str, skipped: int, budget: int) -> None:
        super().__init__(
            f"{file}: {skipped} skipped nodes exceed the error budget of {budget}"
        )
        self.file = file
        self.skipped = skipped
        self.budget = budget


__all__ = [
    "GraphError",
    "NodeProcessingError",
    "BrokenChainError",
    "SpanError",
    "IllegalIdentifierError",
    "MissingBoundsError",
    "InvertedBoundsError",
    "NameNotFoundError",
    "MissingBindingError",
    "FatalInputError",
    "ErrorBudgetExceeded",
]
