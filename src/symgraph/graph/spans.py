"""Identifier and declaration spans inside a source text."""

from __future__ import annotations

from .errors import (
    IllegalIdentifierError,
    InvertedBoundsError,
    MissingBoundsError,
    NameNotFoundError,
)
from .forest import SyntaxNode
from .models import Span

__all__ = ["SpanLocator", "is_identifier"]


def is_identifier(name: str) -> bool:
    """Return ``True`` if ``name`` is a syntactically legal identifier.

    Example:
        >>> is_identifier("$inner_1"), is_identifier("1abc"), is_identifier("a.b")
        (True, False, False)
    """

    return bool(name) and name.replace("$", "_").isidentifier()


class SpanLocator:
    """Locate identifier tokens inside syntax node windows of one text.

    The lookup takes the first literal occurrence of the identifier inside
    the node's window. When the identifier also appears earlier in a
    qualified expression the reported span can land on that earlier
    occurrence, unless the caller asks for the last one.
    """

    def __init__(self, text: str, *, file: str = "<unknown>") -> None:
        self._text = text
        self._file = file

    def node_span(self, node: SyntaxNode) -> Span:
        """Return the node's own ``[start, end)`` bounds.

        Raises:
            MissingBoundsError: If the node lacks a start or end position.
            InvertedBoundsError: If the node ends before it starts.
        """

        if node.start is None:
            raise MissingBoundsError(
                f"{self._file}: {node.kind.value} node has no start position"
            )
        if node.end is None:
            raise MissingBoundsError(
                f"{self._file}:+{node.start} {node.kind.value} node has no end "
                "position"
            )
        if node.end < node.start:
            raise InvertedBoundsError(
                f"{self._file}:+{node.start} {node.kind.value} node ends at "
                f"{node.end}, before it starts"
            )
        return Span(node.start, node.end)

    def name_span(
        self,
        name: str,
        node: SyntaxNode,
        *,
        fallback_start: int | None = None,
        last: bool = False,
    ) -> Span:
        """Return the span of ``name`` within ``node``.

        Args:
            name: Identifier text to find.
            node: Node whose window is searched.
            fallback_start: Start of the innermost enclosing parameterized
                type. The window is widened to begin there when ``name`` is
                absent from the node's own window, which happens for
                ``new Owner<A>().new Inner<B>() {}``.
            last: Take the final occurrence in the window, for qualified
                names whose last segment repeats an earlier one.

        Raises:
            IllegalIdentifierError: If ``name`` is not an identifier.
            MissingBoundsError: If the node lacks bounds.
            InvertedBoundsError: If the node ends before it starts.
            NameNotFoundError: If ``name`` does not occur in the window.
        """

        if not is_identifier(name):
            raise IllegalIdentifierError(f"Name {name!r} is not an identifier")

        window = self.node_span(node)
        find = self._text.rfind if last else self._text.find
        index = find(name, window.start, window.end)
        if index == -1 and fallback_start is not None:
            index = self._text.find(name, fallback_start, window.end)
        if index == -1:
            raise NameNotFoundError(
                f"{self._file}:+{window.start}-{window.end} name {name!r} not "
                f"found in {node.kind.value} node"
            )
        return Span(index, index + len(name))
