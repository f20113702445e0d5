"""Tests for :mod:`symgraph.graph.spans`."""

from __future__ import annotations

import pytest

from symgraph.graph.errors import (
    IllegalIdentifierError,
    InvertedBoundsError,
    MissingBoundsError,
    NameNotFoundError,
)
from symgraph.graph.forest import NodeKind, SyntaxNode
from symgraph.graph.models import Span
from symgraph.graph.spans import SpanLocator, is_identifier


def _node(
    text: str,
    snippet: str,
    kind: NodeKind = NodeKind.OTHER,
) -> SyntaxNode:
    start = text.index(snippet)
    return SyntaxNode(kind=kind, start=start, end=start + len(snippet))


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("foo", True),
        ("$proxy", True),
        ("Outer$Inner", True),
        ("_", True),
        ("9lives", False),
        ("a.b", False),
        ("", False),
    ],
)
def test_is_identifier(name: str, expected: bool) -> None:
    assert is_identifier(name) is expected


def test_name_span_is_window_start_plus_local_index() -> None:
    text = "class A { int count = 0; }"
    node = _node(text, "int count = 0;", NodeKind.VARIABLE)

    span = SpanLocator(text).name_span("count", node)

    assert span == Span(14, 19)
    assert text[span.start : span.end] == "count"


def test_node_span_returns_bounds() -> None:
    node = SyntaxNode(kind=NodeKind.CLASS, start=3, end=9)

    assert SpanLocator("0123456789").node_span(node) == Span(3, 9)


def test_missing_bounds_raise() -> None:
    locator = SpanLocator("abc", file="A.java")

    with pytest.raises(MissingBoundsError, match="no start"):
        locator.node_span(SyntaxNode(kind=NodeKind.METHOD, end=2))
    with pytest.raises(MissingBoundsError, match="no end"):
        locator.name_span("a", SyntaxNode(kind=NodeKind.METHOD, start=0))


def test_illegal_identifier_raises() -> None:
    text = "a.b"
    with pytest.raises(IllegalIdentifierError):
        SpanLocator(text).name_span("a.b", _node(text, "a.b"))


def test_name_not_found_raises() -> None:
    text = "int other;"
    with pytest.raises(NameNotFoundError, match="'count'"):
        SpanLocator(text).name_span("count", _node(text, text))


def test_fallback_start_widens_window() -> None:
    text = "new Owner<A>().new Inner<B>() {}"
    inner = _node(text, "new Inner<B>() {}")

    span = SpanLocator(text).name_span("Owner", inner, fallback_start=0)

    assert span == Span(4, 9)


def test_first_match_wins_within_window() -> None:
    text = "foo.foo.bar"
    node = _node(text, text, NodeKind.MEMBER_SELECT)

    assert SpanLocator(text).name_span("foo", node) == Span(0, 3)


def test_inverted_bounds_raise() -> None:
    locator = SpanLocator("class A {}", file="A.java")
    node = SyntaxNode(kind=NodeKind.IDENTIFIER, start=7, end=6)

    with pytest.raises(InvertedBoundsError, match="A.java:\\+7"):
        locator.node_span(node)
    with pytest.raises(InvertedBoundsError):
        locator.name_span("A", node)


def test_last_match_when_requested() -> None:
    text = "a.b.a"
    node = _node(text, text, NodeKind.MEMBER_SELECT)

    assert SpanLocator(text).name_span("a", node, last=True) == Span(4, 5)
