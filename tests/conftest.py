"""Shared pytest fixtures for graph and resolver tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from symgraph.core.config import load_config
from symgraph.graph import (
    EmitState,
    Forest,
    GraphSink,
    UnitResult,
    emit_forest,
    load_forest,
)


class ForestBuilder:
    """Assemble forest JSON payloads without hand-counting offsets."""

    def __init__(self) -> None:
        self.bindings: dict[str, dict[str, Any]] = {}
        self.units: list[dict[str, Any]] = []

    def bind(
        self,
        binding_id: str,
        kind: str,
        name: str = "",
        **fields: Any,
    ) -> str:
        self.bindings[binding_id] = {"kind": kind, "name": name, **fields}
        return binding_id

    @staticmethod
    def locate(text: str, snippet: str, after: int = 0) -> tuple[int, int]:
        """Return ``(start, end)`` of ``snippet`` at or after ``after``."""

        start = text.index(snippet, after)
        return start, start + len(snippet)

    def node(
        self,
        kind: str,
        text: str | None = None,
        snippet: str | None = None,
        *,
        after: int = 0,
        children: list[dict[str, Any]] | None = None,
        **fields: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": kind, **fields}
        if text is not None and snippet is not None:
            payload["start"], payload["end"] = self.locate(text, snippet, after)
        payload["children"] = children or []
        return payload

    def add_unit(
        self,
        file: str,
        text: str,
        *children: dict[str, Any],
    ) -> None:
        self.units.append(
            {
                "file": file,
                "text": text,
                "root": {
                    "kind": "compilation_unit",
                    "start": 0,
                    "end": len(text),
                    "children": list(children),
                },
            }
        )

    def payload(self) -> dict[str, Any]:
        return {"bindings": self.bindings, "units": self.units}

    def forest(self) -> Forest:
        return load_forest(self.payload())


@pytest.fixture
def forest_builder() -> ForestBuilder:
    """Return an empty :class:`ForestBuilder`."""

    return ForestBuilder()


EmitFn = Callable[..., tuple[GraphSink, list[UnitResult]]]


@pytest.fixture
def emit() -> EmitFn:
    """Walk a builder's forest into a fresh sink and return both outputs."""

    def _emit(
        builder: ForestBuilder,
        *,
        encoding: str | None = None,
        error_budget: int | None = None,
        workers: int = 1,
        state: EmitState | None = None,
        sink: GraphSink | None = None,
    ) -> tuple[GraphSink, list[UnitResult]]:
        target = sink or GraphSink(encoding=encoding)
        results = emit_forest(
            builder.forest(),
            target,
            state=state or EmitState(),
            error_budget=error_budget,
            workers=workers,
        )
        return target, results

    return _emit


@pytest.fixture
def scenario_a(forest_builder: ForestBuilder) -> ForestBuilder:
    """``package foo; public class Bar {}`` as a resolved forest."""

    text = "package foo; public class Bar {}"
    b = forest_builder
    b.bind("pkg", "package", "foo")
    b.bind("bar", "type", "Bar", enclosing="pkg")
    b.add_unit(
        "foo/Bar.java",
        text,
        b.node(
            "package",
            text,
            "package foo;",
            binding="pkg",
            children=[
                b.node("identifier", text, "foo", name="foo", binding="pkg")
            ],
        ),
        b.node(
            "class",
            text,
            "public class Bar {}",
            binding="bar",
            modifiers=["public"],
        ),
    )
    return b


class RecordingTransport:
    """``httpx.MockTransport`` handler that records every requested URL."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, list):
            outcome = route.pop(0) if len(route) > 1 else route[0]
        else:
            outcome = route
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        return outcome

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def recording_transport() -> Callable[..., RecordingTransport]:
    def _build(
        routes: dict[str, Any] | None = None,
    ) -> RecordingTransport:
        return RecordingTransport(dict(routes or {}))

    return _build


@pytest.fixture
def app_config() -> Iterator[Any]:
    """Packaged-default config pointed at a fake registry."""

    yield load_config(
        cli_overrides={
            "resolver": {
                "registry_base_url": "https://registry.test/maven2",
                "max_concurrency": 1,
            }
        }
    )


def _render_pom(
    *,
    scm_url: str | None = None,
    connection: str | None = None,
    parent: tuple[str, str, str] | None = None,
    namespaced: bool = True,
) -> bytes:
    """Render a minimal registry descriptor."""

    xmlns = ' xmlns="http://maven.apache.org/POM/4.0.0"' if namespaced else ""
    parts = [f"<project{xmlns}>", "<modelVersion>4.0.0</modelVersion>"]
    if parent is not None:
        group, artifact, version = parent
        parts.append(
            "<parent>"
            f"<groupId>{group}</groupId>"
            f"<artifactId>{artifact}</artifactId>"
            f"<version>{version}</version>"
            "</parent>"
        )
    if scm_url is not None or connection is not None:
        parts.append("<scm>")
        if connection is not None:
            parts.append(f"<connection>{connection}</connection>")
        if scm_url is not None:
            parts.append(f"<url>{scm_url}</url>")
        parts.append("</scm>")
    parts.append("</project>")
    return "".join(parts).encode("utf-8")


@pytest.fixture
def pom() -> Callable[..., bytes]:
    """Return a renderer for minimal registry descriptors."""

    return _render_pom
