"""Thread-safe accumulator for emitted graph records."""

from __future__ import annotations

import dataclasses
import threading
from typing import Any, Iterable, Mapping, Protocol

from .models import (
    ANY_ORIGIN,
    Def,
    DefTarget,
    Diagnostic,
    Doc,
    Locator,
    PathKey,
    Ref,
    Span,
)
from .offsets import ByteOffsets

__all__ = ["GraphSink", "OriginResolving", "ResolvedOrigin", "kind_label"]

_KIND_LABELS = {
    "package": "package",
    "type": "type",
    "method": "func",
    "constructor": "func",
    "field": "var",
    "variable": "var",
}


def kind_label(kind: str) -> str:
    """Collapse a binding kind into the coarse kind consumers expect."""

    return _KIND_LABELS.get(kind, "var")


class ResolvedOrigin(Protocol):
    repo_clone_url: str | None
    unit_name: str
    unit_type: str


class OriginResolving(Protocol):
    def resolve_origins(
        self,
        locators: Iterable[Locator],
    ) -> Mapping[Locator, ResolvedOrigin | None]: ...


class GraphSink:
    """Collect Defs, Refs and diagnostics from one or more emitters.

    Records keep character spans. When ``encoding`` is set, spans are
    converted to byte offsets in :meth:`to_payload` using the tables built by
    :meth:`register_source`.
    """

    def __init__(self, *, encoding: str | None = None) -> None:
        self.encoding = encoding
        self._lock = threading.Lock()
        self._defs: list[Def] = []
        self._by_key: dict[PathKey, Def] = {}
        self._refs: list[Ref] = []
        self._diagnostics: list[Diagnostic] = []
        self._offsets: dict[str, ByteOffsets] = {}

    # -- writes -----------------------------------------------------------

    def register_source(self, file: str, text: str) -> None:
        if self.encoding is None:
            return
        table = ByteOffsets.build(text, self.encoding)
        with self._lock:
            self._offsets[file] = table

    def add_def(self, definition: Def) -> bool:
        """Store ``definition`` unless its key is already present."""

        with self._lock:
            if definition.key in self._by_key:
                return False
            self._by_key[definition.key] = definition
            self._defs.append(definition)
            return True

    def add_ref(self, ref: Ref) -> None:
        with self._lock:
            self._refs.append(ref)

    def add_diagnostic(self, diagnostic: Diagnostic) -> None:
        with self._lock:
            self._diagnostics.append(diagnostic)

    # -- reads ------------------------------------------------------------

    @property
    def defs(self) -> tuple[Def, ...]:
        with self._lock:
            return tuple(self._defs)

    @property
    def refs(self) -> tuple[Ref, ...]:
        with self._lock:
            return tuple(self._refs)

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        with self._lock:
            return tuple(self._diagnostics)

    def key_to_def(self, key: PathKey) -> Def | None:
        """Return the Def stored under ``key``.

        A wildcard key returns the first Def sharing its path.
        """

        with self._lock:
            if not key.is_wildcard:
                return self._by_key.get(key)
            for definition in self._defs:
                if definition.key.path == key.path:
                    return definition
            return None

    def refs_to(self, key: PathKey) -> list[Ref]:
        """Return every Ref pointing at ``key`` (wildcard origins match all)."""

        return [ref for ref in self.refs if key.matches(ref.key)]

    def docs(self) -> list[Doc]:
        return [Doc.from_def(d) for d in self.defs if d.doc]

    # -- resolution -------------------------------------------------------

    def attach_targets(self, resolver: OriginResolving) -> int:
        """Fill in each external Ref's resolved Def target.

        Returns:
            Number of Refs that received a target.
        """

        refs = self.refs
        locators = {
            Locator(ref.key.origin)
            for ref in refs
            if ref.key.origin is not None and ref.key.origin != ANY_ORIGIN
        }
        if not locators:
            return 0
        resolved = resolver.resolve_origins(sorted(locators, key=str))
        attached = 0
        updated: list[Ref] = []
        for ref in refs:
            target = None
            if ref.key.origin is not None:
                target = resolved.get(Locator(ref.key.origin))
            if target is None:
                updated.append(ref)
                continue
            updated.append(
                dataclasses.replace(
                    ref,
                    target=DefTarget(
                        repo=target.repo_clone_url,
                        unit=target.unit_name,
                        unit_type=target.unit_type,
                    ),
                )
            )
            attached += 1
        with self._lock:
            self._refs = updated
        return attached

    # -- output -----------------------------------------------------------

    def _convert(self, file: str, span: Span) -> Span:
        table = self._offsets.get(file)
        return table.convert(span) if table is not None else span

    def _out_span(self, file: str, span: Span | None) -> Span | None:
        return None if span is None else self._convert(file, span)

    def _def_payload(
        self,
        definition: Def,
        unit: str | None,
        unit_type: str | None,
    ) -> dict[str, Any]:
        ident = self._out_span(definition.file, definition.ident_span)
        decl = self._out_span(definition.file, definition.decl_span)
        payload: dict[str, Any] = {
            "path": definition.key.format_path(),
            "name": definition.name,
            "kind": kind_label(definition.kind),
            "file": definition.file,
            "ident_start": ident.start if ident else None,
            "ident_end": ident.end if ident else None,
            "def_start": decl.start if decl else None,
            "def_end": decl.end if decl else None,
            "exported": definition.exported,
            "local": definition.local,
            "unit": unit,
            "unit_type": unit_type,
            "data": {
                "binding_kind": definition.kind,
                "type_expression": definition.type_text,
                "package": definition.package,
                "modifiers": list(definition.modifiers),
            },
        }
        if definition.key.origin is not None:
            payload["origin"] = definition.key.origin
        return payload

    def _ref_payload(self, ref: Ref, unit: str | None) -> dict[str, Any]:
        span = self._convert(ref.file, ref.span)
        payload: dict[str, Any] = {
            "def_path": ref.key.format_path(),
            "file": ref.file,
            "start": span.start,
            "end": span.end,
            "def": ref.is_def_site,
            "unit": unit,
        }
        if ref.key.origin is not None:
            payload["origin"] = ref.key.origin
        if ref.target is not None:
            if ref.target.repo is not None:
                payload["def_repo"] = ref.target.repo
            payload["def_unit"] = ref.target.unit
            payload["def_unit_type"] = ref.target.unit_type
        return payload

    def to_payload(
        self,
        *,
        unit: str | None = None,
        unit_type: str | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Return plain dictionaries ready for JSON serialization."""

        return {
            "defs": [self._def_payload(d, unit, unit_type) for d in self.defs],
            "refs": [self._ref_payload(r, unit) for r in self.refs],
            "docs": [
                {
                    "path": doc.key.format_path(),
                    "format": doc.format,
                    "data": doc.data,
                    "file": doc.file,
                    "unit": unit,
                }
                for doc in self.docs()
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
