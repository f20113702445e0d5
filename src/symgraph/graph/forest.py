"""In-memory resolved syntax forest and its JSON loader.

The front-end compiler that resolves names is an external collaborator. It
hands the forest over as a JSON document::

    {
      "bindings": {"b1": {"kind": "package", "name": "foo"}, ...},
      "units": [{"file": "foo/Bar.java", "text": "...", "root": {...}}]
    }

Bindings reference each other (``enclosing``, ``supertype``) and are
referenced from nodes (``binding``) by id. :func:`load_forest` validates the
payload with pydantic and links ids into :class:`Binding` objects.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from .errors import FatalInputError

__all__ = [
    "BindingKind",
    "NodeKind",
    "SourcePosition",
    "Binding",
    "SyntaxNode",
    "CompilationUnit",
    "Forest",
    "load_forest",
    "read_forest",
]


class BindingKind(StrEnum):
    """Closed set of declaration kinds a binding can denote."""

    PACKAGE = "package"
    TYPE = "type"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    FIELD = "field"
    VARIABLE = "variable"


class NodeKind(StrEnum):
    """Syntax node kinds the tree emitter distinguishes."""

    COMPILATION_UNIT = "compilation_unit"
    PACKAGE = "package"
    IMPORT = "import"
    CLASS = "class"
    METHOD = "method"
    VARIABLE = "variable"
    IDENTIFIER = "identifier"
    MEMBER_SELECT = "member_select"
    PARAMETERIZED_TYPE = "parameterized_type"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """Where a binding is declared in the unit under analysis."""

    file: str
    offset: int


@dataclass(eq=False, slots=True)
class Binding:
    """Resolved semantic handle for what a name refers to."""

    kind: BindingKind
    name: str
    enclosing: "Binding | None" = None
    parameter_types: tuple[str, ...] = ()
    origin: str | None = None
    declared_at: SourcePosition | None = None
    supertype: "Binding | None" = None

    @property
    def is_anonymous(self) -> bool:
        return self.kind is BindingKind.TYPE and not self.name

    def __repr__(self) -> str:
        return f"Binding({self.kind.value}:{self.name!r})"


@dataclass(eq=False, slots=True)
class SyntaxNode:
    """One node of a resolved syntax tree.

    ``start``/``end`` are character offsets into the unit text and either
    may be ``None`` for compiler-synthesized nodes.
    """

    kind: NodeKind
    start: int | None = None
    end: int | None = None
    name: str | None = None
    binding: Binding | None = None
    modifiers: tuple[str, ...] = ()
    doc: str | None = None
    type_text: str | None = None
    children: list["SyntaxNode"] = field(default_factory=list)

    @property
    def has_bounds(self) -> bool:
        return self.start is not None and self.end is not None

    def child(self, kind: NodeKind) -> "SyntaxNode | None":
        for node in self.children:
            if node.kind is kind:
                return node
        return None


@dataclass(slots=True)
class CompilationUnit:
    """One source file with its resolved syntax tree."""

    file: str
    text: str
    root: SyntaxNode

    @property
    def is_package_info(self) -> bool:
        return Path(self.file).stem == "package-info"

    @property
    def package_node(self) -> SyntaxNode | None:
        return self.root.child(NodeKind.PACKAGE)

    @property
    def package_name(self) -> str:
        """Dotted package name, empty for the unnamed package."""

        node = self.package_node
        if node is None or node.binding is None:
            return ""
        return node.binding.name


@dataclass(slots=True)
class Forest:
    """Every compilation unit of a source unit plus their shared bindings."""

    units: list[CompilationUnit]
    bindings: dict[str, Binding] = field(default_factory=dict)

    def package_info_packages(self) -> frozenset[str]:
        """Packages for which some unit is a ``package-info`` file."""

        return frozenset(
            unit.package_name
            for unit in self.units
            if unit.is_package_info and unit.package_name
        )


class _PositionPayload(BaseModel):
    file: str
    offset: int = Field(ge=0)

    model_config = {"extra": "forbid"}


class _BindingPayload(BaseModel):
    kind: BindingKind
    name: str = ""
    enclosing: str | None = None
    parameter_types: list[str] = Field(default_factory=list)
    origin: str | None = None
    declared_at: _PositionPayload | None = None
    supertype: str | None = None

    model_config = {"extra": "ignore"}


class _NodePayload(BaseModel):
    kind: NodeKind = NodeKind.OTHER
    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)
    name: str | None = None
    binding: str | None = None
    modifiers: list[str] = Field(default_factory=list)
    doc: str | None = None
    type_text: str | None = None
    children: list["_NodePayload"] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class _UnitPayload(BaseModel):
    file: str
    text: str
    root: _NodePayload


class _ForestPayload(BaseModel):
    bindings: dict[str, _BindingPayload] = Field(default_factory=dict)
    units: list[_UnitPayload] = Field(default_factory=list)


def _position(payload: _PositionPayload | None) -> SourcePosition | None:
    if payload is None:
        return None
    return SourcePosition(payload.file, payload.offset)


def _link_bindings(
    payloads: Mapping[str, _BindingPayload],
) -> dict[str, Binding]:
    bindings = {
        binding_id: Binding(
            kind=payload.kind,
            name=payload.name,
            parameter_types=tuple(payload.parameter_types),
            origin=payload.origin,
            declared_at=_position(payload.declared_at),
        )
        for binding_id, payload in payloads.items()
    }

    def lookup(ref: str | None, owner: str, attribute: str) -> Binding | None:
        if ref is None:
            return None
        try:
            return bindings[ref]
        except KeyError:
            raise FatalInputError(
                f"Binding {owner!r} references unknown {attribute} {ref!r}"
            ) from None

    for binding_id, payload in payloads.items():
        binding = bindings[binding_id]
        binding.enclosing = lookup(payload.enclosing, binding_id, "enclosing")
        binding.supertype = lookup(payload.supertype, binding_id, "supertype")
    return bindings


def _build_node(
    payload: _NodePayload,
    bindings: Mapping[str, Binding],
    file: str,
) -> SyntaxNode:
    binding = None
    if payload.binding is not None:
        binding = bindings.get(payload.binding)
        if binding is None:
            raise FatalInputError(
                f"{file}: node references unknown binding {payload.binding!r}"
            )
    return SyntaxNode(
        kind=payload.kind,
        start=payload.start,
        end=payload.end,
        name=payload.name,
        binding=binding,
        modifiers=tuple(payload.modifiers),
        doc=payload.doc,
        type_text=payload.type_text,
        children=[
            _build_node(child, bindings, file) for child in payload.children
        ],
    )


def load_forest(payload: Mapping[str, Any]) -> Forest:
    """Validate ``payload`` and return a linked :class:`Forest`.

    Raises:
        FatalInputError: If the payload is malformed, nests deeper than
            the interpreter stack allows, or references a binding id that
            is not defined.
    """

    try:
        parsed = _ForestPayload.model_validate(payload)
    except ValidationError as exc:
        raise FatalInputError(f"Invalid syntax forest: {exc}") from exc
    except RecursionError as exc:
        raise FatalInputError("Syntax forest nests too deeply") from exc

    bindings = _link_bindings(parsed.bindings)
    units: list[CompilationUnit] = []
    for unit in parsed.units:
        try:
            root = _build_node(unit.root, bindings, unit.file)
        except RecursionError as exc:
            raise FatalInputError(
                f"{unit.file}: syntax tree nests too deeply"
            ) from exc
        units.append(CompilationUnit(file=unit.file, text=unit.text, root=root))
    return Forest(units=units, bindings=bindings)


def read_forest(path: Path) -> Forest:
    """Read and load a forest JSON document from ``path``."""

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError) as exc:
        raise FatalInputError(f"Unable to read forest {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise FatalInputError(f"Invalid syntax forest {path}: expected an object")
    return load_forest(payload)
