"""Stable path keys for bindings.

A path is built by walking a binding's enclosing chain from the leaf to the
root and joining one component per binding with ``.``:

* packages contribute their dotted name as a single component;
* types contribute ``Name:type`` so they never collide with a same-named
  field or variable in the same scope;
* methods contribute ``name`` followed by ``:``-joined erased parameter
  types, with ``.`` inside a type replaced by ``$``;
* constructors replace their type's component with ``Type/:init`` plus the
  same parameter suffix;
* fields and variables contribute their bare name.

Example:
    >>> from symgraph.graph.forest import Binding, BindingKind
    >>> pkg = Binding(BindingKind.PACKAGE, "foo")
    >>> cls = Binding(BindingKind.TYPE, "Bar", enclosing=pkg)
    >>> ctor = Binding(
    ...     BindingKind.CONSTRUCTOR, "", enclosing=cls,
    ...     parameter_types=("java.lang.String",),
    ... )
    >>> build_path(ctor)
    'foo.Bar/:init:java$lang$String'
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import assert_never

from .errors import BrokenChainError
from .forest import Binding, BindingKind
from .models import PathKey

__all__ = ["anonymous_type_name", "build_path", "path_key"]

_TYPE_SUFFIX = ":type"
_INIT_SUFFIX = "/:init"


def anonymous_type_name(binding: Binding) -> str:
    """Synthesize a name for an anonymous type from its declaration site.

    Raises:
        BrokenChainError: If the binding carries no declaration site.
    """

    site = binding.declared_at
    if site is None:
        raise BrokenChainError("Anonymous type has no declaration site")
    stem = PurePosixPath(site.file.replace("\\", "/")).stem
    return f"anon-{stem}-{site.offset}"


def _type_name(binding: Binding) -> str:
    return binding.name or anonymous_type_name(binding)


def _parameter_suffix(binding: Binding) -> str:
    if not binding.parameter_types:
        return ""
    return ":" + ":".join(
        param.replace(".", "$") for param in binding.parameter_types
    )


def _require_enclosing(binding: Binding) -> Binding:
    if binding.enclosing is None:
        raise BrokenChainError(
            f"{binding.kind.value} {binding.name!r} has no enclosing binding"
        )
    return binding.enclosing


def build_path(binding: Binding) -> str:
    """Return the dotted path for ``binding``.

    Raises:
        BrokenChainError: If the enclosing chain is broken, cyclic or yields
            no components.
    """

    components: list[str] = []
    visited: set[int] = set()
    current: Binding | None = binding

    while current is not None:
        if id(current) in visited:
            raise BrokenChainError(
                f"Enclosing chain of {binding!r} loops back to {current!r}"
            )
        visited.add(id(current))

        match current.kind:
            case BindingKind.PACKAGE:
                if current.name:
                    components.append(current.name)
                current = None
            case BindingKind.TYPE:
                components.append(_type_name(current) + _TYPE_SUFFIX)
                current = current.enclosing
            case BindingKind.METHOD:
                if not current.name:
                    raise BrokenChainError("Method binding has no name")
                components.append(current.name + _parameter_suffix(current))
                current = _require_enclosing(current)
            case BindingKind.CONSTRUCTOR:
                owner = _require_enclosing(current)
                if owner.kind is not BindingKind.TYPE:
                    raise BrokenChainError(
                        f"Constructor enclosed by {owner.kind.value}, not a type"
                    )
                visited.add(id(owner))
                components.append(
                    _type_name(owner) + _INIT_SUFFIX + _parameter_suffix(current)
                )
                current = owner.enclosing
            case BindingKind.FIELD | BindingKind.VARIABLE:
                if not current.name:
                    raise BrokenChainError(
                        f"{current.kind.value.capitalize()} binding has no name"
                    )
                components.append(current.name)
                current = _require_enclosing(current)
            case _:
                assert_never(current.kind)

    if not components:
        raise BrokenChainError(f"Binding {binding!r} yields an empty path")
    components.reverse()
    return ".".join(components)


def path_key(binding: Binding) -> PathKey:
    """Return the :class:`PathKey` identifying ``binding``."""

    return PathKey(origin=binding.origin, path=build_path(binding))
