"""Tree emitter turning resolved compilation units into Defs and Refs.

Each compilation unit is walked once, depth first, by a private walker. The
walker keeps the per-unit stacks (enclosing classes, parameterized type
starts) while the run-wide deduplication sets live in :class:`EmitState` so
several walkers may share them from different threads.

Node handlers raise :class:`~symgraph.graph.errors.NodeProcessingError`
subclasses. The walker turns each of those into a :class:`Diagnostic`, skips
the offending node's own records and keeps walking its children and
siblings.
"""

from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from symgraph.core.logging import Logger, get_logger, propagate

from .errors import (
    BrokenChainError,
    ErrorBudgetExceeded,
    FatalInputError,
    MissingBindingError,
    MissingBoundsError,
    NodeProcessingError,
)
from .forest import (
    Binding,
    BindingKind,
    CompilationUnit,
    Forest,
    NodeKind,
    SyntaxNode,
)
from .models import Def, Diagnostic, PathKey, Ref, Span
from .paths import path_key
from .sink import GraphSink
from .spans import SpanLocator, is_identifier

__all__ = [
    "JAVA_LANG_OBJECT",
    "EmitState",
    "UnitResult",
    "TreeEmitter",
    "emit_forest",
]

JAVA_LANG_OBJECT = PathKey(
    origin="jar:file:/jre/lib/rt.jar",
    path="java.lang.Object:type",
)
"""Implicit supertype of classes without an ``extends`` clause."""

_THIS = "this"
_SUPER = "super"
_CLASS = "class"


class EmitState:
    """Run-scoped deduplication sets shared by every unit walker.

    Every ``claim_*`` call is an atomic check-and-insert: it returns ``True``
    only for the first caller presenting a given value.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._defs: set[PathKey] = set()
        self._refs: set[tuple[PathKey, str, Span]] = set()
        self._packages: set[str] = set()

    def claim_def(self, key: PathKey) -> bool:
        return self._claim(self._defs, key)

    def claim_ref(self, identity: tuple[PathKey, str, Span]) -> bool:
        return self._claim(self._refs, identity)

    def claim_package(self, name: str) -> bool:
        return self._claim(self._packages, name)

    def _claim(self, seen: set, value: object) -> bool:
        with self._lock:
            if value in seen:
                return False
            seen.add(value)
            return True


@dataclass(slots=True)
class UnitResult:
    """Outcome of walking one compilation unit."""

    file: str
    defs: int = 0
    refs: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: str | None = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class _ClassFrame:
    node: SyntaxNode
    binding: Binding | None
    key: PathKey | None
    parent_key: PathKey | None


class TreeEmitter:
    """Emit Defs and Refs for compilation units into a :class:`GraphSink`.

    Args:
        sink: Destination for emitted records and diagnostics.
        state: Deduplication state shared across the run.
        package_info_packages: Packages whose Def must come from their
            ``package-info`` file.
        error_budget: Skipped nodes tolerated per unit; ``None`` means
            unlimited.
        logger: Optional structured logger.
    """

    def __init__(
        self,
        sink: GraphSink,
        state: EmitState | None = None,
        *,
        package_info_packages: Iterable[str] = (),
        error_budget: int | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.sink = sink
        self.state = state or EmitState()
        self.package_info_packages = frozenset(package_info_packages)
        self.error_budget = error_budget
        self.logger = logger or get_logger(__name__, component="emitter")

    def emit_unit(self, unit: CompilationUnit) -> UnitResult:
        """Walk ``unit`` and return what it produced.

        Raises:
            ErrorBudgetExceeded: If the unit skips more nodes than allowed.
            FatalInputError: If the syntax tree nests deeper than the
                interpreter stack allows.
        """

        walker = _UnitWalker(self, unit)
        try:
            walker.run()
        except RecursionError as exc:
            raise FatalInputError(
                f"{unit.file}: syntax tree nests too deeply to walk"
            ) from exc
        self.logger.debug(
            "graph-unit-complete",
            file=unit.file,
            defs=walker.result.defs,
            refs=walker.result.refs,
            skipped=len(walker.result.diagnostics),
        )
        return walker.result


class _UnitWalker:
    def __init__(self, emitter: TreeEmitter, unit: CompilationUnit) -> None:
        self._emitter = emitter
        self._sink = emitter.sink
        self._state = emitter.state
        self._unit = unit
        self._file = unit.file
        self._package = unit.package_name
        self._spans = SpanLocator(unit.text, file=unit.file)
        self._logger = emitter.logger.bind(file=unit.file)
        self._frames: list[_ClassFrame] = []
        self._parameterized_starts: list[int] = []
        self.result = UnitResult(file=unit.file)

    def run(self) -> None:
        package_node = self._unit.package_node
        if package_node is not None:
            self._attempt(package_node, self._emit_package_def)
        for child in self._unit.root.children:
            self._visit(child)

    # -- dispatch ---------------------------------------------------------

    def _visit(self, node: SyntaxNode) -> None:
        match node.kind:
            case NodeKind.PACKAGE | NodeKind.IMPORT:
                for expression in node.children:
                    self._scan_qualified_name(expression)
            case NodeKind.CLASS:
                self._visit_class(node)
            case NodeKind.METHOD:
                self._attempt(node, self._emit_method)
                self._descend(node)
            case NodeKind.VARIABLE:
                self._attempt(node, self._emit_variable)
                self._descend(node)
            case NodeKind.IDENTIFIER:
                self._attempt(node, self._emit_identifier_ref)
                self._descend(node)
            case NodeKind.MEMBER_SELECT:
                self._attempt(node, self._emit_member_select_ref)
                self._descend(node)
            case NodeKind.PARAMETERIZED_TYPE:
                self._visit_parameterized(node)
            case NodeKind.COMPILATION_UNIT | NodeKind.OTHER:
                self._descend(node)

    def _descend(self, node: SyntaxNode) -> None:
        for child in node.children:
            self._visit(child)

    def _attempt(
        self,
        node: SyntaxNode,
        action: Callable[[SyntaxNode], None],
    ) -> None:
        try:
            action(node)
        except NodeProcessingError as exc:
            self._record(node, exc)

    def _record(self, node: SyntaxNode, exc: NodeProcessingError) -> None:
        diagnostic = Diagnostic(
            file=self._file,
            node_kind=node.kind.value,
            start=node.start,
            code=exc.code,
            message=str(exc),
        )
        self.result.diagnostics.append(diagnostic)
        self._sink.add_diagnostic(diagnostic)
        self._logger.warning(
            "graph-node-skipped",
            node_kind=node.kind.value,
            offset=node.start,
            code=exc.code,
            error=str(exc),
        )
        budget = self._emitter.error_budget
        skipped = len(self.result.diagnostics)
        if budget is not None and skipped > budget:
            raise ErrorBudgetExceeded(self._file, skipped, budget)

    # -- emission helpers -------------------------------------------------

    def _emit_ref(self, key: PathKey, span: Span, *, is_def_site: bool) -> None:
        ref = Ref(key=key, file=self._file, span=span, is_def_site=is_def_site)
        if not self._state.claim_ref(ref.identity):
            return
        self._sink.add_ref(ref)
        self.result.refs += 1

    def _emit_def(
        self,
        node: SyntaxNode,
        *,
        key: PathKey,
        kind: str,
        name: str,
        ident: Span | None,
        decl: Span | None,
        self_ref: bool = True,
        doc: str | None = None,
    ) -> None:
        if not self._state.claim_def(key):
            return
        definition = Def(
            key=key,
            kind=kind,
            name=name,
            file=self._file,
            ident_span=ident,
            decl_span=decl,
            modifiers=node.modifiers,
            package=self._package,
            doc=doc if doc is not None else node.doc,
            type_text=node.type_text,
        )
        self._sink.add_def(definition)
        self.result.defs += 1
        if self_ref and ident is not None:
            self._emit_ref(key, ident, is_def_site=True)

    @staticmethod
    def _require_binding(node: SyntaxNode) -> Binding:
        if node.binding is None:
            raise MissingBindingError(
                f"{node.kind.value} node {node.name or ''!r} has no binding"
            )
        return node.binding

    def _innermost_parameterized(self) -> int | None:
        if not self._parameterized_starts:
            return None
        return self._parameterized_starts[-1]

    # -- packages and imports ---------------------------------------------

    def _emit_package_def(self, node: SyntaxNode) -> None:
        name = self._package
        if not name:
            return
        deferred = name in self._emitter.package_info_packages
        if deferred and not self._unit.is_package_info:
            return
        expression = node.children[0] if node.children else node
        simple = name.rsplit(".", 1)[-1]
        decl = self._spans.node_span(expression)
        ident = self._spans.name_span(simple, expression, last=True)
        if not self._state.claim_package(name):
            return
        self._emit_def(
            node,
            key=PathKey(origin=None, path=name),
            kind=BindingKind.PACKAGE.value,
            name=simple,
            ident=ident,
            decl=decl,
            self_ref=False,
        )

    def _scan_qualified_name(self, expression: SyntaxNode) -> None:
        if expression.kind in (NodeKind.IDENTIFIER, NodeKind.MEMBER_SELECT):
            self._attempt(expression, self._emit_segment_ref)
        for child in expression.children:
            self._scan_qualified_name(child)

    def _emit_segment_ref(self, node: SyntaxNode) -> None:
        name = node.name or ""
        if node.binding is None or not is_identifier(name):
            return
        key = path_key(node.binding)
        span = self._spans.name_span(name, node)
        self._emit_ref(key, span, is_def_site=False)

    # -- declarations -----------------------------------------------------

    def _visit_class(self, node: SyntaxNode) -> None:
        frame = _ClassFrame(
            node=node,
            binding=node.binding,
            key=None,
            parent_key=self._supertype_key(node.binding),
        )
        try:
            frame.key = self._emit_class(node)
        except NodeProcessingError as exc:
            self._record(node, exc)
        self._frames.append(frame)
        try:
            self._descend(node)
        finally:
            self._frames.pop()

    def _emit_class(self, node: SyntaxNode) -> PathKey:
        binding = self._require_binding(node)
        key = path_key(binding)
        decl = self._spans.node_span(node)
        ident = None
        if not binding.is_anonymous:
            ident = self._spans.name_span(binding.name, node)
        self._emit_def(
            node,
            key=key,
            kind=binding.kind.value,
            name=binding.name,
            ident=ident,
            decl=decl,
        )
        return key

    def _emit_method(self, node: SyntaxNode) -> None:
        binding = self._require_binding(node)
        key = path_key(binding)
        if binding.kind is not BindingKind.CONSTRUCTOR:
            ident = self._spans.name_span(binding.name, node)
            decl = self._spans.node_span(node)
            self._emit_def(
                node,
                key=key,
                kind=binding.kind.value,
                name=binding.name,
                ident=ident,
                decl=decl,
            )
            return

        owner = binding.enclosing
        if owner is None:
            raise BrokenChainError(
                f"Constructor {binding.name!r} has no enclosing type"
            )
        if node.has_bounds:
            ident = self._spans.name_span(owner.name, node)
            decl = self._spans.node_span(node)
            self._emit_def(
                node,
                key=key,
                kind=binding.kind.value,
                name=owner.name,
                ident=ident,
                decl=decl,
            )
            return

        if owner.is_anonymous:
            self._logger.debug(
                "graph-synthetic-constructor-skipped", path=key.path
            )
            return
        class_node = self._class_node_for(owner)
        span = self._spans.name_span(owner.name, class_node)
        self._emit_def(
            node,
            key=key,
            kind=binding.kind.value,
            name=owner.name,
            ident=span,
            decl=span,
            self_ref=False,
        )

    def _class_node_for(self, owner: Binding) -> SyntaxNode:
        for frame in reversed(self._frames):
            if frame.binding is owner:
                return frame.node
        raise MissingBoundsError(
            f"Synthetic constructor of {owner.name!r} is outside its class"
        )

    def _emit_variable(self, node: SyntaxNode) -> None:
        binding = self._require_binding(node)
        key = path_key(binding)
        ident = self._spans.name_span(binding.name, node)
        decl = self._spans.node_span(node)
        self._emit_def(
            node,
            key=key,
            kind=binding.kind.value,
            name=binding.name,
            ident=ident,
            decl=decl,
        )

    # -- expressions ------------------------------------------------------

    def _emit_identifier_ref(self, node: SyntaxNode) -> None:
        name = node.name or ""
        if not is_identifier(name) or name == _CLASS:
            return
        if not node.has_bounds:
            self._logger.debug("graph-identifier-unbounded", name=name)
            return
        span = self._spans.node_span(node)
        frame = self._frames[-1] if self._frames else None
        if name == _THIS:
            if frame is not None and frame.key is not None:
                self._emit_ref(frame.key, span, is_def_site=False)
            return
        if name == _SUPER:
            if frame is not None and frame.parent_key is not None:
                self._emit_ref(frame.parent_key, span, is_def_site=False)
            return
        if node.binding is None:
            self._logger.debug(
                "graph-identifier-unresolved", name=name, offset=node.start
            )
            return
        self._emit_ref(path_key(node.binding), span, is_def_site=False)

    def _emit_member_select_ref(self, node: SyntaxNode) -> None:
        name = node.name or ""
        if not is_identifier(name) or name == _CLASS or node.end is None:
            return
        if name == _THIS:
            key = self._qualifier_key(node, supertype=False)
        elif name == _SUPER:
            key = self._qualifier_key(node, supertype=True)
        elif node.binding is not None:
            key = path_key(node.binding)
        else:
            self._logger.debug(
                "graph-member-unresolved", name=name, offset=node.start
            )
            return
        if key is None:
            return
        span = self._spans.name_span(
            name, node, fallback_start=self._innermost_parameterized()
        )
        self._emit_ref(key, span, is_def_site=False)

    def _qualifier_key(
        self,
        node: SyntaxNode,
        *,
        supertype: bool,
    ) -> PathKey | None:
        """Key of ``Outer`` in ``Outer.this`` or its supertype for ``super``."""

        qualifier = node.children[0] if node.children else None
        binding = qualifier.binding if qualifier is not None else None
        if binding is None or binding.kind is not BindingKind.TYPE:
            return None
        if supertype:
            return self._supertype_key(binding)
        return path_key(binding)

    def _supertype_key(self, binding: Binding | None) -> PathKey:
        if binding is None or binding.supertype is None:
            return JAVA_LANG_OBJECT
        try:
            return path_key(binding.supertype)
        except BrokenChainError:
            return JAVA_LANG_OBJECT

    def _visit_parameterized(self, node: SyntaxNode) -> None:
        if node.start is None:
            self._descend(node)
            return
        self._parameterized_starts.append(node.start)
        try:
            self._descend(node)
        finally:
            self._parameterized_starts.pop()


def emit_forest(
    forest: Forest,
    sink: GraphSink,
    *,
    state: EmitState | None = None,
    error_budget: int | None = None,
    workers: int = 1,
    logger: Logger | None = None,
) -> list[UnitResult]:
    """Walk every compilation unit of ``forest`` into ``sink``.

    A unit aborted by :class:`FatalInputError` (including an exhausted error
    budget) is logged and reported in its :class:`UnitResult`; the remaining
    units still run.
    """

    log = logger or get_logger(__name__, component="emitter")
    emitter = TreeEmitter(
        sink,
        state,
        package_info_packages=forest.package_info_packages(),
        error_budget=error_budget,
        logger=log,
    )
    for unit in forest.units:
        sink.register_source(unit.file, unit.text)

    def walk(unit: CompilationUnit) -> UnitResult:
        try:
            return emitter.emit_unit(unit)
        except FatalInputError as exc:
            log.error("graph-unit-aborted", file=unit.file, error=str(exc))
            return UnitResult(file=unit.file, error=str(exc))

    if workers <= 1 or len(forest.units) <= 1:
        return [walk(unit) for unit in forest.units]
    return _walk_concurrent(forest.units, walk, workers=workers, logger=log)


def _walk_concurrent(
    units: Sequence[CompilationUnit],
    walk: Callable[[CompilationUnit], UnitResult],
    *,
    workers: int,
    logger: Logger,
) -> list[UnitResult]:
    results: dict[int, UnitResult] = {}
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=workers,
        thread_name_prefix="graph",
    ) as executor:
        task = propagate(walk)
        future_map: dict[concurrent.futures.Future[UnitResult], int] = {
            executor.submit(task, unit): index
            for index, unit in enumerate(units)
        }
        for future in concurrent.futures.as_completed(future_map):
            index = future_map[future]
            try:
                results[index] = future.result()
            except Exception as exc:  # pragma: no cover - executor path
                file = units[index].file
                logger.exception(
                    "graph-unit-thread-error", file=file, error=str(exc)
                )
                results[index] = UnitResult(
                    file=file, error=f"Unhandled error: {exc}"
                )
    return [results[index] for index in range(len(units))]
