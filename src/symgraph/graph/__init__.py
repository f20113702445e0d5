"""Symbol-graph extraction from resolved syntax forests."""

from __future__ import annotations

from .emitter import EmitState, TreeEmitter, UnitResult, emit_forest
from .errors import (
    BrokenChainError,
    ErrorBudgetExceeded,
    FatalInputError,
    NodeProcessingError,
    SpanError,
)
from .forest import (
    Binding,
    BindingKind,
    CompilationUnit,
    Forest,
    NodeKind,
    SyntaxNode,
    load_forest,
    read_forest,
)
from .models import (
    ANY_ORIGIN,
    Def,
    Diagnostic,
    Doc,
    Locator,
    PathKey,
    Ref,
    Span,
)
from .offsets import ByteOffsets, byte_offsets
from .paths import build_path, path_key
from .sink import GraphSink
from .spans import SpanLocator

__all__ = [
    "ANY_ORIGIN",
    "Binding",
    "BindingKind",
    "BrokenChainError",
    "ByteOffsets",
    "CompilationUnit",
    "Def",
    "Diagnostic",
    "Doc",
    "EmitState",
    "ErrorBudgetExceeded",
    "FatalInputError",
    "Forest",
    "GraphSink",
    "Locator",
    "NodeKind",
    "NodeProcessingError",
    "PathKey",
    "Ref",
    "Span",
    "SpanError",
    "SpanLocator",
    "SyntaxNode",
    "TreeEmitter",
    "UnitResult",
    "build_path",
    "byte_offsets",
    "emit_forest",
    "load_forest",
    "path_key",
    "read_forest",
]
