"""Record types produced by the symbol-graph emitter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "ANY_ORIGIN",
    "Span",
    "Locator",
    "PathKey",
    "Def",
    "Ref",
    "Doc",
    "Diagnostic",
    "DefTarget",
]

ANY_ORIGIN = "*"
"""Reserved origin matching a Def with the same path from any origin."""


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open ``[start, end)`` character range inside a source file."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    def contains(self, other: "Span") -> bool:
        """Return ``True`` when ``other`` lies entirely inside this span."""

        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True, slots=True)
class Locator:
    """Archive or class-file URI naming where an external binding lives.

    Example:
        >>> loc = Locator("jar:file:/libs/a.jar!/com/a/X$Inner.class")
        >>> loc.archive_path, loc.top_level_class
        ('/libs/a.jar', 'com/a/X')
    """

    uri: str

    @property
    def scheme(self) -> str:
        scheme, _, _ = self.uri.partition(":")
        return scheme

    @property
    def is_archive(self) -> bool:
        return self.scheme == "jar"

    @property
    def archive_uri(self) -> str:
        """The URI with any ``!/entry`` suffix removed."""

        if not self.is_archive:
            return self.uri
        head, sep, _ = self.uri.rpartition("!")
        return head if sep else self.uri

    @property
    def archive_path(self) -> str | None:
        """Filesystem path of the archive for ``jar:file:`` locators."""

        if not self.is_archive:
            return None
        inner = self.archive_uri[len("jar:") :]
        if not inner.startswith("file:"):
            return None
        return _strip_file_scheme(inner)

    @property
    def file_path(self) -> str | None:
        """Filesystem path for plain ``file:`` locators."""

        if self.scheme != "file":
            return None
        return _strip_file_scheme(self.uri)

    @property
    def archive_name(self) -> str | None:
        path = self.archive_path
        if path is None:
            return None
        return path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def entry(self) -> str | None:
        """Path inside the archive, without the leading slash."""

        if not self.is_archive:
            return None
        _, sep, tail = self.uri.rpartition("!")
        if not sep:
            return None
        return tail.lstrip("/") or None

    @property
    def top_level_class(self) -> str | None:
        """Entry of the top-level class without inner suffix or extension."""

        entry = self.entry
        if entry is None:
            return None
        folder, _, leaf = entry.rpartition("/")
        leaf = leaf.split("$", 1)[0].split(".", 1)[0]
        return f"{folder}/{leaf}" if folder else leaf

    def __str__(self) -> str:
        return self.uri


def _strip_file_scheme(uri: str) -> str:
    path = uri[len("file:") :]
    if path.startswith("//"):
        path = path[2:]
    return path


@dataclass(frozen=True, slots=True)
class PathKey:
    """Identity of a Def: its origin locator (``None`` for local) and path."""

    origin: str | None
    path: str

    @property
    def is_wildcard(self) -> bool:
        return self.origin == ANY_ORIGIN

    def matches(self, other: "PathKey") -> bool:
        """Return ``True`` if ``other`` is selected by this key.

        A wildcard origin on this key matches ``other`` whatever its origin.
        """

        if self.path != other.path:
            return False
        return self.is_wildcard or self.origin == other.origin

    def format_path(self) -> str:
        """Render the path slash-separated with inner ``$`` shown as ``.``.

        Example:
            >>> PathKey(None, "foo.Bar:type.baz:java$lang$String").format_path()
            'foo/Bar:type/baz:java.lang.String'
        """

        return self.path.replace(".", "/").replace("$", ".")

    def __str__(self) -> str:
        if self.origin is None:
            return self.path
        return f"{self.origin}#{self.path}"


@dataclass(frozen=True, slots=True)
class DefTarget:
    """Repository coordinates a Ref's Def was resolved to."""

    repo: str | None
    unit: str | None
    unit_type: str | None


@dataclass(frozen=True, slots=True)
class Def:
    """Declaration record emitted once per :class:`PathKey`."""

    key: PathKey
    kind: str
    name: str
    file: str
    ident_span: Span | None
    decl_span: Span | None
    modifiers: tuple[str, ...] = ()
    package: str = ""
    doc: str | None = None
    type_text: str | None = None

    def __post_init__(self) -> None:
        if (
            self.ident_span is not None
            and self.decl_span is not None
            and not self.decl_span.contains(self.ident_span)
        ):
            raise ValueError(
                f"{self.key}: identifier span {self.ident_span} lies outside "
                f"declaration span {self.decl_span}"
            )

    @property
    def exported(self) -> bool:
        return "public" in self.modifiers

    @property
    def local(self) -> bool:
        return not self.exported and self.kind == "variable"


@dataclass(frozen=True, slots=True)
class Ref:
    """Occurrence of a Def at ``span`` in ``file``."""

    key: PathKey
    file: str
    span: Span
    is_def_site: bool = False
    target: DefTarget | None = field(default=None, compare=False)

    @property
    def identity(self) -> tuple[PathKey, str, Span]:
        return (self.key, self.file, self.span)


@dataclass(frozen=True, slots=True)
class Doc:
    """Documentation attached to a Def."""

    key: PathKey
    file: str
    data: str
    format: str = "text/html"

    @classmethod
    def from_def(cls, definition: Def) -> "Doc":
        return cls(
            key=definition.key,
            file=definition.file,
            data=definition.doc or "",
        )


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A skipped syntax node and the reason it was skipped."""

    file: str
    node_kind: str
    start: int | None
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "node_kind": self.node_kind,
            "start": self.start,
            "code": self.code,
            "message": self.message,
        }
