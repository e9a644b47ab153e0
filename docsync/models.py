"""Core data models shared across docsync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .errors import ResolutionError

PATH_SEPARATOR = "::"


class DeclKind(str, Enum):
    """Kinds of declarations recovered by the structural parser."""

    MODULE = "module"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    VARIANT = "variant"
    FIELD = "field"
    FUNCTION = "function"
    CONSTANT = "constant"
    STATIC = "static"
    TYPE_ALIAS = "type_alias"
    TRAIT = "trait"
    MACRO = "macro"
    IMPL = "impl"

    @property
    def namespace(self) -> str:
        """Name resolution namespace the kind lives in."""
        return _NAMESPACES[self]


_NAMESPACES = {
    DeclKind.MODULE: "type",
    DeclKind.STRUCT: "type",
    DeclKind.UNION: "type",
    DeclKind.ENUM: "type",
    DeclKind.VARIANT: "type",
    DeclKind.TRAIT: "type",
    DeclKind.TYPE_ALIAS: "type",
    DeclKind.IMPL: "type",
    DeclKind.FIELD: "field",
    DeclKind.FUNCTION: "value",
    DeclKind.CONSTANT: "value",
    DeclKind.STATIC: "value",
    DeclKind.MACRO: "macro",
}

# Lookup preference when one path names declarations in several namespaces.
NAMESPACE_ORDER: Tuple[str, ...] = ("type", "field", "value", "macro")


@dataclass(frozen=True)
class SourceLocation:
    """File and line a declaration was read from."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass
class SourceFile:
    """Raw text of one source file plus where it sits in the unit."""

    path: Path
    relative: str
    module_path: Tuple[str, ...]
    text: str


@dataclass
class SourceUnit:
    """A logical unit (crate) rooted at one directory."""

    name: str
    root: Path
    source_root: Path
    files: List[SourceFile] = field(default_factory=list)


@dataclass
class DeclarationNode:
    """One named declaration and its nested declarations."""

    name: str
    kind: DeclKind
    doc_text: Optional[str] = None
    children: List["DeclarationNode"] = field(default_factory=list)
    location: Optional[SourceLocation] = None
    inner_doc: Optional[str] = None
    conditional: bool = False
    trait_impl: bool = False

    @property
    def namespace(self) -> str:
        return self.kind.namespace

    @property
    def documentation(self) -> Optional[str]:
        """Outer doc followed by inner doc; ``None`` when neither exists."""
        parts = [part for part in (self.doc_text, self.inner_doc) if part is not None]
        if not parts:
            return None
        return "\n".join(part for part in parts if part)

    def child(self, name: str, namespace: str | None = None) -> Optional["DeclarationNode"]:
        for candidate in self.children:
            if candidate.name != name:
                continue
            if namespace is None or candidate.namespace == namespace:
                return candidate
        return None


@dataclass
class Reexport:
    """A ``pub use`` entry that makes ``target`` reachable under ``name``."""

    target: Tuple[str, ...]
    name: Optional[str]
    glob: bool = False
    # Module the ``use`` sits in, relative to the file's own module.
    scope: Tuple[str, ...] = ()
    location: Optional[SourceLocation] = None


@dataclass
class ParseAmbiguity:
    """A source region the parser skipped or could not read."""

    file: str
    start_line: int
    end_line: int
    reason: str


@dataclass
class ParsedFile:
    """Declarations recovered from one file."""

    nodes: List[DeclarationNode] = field(default_factory=list)
    inner_doc: Optional[str] = None
    reexports: List[Reexport] = field(default_factory=list)
    gaps: List[ParseAmbiguity] = field(default_factory=list)


@dataclass(frozen=True)
class DocPath:
    """A dotted path split into segments."""

    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, raw: str) -> "DocPath":
        text = raw.strip()
        if PATH_SEPARATOR in text:
            parts = text.split(PATH_SEPARATOR)
        elif "." in text:
            parts = text.split(".")
        else:
            parts = [text] if text else []
        segments = tuple(part.strip() for part in parts)
        if any(not segment for segment in segments):
            raise ValueError(f"Malformed path: {raw!r}")
        return cls(segments=segments)

    def head_tail(self) -> Tuple[str, "DocPath"]:
        if not self.segments:
            raise ValueError("Cannot split an empty path")
        return self.segments[0], DocPath(self.segments[1:])

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(self.segments)


@dataclass
class ResolutionResult:
    """Outcome of one lookup: doc text or the error explaining why there is none."""

    unit: str
    path: str
    text: Optional[str] = None
    error: Optional["ResolutionError"] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        return self.text or ""


def join_path(segments: Tuple[str, ...] | List[str]) -> str:
    return PATH_SEPARATOR.join(segments)
