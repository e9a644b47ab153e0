"""Structural parser plugins and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import ParsedFile, SourceFile
from .base import SourceParser
from .rust import RustParser

_ENTRY_POINT_GROUP = "docsync.parsers"

_BUILTIN_FACTORIES: dict[str, Callable[[], SourceParser]] = {
    "rust": RustParser,
}


def discover_parsers(enabled: Sequence[str] | None = None) -> List[SourceParser]:
    """Return instantiated parsers, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    parsers: List[SourceParser] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], SourceParser]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, SourceParser):
            raise TypeError(f"Parser factory for '{name}' did not return a SourceParser instance")
        parsers.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - broken third-party plugin
            raise RuntimeError(f"Failed to load parser entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> SourceParser:
            return _coerce_parser(obj)

        _add(name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown parsers requested: {missing}")

    return parsers


def _coerce_parser(obj: object) -> SourceParser:
    if isinstance(obj, SourceParser):
        return obj
    if isinstance(obj, type) and issubclass(obj, SourceParser):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, SourceParser):
            return instance
    raise TypeError("Parser entry point must be a SourceParser subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


class ParserRegistry:
    """Routes each source file to the first parser that supports it."""

    def __init__(self, parsers: Sequence[SourceParser] | None = None) -> None:
        self._parsers: List[SourceParser] = list(parsers) if parsers is not None else discover_parsers()
        self._by_extension: Dict[str, SourceParser] = {}
        for parser in self._parsers:
            for extension in parser.extensions:
                self._by_extension.setdefault(extension.lower(), parser)

    @property
    def extensions(self) -> Tuple[str, ...]:
        return tuple(self._by_extension)

    def parser_for(self, source: SourceFile) -> Optional[SourceParser]:
        for parser in self._parsers:
            if parser.supports(source):
                return parser
        return None

    def parse(self, source: SourceFile) -> Optional[ParsedFile]:
        """Parse ``source``; ``None`` when no parser claims the file."""
        parser = self.parser_for(source)
        if parser is None:
            return None
        return parser.parse(source)


__all__ = [
    "ParserRegistry",
    "RustParser",
    "SourceParser",
    "discover_parsers",
]
