"""Resolution engine answering documentation paths against registered units."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence

from .errors import MissingDocError, PathNotFoundError, ResolutionError, UnknownUnitError
from .index import SymbolIndex
from .loader import SourceLoader
from .logging import get_logger
from .models import DocPath, ResolutionResult, join_path
from .parsing import ParserRegistry

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .config import DocSyncConfig


class UnitState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    INDEXED = "indexed"
    FAILED = "failed"


@dataclass
class _UnitSlot:
    name: str
    root: Path
    state: UnitState = UnitState.UNLOADED
    index: Optional[SymbolIndex] = None
    error: Optional[ResolutionError] = None
    lock: threading.Lock = field(default_factory=threading.Lock)


def _normalise(name: str) -> str:
    return name.replace("-", "_")


class DocResolver:
    """Resolves ``unit::item::path`` strings to documentation text.

    Each unit is loaded, parsed and indexed on first use and never again for
    the lifetime of the resolver. A unit that failed to build keeps failing
    with the same error without being re-read.
    """

    def __init__(
        self,
        units: Mapping[str, Path | str],
        *,
        loader: SourceLoader | None = None,
        parsers: ParserRegistry | None = None,
        allow_empty_docs: bool = False,
    ) -> None:
        self.parsers = parsers or ParserRegistry()
        self.loader = loader or SourceLoader(extensions=self.parsers.extensions)
        self.allow_empty_docs = allow_empty_docs
        self.logger = get_logger("resolver")
        self._slots: Dict[str, _UnitSlot] = {}
        for name, root in units.items():
            key = _normalise(name)
            if key in self._slots:
                raise ValueError(f"Unit '{name}' registered twice")
            self._slots[key] = _UnitSlot(name=name, root=Path(root))

    @classmethod
    def from_config(cls, config: "DocSyncConfig", **overrides: object) -> "DocResolver":
        """Build a resolver for the units and options in ``config``."""
        parsers = ParserRegistry()
        loader = SourceLoader(extensions=parsers.extensions, exclude_paths=config.exclude_paths)
        options: Dict[str, object] = {
            "loader": loader,
            "parsers": parsers,
            "allow_empty_docs": config.allow_empty_docs,
        }
        options.update(overrides)
        return cls(config.units, **options)  # type: ignore[arg-type]

    def units(self) -> List[str]:
        return sorted(slot.name for slot in self._slots.values())

    def state(self, unit: str) -> UnitState:
        return self._slot(unit).state

    def index(self, unit: str) -> SymbolIndex:
        """Return the symbol index of ``unit``, building it on first use."""
        return self._index_for(self._slot(unit))

    def resolve(self, unit: str, item_path: str | Sequence[str]) -> str:
        """Return the documentation of ``item_path`` inside ``unit``.

        An empty path names the unit's root module.
        """
        slot = self._slot(unit, item_path)
        segments = self._segments(slot, item_path)
        index = self._index_for(slot)
        node = index.lookup(segments)
        full_path = join_path((slot.name, *segments))

        text = node.documentation
        if text is None:
            raise MissingDocError(slot.name, full_path, location=node.location)
        if not text and not self.allow_empty_docs:
            raise MissingDocError(slot.name, full_path, location=node.location, empty=True)
        return text

    def resolve_path(self, full_path: str) -> str:
        """Resolve a path whose first segment names the unit."""
        try:
            unit, rest = DocPath.parse(full_path).head_tail()
        except ValueError:
            raise UnknownUnitError(full_path, self.units(), path=full_path) from None
        return self.resolve(unit, rest.segments)

    def lookup(self, unit: str, item_path: str | Sequence[str]) -> ResolutionResult:
        """Like :meth:`resolve` but reports failures in the result instead of raising."""
        path = item_path if isinstance(item_path, str) else join_path(item_path)
        try:
            text = self.resolve(unit, item_path)
        except ResolutionError as exc:
            return ResolutionResult(unit=unit, path=path, error=exc)
        return ResolutionResult(unit=unit, path=path, text=text)

    def lookup_path(self, full_path: str) -> ResolutionResult:
        try:
            unit, rest = DocPath.parse(full_path).head_tail()
        except ValueError:
            error = UnknownUnitError(full_path, self.units(), path=full_path)
            return ResolutionResult(unit=full_path, path=full_path, error=error)
        return self.lookup(unit, rest.segments)

    def _slot(self, unit: str, item_path: str | Sequence[str] | None = None) -> _UnitSlot:
        slot = self._slots.get(_normalise(unit))
        if slot is None:
            path = None
            if item_path is not None:
                tail = item_path if isinstance(item_path, str) else join_path(item_path)
                path = join_path((unit, tail)) if tail else unit
            raise UnknownUnitError(unit, self.units(), path=path)
        return slot

    def _segments(self, slot: _UnitSlot, item_path: str | Sequence[str]) -> Sequence[str]:
        if not isinstance(item_path, str):
            return tuple(item_path)
        try:
            return DocPath.parse(item_path).segments
        except ValueError:
            full_path = join_path((slot.name, item_path))
            raise PathNotFoundError(
                slot.name, full_path, resolved_prefix=slot.name, segment=item_path
            ) from None

    def _index_for(self, slot: _UnitSlot) -> SymbolIndex:
        with slot.lock:
            if slot.state is UnitState.INDEXED and slot.index is not None:
                return slot.index
            if slot.state is UnitState.FAILED and slot.error is not None:
                raise slot.error

            slot.state = UnitState.LOADING
            self.logger.debug("Loading unit %s from %s", slot.name, slot.root)
            try:
                index = self._build(slot)
            except ResolutionError as exc:
                slot.state = UnitState.FAILED
                slot.error = exc
                self.logger.warning("Unit %s failed to load: %s", slot.name, exc)
                raise
            slot.index = index
            slot.state = UnitState.INDEXED
            self.logger.info("Indexed unit %s (%d paths)", slot.name, len(index))
            return index

    def _build(self, slot: _UnitSlot) -> SymbolIndex:
        unit = self.loader.load(slot.name, slot.root)
        parsed = []
        for source in unit.files:
            result = self.parsers.parse(source)
            if result is not None:
                parsed.append((source, result))
        return SymbolIndex.build(slot.name, parsed)


__all__ = ["DocResolver", "UnitState"]
