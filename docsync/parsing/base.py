"""Base class for structural parser plugins."""

from abc import ABC, abstractmethod
from typing import Tuple

from ..models import ParsedFile, SourceFile


class SourceParser(ABC):
    """Contract for parsers that turn one source file into a declaration forest."""

    extensions: Tuple[str, ...] = ()

    def supports(self, source: SourceFile) -> bool:
        """Return True when this parser understands the file."""
        return source.relative.lower().endswith(self.extensions)

    @abstractmethod
    def parse(self, source: SourceFile) -> ParsedFile:
        """Recover the declarations of ``source`` without aborting on unreadable regions."""
