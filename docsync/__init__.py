"""docsync: resolve item paths in source crates to their doc comments."""

from .errors import (
    DuplicateDeclarationError,
    MissingDocError,
    PathNotFoundError,
    ResolutionError,
    SourceReadError,
    UnknownUnitError,
)
from .models import DocPath, ResolutionResult
from .resolver import DocResolver, UnitState

__version__ = "0.1.0"

__all__ = [
    "DocPath",
    "DocResolver",
    "DuplicateDeclarationError",
    "MissingDocError",
    "PathNotFoundError",
    "ResolutionError",
    "ResolutionResult",
    "SourceReadError",
    "UnitState",
    "UnknownUnitError",
]
