"""Errors raised while loading units and resolving documentation paths."""

from __future__ import annotations

from typing import Optional, Sequence

from .models import SourceLocation


class ResolutionError(RuntimeError):
    """Base class for every failure that must fail the documentation build."""

    kind = "ResolutionError"

    def __init__(self, message: str, *, unit: str | None = None, path: str | None = None) -> None:
        super().__init__(message)
        self.unit = unit
        self.path = path


class UnknownUnitError(ResolutionError):
    """Raised when a path names a unit that was never configured."""

    kind = "UnknownUnit"

    def __init__(self, unit: str, known_units: Sequence[str], *, path: str | None = None) -> None:
        known = ", ".join(sorted(known_units)) or "(none)"
        super().__init__(f"Unknown unit '{unit}'; known units: {known}", unit=unit, path=path)
        self.known_units = sorted(known_units)


class PathNotFoundError(ResolutionError):
    """Raised when one segment of a path has no matching declaration."""

    kind = "PathNotFound"

    def __init__(
        self,
        unit: str,
        path: str,
        *,
        resolved_prefix: str,
        segment: str,
        suggestions: Sequence[str] = (),
    ) -> None:
        message = f"Could not resolve '{path}': no item '{segment}' in '{resolved_prefix}'"
        if suggestions:
            message += f" (did you mean: {', '.join(suggestions)}?)"
        super().__init__(message, unit=unit, path=path)
        self.resolved_prefix = resolved_prefix
        self.segment = segment
        self.suggestions = list(suggestions)


class MissingDocError(ResolutionError):
    """Raised when a path resolves to a declaration without documentation."""

    kind = "MissingDoc"

    def __init__(
        self,
        unit: str,
        path: str,
        *,
        location: Optional[SourceLocation] = None,
        empty: bool = False,
    ) -> None:
        reason = "has an empty doc comment" if empty else "has no doc comment"
        where = f" (declared at {location})" if location is not None else ""
        super().__init__(f"'{path}' {reason}{where}", unit=unit, path=path)
        self.location = location
        self.empty = empty


class DuplicateDeclarationError(ResolutionError):
    """Raised when two declarations claim the same fully-qualified path."""

    kind = "DuplicateDeclaration"

    def __init__(
        self,
        unit: str,
        path: str,
        *,
        first: Optional[SourceLocation],
        second: Optional[SourceLocation],
    ) -> None:
        super().__init__(
            f"Duplicate declaration of '{path}' at {first or '?'} and {second or '?'}",
            unit=unit,
            path=path,
        )
        self.first = first
        self.second = second


class SourceReadError(ResolutionError):
    """Raised when a unit root or one of its source files cannot be read."""

    kind = "IOError"

    def __init__(self, unit: str, file_path: str, detail: str) -> None:
        super().__init__(f"Failed to read {file_path} for unit '{unit}': {detail}", unit=unit)
        self.file_path = file_path


__all__ = [
    "DuplicateDeclarationError",
    "MissingDocError",
    "PathNotFoundError",
    "ResolutionError",
    "SourceReadError",
    "UnknownUnitError",
]
