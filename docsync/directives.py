"""Markdown directive expansion: ``{{#docsync unit::path}}`` becomes doc text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Sequence

from .config import DEFAULT_DIRECTIVE
from .errors import ResolutionError
from .logging import get_logger
from .resolver import DocResolver


@dataclass
class Directive:
    """One directive occurrence in a document."""

    path: str
    line: int
    start: int
    end: int
    escaped: bool = False


@dataclass
class DirectiveFailure:
    """A directive whose path did not resolve."""

    path: str
    line: int
    error: ResolutionError

    def describe(self, source: str | None = None) -> str:
        where = f"{source}:{self.line}" if source else f"line {self.line}"
        return f"{where}: [{self.error.kind}] {self.error}"


class DirectiveError(RuntimeError):
    """Raised when one or more directives in a document fail to resolve."""

    def __init__(self, message: str, failures: Sequence[DirectiveFailure]) -> None:
        super().__init__(message)
        self.failures = list(failures)


class DirectiveExpander:
    """Replaces directive markers with resolved documentation.

    A marker preceded by a backslash is left in place (minus the backslash),
    which lets documents talk about the directive syntax itself.
    """

    def __init__(self, resolver: DocResolver, directive: str = DEFAULT_DIRECTIVE) -> None:
        self.resolver = resolver
        self.directive = directive
        self.pattern = re.compile(
            r"(\\)?\{\{#" + re.escape(directive) + r"[ \t]+([^\s}]+)[ \t]*\}\}"
        )
        self.logger = get_logger("directives")

    def find(self, text: str) -> List[Directive]:
        directives: List[Directive] = []
        for match in self.pattern.finditer(text):
            directives.append(
                Directive(
                    path=match.group(2),
                    line=text.count("\n", 0, match.start()) + 1,
                    start=match.start(),
                    end=match.end(),
                    escaped=match.group(1) is not None,
                )
            )
        return directives

    def check(self, text: str) -> List[DirectiveFailure]:
        """Resolve every directive and return the ones that failed."""
        failures: List[DirectiveFailure] = []
        for directive in self.find(text):
            if directive.escaped:
                continue
            result = self.resolver.lookup_path(directive.path)
            if result.error is not None:
                failures.append(DirectiveFailure(directive.path, directive.line, result.error))
        return failures

    def expand(self, text: str, *, source: str | None = None) -> str:
        """Return ``text`` with every directive replaced by its doc text.

        Raises:
            DirectiveError: listing every directive that failed; no partial
                output is produced.
        """
        pieces: List[str] = []
        failures: List[DirectiveFailure] = []
        position = 0
        directives = self.find(text)
        for directive in directives:
            pieces.append(text[position : directive.start])
            position = directive.end
            marker = text[directive.start : directive.end]
            if directive.escaped:
                pieces.append(marker[1:])
                continue
            result = self.resolver.lookup_path(directive.path)
            if result.error is not None:
                failures.append(DirectiveFailure(directive.path, directive.line, result.error))
                continue
            pieces.append(result.text or "")
        pieces.append(text[position:])

        if failures:
            summary = "; ".join(failure.describe(source) for failure in failures)
            raise DirectiveError(
                f"{len(failures)} directive(s) failed to resolve: {summary}", failures
            )
        self.logger.debug("Expanded %d directives in %s", len(directives), source or "<text>")
        return "".join(pieces)


__all__ = ["Directive", "DirectiveError", "DirectiveExpander", "DirectiveFailure"]
