"""Source discovery: walks a unit root and reads its source files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Tuple

from .errors import SourceReadError
from .logging import get_logger
from .models import SourceFile, SourceUnit

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "target",
    "node_modules",
    ".idea",
    ".vscode",
}

_ROOT_FILES = {"lib", "main"}
_BINARY_TARGETS = ("main.rs", "bin")

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".rs",)


@dataclass
class IgnoreRule:
    """A gitignore-style exclusion pattern from configuration."""

    pattern: str
    directory_only: bool
    anchored: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored or self.has_slash:
            return fnmatchcase(rel_path, self.pattern)
        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rules(patterns: Iterable[str]) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for raw in patterns:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            continue
        directory_only = pattern.endswith("/")
        if directory_only:
            pattern = pattern[:-1]
        anchored = pattern.startswith("/")
        if anchored:
            pattern = pattern[1:]
        if not pattern:
            continue
        rules.append(
            IgnoreRule(
                pattern=pattern,
                directory_only=directory_only,
                anchored=anchored,
                has_slash="/" in pattern,
            )
        )
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    return any(rule.matches(rel_path, is_dir) for rule in rules)


def module_path_for(relative: str) -> Tuple[str, ...]:
    """Infer the module nesting of a file from its path under the source root."""
    parts = list(Path(relative).with_suffix("").parts)
    if not parts:
        return ()
    if len(parts) == 1 and parts[0] in _ROOT_FILES:
        return ()
    if parts[-1] == "mod":
        parts = parts[:-1]
    return tuple(_module_name(part) for part in parts)


def _module_name(part: str) -> str:
    return part.replace("-", "_")


class SourceLoader:
    """Reads every recognised source file belonging to one unit."""

    def __init__(
        self,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.extensions = tuple(ext.lower() for ext in extensions)
        self._rules = build_ignore_rules(exclude_paths)
        self.logger = get_logger("loader")

    def load(self, unit_name: str, root: Path | str) -> SourceUnit:
        """Return the unit with the raw text of all its source files."""
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise SourceReadError(unit_name, str(root_path), "unit root not found")
        if not root_path.is_dir():
            raise SourceReadError(unit_name, str(root_path), "unit root is not a directory")
        root_path = root_path.resolve()

        source_root = root_path / "src"
        if not source_root.is_dir():
            source_root = root_path

        files: List[SourceFile] = []
        for path in self._iter_sources(source_root):
            relative = path.relative_to(source_root).as_posix()
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise SourceReadError(unit_name, str(path), str(exc)) from exc
            files.append(
                SourceFile(
                    path=path,
                    relative=relative,
                    module_path=module_path_for(relative),
                    text=text,
                )
            )

        self.logger.debug(
            "Loaded %d source files for unit %s from %s", len(files), unit_name, source_root
        )
        return SourceUnit(name=unit_name, root=root_path, source_root=source_root, files=files)

    def _iter_sources(self, source_root: Path) -> Iterator[Path]:
        skip_binaries = (source_root / "lib.rs").is_file()
        for dirpath, dirnames, filenames in os.walk(source_root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(source_root).as_posix() if current_dir != source_root else ""

            kept_dirs = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS or name.startswith("."):
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if skip_binaries and rel_path in _BINARY_TARGETS:
                    continue
                if _should_ignore(rel_path, True, self._rules):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if not filename.lower().endswith(self.extensions):
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if skip_binaries and rel_path in _BINARY_TARGETS:
                    continue
                if _should_ignore(rel_path, False, self._rules):
                    continue
                yield current_dir / filename


__all__ = ["DEFAULT_EXTENSIONS", "IgnoreRule", "SourceLoader", "build_ignore_rules", "module_path_for"]
