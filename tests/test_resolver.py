"""Tests for docsync.resolver."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from docsync.errors import (
    DuplicateDeclarationError,
    MissingDocError,
    PathNotFoundError,
    SourceReadError,
    UnknownUnitError,
)
from docsync.loader import SourceLoader
from docsync.models import ParsedFile, SourceFile, SourceUnit
from docsync.parsing import ParserRegistry, RustParser
from docsync.resolver import DocResolver, UnitState
from tests._fixtures.crate_builder import CrateBuilder

FIXTURE_CRATE = Path(__file__).resolve().parent / "fixtures" / "test-crate"


class CountingLoader(SourceLoader):
    """Source loader that records how often each unit is read."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: dict[str, int] = {}
        self._lock = threading.Lock()

    def load(self, unit_name: str, root: Path | str) -> SourceUnit:
        with self._lock:
            self.calls[unit_name] = self.calls.get(unit_name, 0) + 1
        return super().load(unit_name, root)


class CountingParser(RustParser):
    """Rust parser that records how often each file is parsed."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: dict[str, int] = {}
        self._lock = threading.Lock()

    def parse(self, source: SourceFile) -> ParsedFile:
        with self._lock:
            self.calls[source.relative] = self.calls.get(source.relative, 0) + 1
        return super().parse(source)


def test_resolve_documented_field(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    assert resolver.resolve("widgets", "shapes::Circle::radius") == "radius in mm"
    assert resolver.resolve_path("widgets::shapes::Circle::radius") == "radius in mm"
    assert resolver.resolve_path("widgets.shapes.Circle.radius") == "radius in mm"
    assert resolver.resolve("widgets", ["shapes", "Circle"]) == "Round things."
    assert resolver.resolve_path("widgets::VERSION") == "Current widget format version."


def test_resolve_unit_root_returns_crate_docs(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    assert resolver.resolve("widgets", "") == "Widgets for every occasion."
    assert resolver.resolve_path("widgets") == "Widgets for every occasion."


def test_resolve_unknown_field_reports_resolved_prefix(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    with pytest.raises(PathNotFoundError) as excinfo:
        resolver.resolve_path("widgets::shapes::Circle::color")

    error = excinfo.value
    assert error.kind == "PathNotFound"
    assert error.unit == "widgets"
    assert error.path == "widgets::shapes::Circle::color"
    assert error.resolved_prefix == "widgets::shapes::Circle"
    assert error.segment == "color"


def test_resolve_undocumented_field_is_missing_doc(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    with pytest.raises(MissingDocError) as excinfo:
        resolver.resolve("widgets", "shapes::Circle::legs")

    error = excinfo.value
    assert error.empty is False
    assert error.path == "widgets::shapes::Circle::legs"
    assert error.location is not None and error.location.file == "shapes.rs"


def test_resolve_unknown_unit_lists_known_units(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    with pytest.raises(UnknownUnitError) as excinfo:
        resolver.resolve_path("gadgets::Thing")

    assert excinfo.value.known_units == ["widgets"]
    assert "widgets" in str(excinfo.value)
    assert excinfo.value.path == "gadgets::Thing"


def test_repeated_resolution_loads_each_unit_once(widgets: Path) -> None:
    loader = CountingLoader()
    parser = CountingParser()
    resolver = DocResolver({"widgets": widgets}, loader=loader, parsers=ParserRegistry([parser]))

    assert resolver.state("widgets") is UnitState.UNLOADED
    first = resolver.resolve("widgets", "shapes::Circle::radius")
    second = resolver.resolve("widgets", "shapes::Circle::radius")
    resolver.lookup("widgets", "shapes::Circle::legs")

    assert first == second
    assert loader.calls == {"widgets": 1}
    assert parser.calls == {"lib.rs": 1, "shapes.rs": 1}
    assert resolver.state("widgets") is UnitState.INDEXED


def test_concurrent_resolution_builds_once(widgets: Path) -> None:
    loader = CountingLoader()
    parser = CountingParser()
    resolver = DocResolver({"widgets": widgets}, loader=loader, parsers=ParserRegistry([parser]))

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(
            pool.map(lambda _: resolver.resolve_path("widgets::shapes::Circle::radius"), range(16))
        )

    assert set(results) == {"radius in mm"}
    assert loader.calls == {"widgets": 1}
    assert parser.calls == {"lib.rs": 1, "shapes.rs": 1}


def test_failed_unit_is_cached(tmp_path: Path) -> None:
    loader = CountingLoader()
    resolver = DocResolver({"ghost": tmp_path / "missing"}, loader=loader)

    with pytest.raises(SourceReadError) as first:
        resolver.resolve("ghost", "Thing")
    with pytest.raises(SourceReadError) as second:
        resolver.resolve("ghost", "Other")

    assert first.value is second.value
    assert loader.calls == {"ghost": 1}
    assert resolver.state("ghost") is UnitState.FAILED


def test_duplicate_declarations_fail_the_unit(crate_builder: CrateBuilder) -> None:
    root = crate_builder.write("dup", {"src/lib.rs": "pub fn twice() {}\npub fn twice() {}\n"})
    resolver = DocResolver({"dup": root})

    result = resolver.lookup("dup", "twice")

    assert not result.ok
    assert isinstance(result.error, DuplicateDeclarationError)
    assert resolver.state("dup") is UnitState.FAILED


def test_empty_doc_policy(crate_builder: CrateBuilder) -> None:
    root = crate_builder.write("blank", {"src/lib.rs": "///\npub struct Empty;\n"})

    strict = DocResolver({"blank": root})
    with pytest.raises(MissingDocError) as excinfo:
        strict.resolve("blank", "Empty")
    assert excinfo.value.empty is True
    assert "empty doc comment" in str(excinfo.value)

    lenient = DocResolver({"blank": root}, allow_empty_docs=True)
    assert lenient.resolve("blank", "Empty") == ""


def test_lookup_reports_errors_without_raising(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    ok = resolver.lookup("widgets", "shapes::Circle::radius")
    missing = resolver.lookup_path("widgets::shapes::Circle::legs")
    unknown = resolver.lookup_path("gadgets::Thing")

    assert ok.ok and ok.unwrap() == "radius in mm"
    assert isinstance(missing.error, MissingDocError)
    assert isinstance(unknown.error, UnknownUnitError)
    with pytest.raises(MissingDocError):
        missing.unwrap()


def test_malformed_path_is_path_not_found(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets})

    with pytest.raises(PathNotFoundError):
        resolver.resolve("widgets", "shapes::::Circle")


def test_units_are_listed_and_names_normalised(widgets: Path) -> None:
    resolver = DocResolver({"widgets": widgets, "test-crate": FIXTURE_CRATE})

    assert resolver.units() == ["test-crate", "widgets"]
    assert resolver.state("test_crate") is UnitState.UNLOADED
    with pytest.raises(ValueError):
        DocResolver({"test-crate": FIXTURE_CRATE, "test_crate": FIXTURE_CRATE})


def test_resolve_against_fixture_crate() -> None:
    resolver = DocResolver({"test-crate": FIXTURE_CRATE})

    assert resolver.resolve_path("test_crate::crustaceans::LobsterColor::SplitColored::primary") == (
        "The color that is more prevalent on the lobster."
    )
    assert resolver.resolve_path("test-crate::crustaceans::LobsterColor::halloween") == (
        "A common split colored lobster."
    )
    assert resolver.resolve_path("test_crate::crustaceans::CookedCrab::0") == (
        "The crab that was cooked."
    )
    assert resolver.resolve_path("test_crate::crustaceans") == (
        "Animals with exoskeletons.\nAll sorts of crustaceans."
    )
    assert resolver.resolve_path("test_crate::Crab::num_legs").startswith("The number of legs")
    assert resolver.resolve_path("test_crate::default_crab") == (
        "Builds a boring crab.\n"
        "\n"
        "```\n"
        "let crab = test_crate::default_crab();\n"
        "assert_eq!(crab.num_legs, 8);\n"
        "```"
    )
    assert resolver.resolve_path("test_crate::MAX_DEPTH").endswith("in meters.")
