"""Tests for docsync.loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsync.errors import SourceReadError
from docsync.loader import SourceLoader, build_ignore_rules, module_path_for
from tests._fixtures.crate_builder import CrateBuilder


@pytest.mark.parametrize(
    ("relative", "expected"),
    [
        ("lib.rs", ()),
        ("main.rs", ()),
        ("shapes.rs", ("shapes",)),
        ("shapes/mod.rs", ("shapes",)),
        ("shapes/round/circle.rs", ("shapes", "round", "circle")),
        ("my-mod.rs", ("my_mod",)),
    ],
)
def test_module_path_for_infers_nesting(relative: str, expected: tuple[str, ...]) -> None:
    assert module_path_for(relative) == expected


def test_load_reads_sources_in_sorted_order(crate_builder: CrateBuilder) -> None:
    crate_builder.write(
        "widgets",
        {
            "src/lib.rs": "pub mod shapes;\n",
            "src/shapes/mod.rs": "pub mod round;\n",
            "src/shapes/round.rs": "pub struct Circle;\n",
            "src/bin/tool.rs": "fn main() {}\n",
            "src/main.rs": "fn main() {}\n",
            "src/notes.txt": "not rust\n",
            "target/debug/build.rs": "fn main() {}\n",
        },
    )

    unit = crate_builder.load("widgets")

    assert unit.name == "widgets"
    assert unit.source_root == crate_builder.path("widgets").resolve() / "src"
    assert [file.relative for file in unit.files] == [
        "lib.rs",
        "shapes/mod.rs",
        "shapes/round.rs",
    ]
    assert unit.files[2].module_path == ("shapes", "round")
    assert unit.files[0].text == "pub mod shapes;\n"


def test_load_keeps_binaries_without_lib(crate_builder: CrateBuilder) -> None:
    crate_builder.write("tool", {"src/main.rs": "fn main() {}\n"})

    unit = crate_builder.load("tool")

    assert [file.relative for file in unit.files] == ["main.rs"]
    assert unit.files[0].module_path == ()


def test_load_uses_root_when_src_is_missing(crate_builder: CrateBuilder) -> None:
    root = crate_builder.write("flat", {"lib.rs": "pub fn f() {}\n"}, cargo=False)

    unit = SourceLoader().load("flat", root)

    assert unit.source_root == root.resolve()
    assert [file.relative for file in unit.files] == ["lib.rs"]


def test_load_honours_exclude_patterns(crate_builder: CrateBuilder) -> None:
    root = crate_builder.write(
        "widgets",
        {
            "src/lib.rs": "",
            "src/generated/api.rs": "",
            "src/legacy.rs": "",
            "src/shapes.rs": "",
        },
    )

    unit = SourceLoader(exclude_paths=["generated/", "legacy.rs"]).load("widgets", root)

    assert [file.relative for file in unit.files] == ["lib.rs", "shapes.rs"]


def test_build_ignore_rules_skips_comments_and_blanks() -> None:
    rules = build_ignore_rules(["# comment", "", "/anchored.rs", "dir/"])

    assert [(rule.pattern, rule.anchored, rule.directory_only) for rule in rules] == [
        ("anchored.rs", True, False),
        ("dir", False, True),
    ]


def test_load_rejects_missing_root(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(SourceReadError) as excinfo:
        SourceLoader().load("ghost", missing)

    assert excinfo.value.kind == "IOError"
    assert excinfo.value.unit == "ghost"
    assert str(missing) in str(excinfo.value)


def test_load_rejects_file_root(tmp_path: Path) -> None:
    file_root = tmp_path / "lib.rs"
    file_root.write_text("", encoding="utf-8")

    with pytest.raises(SourceReadError, match="not a directory"):
        SourceLoader().load("odd", file_root)


def test_load_rejects_non_utf8_sources(crate_builder: CrateBuilder) -> None:
    root = crate_builder.write("broken", {"src/lib.rs": ""})
    bad = root / "src" / "bad.rs"
    bad.write_bytes(b"\xff\xfe\x00broken")

    with pytest.raises(SourceReadError) as excinfo:
        crate_builder.load("broken")

    assert excinfo.value.file_path == str(bad.resolve())
