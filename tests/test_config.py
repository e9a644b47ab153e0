"""Tests for docsync.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsync.config import (
    CONFIG_FILENAME,
    ConfigError,
    DocSyncConfig,
    load_config,
    parse_unit_spec,
    read_crate_name,
)
from tests._fixtures.crate_builder import CrateBuilder


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, DocSyncConfig)
    assert config.root == tmp_path.resolve()
    assert config.units == {}
    assert config.exclude_paths == []
    assert config.allow_empty_docs is False
    assert config.directive == "docsync"


def test_load_config_parses_mapping_form(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """
units:
  widgets: crates/widgets
  tools: ~/src/tools
exclude_paths:
  - "generated/"
allow_empty_docs: yes
directive: rustdoc
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.units["widgets"] == (tmp_path / "crates" / "widgets").resolve()
    assert config.units["tools"] == (Path.home() / "src" / "tools").resolve()
    assert config.exclude_paths == ["generated/"]
    assert config.allow_empty_docs is True
    assert config.directive == "rustdoc"


def test_load_config_parses_list_form_with_cargo_names(
    tmp_path: Path, crate_builder: CrateBuilder
) -> None:
    crate_root = crate_builder.write("my-gadgets", {"src/lib.rs": ""})
    config_file = tmp_path / "book.yml"
    config_file.write_text(
        f"units:\n  - widgets=crates/widgets\n  - {crate_root}\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.root == tmp_path.resolve()
    assert config.units == {
        "widgets": (tmp_path / "crates" / "widgets").resolve(),
        "my-gadgets": crate_root.resolve(),
    }


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("units: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "units: 3\n",
        "units:\n  widgets: [a, b]\n",
        "directive: 'not valid!'\n",
    ],
)
def test_load_config_rejects_malformed_content(tmp_path: Path, content: str) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_parse_unit_spec_with_explicit_name(tmp_path: Path) -> None:
    name, path = parse_unit_spec("widgets=crates/widgets", tmp_path)

    assert name == "widgets"
    assert path == (tmp_path / "crates" / "widgets").resolve()


def test_parse_unit_spec_reads_cargo_name(crate_builder: CrateBuilder) -> None:
    crate_root = crate_builder.write("from-cargo", {"src/lib.rs": ""})

    assert parse_unit_spec(str(crate_root)) == ("from-cargo", crate_root.resolve())


def test_parse_unit_spec_rejects_bad_specs(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        parse_unit_spec("   ")
    with pytest.raises(ConfigError):
        parse_unit_spec("=crates/widgets", tmp_path)
    with pytest.raises(ConfigError, match="Cargo.toml"):
        parse_unit_spec(str(tmp_path / "nowhere"))


def test_read_crate_name_requires_package_name(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text("[workspace]\nmembers = []\n", encoding="utf-8")

    with pytest.raises(ConfigError, match=r"\[package\]\.name"):
        read_crate_name(tmp_path)
