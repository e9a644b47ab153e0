"""Configuration loading for docsync (.docsync.yml) and unit specs."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

CONFIG_FILENAME = ".docsync.yml"
DEFAULT_DIRECTIVE = "docsync"


class ConfigError(RuntimeError):
    """Raised when the configuration file or a unit spec cannot be parsed."""


@dataclass
class DocSyncConfig:
    """Represents the settings defined in .docsync.yml."""

    root: Path
    units: Dict[str, Path] = field(default_factory=dict)
    exclude_paths: List[str] = field(default_factory=list)
    allow_empty_docs: bool = False
    directive: str = DEFAULT_DIRECTIVE


def load_config(config_path: Path) -> DocSyncConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DocSyncConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    units = _parse_units(data.get("units"), root)
    directive = _as_str(data.get("directive")) or DEFAULT_DIRECTIVE
    if not directive.replace("-", "").replace("_", "").isalnum():
        raise ConfigError(f"Invalid directive name: {directive!r}")

    return DocSyncConfig(
        root=root,
        units=units,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        allow_empty_docs=_as_bool(data.get("allow_empty_docs")) or False,
        directive=directive,
    )


def parse_unit_spec(spec: str, base: Path | None = None) -> Tuple[str, Path]:
    """Parse ``name=path`` or a bare crate path whose Cargo.toml names the unit."""
    base = base or Path.cwd()
    spec = spec.strip()
    if not spec:
        raise ConfigError("Empty unit spec")

    if "=" in spec:
        name, raw_path = spec.split("=", 1)
        name = name.strip()
        if not name:
            raise ConfigError(f"Unit spec {spec!r} has an empty name")
        return name, _expand(raw_path.strip(), base)

    crate_path = _expand(spec, base)
    return read_crate_name(crate_path), crate_path


def read_crate_name(crate_path: Path) -> str:
    """Return ``[package].name`` from the Cargo.toml inside ``crate_path``."""
    cargo_toml = crate_path / "Cargo.toml"
    try:
        data = tomllib.loads(cargo_toml.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Reading Cargo.toml at {cargo_toml}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Parsing Cargo.toml at {cargo_toml}: {exc}") from exc

    package = data.get("package")
    name = package.get("name") if isinstance(package, dict) else None
    if not isinstance(name, str) or not name:
        raise ConfigError(f"Cargo.toml at {cargo_toml} has no [package].name")
    return name


def _parse_units(value: Any, root: Path) -> Dict[str, Path]:
    if value is None:
        return {}
    units: Dict[str, Path] = {}
    if isinstance(value, dict):
        for name, raw_path in value.items():
            path_str = _as_str(raw_path)
            if not isinstance(name, str) or not path_str:
                raise ConfigError(f"Unit entry {name!r} must map a name to a path")
            units[name] = _expand(path_str, root)
        return units
    if isinstance(value, list):
        for entry in value:
            spec = _as_str(entry)
            if not spec:
                raise ConfigError(f"Unit entry {entry!r} must be a string")
            name, path = parse_unit_spec(spec, root)
            units[name] = path
        return units
    raise ConfigError("'units' must be a mapping or a list of unit specs")


def _expand(raw_path: str, base: Path) -> Path:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DocSyncConfig",
    "load_config",
    "parse_unit_spec",
    "read_crate_name",
]
