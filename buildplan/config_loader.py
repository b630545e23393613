"""Reading buildplan configuration files (TOML, JSON or YAML)."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Callable, Dict, Iterable, List, Mapping, Sequence

import json
import tomllib

import yaml


DocumentReader = Callable[[IO[Any]], Any]

READERS: Dict[str, tuple[str, DocumentReader]] = {
    ".toml": ("rb", tomllib.load),
    ".json": ("r", json.load),
    ".yaml": ("r", yaml.safe_load),
    ".yml": ("r", yaml.safe_load),
}
"""File suffix -> (open mode, decoder)."""

SECTION_KEYS: Mapping[str, frozenset[str] | None] = {
    "options": None,
    "project": None,
    "build": frozenset({"type", "build_dir", "prefix", "install_prefix", "package_generator", "cmake_generator"}),
}
"""Recognised top-level tables; ``None`` leaves key checking to the consumer."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Decode ``path`` and check its top-level tables."""

    suffix = path.suffix.lower()
    if suffix not in READERS:
        raise ValueError(
            f"Cannot read '{path.name}': expected one of {', '.join(sorted(READERS))}"
        )
    mode, reader = READERS[suffix]
    try:
        with path.open(mode, **({} if "b" in mode else {"encoding": "utf-8"})) as handle:
            document = reader(handle)
    except yaml.YAMLError as exc:
        # TOML and JSON decode errors are already ValueErrors
        raise ValueError(f"Cannot parse '{path}': {exc}") from exc

    # an empty YAML document decodes to None
    document = {} if document is None else document
    if not isinstance(document, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    for name, value in document.items():
        name = str(name)
        if name not in SECTION_KEYS:
            raise ValueError(
                f"Configuration file '{path}' has unknown table '{name}' "
                f"(known: {', '.join(sorted(SECTION_KEYS))})"
            )
        allowed = SECTION_KEYS[name]
        if allowed is not None and isinstance(value, Mapping):
            extra = sorted(str(key) for key in value if str(key) not in allowed)
            if extra:
                raise ValueError(f"Table '{name}' in '{path}' has unknown keys: {', '.join(extra)}")
    return document


def section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError(f"Configuration table '{name}' must be a mapping")
    return value


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overlay`` into a copy of ``base``; ``overlay`` wins."""

    merged: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_mappings(current, value)
        else:
            merged[key] = value
    return merged


@dataclass(slots=True)
class LayeredConfig:
    """Configuration files merged in the order given; later files win."""

    sources: List[Path] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, paths: Iterable[Path]) -> "LayeredConfig":
        config = cls()
        for path in paths:
            config.data = merge_mappings(config.data, load_config_file(path))
            config.sources.append(path)
        return config

    @property
    def options(self) -> Mapping[str, Any]:
        return section(self.data, "options")

    @property
    def project(self) -> Mapping[str, Any]:
        return section(self.data, "project")

    @property
    def build(self) -> Mapping[str, Any]:
        return section(self.data, "build")


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Turn ``"a, b"`` or ``["a", "b"]`` into ``["a", "b"]``.

    Package dependency lists are comma separated, so a plain string is
    split on commas.
    """

    label = f"{field_name} " if field_name else ""
    if value is None:
        return []
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, Sequence):
        raise TypeError(f"{label}must be a string or sequence of strings")

    items: List[str] = []
    for item in value:
        if not isinstance(item, str):
            raise TypeError(f"{label}entries must be strings")
        if item.strip():
            items.append(item.strip())
    return items


__all__ = [
    "DocumentReader",
    "LayeredConfig",
    "READERS",
    "SECTION_KEYS",
    "load_config_file",
    "merge_mappings",
    "normalize_string_list",
    "section",
]
