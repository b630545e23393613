"""User-visible build toggles and the build type."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping


@dataclass(frozen=True, slots=True)
class BuildOption:
    name: str
    default: bool
    description: str


BUILD_OPTIONS: tuple[BuildOption, ...] = (
    BuildOption("WITH_SERVER", False, "build servatrice"),
    BuildOption("WITH_CLIENT", True, "build cockatrice"),
    BuildOption("WITH_ORACLE", True, "build oracle"),
    BuildOption("WITH_DBCONVERTER", True, "build dbconverter"),
    BuildOption("TEST", False, "build tests"),
    BuildOption("WARNING_AS_ERROR", True, "Treat warnings as errors in debug builds"),
    BuildOption("USE_CCACHE", True, "Cache the build results with ccache"),
    BuildOption("UPDATE_TRANSLATIONS", False, "Update translations on compile"),
)

_OPTIONS_BY_NAME = {option.name: option for option in BUILD_OPTIONS}

_TRUE_VALUES = {"on", "true", "yes", "y", "1"}
_FALSE_VALUES = {"off", "false", "no", "n", "0", ""}


class BuildType(str, Enum):
    RELEASE = "Release"
    DEBUG = "Debug"

    @classmethod
    def parse(cls, value: str | None) -> "BuildType":
        if value is None:
            return cls.RELEASE
        normalized = str(value).strip().lower()
        if not normalized:
            return cls.RELEASE
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"Unsupported build type '{value}' (expected Release or Debug)")


def parse_bool(value: Any, *, name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Option {name} expects a boolean (ON/OFF), got '{value}'")


def parse_definition(text: str) -> tuple[str, str]:
    """Split a ``NAME=VALUE`` switch; a bare ``NAME`` means ``ON``."""

    name, sep, value = text.partition("=")
    name = name.strip()
    if ":" in name:
        # CMake-style NAME:BOOL=ON
        name = name.split(":", 1)[0].strip()
    if not name:
        raise ValueError(f"Invalid option definition '{text}'")
    return name, value.strip() if sep else "ON"


class OptionSet(Mapping[str, bool]):
    """Resolved option values; immutable once constructed."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, bool]) -> None:
        self._values = MappingProxyType(dict(values))

    @classmethod
    def defaults(cls) -> "OptionSet":
        return cls({option.name: option.default for option in BUILD_OPTIONS})

    @classmethod
    def resolve(cls, *layers: Mapping[str, Any]) -> "OptionSet":
        """Apply override ``layers`` over the defaults, later layers winning."""

        values: Dict[str, bool] = {option.name: option.default for option in BUILD_OPTIONS}
        for layer in layers:
            for raw_name, raw_value in layer.items():
                name = str(raw_name).strip().upper()
                if name not in _OPTIONS_BY_NAME:
                    known = ", ".join(option.name for option in BUILD_OPTIONS)
                    raise ValueError(f"Unknown option '{raw_name}'. Known options: {known}")
                values[name] = parse_bool(raw_value, name=name)
        return cls(values)

    def __getitem__(self, key: str) -> bool:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        enabled = ", ".join(f"{key}={'ON' if value else 'OFF'}" for key, value in self._values.items())
        return f"OptionSet({enabled})"

    def to_mapping(self) -> Dict[str, bool]:
        return dict(self._values)


def describe_options(options: Iterable[BuildOption] = BUILD_OPTIONS) -> list[str]:
    width = max(len(option.name) for option in options)
    return [
        f"{option.name.ljust(width)}  {'ON ' if option.default else 'OFF'}  {option.description}"
        for option in options
    ]


__all__ = [
    "BUILD_OPTIONS",
    "BuildOption",
    "BuildType",
    "OptionSet",
    "describe_options",
    "parse_bool",
    "parse_definition",
]
