"""Required dependency verification and the resolved paths it publishes."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping
import re

from .console import Console, SilentConsole
from .errors import ConfigurationFatal, Notice, NoticeKind
from .platform import PROTOC, QT_CORE, DependencyRecord


_NUMERIC_PREFIX = re.compile(r"\d+")


def version_tuple(text: str) -> tuple[int, ...]:
    """Turn ``5.15.2`` (or ``5.9.5-1ubuntu``) into ``(5, 15, 2)``."""

    parts: List[int] = []
    for chunk in text.strip().split("."):
        match = _NUMERIC_PREFIX.match(chunk)
        if not match:
            break
        parts.append(int(match.group(0)))
        if match.end() != len(chunk):
            break
    return tuple(parts)


def version_at_least(found: str, minimum: str) -> bool:
    found_parts = version_tuple(found)
    minimum_parts = version_tuple(minimum)
    width = max(len(found_parts), len(minimum_parts))
    padded_found = found_parts + (0,) * (width - len(found_parts))
    padded_minimum = minimum_parts + (0,) * (width - len(minimum_parts))
    return padded_found >= padded_minimum


@dataclass(frozen=True, slots=True)
class ResolvedPaths:
    """Read-only paths published once every required dependency is satisfied."""

    qt_library_dir: Path | None
    qt_plugins_dir: Path | None
    protoc: Path | None
    tools: Mapping[str, Path]

    def to_mapping(self) -> Dict[str, object]:
        return {
            "qt_library_dir": str(self.qt_library_dir) if self.qt_library_dir else None,
            "qt_plugins_dir": str(self.qt_plugins_dir) if self.qt_plugins_dir else None,
            "protoc": str(self.protoc) if self.protoc else None,
            "tools": {name: str(path) for name, path in sorted(self.tools.items())},
        }


@dataclass(frozen=True, slots=True)
class GateResult:
    paths: ResolvedPaths
    records: tuple[DependencyRecord, ...]
    notices: tuple[Notice, ...]

    def found(self, name: str) -> DependencyRecord | None:
        for record in self.records:
            if record.name == name and record.found:
                return record
        return None


class DependencyGate:
    """Fails the whole run on the first unmet required dependency."""

    def __init__(self, console: Console | None = None, *, path_exists: Callable[[Path], bool] = Path.exists) -> None:
        self._console = console or SilentConsole()
        self._path_exists = path_exists

    def check(self, records: Iterable[DependencyRecord]) -> GateResult:
        records = tuple(records)
        for record in records:
            if not record.required:
                continue
            self._verify_required(record)

        notices: List[Notice] = []
        tools: Dict[str, Path] = {}
        for record in records:
            if record.required:
                continue
            if record.found and record.locate_path is not None:
                tools[record.name] = record.locate_path
            else:
                message = f"Optional dependency {record.name} not found; related features are disabled"
                notices.append(Notice(NoticeKind.OPTIONAL_DEGRADED, record.name, message))
                self._console.debug(message)

        qt = next((record for record in records if record.name == QT_CORE), None)
        protoc = next((record for record in records if record.name == PROTOC), None)
        library_dir = qt.details.get("library_dir") if qt else None
        plugins_dir = qt.details.get("plugins_dir") if qt else None
        paths = ResolvedPaths(
            qt_library_dir=Path(library_dir) if library_dir else None,
            qt_plugins_dir=Path(plugins_dir) if plugins_dir else None,
            protoc=protoc.locate_path if protoc else None,
            tools=MappingProxyType(tools),
        )
        return GateResult(paths=paths, records=records, notices=tuple(notices))

    def _verify_required(self, record: DependencyRecord) -> None:
        if not record.found:
            if record.minimum_version:
                message = f"No {record.name} found! (version {record.minimum_version} or newer is required)"
            else:
                message = f"No {record.name} found!"
            raise ConfigurationFatal(record.name, message)
        if record.name == PROTOC and (record.locate_path is None or not self._path_exists(record.locate_path)):
            raise ConfigurationFatal(record.name, f"No {record.name} command found!")
        if record.minimum_version:
            if not record.version or not version_at_least(record.version, record.minimum_version):
                raise ConfigurationFatal(
                    record.name,
                    f"{record.name} {record.version or '<unknown>'} found, "
                    f"but version {record.minimum_version} or newer is required",
                )


__all__ = [
    "DependencyGate",
    "GateResult",
    "ResolvedPaths",
    "version_at_least",
    "version_tuple",
]
