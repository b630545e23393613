"""Static project metadata shared by version resolution and packaging."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping
import re

from .config_loader import normalize_string_list


_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


def parse_static_version(text: str) -> tuple[int, int, int]:
    match = _VERSION_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Project version must look like MAJOR.MINOR.PATCH, got '{text}'")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    name: str = "Cockatrice"
    version: str = "2.7.3"
    contact: str = "Zach Halpern <zahalpern+github@gmail.com>"
    vendor: str = "Cockatrice Development Team"
    description_file: str = "README.md"
    license_file: str = "LICENSE"
    homepage: str = "http://github.com/Cockatrice/Cockatrice"
    icon: str = "cockatrice/resources/appicon.icns"
    cxx_standard: int = 11
    rpm_license: str = "GPLv2"
    rpm_group: str = "Amusements/Games"
    rpm_requires: tuple[str, ...] = ("protobuf", "qt5-qttools", "qt5-qtsvg", "qt5-qtmultimedia")
    deb_section: str = "games"
    deb_depends: tuple[str, ...] = ("libqt5multimedia5-plugins", "libqt5svg5")

    _LIST_FIELDS = ("rpm_requires", "deb_depends")

    @property
    def static_version(self) -> tuple[int, int, int]:
        return parse_static_version(self.version)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ProjectMetadata":
        return cls().with_overrides(data)

    def with_overrides(self, data: Mapping[str, Any]) -> "ProjectMetadata":
        allowed = set(self.__dataclass_fields__)
        unknown = {str(key) for key in data.keys() if str(key) not in allowed}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Project metadata contains unknown keys: {joined}")

        changes: dict[str, Any] = {}
        for key, value in data.items():
            key = str(key)
            if key in self._LIST_FIELDS:
                changes[key] = tuple(normalize_string_list(value, field_name=f"project.{key}"))
            elif key == "cxx_standard":
                changes[key] = int(value)
            else:
                changes[key] = str(value)
        updated = replace(self, **changes)
        parse_static_version(updated.version)
        return updated


__all__ = ["ProjectMetadata", "parse_static_version"]
