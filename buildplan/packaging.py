"""Install prefix resolution and per-platform package descriptors.

Nothing here produces a package; the descriptor is metadata for an
external packaging backend (CPack generators DragNDrop, RPM, DEB, NSIS).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping
import re

from .dependencies import GateResult
from .platform import REDIST_RUNTIME, OsFamily, PlatformFacts
from .project import ProjectMetadata
from .subsystems import SubsystemPlan
from .toolchain import BuildSession
from .version import VersionInfo


class PackageGenerator(str, Enum):
    DEB = "DEB"
    RPM = "RPM"
    DMG = "DMG"
    NSIS = "NSIS"

    @property
    def backend_name(self) -> str:
        return "DragNDrop" if self is PackageGenerator.DMG else self.value


DEFAULT_UNIX_PREFIX = Path("/usr/local")
_WIN64_GENERATOR = re.compile(r"(Win64|IA64)")


def resolve_install_prefix(
    os_family: OsFamily,
    build_dir: Path,
    *,
    install_prefix: Path | None = None,
    package_prefix: Path | None = None,
) -> Path:
    """Return the install prefix.

    ``install_prefix`` is an explicit user choice; ``package_prefix`` is the
    prefix distribution package builds pass in. macOS bundles and Windows
    installers always stage into ``<build_dir>/release``.
    """

    if os_family in (OsFamily.MACOS, OsFamily.WINDOWS):
        return build_dir / "release"
    if install_prefix is not None:
        return install_prefix
    if package_prefix is not None:
        return package_prefix
    return DEFAULT_UNIX_PREFIX


def select_generator(os_family: OsFamily, hint: str | None = None) -> PackageGenerator:
    """Pick exactly one generator; ``hint`` only matters off macOS and Windows."""

    if os_family is OsFamily.MACOS:
        return PackageGenerator.DMG
    if os_family is OsFamily.WINDOWS:
        return PackageGenerator.NSIS
    # every other host takes the Linux path
    if hint is not None and hint.strip().upper() == PackageGenerator.RPM.value:
        return PackageGenerator.RPM
    return PackageGenerator.DEB


@dataclass(frozen=True, slots=True)
class InstallFile:
    source: Path
    destination: str

    def to_mapping(self) -> Dict[str, str]:
        return {"source": str(self.source), "destination": self.destination}


@dataclass(frozen=True, slots=True)
class PackageDescriptor:
    generator: PackageGenerator
    metadata: Mapping[str, str]
    install_project_list: tuple[str, ...]
    install_prefix: Path
    install_files: tuple[InstallFile, ...] = ()

    def to_mapping(self) -> Dict[str, object]:
        return {
            "generator": self.generator.value,
            "metadata": dict(sorted(self.metadata.items())),
            "install_project_list": list(self.install_project_list),
            "install_prefix": str(self.install_prefix),
            "install_files": [item.to_mapping() for item in self.install_files],
        }


@dataclass(slots=True)
class _DescriptorInputs:
    project: ProjectMetadata
    session: BuildSession
    gate: GateResult
    install_prefix: Path
    metadata: Dict[str, str]
    install_files: List[InstallFile]


def _dmg_metadata(inputs: _DescriptorInputs) -> None:
    inputs.metadata.update(
        {
            "CPACK_DMG_FORMAT": "UDBZ",
            "CPACK_DMG_VOLUME_NAME": inputs.project.name,
            "CPACK_SYSTEM_NAME": "OSX",
            "CPACK_PACKAGE_ICON": str(inputs.session.source_dir / inputs.project.icon),
            "CMAKE_INSTALL_PREFIX": str(inputs.install_prefix),
        }
    )


def _rpm_metadata(inputs: _DescriptorInputs) -> None:
    inputs.metadata.update(
        {
            "CPACK_RPM_PACKAGE_LICENSE": inputs.project.rpm_license,
            "CPACK_RPM_PACKAGE_REQUIRES": ", ".join(inputs.project.rpm_requires),
            "CPACK_RPM_PACKAGE_GROUP": inputs.project.rpm_group,
            "CPACK_RPM_PACKAGE_URL": inputs.project.homepage,
        }
    )


def _deb_metadata(inputs: _DescriptorInputs) -> None:
    inputs.metadata.update(
        {
            "CPACK_DEBIAN_PACKAGE_SHLIBDEPS": "ON",
            "CPACK_DEBIAN_PACKAGE_SECTION": inputs.project.deb_section,
            "CPACK_DEBIAN_PACKAGE_HOMEPAGE": inputs.project.homepage,
            "CPACK_DEBIAN_PACKAGE_DEPENDS": ", ".join(inputs.project.deb_depends),
        }
    )


def _nsis_metadata(inputs: _DescriptorInputs) -> None:
    generator_name = inputs.session.cmake_generator or ""
    is_64_bit = bool(_WIN64_GENERATOR.search(generator_name))
    inputs.metadata.update(
        {
            "TRICE_IS_64_BIT": "1" if is_64_bit else "0",
            "NSIS_DEFINITIONS_FILE": str(inputs.session.build_dir / "NSIS.definitions.nsh"),
            "CMAKE_INSTALL_PREFIX": str(inputs.install_prefix),
        }
    )
    redist = inputs.gate.found(REDIST_RUNTIME)
    if redist is not None and redist.locate_path is not None:
        # the installer runs the bundled redistributable itself
        inputs.install_files.append(InstallFile(source=redist.locate_path, destination="./"))


GENERATOR_METADATA: Mapping[PackageGenerator, Callable[[_DescriptorInputs], None]] = {
    PackageGenerator.DMG: _dmg_metadata,
    PackageGenerator.RPM: _rpm_metadata,
    PackageGenerator.DEB: _deb_metadata,
    PackageGenerator.NSIS: _nsis_metadata,
}


class PackagingDescriptorBuilder:
    def __init__(self, project: ProjectMetadata) -> None:
        self._project = project

    def build(
        self,
        *,
        version: VersionInfo,
        facts: PlatformFacts,
        subsystems: SubsystemPlan,
        gate: GateResult,
        session: BuildSession,
        install_prefix: Path,
        generator_hint: str | None = None,
    ) -> PackageDescriptor:
        generator = select_generator(facts.os_family, generator_hint)
        project = self._project
        metadata: Dict[str, str] = {
            "CPACK_GENERATOR": generator.backend_name,
            "CPACK_PACKAGE_CONTACT": project.contact,
            "CPACK_PACKAGE_DESCRIPTION_SUMMARY": project.name,
            "CPACK_PACKAGE_VENDOR": project.vendor,
            "CPACK_PACKAGE_DESCRIPTION_FILE": str(session.source_dir / project.description_file),
            "CPACK_RESOURCE_FILE_LICENSE": str(session.source_dir / project.license_file),
            "CPACK_PACKAGE_VERSION_MAJOR": str(version.major),
            "CPACK_PACKAGE_VERSION_MINOR": str(version.minor),
            "CPACK_PACKAGE_VERSION_PATCH": str(version.patch),
            "CPACK_PACKAGE_FILE_NAME": version.package_file_name(project.name),
        }
        inputs = _DescriptorInputs(
            project=project,
            session=session,
            gate=gate,
            install_prefix=install_prefix,
            metadata=metadata,
            install_files=[],
        )
        GENERATOR_METADATA[generator](inputs)
        install_projects = subsystems.install_projects()
        metadata["CPACK_INSTALL_CMAKE_PROJECTS"] = ";".join(install_projects)
        return PackageDescriptor(
            generator=generator,
            metadata=dict(sorted(metadata.items())),
            install_project_list=tuple(install_projects),
            install_prefix=install_prefix,
            install_files=tuple(inputs.install_files),
        )


__all__ = [
    "DEFAULT_UNIX_PREFIX",
    "GENERATOR_METADATA",
    "InstallFile",
    "PackageDescriptor",
    "PackageGenerator",
    "PackagingDescriptorBuilder",
    "resolve_install_prefix",
    "select_generator",
]
