from __future__ import annotations

from pathlib import Path
import unittest

from buildplan.dependencies import DependencyGate, GateResult
from buildplan.options import OptionSet
from buildplan.packaging import (
    DEFAULT_UNIX_PREFIX,
    InstallFile,
    PackageGenerator,
    PackagingDescriptorBuilder,
    resolve_install_prefix,
    select_generator,
)
from buildplan.platform import PROTOC, QT_CORE, REDIST_RUNTIME, CompilerFamily, DependencyRecord, OsFamily, PlatformFacts
from buildplan.project import ProjectMetadata
from buildplan.subsystems import SubsystemSelector
from buildplan.toolchain import BuildSession
from buildplan.version import VersionInfo


SOURCE = Path("/src/Cockatrice")
BUILD = SOURCE / "build"
VERSION = VersionInfo(2, 7, 3, commit_hash="abc1234", is_exact_tag=False, filename_suffix="-12-gabc1234")


def _facts(os_family: OsFamily, compiler_family: CompilerFamily = CompilerFamily.GNU) -> PlatformFacts:
    return PlatformFacts(
        os_family=os_family,
        compiler_family=compiler_family,
        compiler_version="1.0",
        is_64_bit=True,
        compiler_id="MSVC" if compiler_family is CompilerFamily.MSVC else "GNU",
    )


def _gate(*extra: DependencyRecord) -> GateResult:
    records = [
        DependencyRecord(name=QT_CORE, required=True, found=True, version="5.15.3", minimum_version="5.5.0"),
        DependencyRecord(name=PROTOC, required=True, found=True, version="3.12.4", locate_path=Path("/usr/bin/protoc")),
        *extra,
    ]
    return DependencyGate(path_exists=lambda path: True).check(records)


class InstallPrefixTests(unittest.TestCase):
    def test_bundle_platforms_force_release_directory(self) -> None:
        for os_family in (OsFamily.MACOS, OsFamily.WINDOWS):
            prefix = resolve_install_prefix(os_family, BUILD, install_prefix=Path("/opt/x"), package_prefix=Path("/usr"))
            self.assertEqual(prefix, BUILD / "release")

    def test_unix_prefix_precedence(self) -> None:
        self.assertEqual(
            resolve_install_prefix(OsFamily.LINUX, BUILD, install_prefix=Path("/opt/x"), package_prefix=Path("/usr")),
            Path("/opt/x"),
        )
        self.assertEqual(resolve_install_prefix(OsFamily.BSD, BUILD, package_prefix=Path("/usr")), Path("/usr"))
        self.assertEqual(resolve_install_prefix(OsFamily.OTHER, BUILD, package_prefix=Path("/usr")), Path("/usr"))
        self.assertEqual(resolve_install_prefix(OsFamily.LINUX, BUILD), DEFAULT_UNIX_PREFIX)


class GeneratorSelectionTests(unittest.TestCase):
    def test_generators(self) -> None:
        self.assertIs(select_generator(OsFamily.MACOS, "RPM"), PackageGenerator.DMG)
        self.assertIs(select_generator(OsFamily.WINDOWS), PackageGenerator.NSIS)
        self.assertIs(select_generator(OsFamily.LINUX), PackageGenerator.DEB)
        self.assertIs(select_generator(OsFamily.LINUX, "rpm"), PackageGenerator.RPM)
        self.assertIs(select_generator(OsFamily.BSD, "DEB"), PackageGenerator.DEB)

    def test_other_unix_hosts_take_the_linux_path(self) -> None:
        self.assertIs(select_generator(OsFamily.OTHER), PackageGenerator.DEB)
        self.assertIs(select_generator(OsFamily.OTHER, "RPM"), PackageGenerator.RPM)


class DescriptorBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.builder = PackagingDescriptorBuilder(ProjectMetadata())
        self.subsystems = SubsystemSelector().select(OptionSet.defaults())

    def _build(self, os_family: OsFamily, *, gate: GateResult | None = None, hint: str | None = None,
               cmake_generator: str | None = None, compiler_family: CompilerFamily = CompilerFamily.GNU):
        session = BuildSession(source_dir=SOURCE, build_dir=BUILD, cmake_generator=cmake_generator)
        prefix = resolve_install_prefix(os_family, BUILD)
        return self.builder.build(
            version=VERSION,
            facts=_facts(os_family, compiler_family),
            subsystems=self.subsystems,
            gate=gate or _gate(),
            session=session,
            install_prefix=prefix,
            generator_hint=hint,
        )

    def test_common_metadata(self) -> None:
        descriptor = self._build(OsFamily.LINUX)
        metadata = descriptor.metadata
        self.assertEqual(metadata["CPACK_PACKAGE_CONTACT"], "Zach Halpern <zahalpern+github@gmail.com>")
        self.assertEqual(metadata["CPACK_PACKAGE_DESCRIPTION_SUMMARY"], "Cockatrice")
        self.assertEqual(metadata["CPACK_PACKAGE_VENDOR"], "Cockatrice Development Team")
        self.assertEqual(metadata["CPACK_PACKAGE_DESCRIPTION_FILE"], str(SOURCE / "README.md"))
        self.assertEqual(metadata["CPACK_RESOURCE_FILE_LICENSE"], str(SOURCE / "LICENSE"))
        self.assertEqual(metadata["CPACK_PACKAGE_VERSION_MAJOR"], "2")
        self.assertEqual(metadata["CPACK_PACKAGE_VERSION_MINOR"], "7")
        self.assertEqual(metadata["CPACK_PACKAGE_VERSION_PATCH"], "3")
        self.assertEqual(metadata["CPACK_PACKAGE_FILE_NAME"], "Cockatrice-2.7.3-12-gabc1234")
        self.assertEqual(list(metadata), sorted(metadata))

    def test_install_project_list_is_reversed(self) -> None:
        descriptor = self._build(OsFamily.LINUX)
        self.assertEqual(
            descriptor.install_project_list,
            ("Dbconverter;Dbconverter;ALL;/", "Oracle;Oracle;ALL;/", "Cockatrice;Cockatrice;ALL;/"),
        )
        self.assertEqual(
            descriptor.metadata["CPACK_INSTALL_CMAKE_PROJECTS"],
            "Dbconverter;Dbconverter;ALL;/;Oracle;Oracle;ALL;/;Cockatrice;Cockatrice;ALL;/",
        )

    def test_macos_dmg(self) -> None:
        descriptor = self._build(OsFamily.MACOS)
        self.assertIs(descriptor.generator, PackageGenerator.DMG)
        self.assertEqual(descriptor.install_prefix, BUILD / "release")
        self.assertEqual(descriptor.metadata["CPACK_GENERATOR"], "DragNDrop")
        self.assertEqual(descriptor.metadata["CPACK_DMG_FORMAT"], "UDBZ")
        self.assertEqual(descriptor.metadata["CPACK_DMG_VOLUME_NAME"], "Cockatrice")
        self.assertEqual(descriptor.metadata["CPACK_SYSTEM_NAME"], "OSX")
        self.assertEqual(descriptor.metadata["CPACK_PACKAGE_ICON"], str(SOURCE / "cockatrice/resources/appicon.icns"))
        self.assertEqual(descriptor.metadata["CMAKE_INSTALL_PREFIX"], str(BUILD / "release"))

    def test_linux_rpm(self) -> None:
        descriptor = self._build(OsFamily.LINUX, hint="RPM")
        self.assertIs(descriptor.generator, PackageGenerator.RPM)
        self.assertEqual(descriptor.metadata["CPACK_GENERATOR"], "RPM")
        self.assertEqual(descriptor.metadata["CPACK_RPM_PACKAGE_LICENSE"], "GPLv2")
        self.assertEqual(descriptor.metadata["CPACK_RPM_PACKAGE_GROUP"], "Amusements/Games")
        self.assertEqual(
            descriptor.metadata["CPACK_RPM_PACKAGE_REQUIRES"],
            "protobuf, qt5-qttools, qt5-qtsvg, qt5-qtmultimedia",
        )
        self.assertNotIn("CPACK_DEBIAN_PACKAGE_DEPENDS", descriptor.metadata)

    def test_linux_deb_default(self) -> None:
        descriptor = self._build(OsFamily.LINUX)
        self.assertIs(descriptor.generator, PackageGenerator.DEB)
        self.assertEqual(descriptor.install_prefix, DEFAULT_UNIX_PREFIX)
        self.assertEqual(descriptor.metadata["CPACK_DEBIAN_PACKAGE_SHLIBDEPS"], "ON")
        self.assertEqual(descriptor.metadata["CPACK_DEBIAN_PACKAGE_SECTION"], "games")
        self.assertEqual(descriptor.metadata["CPACK_DEBIAN_PACKAGE_HOMEPAGE"], "http://github.com/Cockatrice/Cockatrice")
        self.assertEqual(descriptor.metadata["CPACK_DEBIAN_PACKAGE_DEPENDS"], "libqt5multimedia5-plugins, libqt5svg5")

    def test_windows_nsis(self) -> None:
        redist = DependencyRecord(
            name=REDIST_RUNTIME,
            required=False,
            found=True,
            locate_path=Path("C:/VS/redist/vcredist_x64.exe"),
        )
        descriptor = self._build(
            OsFamily.WINDOWS,
            gate=_gate(redist),
            cmake_generator="Visual Studio 15 2017 Win64",
            compiler_family=CompilerFamily.MSVC,
        )
        self.assertIs(descriptor.generator, PackageGenerator.NSIS)
        self.assertEqual(descriptor.metadata["TRICE_IS_64_BIT"], "1")
        self.assertEqual(descriptor.metadata["NSIS_DEFINITIONS_FILE"], str(BUILD / "NSIS.definitions.nsh"))
        self.assertEqual(descriptor.metadata["CMAKE_INSTALL_PREFIX"], str(BUILD / "release"))
        self.assertEqual(
            descriptor.install_files,
            (InstallFile(source=Path("C:/VS/redist/vcredist_x64.exe"), destination="./"),),
        )

    def test_windows_nsis_32_bit_without_redist(self) -> None:
        descriptor = self._build(OsFamily.WINDOWS, cmake_generator="Visual Studio 16 2019")
        self.assertEqual(descriptor.metadata["TRICE_IS_64_BIT"], "0")
        self.assertEqual(descriptor.install_files, ())

    def test_other_platform_packages_like_linux(self) -> None:
        descriptor = self._build(OsFamily.OTHER, hint="RPM")
        self.assertIs(descriptor.generator, PackageGenerator.RPM)
        self.assertEqual(descriptor.metadata["CPACK_GENERATOR"], "RPM")
        self.assertEqual(descriptor.install_prefix, DEFAULT_UNIX_PREFIX)


if __name__ == "__main__":
    unittest.main()
