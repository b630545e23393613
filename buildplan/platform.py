"""Host platform, compiler and external dependency detection."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import platform as _platform
import re
import sys

from .command_runner import CommandRunner
from .console import Console, SilentConsole


class OsFamily(str, Enum):
    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"
    BSD = "bsd"
    OTHER = "other"

    @classmethod
    def from_system_name(cls, system: str) -> "OsFamily":
        name = system.strip().lower()
        if name == "linux":
            return cls.LINUX
        if name == "darwin":
            return cls.MACOS
        if name == "windows" or name.startswith(("cygwin", "msys", "mingw")):
            return cls.WINDOWS
        if name.endswith("bsd") or name == "dragonfly":
            return cls.BSD
        return cls.OTHER

    @property
    def is_unix(self) -> bool:
        return self in (OsFamily.LINUX, OsFamily.MACOS, OsFamily.BSD)


class CompilerFamily(str, Enum):
    MSVC = "msvc"
    GNU = "gnu"
    OTHER = "other"

    @classmethod
    def from_compiler_id(cls, compiler_id: str) -> "CompilerFamily":
        if compiler_id == "MSVC":
            return cls.MSVC
        if compiler_id == "GNU":
            return cls.GNU
        return cls.OTHER


@dataclass(frozen=True, slots=True)
class PlatformFacts:
    os_family: OsFamily
    compiler_family: CompilerFamily
    compiler_version: str
    is_64_bit: bool
    compiler_id: str = "Unknown"
    compiler_path: str | None = None

    def to_mapping(self) -> Dict[str, object]:
        return {
            "os_family": self.os_family.value,
            "compiler_family": self.compiler_family.value,
            "compiler_id": self.compiler_id,
            "compiler_version": self.compiler_version,
            "compiler_path": self.compiler_path,
            "is_64_bit": self.is_64_bit,
        }


@dataclass(frozen=True, slots=True)
class DependencyRecord:
    name: str
    required: bool
    found: bool
    version: str | None = None
    locate_path: Path | None = None
    minimum_version: str | None = None
    details: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_mapping(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "required": self.required,
            "found": self.found,
            "version": self.version,
            "locate_path": str(self.locate_path) if self.locate_path else None,
            "minimum_version": self.minimum_version,
            "details": dict(sorted(self.details.items())),
        }


@dataclass(frozen=True, slots=True)
class ProbeResult:
    facts: PlatformFacts
    dependencies: tuple[DependencyRecord, ...]

    def get(self, name: str) -> DependencyRecord | None:
        for record in self.dependencies:
            if record.name == name:
                return record
        return None


QT_CORE = "Qt5Core"
QT_MINIMUM_VERSION = "5.5.0"
PROTOC = "protoc"
TLS_RUNTIME = "Win32SslRuntime"
REDIST_RUNTIME = "VCredistRuntime"
CACHE_TOOL = "ccache"

_64_BIT_ARCHES = {"x86_64", "amd64", "x64", "aarch64", "arm64", "ppc64", "ppc64le", "s390x", "riscv64", "ia64"}
_VERSION_TOKEN = re.compile(r"(\d+(?:\.\d+)+)")
_MSVC_BANNER = re.compile(r"Compiler Version (\d+(?:\.\d+)*) for (\S+)", re.I)


def _first_version(text: str) -> str | None:
    match = _VERSION_TOKEN.search(text)
    return match.group(1) if match else None


class PlatformProbe:
    """Collects :class:`PlatformFacts` and one record per probed dependency.

    Absence of a required dependency is only recorded here; acting on it
    is the dependency gate's job.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        console: Console | None = None,
        env: Mapping[str, str] | None = None,
        system_name: str | None = None,
        machine: str | None = None,
    ) -> None:
        self._runner = runner
        self._console = console or SilentConsole()
        self._env = dict(env) if env is not None else dict(os.environ)
        self._system_name = system_name if system_name is not None else _platform.system()
        self._machine = machine if machine is not None else _platform.machine()

    def probe(self, *, use_ccache: bool, facts: PlatformFacts | None = None) -> ProbeResult:
        facts = facts or self.detect_platform()
        self._console.debug(
            f"Platform: {facts.os_family.value}, compiler {facts.compiler_id} {facts.compiler_version}"
        )
        records: List[DependencyRecord] = [self.probe_qt(), self.probe_protoc()]
        if facts.os_family is OsFamily.WINDOWS:
            records.append(self.probe_tls_runtime(facts))
        if facts.compiler_family is CompilerFamily.MSVC:
            records.append(self.probe_redist_runtime(facts))
        if use_ccache:
            records.append(self.probe_cache_tool())
        return ProbeResult(facts=facts, dependencies=tuple(records))

    # -- platform -----------------------------------------------------------------

    def detect_platform(self) -> PlatformFacts:
        os_family = OsFamily.from_system_name(self._system_name)
        compiler_id, version, compiler_path, arch = self.detect_compiler(os_family)
        if arch:
            is_64_bit = arch.lower() in _64_BIT_ARCHES
        elif self._machine:
            is_64_bit = self._machine.lower() in _64_BIT_ARCHES
        else:
            is_64_bit = sys.maxsize > 2 ** 32
        return PlatformFacts(
            os_family=os_family,
            compiler_family=CompilerFamily.from_compiler_id(compiler_id),
            compiler_version=version,
            is_64_bit=is_64_bit,
            compiler_id=compiler_id,
            compiler_path=compiler_path,
        )

    def _compiler_candidates(self, os_family: OsFamily) -> List[str]:
        explicit = self._env.get("CXX")
        if explicit:
            return [explicit]
        if os_family is OsFamily.WINDOWS:
            return ["cl", "g++", "clang++"]
        if os_family is OsFamily.MACOS:
            return ["c++", "clang++", "g++"]
        return ["c++", "g++", "clang++"]

    def detect_compiler(self, os_family: OsFamily) -> tuple[str, str, str | None, str | None]:
        """Return ``(compiler_id, version, path, target_arch)`` of the C++ compiler."""

        for candidate in self._compiler_candidates(os_family):
            located = self._runner.find_program(candidate)
            if located is None:
                continue
            compiler = str(located)
            if Path(candidate).stem.lower() == "cl":
                banner = self._runner.run([compiler])
                match = _MSVC_BANNER.search(banner.output)
                if match:
                    return "MSVC", match.group(1), compiler, match.group(2)
                continue

            result = self._runner.run([compiler, "--version"])
            if not result.ok:
                continue
            text = result.stdout
            first_line = text.splitlines()[0] if text else ""
            arch: str | None = None
            machine = self._runner.run([compiler, "-dumpmachine"])
            if machine.ok and machine.stdout.strip():
                arch = machine.stdout.strip().split("-", 1)[0]
            if "Apple clang" in first_line or "Apple LLVM" in first_line:
                return "AppleClang", _first_version(first_line) or "", compiler, arch
            if "clang" in first_line.lower():
                return "Clang", _first_version(first_line) or "", compiler, arch
            if "Free Software Foundation" in text or "GCC" in first_line or "g++" in first_line:
                dumped = self._runner.run([compiler, "-dumpfullversion", "-dumpversion"])
                version = dumped.stdout.strip() if dumped.ok and dumped.stdout.strip() else _first_version(first_line)
                return "GNU", version or "", compiler, arch
            return "Unknown", _first_version(first_line) or "", compiler, arch

        self._console.info("No C++ compiler identified")
        return "Unknown", "", None, None

    # -- dependencies -------------------------------------------------------------

    def _qt_hints(self) -> List[Path]:
        hints: List[Path] = []
        for variable in ("Qt5_DIR", "QTDIR"):
            value = self._env.get(variable)
            if value:
                root = Path(value)
                hints.extend([root / "bin", root.parent.parent.parent / "bin"])
        for entry in self._env.get("CMAKE_PREFIX_PATH", "").split(os.pathsep):
            if entry.strip():
                hints.append(Path(entry.strip()) / "bin")
        return hints

    def probe_qt(self) -> DependencyRecord:
        hints = self._qt_hints()
        for name in ("qmake-qt5", "qmake"):
            qmake = self._runner.find_program(name, hints=hints)
            if qmake is None:
                continue
            result = self._runner.run([str(qmake), "-query"])
            if not result.ok:
                continue
            properties = _parse_qmake_query(result.stdout)
            version = properties.get("QT_VERSION")
            if not version:
                continue
            if not _is_qt5(version):
                self._console.debug(f"Ignoring {qmake}: Qt {version} is not Qt 5")
                continue
            details = {
                "library_dir": properties.get("QT_INSTALL_LIBS", ""),
                "plugins_dir": properties.get("QT_INSTALL_PLUGINS", ""),
            }
            self._console.info(f"Found Qt {version}")
            return DependencyRecord(
                name=QT_CORE,
                required=True,
                found=True,
                version=version,
                locate_path=qmake,
                minimum_version=QT_MINIMUM_VERSION,
                details={key: value for key, value in details.items() if value},
            )

        pkg_config = self._runner.find_program("pkg-config")
        if pkg_config is not None:
            version_result = self._runner.run([str(pkg_config), "--modversion", QT_CORE])
            if version_result.ok and _is_qt5(version_result.stdout.strip()):
                version = version_result.stdout.strip()
                libdir_result = self._runner.run([str(pkg_config), "--variable=libdir", QT_CORE])
                pc_details: Dict[str, str] = {}
                libdir = libdir_result.stdout.strip() if libdir_result.ok else ""
                if libdir:
                    pc_details["library_dir"] = libdir
                    pc_details["plugins_dir"] = str(Path(libdir).parent / "plugins")
                self._console.info(f"Found Qt {version}")
                return DependencyRecord(
                    name=QT_CORE,
                    required=True,
                    found=True,
                    version=version,
                    locate_path=Path(libdir) if libdir else pkg_config,
                    minimum_version=QT_MINIMUM_VERSION,
                    details=pc_details,
                )

        return DependencyRecord(name=QT_CORE, required=True, found=False, minimum_version=QT_MINIMUM_VERSION)

    def probe_protoc(self) -> DependencyRecord:
        hints = [Path(self._env["Protobuf_ROOT"]) / "bin"] if self._env.get("Protobuf_ROOT") else []
        protoc = self._runner.find_program(PROTOC, hints=hints)
        if protoc is None:
            return DependencyRecord(name=PROTOC, required=True, found=False)
        result = self._runner.run([str(protoc), "--version"])
        version = _first_version(result.stdout) if result.ok else None
        return DependencyRecord(name=PROTOC, required=True, found=True, version=version, locate_path=protoc)

    def _locate_file(self, names: Sequence[str], directories: Iterable[Path]) -> Path | None:
        for directory in directories:
            for name in names:
                candidate = directory / name
                if candidate.is_file():
                    return candidate
        return None

    def probe_tls_runtime(self, facts: PlatformFacts) -> DependencyRecord:
        suffix = "-x64" if facts.is_64_bit else ""
        library_sets = (
            (f"libcrypto-1_1{suffix}.dll", f"libssl-1_1{suffix}.dll"),
            ("libeay32.dll", "ssleay32.dll"),
        )
        directories: List[Path] = []
        if self._env.get("OPENSSL_ROOT_DIR"):
            root = Path(self._env["OPENSSL_ROOT_DIR"])
            directories.extend([root, root / "bin"])
        for program_files in ("ProgramFiles", "ProgramFiles(x86)"):
            if self._env.get(program_files):
                base = Path(self._env[program_files])
                directories.extend([base / "OpenSSL-Win64" / "bin", base / "OpenSSL-Win32" / "bin", base / "OpenSSL" / "bin"])
        directories.extend(Path(f"C:/{name}/bin") for name in ("OpenSSL-Win64", "OpenSSL-Win32", "OpenSSL"))

        for library_set in library_sets:
            first = self._locate_file(library_set[:1], directories)
            if first is None:
                continue
            second = self._locate_file(library_set[1:], [first.parent])
            if second is None:
                continue
            self._console.info(f"Found SSL runtime in {first.parent}")
            return DependencyRecord(
                name=TLS_RUNTIME,
                required=False,
                found=True,
                locate_path=first.parent,
                details={"libraries": ";".join(str(first.parent / name) for name in library_set)},
            )
        self._console.info("SSL runtime not found, it will not be bundled")
        return DependencyRecord(name=TLS_RUNTIME, required=False, found=False)

    def probe_redist_runtime(self, facts: PlatformFacts) -> DependencyRecord:
        filename = "vcredist_x64.exe" if facts.is_64_bit else "vcredist_x86.exe"
        directories: List[Path] = []
        for variable in ("VCToolsRedistDir", "VCINSTALLDIR"):
            value = self._env.get(variable)
            if value:
                directories.extend([Path(value), Path(value) / "redist", Path(value) / "redist" / "1033"])
        located = self._locate_file([filename], directories)
        if located is None:
            self._console.info(f"{filename} not found, it will not be bundled")
            return DependencyRecord(name=REDIST_RUNTIME, required=False, found=False)
        self._console.info(f"Found {filename}: {located}")
        return DependencyRecord(name=REDIST_RUNTIME, required=False, found=True, locate_path=located)

    def probe_cache_tool(self) -> DependencyRecord:
        located = self._runner.find_program(CACHE_TOOL)
        if located is None:
            return DependencyRecord(name=CACHE_TOOL, required=False, found=False)
        self._console.info(f"Found CCache {located}")
        return DependencyRecord(name=CACHE_TOOL, required=False, found=True, locate_path=located)


def _is_qt5(version: str) -> bool:
    return version.split(".", 1)[0] == "5"


def _parse_qmake_query(text: str) -> Dict[str, str]:
    properties: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip():
            properties[key.strip()] = value.strip()
    return properties


__all__ = [
    "CACHE_TOOL",
    "CompilerFamily",
    "DependencyRecord",
    "OsFamily",
    "PROTOC",
    "PlatformFacts",
    "PlatformProbe",
    "ProbeResult",
    "QT_CORE",
    "QT_MINIMUM_VERSION",
    "REDIST_RUNTIME",
    "TLS_RUNTIME",
]
