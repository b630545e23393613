"""Compiler flag profiles per compiler family and build type."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping
import re

from .command_runner import CommandRunner
from .console import Console, SilentConsole
from .errors import Notice, NoticeKind
from .options import BuildType
from .platform import CompilerFamily, OsFamily, PlatformFacts


FlagAccepted = Callable[[CompilerFamily, str, str], bool]
"""``flag_accepted(compiler_family, compiler_version, flag) -> bool``"""


RELEASE_FLAGS: Mapping[CompilerFamily, tuple[str, ...]] = {
    # maximum optimization, dynamic runtime, no C4251 (dll-interface) warning
    CompilerFamily.MSVC: ("/Ox", "/MD", "/wd4251"),
    CompilerFamily.GNU: ("-s", "-O2"),
    CompilerFamily.OTHER: ("-O2",),
}

DEBUG_FLAGS: Mapping[tuple[CompilerFamily, bool], tuple[str, ...]] = {
    (CompilerFamily.MSVC, True): (),
    (CompilerFamily.MSVC, False): (),
    (CompilerFamily.GNU, True): ("-ggdb", "-O0", "-Wall", "-Wextra", "-Werror"),
    (CompilerFamily.GNU, False): ("-ggdb", "-O0", "-Wall", "-Wextra"),
    (CompilerFamily.OTHER, True): ("-g", "-O0"),
    (CompilerFamily.OTHER, False): ("-g", "-O0"),
}

EXTRA_DEBUG_FLAG_CANDIDATES: Mapping[CompilerFamily, tuple[str, ...]] = {
    CompilerFamily.GNU: (
        "-Wcast-align",
        "-Wmissing-declarations",
        "-Wno-long-long",
        "-Wno-error=extra",
        "-Wno-error=delete-non-virtual-dtor",
        "-Wno-error=sign-compare",
        "-Wno-error=missing-declarations",
    ),
}

# Mersenne exponent required by the SFMT random number generator.
RNG_DEFINITIONS: tuple[str, ...] = ("SFMT_MEXP=19937",)
_RNG_COMPILER_IDS = re.compile(r"GNU|Clang")

XCODE_LAUNCHER_ATTRIBUTES: Mapping[str, str] = {
    "CC": "launch-c",
    "CXX": "launch-cxx",
    "LD": "launch-c",
    "LDPLUSPLUS": "launch-cxx",
}


@dataclass(frozen=True, slots=True)
class BuildSession:
    """Per-run context handed to every component that invokes the compiler."""

    source_dir: Path
    build_dir: Path
    build_type: BuildType = BuildType.RELEASE
    use_ccache: bool = True
    compiler_launcher: Path | None = None
    cmake_generator: str | None = None

    def to_mapping(self) -> Dict[str, object]:
        return {
            "source_dir": str(self.source_dir),
            "build_dir": str(self.build_dir),
            "build_type": self.build_type.value,
            "use_ccache": self.use_ccache,
            "compiler_launcher": str(self.compiler_launcher) if self.compiler_launcher else None,
            "cmake_generator": self.cmake_generator,
        }


@dataclass(frozen=True, slots=True)
class FlagProfile:
    compiler_family: CompilerFamily
    release_flags: tuple[str, ...]
    debug_flags: tuple[str, ...]
    definitions: tuple[str, ...] = ()
    cxx_standard: int = 11
    launcher: Path | None = None
    launcher_attributes: Mapping[str, str] = field(default_factory=dict)

    def flags_for(self, build_type: BuildType) -> tuple[str, ...]:
        return self.release_flags if build_type is BuildType.RELEASE else self.debug_flags

    def to_mapping(self) -> Dict[str, object]:
        return {
            "compiler_family": self.compiler_family.value,
            "release": " ".join(self.release_flags),
            "debug": " ".join(self.debug_flags),
            "definitions": list(self.definitions),
            "cxx_standard": self.cxx_standard,
            "cxx_standard_required": True,
            "launcher": str(self.launcher) if self.launcher else None,
            "launcher_attributes": dict(sorted(self.launcher_attributes.items())),
        }


_FLAG_FAILURE_PATTERNS = (
    re.compile(r"unrecognized .*option", re.I),
    re.compile(r"unknown .*option", re.I),
    re.compile(r"ignoring unknown option", re.I),
    re.compile(r"command[- ]line option .* is valid for .* but not for C\+\+", re.I),
    re.compile(r"not supported", re.I),
)

_PROBE_SOURCE = "int main() { return 0; }\n"


class CompilerFlagProber:
    """Asks the real compiler whether it accepts a flag by compiling a stub."""

    def __init__(self, runner: CommandRunner, compiler: str, session: BuildSession) -> None:
        self._runner = runner
        self._compiler = compiler
        self._session = session

    def __call__(self, compiler_family: CompilerFamily, compiler_version: str, flag: str) -> bool:
        command: List[str] = []
        if self._session.use_ccache and self._session.compiler_launcher is not None:
            command.append(str(self._session.compiler_launcher))
        command.extend([self._compiler, flag, "-x", "c++", "-fsyntax-only", "-"])
        result = self._runner.run(command, stdin=_PROBE_SOURCE)
        if not result.ok:
            return False
        output = result.output
        return not any(pattern.search(output) for pattern in _FLAG_FAILURE_PATTERNS)


class MemoizedFlagCheck:
    """Caches answers of another flag check, keyed by its full argument tuple."""

    def __init__(self, check: FlagAccepted) -> None:
        self._check = check
        self._cache: Dict[tuple[CompilerFamily, str, str], bool] = {}

    def __call__(self, compiler_family: CompilerFamily, compiler_version: str, flag: str) -> bool:
        key = (compiler_family, compiler_version, flag)
        if key not in self._cache:
            self._cache[key] = self._check(compiler_family, compiler_version, flag)
        return self._cache[key]


def reject_all_flags(compiler_family: CompilerFamily, compiler_version: str, flag: str) -> bool:
    return False


class ToolchainProfileResolver:
    def __init__(self, flag_accepted: FlagAccepted, *, console: Console | None = None) -> None:
        self._flag_accepted = flag_accepted
        self._console = console or SilentConsole()

    def resolve(
        self,
        facts: PlatformFacts,
        session: BuildSession,
        *,
        warning_as_error: bool,
        cxx_standard: int = 11,
    ) -> tuple[FlagProfile, tuple[Notice, ...]]:
        family = facts.compiler_family
        release_flags = RELEASE_FLAGS[family]
        debug_flags = list(DEBUG_FLAGS[(family, warning_as_error)])

        notices: List[Notice] = []
        for flag in EXTRA_DEBUG_FLAG_CANDIDATES.get(family, ()):
            if self._flag_accepted(family, facts.compiler_version, flag):
                debug_flags.append(flag)
                self._console.debug(f"Performing Test CXX_HAS_WARNING_{flag} - Success")
            else:
                notices.append(
                    Notice(NoticeKind.FLAG_PROBE_SKIP, flag, f"Compiler does not accept {flag}; flag omitted")
                )
                self._console.debug(f"Performing Test CXX_HAS_WARNING_{flag} - Failed")

        definitions: tuple[str, ...] = ()
        if family is CompilerFamily.GNU or _RNG_COMPILER_IDS.search(facts.compiler_id):
            definitions = RNG_DEFINITIONS

        launcher = session.compiler_launcher if session.use_ccache else None
        launcher_attributes: Dict[str, str] = {}
        if launcher is not None and facts.os_family is OsFamily.MACOS:
            self._console.info("Force enabling CCache usage under macOS")
            launcher_attributes = _launcher_attributes(session.build_dir, XCODE_LAUNCHER_ATTRIBUTES)

        profile = FlagProfile(
            compiler_family=family,
            release_flags=tuple(release_flags),
            debug_flags=tuple(debug_flags),
            definitions=definitions,
            cxx_standard=cxx_standard,
            launcher=launcher,
            launcher_attributes=launcher_attributes,
        )
        return profile, tuple(notices)


def _launcher_attributes(build_dir: Path, names: Mapping[str, str]) -> Dict[str, str]:
    return {attribute: str(build_dir / script) for attribute, script in names.items()}


__all__ = [
    "BuildSession",
    "CompilerFlagProber",
    "DEBUG_FLAGS",
    "EXTRA_DEBUG_FLAG_CANDIDATES",
    "FlagAccepted",
    "FlagProfile",
    "MemoizedFlagCheck",
    "RELEASE_FLAGS",
    "RNG_DEFINITIONS",
    "ToolchainProfileResolver",
    "reject_all_flags",
]
