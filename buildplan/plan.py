"""Single-pass resolution of options, platform facts and git state into a build plan."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping
import json

from .command_runner import CommandRunner
from .console import Console, SilentConsole
from .dependencies import DependencyGate, GateResult
from .errors import Notice
from .options import BuildType, OptionSet
from .packaging import PackageDescriptor, PackagingDescriptorBuilder, resolve_install_prefix
from .platform import CACHE_TOOL, PlatformFacts, PlatformProbe
from .project import ProjectMetadata
from .subsystems import SubsystemPlan, SubsystemSelector
from .toolchain import (
    BuildSession,
    CompilerFlagProber,
    FlagAccepted,
    FlagProfile,
    MemoizedFlagCheck,
    ToolchainProfileResolver,
    reject_all_flags,
)
from .version import GitVersionQuery, VersionInfo, VersionResolver


@dataclass(slots=True)
class ResolutionRequest:
    source_dir: Path
    build_dir: Path
    options: OptionSet = field(default_factory=OptionSet.defaults)
    build_type: BuildType = BuildType.RELEASE
    install_prefix: Path | None = None
    package_prefix: Path | None = None
    generator_hint: str | None = None
    cmake_generator: str | None = None
    project: ProjectMetadata = field(default_factory=ProjectMetadata)


@dataclass(frozen=True, slots=True)
class BuildPlan:
    build_type: BuildType
    options: OptionSet
    facts: PlatformFacts
    gate: GateResult
    session: BuildSession
    flags: FlagProfile
    definitions: Mapping[str, str]
    version: VersionInfo
    subsystems: SubsystemPlan
    install_prefix: Path
    package: PackageDescriptor
    notices: tuple[Notice, ...]

    @property
    def active_flags(self) -> tuple[str, ...]:
        return self.flags.flags_for(self.build_type)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "build_type": self.build_type.value,
            "options": {key: value for key, value in sorted(self.options.items())},
            "platform": self.facts.to_mapping(),
            "dependencies": [record.to_mapping() for record in self.gate.records],
            "paths": self.gate.paths.to_mapping(),
            "session": self.session.to_mapping(),
            "flags": self.flags.to_mapping(),
            "definitions": dict(sorted(self.definitions.items())),
            "version": self.version.to_mapping(),
            "subsystems": self.subsystems.to_mapping(),
            "test_integration": dict(self.subsystems.test_integration) if self.subsystems.test_integration else None,
            "install_prefix": str(self.install_prefix),
            "package": self.package.to_mapping(),
            "notices": [notice.to_mapping() for notice in self.notices],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_mapping(), indent=2, sort_keys=True) + "\n"


def _on_off(value: bool) -> str:
    return "ON" if value else "OFF"


class ConfigurationEngine:
    """Runs probe, gate, the independent resolvers and packaging, in that order.

    Collaborators default to real implementations backed by ``runner``;
    tests swap in fakes through the keyword arguments.
    """

    def __init__(
        self,
        *,
        runner: CommandRunner,
        console: Console | None = None,
        env: Mapping[str, str] | None = None,
        facts: PlatformFacts | None = None,
        flag_accepted: FlagAccepted | None = None,
        probe: PlatformProbe | None = None,
        gate: DependencyGate | None = None,
        version_query: GitVersionQuery | None = None,
    ) -> None:
        self._runner = runner
        self._console = console or SilentConsole()
        self._facts = facts
        self._flag_accepted = flag_accepted
        self._probe = probe or PlatformProbe(runner, console=self._console, env=env)
        self._gate = gate or DependencyGate(self._console)
        self._version_query = version_query or GitVersionQuery(runner)

    def _flag_check(self, facts: PlatformFacts, session: BuildSession) -> FlagAccepted:
        if self._flag_accepted is not None:
            return self._flag_accepted
        if facts.compiler_path is None:
            return reject_all_flags
        return MemoizedFlagCheck(CompilerFlagProber(self._runner, facts.compiler_path, session))

    def resolve(self, request: ResolutionRequest) -> BuildPlan:
        options = request.options
        probe_result = self._probe.probe(use_ccache=options["USE_CCACHE"], facts=self._facts)
        facts = probe_result.facts

        # raises ConfigurationFatal before anything below is produced
        gate = self._gate.check(probe_result.dependencies)

        session = BuildSession(
            source_dir=request.source_dir,
            build_dir=request.build_dir,
            build_type=request.build_type,
            use_ccache=options["USE_CCACHE"],
            compiler_launcher=gate.paths.tools.get(CACHE_TOOL),
            cmake_generator=request.cmake_generator,
        )

        notices: List[Notice] = list(gate.notices)

        resolver = ToolchainProfileResolver(self._flag_check(facts, session), console=self._console)
        flags, flag_notices = resolver.resolve(
            facts,
            session,
            warning_as_error=options["WARNING_AS_ERROR"],
            cxx_standard=request.project.cxx_standard,
        )
        notices.extend(flag_notices)

        version_resolver = VersionResolver(
            self._version_query,
            request.project.static_version,
            console=self._console,
        )
        version, version_notices = version_resolver.resolve(request.source_dir)
        notices.extend(version_notices)

        subsystems = SubsystemSelector().select(options)
        self._console.info(f"Subsystems: {', '.join(subsystems.names)}")

        install_prefix = resolve_install_prefix(
            facts.os_family,
            request.build_dir,
            install_prefix=request.install_prefix,
            package_prefix=request.package_prefix,
        )
        package = PackagingDescriptorBuilder(request.project).build(
            version=version,
            facts=facts,
            subsystems=subsystems,
            gate=gate,
            session=session,
            install_prefix=install_prefix,
            generator_hint=request.generator_hint,
        )

        self._console.info(f"UPDATE TRANSLATIONS: {_on_off(options['UPDATE_TRANSLATIONS'])}")
        definitions = {
            "CMAKE_BUILD_TYPE": request.build_type.value,
            "CMAKE_INSTALL_PREFIX": str(install_prefix),
            "CMAKE_CXX_STANDARD": str(flags.cxx_standard),
            "CMAKE_CXX_STANDARD_REQUIRED": "ON",
            "CMAKE_AUTOMOC": "ON",
            "UPDATE_TRANSLATIONS": _on_off(options["UPDATE_TRANSLATIONS"]),
            "WARNING_AS_ERROR": _on_off(options["WARNING_AS_ERROR"]),
        }

        return BuildPlan(
            build_type=request.build_type,
            options=options,
            facts=facts,
            gate=gate,
            session=session,
            flags=flags,
            definitions=definitions,
            version=version,
            subsystems=subsystems,
            install_prefix=install_prefix,
            package=package,
            notices=tuple(notices),
        )


__all__ = ["BuildPlan", "ConfigurationEngine", "ResolutionRequest"]
