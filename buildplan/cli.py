"""Command line interface for the buildplan tool."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Dict, Iterable, List
import os
import sys

from .command_runner import SubprocessCommandRunner
from .config_loader import LayeredConfig
from .console import Console
from .errors import ConfigurationFatal
from .options import BuildType, OptionSet, describe_options, parse_definition
from .plan import ConfigurationEngine, ResolutionRequest
from .project import ProjectMetadata
from .version import VersionArtifact


CONFIG_ENV_VAR = "BUILDPLAN_CONFIG"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="buildplan", description="Resolve a Cockatrice build configuration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Probe the host and emit the build plan")
    resolve_parser.add_argument(
        "-D",
        dest="definitions",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Override a build option (e.g. -DWITH_SERVER=ON)",
    )
    resolve_parser.add_argument("-B", "--build-type", dest="build_type", help="Release or Debug (default: Release)")
    resolve_parser.add_argument("--source-dir", type=Path, help="Source tree (default: current directory)")
    resolve_parser.add_argument("--build-dir", type=Path, help="Build directory (default: <source-dir>/build)")
    resolve_parser.add_argument("--install-prefix", type=Path, help="Explicit install prefix")
    resolve_parser.add_argument("--prefix", type=Path, help="PREFIX passed in by distribution package builds")
    resolve_parser.add_argument(
        "--package-generator",
        choices=["RPM", "DEB"],
        type=str.upper,
        help="Linux/BSD package format (default: DEB)",
    )
    resolve_parser.add_argument("--cmake-generator", help="Name of the CMake generator in use")
    resolve_parser.add_argument("--config", type=Path, help=f"Configuration file (default: ${CONFIG_ENV_VAR})")
    resolve_parser.add_argument("--output", "-o", type=Path, help="Write the plan to this file instead of stdout")
    resolve_parser.add_argument(
        "--no-version-files",
        action="store_true",
        help="Do not write version_string.h/.cpp into the build directory",
    )
    verbosity = resolve_parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only report errors")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")

    subparsers.add_parser("options", help="List build options with their defaults")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    if args.command == "resolve":
        return _handle_resolve(args, workspace)
    if args.command == "options":
        return _handle_options(args)
    raise ValueError(f"Unknown command: {args.command}")


def _console_level(args: Namespace) -> str:
    if getattr(args, "quiet", False):
        return "error"
    if getattr(args, "verbose", False):
        return "debug"
    return "info"


def _load_configuration(args: Namespace) -> LayeredConfig:
    paths: List[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        paths.append(Path(env_path))
    if args.config is not None:
        paths.append(args.config)
    return LayeredConfig.load(paths)


def _definition_layer(values: Iterable[str]) -> Dict[str, str]:
    layer: Dict[str, str] = {}
    for raw in values:
        name, value = parse_definition(raw)
        layer[name] = value
    return layer


def _optional_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _build_request(args: Namespace, workspace: Path, config: LayeredConfig) -> ResolutionRequest:
    build = config.build
    options = OptionSet.resolve(config.options, _definition_layer(args.definitions))
    build_type = BuildType.parse(args.build_type if args.build_type is not None else build.get("type"))
    project = ProjectMetadata.from_mapping(config.project)

    source_dir = (args.source_dir or workspace).resolve()
    build_dir = args.build_dir or _optional_path(build.get("build_dir")) or source_dir / "build"
    generator_hint = args.package_generator or build.get("package_generator")

    return ResolutionRequest(
        source_dir=source_dir,
        build_dir=build_dir.resolve(),
        options=options,
        build_type=build_type,
        install_prefix=args.install_prefix or _optional_path(build.get("install_prefix")),
        package_prefix=args.prefix or _optional_path(build.get("prefix")),
        generator_hint=str(generator_hint) if generator_hint else None,
        cmake_generator=args.cmake_generator or build.get("cmake_generator"),
        project=project,
    )


def _handle_resolve(args: Namespace, workspace: Path) -> int:
    # keep stdout clean for the plan itself
    status_stream = sys.stdout if args.output is not None else sys.stderr
    console = Console(_console_level(args), stream=status_stream)

    try:
        config = _load_configuration(args)
        request = _build_request(args, workspace, config)
    except (OSError, TypeError, ValueError) as exc:
        console.error(str(exc))
        return EXIT_USAGE

    engine = ConfigurationEngine(runner=SubprocessCommandRunner(), console=console)
    try:
        plan = engine.resolve(request)
    except ConfigurationFatal as exc:
        console.error(str(exc))
        return EXIT_FATAL

    for notice in plan.notices:
        console.info(notice.message)

    if not args.no_version_files:
        artifact = VersionArtifact(request.build_dir)
        for path in artifact.write(plan.version):
            console.debug(f"Wrote {path}")

    document = plan.to_json()
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(document, encoding="utf-8", newline="\n")
        console.info(f"Build plan written to {args.output}")
    else:
        sys.stdout.write(document)
    return EXIT_OK


def _handle_options(args: Namespace) -> int:
    for line in describe_options():
        print(line)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
