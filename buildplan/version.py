"""Version identifier derived from git state, with a static fallback."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping
import re

from .command_runner import CommandRunner
from .console import Console, SilentConsole
from .errors import Notice, NoticeKind, VersionArtifactError


_TAG_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?P<label>[-+.~].*)?$")
_DESCRIBE_PATTERN = re.compile(r"^(?P<tag>.+)-(?P<distance>\d+)-g(?P<hash>[0-9a-f]+)$")


@dataclass(frozen=True, slots=True)
class VersionControlState:
    """Result of asking version control about the source tree."""

    available: bool
    commit_hash: str | None = None
    exact_tag: str | None = None
    distance: int | None = None

    @classmethod
    def unavailable(cls) -> "VersionControlState":
        return cls(available=False)


@dataclass(frozen=True, slots=True)
class VersionInfo:
    major: int
    minor: int
    patch: int
    commit_hash: str
    is_exact_tag: bool
    filename_suffix: str

    @property
    def version(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def version_string(self) -> str:
        return f"{self.version}{self.filename_suffix}"

    def package_file_name(self, project_name: str) -> str:
        return f"{project_name}-{self.version_string}"

    def to_mapping(self) -> Dict[str, object]:
        return {
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
            "commit_hash": self.commit_hash,
            "is_exact_tag": self.is_exact_tag,
            "filename_suffix": self.filename_suffix,
            "version": self.version,
            "version_string": self.version_string,
        }


class GitVersionQuery:
    def __init__(self, runner: CommandRunner, *, environment: Mapping[str, str] | None = None) -> None:
        self._runner = runner
        self._environment = environment

    def _git(self, repo_path: Path, *args: str) -> str | None:
        result = self._runner.run(["git", *args], cwd=repo_path, env=self._environment)
        if not result.ok:
            return None
        return result.stdout.strip()

    def query(self, repo_path: Path) -> VersionControlState:
        if not repo_path.exists():
            return VersionControlState.unavailable()
        commit = self._git(repo_path, "rev-parse", "--short", "HEAD")
        if not commit:
            return VersionControlState.unavailable()

        exact_tag = self._git(repo_path, "describe", "--exact-match", "--tags", "HEAD")
        if exact_tag:
            return VersionControlState(available=True, commit_hash=commit, exact_tag=exact_tag, distance=0)

        distance: int | None = None
        described = self._git(repo_path, "describe", "--tags", "--long")
        match = _DESCRIBE_PATTERN.match(described) if described else None
        if match:
            distance = int(match.group("distance"))
        else:
            count = self._git(repo_path, "rev-list", "--count", "HEAD")
            if count and count.isdigit():
                distance = int(count)
        return VersionControlState(available=True, commit_hash=commit, distance=distance)


def resolve_version(
    state: VersionControlState,
    static_version: tuple[int, int, int],
) -> tuple[VersionInfo, tuple[Notice, ...]]:
    """Derive :class:`VersionInfo` from ``state``; never fails."""

    major, minor, patch = static_version
    if not state.available or not state.commit_hash:
        notice = Notice(
            NoticeKind.VERSION_FALLBACK,
            "version",
            f"Version control unavailable; using static version {major}.{minor}.{patch}",
        )
        info = VersionInfo(major, minor, patch, commit_hash="", is_exact_tag=False, filename_suffix="")
        return info, (notice,)

    if state.exact_tag:
        match = _TAG_PATTERN.match(state.exact_tag)
        if match:
            tag_major, tag_minor, tag_patch = (int(match.group(index)) for index in (1, 2, 3))
            label = match.group("label") or ""
            info = VersionInfo(
                tag_major,
                tag_minor,
                tag_patch,
                commit_hash=state.commit_hash,
                is_exact_tag=True,
                filename_suffix=label,
            )
            return info, ()

    notices: tuple[Notice, ...] = ()
    if state.exact_tag:
        notices = (
            Notice(
                NoticeKind.VERSION_FALLBACK,
                "version",
                f"Tag '{state.exact_tag}' is not a MAJOR.MINOR.PATCH version; using static version",
            ),
        )
    if state.distance is not None:
        suffix = f"-{state.distance}-g{state.commit_hash}"
    else:
        suffix = f"-g{state.commit_hash}"
    info = VersionInfo(major, minor, patch, commit_hash=state.commit_hash, is_exact_tag=False, filename_suffix=suffix)
    return info, notices


class VersionResolver:
    """Computes :class:`VersionInfo` exactly once per run."""

    def __init__(
        self,
        query: GitVersionQuery,
        static_version: tuple[int, int, int],
        *,
        console: Console | None = None,
    ) -> None:
        self._query = query
        self._static_version = static_version
        self._console = console or SilentConsole()
        self._resolved: tuple[VersionInfo, tuple[Notice, ...]] | None = None

    def resolve(self, repo_path: Path) -> tuple[VersionInfo, tuple[Notice, ...]]:
        if self._resolved is None:
            state = self._query.query(repo_path)
            self._resolved = resolve_version(state, self._static_version)
            info = self._resolved[0]
            self._console.info(f"Version: {info.version_string}")
        return self._resolved


HEADER_NAME = "version_string.h"
SOURCE_NAME = "version_string.cpp"


def render_version_files(info: VersionInfo) -> Dict[str, str]:
    header = (
        "// Generated file, do not edit.\n"
        "#ifndef VERSION_STRING_H\n"
        "#define VERSION_STRING_H\n"
        "\n"
        "extern const char *VERSION_STRING;\n"
        "extern const char *VERSION_COMMIT;\n"
        "\n"
        "#endif\n"
    )
    source = (
        "// Generated file, do not edit.\n"
        f'#include "{HEADER_NAME}"\n'
        "\n"
        f'const char *VERSION_STRING = "{info.version_string}";\n'
        f'const char *VERSION_COMMIT = "{info.commit_hash}";\n'
    )
    return {HEADER_NAME: header, SOURCE_NAME: source}


class VersionArtifact:
    """The generated header/source pair; may be written only once per run."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory
        self._written: tuple[Path, ...] | None = None

    @property
    def written(self) -> tuple[Path, ...] | None:
        return self._written

    def write(self, info: VersionInfo) -> tuple[Path, ...]:
        if self._written is not None:
            raise VersionArtifactError(f"Version files were already written to {self._directory}")
        self._directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for name, content in render_version_files(info).items():
            path = self._directory / name
            path.write_text(content, encoding="utf-8", newline="\n")
            paths.append(path)
        self._written = tuple(paths)
        return self._written


__all__ = [
    "GitVersionQuery",
    "HEADER_NAME",
    "SOURCE_NAME",
    "VersionArtifact",
    "VersionControlState",
    "VersionInfo",
    "VersionResolver",
    "render_version_files",
    "resolve_version",
]
