"""Blocking command execution used by every external probe."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Sequence
import os
import shutil
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return f"{self.stdout}{self.stderr}"


class CommandRunner:
    """Abstract command runner interface.

    A failing command is reported through its result, never raised; probes
    decide for themselves what a non-zero exit means. No timeout is applied,
    so a stalled tool stalls the whole run.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        stdin: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def find_program(self, name: str, *, hints: Sequence[Path] = ()) -> Path | None:
        search_path = None
        if hints:
            search_path = os.pathsep.join([str(hint) for hint in hints] + [os.environ.get("PATH", "")])
        located = shutil.which(name, path=search_path)
        return Path(located) if located else None


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        stdin: str | None = None,
    ) -> CommandResult:
        try:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            return CommandResult(command=command, returncode=127, stdout="", stderr=str(exc))
        return CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )


__all__ = [
    "CommandResult",
    "CommandRunner",
    "SubprocessCommandRunner",
]
