"""Leveled console output for configure-time status messages."""
from __future__ import annotations

import sys
from typing import TextIO


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info", *, stream: TextIO | None = None, error_stream: TextIO | None = None):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown console level: {level}")
        self.level_name = level
        self.level = self.LEVELS[level]
        self._stream = stream
        self._error_stream = error_stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def error_stream(self) -> TextIO:
        return self._error_stream if self._error_stream is not None else sys.stderr

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"-- {message}", file=self.stream)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"Error: {message}", file=self.error_stream)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"-- [debug] {message}", file=self.stream)


class SilentConsole(Console):
    def __init__(self) -> None:
        super().__init__("none")
