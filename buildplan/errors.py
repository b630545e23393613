"""Error and notice types raised or collected during resolution."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConfigurationFatal(RuntimeError):
    """Raised when resolution cannot continue, e.g. a required dependency is missing."""

    def __init__(self, dependency: str, message: str) -> None:
        super().__init__(message)
        self.dependency = dependency


class VersionArtifactError(RuntimeError):
    """Raised when the version artifact is written more than once in a run."""


class NoticeKind(str, Enum):
    OPTIONAL_DEGRADED = "optional-degraded"
    FLAG_PROBE_SKIP = "flag-probe-skip"
    VERSION_FALLBACK = "version-fallback"


@dataclass(frozen=True, slots=True)
class Notice:
    kind: NoticeKind
    subject: str
    message: str

    def to_mapping(self) -> dict[str, str]:
        return {"kind": self.kind.value, "subject": self.subject, "message": self.message}


__all__ = ["ConfigurationFatal", "Notice", "NoticeKind", "VersionArtifactError"]
