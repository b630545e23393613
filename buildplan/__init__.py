"""Configure-time build planning for the Cockatrice sources."""
from __future__ import annotations

from .cli import main
from .errors import ConfigurationFatal
from .plan import BuildPlan, ConfigurationEngine, ResolutionRequest

__all__ = ["BuildPlan", "ConfigurationEngine", "ConfigurationFatal", "ResolutionRequest", "main"]
