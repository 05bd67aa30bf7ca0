"""runonchange: run a shell command whenever files change."""

__version__ = "0.3.0"

from runonchange.controller import Supervisor
from runonchange.errors import (
    KillError,
    RunError,
    RunOnChangeError,
    SpawnError,
    UsageError,
    WatcherRuntimeError,
    WatcherSetupError,
)
from runonchange.models import Directive, ExitCode, Feature, FileEvent, Matcher, MatchMode, Tick

__all__ = [
    "__version__",
    # Models
    "Directive",
    "Feature",
    "Matcher",
    "MatchMode",
    "FileEvent",
    "Tick",
    "ExitCode",
    # Errors
    "RunOnChangeError",
    "UsageError",
    "WatcherSetupError",
    "WatcherRuntimeError",
    "RunError",
    "KillError",
    "SpawnError",
    # Supervisor
    "Supervisor",
]
