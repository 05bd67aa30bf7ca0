"""Shared data models for runonchange."""

import asyncio
import enum
import re
from dataclasses import dataclass, field

DEFAULT_WAIT_SECONDS = 2.0
"""Default debounce window."""


class Feature(enum.Enum):
    """Behavior toggles for a single invocation."""

    AUTO_IGNORE_EDITOR_TEMPS = "auto-ignore-editor-temps"
    DEBUG = "debug"
    CLOBBER = "clobber"
    RECURSIVE = "recursive"
    QUIET = "quiet"


class MatchMode(enum.Enum):
    """How a Matcher's result is applied to an event path."""

    IGNORE = "IGNOR"
    RESTRICT = "RESTR"


@dataclass(frozen=True)
class Matcher:
    """One link of the ordered pattern chain."""

    expr: re.Pattern
    """Compiled expression, searched against the full event path."""

    mode: MatchMode

    def matches(self, path: str) -> bool:
        return self.expr.search(path) is not None

    def __str__(self) -> str:
        return f"[{self.mode.value}]: {self.expr.pattern}"


@dataclass(frozen=True)
class Directive:
    """Configuration for one invocation. Built once at startup, never mutated."""

    shell: str
    """Path to the shell that evaluates `command`."""

    command: str
    """Shell string run on every accepted event."""

    watch_targets: tuple[str, ...]
    """Directories to watch, in command-line order."""

    patterns: tuple[Matcher, ...] = ()
    """Ordered include/exclude chain."""

    features: frozenset[Feature] = frozenset({Feature.AUTO_IGNORE_EDITOR_TEMPS})

    wait_for: float = DEFAULT_WAIT_SECONDS
    """Debounce window in seconds."""

    def has(self, feature: Feature) -> bool:
        return feature in self.features

    @property
    def effective_window(self) -> float:
        """Debounce window, doubled in clobber mode."""
        if self.has(Feature.CLOBBER):
            return self.wait_for * 2
        return self.wait_for

    def describe(self) -> str:
        """Multi-line dump used for debug output."""
        patterns = ", ".join(f"'{p}'" for p in self.patterns) or "n/a"
        features = ", ".join(sorted(f.value for f in self.features)) or "none"
        targets = ",\n\t".join(self.watch_targets)
        return (
            f'  command:        "{self.command}"\n'
            f"  watch targets:  [\n\t{targets}\n  ]\n"
            f"  patterns:       [{patterns}]\n"
            f'  shell:          "{self.shell}"\n'
            f"  features:       {features}\n"
            f"  wait for:       {self.wait_for:g}s"
        )


class EventOp(enum.Enum):
    """Kind of filesystem change, as reported by the registrar."""

    CREATE = "CREATE"
    WRITE = "WRITE"
    REMOVE = "REMOVE"
    RENAME = "RENAME"


@dataclass(frozen=True)
class FileEvent:
    """A raw filesystem event."""

    op: EventOp
    path: str
    is_directory: bool = False

    def __str__(self) -> str:
        return f"{self.op.value} on {self.path}"


class Tick(str, enum.Enum):
    """Single-character glyph reporting what became of one event."""

    STILL_RUNNING = "_"
    """Accepted event dropped: command still running and clobber is off."""

    DEBOUNCED = "-"
    """Run not started: too recent, or nothing needed clobbering."""

    RUN_FAILED = "e"
    """Run not started: the clobber kill or the spawn failed."""

    IGNORED = "i"
    """Event path matched an IGNORE pattern."""

    UNMATCHED = "r"
    """Event path did not match a RESTRICT pattern."""


class ExitCode(enum.IntEnum):
    """Process exit statuses."""

    OK = 0
    USAGE = 1
    UNCLEAN_SHUTDOWN = 1
    WATCHER = 2
    EVENT = 3


@dataclass
class RunOutcome:
    """What became of one child process."""

    pid: int
    returncode: int
    error: Exception | None = None


@dataclass
class ChildHandle:
    """The in-flight child and the single-shot future resolved on its death."""

    process: asyncio.subprocess.Process
    started: float
    death: asyncio.Future = field(repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def pgid(self) -> int:
        # spawned with process_group=0, so the child leads its own group
        return self.process.pid
