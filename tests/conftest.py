"""Pytest configuration and fixtures."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from runonchange.models import Directive, Feature  # noqa: E402

SHELL = "/bin/sh"


class RecordingNotifier:
    """Notifier that keeps everything it is told."""

    def __init__(self):
        self.lines: list[tuple[str, object]] = []
        self.ticks: list[str] = []

    def watching(self, targets, clobber):
        self.lines.append(("watching", (tuple(targets), clobber)))

    def handling(self, event):
        self.lines.append(("handling", event))

    def running(self, command):
        self.lines.append(("running", command))

    def done(self, elapsed, error):
        self.lines.append(("done", error))

    def notice(self, message):
        self.lines.append(("notice", message))

    def warning(self, message):
        self.lines.append(("warning", message))

    def error(self, message):
        self.lines.append(("error", message))

    def tick(self, tick):
        self.ticks.append(tick.value)

    def kinds(self, kind):
        return [value for k, value in self.lines if k == kind]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_directive(tmp_path):
    """Factory for directives watching tmp_path, run by /bin/sh."""

    def factory(command="true", features=(), default_ignore=True, **overrides):
        base = {Feature.AUTO_IGNORE_EDITOR_TEMPS} if default_ignore else set()
        values = {
            "shell": SHELL,
            "command": command,
            "watch_targets": (str(tmp_path),),
            "features": frozenset({*base, *features}),
            "wait_for": 0.2,
        }
        values.update(overrides)
        return Directive(**values)

    return factory


async def wait_until(predicate, timeout=5.0, interval=0.02):
    """Poll `predicate` until it is true, failing the test on timeout."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(interval)


def is_dead(pid):
    """True once pid has exited, zombies included."""
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return True
    return stat.rsplit(")", 1)[1].split()[0] in ("Z", "X")
