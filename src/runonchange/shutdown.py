"""Graceful shutdown on interrupt."""

import logging
from typing import Protocol

from runonchange.errors import KillError
from runonchange.models import ExitCode
from runonchange.notifier import Notifier
from runonchange.runner import Runner

logger = logging.getLogger(__name__)


class Closeable(Protocol):
    def close(self) -> None: ...


class ShutdownHandler:
    """Kills the child's process group, and any left by earlier runs, then
    closes the watcher, once."""

    def __init__(self, runner: Runner, watcher: Closeable, notifier: Notifier):
        self.runner = runner
        self.watcher = watcher
        self.notifier = notifier
        self._clean: bool | None = None

    async def cleanup(self) -> bool:
        """Best-effort teardown. Later calls return the first call's result.

        Returns:
            True if every step succeeded
        """
        if self._clean is not None:
            return self._clean

        clean = True
        try:
            existed = await self.runner.kill_existing(wait=False)
            logger.debug("Killed living command" if existed else "No living command to kill")
        except KillError as e:
            clean = False
            self.notifier.error(f"Failed: {e}")
        if self.runner.kill_leftover_groups():
            logger.debug("Killed commands left behind by earlier runs")

        try:
            self.watcher.close()
        except Exception as e:
            clean = False
            logger.error(f"Failed to close watcher: {e}")
            self.notifier.error(f"Failed: closing watcher: {e}")

        self._clean = clean
        return clean

    async def run(self) -> ExitCode:
        """Handle an interrupt.

        Returns:
            ExitCode.OK if cleanup succeeded, ExitCode.UNCLEAN_SHUTDOWN otherwise
        """
        first = self._clean is None
        if first:
            self.notifier.notice("\nCaught interrupt; starting graceful shutdown...")
        clean = await self.cleanup()
        if first and clean:
            self.notifier.notice("Done")
        return ExitCode.OK if clean else ExitCode.UNCLEAN_SHUTDOWN
