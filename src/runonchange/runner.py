"""Child-process lifecycle: debounce, spawn, reap and clobber."""

import asyncio
import logging
import os
import signal
import time
from collections.abc import Callable

from runonchange.errors import ChildExitError, KillError, SpawnError
from runonchange.models import ChildHandle, Directive, Feature, FileEvent, RunOutcome
from runonchange.notifier import NoOpNotifier, Notifier

logger = logging.getLogger(__name__)


class Runner:
    """Owns the single child process and the recency window.

    `living` is only written from the dispatcher task: by try_run() when a
    child is spawned, and by reap() once its death has been received.
    A reaped child's process group is remembered while it may still hold
    descendants the command backgrounded; clobbering and shutdown kill them.
    The lock covers the recency check and the decision to spawn; it is
    released before the child runs.
    """

    def __init__(
        self,
        directive: Directive,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize runner.

        Args:
            directive: Invocation configuration
            notifier: Operator output (defaults to NoOpNotifier - silent)
            clock: Monotonic time source in seconds
        """
        self.directive = directive
        self.notifier = notifier or NoOpNotifier()
        self._clock = clock
        self._lock = asyncio.Lock()
        self._reapers: set[asyncio.Task] = set()
        self._leftover_groups: set[int] = set()

        self.last_start: float | None = None
        # None while a run is in flight, or before the first run
        self.last_finish: float | None = None
        self.living: ChildHandle | None = None

    @property
    def death(self) -> asyncio.Future | None:
        """Single-shot future resolved with the living child's RunOutcome."""
        return self.living.death if self.living else None

    def is_recent(self) -> bool:
        """True if the last start or finish is inside the debounce window."""
        window = self.directive.effective_window
        if window <= 0:
            return False
        now = self._clock()
        for stamp in (self.last_start, self.last_finish):
            if stamp is not None and now - stamp <= window:
                return True
        return False

    async def try_run(self, event: FileEvent | None = None) -> bool:
        """Start a run for `event` unless the debounce window forbids it.

        Args:
            event: Triggering event, or None for the startup run

        Returns:
            True once the child has been spawned, False if debounced

        Raises:
            KillError: Clobber mode could not kill the previous child
            SpawnError: The shell could not be executed
        """
        async with self._lock:
            clobber = self.directive.has(Feature.CLOBBER)
            if self.living is not None and not clobber:
                return False
            if self.is_recent():
                return False

            self.last_start = self._clock()
            self.last_finish = None
            self.notifier.handling(event)

            if clobber:
                await self.kill_existing(wait=True)
                self.kill_leftover_groups()
                # the preempted run's finish stamp is not this run's
                self.last_finish = None

            self.living = await self._spawn()
            return True

    async def _spawn(self) -> ChildHandle:
        command = self.directive.command
        self.notifier.running(command)
        started = self.last_start
        try:
            process = await asyncio.create_subprocess_exec(
                self.directive.shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                process_group=0,
            )
        except OSError as e:
            self.last_finish = self._clock()
            error = SpawnError(self.directive.shell, e)
            logger.error(f"Failed to spawn `{command}`: {error}")
            self.notifier.done(self.last_finish - started, error)
            raise error from e

        child = ChildHandle(
            process=process,
            started=started,
            death=asyncio.get_running_loop().create_future(),
        )
        logger.debug(f"Spawned pid {child.pid} (pgid {child.pgid})")
        self._forget_empty_groups()

        reaper = asyncio.create_task(self._reap_when_done(child))
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)
        return child

    async def _reap_when_done(self, child: ChildHandle) -> None:
        returncode = await child.process.wait()
        self.last_finish = self._clock()
        error = ChildExitError(returncode) if returncode != 0 else None
        self.notifier.done(self.last_finish - child.started, error)
        logger.debug(f"pid {child.pid} exited with {returncode}")
        if not child.death.done():
            child.death.set_result(RunOutcome(pid=child.pid, returncode=returncode, error=error))

    def reap(self) -> RunOutcome | None:
        """Clear `living` after its death has been received.

        Returns:
            The dead child's outcome, or None if nothing was living
        """
        child = self.living
        if child is None:
            return None
        self.living = None
        self._leftover_groups.add(child.pgid)
        if child.death.done():
            return child.death.result()
        return None

    async def kill_existing(self, wait: bool) -> bool:
        """SIGKILL the living child's whole process group.

        Args:
            wait: Block until the child's death has been received, then reap it

        Returns:
            True if a child was living

        Raises:
            KillError: If the signal could not be delivered
        """
        child = self.living
        if child is None:
            return False

        logger.debug(f"Killing process group {child.pgid}")
        try:
            os.killpg(child.pgid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Process group {child.pgid} already gone")
        except OSError as e:
            raise KillError(child.pgid, e) from e

        if wait:
            await asyncio.shield(child.death)
            self.reap()
        return True

    def kill_leftover_groups(self) -> int:
        """SIGKILL what remains of the process groups of reaped runs.

        The shell leading a group may exit while commands it backgrounded
        keep running in that group.

        Returns:
            Number of groups that still had members
        """
        killed = 0
        for pgid in sorted(self._leftover_groups):
            try:
                os.killpg(pgid, signal.SIGKILL)
            except ProcessLookupError:
                continue
            except OSError as e:
                logger.warning(f"Could not kill leftover process group {pgid}: {e}")
                continue
            logger.debug(f"Killed leftover process group {pgid}")
            killed += 1
        self._leftover_groups.clear()
        return killed

    def _forget_empty_groups(self) -> None:
        for pgid in list(self._leftover_groups):
            try:
                os.killpg(pgid, 0)
            except OSError:
                self._leftover_groups.discard(pgid)
