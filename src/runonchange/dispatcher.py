"""Event-to-execution loop and the feeder that filters raw events into it."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Protocol

from runonchange import event_filter
from runonchange.errors import KillError, RunError, WatcherSetupError
from runonchange.models import Directive, EventOp, ExitCode, Feature, FileEvent, Tick
from runonchange.notifier import Notifier
from runonchange.runner import Runner
from runonchange.shutdown import ShutdownHandler

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 16
"""Accepted events buffered between the feeder and the dispatcher."""


class EventSource(Protocol):
    """What the feeder needs from the registrar."""

    def events(self) -> AsyncIterator[FileEvent]: ...

    def add_tree(self, root: str) -> int: ...


async def feed_events(
    source: EventSource,
    directive: Directive,
    accepted: asyncio.Queue,
    notifier: Notifier,
) -> None:
    """Filter raw events and forward accepted ones, preserving order.

    Raises:
        WatcherRuntimeError: Propagated from the source; fatal to the supervisor
    """
    recursive = directive.has(Feature.RECURSIVE)
    async for event in source.events():
        logger.debug(f"[{event.op.value}] {event.path}")

        if recursive and event.is_directory and event.op in (EventOp.CREATE, EventOp.RENAME):
            try:
                added = source.add_tree(event.path)
                logger.debug(f"Subscribed {added} new director(ies) under {event.path}")
            except WatcherSetupError as e:
                notifier.warning(f"not watching new directory: {e}")

        rejection = event_filter.check_path(directive, event.path)
        if rejection is not None:
            logger.debug(f"{rejection} rejected {event.path}")
            if rejection.tick is not None:
                notifier.tick(rejection.tick)
            continue

        await accepted.put(event)


class Dispatcher:
    """Multiplexes accepted events, child deaths and interrupts.

    The only task that drives the runner: every try_run() and every change
    to the runner's `living` child happens here.
    """

    def __init__(
        self,
        directive: Directive,
        runner: Runner,
        events: asyncio.Queue,
        kills: asyncio.Event,
        shutdown: ShutdownHandler,
        notifier: Notifier,
        feeder: asyncio.Task | None = None,
    ):
        """Initialize dispatcher.

        Args:
            directive: Invocation configuration
            runner: Owner of the child process
            events: Accepted events; None requests a run with no triggering event
            kills: Set when an interrupt arrives
            shutdown: Cleanup to run on interrupt or fatal error
            notifier: Operator output
            feeder: Task filling `events`; its failure is fatal
        """
        self.directive = directive
        self.runner = runner
        self.events = events
        self.kills = kills
        self.shutdown = shutdown
        self.notifier = notifier
        self.feeder = feeder

    async def run(self) -> ExitCode:
        """Loop until an interrupt or a fatal watcher error.

        Returns:
            Exit status for the process
        """
        next_event = asyncio.create_task(self.events.get())
        interrupted = asyncio.create_task(self.kills.wait())
        try:
            while True:
                waiters = {next_event, interrupted}
                death = self.runner.death
                if death is not None:
                    waiters.add(death)
                if self.feeder is not None:
                    waiters.add(self.feeder)

                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if interrupted in done:
                    return await self.shutdown.run()

                if self.feeder is not None and self.feeder in done:
                    exit_code = await self._on_feeder_exit()
                    if exit_code is not None:
                        return exit_code

                # deaths first, so a child that just exited is not clobbered
                if death is not None and death in done:
                    self._on_death()

                if next_event in done:
                    event = next_event.result()
                    next_event = asyncio.create_task(self.events.get())
                    await self._on_event(event)
        finally:
            next_event.cancel()
            interrupted.cancel()

    async def _on_feeder_exit(self) -> ExitCode | None:
        feeder, self.feeder = self.feeder, None
        if feeder.cancelled():
            return None
        error = feeder.exception()
        if error is None:
            logger.info("Filesystem event stream ended")
            return None
        self.notifier.error(f"event error: {error}")
        await self.shutdown.cleanup()
        return ExitCode.EVENT

    def _on_death(self) -> None:
        outcome = self.runner.reap()
        logger.debug(f"Child died: {outcome}")
        if self.directive.has(Feature.CLOBBER):
            self.notifier.notice("command died on its own, unprovoked")

    async def _on_event(self, event: FileEvent | None) -> None:
        clobber = self.directive.has(Feature.CLOBBER)
        if self.runner.living is not None and not clobber:
            self.notifier.tick(Tick.STILL_RUNNING)
            return

        try:
            ran = await self.runner.try_run(event)
        except KillError as e:
            logger.warning(f"Clobber failed: {e}")
            self.notifier.tick(Tick.RUN_FAILED)
            return
        except RunError as e:
            logger.warning(f"Run failed to start: {e}")
            self.notifier.tick(Tick.RUN_FAILED)
            return

        if not ran:
            self.notifier.tick(Tick.DEBOUNCED)
