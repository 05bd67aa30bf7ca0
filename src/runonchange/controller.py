"""Supervisor: wires registrar, runner and dispatcher. Primary embed point."""

import asyncio
import logging
import signal
from collections.abc import Callable

from watchdog.observers import Observer

from runonchange.dispatcher import EVENT_QUEUE_SIZE, Dispatcher, feed_events
from runonchange.errors import WatcherSetupError
from runonchange.file_watcher import LIVENESS_INTERVAL, WatchRegistrar
from runonchange.models import Directive, ExitCode, Feature
from runonchange.notifier import NoOpNotifier, Notifier
from runonchange.runner import Runner
from runonchange.shutdown import ShutdownHandler

logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Supervisor:
    """Runs a Directive until interrupted.

    Stable methods: run(), request_shutdown().

    With install_signal_handlers, SIGINT and SIGTERM are left ignored once
    run() returns from a shutdown request.
    """

    def __init__(
        self,
        directive: Directive,
        notifier: Notifier | None = None,
        observer_factory: Callable[[], Observer] = Observer,
        install_signal_handlers: bool = True,
        liveness_interval: float = LIVENESS_INTERVAL,
    ):
        """Initialize supervisor.

        Args:
            directive: Invocation configuration
            notifier: Operator output (defaults to NoOpNotifier - silent)
            observer_factory: Creates the watchdog observer
            install_signal_handlers: Route SIGINT/SIGTERM to request_shutdown()
            liveness_interval: Idle seconds between observer health checks
        """
        self.directive = directive
        self.notifier = notifier or NoOpNotifier()
        self.observer_factory = observer_factory
        self.install_signal_handlers = install_signal_handlers
        self.liveness_interval = liveness_interval
        self.runner: Runner | None = None
        self._kills: asyncio.Event | None = None

    def request_shutdown(self) -> None:
        """Begin graceful shutdown. Repeated requests are no-ops."""
        if self._kills is not None:
            self._kills.set()

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        # After an interrupt, further ones are ignored rather than restored
        # to their defaults: the exit status has already been decided.
        interrupted = self._kills.is_set()
        for sig in INTERRUPT_SIGNALS:
            loop.remove_signal_handler(sig)
            if interrupted:
                signal.signal(sig, signal.SIG_IGN)

    async def run(self) -> ExitCode:
        """Subscribe, run once, then run on every accepted event until interrupted.

        Returns:
            Exit status for the process
        """
        loop = asyncio.get_running_loop()
        self._kills = asyncio.Event()

        registrar = WatchRegistrar(
            self.directive,
            loop,
            observer_factory=self.observer_factory,
            liveness_interval=self.liveness_interval,
        )
        try:
            count = registrar.start()
        except WatcherSetupError as e:
            logger.error(f"Watcher setup failed after {e.subscribed} subscription(s): {e}")
            self.notifier.error(f"watcher error: {e}")
            registrar.close()
            return ExitCode.WATCHER

        logger.debug(f"Watching {count} director(ies)")
        self.notifier.watching(self.directive.watch_targets, self.directive.has(Feature.CLOBBER))

        self.runner = Runner(self.directive, self.notifier)
        accepted: asyncio.Queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
        # initial run, before any filesystem event
        accepted.put_nowait(None)

        feeder = asyncio.create_task(feed_events(registrar, self.directive, accepted, self.notifier))
        dispatcher = Dispatcher(
            self.directive,
            self.runner,
            accepted,
            self._kills,
            ShutdownHandler(self.runner, registrar, self.notifier),
            self.notifier,
            feeder=feeder,
        )

        if self.install_signal_handlers:
            for sig in INTERRUPT_SIGNALS:
                loop.add_signal_handler(sig, self.request_shutdown)
        try:
            return await dispatcher.run()
        finally:
            if self.install_signal_handlers:
                self._remove_signal_handlers(loop)
            feeder.cancel()
            registrar.close()
