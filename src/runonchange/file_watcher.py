"""Directory subscription and raw event stream using watchdog."""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from runonchange.errors import WatcherRuntimeError, WatcherSetupError
from runonchange.models import Directive, EventOp, Feature, FileEvent

logger = logging.getLogger(__name__)

LIVENESS_INTERVAL = 1.0
"""Seconds without events before the observer thread is checked."""

_OPS = {
    EVENT_TYPE_CREATED: EventOp.CREATE,
    EVENT_TYPE_MODIFIED: EventOp.WRITE,
    EVENT_TYPE_DELETED: EventOp.REMOVE,
    EVENT_TYPE_MOVED: EventOp.RENAME,
}


def to_file_event(event: FileSystemEvent) -> FileEvent | None:
    """Convert a watchdog event, or None if it should not reach the filter.

    Open/close notifications carry no change, and a directory's own
    "modified" notice duplicates the event for the child that changed.
    """
    op = _OPS.get(event.event_type)
    if op is None:
        return None
    if op is EventOp.WRITE and event.is_directory:
        return None

    path = event.dest_path if op is EventOp.RENAME and event.dest_path else event.src_path
    return FileEvent(op=op, path=os.fsdecode(path), is_directory=event.is_directory)


class _EventBridge(FileSystemEventHandler):
    """Hands watchdog events from the observer thread to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        self.loop = loop
        self.queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        file_event = to_file_event(event)
        if file_event is None:
            return
        self.loop.call_soon_threadsafe(self.queue.put_nowait, file_event)


def _raise(error: OSError) -> None:
    raise error


class WatchRegistrar:
    """Subscribes the watch targets and exposes their events as an async stream.

    Owns the watchdog observer exclusively; only close() stops it.
    """

    def __init__(
        self,
        directive: Directive,
        loop: asyncio.AbstractEventLoop,
        observer_factory: Callable[[], Observer] = Observer,
        liveness_interval: float = LIVENESS_INTERVAL,
    ):
        """Initialize registrar.

        Args:
            directive: Invocation configuration
            loop: Event loop that consumes events
            observer_factory: Creates the watchdog observer
            liveness_interval: Idle seconds between observer health checks
        """
        self.directive = directive
        self.loop = loop
        self.liveness_interval = liveness_interval
        self._queue: asyncio.Queue[FileEvent] = asyncio.Queue()
        self._bridge = _EventBridge(loop, self._queue)
        self._observer_factory = observer_factory
        self.observer: Observer | None = None
        self.subscribed: set[str] = set()
        self._closed = False

    def start(self) -> int:
        """Start the observer and subscribe every target.

        Returns:
            Number of directories subscribed

        Raises:
            WatcherSetupError: If the observer cannot start, a subscription
                fails, or a recursive walk hits an I/O error
        """
        try:
            self.observer = self._observer_factory()
            self.observer.start()
        except Exception as e:
            raise WatcherSetupError(f"starting filesystem observer: {e}") from e

        for target in self.directive.watch_targets:
            if self.directive.has(Feature.RECURSIVE):
                self.add_tree(target)
            else:
                self.subscribe(target)

        logger.info(f"Subscribed {len(self.subscribed)} director(ies)")
        return len(self.subscribed)

    def subscribe(self, directory: str) -> bool:
        """Subscribe a single directory, non-recursively.

        Returns:
            False if it was already subscribed
        """
        if directory in self.subscribed:
            return False
        try:
            self.observer.schedule(self._bridge, directory, recursive=False)
        except Exception as e:
            raise WatcherSetupError(f"subscribing {directory}: {e}", len(self.subscribed)) from e
        self.subscribed.add(directory)
        logger.debug(f"Subscribed {directory}")
        return True

    def add_tree(self, root: str) -> int:
        """Subscribe `root` and every directory beneath it.

        Returns:
            Number of newly subscribed directories
        """
        added = 0
        try:
            for dirpath, _dirnames, _filenames in os.walk(root, onerror=_raise):
                if self.subscribe(dirpath):
                    added += 1
        except OSError as e:
            raise WatcherSetupError(f"walking {root}: {e}", len(self.subscribed)) from e
        return added

    async def events(self) -> AsyncIterator[FileEvent]:
        """Yield raw events in the order the observer produced them.

        Raises:
            WatcherRuntimeError: If the observer thread dies before close()
        """
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=self.liveness_interval)
            except TimeoutError:
                self._check_alive()
                continue
            yield event

    def _check_alive(self) -> None:
        if self._closed or self.observer is None:
            return
        if not self.observer.is_alive():
            raise WatcherRuntimeError("filesystem observer stopped unexpectedly")

    def close(self) -> None:
        """Stop the observer. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.observer is not None and self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped filesystem observer")
