"""Pluggable operator-output protocol for runonchange.

Framing lines go to stdout, ticks and notices to stderr. The bulk of both
streams belongs to the child command, so everything here stays short.
Can be replaced with custom implementations for testing or embedding.
"""

from collections.abc import Sequence
from typing import Protocol

from rich.console import Console
from rich.markup import escape

from runonchange.models import FileEvent, Tick


class Notifier(Protocol):
    """Protocol for operator output - host can provide custom implementation."""

    def watching(self, targets: Sequence[str], clobber: bool) -> None:
        """Watches were established."""
        ...

    def handling(self, event: FileEvent | None) -> None:
        """A run was accepted for an event (None for the startup run)."""
        ...

    def running(self, command: str) -> None:
        """The child was spawned."""
        ...

    def done(self, elapsed: float, error: Exception | None) -> None:
        """The child finished, or failed to start."""
        ...

    def notice(self, message: str) -> None:
        """Informational status line."""
        ...

    def warning(self, message: str) -> None:
        """Warning status line."""
        ...

    def error(self, message: str) -> None:
        """Error status line."""
        ...

    def tick(self, tick: Tick) -> None:
        """Disposition of one event."""
        ...


class NoOpNotifier:
    """Silent notifier - default for embedded mode."""

    def watching(self, targets: Sequence[str], clobber: bool) -> None:
        pass

    def handling(self, event: FileEvent | None) -> None:
        pass

    def running(self, command: str) -> None:
        pass

    def done(self, elapsed: float, error: Exception | None) -> None:
        pass

    def notice(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def tick(self, tick: Tick) -> None:
        pass


class ConsoleNotifier:
    """Terminal implementation using rich consoles."""

    def __init__(self, quiet: bool = False, out: Console | None = None, err: Console | None = None):
        """Initialize notifier.

        Args:
            quiet: Suppress tick characters
            out: Console for framing lines (default: stdout)
            err: Console for ticks and notices (default: stderr)
        """
        self.quiet = quiet
        self.out = out or Console(highlight=False)
        self.err = err or Console(stderr=True, highlight=False)

    def watching(self, targets: Sequence[str], clobber: bool) -> None:
        mode = " (in [red]clobber[/red] mode)" if clobber else ""
        self.out.print(f"[bright_green]Watching[/bright_green]{mode} `{escape(', '.join(targets))}`")

    def handling(self, event: FileEvent | None) -> None:
        what = "startup" if event is None else escape(str(event))
        self.out.print(f"\n[yellow]handling[/yellow] {what} ...")

    def running(self, command: str) -> None:
        self.out.print(f"[yellow]running[/yellow]: `[bright_red]{escape(command)}[/bright_red]`")

    def done(self, elapsed: float, error: Exception | None) -> None:
        suffix = f": [bold red]{escape(str(error))}[/bold red]" if error else ""
        self.out.print(f"[yellow]done[/yellow] in {elapsed:.3f}s{suffix}")

    def notice(self, message: str) -> None:
        self.err.print(escape(message))

    def warning(self, message: str) -> None:
        self.err.print(f"[bold blue]warning[/bold blue]: {escape(message)}")

    def error(self, message: str) -> None:
        self.err.print(f"[bold red]{escape(message)}[/bold red]")

    def tick(self, tick: Tick) -> None:
        if self.quiet:
            return
        self.err.print(tick.value, end="")
