#!/usr/bin/env python3
"""
Example: Headless Supervision
Shows how to embed Supervisor in another asyncio program.

This example demonstrates:
- Building a Directive without the command line
- A custom notifier that collects run results instead of printing
- Stopping the supervisor programmatically
"""

import asyncio
import re
import sys
import tempfile
from pathlib import Path

from runonchange import Directive, Feature, Matcher, MatchMode, Supervisor
from runonchange.notifier import NoOpNotifier


class CollectingNotifier(NoOpNotifier):
    """Keep the result of every run, print nothing else."""

    def __init__(self):
        self.results: list[str] = []

    def done(self, elapsed: float, error: Exception | None) -> None:
        self.results.append(f"{'ok' if error is None else error} after {elapsed:.2f}s")


async def main() -> int:
    with tempfile.TemporaryDirectory() as workdir:
        directive = Directive(
            shell="/bin/sh",
            command="ls | wc -l",
            watch_targets=(workdir,),
            patterns=(Matcher(re.compile(r"\.txt$"), MatchMode.RESTRICT),),
            features=frozenset({Feature.AUTO_IGNORE_EDITOR_TEMPS}),
            wait_for=0.5,
        )
        notifier = CollectingNotifier()
        supervisor = Supervisor(directive, notifier, install_signal_handlers=False)
        task = asyncio.create_task(supervisor.run())

        await asyncio.sleep(1.0)
        (Path(workdir) / "notes.txt").write_text("hello")
        (Path(workdir) / "ignored.bin").write_bytes(b"\0")
        await asyncio.sleep(1.0)

        supervisor.request_shutdown()
        exit_code = await task

    for line in notifier.results:
        print(f"✓ run finished: {line}")
    return int(exit_code)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
