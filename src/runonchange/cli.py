"""CLI entry point for runonchange."""

import asyncio
import logging
import os
import sys
from collections.abc import Sequence

from runonchange.config import parse_directive
from runonchange.controller import Supervisor
from runonchange.errors import UsageError
from runonchange.models import ExitCode, Feature
from runonchange.notifier import ConsoleNotifier

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(debug: bool) -> None:
    """Send log records to stderr; DEBUG level only when asked for."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """
    Main entry point for the runonchange CLI.

    Handles:
    - Argument and $SHELL parsing
    - Logging setup
    - Running the supervisor until interrupted
    - Exit codes
    """
    if argv is None:
        argv = sys.argv[1:]

    try:
        directive = parse_directive(argv, os.environ)
    except UsageError as e:
        print(f"usage error: {e}", file=sys.stderr)
        sys.exit(ExitCode.USAGE)

    debug = directive.has(Feature.DEBUG)
    configure_logging(debug)
    if debug:
        logger.debug(f"here's what you asked for:\n{directive.describe()}")

    notifier = ConsoleNotifier(quiet=directive.has(Feature.QUIET))
    try:
        exit_code = asyncio.run(Supervisor(directive, notifier).run())
    except KeyboardInterrupt:
        # interrupted before the loop installed its own handler
        sys.exit(130)

    sys.exit(int(exit_code))


if __name__ == "__main__":
    main()
