"""Command-line and config-file parsing into a Directive."""

import argparse
import os
import re
import stat
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from runonchange import __version__
from runonchange.errors import UsageError
from runonchange.models import DEFAULT_WAIT_SECONDS, Directive, Feature, Matcher, MatchMode

CONFIG_TABLE = "runonchange"

_BOOL_KEYS = {
    "clobber": Feature.CLOBBER,
    "recursive": Feature.RECURSIVE,
    "quiet": Feature.QUIET,
    "debug": Feature.DEBUG,
}

DESCRIPTION = "Runs COMMAND every time filesystem events happen under a DIR."

EPILOG = """\
COMMAND is evaluated by $SHELL with -c, in its own process group. DIR
defaults to the current working directory; several may be given.

-i and -r patterns are regular expressions searched for in the full path of
the file an event originated at. They are applied in command-line order: the
first -i that matches, or the first -r that does not, rejects the event.

Tick marks written to stderr for each event (silence them with -q):
  _  event dropped, COMMAND still running (use -c to clobber it)
  -  COMMAND not run: last run too recent, or nothing needed clobbering
  e  COMMAND not run: killing the previous one, or starting it, failed
  i  event's file matched an -i PATTERN
  r  event's file did not match an -r PATTERN
"""


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2."""

    def error(self, message: str):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = _Parser(
        prog="runonchange",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", metavar="COMMAND", help="shell string to run on change")
    parser.add_argument("dirs", metavar="DIR", nargs="*", help="directory to watch")
    parser.add_argument(
        "-c",
        dest="clobber",
        action="store_true",
        help="kill a still-running COMMAND when a newer event arrives",
    )
    parser.add_argument("-d", dest="debug", action="store_true", help="print debugging output")
    parser.add_argument("-R", dest="recursive", action="store_true", help="watch DIRs recursively")
    parser.add_argument("-q", dest="quiet", action="store_true", help="suppress tick marks")
    parser.add_argument(
        "-w",
        dest="wait",
        metavar="SECONDS",
        type=int,
        default=None,
        help=f"minimum seconds between runs (default: {DEFAULT_WAIT_SECONDS:g})",
    )
    parser.add_argument(
        "-i",
        dest="patterns",
        metavar="PATTERN",
        action="append",
        type=lambda text: (MatchMode.IGNORE, text),
        help="ignore events whose path matches PATTERN",
    )
    parser.add_argument(
        "-r",
        dest="patterns",
        metavar="PATTERN",
        action="append",
        type=lambda text: (MatchMode.RESTRICT, text),
        help="only run for events whose path matches PATTERN",
    )
    parser.add_argument(
        "--no-default-ignore",
        dest="default_ignore",
        action="store_false",
        default=None,
        help="do not ignore editor swap and write-probe files",
    )
    parser.add_argument("--config", metavar="FILE", help="TOML file with default options")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


@dataclass
class FileConfig:
    """Defaults read from a TOML config file."""

    features: set[Feature] = field(default_factory=set)
    default_ignore: bool = True
    wait: int | None = None
    patterns: list[tuple[MatchMode, str]] = field(default_factory=list)


def load_config_file(path: str | Path) -> FileConfig:
    """Load the [runonchange] table of a TOML file.

    Raises:
        UsageError: If the file is missing, unparsable or has bad values
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except OSError as e:
        raise UsageError(f"config file {path}: {e.strerror or e}") from e
    except tomllib.TOMLDecodeError as e:
        raise UsageError(f"config file {path}: {e}") from e

    table = raw.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise UsageError(f"config file {path}: [{CONFIG_TABLE}] must be a table")

    config = FileConfig()
    for key, value in table.items():
        if key in _BOOL_KEYS or key == "default_ignore":
            if not isinstance(value, bool):
                raise UsageError(f"config file {path}: '{key}' must be true or false")
            if key == "default_ignore":
                config.default_ignore = value
            elif value:
                config.features.add(_BOOL_KEYS[key])
        elif key == "wait":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise UsageError(f"config file {path}: 'wait' must be a non-negative integer")
            config.wait = value
        elif key == "patterns":
            config.patterns = _parse_file_patterns(path, value)
        else:
            raise UsageError(f"config file {path}: unknown key '{key}'")
    return config


def _parse_file_patterns(path: Path, value) -> list[tuple[MatchMode, str]]:
    if not isinstance(value, list):
        raise UsageError(f"config file {path}: 'patterns' must be an array of tables")
    patterns = []
    for entry in value:
        if not isinstance(entry, dict) or len(entry) != 1:
            raise UsageError(f"config file {path}: each pattern needs exactly one of 'ignore' or 'restrict'")
        kind, text = next(iter(entry.items()))
        if kind not in ("ignore", "restrict") or not isinstance(text, str):
            raise UsageError(f"config file {path}: bad pattern entry {entry!r}")
        patterns.append((MatchMode.IGNORE if kind == "ignore" else MatchMode.RESTRICT, text))
    return patterns


def compile_patterns(raw: Sequence[tuple[MatchMode, str]]) -> tuple[Matcher, ...]:
    """Compile the ordered pattern chain.

    Raises:
        UsageError: On the first pattern that is not a valid expression
    """
    matchers = []
    for mode, text in raw:
        try:
            matchers.append(Matcher(expr=re.compile(text), mode=mode))
        except re.error as e:
            flag = "-i" if mode is MatchMode.IGNORE else "-r"
            raise UsageError(f"{flag} PATTERN '{text}': {e}") from e
    return tuple(matchers)


def resolve_shell(environ: Mapping[str, str]) -> str:
    """Return $SHELL, which must name an existing path.

    Raises:
        UsageError: If $SHELL is unset, empty or does not exist
    """
    shell = environ.get("SHELL", "")
    if not shell:
        raise UsageError("$SHELL is not set")
    try:
        os.stat(shell)
    except OSError as e:
        raise UsageError(f"$SHELL '{shell}': {e.strerror or e}") from e
    return shell


def _check_targets(dirs: Sequence[str]) -> tuple[str, ...]:
    for target in dirs:
        try:
            mode = os.stat(target).st_mode
        except OSError as e:
            raise UsageError(f"DIR '{target}': {e.strerror or e}") from e
        if not stat.S_ISDIR(mode):
            raise UsageError(f"DIR '{target}': not a directory")
    return tuple(dirs)


def parse_directive(argv: Sequence[str], environ: Mapping[str, str]) -> Directive:
    """Parse command-line arguments and environment into a Directive.

    Args:
        argv: Arguments, without the program name
        environ: Process environment (for $SHELL)

    Returns:
        The immutable configuration for this invocation

    Raises:
        UsageError: On any invalid flag, pattern, target, config file or $SHELL
        SystemExit: For help and version requests (status 0)
    """
    parser = build_parser()
    if list(argv[:1]) == ["help"]:
        parser.print_help()
        parser.exit(0)

    args = parser.parse_intermixed_args(list(argv))

    file_config = load_config_file(args.config) if args.config else FileConfig()

    features = set(file_config.features)
    for name, feature in _BOOL_KEYS.items():
        if getattr(args, name):
            features.add(feature)
    default_ignore = file_config.default_ignore if args.default_ignore is None else args.default_ignore
    if default_ignore:
        features.add(Feature.AUTO_IGNORE_EDITOR_TEMPS)

    wait = args.wait if args.wait is not None else file_config.wait
    if wait is not None and wait < 0:
        raise UsageError(f"-w SECONDS must not be negative, got {wait}")

    patterns = compile_patterns(file_config.patterns + (args.patterns or []))
    shell = resolve_shell(environ)
    targets = _check_targets(args.dirs or [os.getcwd()])

    return Directive(
        shell=shell,
        command=args.command,
        watch_targets=targets,
        patterns=patterns,
        features=frozenset(features),
        wait_for=float(wait) if wait is not None else DEFAULT_WAIT_SECONDS,
    )
