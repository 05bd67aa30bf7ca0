"""Exception hierarchy for runonchange."""

import signal


class RunOnChangeError(Exception):
    """Base class for every error raised by runonchange."""


class UsageError(RunOnChangeError):
    """Bad command line, environment or config file."""


class WatcherSetupError(RunOnChangeError):
    """Creating the observer or subscribing a directory failed."""

    def __init__(self, message: str, subscribed: int = 0):
        super().__init__(message)
        self.subscribed = subscribed


class WatcherRuntimeError(RunOnChangeError):
    """The filesystem event source died while running."""


class RunError(RunOnChangeError):
    """A single run could not be started. Never fatal to the supervisor."""


class KillError(RunError):
    """Delivering SIGKILL to the living child's process group failed."""

    def __init__(self, pgid: int, cause: OSError):
        super().__init__(f"failed to kill process group {pgid}: {cause}")
        self.pgid = pgid
        self.cause = cause


class SpawnError(RunError):
    """The shell could not be executed."""

    def __init__(self, shell: str, cause: OSError):
        super().__init__(f"cannot execute {shell}: {cause.strerror or cause}")
        self.shell = shell
        self.cause = cause


class ChildExitError(RunOnChangeError):
    """Describes a child that exited unsuccessfully."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = str(-returncode)
            message = f"signal: {name}"
        else:
            message = f"exit status {returncode}"
        super().__init__(message)
