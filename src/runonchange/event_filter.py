"""Accept/reject decisions for raw filesystem events."""

import enum
import logging
import os
import re
from dataclasses import dataclass

from runonchange.models import Directive, Feature, MatchMode, Tick

logger = logging.getLogger(__name__)

# Vim swap files (.foo.swp, .foo.swx, ...) and vim's "4913" write probe.
EDITOR_TEMP_PATTERN = re.compile(r"^(\.\w.*sw[a-z]|4913)$")


class RejectReason(enum.Enum):
    EDITOR_TEMP = "TEMP"
    IGNORED = "IGNR"
    UNMATCHED = "MISS"


@dataclass(frozen=True)
class Rejection:
    """Why an event was rejected and which pattern fired."""

    reason: RejectReason
    index: int | None = None

    @property
    def tick(self) -> Tick | None:
        """Tick to emit for this rejection, if any."""
        if self.reason is RejectReason.IGNORED:
            return Tick.IGNORED
        if self.reason is RejectReason.UNMATCHED:
            return Tick.UNMATCHED
        return None

    def __str__(self) -> str:
        if self.index is None:
            return self.reason.value
        return f"{self.reason.value}[{self.index}]"


def check_path(directive: Directive, path: str) -> Rejection | None:
    """Evaluate the filter chain for an event path.

    Args:
        directive: Invocation configuration
        path: Full path of the file the event originated at

    Returns:
        None if the event is accepted, otherwise the first rejection
    """
    if directive.has(Feature.AUTO_IGNORE_EDITOR_TEMPS):
        if EDITOR_TEMP_PATTERN.match(os.path.basename(path)):
            return Rejection(RejectReason.EDITOR_TEMP)

    for index, matcher in enumerate(directive.patterns):
        matched = matcher.matches(path)
        if matcher.mode is MatchMode.IGNORE and matched:
            return Rejection(RejectReason.IGNORED, index)
        if matcher.mode is MatchMode.RESTRICT and not matched:
            return Rejection(RejectReason.UNMATCHED, index)

    return None


def accepts(directive: Directive, path: str) -> bool:
    """True if an event at `path` should reach the dispatcher."""
    rejection = check_path(directive, path)
    if rejection is not None:
        logger.debug(f"{rejection} rejected {path}")
    return rejection is None
