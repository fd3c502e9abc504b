"""
Mutual exclusion between branch comparison and commit comparison.

States are represented by `Optional[ComparisonMode]`: None is idle, otherwise
the active mode. `transition` is the pure state function; the arbiter wraps it
with the enablement queries views use to disable the other mode's controls.
"""

import logging
from enum import Enum
from typing import Optional

from cidash.entities import ComparisonMode
from cidash.services.exceptions import ComparisonModeConflict

logger = logging.getLogger(__name__)


class ComparisonEvent(str, Enum):
    DETECT_BRANCH = "detect_branch"
    DETECT_COMMIT = "detect_commit"
    CLEAR_BRANCH = "clear_branch"
    CLEAR_COMMIT = "clear_commit"


_EVENT_MODE = {
    ComparisonEvent.DETECT_BRANCH: ComparisonMode.BRANCH,
    ComparisonEvent.DETECT_COMMIT: ComparisonMode.COMMIT,
    ComparisonEvent.CLEAR_BRANCH: ComparisonMode.BRANCH,
    ComparisonEvent.CLEAR_COMMIT: ComparisonMode.COMMIT,
}


def _conflict(mode: ComparisonMode, active: ComparisonMode) -> ComparisonModeConflict:
    return ComparisonModeConflict(
        f"{mode.value.capitalize()} comparison is disabled while "
        f"{active.value} comparison is active. Clear it first.",
        title="Comparison In Progress",
    )


def transition(state: Optional[ComparisonMode], event: ComparisonEvent) -> Optional[ComparisonMode]:
    """
    Next comparison state.

    Detecting moves to the event's mode from idle or from that same mode.
    Clearing returns to idle from idle or from that same mode. Anything
    touching the other, active mode raises ComparisonModeConflict.
    """
    mode = _EVENT_MODE[event]
    if state is not None and state != mode:
        raise _conflict(mode, state)
    if event in (ComparisonEvent.DETECT_BRANCH, ComparisonEvent.DETECT_COMMIT):
        return mode
    return None


class ComparisonModeArbiter:
    """Holds the active comparison mode and answers enablement questions."""

    def __init__(self, active: Optional[ComparisonMode] = None):
        self._active = active

    @property
    def active(self) -> Optional[ComparisonMode]:
        return self._active

    @property
    def is_idle(self) -> bool:
        return self._active is None

    def is_enabled(self, mode: ComparisonMode) -> bool:
        """Whether controls of `mode` accept input."""
        return self._active is None or self._active == mode

    def ensure_enabled(self, mode: ComparisonMode) -> None:
        if not self.is_enabled(mode):
            raise _conflict(mode, self._active)

    def apply(self, event: ComparisonEvent) -> Optional[ComparisonMode]:
        previous = self._active
        self._active = transition(previous, event)
        if previous != self._active:
            logger.info(
                f"Comparison mode {previous.value if previous else 'idle'} -> "
                f"{self._active.value if self._active else 'idle'}"
            )
        return self._active

    def restore(self, mode: Optional[ComparisonMode]) -> None:
        """Adopt a persisted mode without running a transition."""
        self._active = mode

    def reset(self) -> None:
        self._active = None
