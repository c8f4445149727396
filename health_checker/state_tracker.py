"""Reachability state tracking and transition detection."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class ReachabilityState(str, Enum):
    """Availability of the monitored endpoint."""

    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"

    @classmethod
    def from_reachable(cls, reachable: bool) -> "ReachabilityState":
        return cls.UP if reachable else cls.DOWN

    @property
    def label(self) -> str:
        if self is ReachabilityState.UP:
            return "Active"
        if self is ReachabilityState.DOWN:
            return "Inactive"
        return "Unknown"


@dataclass(frozen=True)
class TransitionEvent:
    """A change between two consecutive known states."""

    previous: ReachabilityState
    current: ReachabilityState
    observed_at: datetime

    @property
    def is_up(self) -> bool:
        return self.current is ReachabilityState.UP


def detect_transition(previous: ReachabilityState, current: ReachabilityState) -> bool:
    """Return True when moving from ``previous`` to ``current`` is alert-worthy.

    The first observation (previous is UNKNOWN) never counts.
    """
    return previous is not ReachabilityState.UNKNOWN and previous is not current


class StateTracker:
    """Owns the last observed reachability state.

    ``observe`` is the only writer; it is called once per check cycle by the
    health monitor.
    """

    def __init__(self):
        self._state = ReachabilityState.UNKNOWN
        self._last_observed_at: Optional[datetime] = None

    @property
    def state(self) -> ReachabilityState:
        return self._state

    @property
    def last_observed_at(self) -> Optional[datetime]:
        return self._last_observed_at

    def observe(self, reachable: bool, observed_at: Optional[datetime] = None) -> Optional[TransitionEvent]:
        """Record a probe result.

        Args:
            reachable: Outcome of the probe
            observed_at: When the probe ran (defaults to now, UTC)

        Returns:
            A TransitionEvent when the state changed after a known baseline,
            otherwise None
        """
        observed_at = observed_at or datetime.now(timezone.utc)
        previous = self._state
        current = ReachabilityState.from_reachable(reachable)

        self._state = current
        self._last_observed_at = observed_at

        logger.info(
            "Observation recorded",
            previous=previous.value,
            current=current.value,
            observed_at=observed_at.isoformat(),
        )

        if not detect_transition(previous, current):
            return None

        event = TransitionEvent(previous=previous, current=current, observed_at=observed_at)
        if event.is_up:
            logger.info("Target recovered", previous=previous.value, current=current.value)
        else:
            logger.warning("Target went down", previous=previous.value, current=current.value)
        return event
