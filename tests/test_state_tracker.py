from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from health_checker.state_tracker import ReachabilityState, StateTracker, detect_transition


def test_initial_state_is_unknown() -> None:
    tracker = StateTracker()
    assert tracker.state is ReachabilityState.UNKNOWN
    assert tracker.last_observed_at is None


@pytest.mark.parametrize("reachable", [True, False])
def test_first_observation_never_emits(reachable: bool) -> None:
    tracker = StateTracker()
    assert tracker.observe(reachable) is None
    assert tracker.state is ReachabilityState.from_reachable(reachable)


def test_documented_sequence_emits_down_then_up() -> None:
    tracker = StateTracker()
    events = [tracker.observe(r) for r in [True, True, False, False, True]]

    assert events[0] is None
    assert events[1] is None
    assert events[2] is not None and events[2].current is ReachabilityState.DOWN
    assert events[2].previous is ReachabilityState.UP
    assert events[3] is None
    assert events[4] is not None and events[4].current is ReachabilityState.UP
    assert events[4].previous is ReachabilityState.DOWN


@pytest.mark.parametrize("sequence", list(itertools.product([True, False], repeat=5)))
def test_event_iff_value_changed_after_baseline(sequence: tuple[bool, ...]) -> None:
    tracker = StateTracker()
    for idx, reachable in enumerate(sequence):
        event = tracker.observe(reachable)
        should_emit = idx > 0 and sequence[idx - 1] != reachable
        assert (event is not None) is should_emit


def test_event_carries_observation_time() -> None:
    tracker = StateTracker()
    t0 = datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)
    t1 = datetime(2026, 1, 1, 0, 1, tzinfo=timezone.utc)
    tracker.observe(False, t0)
    event = tracker.observe(True, t1)
    assert event is not None
    assert event.observed_at == t1
    assert event.is_up is True
    assert tracker.last_observed_at == t1


def test_detect_transition_is_pure() -> None:
    up, down, unknown = ReachabilityState.UP, ReachabilityState.DOWN, ReachabilityState.UNKNOWN
    assert detect_transition(unknown, up) is False
    assert detect_transition(unknown, down) is False
    assert detect_transition(up, up) is False
    assert detect_transition(up, down) is True
    assert detect_transition(down, up) is True
