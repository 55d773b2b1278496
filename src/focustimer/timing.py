"""
Time-driven rules for a running timer, as pure functions of the persisted
state and a moment in time. The state machine never polls the clock on its
own; a scheduling loop (see ticker.py) evaluates these and calls the
matching transition.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from .models import MAX_FOCUS_MINUTES, ActiveState, Phase, Settings

STOPWATCH_CAP_SEC = MAX_FOCUS_MINUTES * 60


def elapsed_seconds(state: ActiveState, now: datetime) -> int:
    if state.phase is Phase.FOCUSING and state.start is not None:
        return max(0, math.floor((now - state.start).total_seconds()))
    if state.phase is Phase.RESTING and state.rest_start is not None:
        return max(0, math.floor((now - state.rest_start).total_seconds()))
    return 0


def remaining_seconds(state: ActiveState, now: datetime) -> int | None:
    """Seconds left on a countdown or a rest; None for a stopwatch or when idle."""
    if state.phase is Phase.FOCUSING:
        if state.is_stopwatch or state.planned_sec is None:
            return None
        return max(0, state.planned_sec - elapsed_seconds(state, now))
    if state.phase is Phase.RESTING:
        return max(0, (state.rest_sec or 0) - elapsed_seconds(state, now))
    return None


def is_overtime(state: ActiveState, now: datetime) -> bool:
    """A countdown that has reached its planned duration."""
    if state.phase is not Phase.FOCUSING or state.is_stopwatch or state.planned_sec is None:
        return False
    return elapsed_seconds(state, now) >= state.planned_sec


def should_auto_complete(state: ActiveState, settings: Settings, now: datetime) -> bool:
    """Countdown done and auto-continue off: the caller should complete it."""
    return is_overtime(state, now) and not settings.auto_continue


def stopwatch_cap_reached(state: ActiveState, now: datetime) -> bool:
    if state.phase is not Phase.FOCUSING or not state.is_stopwatch:
        return False
    return elapsed_seconds(state, now) >= STOPWATCH_CAP_SEC


def rest_finished(state: ActiveState, now: datetime) -> bool:
    if state.phase is not Phase.RESTING:
        return False
    return remaining_seconds(state, now) == 0


def planned_end(state: ActiveState) -> datetime | None:
    """The instant a countdown reaches its plan, or a stopwatch hits the cap."""
    if state.phase is not Phase.FOCUSING or state.start is None:
        return None
    if state.is_stopwatch:
        return state.start + timedelta(seconds=STOPWATCH_CAP_SEC)
    if state.planned_sec is None:
        return None
    return state.start + timedelta(seconds=state.planned_sec)
