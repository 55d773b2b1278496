"""
Session lifecycle: idle -> focusing -> (idle | resting) -> idle.

Every transition reads what it needs from the store, decides, and writes
through the store. Rejections come back as a `Failure` on the returned
`Transition` and leave the record untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from ._util import now_utc
from .models import (
    ActiveState,
    Phase,
    Session,
    SessionStatus,
    Settings,
    TimerMode,
    limit_note,
    remember_suggestion,
)
from .store import RecordStore
from .timing import is_overtime

logger = logging.getLogger(__name__)


class Failure(str, Enum):
    ALREADY_FOCUSING = "already_focusing"
    NOT_FOCUSING = "not_focusing"
    EARLY_COMPLETION_DISABLED = "early_completion_disabled"
    NOT_RESTING = "not_resting"

    @property
    def message(self) -> str:
        return _FAILURE_MESSAGES[self]


_FAILURE_MESSAGES = {
    Failure.ALREADY_FOCUSING: "A focus session is already running.",
    Failure.NOT_FOCUSING: "No focus session is running.",
    Failure.EARLY_COMPLETION_DISABLED: (
        "Completing a countdown before its planned time is disabled; abandon it or wait."
    ),
    Failure.NOT_RESTING: "No rest is running.",
}


@dataclass(frozen=True)
class Transition:
    ok: bool
    state: ActiveState
    failure: Failure | None = None
    session: Session | None = None

    @classmethod
    def rejected(cls, failure: Failure, state: ActiveState) -> Transition:
        return cls(ok=False, state=state, failure=failure)

    def __bool__(self) -> bool:
        return self.ok


class SessionStateMachine:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] | None = None) -> None:
        self.store = store
        self.clock = clock or now_utc

    async def remember_task(self, text: str) -> list[str]:
        """Move a task name to the front of the suggestion list."""
        note = limit_note(text)
        settings = await self.store.read_settings()
        if not note:
            return list(settings.suggest_tasks)
        updated = await self.store.write_settings(
            suggest_tasks=remember_suggestion(settings.suggest_tasks, note)
        )
        return list(updated.suggest_tasks)

    async def start_focus(
        self,
        planned_sec: int | None = None,
        mode: TimerMode | str | None = None,
        note: str = "",
    ) -> Transition:
        state = await self.store.read_state()
        if state.phase is Phase.FOCUSING:
            logger.info("start_focus rejected: already focusing since %s", state.start)
            return Transition.rejected(Failure.ALREADY_FOCUSING, state)

        note = limit_note(note)
        if note:
            await self.remember_task(note)
        settings = await self.store.read_settings()

        timer_mode = TimerMode(mode) if mode else settings.default_mode
        now = self.clock()
        if timer_mode is TimerMode.STOPWATCH:
            planned: int | None = None
            end: datetime | None = None
        else:
            if planned_sec is None:
                planned = settings.default_duration_minutes * 60
            else:
                planned = max(0, int(planned_sec))
            end = now + timedelta(seconds=planned)

        new_state = await self.store.write_state(
            active=True,
            resting=False,
            start=now,
            end=end,
            planned_sec=planned,
            mode=timer_mode,
            note=note,
            rest_start=None,
            rest_end=None,
            rest_sec=None,
        )
        logger.info("Focus started (%s, planned=%s, note=%r)", timer_mode.value, planned, note)
        return Transition(ok=True, state=new_state)

    async def stop_focus(
        self, status: SessionStatus | str, at: datetime | None = None
    ) -> Transition:
        """
        Close the running focus session. `at` pins the end instant (the
        ticker passes the planned end or the stopwatch cap); defaults to now.
        """
        status = SessionStatus(status)
        state = await self.store.read_state()
        if state.phase is not Phase.FOCUSING or state.start is None:
            logger.info("stop_focus rejected: not focusing")
            return Transition.rejected(Failure.NOT_FOCUSING, state)

        settings = await self.store.read_settings()
        end = at or self.clock()

        if (
            status is SessionStatus.COMPLETED
            and not settings.allow_complete_countdown_early
            and not state.is_stopwatch
            and not is_overtime(state, end)
        ):
            logger.info("stop_focus rejected: countdown not finished and early completion is off")
            return Transition.rejected(Failure.EARLY_COMPLETION_DISABLED, state)

        session = Session.close(
            state.start,
            end,
            planned_sec=state.planned_sec,
            status=status,
            note=state.note,
            created_at=self.clock(),
        )
        await self.store.append_session(session)
        logger.info("Focus %s after %ss", status.value, session.actual_sec)

        if status is SessionStatus.COMPLETED and settings.auto_rest:
            new_state = await self._enter_rest(settings, None)
        else:
            new_state = await self.store.write_state(active=False, resting=False)
        return Transition(ok=True, state=new_state, session=session)

    async def start_rest(self, minutes: float | None = None) -> Transition:
        state = await self.store.read_state()
        if state.phase is Phase.FOCUSING:
            logger.warning("Rest started over a running focus session (started %s); it is discarded", state.start)
        settings = await self.store.read_settings()
        return Transition(ok=True, state=await self._enter_rest(settings, minutes))

    async def stop_rest(self) -> Transition:
        state = await self.store.read_state()
        if state.phase is not Phase.RESTING:
            return Transition.rejected(Failure.NOT_RESTING, state)
        new_state = await self.store.write_state(active=False, resting=False)
        logger.info("Rest ended")
        return Transition(ok=True, state=new_state)

    async def _enter_rest(self, settings: Settings, minutes: float | None) -> ActiveState:
        rest_minutes = minutes if minutes and minutes > 0 else settings.default_rest_minutes
        rest_sec = int(round(rest_minutes * 60))
        now = self.clock()
        new_state = await self.store.write_state(
            active=False,
            resting=True,
            rest_start=now,
            rest_sec=rest_sec,
            rest_end=now + timedelta(seconds=rest_sec),
        )
        logger.info("Rest started (%s min)", rest_minutes)
        return new_state
