"""Polling loop that applies the timing rules to the running timer."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable

from pydantic import ValidationError

from .machine import SessionStateMachine
from .models import Phase, SessionStatus, UnknownFieldError
from .timing import (
    is_overtime,
    planned_end,
    rest_finished,
    should_auto_complete,
    stopwatch_cap_reached,
)

logger = logging.getLogger(__name__)


class TickAction(str, Enum):
    NONE = "none"
    OVERTIME = "overtime"
    AUTO_COMPLETED = "auto_completed"
    STOPWATCH_CAPPED = "stopwatch_capped"
    REST_FINISHED = "rest_finished"


class Ticker:
    """
    Every `interval` seconds: finish a countdown whose time is up (unless
    auto-continue keeps it running in overtime), complete a stopwatch at the
    600 minute cap, and end a rest that has run out.
    """

    def __init__(
        self,
        machine: SessionStateMachine,
        interval: float = 1.0,
        on_action: Callable[[TickAction], None] | None = None,
    ) -> None:
        self.machine = machine
        self.store = machine.store
        self.interval = interval
        self.on_action = on_action
        self._stopped = asyncio.Event()

    async def tick(self, now: datetime | None = None) -> TickAction:
        now = now or self.machine.clock()
        state = await self.store.read_state()

        if state.phase is Phase.IDLE:
            return TickAction.NONE

        if state.phase is Phase.RESTING:
            if rest_finished(state, now):
                result = await self.machine.stop_rest()
                return TickAction.REST_FINISHED if result.ok else TickAction.NONE
            return TickAction.NONE

        if stopwatch_cap_reached(state, now):
            result = await self.machine.stop_focus(SessionStatus.COMPLETED, at=planned_end(state))
            if result.ok:
                logger.info("Stopwatch reached the 600 minute cap; session completed")
                return TickAction.STOPWATCH_CAPPED
            return TickAction.NONE

        settings = await self.store.read_settings()
        if should_auto_complete(state, settings, now):
            result = await self.machine.stop_focus(SessionStatus.COMPLETED, at=planned_end(state))
            return TickAction.AUTO_COMPLETED if result.ok else TickAction.NONE

        if is_overtime(state, now):
            return TickAction.OVERTIME
        return TickAction.NONE

    async def run(self) -> None:
        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                action = await self.tick()
            except (OSError, ValidationError, UnknownFieldError):
                logger.exception("Tick failed; trying again in %ss", self.interval)
                action = TickAction.NONE
            if action is not TickAction.NONE and self.on_action is not None:
                self.on_action(action)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
