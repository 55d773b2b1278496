"""Wires one lock, store, state machine and ticker together for a data file."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from .lock import SerialLock
from .machine import SessionStateMachine
from .store import RecordStore
from .ticker import Ticker


@dataclass
class FocusApp:
    lock: SerialLock
    store: RecordStore
    machine: SessionStateMachine
    ticker: Ticker

    @classmethod
    def open(
        cls,
        path: Path,
        clock: Callable[[], datetime] | None = None,
        tick_interval: float = 1.0,
    ) -> FocusApp:
        lock = SerialLock()
        store = RecordStore(path, lock)
        machine = SessionStateMachine(store, clock=clock)
        return cls(lock=lock, store=store, machine=machine, ticker=Ticker(machine, interval=tick_interval))
