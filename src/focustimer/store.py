"""
The record store: every public call is one exclusive transaction against
the single data file.

Reads never fail. A missing file, unreadable bytes, broken JSON or a record
that does not validate all read as the default record; the next write
replaces the file (keeping a backup of what was there).
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from .lock import SerialLock
from .models import ActiveState, RecordFile, Session, Settings, merge_model
from .storage import backup_corrupt, load_json, save_json

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, path: Path, lock: SerialLock | None = None) -> None:
        self.path = Path(path)
        self.lock = lock if lock is not None else SerialLock()

    # ---- internals (caller holds the lock) ----

    async def _read(self) -> tuple[RecordFile, str | bytes | None]:
        """Returns the record plus what the file held when it was corrupt."""
        result = await asyncio.to_thread(load_json, self.path)
        if result.corrupted is not None:
            logger.warning("Data file %s is corrupt (%s); using defaults", self.path, result.corrupted.reason)
            return RecordFile.default(), result.corrupted.content or None
        if result.data is None:
            return RecordFile.default(), None
        try:
            return RecordFile.model_validate(result.data), None
        except ValidationError as e:
            logger.warning(
                "Data file %s does not match the record schema (%d errors); using defaults",
                self.path,
                e.error_count(),
            )
            return RecordFile.default(), json.dumps(result.data, indent=2, ensure_ascii=False)

    async def _read_record(self) -> RecordFile:
        record, _ = await self._read()
        return record

    async def _transact(self, mutate: Callable[[RecordFile], RecordFile]) -> RecordFile:
        record, corrupt = await self._read()
        updated = mutate(record)
        if corrupt is not None:
            await asyncio.to_thread(backup_corrupt, self.path, corrupt)
        await asyncio.to_thread(save_json, self.path, updated.to_json())
        return updated

    async def _ensure_initialized(self) -> bool:
        if await asyncio.to_thread(self.path.exists):
            return False
        await asyncio.to_thread(save_json, self.path, RecordFile.default().to_json())
        logger.info("Created data file %s", self.path)
        return True

    # ---- public API ----

    async def ensure_initialized(self) -> bool:
        """Write the default record if there is no data file. True if it wrote one."""
        return await self.lock.run_exclusive(self._ensure_initialized)

    async def read_record(self) -> RecordFile:
        return await self.lock.run_exclusive(self._read_record)

    async def read_state(self) -> ActiveState:
        return (await self.read_record()).state

    async def read_sessions(self) -> list[Session]:
        return list((await self.read_record()).sessions)

    async def read_settings(self) -> Settings:
        return (await self.read_record()).settings

    async def write_state(self, **changes: Any) -> ActiveState:
        """Merge `changes` into the persisted state; other fields are kept."""

        def mutate(record: RecordFile) -> RecordFile:
            return record.model_copy(update={"state": merge_model(record.state, changes)})

        record = await self.lock.run_exclusive(self._transact, mutate)
        logger.debug("State written: %s", sorted(changes))
        return record.state

    async def write_settings(self, **changes: Any) -> Settings:
        """Merge `changes` into the persisted settings; other fields are kept."""

        def mutate(record: RecordFile) -> RecordFile:
            return record.model_copy(update={"settings": merge_model(record.settings, changes)})

        record = await self.lock.run_exclusive(self._transact, mutate)
        logger.debug("Settings written: %s", sorted(changes))
        return record.settings

    async def write_sessions(self, sessions: Iterable[Session]) -> list[Session]:
        """Replace the whole session log."""
        replacement = list(sessions)

        def mutate(record: RecordFile) -> RecordFile:
            return record.model_copy(update={"sessions": replacement})

        record = await self.lock.run_exclusive(self._transact, mutate)
        logger.debug("Session log replaced (%d sessions)", len(replacement))
        return list(record.sessions)

    async def append_session(self, session: Session) -> None:
        await self.ensure_initialized()

        def mutate(record: RecordFile) -> RecordFile:
            return record.model_copy(update={"sessions": [*record.sessions, session]})

        record = await self.lock.run_exclusive(self._transact, mutate)
        logger.debug("Appended session %s (log now %d)", session.id, len(record.sessions))
