"""Debounced, coalescing score writer.

Edits on the entry screen are cheap and frequent; writes are not.  Each
(course, component) scope has at most one pending snapshot: scheduling a
new snapshot replaces the pending one (latest wins) and restarts the
debounce timer.  When the timer fires, or on an explicit ``flush``, the
latest snapshot is applied to the store.

A failed write keeps the snapshot pending, unless a newer one replaced it
in the meantime, so no work is lost and the flush can be retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from config.settings import Settings, get_settings
from models.records import ScoreRecord
from services.score_store import ScoreStore

logger = logging.getLogger(__name__)

ScopeKey = tuple[str, str]  # (course_id, component_name)


@dataclass
class PendingSnapshot:
    """Latest unflushed snapshot of one scope."""

    course_id: str
    component_name: str
    records: list[ScoreRecord]
    version: int
    timer: asyncio.Task | None = field(default=None, repr=False)


class DebouncedScoreWriter:
    """Coalesces snapshots per scope and applies them after a quiet period."""

    def __init__(
        self,
        store: ScoreStore,
        delay_seconds: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._delay = (
            delay_seconds if delay_seconds is not None else settings.flush_debounce_seconds
        )
        self._pending: dict[ScopeKey, PendingSnapshot] = {}
        self._version = 0
        self.last_error: Exception | None = None

    @staticmethod
    def _key(course_id: str, component_name: str) -> ScopeKey:
        return (course_id, component_name.upper())

    def schedule(
        self, course_id: str, component_name: str, records: list[ScoreRecord]
    ) -> None:
        """Queue *records* as the latest snapshot and (re)start the timer.

        Outside a running event loop the snapshot is only queued; it is
        written by the next explicit ``flush``.
        """
        key = self._key(course_id, component_name)
        self._version += 1
        previous = self._pending.get(key)
        if previous is not None and previous.timer is not None:
            previous.timer.cancel()

        pending = PendingSnapshot(
            course_id=course_id,
            component_name=key[1],
            records=[r.model_copy(deep=True) for r in records],
            version=self._version,
        )
        self._pending[key] = pending

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        pending.timer = loop.create_task(self._flush_after_delay(key, pending.version))

    async def _flush_after_delay(self, key: ScopeKey, version: int) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return
        pending = self._pending.get(key)
        if pending is None or pending.version != version:
            return  # superseded
        pending.timer = None
        try:
            await self._write(key, pending)
        except Exception:
            logger.exception("Auto-save failed for %s/%s", key[0], key[1])

    async def _write(self, key: ScopeKey, pending: PendingSnapshot) -> None:
        try:
            await self._store.apply_component_snapshot(
                pending.course_id, pending.component_name, pending.records
            )
        except Exception as exc:
            self.last_error = exc
            raise
        self.last_error = None
        current = self._pending.get(key)
        if current is not None and current.version == pending.version:
            del self._pending[key]

    async def flush(self, course_id: str | None = None, component_name: str | None = None) -> int:
        """Write pending snapshots now; all scopes, or just the one given.

        Returns the number of snapshots written.  The first failure is
        re-raised after the remaining scopes have been attempted.
        """
        if course_id is not None and component_name is not None:
            keys = [self._key(course_id, component_name)]
        else:
            keys = list(self._pending)

        written = 0
        first_error: Exception | None = None
        for key in keys:
            pending = self._pending.get(key)
            if pending is None:
                continue
            if pending.timer is not None:
                pending.timer.cancel()
                pending.timer = None
            try:
                await self._write(key, pending)
                written += 1
            except Exception as exc:
                logger.warning("Flush failed for %s/%s: %s", key[0], key[1], exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return written

    def has_pending(self, course_id: str, component_name: str) -> bool:
        return self._key(course_id, component_name) in self._pending

    def pending_records(self, course_id: str, component_name: str) -> list[ScoreRecord] | None:
        pending = self._pending.get(self._key(course_id, component_name))
        return None if pending is None else pending.records

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        """Cancel timers without writing (pending snapshots are kept)."""
        for pending in self._pending.values():
            if pending.timer is not None:
                pending.timer.cancel()
                pending.timer = None
