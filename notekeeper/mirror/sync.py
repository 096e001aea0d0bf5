"""
Mirror Sync Dispatcher.

Fire-and-forget replication of the Active note set into the companion
mirror. The service captures a complete snapshot while its transaction is
still open and stages it on the session with `stage()`. Nothing is sent
until that session commits; a rollback discards the staged snapshot, so
the mirror never holds a note the store did not keep. After commit the
write runs as a background asyncio task under the resilience stack:

    Circuit Breaker (aiobreaker) → Retry (tenacity) → Timeout → set_all

A failed write is logged and dropped. The next committed mutation
schedules a fresh full snapshot, which repairs the mirror.

Usage:
    sync = MirrorSync.from_config(CompanionMirror(storage))
    sync.stage(session, await notes.active_snapshot())
    await session.commit()
    await sync.drain()
"""

import asyncio
from collections.abc import Iterable

import aiobreaker
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notekeeper.core.exceptions import MirrorError
from notekeeper.core.logging import get_logger, log_with_source
from notekeeper.core.resilience import create_circuit_breaker, log_retry
from notekeeper.mirror.mirror import CompanionMirror

logger = get_logger(__name__)

_STAGED_KEY = "notekeeper.mirror_sync.staged"


class MirrorSync:
    """Schedules snapshot writes into a CompanionMirror without blocking callers."""

    def __init__(
        self,
        mirror: CompanionMirror,
        max_attempts: int = 3,
        backoff_multiplier: float = 0.2,
        backoff_max: float = 2.0,
        timeout_seconds: float = 5.0,
        breaker: aiobreaker.CircuitBreaker | None = None,
    ) -> None:
        self.mirror = mirror
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max
        self.timeout_seconds = timeout_seconds
        self._breaker = breaker or create_circuit_breaker("mirror")
        self._pending: set[asyncio.Task] = set()
        self._generation = 0
        # Snapshots are written one at a time; a queued one that has been
        # superseded is dropped.
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, mirror: CompanionMirror) -> "MirrorSync":
        """Build a dispatcher sized from resilience.yaml."""
        from notekeeper.core.config import get_app_config

        resilience = get_app_config().resilience
        return cls(
            mirror,
            max_attempts=resilience.retry.max_attempts,
            backoff_multiplier=resilience.retry.backoff_multiplier,
            backoff_max=resilience.retry.backoff_max,
            timeout_seconds=resilience.mirror_timeout_seconds,
            breaker=create_circuit_breaker(
                "mirror",
                fail_max=resilience.circuit_breaker.fail_max,
                timeout_duration=resilience.circuit_breaker.timeout_duration,
            ),
        )

    @property
    def pending(self) -> int:
        """Number of writes still in flight."""
        return len(self._pending)

    def schedule(self, snapshot: Iterable[tuple[str, str]]) -> asyncio.Task:
        """
        Dispatch a full mirror replacement in the background.

        The snapshot is copied before this returns, so later changes to the
        caller's data never leak into the write.

        Args:
            snapshot: (id, content) for every Active note

        Returns:
            The background task, for callers that want to await it
        """
        items = tuple(snapshot)
        self._generation += 1
        task = asyncio.get_running_loop().create_task(
            self._write(self._generation, items),
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def schedule_select(self, note_id: str | None) -> asyncio.Task:
        """Dispatch a display selection change in the background."""
        task = asyncio.get_running_loop().create_task(self._select(note_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def stage(self, session: AsyncSession, snapshot: Iterable[tuple[str, str]]) -> None:
        """
        Hold a snapshot until the session commits.

        A later stage on the same session replaces the earlier one, so a
        transaction with several mutations sends one write. Rollback drops it.
        """
        self._staged(session)["snapshot"] = tuple(snapshot)

    def stage_select(self, session: AsyncSession, note_id: str | None) -> None:
        """Hold a display selection change until the session commits."""
        self._staged(session)["select"] = note_id

    def _staged(self, session: AsyncSession) -> dict:
        sync_session = session.sync_session
        key = (_STAGED_KEY, id(self))
        staged = sync_session.info.get(key)
        if staged is None:
            staged = sync_session.info[key] = {}
            event.listen(sync_session, "after_commit", lambda _: self._dispatch(staged))
            event.listen(sync_session, "after_rollback", lambda _: staged.clear())
        return staged

    def _dispatch(self, staged: dict) -> None:
        if "snapshot" in staged:
            self.schedule(staged.pop("snapshot"))
        if "select" in staged:
            self.schedule_select(staged.pop("select"))

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _write(self, generation: int, items: tuple[tuple[str, str], ...]) -> None:
        async with self._write_lock:
            if generation < self._generation:
                logger.debug(
                    "Skipping superseded mirror snapshot",
                    extra={"generation": generation, "latest": self._generation},
                )
                return
            try:
                await self._breaker.call_async(self._write_with_retry, items)
            except Exception as exc:
                log_with_source(
                    logger, "mirror", "error", "Mirror sync failed",
                    mirror_event="sync_failed",
                    generation=generation,
                    notes=len(items),
                    error=str(exc),
                )
                return
        log_with_source(
            logger, "mirror", "debug", "Mirror synced",
            mirror_event="synced", generation=generation, notes=len(items),
        )

    async def _select(self, note_id: str | None) -> None:
        try:
            async with asyncio.timeout(self.timeout_seconds):
                await self._breaker.call_async(self.mirror.select, note_id)
        except Exception as exc:
            log_with_source(
                logger, "mirror", "error", "Mirror selection failed",
                mirror_event="select_failed", note_id=note_id, error=str(exc),
            )

    async def _write_with_retry(self, items: tuple[tuple[str, str], ...]) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=self.backoff_max),
            retry=retry_if_exception_type((MirrorError, TimeoutError, ConnectionError)),
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                async with asyncio.timeout(self.timeout_seconds):
                    await self.mirror.set_all(items)
