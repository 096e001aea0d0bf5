"""
Session-Start Maintenance.

Work that runs once whenever the application starts a session:
purge trash past its retention window, then rebuild the companion mirror
from the Active set so a mirror left stale by an earlier failed write is
repaired.

Both steps are idempotent; running this on every activation is safe.

Usage:
    from notekeeper.tasks.maintenance import on_session_start

    result = await on_session_start(get_session_factory(), mirror_sync)
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notekeeper.core.database import session_scope
from notekeeper.core.logging import get_logger
from notekeeper.core.utils import utc_now
from notekeeper.mirror.sync import MirrorSync
from notekeeper.services.note import DEFAULT_RETENTION_DAYS, NoteService

logger = get_logger(__name__)


async def on_session_start(
    session_factory: async_sessionmaker[AsyncSession],
    mirror_sync: MirrorSync | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Purge expired trash and resync the mirror.

    Args:
        session_factory: Factory for the note store session
        mirror_sync: Mirror dispatcher; the resync is skipped when None
        retention_days: Trash retention window
        now: Reference time for the purge

    Returns:
        Maintenance statistics
    """
    now = now or utc_now()
    logger.info(
        "Starting session maintenance",
        extra={"retention_days": retention_days},
    )

    async with session_scope(session_factory) as session:
        service = NoteService(session, mirror_sync=mirror_sync, retention_days=retention_days)
        purged = await service.purge_expired_trash(now=now)
        if not purged:
            # A purge that removed notes has already staged a resync.
            await service.resync_mirror()
        active = await service.count_active()

    result = {
        "status": "completed",
        "purged": purged,
        "active_notes": active,
        "retention_days": retention_days,
        "completed_at": utc_now().isoformat(),
    }
    logger.info("Session maintenance completed", extra=result)
    return result
