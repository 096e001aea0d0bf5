"""
Note Repository.

Data access layer for notes. Handles all database queries that classify
notes into the Active, Archived and Trash views.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.models.note import Note
from notekeeper.repositories.base import BaseRepository


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note model.

    Inherits standard CRUD operations from BaseRepository and adds the
    view queries. Every list is ordered with `id` as the final key so
    notes sharing a timestamp come back in the same order on every call.
    """

    model = Note

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_active(self) -> list[Note]:
        """
        Get all notes that are neither archived nor trashed.

        Returns:
            Active notes, newest first
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.deleted_at.is_(None))
            .where(Note.is_archived == False)  # noqa: E712
            .order_by(Note.created_at.desc(), Note.id.asc())
        )
        return list(result.scalars().all())

    async def get_archived(self) -> list[Note]:
        """
        Get all archived notes that are not in the trash.

        Returns:
            Archived notes, newest first
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.deleted_at.is_(None))
            .where(Note.is_archived == True)  # noqa: E712
            .order_by(Note.created_at.desc(), Note.id.asc())
        )
        return list(result.scalars().all())

    async def get_trash(self, cutoff: datetime) -> list[Note]:
        """
        Get trashed notes still inside the retention window.

        Args:
            cutoff: Oldest deleted_at that is still retained

        Returns:
            Trashed notes, most recently deleted first
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.deleted_at.is_not(None))
            .where(Note.deleted_at >= cutoff)
            .order_by(Note.deleted_at.desc(), Note.id.asc())
        )
        return list(result.scalars().all())

    async def get_expired_trash(self, cutoff: datetime) -> list[Note]:
        """
        Get trashed notes whose retention window has elapsed.

        Args:
            cutoff: Notes deleted strictly before this are expired

        Returns:
            Expired notes, oldest deletion first
        """
        result = await self.session.execute(
            select(Note)
            .where(Note.deleted_at.is_not(None))
            .where(Note.deleted_at < cutoff)
            .order_by(Note.deleted_at.asc(), Note.id.asc())
        )
        return list(result.scalars().all())

    async def active_snapshot(self) -> list[tuple[str, str]]:
        """
        Capture (id, content) for every active note in one query.

        Returns:
            Pairs ordered by id
        """
        result = await self.session.execute(
            select(Note.id, Note.content)
            .where(Note.deleted_at.is_(None))
            .where(Note.is_archived == False)  # noqa: E712
            .order_by(Note.id.asc())
        )
        return [(row.id, row.content) for row in result.all()]

    async def count_active(self) -> int:
        """Get count of active notes."""
        result = await self.session.execute(
            select(func.count())
            .select_from(Note)
            .where(Note.deleted_at.is_(None))
            .where(Note.is_archived == False)  # noqa: E712
        )
        return result.scalar_one()
