"""
Pin Repository.

Data access layer for the pin registry: a set of pinned note ids kept
apart from the note records themselves.
"""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.models.note import PinnedNote


class PinRepository:
    """
    Repository for pinned note ids.

    Set and clear are idempotent. Ordering is never implied; callers only
    consume the membership test.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def is_pinned(self, note_id: str) -> bool:
        """Check whether a note id is pinned."""
        result = await self.session.execute(
            select(PinnedNote.note_id).where(PinnedNote.note_id == note_id)
        )
        return result.scalar_one_or_none() is not None

    async def set_pinned(self, note_id: str, pinned: bool) -> None:
        """
        Pin or unpin a note id.

        Args:
            note_id: Note to annotate
            pinned: True to pin, False to clear
        """
        if not pinned:
            await self.remove(note_id)
            return

        if await self.is_pinned(note_id):
            return

        self.session.add(PinnedNote(note_id=note_id))
        await self.session.flush()

    async def remove(self, note_id: str) -> None:
        """Clear the pin for a note id, whether or not one exists."""
        await self.session.execute(
            delete(PinnedNote).where(PinnedNote.note_id == note_id)
        )
        await self.session.flush()

    async def pinned_ids(self) -> set[str]:
        """Return every pinned note id."""
        result = await self.session.execute(select(PinnedNote.note_id))
        return set(result.scalars().all())
