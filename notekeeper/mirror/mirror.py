"""
Companion Mirror.

Denormalized id → content projection of the Active notes, plus a single
"selected for display" pointer. The selection is independent of the pin
registry and may point at an id that is no longer mirrored; such a
selection reads back as no selection.
"""

from collections.abc import Iterable

from notekeeper.core.logging import get_logger
from notekeeper.mirror.storage import MirrorStorage
from notekeeper.schemas.mirror import MirrorItem

logger = get_logger(__name__)


def _as_pair(item: MirrorItem | tuple[str, str]) -> tuple[str, str]:
    if isinstance(item, MirrorItem):
        return item.id, item.content
    note_id, content = item
    return note_id, content


class CompanionMirror:
    """Facade over a MirrorStorage backend.

    Every write is followed by a change notification.
    """

    def __init__(self, storage: MirrorStorage) -> None:
        self.storage = storage

    async def upsert(self, note_id: str, content: str) -> None:
        """Insert or replace one mirrored note."""
        mapping = await self.storage.get_map()
        mapping[note_id] = content
        await self.storage.set_map(mapping)
        await self.storage.notify_changed()

    async def remove(self, note_id: str) -> None:
        """Drop one mirrored note. Missing ids are ignored."""
        mapping = await self.storage.get_map()
        if mapping.pop(note_id, None) is None:
            return
        await self.storage.set_map(mapping)
        await self.storage.notify_changed()

    async def set_all(self, items: Iterable[MirrorItem | tuple[str, str]]) -> None:
        """Replace the whole mirror with `items`."""
        mapping = dict(_as_pair(item) for item in items)
        await self.storage.set_map(mapping)
        await self.storage.notify_changed()
        logger.debug("Mirror replaced", extra={"notes": len(mapping)})

    async def select(self, note_id: str | None) -> None:
        """Choose the note shown by the external display, or clear the choice."""
        await self.storage.set_selected(note_id)
        await self.storage.notify_changed()

    async def get_selected(self) -> str | None:
        """Return the selected id, or None if nothing valid is selected."""
        selected = await self.storage.get_selected()
        if selected is None:
            return None
        mapping = await self.storage.get_map()
        return selected if selected in mapping else None

    async def content_for(self, note_id: str) -> str | None:
        mapping = await self.storage.get_map()
        return mapping.get(note_id)

    async def list(self) -> list[MirrorItem]:
        """All mirrored notes ordered by id."""
        mapping = await self.storage.get_map()
        return [
            MirrorItem(id=note_id, content=mapping[note_id])
            for note_id in sorted(mapping)
        ]
