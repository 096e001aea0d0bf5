"""
Mirror Reader.

Consumer side of the companion mirror, used by the out-of-process display
(the home-screen widget). It only reads the mirror namespace and never
touches the note store.

Display resolution falls back in order: the note configured on the
display, then the selected note, then a placeholder. Ids that are no
longer mirrored fall through to the next step.

`watch()` re-resolves after every change notification from the backend.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import aclosing
from urllib.parse import urlsplit

from notekeeper.core.logging import get_logger
from notekeeper.mirror.mirror import CompanionMirror
from notekeeper.mirror.storage import MirrorStorage
from notekeeper.schemas.mirror import DisplayEntry, MirrorEntry
from notekeeper.services.search import preview_title

logger = get_logger(__name__)

DEFAULT_SCHEME = "noteapp"
DEFAULT_PLACEHOLDER = "Pin a note from the app"
NOTE_HOST = "note"


def deep_link(note_id: str | None, scheme: str = DEFAULT_SCHEME) -> str:
    """Build the URI that opens `note_id` in the app (or just the app)."""
    if note_id is None:
        return f"{scheme}://"
    return f"{scheme}://{NOTE_HOST}/{note_id}"


def parse_deep_link(uri: str, scheme: str = DEFAULT_SCHEME) -> str | None:
    """Extract the note id from a deep link, or None if it names no note."""
    parts = urlsplit(uri)
    if parts.scheme != scheme or parts.netloc != NOTE_HOST:
        return None
    note_id = parts.path.strip("/")
    if not note_id or "/" in note_id:
        return None
    return note_id


class WidgetReader:
    """Read-only view of the mirror for the external display."""

    def __init__(
        self,
        storage: MirrorStorage,
        placeholder: str = DEFAULT_PLACEHOLDER,
        scheme: str = DEFAULT_SCHEME,
        title_length: int = 40,
    ) -> None:
        self._mirror = CompanionMirror(storage)
        self.placeholder = placeholder
        self.scheme = scheme
        self.title_length = title_length

    @classmethod
    def from_config(cls, storage: MirrorStorage) -> "WidgetReader":
        from notekeeper.core.config import get_app_config

        config = get_app_config()
        return cls(
            storage,
            placeholder=config.mirror.placeholder,
            scheme=config.application.deep_link_scheme,
            title_length=config.notes.preview_title_length,
        )

    async def entries(self) -> list[MirrorEntry]:
        """Every selectable note with a short title, ordered by id."""
        return [
            MirrorEntry(id=item.id, title=preview_title(item.content, self.title_length))
            for item in await self._mirror.list()
        ]

    async def entries_for(self, note_ids: Iterable[str]) -> list[MirrorEntry]:
        """Selectable notes restricted to `note_ids`; unknown ids are skipped."""
        wanted = set(note_ids)
        return [entry for entry in await self.entries() if entry.id in wanted]

    async def resolve(self, configured_id: str | None = None) -> DisplayEntry:
        """
        Decide what the display shows.

        Args:
            configured_id: Note chosen in the display's own configuration

        Returns:
            Content, note id and deep link; placeholder with no id when
            nothing usable is mirrored
        """
        if configured_id is not None:
            content = await self._mirror.content_for(configured_id)
            if content is not None:
                return self._entry(content, configured_id)
            logger.debug("Configured note not mirrored", extra={"note_id": configured_id})

        selected = await self._mirror.get_selected()
        if selected is not None:
            content = await self._mirror.content_for(selected)
            if content is not None:
                return self._entry(content, selected)

        return self._entry(self.placeholder, None)

    async def watch(self, configured_id: str | None = None) -> AsyncIterator[DisplayEntry]:
        """
        Yield the current display entry, then a fresh one after each mirror change.

        Runs until the consumer stops iterating; the change subscription is
        closed with the generator.
        """
        yield await self.resolve(configured_id)
        async with aclosing(self._mirror.storage.changes()) as changes:
            async for _ in changes:
                yield await self.resolve(configured_id)

    def _entry(self, content: str, note_id: str | None) -> DisplayEntry:
        return DisplayEntry(
            content=content,
            note_id=note_id,
            deep_link=deep_link(note_id, self.scheme),
        )
