"""
Note Service.

Business logic layer for notes. Orchestrates the note and pin
repositories, classifies notes into the Active, Archived and Trash views,
enforces the trash retention policy, and keeps the companion mirror in
step with the Active set.

Outcomes such as an unknown id, empty content or archiving an archived
note are return values. Store failures raise DatabaseError. Mirror
failures never reach the caller: a snapshot taken inside the mutation is
written in the background once the session commits.

Usage:
    async with session_scope() as session:
        service = NoteService(session, mirror_sync=sync)
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)
        hits = await service.search("milk")
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.core.exceptions import NotFoundError, ValidationError
from notekeeper.core.utils import retention_cutoff, utc_now
from notekeeper.mirror.reader import DEFAULT_SCHEME, parse_deep_link
from notekeeper.mirror.sync import MirrorSync
from notekeeper.models.note import Note
from notekeeper.repositories.note import NoteRepository
from notekeeper.repositories.pin import PinRepository
from notekeeper.schemas.note import NoteView, SearchHit, UpdateOutcome
from notekeeper.services.base import BaseService
from notekeeper.services.search import find_spans, matches, snippet

DEFAULT_RETENTION_DAYS = 30
DEFAULT_SNIPPET_LENGTH = 200


def _to_view(note: Note, pinned: bool = False) -> NoteView:
    return NoteView(
        id=note.id,
        content=note.content,
        created_at=note.created_at,
        updated_at=note.updated_at,
        is_archived=note.is_archived,
        deleted_at=note.deleted_at,
        is_pinned=pinned,
    )


class NoteService(BaseService):
    """
    Service for note lifecycle, views, pins and search.

    The service flushes after each mutation; committing is left to the
    caller's session scope.
    """

    def __init__(
        self,
        session: AsyncSession,
        mirror_sync: MirrorSync | None = None,
        clock: Callable[[], datetime] = utc_now,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        deep_link_scheme: str = DEFAULT_SCHEME,
    ) -> None:
        super().__init__(session)
        self.notes = NoteRepository(session)
        self.pins = PinRepository(session)
        self.mirror_sync = mirror_sync
        self._clock = clock
        self.retention_days = retention_days
        self.deep_link_scheme = deep_link_scheme

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_note(self, content: str) -> NoteView | None:
        """
        Save a new note.

        Args:
            content: Raw editor text; surrounding whitespace is trimmed

        Returns:
            The created note, or None when nothing is left after trimming
        """
        trimmed = content.strip()
        if not trimmed:
            self._log_debug("Skipping empty note")
            return None

        now = self._clock()
        note = await self._execute_db_operation(
            "create_note",
            self.notes.create(content=trimmed, created_at=now, updated_at=now),
        )
        self._log_operation("Note created", note_id=note.id)
        await self._sync_mirror()
        return _to_view(note)

    async def update_note(self, note_id: str, content: str) -> UpdateOutcome:
        """
        Save edited content.

        Content that is empty after trimming deletes the note for good,
        together with its pin and mirror entry.

        Args:
            note_id: Note to edit
            content: Raw editor text

        Returns:
            UPDATED, DELETED or NOT_FOUND
        """
        note = await self._get(note_id)
        if note is None:
            return UpdateOutcome.NOT_FOUND

        trimmed = content.strip()
        if not trimmed:
            self._log_operation("Deleting note emptied by edit", note_id=note_id)
            await self._execute_db_operation("delete_emptied_note", self._destroy(note))
            await self._sync_mirror()
            return UpdateOutcome.DELETED

        note.content = trimmed
        note.updated_at = self._clock()
        await self._execute_db_operation("update_note", self.notes.save(note))
        self._log_operation("Note updated", note_id=note_id)
        if note.is_active:
            await self._sync_mirror()
        return UpdateOutcome.UPDATED

    async def archive(self, note_id: str) -> NoteView | None:
        """Move a note to Archived. Trashed notes are left untouched."""
        return await self._set_archived(note_id, True)

    async def unarchive(self, note_id: str) -> NoteView | None:
        """Move a note back to Active. Trashed notes are left untouched."""
        return await self._set_archived(note_id, False)

    async def soft_delete(self, note_id: str) -> NoteView | None:
        """
        Move a note to the trash.

        Clears the archive flag and the pin. A note already in the trash
        keeps its original deletion time.

        Returns:
            The trashed note, or None if it does not exist
        """
        note = await self._get(note_id)
        if note is None:
            return None
        if note.in_trash:
            return _to_view(note)

        note.deleted_at = self._clock()
        note.is_archived = False
        await self._execute_db_operation("soft_delete", self._trash(note))
        self._log_operation("Note moved to trash", note_id=note_id)
        await self._sync_mirror()
        return _to_view(note)

    async def restore(self, note_id: str) -> NoteView | None:
        """Take a note out of the trash, back into Active."""
        note = await self._get(note_id)
        if note is None:
            return None
        if not note.in_trash:
            return await self._view(note)

        note.deleted_at = None
        await self._execute_db_operation("restore", self.notes.save(note))
        self._log_operation("Note restored", note_id=note_id)
        await self._sync_mirror()
        return _to_view(note)

    async def hard_delete(self, note_id: str) -> bool:
        """
        Remove a note permanently, with its pin and mirror entry.

        Returns:
            False if the note does not exist
        """
        note = await self._get(note_id)
        if note is None:
            return False

        await self._execute_db_operation("hard_delete", self._destroy(note))
        self._log_operation("Note deleted permanently", note_id=note_id)
        await self._sync_mirror()
        return True

    async def purge_expired_trash(
        self,
        retention_days: int | None = None,
        now: datetime | None = None,
    ) -> int:
        """
        Permanently delete trashed notes older than the retention window.

        Safe to run on every session start: a second run with the same
        `now` finds nothing left to purge.

        Args:
            retention_days: Window length; defaults to the service setting
            now: Reference time; defaults to the service clock

        Returns:
            Number of notes purged

        Raises:
            ValidationError: If retention_days is negative
        """
        days = self.retention_days if retention_days is None else retention_days
        if days < 0:
            raise ValidationError(
                "Retention must not be negative",
                details={"retention_days": days},
            )

        cutoff = retention_cutoff(now or self._clock(), days)
        expired = await self._execute_db_operation(
            "find_expired_trash", self.notes.get_expired_trash(cutoff),
        )
        for note in expired:
            await self._execute_db_operation("purge_note", self._destroy(note))

        if expired:
            self._log_operation("Expired trash purged", count=len(expired), cutoff=cutoff.isoformat())
            await self._sync_mirror()
        return len(expired)

    # =========================================================================
    # Views
    # =========================================================================

    async def get_note(self, note_id: str) -> NoteView | None:
        """Look up a note in any view."""
        note = await self._get(note_id)
        if note is None:
            return None
        return await self._view(note)

    async def require_note(self, note_id: str) -> NoteView:
        """
        Look up a note in any view.

        Raises:
            NotFoundError: If note not found
        """
        note = await self._execute_db_operation("require_note", self.notes.get_by_id(note_id))
        return await self._view(note)

    async def resolve_deep_link(self, uri: str) -> NoteView | None:
        """
        Resolve a deep link from the external display to a note.

        Returns:
            The note, or None for malformed links, unknown ids and notes
            that have since been trashed
        """
        note_id = parse_deep_link(uri, self.deep_link_scheme)
        if note_id is None:
            self._log_debug("Ignoring deep link without a note", uri=uri)
            return None
        note = await self.get_note(note_id)
        if note is None or note.deleted_at is not None:
            return None
        return note

    async def list_active(self, search_text: str = "") -> list[NoteView]:
        """
        Active notes, optionally filtered by a search.

        Pinned notes come first; within each group notes are newest first,
        with the id breaking ties.

        Args:
            search_text: Case-insensitive substring; empty means no filter
        """
        notes = await self._execute_db_operation("list_active", self.notes.get_active())
        pinned = await self._execute_db_operation("pinned_ids", self.pins.pinned_ids())
        found = [note for note in notes if matches(note.content, search_text)]
        found.sort(key=lambda note: note.id not in pinned)
        return [_to_view(note, note.id in pinned) for note in found]

    async def list_archived(self) -> list[NoteView]:
        """Archived notes, newest first."""
        notes = await self._execute_db_operation("list_archived", self.notes.get_archived())
        pinned = await self._execute_db_operation("pinned_ids", self.pins.pinned_ids())
        return [_to_view(note, note.id in pinned) for note in notes]

    async def count_active(self) -> int:
        """Number of notes in the Active view."""
        return await self._execute_db_operation("count_active", self.notes.count_active())

    async def list_trash(
        self,
        retention_days: int | None = None,
        now: datetime | None = None,
    ) -> list[NoteView]:
        """
        Trashed notes still inside the retention window, most recent first.

        Notes past the window are hidden even before a purge removes them.
        """
        days = self.retention_days if retention_days is None else retention_days
        cutoff = retention_cutoff(now or self._clock(), days)
        notes = await self._execute_db_operation("list_trash", self.notes.get_trash(cutoff))
        return [_to_view(note) for note in notes]

    async def search(
        self,
        search_text: str,
        max_length: int = DEFAULT_SNIPPET_LENGTH,
    ) -> list[SearchHit]:
        """
        Active notes matching `search_text`, in list order, with snippets.

        Highlight spans are offsets into the snippet, not the full content.
        """
        hits = []
        for note in await self.list_active(search_text):
            text = snippet(note.content, search_text, max_length)
            hits.append(
                SearchHit(note=note, snippet=text, highlights=find_spans(text, search_text)),
            )
        return hits

    # =========================================================================
    # Pins
    # =========================================================================

    async def is_pinned(self, note_id: str) -> bool:
        return await self._execute_db_operation("is_pinned", self.pins.is_pinned(note_id))

    async def set_pinned(
        self,
        note_id: str,
        pinned: bool,
        select_for_display: bool = True,
    ) -> bool:
        """
        Pin or unpin a note.

        Only Active and Archived notes can be pinned. Pinning an Active
        note also selects it for the external display unless
        `select_for_display` is False.

        Returns:
            False if the note does not exist or is in the trash
        """
        note = await self._get(note_id)
        if note is None or note.in_trash:
            self._log_debug("Pin change ignored", note_id=note_id, pinned=pinned)
            return False

        await self._execute_db_operation("set_pinned", self.pins.set_pinned(note_id, pinned))
        self._log_operation("Pin changed", note_id=note_id, pinned=pinned)

        if pinned and select_for_display and note.is_active and self.mirror_sync is not None:
            self.mirror_sync.stage_select(self.session, note_id)
        return True

    # =========================================================================
    # Mirror
    # =========================================================================

    async def resync_mirror(self) -> None:
        """Stage a full mirror rebuild from the current Active set."""
        await self._sync_mirror()

    async def _sync_mirror(self) -> None:
        if self.mirror_sync is None:
            return
        snapshot = await self._execute_db_operation("mirror_snapshot", self.notes.active_snapshot())
        self.mirror_sync.stage(self.session, snapshot)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get(self, note_id: str) -> Note | None:
        return await self._execute_db_operation("get_note", self.notes.get_by_id_or_none(note_id))

    async def _view(self, note: Note) -> NoteView:
        pinned = await self.is_pinned(note.id)
        return _to_view(note, pinned)

    async def _set_archived(self, note_id: str, archived: bool) -> NoteView | None:
        note = await self._get(note_id)
        if note is None:
            return None
        if note.in_trash or note.is_archived == archived:
            return await self._view(note)

        note.is_archived = archived
        await self._execute_db_operation("set_archived", self.notes.save(note))
        self._log_operation("Archive flag changed", note_id=note_id, archived=archived)
        await self._sync_mirror()
        return await self._view(note)

    async def _trash(self, note: Note) -> None:
        await self.pins.remove(note.id)
        await self.notes.save(note)

    async def _destroy(self, note: Note) -> None:
        await self.pins.remove(note.id)
        await self.notes.delete_instance(note)
