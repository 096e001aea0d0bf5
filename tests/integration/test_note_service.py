"""
Integration Tests for NoteService.

Runs the service against a real in-memory SQLite store and the in-memory
mirror backend. Mirror writes are background tasks sent on commit, so tests commit the
session and drain the dispatcher before looking at the mirror.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from notekeeper.core.exceptions import DatabaseError, NotFoundError, ValidationError
from notekeeper.mirror import WidgetReader
from notekeeper.mirror.reader import DEFAULT_PLACEHOLDER
from notekeeper.schemas.note import HighlightSpan, NoteState, UpdateOutcome
from notekeeper.services.note import NoteService


@pytest.fixture
def service(db_session, mirror_sync, clock) -> NoteService:
    return NoteService(db_session, mirror_sync=mirror_sync, clock=clock, retention_days=30)


async def _create_at(service, clock, content, minutes):
    """Create a note `minutes` after the fixture's start time."""
    start = clock.now
    clock.now = start + timedelta(minutes=minutes)
    note = await service.create_note(content)
    clock.now = start
    return note


async def _settle(service, mirror_sync):
    """Commit the session and wait for the mirror writes it released."""
    await service.session.commit()
    await mirror_sync.drain()


async def _ids(notes):
    return [note.id for note in notes]


async def _states(service):
    """Map note id to the single view each note appears in."""
    views = {}
    for state, notes in (
        (NoteState.ACTIVE, await service.list_active()),
        (NoteState.ARCHIVED, await service.list_archived()),
        (NoteState.TRASH, await service.list_trash()),
    ):
        for note in notes:
            assert note.id not in views, f"{note.id} appears in two views"
            views[note.id] = state
    return views


# =============================================================================
# Creation and editing
# =============================================================================


class TestCreateNote:
    """Tests for note creation."""

    @pytest.mark.asyncio
    async def test_create_trims_content(self, service, clock):
        note = await service.create_note("  Buy milk \n")

        assert note.content == "Buy milk"
        assert note.created_at == clock.now
        assert note.updated_at == clock.now
        assert note.state is NoteState.ACTIVE
        assert not note.is_pinned

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t\n"])
    async def test_blank_content_is_not_saved(self, service, content):
        assert await service.create_note(content) is None
        assert await service.list_active() == []

    @pytest.mark.asyncio
    async def test_created_note_is_mirrored(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await _settle(service, mirror_sync)

        assert await mirror.content_for(note.id) == "Buy milk"


class TestUpdateNote:
    """Tests for saving edits."""

    @pytest.mark.asyncio
    async def test_update_replaces_content(self, service, clock, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        clock.now = clock.now + timedelta(hours=1)

        outcome = await service.update_note(note.id, " Buy oat milk ")
        await _settle(service, mirror_sync)

        assert outcome is UpdateOutcome.UPDATED
        updated = await service.get_note(note.id)
        assert updated.content == "Buy oat milk"
        assert updated.updated_at == clock.now
        assert updated.created_at < updated.updated_at
        assert await mirror.content_for(note.id) == "Buy oat milk"

    @pytest.mark.asyncio
    async def test_empty_edit_deletes_note_and_pin(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)

        outcome = await service.update_note(note.id, "   ")
        await _settle(service, mirror_sync)

        assert outcome is UpdateOutcome.DELETED
        assert await service.get_note(note.id) is None
        assert not await service.is_pinned(note.id)
        assert await mirror.content_for(note.id) is None

    @pytest.mark.asyncio
    async def test_update_unknown_note(self, service):
        assert await service.update_note("missing", "text") is UpdateOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_editing_archived_note_keeps_it_archived(self, service):
        note = await service.create_note("Buy milk")
        await service.archive(note.id)

        await service.update_note(note.id, "Buy bread")

        assert (await service.get_note(note.id)).state is NoteState.ARCHIVED


# =============================================================================
# Lifecycle transitions
# =============================================================================


class TestArchive:
    @pytest.mark.asyncio
    async def test_archive_and_unarchive(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")

        archived = await service.archive(note.id)
        await _settle(service, mirror_sync)
        assert archived.state is NoteState.ARCHIVED
        assert await mirror.content_for(note.id) is None

        active = await service.unarchive(note.id)
        await _settle(service, mirror_sync)
        assert active.state is NoteState.ACTIVE
        assert await mirror.content_for(note.id) == "Buy milk"

    @pytest.mark.asyncio
    async def test_archive_is_idempotent(self, service):
        note = await service.create_note("Buy milk")
        await service.archive(note.id)
        again = await service.archive(note.id)

        assert again.state is NoteState.ARCHIVED

    @pytest.mark.asyncio
    async def test_archive_leaves_trashed_note_in_trash(self, service):
        note = await service.create_note("Buy milk")
        await service.soft_delete(note.id)

        result = await service.archive(note.id)

        assert result.state is NoteState.TRASH
        assert not result.is_archived

    @pytest.mark.asyncio
    async def test_archive_unknown_note(self, service):
        assert await service.archive("missing") is None
        assert await service.unarchive("missing") is None

    @pytest.mark.asyncio
    async def test_archive_keeps_pin(self, service):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)

        archived = await service.archive(note.id)

        assert archived.is_pinned


class TestSoftDeleteAndRestore:
    @pytest.mark.asyncio
    async def test_soft_delete_clears_archive_and_pin(self, service, clock, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)
        await service.archive(note.id)

        trashed = await service.soft_delete(note.id)
        await _settle(service, mirror_sync)

        assert trashed.state is NoteState.TRASH
        assert trashed.deleted_at == clock.now
        assert not trashed.is_archived
        assert not await service.is_pinned(note.id)
        assert await mirror.content_for(note.id) is None

    @pytest.mark.asyncio
    async def test_second_soft_delete_keeps_deletion_time(self, service, clock):
        note = await service.create_note("Buy milk")
        first = await service.soft_delete(note.id)

        clock.now = clock.now + timedelta(days=3)
        second = await service.soft_delete(note.id)

        assert second.deleted_at == first.deleted_at

    @pytest.mark.asyncio
    async def test_restore_returns_note_to_active(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.soft_delete(note.id)

        restored = await service.restore(note.id)
        await _settle(service, mirror_sync)

        assert restored.state is NoteState.ACTIVE
        assert restored.deleted_at is None
        assert not restored.is_pinned
        assert await mirror.content_for(note.id) == "Buy milk"

    @pytest.mark.asyncio
    async def test_restore_active_note_is_noop(self, service):
        note = await service.create_note("Buy milk")
        restored = await service.restore(note.id)
        assert restored.state is NoteState.ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_note(self, service):
        assert await service.soft_delete("missing") is None
        assert await service.restore("missing") is None


class TestHardDelete:
    @pytest.mark.asyncio
    async def test_hard_delete_removes_everything(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)

        assert await service.hard_delete(note.id) is True
        await _settle(service, mirror_sync)

        assert await service.get_note(note.id) is None
        assert not await service.is_pinned(note.id)
        assert await mirror.list() == []

    @pytest.mark.asyncio
    async def test_hard_delete_unknown_note(self, service):
        assert await service.hard_delete("missing") is False


class TestViewPartition:
    """Every note appears in exactly one of Active, Archived and Trash."""

    @pytest.mark.asyncio
    async def test_each_note_in_one_view(self, service):
        a = await service.create_note("active")
        b = await service.create_note("archived")
        c = await service.create_note("trashed")
        d = await service.create_note("archived then trashed")
        await service.archive(b.id)
        await service.soft_delete(c.id)
        await service.archive(d.id)
        await service.soft_delete(d.id)

        assert await _states(service) == {
            a.id: NoteState.ACTIVE,
            b.id: NoteState.ARCHIVED,
            c.id: NoteState.TRASH,
            d.id: NoteState.TRASH,
        }

    @pytest.mark.asyncio
    async def test_count_active(self, service):
        kept = await service.create_note("kept")
        archived = await service.create_note("archived")
        trashed = await service.create_note("trashed")
        await service.archive(archived.id)
        await service.soft_delete(trashed.id)

        assert await service.count_active() == 1
        assert await _ids(await service.list_active()) == [kept.id]


# =============================================================================
# Trash retention
# =============================================================================


class TestPurgeExpiredTrash:
    @pytest.mark.asyncio
    async def test_purges_only_expired(self, service, clock):
        old = await service.create_note("old")
        recent = await service.create_note("recent")
        await service.soft_delete(old.id)
        clock.now = clock.now + timedelta(days=5)
        await service.soft_delete(recent.id)

        purged = await service.purge_expired_trash(now=clock.now + timedelta(days=27))

        assert purged == 1
        assert await service.get_note(old.id) is None
        assert await service.get_note(recent.id) is not None

    @pytest.mark.asyncio
    async def test_purge_is_idempotent(self, service, clock):
        note = await service.create_note("old")
        await service.soft_delete(note.id)
        later = clock.now + timedelta(days=31)

        assert await service.purge_expired_trash(now=later) == 1
        assert await service.purge_expired_trash(now=later) == 0

    @pytest.mark.asyncio
    async def test_active_and_archived_never_purged(self, service, clock):
        a = await service.create_note("active")
        b = await service.create_note("archived")
        await service.archive(b.id)

        assert await service.purge_expired_trash(now=clock.now + timedelta(days=365)) == 0
        assert len(await _states(service)) == 2

    @pytest.mark.asyncio
    async def test_zero_retention_purges_all_trash(self, service, clock):
        note = await service.create_note("x")
        await service.soft_delete(note.id)

        purged = await service.purge_expired_trash(
            retention_days=0, now=clock.now + timedelta(seconds=1),
        )

        assert purged == 1

    @pytest.mark.asyncio
    async def test_negative_retention_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.purge_expired_trash(retention_days=-1)

    @pytest.mark.asyncio
    async def test_trash_view_hides_expired_notes(self, service, clock):
        note = await service.create_note("old")
        await service.soft_delete(note.id)

        assert await _ids(await service.list_trash()) == [note.id]
        later = clock.now + timedelta(days=31)
        assert await service.list_trash(now=later) == []

    @pytest.mark.asyncio
    async def test_trash_boundary_is_retained(self, service, clock):
        note = await service.create_note("edge")
        await service.soft_delete(note.id)
        boundary = clock.now + timedelta(days=30)

        assert await _ids(await service.list_trash(now=boundary)) == [note.id]
        assert await service.purge_expired_trash(now=boundary) == 0


# =============================================================================
# Listing and search
# =============================================================================


class TestListActive:
    @pytest.mark.asyncio
    async def test_newest_first(self, service, clock):
        first = await _create_at(service, clock, "first", 1)
        second = await _create_at(service, clock, "second", 2)
        third = await _create_at(service, clock, "third", 3)

        assert await _ids(await service.list_active()) == [third.id, second.id, first.id]

    @pytest.mark.asyncio
    async def test_pinned_first_then_newest(self, service, clock):
        first = await _create_at(service, clock, "first", 1)
        second = await _create_at(service, clock, "second", 2)
        third = await _create_at(service, clock, "third", 3)
        await service.set_pinned(first.id, True)

        notes = await service.list_active()

        assert await _ids(notes) == [first.id, third.id, second.id]
        assert [note.is_pinned for note in notes] == [True, False, False]

    @pytest.mark.asyncio
    async def test_identical_timestamps_have_stable_order(self, service):
        created = [await service.create_note(f"note {i}") for i in range(5)]
        expected = sorted(note.id for note in created)

        assert await _ids(await service.list_active()) == expected
        assert await _ids(await service.list_active()) == expected

    @pytest.mark.asyncio
    async def test_search_filters_case_insensitively(self, service):
        milk = await service.create_note("Buy MILK")
        await service.create_note("Call mum")
        archived = await service.create_note("milk for the cat")
        await service.archive(archived.id)

        assert await _ids(await service.list_active("milk")) == [milk.id]

    @pytest.mark.asyncio
    async def test_list_archived_order(self, service, clock):
        first = await _create_at(service, clock, "first", 1)
        second = await _create_at(service, clock, "second", 2)
        await service.archive(first.id)
        await service.archive(second.id)

        assert await _ids(await service.list_archived()) == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_trash_most_recently_deleted_first(self, service, clock):
        first = await service.create_note("first")
        second = await service.create_note("second")
        await service.soft_delete(second.id)
        clock.now = clock.now + timedelta(minutes=5)
        await service.soft_delete(first.id)

        assert await _ids(await service.list_trash()) == [first.id, second.id]


class TestSearch:
    @pytest.mark.asyncio
    async def test_hits_carry_snippet_and_highlights(self, service):
        await service.create_note("The quick brown fox jumps")

        hits = await service.search("BROWN", max_length=10)

        assert len(hits) == 1
        assert hits[0].snippet == "...k brown f..."
        assert hits[0].highlights == [HighlightSpan(start=5, end=10)]

    @pytest.mark.asyncio
    async def test_empty_search_returns_all_active(self, service):
        await service.create_note("Hello\nWorld\nExtra")

        hits = await service.search("")

        assert hits[0].snippet == "Hello World"
        assert hits[0].highlights == []

    @pytest.mark.asyncio
    async def test_search_excludes_archived_and_trash(self, service):
        a = await service.create_note("milk one")
        b = await service.create_note("milk two")
        await service.archive(a.id)
        await service.soft_delete(b.id)

        assert await service.search("milk") == []


# =============================================================================
# Pins
# =============================================================================


class TestPins:
    @pytest.mark.asyncio
    async def test_pin_is_idempotent(self, service):
        note = await service.create_note("Buy milk")

        assert await service.set_pinned(note.id, True)
        assert await service.set_pinned(note.id, True)
        assert await service.is_pinned(note.id)

        assert await service.set_pinned(note.id, False)
        assert await service.set_pinned(note.id, False)
        assert not await service.is_pinned(note.id)

    @pytest.mark.asyncio
    async def test_cannot_pin_trashed_or_missing_note(self, service):
        note = await service.create_note("Buy milk")
        await service.soft_delete(note.id)

        assert await service.set_pinned(note.id, True) is False
        assert await service.set_pinned("missing", True) is False
        assert not await service.is_pinned(note.id)

    @pytest.mark.asyncio
    async def test_pinning_active_note_selects_it(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)
        await _settle(service, mirror_sync)

        assert await mirror.get_selected() == note.id

    @pytest.mark.asyncio
    async def test_pin_without_selection(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True, select_for_display=False)
        await _settle(service, mirror_sync)

        assert await mirror.get_selected() is None

    @pytest.mark.asyncio
    async def test_pinning_archived_note_does_not_select(self, service, mirror, mirror_sync):
        note = await service.create_note("Buy milk")
        await service.archive(note.id)

        assert await service.set_pinned(note.id, True)
        await _settle(service, mirror_sync)

        assert await mirror.get_selected() is None


# =============================================================================
# Lookups and deep links
# =============================================================================


class TestLookup:
    @pytest.mark.asyncio
    async def test_require_note_raises(self, service):
        with pytest.raises(NotFoundError):
            await service.require_note("missing")

    @pytest.mark.asyncio
    async def test_get_note_any_view(self, service):
        note = await service.create_note("Buy milk")
        await service.soft_delete(note.id)

        assert (await service.get_note(note.id)).state is NoteState.TRASH

    @pytest.mark.asyncio
    async def test_resolve_deep_link(self, service):
        note = await service.create_note("Buy milk")

        resolved = await service.resolve_deep_link(f"noteapp://note/{note.id}")

        assert resolved.id == note.id

    @pytest.mark.asyncio
    async def test_deep_link_to_trashed_note(self, service):
        note = await service.create_note("Buy milk")
        await service.soft_delete(note.id)

        assert await service.resolve_deep_link(f"noteapp://note/{note.id}") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("uri", ["noteapp://note/missing", "noteapp://", "garbage"])
    async def test_deep_link_unresolvable(self, service, uri):
        assert await service.resolve_deep_link(uri) is None


# =============================================================================
# Failure propagation
# =============================================================================


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_error_surfaces_as_database_error(self, service):
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(service.notes, "get_active", side_effect=error):
            with pytest.raises(DatabaseError):
                await service.list_active()

    @pytest.mark.asyncio
    async def test_mirror_failure_does_not_fail_mutation(self, service, mirror, mirror_sync):
        async def broken(items):
            raise ConnectionError("mirror offline")

        mirror.set_all = broken
        note = await service.create_note("Buy milk")
        await _settle(service, mirror_sync)

        assert note is not None
        assert await _ids(await service.list_active()) == [note.id]

    @pytest.mark.asyncio
    async def test_works_without_mirror(self, db_session, clock):
        service = NoteService(db_session, clock=clock)
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)
        await service.soft_delete(note.id)

        assert (await service.get_note(note.id)).state is NoteState.TRASH


# =============================================================================
# End to end with the display
# =============================================================================


class TestDisplayScenario:
    @pytest.mark.asyncio
    async def test_pinned_note_shown_until_trashed(
        self, service, mirror_storage, mirror_sync,
    ):
        reader = WidgetReader(mirror_storage)
        note = await service.create_note("Buy milk")
        await service.set_pinned(note.id, True)
        await _settle(service, mirror_sync)

        entry = await reader.resolve()
        assert entry.content == "Buy milk"
        assert entry.deep_link == f"noteapp://note/{note.id}"

        await service.soft_delete(note.id)
        await _settle(service, mirror_sync)

        entry = await reader.resolve()
        assert entry.content == DEFAULT_PLACEHOLDER
        assert entry.note_id is None
