"""
Note Model.

Database models for notes and the pin registry.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from notekeeper.core.utils import utc_now
from notekeeper.models.base import Base, TimestampMixin, UUIDMixin


class Note(UUIDMixin, TimestampMixin, Base):
    """
    Note database model.

    The pair (is_archived, deleted_at) places every note in exactly one view:
    deleted_at set means Trash, otherwise is_archived selects Archived over
    Active.
    """

    __tablename__ = "notes"

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    is_archived: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
        index=True,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        index=True,
    )

    @property
    def in_trash(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and not self.is_archived

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, archived={self.is_archived}, deleted_at={self.deleted_at})>"


class PinnedNote(Base):
    """
    Pin registry row.

    A row exists exactly while the note is pinned. Kept apart from the note
    record so pin state is an annotation on note identity, and removed with
    the note through the foreign key cascade.
    """

    __tablename__ = "pinned_notes"

    note_id: Mapped[str] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    pinned_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PinnedNote(note_id={self.note_id})>"
