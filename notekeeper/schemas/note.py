"""
Note Schemas.

Pydantic value types returned by the note service. ORM instances never
leave the service; callers receive these detached snapshots instead.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class NoteState(StrEnum):
    """Which view a note belongs to."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    TRASH = "trash"


class UpdateOutcome(StrEnum):
    """Result of saving edited content."""

    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"


class NoteView(BaseModel):
    """Schema for a note as seen by callers."""

    id: str = Field(description="Note unique identifier")
    content: str = Field(description="Note text")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last content edit timestamp")
    is_archived: bool = Field(description="Whether the note is archived")
    deleted_at: datetime | None = Field(default=None, description="When the note entered the trash")
    is_pinned: bool = Field(default=False, description="Whether the note is pinned")

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def state(self) -> NoteState:
        if self.deleted_at is not None:
            return NoteState.TRASH
        if self.is_archived:
            return NoteState.ARCHIVED
        return NoteState.ACTIVE


class HighlightSpan(BaseModel):
    """Half-open character range [start, end) of a query match."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class SearchHit(BaseModel):
    """An active note matching a search, with its display snippet."""

    note: NoteView
    snippet: str
    highlights: list[HighlightSpan] = Field(default_factory=list)
