"""
Mirror Schemas.

Value types exchanged with the companion mirror and its reader.
"""

from pydantic import BaseModel, ConfigDict, Field


class MirrorItem(BaseModel):
    """One mirrored note: identity and current content."""

    id: str
    content: str

    model_config = ConfigDict(frozen=True)


class MirrorEntry(BaseModel):
    """A selectable note offered by the reader's note picker."""

    id: str
    title: str

    model_config = ConfigDict(frozen=True)


class DisplayEntry(BaseModel):
    """What the external display should render right now."""

    content: str
    note_id: str | None = Field(default=None, description="None when showing the placeholder")
    deep_link: str

    model_config = ConfigDict(frozen=True)
