# Pydantic schemas package
from notekeeper.schemas.mirror import DisplayEntry, MirrorEntry, MirrorItem
from notekeeper.schemas.note import (
    HighlightSpan,
    NoteState,
    NoteView,
    SearchHit,
    UpdateOutcome,
)

__all__ = [
    "DisplayEntry",
    "HighlightSpan",
    "MirrorEntry",
    "MirrorItem",
    "NoteState",
    "NoteView",
    "SearchHit",
    "UpdateOutcome",
]
