# Data access layer
from notekeeper.repositories.note import NoteRepository
from notekeeper.repositories.pin import PinRepository

__all__ = [
    "NoteRepository",
    "PinRepository",
]
