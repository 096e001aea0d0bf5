# Companion mirror: projection of active notes for the external display
from notekeeper.mirror.mirror import CompanionMirror
from notekeeper.mirror.reader import WidgetReader, deep_link, parse_deep_link
from notekeeper.mirror.storage import (
    InMemoryMirrorStorage,
    MirrorStorage,
    RedisMirrorStorage,
    create_mirror_storage,
)
from notekeeper.mirror.sync import MirrorSync

__all__ = [
    "CompanionMirror",
    "InMemoryMirrorStorage",
    "MirrorStorage",
    "MirrorSync",
    "RedisMirrorStorage",
    "WidgetReader",
    "create_mirror_storage",
    "deep_link",
    "parse_deep_link",
]
