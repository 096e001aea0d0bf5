"""
Mirror Storage Backends.

The companion mirror lives in its own key-value namespace so an
out-of-process reader (the home-screen widget) can read it without
touching the note store. A backend stores exactly two values:

    notes map    - string → string, note id to content
    selected id  - optional string, the note chosen for display

and offers a change notification the reader can use to refresh. Readers
subscribe with `changes()`, an async iterator that yields once per
notification.

Backends:
    InMemoryMirrorStorage - process-local, listeners are plain callables
    RedisMirrorStorage    - redis.asyncio; hash + string key, pub/sub channel

Usage:
    from notekeeper.mirror.storage import create_mirror_storage

    storage = create_mirror_storage()
    await storage.set_map({"id-1": "Buy milk"})
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Protocol, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError

from notekeeper.core.exceptions import MirrorError
from notekeeper.core.logging import get_logger

logger = get_logger(__name__)

CHANGED_MESSAGE = "changed"


@runtime_checkable
class MirrorStorage(Protocol):
    """Typed key-value contract shared by every mirror backend."""

    async def get_map(self) -> dict[str, str]: ...

    async def set_map(self, mapping: dict[str, str]) -> None: ...

    async def get_selected(self) -> str | None: ...

    async def set_selected(self, note_id: str | None) -> None: ...

    async def notify_changed(self) -> None: ...

    def changes(self) -> AsyncIterator[None]: ...


class InMemoryMirrorStorage:
    """Process-local mirror storage.

    Values are copied on the way in and out so callers never share the
    stored dict.
    """

    def __init__(self) -> None:
        self._map: dict[str, str] = {}
        self._selected: str | None = None
        self._listeners: list[Callable[[], None]] = []

    async def get_map(self) -> dict[str, str]:
        return dict(self._map)

    async def set_map(self, mapping: dict[str, str]) -> None:
        self._map = dict(mapping)

    async def get_selected(self) -> str | None:
        return self._selected

    async def set_selected(self, note_id: str | None) -> None:
        self._selected = note_id

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback invoked after every change notification."""
        self._listeners.append(callback)

    async def notify_changed(self) -> None:
        for callback in list(self._listeners):
            callback()

    async def changes(self) -> AsyncIterator[None]:
        """Yield once per change notification until the consumer closes."""
        queue: asyncio.Queue[None] = asyncio.Queue()

        def listener() -> None:
            queue.put_nowait(None)

        self.add_listener(listener)
        try:
            while True:
                await queue.get()
                yield None
        finally:
            self._listeners.remove(listener)


class RedisMirrorStorage:
    """Mirror storage in Redis, shared with readers in other processes.

    The notes map is a hash, the selection a plain string key, and change
    notifications are published on a channel. Redis failures surface as
    MirrorError.
    """

    def __init__(
        self,
        client: redis.Redis,
        notes_map_key: str,
        selected_key: str,
        changed_channel: str,
    ) -> None:
        self._client = client
        self.notes_map_key = notes_map_key
        self.selected_key = selected_key
        self.changed_channel = changed_channel

    @classmethod
    def from_url(
        cls,
        url: str,
        notes_map_key: str,
        selected_key: str,
        changed_channel: str,
    ) -> "RedisMirrorStorage":
        client = redis.from_url(url, decode_responses=True)
        return cls(client, notes_map_key, selected_key, changed_channel)

    async def get_map(self) -> dict[str, str]:
        try:
            return dict(await self._client.hgetall(self.notes_map_key))
        except RedisError as e:
            raise MirrorError(f"Failed to read mirror map: {e}") from e

    async def set_map(self, mapping: dict[str, str]) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self.notes_map_key)
                if mapping:
                    pipe.hset(self.notes_map_key, mapping=mapping)
                await pipe.execute()
        except RedisError as e:
            raise MirrorError(f"Failed to write mirror map: {e}") from e

    async def get_selected(self) -> str | None:
        try:
            return await self._client.get(self.selected_key)
        except RedisError as e:
            raise MirrorError(f"Failed to read mirror selection: {e}") from e

    async def set_selected(self, note_id: str | None) -> None:
        try:
            if note_id is None:
                await self._client.delete(self.selected_key)
            else:
                await self._client.set(self.selected_key, note_id)
        except RedisError as e:
            raise MirrorError(f"Failed to write mirror selection: {e}") from e

    async def notify_changed(self) -> None:
        try:
            await self._client.publish(self.changed_channel, CHANGED_MESSAGE)
        except RedisError as e:
            raise MirrorError(f"Failed to publish mirror change: {e}") from e

    async def changes(self) -> AsyncIterator[None]:
        """Yield once per message on the change channel."""
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self.changed_channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    yield None
        finally:
            await pubsub.unsubscribe(self.changed_channel)
            await pubsub.aclose()

    async def close(self) -> None:
        await self._client.aclose()


def create_mirror_storage() -> MirrorStorage:
    """
    Build the mirror backend selected in mirror.yaml.

    Returns:
        InMemoryMirrorStorage or RedisMirrorStorage
    """
    from notekeeper.core.config import get_app_config, get_redis_url

    mirror_config = get_app_config().mirror
    if mirror_config.backend == "redis":
        logger.info("Mirror storage: redis", extra={"host": mirror_config.redis.host})
        return RedisMirrorStorage.from_url(
            get_redis_url(),
            notes_map_key=mirror_config.keys.notes_map,
            selected_key=mirror_config.keys.selected_id,
            changed_channel=mirror_config.keys.changed_channel,
        )

    logger.info("Mirror storage: memory")
    return InMemoryMirrorStorage()
