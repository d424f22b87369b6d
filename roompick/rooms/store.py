"""
Room document storage.

The whole room is read and written as one JSON document with a fixed
lifetime.  ``REDIS_URL`` selects the Redis backend; otherwise rooms live in
process memory.  Every save bumps ``RoomState.version``; callers that pass
``expected_version`` get a compare-and-swap write.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Protocol

import redis

from ..errors import StaleRoomError
from .config import DEFAULT_STORE_CONFIG, StoreConfig
from .models import RoomState


class RoomStore(Protocol):
    def get(self, room_id: str) -> RoomState | None: ...

    def set(self, room: RoomState, expected_version: int | None = None) -> RoomState: ...

    def clear(self) -> None: ...


def _next_version(room: RoomState, current: RoomState | None, expected_version: int | None) -> RoomState:
    if expected_version is not None:
        actual = current.version if current else 0
        if actual != expected_version:
            raise StaleRoomError(room.id, expected_version, actual)
    return room.model_copy(update={"version": room.version + 1})


class MemoryRoomStore:
    def __init__(self, config: StoreConfig = DEFAULT_STORE_CONFIG) -> None:
        self.config = config
        self._rooms: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _read(self, room_id: str) -> RoomState | None:
        entry = self._rooms.get(room_id)
        if entry and time.time() < entry["expires_at"]:
            return RoomState.model_validate_json(entry["value"])
        if entry:
            del self._rooms[room_id]
        return None

    def get(self, room_id: str) -> RoomState | None:
        with self._lock:
            return self._read(room_id)

    def set(self, room: RoomState, expected_version: int | None = None) -> RoomState:
        with self._lock:
            current = self._read(room.id) if expected_version is not None else None
            saved = _next_version(room, current, expected_version)
            self._rooms[room.id] = {
                "value": saved.model_dump_json(),
                "expires_at": time.time() + self.config.ttl_seconds,
            }
            return saved

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()


class RedisRoomStore:
    def __init__(
        self,
        config: StoreConfig = DEFAULT_STORE_CONFIG,
        client: redis.Redis | None = None,
    ) -> None:
        self.config = config
        self._client = client or redis.Redis.from_url(config.redis_url)

    def _key(self, room_id: str) -> str:
        return f"{self.config.key_prefix}{room_id}"

    def get(self, room_id: str) -> RoomState | None:
        data = self._client.get(self._key(room_id))
        return RoomState.model_validate_json(data) if data else None

    def set(self, room: RoomState, expected_version: int | None = None) -> RoomState:
        key = self._key(room.id)
        if expected_version is None:
            saved = _next_version(room, None, None)
            self._client.set(key, saved.model_dump_json(), ex=self.config.ttl_seconds)
            return saved

        with self._client.pipeline() as pipe:
            try:
                pipe.watch(key)
                data = pipe.get(key)
                current = RoomState.model_validate_json(data) if data else None
                saved = _next_version(room, current, expected_version)
                pipe.multi()
                pipe.set(key, saved.model_dump_json(), ex=self.config.ttl_seconds)
                pipe.execute()
            except redis.WatchError as exc:
                raise StaleRoomError(room.id, expected_version) from exc
        return saved

    def clear(self) -> None:
        for key in self._client.scan_iter(match=f"{self.config.key_prefix}*"):
            self._client.delete(key)


_store: RoomStore | None = None


def get_store(config: StoreConfig = DEFAULT_STORE_CONFIG) -> RoomStore:
    """Return the process-wide store, creating it on first call."""
    global _store
    if _store is None:
        _store = RedisRoomStore(config) if config.redis_url else MemoryRoomStore(config)
    return _store


def set_store(store: RoomStore | None) -> None:
    global _store
    _store = store


def get_room(room_id: str) -> RoomState | None:
    return get_store().get(room_id)


def save_room(room: RoomState, expected_version: int | None = None) -> RoomState:
    return get_store().set(room, expected_version)


def clear_rooms() -> None:
    get_store().clear()
