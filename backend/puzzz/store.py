"""Room store interface and the in-process implementation.

Every write is a full-snapshot replace guarded by a compare-and-swap on
``version``. Each room has one SnapshotChannel; every listener for that room
subscribes to it instead of polling the store.
"""

import logging
from dataclasses import replace
from threading import RLock
from typing import Callable, Dict, List

from puzzz.errors import Conflict, RoomNotFound
from puzzz.records import RoomRecord, now_ms

logger = logging.getLogger(__name__)

Listener = Callable[[RoomRecord], None]


class Subscription:
    def __init__(self, channel: 'SnapshotChannel', listener: Listener):
        self._channel = channel
        self._listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._channel.remove(self._listener)
            self.active = False


class SnapshotChannel:
    """Fan-out of committed snapshots for a single room."""

    def __init__(self, room_code: str):
        self.room_code = room_code
        self._listeners: List[Listener] = []
        self._lock = RLock()

    def add(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def remove(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def __len__(self):
        return len(self._listeners)

    def publish(self, record: RoomRecord) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(record)
            except Exception:
                # a failing listener does not stop delivery to the others
                logger.exception('snapshot listener failed for room %s', self.room_code)


class RoomStore:
    """get / update / subscribe over one record per room code."""

    def __init__(self):
        self._channels: Dict[str, SnapshotChannel] = {}
        self._channel_lock = RLock()

    def get(self, room_code: str) -> RoomRecord:
        raise NotImplementedError

    def create(self, record: RoomRecord) -> RoomRecord:
        raise NotImplementedError

    def update(self, record: RoomRecord, expected_version: int) -> RoomRecord:
        """Replace the stored snapshot if its version is still ``expected_version``.

        Returns the committed record (version incremented). Raises Conflict
        carrying the latest snapshot otherwise.
        """
        raise NotImplementedError

    def delete(self, room_code: str) -> bool:
        raise NotImplementedError

    def room_codes(self) -> List[str]:
        raise NotImplementedError

    def channel(self, room_code: str) -> SnapshotChannel:
        with self._channel_lock:
            ch = self._channels.get(room_code)
            if ch is None:
                ch = self._channels[room_code] = SnapshotChannel(room_code)
            return ch

    def subscribe(self, room_code: str, listener: Listener) -> Subscription:
        return self.channel(room_code).add(listener)

    def publish(self, record: RoomRecord) -> None:
        ch = self._channels.get(record.room_code)
        if ch is not None:
            ch.publish(record)

    def _drop_channel(self, room_code: str) -> None:
        with self._channel_lock:
            self._channels.pop(room_code, None)

    @staticmethod
    def stamp(record: RoomRecord, version: int) -> RoomRecord:
        return replace(record, version=version, updated_at=now_ms())


class MemoryRoomStore(RoomStore):
    """Process-local store, used by client sessions and tests."""

    def __init__(self):
        super().__init__()
        self._rooms: Dict[str, RoomRecord] = {}
        self._lock = RLock()

    def get(self, room_code: str) -> RoomRecord:
        with self._lock:
            record = self._rooms.get(room_code)
        if record is None:
            raise RoomNotFound(room_code)
        return record

    def create(self, record: RoomRecord) -> RoomRecord:
        with self._lock:
            existing = self._rooms.get(record.room_code)
            if existing is not None:
                raise Conflict(existing)
            stored = self._rooms[record.room_code] = self.stamp(record, 1)
        self.publish(stored)
        return stored

    def update(self, record: RoomRecord, expected_version: int) -> RoomRecord:
        with self._lock:
            current = self._rooms.get(record.room_code)
            if current is None:
                raise RoomNotFound(record.room_code)
            if current.version != expected_version:
                raise Conflict(current)
            stored = self._rooms[record.room_code] = self.stamp(record, current.version + 1)
        self.publish(stored)
        return stored

    def delete(self, room_code: str) -> bool:
        with self._lock:
            removed = self._rooms.pop(room_code, None) is not None
        self._drop_channel(room_code)
        return removed

    def room_codes(self) -> List[str]:
        with self._lock:
            return list(self._rooms)
