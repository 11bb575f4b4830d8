from typing import List

from sqlalchemy.exc import IntegrityError

from puzzz import db, socketio
from puzzz.errors import Conflict, RoomNotFound
from puzzz.models import Room
from puzzz.records import RoomRecord
from puzzz.store import RoomStore


def room_channel(room_code: str) -> str:
    return f"room:{room_code}"


class SqlRoomStore(RoomStore):
    """Room store on the Flask-SQLAlchemy ``room`` table.

    Must be used inside an application context. Each commit is pushed to the
    room's Socket.IO channel as a ``room_snapshot`` event and to local
    subscribers.
    """

    def __init__(self, broadcast: bool = True):
        super().__init__()
        self.broadcast = broadcast

    def get(self, room_code: str) -> RoomRecord:
        row = Room.query.filter_by(room_code=room_code).first()
        if row is None:
            raise RoomNotFound(room_code)
        return row.to_record()

    def create(self, record: RoomRecord) -> RoomRecord:
        stored = self.stamp(record, 1)
        db.session.add(Room.from_record(stored))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict(self.get(record.room_code))
        self.publish(stored)
        return stored

    def update(self, record: RoomRecord, expected_version: int) -> RoomRecord:
        stored = self.stamp(record, expected_version + 1)
        changed = (
            Room.query
            .filter_by(room_code=record.room_code, version=expected_version)
            .update(Room.columns_for(stored), synchronize_session=False)
        )
        if not changed:
            db.session.rollback()
            raise Conflict(self.get(record.room_code))
        db.session.commit()
        self.publish(stored)
        return stored

    def delete(self, room_code: str) -> bool:
        removed = Room.query.filter_by(room_code=room_code).delete()
        db.session.commit()
        self._drop_channel(room_code)
        return bool(removed)

    def room_codes(self) -> List[str]:
        return [code for (code,) in db.session.query(Room.room_code).all()]

    def publish(self, record: RoomRecord) -> None:
        super().publish(record)
        if self.broadcast:
            socketio.emit('room_snapshot', record.to_dict(), to=room_channel(record.room_code), namespace='/ws')
