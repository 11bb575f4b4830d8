from puzzz import db
from puzzz.records import GameState, Player, RoomRecord
import json


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False, default='')
    host_player_id = db.Column(db.String(64), nullable=True)
    current_game = db.Column(db.String(32), nullable=False)
    game_state = db.Column(db.Text, nullable=False)  # JSON-encoded gameState
    players = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list, join order
    version = db.Column(db.Integer, nullable=False, default=0)
    updated_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.BigInteger, nullable=False, default=0)  # ms
    updated_at = db.Column(db.BigInteger, nullable=False, default=0)  # ms

    def to_record(self) -> RoomRecord:
        return RoomRecord(
            room_code=self.room_code,
            name=self.name or '',
            host_player_id=self.host_player_id,
            current_game=self.current_game,
            game_state=GameState.from_dict(json.loads(self.game_state)),
            players=tuple(Player.from_dict(p) for p in json.loads(self.players or '[]')),
            created_at=int(self.created_at or 0),
            version=int(self.version or 0),
            updated_by=self.updated_by,
            updated_at=int(self.updated_at or 0),
        )

    @staticmethod
    def columns_for(record: RoomRecord) -> dict:
        return {
            'name': record.name,
            'host_player_id': record.host_player_id,
            'current_game': record.current_game,
            'game_state': json.dumps(record.game_state.to_dict()),
            'players': json.dumps([p.to_dict() for p in record.players]),
            'version': record.version,
            'updated_by': record.updated_by,
            'updated_at': record.updated_at,
        }

    @classmethod
    def from_record(cls, record: RoomRecord) -> 'Room':
        return cls(room_code=record.room_code, created_at=record.created_at, **cls.columns_for(record))

    def to_dict(self):
        return self.to_record().to_dict()
