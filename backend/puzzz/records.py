"""Snapshot types shared by every client of a room.

A RoomRecord is the single aggregate written to the room store. Records are
frozen; every state change produces a new record through ``dataclasses.replace``.
The dict form (``to_dict``) is the store's native layout and uses the camelCase
keys the browser clients read.
"""

import copy
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from puzzz.errors import ValidationError


def now_ms() -> int:
    return int(time.time() * 1000)


# gameState keys owned by the engine; everything else is game-specific payload
STATE_KEYS = {
    'phase': 'phase',
    'startedAt': 'started_at',
    'responses': 'responses',
    'scores': 'scores',
    'playerOrder': 'player_order',
    'currentTurnIndex': 'current_turn_index',
    'round': 'round',
    'step': 'step',
}


@dataclass(frozen=True)
class Player:
    player_id: str
    player_name: str
    is_host: bool = False
    joined_at: int = 0
    selected_character_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'playerId': self.player_id,
            'playerName': self.player_name,
            'isHost': self.is_host,
            'joinedAt': self.joined_at,
        }
        if self.selected_character_id is not None:
            data['selectedCharacterId'] = self.selected_character_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        try:
            return cls(
                player_id=str(data['playerId']),
                player_name=data['playerName'],
                is_host=bool(data.get('isHost', False)),
                joined_at=int(data.get('joinedAt') or 0),
                selected_character_id=data.get('selectedCharacterId'),
            )
        except KeyError as exc:
            raise ValidationError(f'player record missing {exc.args[0]}') from exc


@dataclass(frozen=True)
class GameState:
    phase: str
    started_at: Optional[int] = None
    responses: Dict[str, Any] = field(default_factory=dict)
    scores: Dict[str, int] = field(default_factory=dict)
    player_order: List[str] = field(default_factory=list)
    current_turn_index: int = 0
    round: int = 1
    # bumped on every phase entry
    step: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default=None):
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        out = copy.deepcopy(self.data)
        out.update({
            'phase': self.phase,
            'startedAt': self.started_at,
            'responses': copy.deepcopy(self.responses),
            'scores': dict(self.scores),
            'playerOrder': list(self.player_order),
            'currentTurnIndex': self.current_turn_index,
            'round': self.round,
            'step': self.step,
        })
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
        if not isinstance(data, dict) or not data.get('phase'):
            raise ValidationError('gameState requires a phase')
        payload = {k: copy.deepcopy(v) for k, v in data.items() if k not in STATE_KEYS}
        started_at = data.get('startedAt')
        return cls(
            phase=data['phase'],
            started_at=int(started_at) if started_at is not None else None,
            responses=copy.deepcopy(data.get('responses') or {}),
            scores={str(k): int(v) for k, v in (data.get('scores') or {}).items()},
            player_order=list(data.get('playerOrder') or []),
            current_turn_index=int(data.get('currentTurnIndex') or 0),
            round=int(data.get('round') or 1),
            step=int(data.get('step') or 0),
            data=payload,
        )


@dataclass(frozen=True)
class RoomRecord:
    room_code: str
    name: str
    host_player_id: Optional[str]
    current_game: str
    game_state: GameState
    players: Tuple[Player, ...] = ()
    created_at: int = 0
    version: int = 0
    updated_by: Optional[str] = None
    updated_at: int = 0

    def player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def has_player(self, player_id: str) -> bool:
        return self.player(player_id) is not None

    def player_ids(self) -> List[str]:
        return [p.player_id for p in self.players]

    def is_host(self, player_id: Optional[str]) -> bool:
        return player_id is not None and player_id == self.host_player_id

    def with_state(self, state: GameState) -> 'RoomRecord':
        return replace(self, game_state=state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'roomCode': self.room_code,
            'name': self.name,
            'hostId': self.host_player_id,
            'currentGame': self.current_game,
            'gameState': self.game_state.to_dict(),
            'players': [p.to_dict() for p in self.players],
            'createdAt': self.created_at,
            'version': self.version,
            'updatedBy': self.updated_by,
            'updatedAt': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RoomRecord':
        try:
            return cls(
                room_code=data['roomCode'],
                name=data.get('name') or '',
                host_player_id=data.get('hostId'),
                current_game=data['currentGame'],
                game_state=GameState.from_dict(data.get('gameState') or {}),
                players=tuple(Player.from_dict(p) for p in data.get('players') or []),
                created_at=int(data.get('createdAt') or 0),
                version=int(data.get('version') or 0),
                updated_by=data.get('updatedBy'),
                updated_at=int(data.get('updatedAt') or 0),
            )
        except KeyError as exc:
            raise ValidationError(f'room record missing {exc.args[0]}') from exc


def check_record(record: RoomRecord, phases=None) -> None:
    """Raise ValidationError if the record breaks a room invariant.

    ``phases`` is the phase vocabulary of ``record.current_game``; when given,
    the current phase must belong to it.
    """
    ids = record.player_ids()
    if len(set(ids)) != len(ids):
        raise ValidationError('duplicate player ids')
    hosts = [p.player_id for p in record.players if p.is_host]
    if len(hosts) > 1:
        raise ValidationError('more than one host')
    if record.players and hosts != [record.host_player_id]:
        raise ValidationError('host flag does not match hostId')
    if phases is not None and record.game_state.phase not in phases:
        raise ValidationError(
            f'phase {record.game_state.phase} is not valid for {record.current_game}'
        )
    stray = set(record.game_state.responses) - set(ids)
    if stray:
        raise ValidationError(f'responses from inactive players: {sorted(stray)}')
