"""Room lifecycle as pure record transforms.

Each function takes the latest snapshot and returns the next one, so callers
can run them inside a read-modify-write loop against any RoomStore.
"""

import random
import uuid
from dataclasses import replace
from typing import Iterable, Optional, Tuple

from puzzz.errors import Forbidden, PlayerNotFound, ValidationError
from puzzz.records import Player, RoomRecord, now_ms
from puzzz.services.games.machine import PhaseMachine
from puzzz.validation import (
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    sanitize_input,
    validate_player_name,
)

MAX_ROOM_NAME_LENGTH = 80


def generate_room_code(taken: Iterable[str] = (), rng: Optional[random.Random] = None) -> str:
    """Generate a short room code not present in ``taken``."""
    rng = rng or random.SystemRandom()
    taken = set(taken)
    while True:
        code = ''.join(rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
        if code not in taken:
            return code


def new_player_id() -> str:
    return str(uuid.uuid4())


def create_room(room_code: str, player_name: str, machine: PhaseMachine,
                room_name: Optional[str] = None, player_id: Optional[str] = None,
                now: Optional[int] = None) -> Tuple[RoomRecord, Player]:
    """Build the first snapshot of a room. The creator becomes host."""
    now = now_ms() if now is None else now
    name = validate_player_name(player_name)
    host = Player(
        player_id=player_id or new_player_id(),
        player_name=name,
        is_host=True,
        joined_at=now,
    )
    record = RoomRecord(
        room_code=room_code,
        name=sanitize_input(room_name, MAX_ROOM_NAME_LENGTH) or f"{name}'s room",
        host_player_id=host.player_id,
        current_game=machine.game,
        game_state=machine.initial_state(),
        players=(host,),
        created_at=now,
        updated_by=host.player_id,
        updated_at=now,
    )
    return record, host


def add_player(record: RoomRecord, player_name: str, player_id: Optional[str] = None,
               now: Optional[int] = None) -> Tuple[RoomRecord, Player]:
    name = validate_player_name(player_name)
    if any(p.player_name.lower() == name.lower() for p in record.players):
        raise ValidationError('A player with that name is already in the room')
    player = Player(
        player_id=player_id or new_player_id(),
        player_name=name,
        is_host=not record.players,
        joined_at=now_ms() if now is None else now,
    )
    host_id = record.host_player_id if record.players else player.player_id
    return replace(record, players=record.players + (player,), host_player_id=host_id), player


def remove_player(record: RoomRecord, player_id: str, machine: PhaseMachine,
                  now: Optional[int] = None) -> RoomRecord:
    """Drop a player, hand host to the first remaining player, repair game state."""
    if not record.has_player(player_id):
        raise PlayerNotFound(player_id)
    now = now_ms() if now is None else now
    remaining = [p for p in record.players if p.player_id != player_id]
    host_id = record.host_player_id
    if host_id == player_id or host_id is None:
        host_id = remaining[0].player_id if remaining else None
    players = tuple(replace(p, is_host=(p.player_id == host_id)) for p in remaining)
    trimmed = replace(record, players=players, host_player_id=host_id)
    return trimmed.with_state(machine.after_departure(trimmed, player_id, now))


def kick_player(record: RoomRecord, target_id: str, by_host_id: str,
                machine: PhaseMachine, now: Optional[int] = None) -> RoomRecord:
    if not record.is_host(by_host_id):
        raise Forbidden('Only the host can remove players')
    if target_id == record.host_player_id:
        raise Forbidden('The host cannot be removed')
    return remove_player(record, target_id, machine, now)


def select_character(record: RoomRecord, player_id: str, character_id: Optional[str]) -> RoomRecord:
    player = record.player(player_id)
    if player is None:
        raise PlayerNotFound(player_id)
    chosen = sanitize_input(character_id, 64) or None
    players = tuple(
        replace(p, selected_character_id=chosen) if p.player_id == player_id else p
        for p in record.players
    )
    return replace(record, players=players)


def change_game(record: RoomRecord, machine: PhaseMachine, by_player_id: str) -> RoomRecord:
    if not record.is_host(by_player_id):
        raise Forbidden('Only the host can change the game')
    return replace(record, current_game=machine.game, game_state=machine.fresh_state(record))


def is_idle(record: RoomRecord, ttl_sec: int, now: Optional[int] = None) -> bool:
    """Empty rooms and rooms untouched for ``ttl_sec`` can be pruned."""
    now = now_ms() if now is None else now
    last = record.updated_at or record.created_at
    return not record.players or now - last > ttl_sec * 1000


def guard_raw_write(current: RoomRecord, proposed: RoomRecord, requester_id: Optional[str]) -> None:
    """Reject a raw snapshot write that touches fields the requester does not own.

    The host may write anything but the room code. Everyone else may only edit
    their own player entry and their own response.
    """
    if proposed.room_code != current.room_code:
        raise ValidationError('roomCode is immutable')
    if not current.has_player(requester_id):
        raise Forbidden('Only players in the room can write to it')
    if current.is_host(requester_id):
        return
    before, after = current.game_state, proposed.game_state
    host_owned = (
        ('currentGame', current.current_game, proposed.current_game),
        ('hostId', current.host_player_id, proposed.host_player_id),
        ('phase', before.phase, after.phase),
        ('step', before.step, after.step),
        ('round', before.round, after.round),
        ('startedAt', before.started_at, after.started_at),
        ('currentTurnIndex', before.current_turn_index, after.current_turn_index),
        ('playerOrder', before.player_order, after.player_order),
        ('scores', before.scores, after.scores),
    )
    changed = [name for name, old, new in host_owned if old != new]
    if changed:
        raise Forbidden(f'Only the host can change {", ".join(changed)}')

    mine = proposed.player(requester_id)
    if mine is None or mine.is_host != current.player(requester_id).is_host:
        raise Forbidden('Only the host can change isHost or remove players')
    others_before = [p for p in current.players if p.player_id != requester_id]
    others_after = [p for p in proposed.players if p.player_id != requester_id]
    if others_before != others_after:
        raise Forbidden('Players can only edit their own entry')
    if _others(before.responses, requester_id) != _others(after.responses, requester_id):
        raise Forbidden('Players can only write their own response')


def _others(responses, player_id):
    return {pid: value for pid, value in responses.items() if pid != player_id}
