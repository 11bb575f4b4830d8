from flask import Blueprint, jsonify, request, current_app
from dataclasses import replace
import time

from puzzz.errors import (
    AuthorityConflict,
    Conflict,
    Forbidden,
    PlayerNotFound,
    ValidationError,
)
from puzzz.records import RoomRecord, check_record
from puzzz.services.games.machine import Event
from puzzz.services.games.registry import machine_for
from puzzz.services.rooms import guard_raw_write
from puzzz.session import RoomSession
from puzzz.sql_store import SqlRoomStore
from puzzz.validation import normalize_room_code


rooms = Blueprint('rooms', __name__)

_last_controller_action: dict[str, float] = {}


@rooms.errorhandler(ValidationError)
def _bad_request(exc):
    return jsonify({'error': str(exc)}), 400


@rooms.errorhandler(Forbidden)
@rooms.errorhandler(AuthorityConflict)
def _forbidden(exc):
    return jsonify({'error': str(exc)}), 403


@rooms.errorhandler(PlayerNotFound)
def _player_not_found(exc):
    return jsonify({'error': str(exc)}), 404


@rooms.errorhandler(Conflict)
def _conflict(exc):
    latest = exc.latest.to_dict() if exc.latest is not None else None
    return jsonify({'error': 'room was updated by someone else', 'latest': latest}), 409


def _machines():
    return current_app.extensions['puzzz_machines']


def _session(room_code, player_id=None) -> RoomSession:
    return RoomSession(
        SqlRoomStore(),
        normalize_room_code(room_code),
        player_id,
        _machines(),
        max_retries=int(current_app.config.get('STORE_MAX_RETRIES', 5)),
    )


def _require_player(session: RoomSession, player_id):
    if not player_id:
        raise ValidationError('playerId is required')
    record = session.refresh()
    if not record.has_player(player_id):
        raise PlayerNotFound(player_id)
    return record


def _room_payload(record: RoomRecord) -> dict:
    machine = machine_for(_machines(), record.current_game)
    payload = {'room': record.to_dict()}
    payload['durationMs'] = machine.duration_ms(record.game_state)
    payload['durations'] = dict(machine.durations)
    payload['serverNow'] = int(time.time() * 1000)
    return payload


def _ignored():
    return jsonify({'status': 'ignored'}), 202


def _debounced(room_code, player_id, kind) -> bool:
    try:
        debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    except (TypeError, ValueError):
        debounce_ms = 0
    if debounce_ms <= 0:
        return False
    key = f"{kind}:{room_code}:{player_id}"
    now = time.time() * 1000.0
    last = _last_controller_action.get(key, 0)
    if now - last < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


@rooms.route('/create', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    game = data.get('game') or 'paranoia'
    session = RoomSession.create(
        SqlRoomStore(),
        data.get('playerName'),
        game,
        machines=_machines(),
        room_name=data.get('roomName'),
        max_retries=int(current_app.config.get('STORE_MAX_RETRIES', 5)),
    )
    current_app.logger.info(f"[room-create] room={session.room_code} game={game} host={session.player_id}")
    payload = _room_payload(session.snapshot)
    payload.update({'roomCode': session.room_code, 'playerId': session.player_id})
    return jsonify(payload), 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    room_code = data.get('roomCode')
    name = data.get('playerName')
    if not all([room_code, name]):
        return jsonify({'error': 'Room code and player name are required'}), 400
    session = _session(room_code)
    record = session.join(name)
    if record is None:
        return jsonify({'error': 'Room is busy, try again'}), 409
    current_app.logger.info(f"[room-join] room={session.room_code} player={session.player_id}")
    payload = _room_payload(record)
    payload['playerId'] = session.player_id
    return jsonify(payload), 201


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    session = _session(room_code)
    return jsonify(_room_payload(session.refresh()))


@rooms.route('/<string:room_code>/snapshot', methods=['POST'])
def write_snapshot(room_code):
    """Raw full-snapshot write, compare-and-swap on ``expectedVersion``."""
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    if 'room' not in data or 'expectedVersion' not in data:
        return jsonify({'error': 'room and expectedVersion are required'}), 400
    try:
        expected = int(data['expectedVersion'])
    except (TypeError, ValueError):
        return jsonify({'error': 'expectedVersion must be an integer'}), 400
    session = _session(room_code, player_id)
    current = session.refresh()
    proposed = RoomRecord.from_dict(data['room'])
    guard_raw_write(current, proposed, player_id)
    check_record(proposed, machine_for(_machines(), proposed.current_game).phases)
    stored = session.store.update(replace(proposed, updated_by=player_id), expected)
    current_app.logger.info(f"[snapshot-write] room={stored.room_code} v={stored.version} by={player_id}")
    return jsonify(_room_payload(stored))


@rooms.route('/<string:room_code>/events', methods=['POST'])
def post_event(room_code):
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    kind = data.get('kind')
    if not kind:
        return jsonify({'error': 'kind is required'}), 400
    session = _session(room_code, player_id)
    record = _require_player(session, player_id)
    if _debounced(session.room_code, player_id, kind):
        return jsonify({'message': 'debounced'}), 202
    machine = session.machine(record)
    if 'phase' in data:
        event = Event.from_dict({**data, 'actorId': player_id})
    else:
        event = machine.make_event(record, kind, player_id, data.get('payload'))
    committed = session.send(event)
    if committed is None:
        current_app.logger.info(f"[event-drop] room={session.room_code} kind={kind} player={player_id}")
        return _ignored()
    current_app.logger.info(
        f"[event] room={session.room_code} kind={kind} player={player_id} "
        f"phase={record.game_state.phase}->{committed.game_state.phase}"
    )
    return jsonify(_room_payload(committed))


@rooms.route('/<string:room_code>/leave', methods=['POST'])
def leave_room(room_code):
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    session = _session(room_code, player_id)
    before = _require_player(session, player_id)
    record = session.leave()
    if record is None:
        return _ignored()
    if before.host_player_id != record.host_player_id:
        current_app.logger.info(f"[host-reassign] room={record.room_code} host={record.host_player_id}")
    return jsonify(_room_payload(record))


@rooms.route('/<string:room_code>/kick', methods=['POST'])
def kick_player(room_code):
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    target_id = data.get('targetId')
    if not target_id:
        return jsonify({'error': 'targetId is required'}), 400
    session = _session(room_code, player_id)
    _require_player(session, player_id)
    record = session.kick(target_id)
    if record is None:
        return _ignored()
    current_app.logger.info(f"[kick] room={record.room_code} target={target_id}")
    return jsonify(_room_payload(record))


@rooms.route('/<string:room_code>/character', methods=['POST'])
def select_character(room_code):
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    session = _session(room_code, player_id)
    _require_player(session, player_id)
    record = session.select_character(data.get('characterId'))
    if record is None:
        return _ignored()
    return jsonify(_room_payload(record))


@rooms.route('/<string:room_code>/game', methods=['POST'])
def change_game(room_code):
    data = request.get_json(silent=True) or {}
    player_id = data.get('playerId')
    game = data.get('game')
    if not game:
        return jsonify({'error': 'game is required'}), 400
    session = _session(room_code, player_id)
    _require_player(session, player_id)
    record = session.change_game(game)
    if record is None:
        return _ignored()
    current_app.logger.info(f"[game-change] room={record.room_code} game={game}")
    return jsonify(_room_payload(record))
