from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from puzzz import socketio
from puzzz.errors import PlayerNotFound, RoomNotFound, ValidationError
from puzzz.sql_store import SqlRoomStore, room_channel
from puzzz.session import RoomSession
from puzzz.validation import normalize_room_code
from typing import Dict, Any, Tuple
import time


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A subscribed player whose last socket drops is treated as departed
    # once the grace period passes without a reconnect
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('player_id'):
        return
    key = (ctx['room_code'], ctx['player_id'])
    _presence[key] = max(0, _presence.get(key, 0) - 1)
    if _presence[key] > 0:
        return
    app = current_app._get_current_object()
    if app.config.get('TESTING'):
        _depart(app, *key)
        return
    _schedule_departure(app, key, float(app.config.get('DEPARTURE_GRACE_SEC', 2.0)))


def handle_subscribe(data):
    try:
        room_code = normalize_room_code((data or {}).get('roomCode'))
    except ValidationError as exc:
        emit('error', {'message': str(exc)})
        return
    player_id = (data or {}).get('playerId')
    try:
        record = SqlRoomStore(broadcast=False).get(room_code)
    except RoomNotFound:
        emit('error', {'message': 'room no longer exists', 'roomCode': room_code})
        return
    if player_id and not record.has_player(player_id):
        emit('error', {'message': f'player {player_id} is not in this room'})
        return
    channel = room_channel(room_code)
    join_room(channel)
    ctx = {'room_code': room_code, 'player_id': player_id}
    previous = _sid_to_ctx.get(_get_sid())
    _sid_to_ctx[_get_sid()] = ctx
    # a repeated subscribe from the same socket holds no extra presence
    if previous and previous.get('player_id') and previous != ctx:
        old_key = (previous['room_code'], previous['player_id'])
        _presence[old_key] = max(0, _presence.get(old_key, 0) - 1)
    if player_id and previous != ctx:
        key = (room_code, player_id)
        _presence[key] = _presence.get(key, 0) + 1
        _departure_deadline.pop(key, None)
    emit('subscribed', {'room': channel})
    emit('room_snapshot', record.to_dict())


def handle_unsubscribe(data):
    room_code = ((data or {}).get('roomCode') or '').upper()
    if not room_code:
        emit('error', {'message': 'roomCode is required'})
        return
    channel = room_channel(room_code)
    leave_room(channel)
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('player_id') and ctx.get('room_code') == room_code:
        key = (room_code, ctx['player_id'])
        _presence[key] = max(0, _presence.get(key, 0) - 1)
    emit('unsubscribed', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})

# ---- Player presence helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_presence: Dict[Tuple[str, str], int] = {}
_departure_deadline: Dict[Tuple[str, str], float] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _depart(app, room_code: str, player_id: str) -> None:
    """Remove a player whose sockets are all gone."""
    with app.app_context():
        session = RoomSession(
            SqlRoomStore(),
            room_code,
            player_id,
            app.extensions['puzzz_machines'],
            max_retries=int(app.config.get('STORE_MAX_RETRIES', 5)),
        )
        try:
            before = session.refresh()
            record = session.leave()
        except (RoomNotFound, PlayerNotFound):
            app.logger.info(f"[departure-skip] room={room_code} player={player_id} already gone")
            return
        finally:
            _presence.pop((room_code, player_id), None)
            _departure_deadline.pop((room_code, player_id), None)
        app.logger.info(f"[departure] room={room_code} player={player_id}")
        if record is not None and before.host_player_id != record.host_player_id:
            app.logger.info(f"[host-reassign] room={room_code} host={record.host_player_id}")

def _schedule_departure(app, key: Tuple[str, str], delay_sec: float) -> None:
    _departure_deadline[key] = time.time() + delay_sec

    def _runner(k: Tuple[str, str], deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            time.sleep(sleep_for)
        if _presence.get(k, 0) == 0 and _departure_deadline.get(k) == deadline:
            _depart(app, *k)

    socketio.start_background_task(_runner, key, _departure_deadline[key])


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('subscribe', handle_subscribe, namespace='/ws')
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('subscribe', handle_subscribe, namespace='/')
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
