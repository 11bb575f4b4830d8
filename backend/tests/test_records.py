from dataclasses import replace

import pytest

from conftest import make_room, with_state
from puzzz.errors import ValidationError
from puzzz.records import GameState, Player, RoomRecord, check_record


def test_room_record_dict_round_trip(machines):
    room = make_room('odd_one_out', machines['odd_one_out'])
    room = with_state(room, phase='voting', started_at=42, responses={'p1': 'p2'},
                      scores={'p1': 3}, round=2)
    data = room.to_dict()
    assert data['hostId'] == 'p1'
    assert data['gameState']['startedAt'] == 42
    # game-specific keys sit beside the engine keys
    assert 'imposterId' in data['gameState']
    assert RoomRecord.from_dict(data) == room


def test_game_state_from_dict_requires_phase():
    with pytest.raises(ValidationError):
        GameState.from_dict({'round': 2})


def test_game_state_defaults():
    state = GameState.from_dict({'phase': 'waiting'})
    assert state.round == 1
    assert state.step == 0
    assert state.started_at is None
    assert state.responses == {}
    assert state.data == {}


def test_player_from_dict_missing_name():
    with pytest.raises(ValidationError):
        Player.from_dict({'playerId': 'x'})


def test_selected_character_only_serialized_when_set():
    assert 'selectedCharacterId' not in Player('a', 'A').to_dict()
    assert Player('a', 'A', selected_character_id='cat-3').to_dict()['selectedCharacterId'] == 'cat-3'


def test_check_record_accepts_valid_room(machines):
    machine = machines['paranoia']
    check_record(make_room('paranoia', machine), machine.phases)


def test_check_record_rejects_two_hosts(machines):
    room = make_room('paranoia', machines['paranoia'])
    players = (room.players[0], Player('p2', 'P2', is_host=True), room.players[2])
    with pytest.raises(ValidationError):
        check_record(replace(room, players=players))


def test_check_record_rejects_host_mismatch(machines):
    room = make_room('paranoia', machines['paranoia'])
    with pytest.raises(ValidationError):
        check_record(replace(room, host_player_id='p2'))


def test_check_record_rejects_unknown_phase(machines):
    machine = machines['paranoia']
    room = with_state(make_room('paranoia', machine), phase='voting')
    with pytest.raises(ValidationError):
        check_record(room, machine.phases)


def test_check_record_rejects_responses_from_departed(machines):
    room = with_state(make_room('odd_one_out', machines['odd_one_out']),
                      phase='voting', responses={'ghost': 'p1'})
    with pytest.raises(ValidationError):
        check_record(room)
