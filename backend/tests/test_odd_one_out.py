from dataclasses import replace

import pytest

from conftest import make_room, with_state
from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.services.games.machine import Event


@pytest.fixture()
def machine(machines):
    return machines['odd_one_out']


def voting_room(machine, imposter='p1', votes=None):
    room = make_room('odd_one_out', machine)
    state = room.game_state
    return with_state(
        room, phase='voting', started_at=0, responses=votes or {},
        scores={'p1': 0, 'p2': 0, 'p3': 0},
        data={**state.data, 'imposterId': imposter, 'question': {'id': 'odd-1'}},
    )


def test_start_picks_imposter_and_prompts(machine):
    room = make_room('odd_one_out', machine)
    state = machine.apply_event(room, Event('start', 'p1'), now=100).game_state
    assert state.phase == 'answering'
    assert state.started_at == 100
    assert state.get('imposterId') in ('p1', 'p2', 'p3')
    question = state.get('question')
    assert question['text'] != question['imposterText']
    assert state.scores == {'p1': 0, 'p2': 0, 'p3': 0}


def test_start_needs_three_players(machine):
    room = make_room('odd_one_out', machine, names=('p1', 'p2'))
    with pytest.raises(InvalidTransition):
        machine.apply_event(room, Event('start', 'p1'), now=0)


def test_answers_are_sanitized_and_required(machine):
    room = with_state(make_room('odd_one_out', machine), phase='answering', started_at=0)
    state = machine.apply_event(room, Event('respond', 'p2', '<b>pizza</b>'), now=1).game_state
    assert state.responses == {'p2': 'bpizza/b'}
    with pytest.raises(InvalidResponse):
        machine.apply_event(room, Event('respond', 'p2', '<>'), now=1)


def test_no_self_votes(machine):
    room = voting_room(machine)
    with pytest.raises(InvalidResponse):
        machine.apply_event(room, Event('respond', 'p2', 'p2'), now=1)
    with pytest.raises(InvalidResponse):
        machine.apply_event(room, Event('respond', 'p2', 'ghost'), now=1)


def test_answering_closes_into_voting(machine):
    room = with_state(make_room('odd_one_out', machine), phase='answering', started_at=0,
                      responses={'p1': 'tacos', 'p2': None})
    state = machine.apply_event(room, Event('timeout', 'p1'), now=60000).game_state
    assert state.phase == 'voting'
    assert state.started_at == 60000
    assert state.responses == {}
    assert state.get('answers') == {'p1': 'tacos'}


def test_reveal_scores_uncaught_imposter(machine):
    room = voting_room(machine, imposter='p1', votes={'p1': 'p3', 'p2': 'p3', 'p3': 'p1'})
    state = machine.apply_event(room, Event('quorum', 'p1'), now=5).game_state
    assert state.phase == 'reveal'
    result = state.get('voteResult')
    assert result['voteCounts'] == {'p3': 2, 'p1': 1}
    assert result['wasImposterCaught'] is False
    assert result['imposterId'] == 'p1'
    assert state.scores == {'p1': 2, 'p2': 0, 'p3': 0}
    assert state.get('roundHistory')[-1]['caught'] is False
    # votes stay visible during reveal
    assert state.responses == {'p1': 'p3', 'p2': 'p3', 'p3': 'p1'}


def test_reveal_scores_caught_imposter(machine):
    room = voting_room(machine, imposter='p3', votes={'p1': 'p3', 'p2': 'p3'})
    state = machine.apply_event(room, Event('timeout', 'p1'), now=60000).game_state
    assert state.get('voteResult')['wasImposterCaught'] is True
    assert state.scores == {'p1': 1, 'p2': 1, 'p3': 0}


def test_next_round_keeps_scores(machine):
    room = with_state(voting_room(machine), phase='reveal', scores={'p1': 2, 'p2': 1, 'p3': 0})
    state = machine.apply_event(room, Event('next_round', 'p1'), now=9).game_state
    assert state.phase == 'answering'
    assert state.round == 2
    assert state.scores == {'p1': 2, 'p2': 1, 'p3': 0}
    assert state.get('voteResult') is None


def test_imposter_leaving_voids_the_round(machine):
    room = voting_room(machine, imposter='p3', votes={'p1': 'p3'})
    remaining = replace(room, players=room.players[:2])
    state = machine.after_departure(remaining, 'p3', now=5)
    assert state.phase == 'reveal'
    assert state.get('voteResult') == {'voided': True, 'imposterId': 'p3'}


def test_votes_for_departed_player_are_withdrawn(machine):
    room = voting_room(machine, imposter='p1', votes={'p1': 'p3', 'p2': 'p3', 'p3': 'p2'})
    remaining = replace(room, players=room.players[:2])
    state = machine.after_departure(remaining, 'p3', now=5)
    assert state.phase == 'voting'
    assert state.responses == {}
