from dataclasses import replace

import pytest

from conftest import make_room, with_state
from puzzz.errors import AuthorityConflict, InvalidResponse, InvalidTransition, StaleWrite
from puzzz.services.games.cat_conspiracy import STARTING_TREASURY, influence
from puzzz.services.games.machine import Event


@pytest.fixture()
def machine(machines):
    return machines['coup']


def seat(*roles, coins=2):
    return {'coins': coins, 'cards': [{'role': r, 'revealed': False} for r in roles], 'eliminated': False}


def table(machine, seats=None, phase='playing', pending=None, deck=None):
    room = make_room('coup', machine)
    seats = seats or {
        'p1': seat('ballet_cat', 'dino_cat'),
        'p2': seat('aura_cat', 'chill_cat'),
        'p3': seat('princess_cat', 'chill_cat'),
    }
    return with_state(
        room, phase=phase, started_at=0 if phase != 'playing' else None,
        player_order=['p1', 'p2', 'p3'], current_turn_index=0, round=1,
        scores={'p1': 0, 'p2': 0, 'p3': 0},
        data={**room.game_state.data, 'seats': seats, 'deck': deck or ['dino_cat', 'aura_cat', 'ballet_cat'],
              'treasury': 44, 'pending': pending},
    )


def declare(machine, room, actor, action, target=None):
    payload = {'action': action}
    if target:
        payload['targetId'] = target
    return machine.apply_event(room, Event('declare_action', actor, payload), now=1)


def test_start_deals_two_cards_each(machine):
    room = make_room('coup', machine)
    state = machine.apply_event(room, Event('start', 'p1'), now=0).game_state
    seats = state.get('seats')
    assert state.phase == 'playing'
    assert all(len(s['cards']) == 2 and s['coins'] == 2 for s in seats.values())
    assert len(state.get('deck')) == 15 - 6
    assert state.get('treasury') == STARTING_TREASURY - 6


def test_start_rejects_crowded_table(machine):
    names = tuple(f'p{i}' for i in range(7))
    with pytest.raises(InvalidTransition):
        machine.apply_event(make_room('coup', machine, names=names), Event('start', 'p0'), now=0)


def test_only_current_player_declares(machine):
    with pytest.raises(AuthorityConflict):
        declare(machine, table(machine), 'p2', 'income')


def test_income_resolves_immediately(machine):
    state = declare(machine, table(machine), 'p1', 'income').game_state
    assert state.phase == 'playing'
    assert state.get('seats')['p1']['coins'] == 3
    assert state.get('treasury') == 43
    assert state.current_turn_index == 1
    assert state.round == 2


def test_ten_coins_forces_coup(machine):
    room = table(machine, seats={
        'p1': seat('ballet_cat', 'dino_cat', coins=10),
        'p2': seat('aura_cat', 'chill_cat'),
        'p3': seat('princess_cat', 'chill_cat'),
    })
    with pytest.raises(InvalidResponse):
        declare(machine, room, 'p1', 'tax')
    state = declare(machine, room, 'p1', 'coup', 'p2').game_state
    assert state.get('seats')['p1']['coins'] == 3
    assert influence(state.get('seats')['p2']) == 1


def test_targets_must_be_alive_others(machine):
    room = table(machine)
    with pytest.raises(InvalidResponse):
        declare(machine, room, 'p1', 'steal', 'p1')
    with pytest.raises(InvalidResponse):
        declare(machine, room, 'p1', 'assassinate', 'p2')  # only 2 coins


def test_tax_claim_opens_challenge_window(machine):
    state = declare(machine, table(machine), 'p1', 'tax').game_state
    assert state.phase == 'challenge_pending'
    assert state.started_at == 1
    assert state.get('pending')['claim'] == 'ballet_cat'
    room = table(machine)
    room = declare(machine, room, 'p1', 'tax')
    assert machine.eligible_responders(room) == ['p2', 'p3']


def test_unchallenged_tax_resolves_on_quorum(machine):
    room = declare(machine, table(machine), 'p1', 'tax')
    room = machine.apply_event(room, machine.make_event(room, 'respond', 'p2'), now=2)
    room = machine.apply_event(room, machine.make_event(room, 'respond', 'p3', 'pass'), now=2)
    state = machine.apply_event(room, machine.pending_host_event(room, now=3), now=3).game_state
    assert state.phase == 'playing'
    assert state.get('seats')['p1']['coins'] == 5


def test_failed_challenge_costs_the_challenger(machine):
    room = declare(machine, table(machine), 'p1', 'tax')
    state = machine.apply_event(room, machine.make_event(room, 'challenge', 'p2'), now=2).game_state
    seats = state.get('seats')
    assert influence(seats['p2']) == 1
    assert influence(seats['p1']) == 2
    # tax still resolves
    assert seats['p1']['coins'] == 5
    assert sorted(state.get('deck') + [c['role'] for c in seats['p1']['cards']]) == sorted(
        ['dino_cat', 'aura_cat', 'ballet_cat', 'ballet_cat', 'dino_cat'])


def test_caught_bluff_cancels_the_action(machine):
    room = declare(machine, table(machine), 'p1', 'steal', 'p2')
    assert room.game_state.get('pending')['claim'] == 'aura_cat'
    state = machine.apply_event(room, machine.make_event(room, 'challenge', 'p3'), now=2).game_state
    seats = state.get('seats')
    assert influence(seats['p1']) == 1
    assert seats['p2']['coins'] == 2
    assert state.phase == 'playing'


def test_foreign_aid_can_be_blocked(machine):
    room = declare(machine, table(machine), 'p1', 'foreign_aid')
    assert room.game_state.phase == 'block_pending'
    with pytest.raises(InvalidResponse):
        machine.apply_event(room, machine.make_event(room, 'block', 'p2', {'role': 'aura_cat'}), now=2)
    blocked = machine.apply_event(room, machine.make_event(room, 'block', 'p2', {'role': 'ballet_cat'}), now=2)
    state = blocked.game_state
    assert state.phase == 'challenge_pending'
    assert state.get('pending')['stage'] == 'block'
    assert machine.eligible_responders(blocked) == ['p1', 'p3']
    # nobody challenges the block
    final = machine.apply_event(blocked, machine.make_event(blocked, 'timeout', 'p1'), now=20000).game_state
    assert final.phase == 'playing'
    assert final.get('seats')['p1']['coins'] == 2


def test_bluffed_block_lets_action_through(machine):
    room = declare(machine, table(machine), 'p1', 'foreign_aid')
    room = machine.apply_event(room, machine.make_event(room, 'block', 'p3', {'role': 'ballet_cat'}), now=2)
    state = machine.apply_event(room, machine.make_event(room, 'challenge', 'p1'), now=3).game_state
    seats = state.get('seats')
    assert influence(seats['p3']) == 1
    assert seats['p1']['coins'] == 4


def test_only_target_may_block_steal(machine):
    room = declare(machine, table(machine), 'p1', 'steal', 'p2')
    room = machine.apply_event(room, machine.make_event(room, 'timeout', 'p1'), now=20000)
    assert room.game_state.phase == 'block_pending'
    assert machine.eligible_responders(room) == ['p2']
    with pytest.raises(AuthorityConflict):
        machine.apply_event(room, machine.make_event(room, 'block', 'p3', {'role': 'chill_cat'}), now=3)
    state = machine.apply_event(room, machine.make_event(room, 'timeout', 'p1'), now=40000).game_state
    seats = state.get('seats')
    assert seats['p1']['coins'] == 4
    assert seats['p2']['coins'] == 0


def test_window_responses_are_passes_only(machine):
    room = declare(machine, table(machine), 'p1', 'tax')
    with pytest.raises(InvalidResponse):
        machine.apply_event(room, machine.make_event(room, 'respond', 'p2', 'challenge'), now=2)


def test_stale_window_event_is_dropped(machine):
    room = declare(machine, table(machine), 'p1', 'foreign_aid')
    late = machine.make_event(room, 'block', 'p2', {'role': 'ballet_cat'})
    moved_on = machine.apply_event(room, machine.make_event(room, 'timeout', 'p1'), now=20000)
    with pytest.raises(StaleWrite):
        machine.apply_event(moved_on, late, now=20001)


def test_last_player_standing_wins(machine):
    room = table(machine, seats={
        'p1': seat('ballet_cat', 'dino_cat', coins=7),
        'p2': {'coins': 1, 'cards': [{'role': 'aura_cat', 'revealed': True},
                                     {'role': 'chill_cat', 'revealed': False}], 'eliminated': False},
        'p3': {'coins': 0, 'cards': [{'role': 'princess_cat', 'revealed': True},
                                     {'role': 'chill_cat', 'revealed': True}], 'eliminated': True},
    })
    state = declare(machine, room, 'p1', 'coup', 'p2').game_state
    assert state.phase == 'finished'
    assert state.get('winner') == 'p1'
    assert state.scores['p1'] == 1
    assert state.get('seats')['p2']['eliminated'] is True


def test_departed_player_is_eliminated(machine):
    room = table(machine)
    remaining = replace(room, players=tuple(p for p in room.players if p.player_id != 'p3'))
    state = machine.after_departure(remaining, 'p3', now=5)
    assert state.get('seats')['p3']['eliminated'] is True
    assert state.phase == 'playing'
    assert state.current_turn_index == 0


def test_current_player_leaving_passes_the_turn(machine):
    room = table(machine)
    remaining = replace(room, players=room.players[1:])
    state = machine.after_departure(remaining, 'p1', now=5)
    assert state.phase == 'playing'
    assert state.current_turn_index == 1
