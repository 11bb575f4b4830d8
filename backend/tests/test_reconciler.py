from dataclasses import replace

from conftest import make_room, with_state
from puzzz.reconciler import Reconciler


def versioned(room, version, by='p2', at=100, **state):
    record = replace(room, version=version, updated_by=by, updated_at=at)
    return with_state(record, **state) if state else record


def test_newer_version_wins(machines):
    room = make_room('odd_one_out', machines['odd_one_out'])
    rec = Reconciler('p2')
    assert rec.accept(versioned(room, 3))
    assert not rec.accept(versioned(room, 2, round=5))
    assert rec.current.version == 3
    assert rec.accept(versioned(room, 4))


def test_duplicate_snapshot_is_not_a_change(machines):
    room = versioned(make_room('odd_one_out', machines['odd_one_out']), 1)
    rec = Reconciler('p2')
    assert rec.accept(room)
    assert not rec.accept(room)


def test_equal_versions_prefer_host_write(machines):
    room = make_room('odd_one_out', machines['odd_one_out'])
    rec = Reconciler('p3')
    rec.accept(versioned(room, 5, by='p2', at=200, round=2))
    host_write = versioned(room, 5, by='p1', at=100, round=3)
    assert rec.accept(host_write)
    # a later non-host write at the same version does not displace it
    assert not rec.accept(versioned(room, 5, by='p2', at=300, round=4))
    assert rec.current.game_state.round == 3


def test_equal_versions_without_host_prefer_latest(machines):
    room = make_room('odd_one_out', machines['odd_one_out'])
    rec = Reconciler('p3')
    rec.accept(versioned(room, 5, by='p2', at=200, round=2))
    assert not rec.accept(versioned(room, 5, by='p3', at=150, round=4))
    assert rec.accept(versioned(room, 5, by='p3', at=250, round=4))


def test_other_rooms_are_ignored(machines):
    room = make_room('odd_one_out', machines['odd_one_out'])
    rec = Reconciler('p2')
    rec.accept(versioned(room, 1))
    assert not rec.accept(versioned(replace(room, room_code='OTHER1'), 9))


def test_pending_response_shown_until_echoed(machines):
    room = with_state(make_room('odd_one_out', machines['odd_one_out']), phase='voting')
    rec = Reconciler('p2')
    rec.accept(versioned(room, 1))
    rec.remember_response('p3')
    assert rec.awaiting_echo
    assert rec.my_response() == 'p3'
    # someone else's write lands first; our vote is still pending
    rec.accept(versioned(room, 2, responses={'p1': 'p3'}))
    assert rec.my_response() == 'p3'
    rec.accept(versioned(room, 3, responses={'p1': 'p3', 'p2': 'p3'}))
    assert not rec.awaiting_echo
    assert rec.my_response() == 'p3'


def test_pending_response_dropped_when_phase_moves(machines):
    room = with_state(make_room('odd_one_out', machines['odd_one_out']), phase='voting')
    rec = Reconciler('p2')
    rec.accept(versioned(room, 1))
    rec.remember_response('p1')
    rec.accept(versioned(room, 2, phase='reveal'))
    assert not rec.awaiting_echo
    assert rec.my_response() is None
