import pytest

from conftest import make_room, with_state
from puzzz.services.games.scheduler import PhaseDriver
from puzzz.session import RoomSession


@pytest.fixture()
def spawned():
    return []


def driver_for(store, player_id, machines, clock, spawned, **kwargs):
    session = RoomSession(store, 'ROOM01', player_id, machines, clock=clock).start()
    driver = PhaseDriver(session, spawn=lambda fn, *args: spawned.append((fn, args)),
                         sleep=clock.sleep, **kwargs)
    return driver.attach()


def run_next(spawned):
    fn, args = spawned.pop(0)
    fn(*args)


def answering_room(machines, clock, **fields):
    room = make_room('odd_one_out', machines['odd_one_out'])
    return with_state(room, phase='answering', started_at=clock(),
                      data={**room.game_state.data, 'imposterId': 'p3'}, **fields)


def test_one_timer_per_phase(machines, clock, store, spawned):
    store.create(answering_room(machines, clock))
    driver = driver_for(store, 'p1', machines, clock, spawned)
    assert len(spawned) == 1
    assert driver.schedule(driver.session.snapshot) is False
    assert driver.pending() == {('ROOM01', 'answering', clock())}


def test_host_timer_advances_phase(machines, clock, store, spawned):
    store.create(answering_room(machines, clock))
    driver = driver_for(store, 'p1', machines, clock, spawned)
    run_next(spawned)
    record = store.get('ROOM01')
    assert record.game_state.phase == 'voting'
    assert clock() == 1_000_000 + 60000
    # the new phase got its own timer, the old one is gone
    assert driver.pending() == {('ROOM01', 'voting', clock())}
    assert len(spawned) == 1


def test_timer_aborts_when_phase_moved_on(machines, clock, store, spawned):
    store.create(answering_room(machines, clock))
    driver_for(store, 'p2', machines, clock, spawned)
    host = RoomSession(store, 'ROOM01', 'p1', machines, clock=clock)
    host.refresh()
    host.dispatch('end')
    run_next(spawned)
    record = store.get('ROOM01')
    assert record.game_state.phase == 'ended'
    assert record.version == 2


def test_non_host_only_submits_null_response(machines, clock, store, spawned):
    store.create(answering_room(machines, clock))
    driver_for(store, 'p2', machines, clock, spawned)
    run_next(spawned)
    record = store.get('ROOM01')
    assert record.game_state.phase == 'answering'
    assert record.game_state.responses == {'p2': None}


def test_host_closes_on_quorum(machines, clock, store, spawned):
    store.create(answering_room(machines, clock, responses={'p1': 'a', 'p2': 'b'}))
    driver_for(store, 'p1', machines, clock, spawned)
    player = RoomSession(store, 'ROOM01', 'p3', machines, clock=clock).start()
    player.dispatch('respond', 'c')
    record = store.get('ROOM01')
    assert record.game_state.phase == 'voting'
    assert record.game_state.get('answers') == {'p1': 'a', 'p2': 'b', 'p3': 'c'}


def test_heartbeat_sleeps_in_steps(machines, clock, store, spawned):
    store.create(answering_room(machines, clock))
    naps = []

    def sleep(seconds):
        naps.append(seconds)
        clock.sleep(seconds)

    session = RoomSession(store, 'ROOM01', 'p1', machines, clock=clock).start()
    PhaseDriver(session, spawn=lambda fn, *args: spawned.append((fn, args)),
                sleep=sleep, heartbeat_sec=20).attach()
    run_next(spawned)
    assert naps == [20, 20, 20]
    assert store.get('ROOM01').game_state.phase == 'voting'


def test_untimed_phase_schedules_nothing(machines, clock, store, spawned):
    store.create(make_room('odd_one_out', machines['odd_one_out']))
    driver = driver_for(store, 'p1', machines, clock, spawned)
    assert spawned == []
    assert driver.pending() == set()
