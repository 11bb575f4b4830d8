import logging
import threading
import time
from typing import Callable, Optional, Set, Tuple

from puzzz.errors import RoomNotFound
from puzzz.records import RoomRecord
from puzzz.services.games.clock import expiry_intent, remaining_ms

logger = logging.getLogger(__name__)

TimerKey = Tuple[str, str, int]


def _spawn_thread(fn, *args):
    threading.Thread(target=fn, args=args, daemon=True).start()


class PhaseDriver:
    """Runs the phase timers for one client session.

    - One timer per (room, phase, startedAt); re-deliveries of the same
      snapshot never stack timers
    - On expiry re-reads the room and aborts if the phase moved on
    - The host emits ``timeout``; everyone else only fills in a null
      response they still owe
    - The host also closes response phases as soon as quorum is reached
    """

    def __init__(self, session, spawn: Optional[Callable] = None,
                 sleep: Callable[[float], None] = time.sleep, heartbeat_sec: float = 0):
        self.session = session
        self.spawn = spawn or _spawn_thread
        self.sleep = sleep
        self.heartbeat_sec = heartbeat_sec
        self._scheduled: Set[TimerKey] = set()
        self._lock = threading.Lock()

    def attach(self) -> 'PhaseDriver':
        self.session.on_change(self.on_snapshot)
        if self.session.snapshot is not None:
            self.on_snapshot(self.session.snapshot)
        return self

    def on_snapshot(self, record: RoomRecord) -> None:
        machine = self.session.machine(record)
        if record.is_host(self.session.player_id):
            event = machine.pending_host_event(record, self.session.clock())
            if event is not None and event.kind == 'quorum':
                logger.info('[quorum] room=%s phase=%s', record.room_code, record.game_state.phase)
                self.session.send(event)
                return
        self.schedule(record)

    def schedule(self, record: RoomRecord) -> bool:
        state = record.game_state
        duration = self.session.machine(record).duration_ms(state)
        if duration is None or state.started_at is None:
            return False
        key = (record.room_code, state.phase, state.started_at)
        with self._lock:
            if key in self._scheduled:
                logger.debug('[timer-skip] room=%s phase=%s already scheduled', key[0], key[1])
                return False
            self._scheduled.add(key)
        delay = remaining_ms(duration, state.started_at, self.session.clock()) / 1000.0
        logger.info('[timer-set] room=%s phase=%s round=%s duration=%sms delay=%.2fs',
                    record.room_code, state.phase, state.round, duration, delay)
        self.spawn(self._worker, key, delay)
        return True

    def pending(self) -> Set[TimerKey]:
        with self._lock:
            return set(self._scheduled)

    def _worker(self, key: TimerKey, delay: float) -> None:
        hb = self.heartbeat_sec
        if hb and hb > 0:
            slept = 0.0
            while slept < delay:
                step = min(hb, delay - slept)
                self.sleep(step)
                slept += step
                logger.info('[timer-heartbeat] room=%s phase=%s remaining=%.2fs',
                            key[0], key[1], max(0.0, delay - slept))
        elif delay > 0:
            self.sleep(delay)
        self.fire(key)

    def fire(self, key: TimerKey):
        try:
            return self._fire(key)
        finally:
            with self._lock:
                self._scheduled.discard(key)

    def _fire(self, key: TimerKey):
        room_code, expected_phase, expected_started_at = key
        try:
            record = self.session.refresh()
        except RoomNotFound:
            logger.info('[timer-abort] room=%s no longer exists', room_code)
            return None
        state = record.game_state
        logger.info('[timer-fire] room=%s expected_phase=%s actual_phase=%s',
                    room_code, expected_phase, state.phase)
        if state.phase != expected_phase or state.started_at != expected_started_at:
            logger.info('[timer-abort] room=%s phase mismatch', room_code)
            return None
        intent = expiry_intent(self.session.machine(record), record, self.session.player_id, self.session.clock())
        if intent is None:
            return None
        return self.session.send(intent)
