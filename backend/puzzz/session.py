"""A client's view of one room.

Every state change is a read-modify-write of the full snapshot: read the
latest record, compute the next one, write it with compare-and-swap. A
Conflict means someone else wrote first, so the whole computation reruns
against their snapshot. Intents that no longer apply are dropped.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from puzzz.errors import AuthorityConflict, Conflict, InvalidTransition, StaleWrite
from puzzz.reconciler import Reconciler
from puzzz.records import RoomRecord, check_record, now_ms
from puzzz.services import rooms
from puzzz.services.games.machine import Event, PhaseMachine
from puzzz.services.games.registry import build_machines, machine_for
from puzzz.store import RoomStore

logger = logging.getLogger(__name__)

DROPPED = (InvalidTransition, AuthorityConflict, StaleWrite)


class RoomSession:
    def __init__(self, store: RoomStore, room_code: str, player_id: Optional[str] = None,
                 machines: Optional[Dict[str, PhaseMachine]] = None, max_retries: int = 5,
                 clock: Callable[[], int] = now_ms):
        self.store = store
        self.room_code = room_code
        self.player_id = player_id
        self.machines = machines or build_machines()
        self.max_retries = max(1, int(max_retries))
        self.clock = clock
        self.reconciler = Reconciler(player_id)
        self._subscription = None
        self._listeners: List[Callable[[RoomRecord], None]] = []

    @classmethod
    def create(cls, store: RoomStore, player_name: str, game: str,
               machines: Optional[Dict[str, PhaseMachine]] = None,
               room_name: Optional[str] = None, **kwargs) -> 'RoomSession':
        """Create a room with a fresh code; the creator's session is returned."""
        machines = machines or build_machines()
        machine = machine_for(machines, game)
        while True:
            code = rooms.generate_room_code(store.room_codes())
            record, host = rooms.create_room(code, player_name, machine, room_name=room_name)
            try:
                stored = store.create(record)
            except Conflict:
                logger.debug('room code %s taken, retrying', code)
                continue
            session = cls(store, code, host.player_id, machines, **kwargs)
            session._adopt(stored)
            return session

    # -- snapshot handling ------------------------------------------------------

    @property
    def snapshot(self) -> Optional[RoomRecord]:
        return self.reconciler.current

    @property
    def is_host(self) -> bool:
        return self.snapshot is not None and self.snapshot.is_host(self.player_id)

    def machine(self, record: Optional[RoomRecord] = None) -> PhaseMachine:
        record = record or self.snapshot
        return machine_for(self.machines, record.current_game)

    def start(self) -> 'RoomSession':
        """Subscribe to the room channel and load the current snapshot."""
        if self._subscription is None:
            self._subscription = self.store.subscribe(self.room_code, self._adopt)
        self.refresh()
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def on_change(self, listener: Callable[[RoomRecord], None]) -> None:
        self._listeners.append(listener)

    def refresh(self) -> RoomRecord:
        record = self.store.get(self.room_code)
        self._adopt(record)
        return self.snapshot

    def _adopt(self, record: RoomRecord) -> None:
        if self.reconciler.accept(record):
            for listener in list(self._listeners):
                listener(self.reconciler.current)

    # -- writes -------------------------------------------------------------------

    def commit(self, mutate: Callable[[RoomRecord], RoomRecord], label: str = 'update') -> Optional[RoomRecord]:
        """Run ``mutate`` against the latest snapshot and write the result.

        Returns the committed record, or None if the intent was dropped.
        RoomNotFound, PlayerNotFound, Forbidden and ValidationError propagate.
        """
        for attempt in range(1, self.max_retries + 1):
            latest = self.store.get(self.room_code)
            try:
                proposed = mutate(latest)
            except DROPPED as exc:
                logger.info('%s: dropped %s from %s: %s', self.room_code, label, self.player_id, exc)
                self._adopt(latest)
                return None
            proposed = replace(proposed, updated_by=self.player_id)
            check_record(proposed, self.machine(proposed).phases)
            try:
                committed = self.store.update(proposed, latest.version)
            except Conflict as exc:
                logger.debug('%s: %s conflicted on v%d (attempt %d)', self.room_code, label, latest.version, attempt)
                if exc.latest is not None:
                    self._adopt(exc.latest)
                continue
            self._adopt(committed)
            return committed
        logger.warning('%s: gave up on %s after %d conflicts', self.room_code, label, self.max_retries)
        return None

    def send(self, event: Event) -> Optional[RoomRecord]:
        if event.kind == 'respond' and self.snapshot is not None:
            self.reconciler.remember_response(event.payload)

        def mutate(latest):
            return self.machine(latest).apply_event(latest, event, now=self.clock())

        return self.commit(mutate, event.kind)

    def dispatch(self, kind: str, payload=None) -> Optional[RoomRecord]:
        """Form an intent against the snapshot this client sees and send it."""
        basis = self.snapshot or self.refresh()
        event = self.machine(basis).make_event(basis, kind, self.player_id, payload)
        return self.send(event)

    # -- lifecycle ----------------------------------------------------------------

    def join(self, player_name: str) -> Optional[RoomRecord]:
        joined = {}

        def mutate(latest):
            record, player = rooms.add_player(latest, player_name, now=self.clock())
            joined['player'] = player
            return record

        committed = self.commit(mutate, 'join')
        if committed is not None:
            self.player_id = self.reconciler.player_id = joined['player'].player_id
        return committed

    def leave(self) -> Optional[RoomRecord]:
        committed = self.commit(
            lambda latest: rooms.remove_player(latest, self.player_id, self.machine(latest), self.clock()),
            'leave',
        )
        self.stop()
        return committed

    def kick(self, target_id: str) -> Optional[RoomRecord]:
        return self.commit(
            lambda latest: rooms.kick_player(latest, target_id, self.player_id, self.machine(latest), self.clock()),
            'kick',
        )

    def select_character(self, character_id: Optional[str]) -> Optional[RoomRecord]:
        return self.commit(
            lambda latest: rooms.select_character(latest, self.player_id, character_id),
            'select_character',
        )

    def change_game(self, game: str) -> Optional[RoomRecord]:
        machine = machine_for(self.machines, game)
        return self.commit(
            lambda latest: rooms.change_game(latest, machine, self.player_id),
            'change_game',
        )
