"""Generic phase state machine.

Each mini-game subclasses PhaseMachine, declares its phase vocabulary and
registers transitions with the ``transition`` decorator. The engine is the
single place where the authority check runs; handlers are pure functions of
``(record, event, now)`` returning the next GameState.
"""

import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from puzzz.content import QuestionProvider, StaticQuestionProvider
from puzzz.errors import AuthorityConflict, InvalidResponse, InvalidTransition, StaleWrite
from puzzz.records import GameState, RoomRecord, now_ms
from puzzz.services.games.aggregator import (
    active_player_ids,
    has_quorum,
    prune_responses,
    record_response,
)
from puzzz.services.games.clock import remaining_ms

logger = logging.getLogger(__name__)

HOST = 'host'
PLAYER = 'player'


@dataclass(frozen=True)
class Event:
    """A client intent.

    ``phase``, ``round`` and ``step`` are what the client saw when it formed
    the intent; an event whose observation no longer matches is stale.
    """
    kind: str
    actor_id: Optional[str] = None
    payload: Any = None
    phase: Optional[str] = None
    round: Optional[int] = None
    step: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'actorId': self.actor_id,
            'payload': self.payload,
            'phase': self.phase,
            'round': self.round,
            'step': self.step,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Event':
        rnd = data.get('round')
        step = data.get('step')
        return cls(
            kind=data['kind'],
            actor_id=data.get('actorId'),
            payload=data.get('payload'),
            phase=data.get('phase'),
            round=int(rnd) if rnd is not None else None,
            step=int(step) if step is not None else None,
        )


@dataclass(frozen=True)
class Transition:
    kind: str
    sources: FrozenSet[str]
    handler: str
    authority: str


def transition(kind: str, sources, authority: str = HOST):
    """Register a method as the handler for ``kind``.

    ``sources`` is a tuple of predecessor phases, or the name of a class
    attribute holding them. ``authority`` is HOST, PLAYER or the name of a
    predicate method ``(record, event) -> bool``.
    """
    def decorator(fn):
        fn._transition = (kind, sources, authority)
        return fn
    return decorator


def seconds(config: Mapping[str, Any], key: str, default: float) -> int:
    return int(float(config.get(key, default)) * 1000)


class PhaseMachine:
    game: str = ''
    phases: Tuple[str, ...] = ()
    initial_phase: str = ''
    terminal_phases: Tuple[str, ...] = ()
    response_phases: Tuple[str, ...] = ()
    exclude_host_from_quorum = False
    min_players: Optional[int] = None

    _transitions: Dict[str, Transition] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.active_phases = tuple(p for p in cls.phases if p not in cls.terminal_phases)
        table = {}
        for base in reversed(cls.__mro__):
            for name, attr in vars(base).items():
                registered = getattr(attr, '_transition', None)
                if not registered:
                    continue
                kind, sources, authority = registered
                if isinstance(sources, str):
                    sources = getattr(cls, sources)
                table[kind] = Transition(kind, frozenset(sources), name, authority)
        cls._transitions = table

    def __init__(self, rng: Optional[random.Random] = None,
                 provider: Optional[QuestionProvider] = None,
                 config: Optional[Mapping[str, Any]] = None):
        self.rng = rng or random.Random()
        self.provider = provider or StaticQuestionProvider(self.rng)
        self.config = dict(config or {})
        self.min_players = type(self).min_players or int(self.config.get('MIN_PLAYERS', 2))
        self.durations = self.phase_durations(self.config)

    # -- configuration hooks -------------------------------------------------

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        return {}

    def duration_ms(self, state: GameState) -> Optional[int]:
        return self.durations.get(state.phase)

    def initial_state(self, record: Optional[RoomRecord] = None) -> GameState:
        return GameState(phase=self.initial_phase)

    def fresh_state(self, record: RoomRecord) -> GameState:
        """initial_state, continuing the step count of ``record``."""
        return replace(self.initial_state(record), step=record.game_state.step + 1)

    def eliminated(self, record: RoomRecord) -> List[str]:
        return []

    def eligible_responders(self, record: RoomRecord) -> List[str]:
        return active_player_ids(
            record,
            exclude_host=self.exclude_host_from_quorum,
            eliminated=self.eliminated(record),
        )

    def validate_response(self, record: RoomRecord, event: Event) -> Any:
        return event.payload

    def null_response(self, state: GameState, player_id: str) -> Any:
        return None

    def close_responses(self, record: RoomRecord, now: int) -> GameState:
        raise InvalidTransition(f'{self.game} has no response phase to close')

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        """Repair game state after ``player_id`` was removed from ``record``."""
        return prune_responses(record.game_state, record.player_ids())

    # -- engine ---------------------------------------------------------------

    def can_transition(self, phase: str, kind: str) -> bool:
        t = self._transitions.get(kind)
        return t is not None and phase in t.sources

    def make_event(self, record: RoomRecord, kind: str, actor_id: Optional[str],
                   payload: Any = None) -> Event:
        state = record.game_state
        return Event(kind, actor_id, payload, state.phase, state.round, state.step)

    def authorize(self, record: RoomRecord, t: Transition, event: Event) -> None:
        actor = event.actor_id
        if actor is None or not record.has_player(actor):
            raise AuthorityConflict(f'{actor} is not in room {record.room_code}')
        if t.authority == HOST:
            allowed = record.is_host(actor)
        elif t.authority == PLAYER:
            allowed = True
        else:
            allowed = getattr(self, t.authority)(record, event)
        if not allowed:
            raise AuthorityConflict(f'{actor} may not {event.kind} during {record.game_state.phase}')

    def apply_event(self, record: RoomRecord, event: Event, now: Optional[int] = None) -> RoomRecord:
        """Return a new record with ``event`` applied, or raise.

        Never mutates ``record``. Raises StaleWrite when the event was formed
        against an earlier phase entry, InvalidTransition when the current
        phase is not a predecessor for the event, AuthorityConflict when the
        actor lacks authority.
        """
        state = record.game_state
        if state.phase not in self.phases:
            raise InvalidTransition(f'{state.phase} is not a {self.game} phase')
        if event.phase is not None and event.phase != state.phase:
            raise StaleWrite(f'{event.kind} formed during {event.phase}, now {state.phase}')
        if event.round is not None and event.round != state.round:
            raise StaleWrite(f'{event.kind} formed in round {event.round}, now {state.round}')
        if event.step is not None and event.step != state.step:
            raise StaleWrite(f'{event.kind} formed at step {event.step}, now {state.step}')
        t = self._transitions.get(event.kind)
        if t is None or state.phase not in t.sources:
            raise InvalidTransition(f'{event.kind} is not valid during {state.phase}')
        self.authorize(record, t, event)
        now = now_ms() if now is None else now
        new_state = getattr(self, t.handler)(record, event, now)
        if new_state.phase not in self.phases:
            raise InvalidTransition(f'{event.kind} produced unknown phase {new_state.phase}')
        logger.debug('%s: %s %s -> %s', record.room_code, event.kind, state.phase, new_state.phase)
        return replace(record, game_state=new_state)

    def enter(self, state: GameState, phase: str, now: int, clear_responses: bool = True,
              **updates) -> GameState:
        """Move ``state`` into ``phase``, stamping startedAt for timed phases."""
        fields = dict(updates)
        fields['phase'] = phase
        fields['step'] = state.step + 1
        probe = replace(state, **fields)
        fields['started_at'] = now if self.duration_ms(probe) is not None else None
        if clear_responses:
            fields['responses'] = {}
        return replace(state, **fields)

    def pending_host_event(self, record: RoomRecord, now: Optional[int] = None) -> Optional[Event]:
        """The quorum or timer event the host owes for this snapshot, if any."""
        state = record.game_state
        host = record.host_player_id
        if host is None:
            return None
        if (state.phase in self.response_phases and self.can_transition(state.phase, 'quorum')
                and has_quorum(state, self.eligible_responders(record))):
            return self.make_event(record, 'quorum', host)
        duration = self.duration_ms(state)
        if duration is None or state.started_at is None:
            return None
        now = now_ms() if now is None else now
        if remaining_ms(duration, state.started_at, now) == 0 and self.can_transition(state.phase, 'timeout'):
            return self.make_event(record, 'timeout', host)
        return None

    def require_players(self, record: RoomRecord, count: Optional[int] = None) -> List[str]:
        ids = active_player_ids(record, exclude_host=self.exclude_host_from_quorum)
        needed = self.min_players if count is None else count
        if len(ids) < needed:
            raise InvalidTransition(f'{self.game} needs at least {needed} players')
        return ids

    # -- transitions shared by every game ---------------------------------------

    @transition('respond', 'response_phases', authority=PLAYER)
    def on_respond(self, record: RoomRecord, event: Event, now: int) -> GameState:
        payload = self.validate_response(record, event)
        return record_response(
            record.game_state, event.actor_id, payload, self.eligible_responders(record),
        )

    @transition('quorum', 'response_phases')
    def on_quorum(self, record: RoomRecord, event: Event, now: int) -> GameState:
        if not has_quorum(record.game_state, self.eligible_responders(record)):
            raise InvalidTransition('quorum not reached')
        return self.close_responses(record, now)

    @transition('end', 'active_phases')
    def on_end(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self.enter(record.game_state, self.terminal_phases[0], now)

    @transition('reset', 'terminal_phases')
    def on_reset(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self.fresh_state(record)


def require_payload(event: Event, *keys: str) -> Dict[str, Any]:
    payload = event.payload if isinstance(event.payload, dict) else {}
    missing = [k for k in keys if payload.get(k) is None]
    if missing:
        raise InvalidResponse(f'{event.kind} requires {", ".join(missing)}')
    return payload


def known_players(record: RoomRecord, ids: Iterable[str]) -> List[str]:
    present = set(record.player_ids())
    return [pid for pid in ids if pid in present]
