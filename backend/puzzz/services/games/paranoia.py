from dataclasses import replace
from typing import Any, Dict, Mapping

from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.records import GameState, RoomRecord
from puzzz.services.games.machine import (
    Event,
    PhaseMachine,
    seconds,
    transition,
)
from puzzz.services.games.selection import (
    initial_order,
    next_active_turn,
    pick_eligible_target,
)

QUESTION_POOL_SIZE = 20


class ParanoiaMachine(PhaseMachine):
    """Turn-whisper game.

    The asker picks a question, a random target answers it by naming a
    player, then a fair coin decides whether the question is revealed.
    """
    game = 'paranoia'
    phases = ('waiting', 'playing', 'answering', 'coin_flip', 'revealed', 'not_revealed', 'ended')
    initial_phase = 'waiting'
    terminal_phases = ('ended',)
    min_players = 3

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        turn = seconds(config, 'PARANOIA_TURN_DURATION_SEC', 30)
        reveal = seconds(config, 'PARANOIA_REVEAL_DURATION_SEC', 8)
        return {
            'playing': turn,
            'answering': turn,
            'coin_flip': turn,
            'revealed': reveal,
            'not_revealed': reveal,
        }

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='waiting', data={
            'questions': [],
            'currentQuestion': None,
            'targetPlayerId': None,
            'currentAnswer': None,
            'lastRevealResult': None,
            'usedAskers': [],
        })

    def asker_id(self, state: GameState):
        order = state.player_order
        if not order or state.current_turn_index >= len(order):
            return None
        return order[state.current_turn_index]

    # authority predicates

    def is_asker(self, record: RoomRecord, event: Event) -> bool:
        return event.actor_id == self.asker_id(record.game_state)

    def is_target(self, record: RoomRecord, event: Event) -> bool:
        return event.actor_id == record.game_state.get('targetPlayerId')

    def is_target_or_host(self, record: RoomRecord, event: Event) -> bool:
        return self.is_target(record, event) or record.is_host(event.actor_id)

    # transitions

    @transition('start', ('waiting',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        ids = self.require_players(record)
        questions = [q.text for q in self.provider.generate('paranoia', QUESTION_POOL_SIZE)]
        if not questions:
            raise InvalidTransition('no paranoia questions available')
        base = self.fresh_state(record)
        return self.enter(
            base, 'playing', now,
            player_order=initial_order(ids, self.rng),
            current_turn_index=0,
            round=1,
            scores={},
            data={**base.data, 'questions': questions},
        )

    @transition('select_question', ('playing',), authority='is_asker')
    def on_select_question(self, record: RoomRecord, event: Event, now: int) -> GameState:
        question = event.payload.get('question') if isinstance(event.payload, dict) else event.payload
        if not question or not str(question).strip():
            raise InvalidResponse('a question is required')
        return self._ask(record, str(question).strip(), now)

    @transition('answer', ('answering',), authority='is_target')
    def on_answer(self, record: RoomRecord, event: Event, now: int) -> GameState:
        named = event.payload.get('playerId') if isinstance(event.payload, dict) else event.payload
        if not record.has_player(named):
            raise InvalidResponse('the answer must name a player in the room')
        return self._answered(record, named, now)

    @transition('flip', ('coin_flip',), authority='is_target_or_host')
    def on_flip(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self._flip(record, now)

    @transition('next_turn', ('revealed', 'not_revealed'))
    def on_next_turn(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self._advance_turn(record, now)

    @transition('timeout', ('playing', 'answering', 'coin_flip', 'revealed', 'not_revealed'))
    def on_timeout(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        if state.phase == 'playing':
            pool = state.get('questions') or []
            if not pool:
                raise InvalidTransition('no question to auto-select')
            return self._ask(record, pool[self.rng.randrange(len(pool))], now)
        if state.phase == 'answering':
            named = pick_eligible_target(record.player_ids(), [state.get('targetPlayerId')], self.rng)
            return self._answered(record, named, now)
        if state.phase == 'coin_flip':
            return self._flip(record, now)
        return self._advance_turn(record, now)

    # helpers

    def _ask(self, record: RoomRecord, question: str, now: int) -> GameState:
        state = record.game_state
        asker = self.asker_id(state)
        target = pick_eligible_target(record.player_ids(), [asker], self.rng)
        used = list(state.get('usedAskers') or [])
        if asker not in used:
            used.append(asker)
        return self.enter(state, 'answering', now, data={
            **state.data,
            'currentQuestion': question,
            'targetPlayerId': target,
            'currentAnswer': None,
            'lastRevealResult': None,
            'usedAskers': used,
        })

    def _answered(self, record: RoomRecord, named: str, now: int) -> GameState:
        state = record.game_state
        target = state.get('targetPlayerId')
        entered = self.enter(state, 'coin_flip', now, data={**state.data, 'currentAnswer': named})
        return replace(entered, responses={target: named})

    def _flip(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        if state.get('lastRevealResult') is not None:
            raise InvalidTransition('coin already flipped this round')
        reveal = self.rng.random() < 0.5
        return self.enter(
            state, 'revealed' if reveal else 'not_revealed', now,
            clear_responses=False,
            data={**state.data, 'lastRevealResult': reveal},
        )

    def _advance_turn(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        idx = next_active_turn(state.player_order, state.current_turn_index, record.player_ids())
        wrapped = idx <= state.current_turn_index
        return self.enter(
            state, 'playing', now,
            current_turn_index=idx,
            round=state.round + 1 if wrapped else state.round,
            data={
                **state.data,
                'currentQuestion': None,
                'targetPlayerId': None,
                'currentAnswer': None,
                'lastRevealResult': None,
                'usedAskers': [] if wrapped else list(state.get('usedAskers') or []),
            },
        )

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        state = super().after_departure(record, player_id, now)
        if state.phase in self.terminal_phases or state.phase == 'waiting':
            return state
        if len(record.players) < 2:
            return self.enter(state, 'ended', now)
        involved = (self.asker_id(state), state.get('targetPlayerId'))
        if player_id in involved and state.phase in ('playing', 'answering', 'coin_flip'):
            return self._advance_turn(replace(record, game_state=state), now)
        return state
