from typing import Any, Dict, Optional

from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.records import GameState, RoomRecord
from puzzz.services.games.machine import Event, PhaseMachine, require_payload, transition
from puzzz.services.games.selection import next_active_turn
from puzzz.validation import sanitize_input

SPICE_LEVELS = ('mild', 'spicy', 'nuclear')
FORFEITS = (
    'Do 10 push-ups',
    'Sing a song for 30 seconds',
    'Dance for 1 minute',
    'Do an impression of someone in the room',
    'Tell a joke (it has to be funny)',
    'Do a handstand for 15 seconds',
    'Speak in an accent for the next 3 rounds',
    'Do your best animal impression',
    'Compliment everyone in the room',
    'Share an embarrassing story',
)
QUESTION_POOL_SIZE = 20
MAX_QUESTION_LENGTH = 200


class SayItOrPayItMachine(PhaseMachine):
    """Hot seat.

    The other players put a question to whoever sits in the hot seat, either
    their own or one drawn from the pool. The hot seat answers out loud or
    takes a forfeit, then the host passes the seat on in join order.
    """
    game = 'say_it_or_pay_it'
    phases = ('setup', 'playing', 'question_submitted', 'answered', 'ended')
    initial_phase = 'setup'
    terminal_phases = ('ended',)

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='setup', data={
            'questions': [],
            'currentQuestion': None,
            'choice': None,
            'chosenForfeit': None,
            'usedForfeits': [],
        })

    def hot_seat_id(self, state: GameState) -> Optional[str]:
        order = state.player_order
        if not order or state.current_turn_index >= len(order):
            return None
        return order[state.current_turn_index]

    # authority predicates

    def is_hot_seat(self, record: RoomRecord, event: Event) -> bool:
        return event.actor_id == self.hot_seat_id(record.game_state)

    def is_questioner(self, record: RoomRecord, event: Event) -> bool:
        return not self.is_hot_seat(record, event)

    # transitions

    @transition('start', ('setup',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        ids = self.require_players(record)
        questions = [
            {'id': q.id, 'text': q.text, 'spiceLevel': q.category, 'source': 'pool'}
            for q in self.provider.generate('say_it_or_pay_it', QUESTION_POOL_SIZE)
        ]
        if not questions:
            raise InvalidTransition('no say it or pay it questions available')
        base = self.fresh_state(record)
        return self.enter(
            base, 'playing', now,
            player_order=ids,
            current_turn_index=0,
            round=1,
            scores={},
            data={**base.data, 'questions': questions},
        )

    @transition('submit_question', ('playing',), authority='is_questioner')
    def on_submit_question(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        text = sanitize_input(require_payload(event, 'text')['text'], MAX_QUESTION_LENGTH)
        if not text:
            raise InvalidResponse('a question is required')
        question = {
            'id': f'custom-{now}',
            'text': text,
            'spiceLevel': SPICE_LEVELS[self.rng.randrange(len(SPICE_LEVELS))],
            'source': 'player',
            'submittedBy': record.player(event.actor_id).player_name,
        }
        questions = list(state.get('questions') or []) + [question]
        return self._put(state, question, now, questions=questions)

    @transition('random_question', ('playing',), authority='is_questioner')
    def on_random_question(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        previous = (state.get('currentQuestion') or {}).get('id')
        pool = [q for q in state.get('questions') or [] if q['id'] != previous]
        if not pool:
            raise InvalidTransition('no questions left to draw')
        return self._put(state, pool[self.rng.randrange(len(pool))], now)

    @transition('say_it', ('question_submitted',), authority='is_hot_seat')
    def on_say_it(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        return self.enter(state, 'answered', now, data={**state.data, 'choice': 'say'})

    @transition('pay_it', ('question_submitted',), authority='is_hot_seat')
    def on_pay_it(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        used = list(state.get('usedForfeits') or [])
        available = [f for f in FORFEITS if f not in used] or list(FORFEITS)
        forfeit = available[self.rng.randrange(len(available))]
        return self.enter(state, 'answered', now, data={
            **state.data,
            'choice': 'pay',
            'chosenForfeit': forfeit,
            'usedForfeits': used + [forfeit],
        })

    @transition('next_turn', ('answered',))
    def on_next_turn(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self._pass_seat(record, now)

    # helpers

    def _put(self, state: GameState, question: Dict[str, Any], now: int, **data) -> GameState:
        return self.enter(state, 'question_submitted', now, data={
            **state.data,
            **data,
            'currentQuestion': question,
            'choice': None,
            'chosenForfeit': None,
        })

    def _pass_seat(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        idx = next_active_turn(state.player_order, state.current_turn_index, record.player_ids())
        return self.enter(
            state, 'playing', now,
            current_turn_index=idx,
            round=state.round + 1,
            data={**state.data, 'currentQuestion': None, 'choice': None, 'chosenForfeit': None},
        )

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        state = super().after_departure(record, player_id, now)
        if state.phase in self.terminal_phases or state.phase == 'setup':
            return state
        if len(record.players) < 2:
            return self.enter(state, 'ended', now)
        if player_id == self.hot_seat_id(state) and state.phase != 'answered':
            return self._pass_seat(record.with_state(state), now)
        return state
