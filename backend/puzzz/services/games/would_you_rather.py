from dataclasses import replace
from typing import Any, Dict, Mapping

from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.records import GameState, RoomRecord
from puzzz.services.games.aggregator import tally, top_candidates
from puzzz.services.games.machine import Event, PhaseMachine, seconds, transition
from puzzz.services.games.scoring import append_round_history

OPTIONS = ('A', 'B')
QUESTION_POOL_SIZE = 10


class WouldYouRatherMachine(PhaseMachine):
    """Two-option poll.

    The host deals a dilemma, everyone votes A or B before the timer runs
    out, and the split is shown until the host deals the next one. Nobody
    scores; the room just sees where everyone landed.
    """
    game = 'would_you_rather'
    phases = ('waiting', 'voting', 'results', 'ended')
    initial_phase = 'waiting'
    terminal_phases = ('ended',)
    response_phases = ('voting',)

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        return {'voting': seconds(config, 'WOULD_YOU_RATHER_VOTE_DURATION_SEC', 30)}

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='waiting', data={
            'questions': [],
            'questionIndex': 0,
            'currentQuestion': None,
            'results': None,
            'roundHistory': [],
        })

    def validate_response(self, record: RoomRecord, event: Event) -> Any:
        option = event.payload.get('option') if isinstance(event.payload, dict) else event.payload
        if option is None:
            return None
        option = str(option).upper()
        if option not in OPTIONS:
            raise InvalidResponse('vote for option A or B')
        return option

    def null_response(self, state: GameState, player_id: str) -> Any:
        # time ran out, so the player gets a coin toss
        return self.rng.choice(OPTIONS)

    @transition('start', ('waiting',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        self.require_players(record)
        questions = [
            {'id': q.id, 'optionA': q.text, 'optionB': q.alt_text, 'category': q.category}
            for q in self.provider.generate('would_you_rather', QUESTION_POOL_SIZE)
            if q.alt_text
        ]
        if not questions:
            raise InvalidTransition('no would you rather questions available')
        base = self.fresh_state(record)
        base = replace(base, data={**base.data, 'questions': questions})
        return self._deal(base, now, round_no=1)

    @transition('next_question', ('results',))
    def on_next_question(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        return self._deal(state, now, round_no=state.round + 1)

    @transition('timeout', ('voting',))
    def on_timeout(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self.close_responses(record, now)

    def _deal(self, state: GameState, now: int, round_no: int) -> GameState:
        questions = state.get('questions') or []
        index = state.get('questionIndex') or 0
        if index >= len(questions):
            return self.enter(state, 'ended', now)
        return self.enter(
            state, 'voting', now,
            round=round_no,
            data={
                **state.data,
                'questionIndex': index + 1,
                'currentQuestion': questions[index],
                'results': None,
            },
        )

    def close_responses(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        counts = tally(state.responses)
        leaders = top_candidates(counts)
        results = {
            'A': counts.get('A', 0),
            'B': counts.get('B', 0),
            'majority': leaders[0] if len(leaders) == 1 else None,
            'votes': dict(state.responses),
        }
        history = append_round_history(state.get('roundHistory'), {
            'round': state.round,
            'questionId': (state.get('currentQuestion') or {}).get('id'),
            'A': results['A'],
            'B': results['B'],
        })
        return self.enter(
            state, 'results', now,
            clear_responses=False,
            data={**state.data, 'results': results, 'roundHistory': history},
        )

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        state = super().after_departure(record, player_id, now)
        if state.phase in self.active_phases and state.phase != 'waiting' and len(record.players) < 2:
            return self.enter(state, 'ended', now)
        return state
