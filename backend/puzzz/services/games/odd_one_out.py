from dataclasses import replace
from typing import Any, Dict, Mapping

from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.records import GameState, RoomRecord
from puzzz.services.games.aggregator import active_player_ids
from puzzz.services.games.machine import Event, PhaseMachine, seconds, transition
from puzzz.services.games.scoring import (
    add_scores,
    append_round_history,
    imposter_round_deltas,
    resolve_imposter_vote,
)
from puzzz.services.games.selection import pick_eligible_target
from puzzz.validation import sanitize_input

MAX_ANSWER_LENGTH = 200


class OddOneOutMachine(PhaseMachine):
    """Imposter detection.

    Everyone answers a prompt, one player secretly answers a different one.
    The room then votes on who the imposter was.
    """
    game = 'odd_one_out'
    phases = ('setup', 'answering', 'voting', 'reveal', 'ended')
    initial_phase = 'setup'
    terminal_phases = ('ended',)
    response_phases = ('answering', 'voting')
    min_players = 3

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        return {
            'answering': seconds(config, 'ODD_ONE_OUT_ANSWER_DURATION_SEC', 60),
            'voting': seconds(config, 'ODD_ONE_OUT_VOTE_DURATION_SEC', 60),
        }

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='setup', data={
            'imposterId': None,
            'question': None,
            'answers': {},
            'voteResult': None,
            'roundHistory': [],
        })

    def validate_response(self, record: RoomRecord, event: Event) -> Any:
        payload = event.payload
        if payload is None:
            return None
        if record.game_state.phase == 'answering':
            answer = sanitize_input(payload, MAX_ANSWER_LENGTH)
            if not answer:
                raise InvalidResponse('answer cannot be empty')
            return answer
        if payload == event.actor_id:
            raise InvalidResponse('players cannot vote for themselves')
        if not record.has_player(payload):
            raise InvalidResponse(f'{payload} is not in this room')
        return payload

    def _new_round(self, record: RoomRecord, state: GameState, now: int, round_no: int) -> GameState:
        ids = self.require_players(record)
        pairs = self.provider.generate('odd_one_out', 1)
        if not pairs:
            raise InvalidTransition('no odd one out questions available')
        q = pairs[0]
        imposter = pick_eligible_target(ids, (), self.rng)
        return self.enter(
            state, 'answering', now,
            round=round_no,
            scores={pid: state.scores.get(pid, 0) for pid in ids},
            data={
                **state.data,
                'imposterId': imposter,
                'question': {
                    'id': q.id,
                    'text': q.text,
                    'imposterText': q.alt_text or q.text,
                    'category': q.category,
                },
                'answers': {},
                'voteResult': None,
            },
        )

    @transition('start', ('setup',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self._new_round(record, record.game_state, now, 1)

    @transition('next_round', ('reveal',))
    def on_next_round(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        return self._new_round(record, state, now, state.round + 1)

    @transition('timeout', 'response_phases')
    def on_timeout(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self.close_responses(record, now)

    def close_responses(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        if state.phase == 'answering':
            answers = {pid: a for pid, a in state.responses.items() if a is not None}
            return self.enter(state, 'voting', now, data={**state.data, 'answers': answers})
        return self._reveal(record, now)

    def _reveal(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        imposter = state.get('imposterId')
        outcome = resolve_imposter_vote(state.responses, imposter, record.player_ids())
        deltas = imposter_round_deltas(outcome, imposter, active_player_ids(record))
        result = outcome.to_dict()
        result['imposterId'] = imposter
        history = append_round_history(state.get('roundHistory'), {
            'round': state.round,
            'imposterId': imposter,
            'questionId': (state.get('question') or {}).get('id'),
            'votes': dict(state.responses),
            'caught': outcome.caught,
            'tie': outcome.tie,
            'deltas': deltas,
        })
        return self.enter(
            state, 'reveal', now,
            clear_responses=False,
            scores=add_scores(state.scores, deltas),
            data={**state.data, 'voteResult': result, 'roundHistory': history},
        )

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        state = super().after_departure(record, player_id, now)
        if state.phase not in self.response_phases:
            return state
        if len(record.players) < 2:
            return self.enter(state, 'ended', now)
        if player_id == state.get('imposterId'):
            # the round cannot be scored without its imposter
            return self.enter(state, 'reveal', now, data={
                **state.data,
                'voteResult': {'voided': True, 'imposterId': player_id},
            })
        if state.phase == 'voting':
            # votes for the departed player are withdrawn so the voter can vote again
            votes = {k: v for k, v in state.responses.items() if v != player_id}
            return replace(state, responses=votes)
        return state
