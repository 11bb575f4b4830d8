from typing import Any, Dict, Mapping, Optional

from puzzz.errors import InvalidResponse
from puzzz.records import GameState, RoomRecord
from puzzz.services.games import challenges
from puzzz.services.games.machine import Event, PhaseMachine, seconds, transition
from puzzz.services.games.scoring import add_scores, append_round_history, score_challenge_round


class PuzzzPanicMachine(PhaseMachine):
    """Rapid-fire timed challenges.

    The host device is a spectator screen: it drives the timers but never
    answers and is not scored. ``round`` is the 1-based challenge number.
    """
    game = 'puzzz_panic'
    phases = ('waiting', 'countdown', 'active', 'break', 'finished')
    initial_phase = 'waiting'
    terminal_phases = ('finished',)
    response_phases = ('active',)
    exclude_host_from_quorum = True
    min_players = 1

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.challenge_count = int(self.config.get('CHALLENGE_COUNT', 10))

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        return {
            'countdown': seconds(config, 'COUNTDOWN_DURATION_SEC', 3),
            'break': seconds(config, 'BREAK_DURATION_SEC', 5),
        }

    def duration_ms(self, state: GameState) -> Optional[int]:
        if state.phase == 'active':
            challenge = state.get('currentChallenge') or {}
            return challenge.get('timeLimitMs')
        return super().duration_ms(state)

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='waiting', data={
            'challengeOrder': [],
            'currentChallenge': None,
            'lastResults': None,
            'roundHistory': [],
        })

    def validate_response(self, record: RoomRecord, event: Event) -> Any:
        payload = event.payload
        challenge = record.game_state.get('currentChallenge') or {}
        limit = int(challenge.get('timeLimitMs') or 0)
        if payload is None:
            return self.null_response(record.game_state, event.actor_id)
        if not isinstance(payload, dict) or 'response' not in payload:
            raise InvalidResponse('a challenge response needs a response field')
        try:
            elapsed = int(payload.get('elapsedMs', limit))
        except (TypeError, ValueError):
            raise InvalidResponse('elapsedMs must be an integer')
        if elapsed < 0:
            raise InvalidResponse('elapsedMs cannot be negative')
        return {'response': payload['response'], 'elapsedMs': elapsed}

    def null_response(self, state: GameState, player_id: str) -> Any:
        challenge = state.get('currentChallenge') or {}
        return {'response': None, 'elapsedMs': challenge.get('timeLimitMs', 0)}

    @transition('start', ('waiting',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        ids = self.require_players(record)
        catalog_size = len(challenges.CATALOG)
        order = [self.rng.randrange(catalog_size) for _ in range(self.challenge_count)]
        state = record.game_state
        return self.enter(
            state, 'countdown', now,
            round=1,
            scores={pid: state.scores.get(pid, 0) for pid in ids},
            data={**state.data, 'challengeOrder': order, 'currentChallenge': None, 'lastResults': None},
        )

    @transition('timeout', ('countdown', 'active', 'break'))
    def on_timeout(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        if state.phase == 'countdown':
            return self._begin_challenge(state, state.round, now)
        if state.phase == 'break':
            return self._begin_challenge(state, state.round + 1, now)
        return self.close_responses(record, now)

    def _begin_challenge(self, state: GameState, number: int, now: int) -> GameState:
        order = state.get('challengeOrder') or []
        challenge = challenges.generate(order[number - 1], self.rng)
        return self.enter(state, 'active', now, round=number, data={
            **state.data,
            'currentChallenge': challenge,
            'lastResults': None,
        })

    def close_responses(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        challenge = state.get('currentChallenge')
        eligible = self.eligible_responders(record)
        results = score_challenge_round(challenge, state.responses, eligible)
        history = append_round_history(state.get('roundHistory'), {
            'round': state.round,
            'challengeId': challenge['id'],
            'results': results,
        })
        last = state.round >= len(state.get('challengeOrder') or [])
        return self.enter(
            state, 'finished' if last else 'break', now,
            clear_responses=False,
            scores=add_scores(state.scores, results),
            data={**state.data, 'lastResults': results, 'roundHistory': history},
        )
