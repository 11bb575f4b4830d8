"""Cat Conspiracy, a bluffing and coin economy game.

Each player holds two hidden influence cards. On their turn a player declares
an action, possibly claiming a role they may not hold. Every other player
gets a timed window to challenge the claim, then (for blockable actions) a
window to block it. Blocks are claims too and can be challenged in turn.

``round`` counts decision points (turns and windows) rather than table
rounds, so an intent formed for one window can never land in the next.
"""

import copy
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from puzzz.errors import InvalidResponse, InvalidTransition
from puzzz.records import GameState, RoomRecord
from puzzz.services.games.machine import Event, PhaseMachine, require_payload, seconds, transition
from puzzz.services.games.scoring import (
    ACTION_COST,
    FORCED_COUP_COINS,
    add_scores,
    economy_deltas,
)
from puzzz.services.games.selection import initial_order, next_active_turn, shuffled

ROLES = ('ballet_cat', 'dino_cat', 'aura_cat', 'chill_cat', 'princess_cat')
COPIES_PER_ROLE = 3
CARDS_PER_PLAYER = 2
STARTING_COINS = 2
STARTING_TREASURY = 50
MAX_PLAYERS = 6
EXCHANGE_DRAW = 2

ACTIONS = ('income', 'foreign_aid', 'tax', 'steal', 'assassinate', 'exchange', 'coup')
TARGETED = ('steal', 'assassinate', 'coup')
ACTION_CLAIMS = {
    'tax': 'ballet_cat',
    'steal': 'aura_cat',
    'assassinate': 'dino_cat',
    'exchange': 'chill_cat',
}
ACTION_BLOCKERS = {
    'foreign_aid': ('ballet_cat',),
    'steal': ('aura_cat', 'chill_cat'),
    'assassinate': ('princess_cat',),
}


def alive_ids(order: List[str], seats: Dict[str, Any]) -> List[str]:
    return [pid for pid in order if pid in seats and not seats[pid]['eliminated']]


def influence(seat: Dict[str, Any]) -> int:
    return sum(1 for card in seat['cards'] if not card['revealed'])


class CatConspiracyMachine(PhaseMachine):
    game = 'coup'
    phases = ('waiting', 'playing', 'challenge_pending', 'block_pending', 'finished')
    initial_phase = 'waiting'
    terminal_phases = ('finished',)
    response_phases = ('challenge_pending', 'block_pending')

    def phase_durations(self, config: Mapping[str, Any]) -> Dict[str, int]:
        window = seconds(config, 'COUP_WINDOW_DURATION_SEC', 10)
        return {'challenge_pending': window, 'block_pending': window}

    def initial_state(self, record=None) -> GameState:
        return GameState(phase='waiting', data={
            'seats': {},
            'deck': [],
            'treasury': STARTING_TREASURY,
            'pending': None,
            'winner': None,
            'log': [],
        })

    def current_player(self, state: GameState) -> Optional[str]:
        order = state.player_order
        if not order:
            return None
        return order[state.current_turn_index % len(order)]

    def eliminated(self, record: RoomRecord) -> List[str]:
        state = record.game_state
        alive = set(alive_ids(state.player_order, state.get('seats') or {}))
        return [pid for pid in record.player_ids() if pid not in alive]

    def eligible_responders(self, record: RoomRecord) -> List[str]:
        state = record.game_state
        pending = state.get('pending') or {}
        present = set(record.player_ids())
        alive = [pid for pid in alive_ids(state.player_order, state.get('seats') or {}) if pid in present]
        if state.phase == 'challenge_pending':
            return [pid for pid in alive if pid != self._claimant(pending)]
        if state.phase == 'block_pending':
            if pending.get('targetId'):
                return [pid for pid in alive if pid == pending['targetId']]
            return [pid for pid in alive if pid != pending.get('actorId')]
        return alive

    def validate_response(self, record: RoomRecord, event: Event) -> Any:
        if event.payload not in (None, 'pass'):
            raise InvalidResponse('only a pass can be submitted during a window')
        return 'pass'

    def null_response(self, state: GameState, player_id: str) -> Any:
        return 'pass'

    # authority predicates

    def is_current_player(self, record: RoomRecord, event: Event) -> bool:
        return event.actor_id == self.current_player(record.game_state)

    def may_respond_to_window(self, record: RoomRecord, event: Event) -> bool:
        return event.actor_id in self.eligible_responders(record)

    # transitions

    @transition('start', ('waiting',))
    def on_start(self, record: RoomRecord, event: Event, now: int) -> GameState:
        ids = self.require_players(record)
        if len(ids) > MAX_PLAYERS:
            raise InvalidTransition(f'coup supports at most {MAX_PLAYERS} players')
        deck = shuffled([role for role in ROLES for _ in range(COPIES_PER_ROLE)], self.rng)
        seats = {}
        for pid in ids:
            cards = [{'role': deck.pop(), 'revealed': False} for _ in range(CARDS_PER_PLAYER)]
            seats[pid] = {'coins': STARTING_COINS, 'cards': cards, 'eliminated': False}
        state = record.game_state
        return self.enter(
            state, 'playing', now,
            player_order=initial_order(ids, self.rng),
            current_turn_index=0,
            round=1,
            scores={pid: state.scores.get(pid, 0) for pid in ids},
            data={
                **self.initial_state().data,
                'seats': seats,
                'deck': deck,
                'treasury': STARTING_TREASURY - STARTING_COINS * len(ids),
            },
        )

    @transition('declare_action', ('playing',), authority='is_current_player')
    def on_declare_action(self, record: RoomRecord, event: Event, now: int) -> GameState:
        payload = require_payload(event, 'action')
        action = payload['action']
        if action not in ACTIONS:
            raise InvalidResponse(f'unknown action {action!r}')
        state = record.game_state
        data = copy.deepcopy(state.data)
        actor = event.actor_id
        seat = data['seats'][actor]
        if seat['coins'] >= FORCED_COUP_COINS and action != 'coup':
            raise InvalidResponse(f'{FORCED_COUP_COINS} or more coins forces a coup')
        target = payload.get('targetId') if action in TARGETED else None
        if action in TARGETED and (target == actor or target not in alive_ids(state.player_order, data['seats'])):
            raise InvalidResponse(f'{action} needs a living target other than yourself')
        if action in ACTION_COST:
            # paid on declaration and not refunded if blocked
            try:
                actor_delta, _, treasury_delta = economy_deltas(action, seat['coins'])
            except ValueError as exc:
                raise InvalidResponse(str(exc)) from exc
            seat['coins'] += actor_delta
            data['treasury'] += treasury_delta
        data['pending'] = {
            'action': action,
            'actorId': actor,
            'targetId': target,
            'claim': ACTION_CLAIMS.get(action),
            'stage': 'action',
            'blockerId': None,
            'blockClaim': None,
        }
        self._log(data, f'{actor} declares {action}' + (f' on {target}' if target else ''))
        if data['pending']['claim']:
            return self._step(state, 'challenge_pending', now, data)
        return self._after_action_window(state, data, now)

    @transition('challenge', ('challenge_pending',), authority='may_respond_to_window')
    def on_challenge(self, record: RoomRecord, event: Event, now: int) -> GameState:
        state = record.game_state
        data = copy.deepcopy(state.data)
        pending = data['pending']
        blocking = pending['stage'] == 'block'
        claimant = self._claimant(pending)
        claim = pending['blockClaim'] if blocking else pending['claim']
        challenger = event.actor_id
        index = self._unrevealed_index(data['seats'][claimant], claim)
        if index is not None:
            self._log(data, f'{challenger} challenged {claimant} and lost')
            self._lose_influence(data, challenger)
            self._replace_card(data, claimant, index)
            if blocking:
                return self._next_turn(state, data, now)
            return self._after_action_window(state, data, now)
        self._log(data, f'{challenger} caught {claimant} bluffing {claim}')
        self._lose_influence(data, claimant)
        if blocking:
            return self._resolve(state, data, now)
        return self._next_turn(state, data, now)

    @transition('block', ('block_pending',), authority='may_respond_to_window')
    def on_block(self, record: RoomRecord, event: Event, now: int) -> GameState:
        role = require_payload(event, 'role')['role']
        state = record.game_state
        pending = state.get('pending')
        if role not in ACTION_BLOCKERS.get(pending['action'], ()):
            raise InvalidResponse(f'{role} cannot block {pending["action"]}')
        data = copy.deepcopy(state.data)
        data['pending'].update(stage='block', blockerId=event.actor_id, blockClaim=role)
        self._log(data, f'{event.actor_id} blocks with {role}')
        return self._step(state, 'challenge_pending', now, data)

    @transition('timeout', 'response_phases')
    def on_timeout(self, record: RoomRecord, event: Event, now: int) -> GameState:
        return self.close_responses(record, now)

    def close_responses(self, record: RoomRecord, now: int) -> GameState:
        state = record.game_state
        data = copy.deepcopy(state.data)
        if state.phase == 'challenge_pending':
            if data['pending']['stage'] == 'block':
                self._log(data, 'block stands')
                return self._next_turn(state, data, now)
            return self._after_action_window(state, data, now)
        return self._resolve(state, data, now)

    def after_departure(self, record: RoomRecord, player_id: str, now: int) -> GameState:
        state = super().after_departure(record, player_id, now)
        seats = state.get('seats') or {}
        if state.phase == 'waiting' or state.phase in self.terminal_phases or player_id not in seats:
            return state
        data = copy.deepcopy(state.data)
        seat = data['seats'][player_id]
        for card in seat['cards']:
            card['revealed'] = True
        seat['eliminated'] = True
        self._log(data, f'{player_id} left the table')
        pending = data.get('pending') or {}
        involved = player_id == self.current_player(state) or player_id in (
            pending.get('actorId'), pending.get('blockerId'))
        if involved or len(alive_ids(state.player_order, data['seats'])) <= 1:
            return self._next_turn(state, data, now)
        return replace(state, data=data)

    # helpers

    def _step(self, state: GameState, phase: str, now: int, data: Dict[str, Any], **updates) -> GameState:
        return self.enter(state, phase, now, round=state.round + 1, data=data, **updates)

    def _claimant(self, pending: Dict[str, Any]) -> Optional[str]:
        if pending.get('stage') == 'block':
            return pending.get('blockerId')
        return pending.get('actorId')

    def _log(self, data: Dict[str, Any], line: str) -> None:
        data['log'] = list(data.get('log') or []) + [line]

    def _unrevealed_index(self, seat: Dict[str, Any], role: str) -> Optional[int]:
        for i, card in enumerate(seat['cards']):
            if not card['revealed'] and card['role'] == role:
                return i
        return None

    def _lose_influence(self, data: Dict[str, Any], player_id: str) -> None:
        seat = data['seats'][player_id]
        for card in seat['cards']:
            if not card['revealed']:
                card['revealed'] = True
                break
        if influence(seat) == 0:
            seat['eliminated'] = True
            self._log(data, f'{player_id} is out')

    def _replace_card(self, data: Dict[str, Any], player_id: str, index: int) -> None:
        """A proven card goes back into the deck and a fresh one is drawn."""
        card = data['seats'][player_id]['cards'][index]
        deck = shuffled(data['deck'] + [card['role']], self.rng)
        card['role'] = deck.pop()
        data['deck'] = deck

    def _exchange(self, data: Dict[str, Any], player_id: str) -> None:
        seat = data['seats'][player_id]
        hidden = [card for card in seat['cards'] if not card['revealed']]
        deck = list(data['deck'])
        drawn = [deck.pop() for _ in range(min(EXCHANGE_DRAW, len(deck)))]
        pool = shuffled([card['role'] for card in hidden] + drawn, self.rng)
        for card in hidden:
            card['role'] = pool.pop()
        data['deck'] = shuffled(deck + pool, self.rng)

    def _after_action_window(self, state: GameState, data: Dict[str, Any], now: int) -> GameState:
        pending = data['pending']
        action = pending['action']
        target = pending.get('targetId')
        blockable = action in ACTION_BLOCKERS
        if blockable and target and data['seats'][target]['eliminated']:
            blockable = False
        if blockable and not data['seats'][pending['actorId']]['eliminated']:
            return self._step(state, 'block_pending', now, data)
        return self._resolve(state, data, now)

    def _resolve(self, state: GameState, data: Dict[str, Any], now: int) -> GameState:
        pending = data['pending']
        action = pending['action']
        seats = data['seats']
        actor = pending['actorId']
        target = pending.get('targetId')
        target_alive = bool(target) and not seats[target]['eliminated']
        if seats[actor]['eliminated']:
            return self._next_turn(state, data, now)
        if action in ('income', 'foreign_aid', 'tax'):
            gain, _, _ = economy_deltas(action, seats[actor]['coins'])
            gain = min(gain, data['treasury'])
            seats[actor]['coins'] += gain
            data['treasury'] -= gain
        elif action == 'steal' and target_alive:
            actor_delta, target_delta, _ = economy_deltas(action, seats[actor]['coins'], seats[target]['coins'])
            seats[actor]['coins'] += actor_delta
            seats[target]['coins'] += target_delta
        elif action in ('assassinate', 'coup') and target_alive:
            self._lose_influence(data, target)
        elif action == 'exchange':
            self._exchange(data, actor)
        self._log(data, f'{action} resolves')
        return self._next_turn(state, data, now)

    def _next_turn(self, state: GameState, data: Dict[str, Any], now: int) -> GameState:
        data['pending'] = None
        alive = alive_ids(state.player_order, data['seats'])
        if len(alive) <= 1:
            winner = alive[0] if alive else None
            data['winner'] = winner
            scores = add_scores(state.scores, {winner: 1}) if winner else dict(state.scores)
            if winner:
                self._log(data, f'{winner} wins')
            return self._step(state, 'finished', now, data, scores=scores)
        idx = next_active_turn(state.player_order, state.current_turn_index, alive)
        return self._step(state, 'playing', now, data, current_turn_index=idx)
