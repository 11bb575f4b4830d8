from collections import Counter
from dataclasses import replace
from typing import Any, Dict, Iterable, List

from puzzz.errors import InvalidResponse
from puzzz.records import GameState, RoomRecord


def active_player_ids(record: RoomRecord, exclude_host: bool = False,
                      eliminated: Iterable[str] = ()) -> List[str]:
    """Players who count toward quorum, in join order."""
    out = set(eliminated)
    return [
        p.player_id for p in record.players
        if p.player_id not in out and not (exclude_host and p.is_host)
    ]


def record_response(state: GameState, player_id: str, payload: Any,
                    eligible_ids: Iterable[str], accepting: bool = True) -> GameState:
    """Return a new state with ``responses[player_id] = payload``.

    Re-submitting before the phase moves on overwrites the player's own entry.
    """
    if not accepting:
        raise InvalidResponse(f'phase {state.phase} does not accept responses')
    if player_id not in set(eligible_ids):
        raise InvalidResponse(f'player {player_id} cannot respond in {state.phase}')
    responses = dict(state.responses)
    responses[player_id] = payload
    return replace(state, responses=responses)


def has_quorum(state: GameState, eligible_ids: Iterable[str]) -> bool:
    return set(eligible_ids) <= set(state.responses)


def missing_responders(state: GameState, eligible_ids: Iterable[str]) -> List[str]:
    return [pid for pid in eligible_ids if pid not in state.responses]


def prune_responses(state: GameState, active_ids: Iterable[str]) -> GameState:
    """Drop responses from players no longer in the room."""
    keep = set(active_ids)
    if set(state.responses) <= keep:
        return state
    return replace(state, responses={k: v for k, v in state.responses.items() if k in keep})


def tally(votes: Dict[str, Any]) -> Dict[str, int]:
    """Count votes per target. Null votes are ignored."""
    counts = Counter(target for target in votes.values() if target is not None)
    return dict(counts)


def top_candidates(counts: Dict[str, int]) -> List[str]:
    if not counts:
        return []
    max_votes = max(counts.values())
    return [pid for pid, n in counts.items() if n == max_votes]
