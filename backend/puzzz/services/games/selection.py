import random
from typing import Iterable, List, Optional, Sequence

from puzzz.errors import InvalidTransition


def shuffled(items: Iterable, rng: random.Random) -> list:
    """Shuffled copy of ``items``."""
    out = list(items)
    rng.shuffle(out)
    return out


def initial_order(player_ids: Iterable[str], rng: random.Random) -> List[str]:
    """Turn order for a game session. Computed once at game start."""
    return shuffled(player_ids, rng)


def next_turn(order: Sequence[str], current_index: int) -> int:
    if not order:
        raise InvalidTransition('turn order is empty')
    return (current_index + 1) % len(order)


def next_active_turn(order: Sequence[str], current_index: int, active_ids: Iterable[str]) -> int:
    """Like next_turn, but skips entries for players who have left."""
    active = set(active_ids)
    idx = current_index
    for _ in range(len(order)):
        idx = next_turn(order, idx)
        if order[idx] in active:
            return idx
    return next_turn(order, current_index)


def pick_eligible_target(
    player_ids: Iterable[str],
    exclude: Iterable[Optional[str]],
    rng: random.Random,
    eliminated: Iterable[str] = (),
) -> str:
    """Uniform choice among players not excluded and not eliminated."""
    blocked = set(exclude) | set(eliminated)
    candidates = [pid for pid in player_ids if pid not in blocked]
    if not candidates:
        raise InvalidTransition('no eligible target')
    return candidates[rng.randrange(len(candidates))]
