import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from puzzz.services.games import challenges
from puzzz.services.games.aggregator import tally, top_candidates


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def time_bonus(time_limit_ms: int, elapsed_ms: int) -> float:
    return max(0.0, (time_limit_ms - elapsed_ms) / 100)


def challenge_score(base_score: float, time_limit_ms: int, elapsed_ms: int) -> int:
    """Time-boxed challenge score: ``round(baseScore + timeBonus)``."""
    return round_half_up(base_score + time_bonus(time_limit_ms, elapsed_ms))


def score_challenge_round(challenge: Dict[str, Any], responses: Dict[str, Any],
                          eligible_ids: Iterable[str]) -> Dict[str, int]:
    """Score every eligible player for the current challenge.

    A player with no response, or an explicit null response, scores 0.
    """
    results = {}
    limit_ms = int(challenge['timeLimitMs'])
    for pid in eligible_ids:
        entry = responses.get(pid)
        if not entry or entry.get('response') is None:
            results[pid] = 0
            continue
        base = challenges.base_score(challenge, entry['response'])
        elapsed = int(entry.get('elapsedMs', limit_ms))
        results[pid] = challenge_score(base, limit_ms, elapsed)
    return results


def add_scores(scores: Dict[str, int], deltas: Dict[str, int]) -> Dict[str, int]:
    """Cumulative scores never decrease within a session."""
    out = dict(scores)
    for pid, delta in deltas.items():
        if delta < 0:
            raise ValueError(f'negative score delta for {pid}')
        out[pid] = out.get(pid, 0) + delta
    return out


@dataclass(frozen=True)
class VoteOutcome:
    tally: Dict[str, int]
    max_votes: int
    top_candidates: List[str]
    tie: bool
    suspected: Optional[str]
    caught: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'voteCounts': dict(self.tally),
            'maxVotes': self.max_votes,
            'topCandidates': list(self.top_candidates),
            'tie': self.tie,
            'suspectedImposter': self.suspected,
            'wasImposterCaught': self.caught,
        }


def resolve_imposter_vote(votes: Dict[str, Any], imposter_id: str,
                          display_order: Iterable[str] = ()) -> VoteOutcome:
    """Resolve an odd-one-out vote.

    More than one top candidate is a tie and the imposter is never caught on
    a tie. ``display_order`` (join order) only picks which tied candidate the
    UI shows as suspected.
    """
    counts = tally(votes)
    top = top_candidates(counts)
    max_votes = max(counts.values()) if counts else 0
    tie = len(top) != 1
    if tie:
        order = {pid: i for i, pid in enumerate(display_order)}
        ranked = sorted(top, key=lambda pid: order.get(pid, len(order)))
        suspected = ranked[0] if ranked else None
        caught = False
    else:
        suspected = top[0]
        caught = suspected == imposter_id
    return VoteOutcome(counts, max_votes, top, tie, suspected, caught)


def imposter_round_deltas(outcome: VoteOutcome, imposter_id: str,
                          active_ids: Iterable[str]) -> Dict[str, int]:
    """+1 to every non-imposter if caught, otherwise +2 to the imposter."""
    if outcome.caught:
        return {pid: 1 for pid in active_ids if pid != imposter_id}
    return {imposter_id: 2}


# Cat Conspiracy turn economy
ACTION_COST = {'assassinate': 3, 'coup': 7}
ACTION_INCOME = {'income': 1, 'foreign_aid': 2, 'tax': 3}
STEAL_AMOUNT = 2
FORCED_COUP_COINS = 10


def economy_deltas(action: str, actor_coins: int, target_coins: int = 0) -> Tuple[int, int, int]:
    """Return ``(actor_delta, target_delta, treasury_delta)`` for a resolved action."""
    if action in ACTION_INCOME:
        gain = ACTION_INCOME[action]
        return gain, 0, -gain
    if action == 'steal':
        stolen = min(STEAL_AMOUNT, target_coins)
        return stolen, -stolen, 0
    if action in ACTION_COST:
        cost = ACTION_COST[action]
        if actor_coins < cost:
            raise ValueError(f'{action} costs {cost} coins')
        return -cost, 0, cost
    return 0, 0, 0


def append_round_history(history: List[Dict[str, Any]], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(history or []) + [entry]
