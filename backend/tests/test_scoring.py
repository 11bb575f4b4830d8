import pytest

from puzzz.services.games import challenges
from puzzz.services.games.scoring import (
    add_scores,
    append_round_history,
    challenge_score,
    economy_deltas,
    imposter_round_deltas,
    resolve_imposter_vote,
    round_half_up,
    score_challenge_round,
    time_bonus,
)


def test_imposter_vote_single_top_candidate_not_imposter():
    votes = {'p1': 'p3', 'p2': 'p3', 'p3': 'p1'}
    outcome = resolve_imposter_vote(votes, 'p1', ['p1', 'p2', 'p3'])
    assert outcome.tally == {'p3': 2, 'p1': 1}
    assert outcome.max_votes == 2
    assert outcome.top_candidates == ['p3']
    assert outcome.tie is False
    assert outcome.suspected == 'p3'
    assert outcome.caught is False
    assert imposter_round_deltas(outcome, 'p1', ['p1', 'p2', 'p3']) == {'p1': 2}


def test_imposter_caught_rewards_everyone_else():
    votes = {'p1': 'p3', 'p2': 'p3', 'p3': 'p1'}
    outcome = resolve_imposter_vote(votes, 'p3', ['p1', 'p2', 'p3'])
    assert outcome.caught is True
    assert imposter_round_deltas(outcome, 'p3', ['p1', 'p2', 'p3']) == {'p1': 1, 'p2': 1}


def test_tie_is_never_caught_even_if_imposter_is_top():
    votes = {'p1': 'p2', 'p2': 'p1'}
    outcome = resolve_imposter_vote(votes, 'p2', ['p1', 'p2'])
    assert outcome.tie is True
    assert outcome.caught is False
    assert sorted(outcome.top_candidates) == ['p1', 'p2']
    # display only: the first tied candidate in join order
    assert outcome.suspected == 'p1'
    assert imposter_round_deltas(outcome, 'p2', ['p1', 'p2']) == {'p2': 2}


def test_empty_tally_counts_as_tie():
    outcome = resolve_imposter_vote({'p1': None, 'p2': None}, 'p1', ['p1', 'p2'])
    assert outcome.tally == {}
    assert outcome.max_votes == 0
    assert outcome.tie is True
    assert outcome.suspected is None
    assert outcome.caught is False


def test_vote_outcome_dict_uses_client_keys():
    outcome = resolve_imposter_vote({'a': 'b'}, 'b', ['a', 'b'])
    data = outcome.to_dict()
    assert data['suspectedImposter'] == 'b'
    assert data['wasImposterCaught'] is True
    assert data['voteCounts'] == {'b': 1}


def test_challenge_score_fast_correct_answer():
    assert challenge_score(1000, 15000, 5000) == 1100


def test_challenge_score_late_answer_gets_no_negative_bonus():
    assert time_bonus(10000, 12000) == 0
    assert challenge_score(700, 10000, 12000) == 700
    assert challenge_score(700, 10000, 10000) == 700


def test_rounding_is_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4) == 2
    # 0 + 0.5 bonus rounds up, unlike Python's banker's rounding
    assert challenge_score(0, 10000, 9950) == 1


def test_score_challenge_round_null_and_missing_score_zero():
    challenge = {'id': 'quick_math', 'type': 'math', 'timeLimitMs': 12000, 'solution': 7}
    responses = {
        'a': {'response': 7, 'elapsedMs': 2000},
        'b': {'response': None, 'elapsedMs': 12000},
        'c': {'response': 5, 'elapsedMs': 1000},
    }
    results = score_challenge_round(challenge, responses, ['a', 'b', 'c', 'd'])
    assert results == {'a': 1100, 'b': 0, 'c': 110, 'd': 0}


def test_base_scores_for_closeness_challenges():
    tap = {'type': 'tap_counter', 'solution': 10}
    assert challenges.base_score(tap, 10) == 1000
    assert challenges.base_score(tap, 8) == 800
    assert challenges.base_score(tap, 30) == 0
    count = {'type': 'counting', 'solution': 4}
    assert challenges.base_score(count, 6) == 700
    hold = {'type': 'hold_timing', 'solution': 3000}
    assert challenges.base_score(hold, 3150) == 1000
    assert challenges.base_score(hold, 4000) == 800


def test_base_score_reaction_and_timing():
    assert challenges.base_score({'type': 'reaction_time', 'solution': True}, 300) == 850
    assert challenges.base_score({'type': 'reaction_time', 'solution': True}, 5000) == 200
    zone = {'start': 40.0, 'end': 60.0}
    timing = {'type': 'timing', 'solution': zone}
    assert challenges.base_score(timing, 50) == 1000
    assert challenges.base_score(timing, 41) == 820
    assert challenges.base_score(timing, 61) == 0


def test_unknown_challenge_type_scores_half():
    assert challenges.base_score({'type': 'mystery', 'solution': None}, 'x') == 500


def test_add_scores_rejects_negative_delta():
    assert add_scores({'a': 2}, {'a': 1, 'b': 3}) == {'a': 3, 'b': 3}
    with pytest.raises(ValueError):
        add_scores({'a': 2}, {'a': -1})


def test_economy_deltas():
    assert economy_deltas('income', 2) == (1, 0, -1)
    assert economy_deltas('tax', 2) == (3, 0, -3)
    assert economy_deltas('steal', 2, target_coins=1) == (1, -1, 0)
    assert economy_deltas('coup', 7) == (-7, 0, 7)
    with pytest.raises(ValueError):
        economy_deltas('assassinate', 2)


def test_round_history_is_copied():
    history = [{'round': 1}]
    updated = append_round_history(history, {'round': 2})
    assert updated == [{'round': 1}, {'round': 2}]
    assert history == [{'round': 1}]
