from datetime import datetime, timezone

from dispatchly.services.assignment_scoring import (
    NEUTRAL_RATING,
    CandidateSignals,
    ScoringWeights,
    rank_key,
    score_candidate,
)

WEIGHTS = ScoringWeights(
    rating_weight=0.5, workload_weight=10.0, week_workload_factor=0.25, specialization_bonus=20.0
)


def _score(**kwargs):
    signals = {"rating": 4.0, "same_day_bookings": 0, "week_bookings": 0, "skill_match": None}
    signals.update(kwargs)
    return score_candidate(CandidateSignals(**signals), WEIGHTS)


def test_better_rating_never_scores_lower():
    scores = [_score(rating=r) for r in (0.0, 1.5, 3.0, 4.5, 5.0)]
    assert scores == sorted(scores)


def test_more_workload_never_scores_higher():
    same_day = [_score(same_day_bookings=n, week_bookings=n) for n in range(5)]
    assert same_day == sorted(same_day, reverse=True)
    week = [_score(week_bookings=n) for n in range(5)]
    assert week == sorted(week, reverse=True)


def test_same_day_load_weighs_more_than_rest_of_week():
    assert _score(same_day_bookings=1, week_bookings=1) < _score(week_bookings=1)


def test_primary_skill_beats_secondary_beats_none():
    assert _score(skill_match="primary") > _score(skill_match="secondary") > _score()


def test_unrated_provider_scores_as_neutral():
    assert _score(rating=None) == _score(rating=NEUTRAL_RATING)


def test_rank_key_breaks_ties_by_priority_then_age():
    older = datetime(2028, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2029, 1, 1)
    assert rank_key(50.0, 0, None, "b") > rank_key(50.0, 1, None, "a")
    assert rank_key(50.0, 0, older, "z") < rank_key(50.0, 0, newer, "a")
    assert rank_key(60.0, 0, newer, "z") < rank_key(50.0, 9, older, "a")
