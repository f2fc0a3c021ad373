# backend/dispatchly/services/assignment_scoring.py
"""
Provider scoring for automatic assignment.

    score = rating_weight * normalized_rating            (0-100 scale)
          - workload_weight * (same_day + week_factor * rest_of_week)
          + specialization_bonus (full for a primary skill, half otherwise)

Weights come from settings. The properties that matter, and that tests
assert, are monotonic: a better rating never lowers the score and more
workload never raises it. Ranking is score first, then the provider's
manual priority, then the oldest provider.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from ..core.config import settings
from ..core.constants import MAX_PROVIDER_RATING
from ..models.provider import Provider

# Unrated providers are scored at the middle of the scale
NEUTRAL_RATING = MAX_PROVIDER_RATING / 2


@dataclass(frozen=True)
class ScoringWeights:
    rating_weight: float
    workload_weight: float
    week_workload_factor: float
    specialization_bonus: float

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            rating_weight=settings.assignment_rating_weight,
            workload_weight=settings.assignment_workload_weight,
            week_workload_factor=settings.assignment_week_workload_factor,
            specialization_bonus=settings.assignment_specialization_bonus,
        )


@dataclass(frozen=True)
class CandidateSignals:
    rating: Optional[float]
    same_day_bookings: int
    week_bookings: int
    skill_match: Optional[str] = None  # 'primary' | 'secondary' | None


def skill_match_for(provider: Provider, service_category: Optional[str]) -> Optional[str]:
    if not service_category:
        return None
    wanted = service_category.strip().lower()
    best: Optional[str] = None
    for skill in provider.skills or []:
        if (skill.category or "").strip().lower() != wanted:
            continue
        if skill.is_primary:
            return "primary"
        best = "secondary"
    return best


def score_candidate(signals: CandidateSignals, weights: ScoringWeights) -> float:
    rating = NEUTRAL_RATING if signals.rating is None else float(signals.rating)
    rating = max(0.0, min(float(MAX_PROVIDER_RATING), rating))
    rating_component = weights.rating_weight * (rating / MAX_PROVIDER_RATING * 100)

    rest_of_week = max(0, signals.week_bookings - signals.same_day_bookings)
    workload = signals.same_day_bookings + weights.week_workload_factor * rest_of_week
    workload_component = weights.workload_weight * workload

    bonus = 0.0
    if signals.skill_match == "primary":
        bonus = weights.specialization_bonus
    elif signals.skill_match == "secondary":
        bonus = weights.specialization_bonus / 2

    return round(rating_component - workload_component + bonus, 6)


def rank_key(score: float, priority: int, created_at: Optional[datetime], provider_id: str) -> Tuple[Any, ...]:
    """Sort key: higher score, then higher priority, then oldest provider, then id."""
    created = created_at or datetime.max
    if created.tzinfo is not None:
        created = created.replace(tzinfo=None)
    return (-score, -(priority or 0), created, provider_id)


def rank_candidates(candidates: Iterable[Any]) -> List[Any]:
    """Order objects exposing score/priority/created_at/provider_id by rank_key."""
    return sorted(
        candidates,
        key=lambda c: rank_key(c.score, c.priority, c.created_at, c.provider_id),
    )
