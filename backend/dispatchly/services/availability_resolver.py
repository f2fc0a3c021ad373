# backend/dispatchly/services/availability_resolver.py
"""
Availability Resolver for the Dispatchly scheduling engine.

Turns a provider's stored rules into the concrete open windows for one
calendar date:

1. keep rules for the date's weekday whose shape covers the date;
2. on a business holiday, keep only single-date overrides;
3. union the open windows (merging overlaps and touching edges);
4. subtract every applicable block window.

The result is sorted and pairwise non-overlapping. An empty list is a normal
answer ("not working that day"), never an error.
"""

from dataclasses import dataclass
from datetime import date, time
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.calendar_utils import day_of_week, format_minutes, time_from_minutes
from ..core.config import settings
from ..models.availability import AvailabilityRule
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class TimeWindow:
    """Half-open window [start_minute, end_minute) in minutes since midnight."""

    start_minute: int
    end_minute: int

    @property
    def start(self) -> time:
        return time_from_minutes(self.start_minute)

    @property
    def end(self) -> time:
        return time_from_minutes(self.end_minute)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def contains(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and end_minute <= self.end_minute

    def to_dict(self) -> Dict[str, str]:
        return {
            "start_time": format_minutes(self.start_minute),
            "end_time": format_minutes(self.end_minute),
        }


def merge_windows(windows: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Union of intervals; overlapping or touching intervals collapse into one."""
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(w for w in windows if w[0] < w[1]):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def subtract_windows(
    opens: Sequence[Tuple[int, int]], blocks: Sequence[Tuple[int, int]]
) -> List[Tuple[int, int]]:
    """Remove every block interval from the (already merged) open intervals."""
    result: List[Tuple[int, int]] = []
    merged_blocks = merge_windows(blocks)
    for open_start, open_end in opens:
        cursor = open_start
        for block_start, block_end in merged_blocks:
            if block_end <= cursor or block_start >= open_end:
                continue
            if block_start > cursor:
                result.append((cursor, block_start))
            cursor = max(cursor, block_end)
            if cursor >= open_end:
                break
        if cursor < open_end:
            result.append((cursor, open_end))
    return result


def resolve_windows(
    rules: Iterable[AvailabilityRule], on_date: date, is_holiday: bool
) -> List[TimeWindow]:
    """Pure resolution of already-loaded rules for one date."""
    applicable = [rule for rule in rules if rule.applies_on(on_date)]
    if is_holiday:
        applicable = [rule for rule in applicable if rule.is_single_date]

    opens = merge_windows((r.start_minute, r.end_minute) for r in applicable if r.is_available)
    blocks = [(r.start_minute, r.end_minute) for r in applicable if not r.is_available]
    return [TimeWindow(start, end) for start, end in subtract_windows(opens, blocks)]


class AvailabilityResolver(BaseService):
    """Resolves provider availability windows for calendar dates."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.settings_repository = RepositoryFactory.create_business_settings_repository(db)
        self.conflict_repository = RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("resolve")
    def resolve(self, provider_id: str, business_id: str, on_date: date) -> List[TimeWindow]:
        rules = self.availability_repository.get_rules_for_weekday(
            provider_id, business_id, day_of_week(on_date)
        )
        if not rules:
            return []
        holiday = self.settings_repository.is_holiday(business_id, on_date)
        return resolve_windows(rules, on_date, holiday)

    @BaseService.measure_operation("resolve_many")
    def resolve_many(
        self, provider_ids: Iterable[str], business_id: str, on_date: date
    ) -> Dict[str, List[TimeWindow]]:
        """Resolve several providers with one rule query and one holiday lookup."""
        ids = list(provider_ids)
        grouped = self.availability_repository.get_rules_for_providers_weekday(
            ids, business_id, day_of_week(on_date)
        )
        holiday = self.settings_repository.is_holiday(business_id, on_date)
        return {pid: resolve_windows(grouped.get(pid, []), on_date, holiday) for pid in ids}

    @BaseService.measure_operation("available_start_times")
    def available_start_times(
        self,
        provider_id: str,
        business_id: str,
        on_date: date,
        duration_minutes: int,
        step_minutes: Optional[int] = None,
    ) -> List[time]:
        """
        Start times on a fixed grid where a booking of ``duration_minutes``
        would fit inside availability without overlapping an active booking.
        """
        step = step_minutes or settings.slot_step_minutes
        windows = self.resolve(provider_id, business_id, on_date)
        if not windows:
            return []
        busy = [
            (b.start_minute, b.end_minute)
            for b in self.conflict_repository.get_bookings_for_conflict_check(
                provider_id, business_id, on_date
            )
        ]

        starts: List[time] = []
        for window in windows:
            # Grid is anchored at the window start, matching how dispatchers read a day
            candidate = window.start_minute
            while candidate + duration_minutes <= window.end_minute:
                end = candidate + duration_minutes
                if not any(candidate < b_end and b_start < end for b_start, b_end in busy):
                    starts.append(time_from_minutes(candidate))
                candidate += step
        return starts
