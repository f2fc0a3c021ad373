# backend/dispatchly/services/assignment_selector.py
"""
Assignment Selector for the Dispatchly scheduling engine.

Picks the best provider for an unassigned booking and claims it with a
compare-and-swap write. Three entry points share one pipeline:

    auto_assign  - system picks the top-ranked eligible provider
    grab         - a provider claims a job from the unassigned pool
    assign_preferred - a series' preferred provider, if still eligible

Hard filters run in a fixed order and each yields a reason code, so the
read-only preview can explain why a provider was skipped:

    PROVIDER_INACTIVE, AUTO_ASSIGN_OPT_OUT (auto only), EXCLUDED_FROM_SERVICE,
    DURATION_EXCEEDS_MAX, OUTSIDE_AVAILABILITY, OVERLAP

Losing the race for a booking is not an error: the conditional UPDATE
affects zero rows and the outcome is ALREADY_ASSIGNED. There is no retry.
The claim also re-reads the provider's calendar after writing: if another
booking landed on them meanwhile, the claim rolls back and auto_assign moves
on to the next candidate.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.calendar_utils import iso_week_bounds, minutes_of
from ..core.exceptions import ValidationException
from ..events.scheduling_events import EventKind, SchedulingEvent
from ..models.booking import ASSIGNABLE_BOOKING_STATUSES, AssignmentSource, Booking
from ..models.provider import Provider
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .assignment_scoring import (
    CandidateSignals,
    ScoringWeights,
    rank_candidates,
    score_candidate,
    skill_match_for,
)
from .availability_resolver import AvailabilityResolver
from .base import BaseService
from .business_settings_service import BusinessSettingsService, SchedulingOptions
from .conflict_checker import ConflictChecker, evaluate_fit
from .notification_hook import NotificationHook

logger = logging.getLogger(__name__)


class EligibilityReason(str, Enum):
    PROVIDER_INACTIVE = "PROVIDER_INACTIVE"
    AUTO_ASSIGN_OPT_OUT = "AUTO_ASSIGN_OPT_OUT"
    EXCLUDED_FROM_SERVICE = "EXCLUDED_FROM_SERVICE"
    DURATION_EXCEEDS_MAX = "DURATION_EXCEEDS_MAX"
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    OVERLAP = "OVERLAP"


class OutcomeReason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_ASSIGNED = "ALREADY_ASSIGNED"
    NO_ELIGIBLE_PROVIDER = "NO_ELIGIBLE_PROVIDER"
    GRAB_DISABLED = "GRAB_DISABLED"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    PROVIDER_INELIGIBLE = "PROVIDER_INELIGIBLE"


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"
    LOST = "lost"
    CLASH = "clash"


class _ProviderClash(Exception):
    def __init__(self, booking_ids: List[str]):
        super().__init__(f"overlaps {booking_ids}")
        self.booking_ids = booking_ids


@dataclass
class CandidateEvaluation:
    provider_id: str
    provider_name: str
    eligible: bool
    reasons: List[EligibilityReason]
    score: float
    priority: int
    created_at: Optional[datetime]

    def to_dict(self) -> Dict[str, object]:
        return {
            "provider_id": self.provider_id,
            "provider_name": self.provider_name,
            "eligible": self.eligible,
            "reasons": [r.value for r in self.reasons],
            "score": self.score,
            "priority": self.priority,
        }


@dataclass
class AssignmentOutcome:
    booking_id: str
    assigned: bool
    provider_id: Optional[str] = None
    source: Optional[AssignmentSource] = None
    score: Optional[float] = None
    reason: Optional[OutcomeReason] = None
    ineligible_reasons: List[EligibilityReason] = field(default_factory=list)


@dataclass(frozen=True)
class JobRequest:
    """What is being placed: enough of a booking to evaluate candidates."""

    business_id: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    service_id: Optional[str] = None
    service_category: Optional[str] = None
    exclude_booking_id: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "JobRequest":
        return cls(
            business_id=booking.business_id,
            scheduled_date=booking.scheduled_date,
            scheduled_time=booking.scheduled_time,
            duration_minutes=int(booking.duration_minutes),
            service_id=booking.service_id,
            service_category=booking.service_category,
            exclude_booking_id=booking.id,
        )


class AssignmentSelector(BaseService):
    def __init__(
        self,
        db: Session,
        notification_hook: Optional[NotificationHook] = None,
        weights: Optional[ScoringWeights] = None,
    ):
        super().__init__(db)
        self.resolver = AvailabilityResolver(db)
        self.conflict_checker = ConflictChecker(db, resolver=self.resolver)
        self.settings_service = BusinessSettingsService(db)
        self.notification_hook = notification_hook or NotificationHook(db)
        self.weights = weights or ScoringWeights.from_settings()
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.provider_repository = RepositoryFactory.create_provider_repository(db)
        self.conflict_repository = RepositoryFactory.create_conflict_checker_repository(db)
        self.assignment_repository = RepositoryFactory.create_assignment_repository(db)

    # Evaluation

    def evaluate_candidates(
        self,
        request: JobRequest,
        providers: Sequence[Provider],
        *,
        source: AssignmentSource,
        options: Optional[SchedulingOptions] = None,
    ) -> List[CandidateEvaluation]:
        """Apply hard filters and score every provider; ordered by rank."""
        if request.duration_minutes <= 0:
            raise ValidationException(
                "Duration must be a positive number of minutes", code="INVALID_DURATION"
            )
        options = options or self.settings_service.get_scheduling_options(request.business_id)
        excluded = (
            self.provider_repository.get_excluded_provider_ids(request.service_id)
            if request.service_id
            else set()
        )
        provider_ids = [p.id for p in providers]
        windows = self.resolver.resolve_many(
            provider_ids, request.business_id, request.scheduled_date
        )
        week_start, week_end = iso_week_bounds(request.scheduled_date)
        bookings = self.conflict_repository.get_bookings_for_providers(
            provider_ids, request.business_id, week_start, week_end
        )

        start = minutes_of(request.scheduled_time)
        end = start + request.duration_minutes
        evaluations: List[CandidateEvaluation] = []
        for provider in providers:
            week = [b for b in bookings.get(provider.id, []) if b.id != request.exclude_booking_id]
            same_day = [b for b in week if b.scheduled_date == request.scheduled_date]

            reasons: List[EligibilityReason] = []
            if not provider.is_active:
                reasons.append(EligibilityReason.PROVIDER_INACTIVE)
            if source == AssignmentSource.AUTO and not provider.accepts_auto_assign:
                reasons.append(EligibilityReason.AUTO_ASSIGN_OPT_OUT)
            if provider.id in excluded:
                reasons.append(EligibilityReason.EXCLUDED_FROM_SERVICE)
            if (
                options.max_minutes_per_booking is not None
                and request.duration_minutes > options.max_minutes_per_booking
            ):
                reasons.append(EligibilityReason.DURATION_EXCEEDS_MAX)
            fit = evaluate_fit(windows.get(provider.id, []), same_day, start, end)
            if not fit.ok:
                reasons.append(EligibilityReason(fit.reason.value))

            score = score_candidate(
                CandidateSignals(
                    rating=float(provider.rating) if provider.rating is not None else None,
                    same_day_bookings=len(same_day),
                    week_bookings=len(week),
                    skill_match=skill_match_for(provider, request.service_category),
                ),
                self.weights,
            )
            evaluations.append(
                CandidateEvaluation(
                    provider_id=provider.id,
                    provider_name=provider.full_name,
                    eligible=not reasons,
                    reasons=reasons,
                    score=score,
                    priority=int(provider.priority or 0),
                    created_at=provider.created_at,
                )
            )

        eligible = rank_candidates(e for e in evaluations if e.eligible)
        ineligible = rank_candidates(e for e in evaluations if not e.eligible)
        return eligible + ineligible

    @BaseService.measure_operation("preview_eligibility")
    def preview_eligibility(
        self,
        business_id: str,
        on_date: date,
        start_time: time,
        duration_minutes: int,
        service_id: Optional[str] = None,
        service_category: Optional[str] = None,
    ) -> List[CandidateEvaluation]:
        """Read-only: who could take a job like this, and why not the others."""
        if service_id and not service_category:
            service = self.provider_repository.get_service(service_id, business_id)
            service_category = service.category if service else None
        request = JobRequest(
            business_id=business_id,
            scheduled_date=on_date,
            scheduled_time=start_time,
            duration_minutes=int(duration_minutes),
            service_id=service_id,
            service_category=service_category,
        )
        providers = self.provider_repository.list_for_business(business_id)
        return self.evaluate_candidates(request, providers, source=AssignmentSource.AUTO)

    def preview_for_booking(
        self, booking_id: str, business_id: str
    ) -> Optional[List[CandidateEvaluation]]:
        """Preview for an existing booking; None when the booking is not in scope."""
        booking = self.booking_repository.get_scoped(booking_id, business_id)
        if booking is None:
            return None
        providers = self.provider_repository.list_for_business(business_id)
        return self.evaluate_candidates(
            JobRequest.from_booking(booking), providers, source=AssignmentSource.AUTO
        )

    # Commit paths

    def _load_assignable(self, booking_id: str, business_id: str, outcome_source: AssignmentSource):
        booking = self.booking_repository.get_scoped(booking_id, business_id)
        if booking is None or booking.status not in ASSIGNABLE_BOOKING_STATUSES:
            return None, AssignmentOutcome(
                booking_id=booking_id, assigned=False, reason=OutcomeReason.NOT_FOUND
            )
        if booking.provider_id is not None:
            prometheus_metrics.record_assignment(outcome_source.value, "already_assigned")
            return None, AssignmentOutcome(
                booking_id=booking_id,
                assigned=False,
                provider_id=booking.provider_id,
                reason=OutcomeReason.ALREADY_ASSIGNED,
            )
        return booking, None

    def _claim(
        self,
        booking: Booking,
        evaluation: CandidateEvaluation,
        source: AssignmentSource,
        now: datetime,
    ) -> "ClaimStatus":
        """
        Conditional write plus history row, committed together.

        The provider row is locked first, and after the write the provider's
        calendar is checked again: a different booking placed on them since
        ranking rolls the claim back as CLASH.
        """
        try:
            with self.transaction():
                self.provider_repository.lock_provider(evaluation.provider_id)
                updated = self.booking_repository.assign_provider_if_unassigned(
                    booking.id, booking.business_id, evaluation.provider_id, source.value, now
                )
                if updated == 0:
                    return ClaimStatus.LOST
                clashes = self.conflict_checker.find_overlaps(
                    evaluation.provider_id,
                    booking.business_id,
                    booking.scheduled_date,
                    booking.scheduled_time,
                    int(booking.duration_minutes),
                    exclude_booking_id=booking.id,
                )
                if clashes:
                    raise _ProviderClash([b.id for b in clashes])
                self.assignment_repository.create(
                    booking_id=booking.id,
                    business_id=booking.business_id,
                    provider_id=evaluation.provider_id,
                    source=source.value,
                    score=evaluation.score,
                    assigned_at=now,
                )
        except _ProviderClash as clash:
            self.logger.info(
                f"Claim of booking {booking.id} by {evaluation.provider_id} rolled back: "
                f"overlaps {clash.booking_ids}"
            )
            self.db.refresh(booking)
            return ClaimStatus.CLASH
        return ClaimStatus.CLAIMED

    def _emit(
        self,
        kind: EventKind,
        booking: Booking,
        now: datetime,
        summary: str,
        provider: Optional[Provider] = None,
        **payload: object,
    ) -> None:
        self.notification_hook.notify(
            SchedulingEvent(
                kind=kind,
                business_id=booking.business_id,
                entity_type="booking",
                entity_id=booking.id,
                occurred_at=now,
                summary=summary,
                provider_id=provider.id if provider else None,
                provider_name=provider.full_name if provider else None,
                provider_email=provider.email if provider else None,
                provider_phone=provider.phone if provider else None,
                payload={
                    "scheduled_date": booking.scheduled_date,
                    "scheduled_time": booking.scheduled_time,
                    "service_name": booking.service_name,
                    "customer_name": booking.customer_name,
                    **payload,
                },
            )
        )

    @BaseService.measure_operation("auto_assign")
    def auto_assign(self, booking_id: str, business_id: str, now: datetime) -> AssignmentOutcome:
        booking, early = self._load_assignable(booking_id, business_id, AssignmentSource.AUTO)
        if early is not None:
            return early

        providers = self.provider_repository.list_active_for_business(business_id)
        by_id = {p.id: p for p in providers}
        evaluations = self.evaluate_candidates(
            JobRequest.from_booking(booking), providers, source=AssignmentSource.AUTO
        )
        eligible = [e for e in evaluations if e.eligible]

        for candidate in eligible:
            # Re-check the winner against the latest calendar before writing
            fit = self.conflict_checker.fits(
                candidate.provider_id,
                business_id,
                booking.scheduled_date,
                booking.scheduled_time,
                int(booking.duration_minutes),
                exclude_booking_id=booking.id,
            )
            if not fit.ok:
                self.logger.info(
                    f"Candidate {candidate.provider_id} no longer fits booking {booking.id}: "
                    f"{fit.reason.value}"
                )
                continue

            claim = self._claim(booking, candidate, AssignmentSource.AUTO, now)
            if claim == ClaimStatus.CLASH:
                continue
            if claim == ClaimStatus.LOST:
                prometheus_metrics.record_assignment(AssignmentSource.AUTO.value, "already_assigned")
                return AssignmentOutcome(
                    booking_id=booking_id, assigned=False, reason=OutcomeReason.ALREADY_ASSIGNED
                )

            provider = by_id[candidate.provider_id]
            prometheus_metrics.record_assignment(AssignmentSource.AUTO.value, "assigned")
            self.log_operation(
                "auto_assign", booking_id=booking_id, provider_id=provider.id, score=candidate.score
            )
            self._emit(
                EventKind.ASSIGNED,
                booking,
                now,
                f"{booking.service_name} on {booking.scheduled_date} assigned to "
                f"{provider.full_name}",
                provider=provider,
                source=AssignmentSource.AUTO.value,
                score=candidate.score,
            )
            return AssignmentOutcome(
                booking_id=booking_id,
                assigned=True,
                provider_id=provider.id,
                source=AssignmentSource.AUTO,
                score=candidate.score,
            )

        prometheus_metrics.record_assignment(AssignmentSource.AUTO.value, "no_eligible_provider")
        self._emit(
            EventKind.UNASSIGNED,
            booking,
            now,
            f"No eligible provider for {booking.service_name} on {booking.scheduled_date}",
            reason=OutcomeReason.NO_ELIGIBLE_PROVIDER.value,
        )
        return AssignmentOutcome(
            booking_id=booking_id, assigned=False, reason=OutcomeReason.NO_ELIGIBLE_PROVIDER
        )

    def _assign_single(
        self,
        booking_id: str,
        provider_id: str,
        business_id: str,
        now: datetime,
        source: AssignmentSource,
    ) -> AssignmentOutcome:
        booking, early = self._load_assignable(booking_id, business_id, source)
        if early is not None:
            return early

        provider = self.provider_repository.get_scoped(provider_id, business_id)
        if provider is None:
            return AssignmentOutcome(
                booking_id=booking_id, assigned=False, reason=OutcomeReason.PROVIDER_NOT_FOUND
            )

        evaluation = self.evaluate_candidates(
            JobRequest.from_booking(booking), [provider], source=source
        )[0]
        if not evaluation.eligible:
            prometheus_metrics.record_assignment(source.value, "ineligible")
            return AssignmentOutcome(
                booking_id=booking_id,
                assigned=False,
                provider_id=provider_id,
                reason=OutcomeReason.PROVIDER_INELIGIBLE,
                ineligible_reasons=evaluation.reasons,
            )

        claim = self._claim(booking, evaluation, source, now)
        if claim == ClaimStatus.CLASH:
            prometheus_metrics.record_assignment(source.value, "ineligible")
            return AssignmentOutcome(
                booking_id=booking_id,
                assigned=False,
                provider_id=provider_id,
                reason=OutcomeReason.PROVIDER_INELIGIBLE,
                ineligible_reasons=[EligibilityReason.OVERLAP],
            )
        if claim == ClaimStatus.LOST:
            prometheus_metrics.record_assignment(source.value, "already_assigned")
            return AssignmentOutcome(
                booking_id=booking_id, assigned=False, reason=OutcomeReason.ALREADY_ASSIGNED
            )

        prometheus_metrics.record_assignment(source.value, "assigned")
        kind = EventKind.GRABBED if source == AssignmentSource.GRAB else EventKind.ASSIGNED
        verb = "claimed by" if source == AssignmentSource.GRAB else "assigned to"
        self._emit(
            kind,
            booking,
            now,
            f"{booking.service_name} on {booking.scheduled_date} {verb} {provider.full_name}",
            provider=provider,
            source=source.value,
        )
        return AssignmentOutcome(
            booking_id=booking_id,
            assigned=True,
            provider_id=provider_id,
            source=source,
            score=evaluation.score,
        )

    @BaseService.measure_operation("grab")
    def grab(
        self, booking_id: str, provider_id: str, business_id: str, now: datetime
    ) -> AssignmentOutcome:
        """A provider claims a job from the unassigned pool."""
        options = self.settings_service.get_scheduling_options(business_id)
        if not options.providers_can_grab:
            return AssignmentOutcome(
                booking_id=booking_id, assigned=False, reason=OutcomeReason.GRAB_DISABLED
            )
        return self._assign_single(booking_id, provider_id, business_id, now, AssignmentSource.GRAB)

    @BaseService.measure_operation("assign_preferred")
    def assign_preferred(
        self, booking_id: str, provider_id: str, business_id: str, now: datetime
    ) -> AssignmentOutcome:
        """Give a generated booking to its series' preferred provider when possible."""
        return self._assign_single(
            booking_id, provider_id, business_id, now, AssignmentSource.MANUAL
        )
