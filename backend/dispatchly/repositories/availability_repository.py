# backend/dispatchly/repositories/availability_repository.py
"""
Availability Repository for the Dispatchly scheduling engine

Loads availability rules by provider and weekday. Shape filtering (which
rule applies on which date) is done by the resolver on the loaded rows so
the recurring, bounded and single-date semantics live in one place.
"""

from collections import defaultdict
import logging
from typing import Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityRule]):
    def __init__(self, db: Session):
        super().__init__(db, AvailabilityRule)

    def get_rules_for_weekday(
        self, provider_id: str, business_id: str, weekday: int
    ) -> List[AvailabilityRule]:
        """All rules (open and block) for one provider on one weekday."""
        try:
            return (
                self.db.query(AvailabilityRule)
                .filter(
                    AvailabilityRule.provider_id == provider_id,
                    AvailabilityRule.business_id == business_id,
                    AvailabilityRule.day_of_week == weekday,
                )
                .order_by(AvailabilityRule.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading rules for provider {provider_id}: {str(e)}")
            raise RepositoryException(f"Failed to load availability rules: {str(e)}")

    def get_rules_for_providers_weekday(
        self, provider_ids: Iterable[str], business_id: str, weekday: int
    ) -> Dict[str, List[AvailabilityRule]]:
        """Batch variant used when the selector evaluates many candidates."""
        ids = list(provider_ids)
        grouped: Dict[str, List[AvailabilityRule]] = defaultdict(list)
        if not ids:
            return grouped
        try:
            rows = (
                self.db.query(AvailabilityRule)
                .filter(
                    AvailabilityRule.provider_id.in_(ids),
                    AvailabilityRule.business_id == business_id,
                    AvailabilityRule.day_of_week == weekday,
                )
                .order_by(AvailabilityRule.provider_id, AvailabilityRule.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error batch loading availability rules: {str(e)}")
            raise RepositoryException(f"Failed to load availability rules: {str(e)}")
        for rule in rows:
            grouped[rule.provider_id].append(rule)
        return grouped

    def list_for_provider(self, provider_id: str, business_id: str) -> List[AvailabilityRule]:
        query = (
            self.db.query(AvailabilityRule)
            .filter(
                AvailabilityRule.provider_id == provider_id,
                AvailabilityRule.business_id == business_id,
            )
            .order_by(
                AvailabilityRule.day_of_week,
                AvailabilityRule.effective_date,
                AvailabilityRule.start_time,
            )
        )
        return self._execute_query(query)
