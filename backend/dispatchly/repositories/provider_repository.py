# backend/dispatchly/repositories/provider_repository.py
"""Provider, skill and service-exclusion reads used by the assignment selector."""

import logging
from typing import List, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.provider import Provider, ProviderStatus
from ..models.service import ServiceOffering, ServiceProviderExclusion
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ProviderRepository(BaseRepository[Provider]):
    def __init__(self, db: Session):
        super().__init__(db, Provider)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Provider.skills))

    def list_for_business(self, business_id: str) -> List[Provider]:
        """Every provider of the business, active or not, oldest first."""
        query = self._apply_eager_loading(
            self.db.query(Provider)
            .filter(Provider.business_id == business_id)
            .order_by(Provider.created_at, Provider.id)
        )
        return self._execute_query(query)

    def list_active_for_business(self, business_id: str) -> List[Provider]:
        query = self._apply_eager_loading(
            self.db.query(Provider)
            .filter(
                Provider.business_id == business_id,
                Provider.status == ProviderStatus.ACTIVE.value,
            )
            .order_by(Provider.created_at, Provider.id)
        )
        return self._execute_query(query)

    def get_excluded_provider_ids(self, service_id: str) -> Set[str]:
        try:
            rows = (
                self.db.query(ServiceProviderExclusion.provider_id)
                .filter(ServiceProviderExclusion.service_id == service_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading exclusions for service {service_id}: {str(e)}")
            raise RepositoryException(f"Failed to load service exclusions: {str(e)}")
        return {row[0] for row in rows}

    def get_service(self, service_id: str, business_id: str) -> ServiceOffering | None:
        try:
            return (
                self.db.query(ServiceOffering)
                .filter(ServiceOffering.id == service_id, ServiceOffering.business_id == business_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading service {service_id}: {str(e)}")
            raise RepositoryException(f"Failed to load service: {str(e)}")

    def lock_provider(self, provider_id: str) -> Provider | None:
        """
        Row-lock the provider so claims touching their calendar serialize.

        SQLite has a single writer, so the plain read is enough there.
        """
        try:
            query = self.db.query(Provider).filter(Provider.id == provider_id)
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking provider {provider_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock provider: {str(e)}")
