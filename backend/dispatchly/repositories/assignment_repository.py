# backend/dispatchly/repositories/assignment_repository.py
"""Assignment history and audit feed persistence."""

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.assignment import AssignmentRecord
from ..models.audit_log import AuditLog
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AssignmentRepository(BaseRepository[AssignmentRecord]):
    def __init__(self, db: Session):
        super().__init__(db, AssignmentRecord)

    def list_for_booking(self, booking_id: str) -> List[AssignmentRecord]:
        query = (
            self.db.query(AssignmentRecord)
            .filter(AssignmentRecord.booking_id == booking_id)
            .order_by(AssignmentRecord.assigned_at)
        )
        return self._execute_query(query)


class AuditLogRepository(BaseRepository[AuditLog]):
    def __init__(self, db: Session):
        super().__init__(db, AuditLog)

    def write(self, entry: AuditLog) -> AuditLog:
        """Persist an entry inside a savepoint so a failure leaves the caller's work intact."""
        with self.db.begin_nested():
            self.db.add(entry)
            self.db.flush()
        return entry

    def list_recent(self, business_id: str, limit: int = 100) -> List[AuditLog]:
        query = (
            self.db.query(AuditLog)
            .filter(AuditLog.business_id == business_id)
            .order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)
