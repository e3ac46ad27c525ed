import logging
from datetime import datetime
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from app.tasks.celery_app import celery_app
from app.core.database import SessionLocal
from app.core.exceptions import AppException
from app.services.commission_service import CommissionService

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Base task with database session"""
    _db = None

    @property
    def db(self) -> Session:
        if self._db is None:
            self._db = SessionLocal()
        return self._db

    def after_return(self, *args, **kwargs):
        if self._db is not None:
            self._db.close()
            self._db = None


def previous_period(now: Optional[datetime] = None) -> str:
    """``YYYY-MM`` of the month before ``now`` (UTC)"""
    now = now or datetime.utcnow()
    if now.month == 1:
        return f"{now.year - 1}-12"
    return f"{now.year:04d}-{now.month - 1:02d}"


@celery_app.task(base=DatabaseTask, bind=True, name="app.tasks.commission_tasks.calculate_commissions_task")
def calculate_commissions_task(self, period: Optional[str] = None):
    """Calculate commissions for ``period``, defaulting to last month"""
    period = period or previous_period()

    try:
        payouts = CommissionService.calculate_commissions(db=self.db, period=period)
    except AppException as e:
        logger.error("Scheduled commission calculation for %s failed: %s", period, e.message)
        return {"status": "error", "period": period, "message": e.message}

    return {
        "status": "success",
        "period": period,
        "count": len(payouts),
        "payout_ids": [p.id for p in payouts]
    }
