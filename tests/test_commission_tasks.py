from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

from app.models import CommissionPayout
from app.tasks.commission_tasks import calculate_commissions_task, previous_period
from tests.factories import make_order, make_user


def test_previous_period():
    assert previous_period(datetime(2025, 5, 1, 2, 0)) == "2025-04"
    assert previous_period(datetime(2025, 1, 1)) == "2024-12"


def run_task(db, **kwargs):
    with patch("app.tasks.commission_tasks.SessionLocal", return_value=db):
        try:
            return calculate_commissions_task.apply(kwargs=kwargs).get()
        finally:
            calculate_commissions_task._db = None


def test_task_calculates_requested_period(db):
    rep = make_user(db)
    make_order(db, rep, 1000)

    result = run_task(db, period="2025-04")

    assert result["status"] == "success"
    assert result["count"] == 1
    payout = db.query(CommissionPayout).one()
    assert payout.id in result["payout_ids"]
    assert payout.amount == Decimal("50.00")


def test_task_defaults_to_previous_month(db):
    with patch("app.tasks.commission_tasks.previous_period", return_value="2025-04"):
        result = run_task(db)

    assert result == {"status": "success", "period": "2025-04", "count": 0, "payout_ids": []}


def test_task_reports_invalid_period(db):
    result = run_task(db, period="2025/04")

    assert result["status"] == "error"
    assert result["message"] == "Invalid period format. Use YYYY-MM"
