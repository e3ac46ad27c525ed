"""
Commission aggregation for a calendar month.

Pure functions over already-loaded orders and rule configs; no database
access. Amounts stay unrounded Decimals until ``build_payout_amounts``.
"""

import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, NamedTuple, Sequence, Set, Tuple

from app.core.exceptions import InvalidPeriodError
from app.models.user import UserRole, COMMISSIONABLE_ROLES
from app.services.commission_rules import RuleConfig, resolve_rule

PERIOD_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}")

CENT = Decimal("0.01")

DEFAULT_RATE_SOURCE = "default"
PARENT_SHARE_SOURCE = "parent_share"
MIXED_RATE_SOURCE = "mixed"


class CommissionBreakdown(NamedTuple):
    """Per-user results of one aggregation run, keyed by user id"""
    totals: Dict[str, Decimal]
    order_counts: Dict[str, int]
    rate_sources: Dict[str, Set[str]]

    def rate_source(self, user_id: str) -> str:
        """Single source name, or ``"mixed"`` when orders were paid at different rates"""
        sources = self.rate_sources.get(user_id) or {DEFAULT_RATE_SOURCE}
        if len(sources) == 1:
            return next(iter(sources))
        return MIXED_RATE_SOURCE


def parse_period(period: str) -> Tuple[datetime, datetime]:
    """
    Return the UTC bounds ``[start, end)`` of a ``YYYY-MM`` period.

    Bounds are naive datetimes in UTC, matching how order timestamps are
    stored.
    """
    if not isinstance(period, str) or not PERIOD_PATTERN.fullmatch(period):
        raise InvalidPeriodError(period)

    year, month = int(period[:4]), int(period[5:])
    if not 1 <= month <= 12 or year < 1:
        raise InvalidPeriodError(period)
    # End bound would fall past datetime.max
    if (year, month) == (9999, 12):
        raise InvalidPeriodError(period)

    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def aggregate_commissions(
    orders: Iterable,
    rules: Sequence[RuleConfig],
    default_rate: Decimal,
    parent_share: Decimal,
) -> CommissionBreakdown:
    """
    Accumulate unrounded commission per user id, including parent pass-through.

    ``order_counts`` counts only a user's own orders. ``rate_sources`` holds
    the kind of each winning rule (or ``"default"``), plus ``"parent_share"``
    for a parent credited from a sub-rep's orders.
    """
    totals: Dict[str, Decimal] = {}
    order_counts: Dict[str, int] = {}
    rate_sources: Dict[str, Set[str]] = {}

    for order in orders:
        rep = order.user
        if rep.role not in COMMISSIONABLE_ROLES:
            continue

        rule = resolve_rule(rules, order)
        rate = rule.rate_value if rule is not None else default_rate
        commission = _as_decimal(order.total) * rate

        totals[rep.id] = totals.get(rep.id, Decimal("0")) + commission
        order_counts[rep.id] = order_counts.get(rep.id, 0) + 1
        rate_sources.setdefault(rep.id, set()).add(rule.kind if rule is not None else DEFAULT_RATE_SOURCE)

        # Additive: the sub-rep keeps their full share
        if rep.role == UserRole.SUB_REP and rep.parent_id:
            totals[rep.parent_id] = totals.get(rep.parent_id, Decimal("0")) + commission * parent_share
            order_counts.setdefault(rep.parent_id, 0)
            rate_sources.setdefault(rep.parent_id, set()).add(PARENT_SHARE_SOURCE)

    return CommissionBreakdown(totals, order_counts, rate_sources)


def build_payout_amounts(totals: Dict[str, Decimal]) -> Dict[str, Decimal]:
    """Round each positive total to cents; users at zero or below get nothing."""
    amounts = {}
    for user_id, total in totals.items():
        if total > 0:
            amounts[user_id] = total.quantize(CENT, rounding=ROUND_HALF_UP)
    return amounts
