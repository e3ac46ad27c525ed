from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import InvalidPeriodError, ValidationError
from app.models.user import UserRole
from app.services.commission_engine import aggregate_commissions, build_payout_amounts, parse_period
from app.services.commission_rules import CategoryRule, FlatRateRule

DEFAULT_RATE = Decimal("0.05")
PARENT_SHARE = Decimal("0.20")


def user(user_id, role=UserRole.REP, parent_id=None):
    return SimpleNamespace(id=user_id, role=role, parent_id=parent_id)


def order(owner, total, categories=("Dressings",)):
    items = [SimpleNamespace(product=SimpleNamespace(category=c)) for c in categories]
    return SimpleNamespace(user=owner, total=Decimal(str(total)), items=items)


def payouts_for(orders, rules=()):
    breakdown = aggregate_commissions(orders, list(rules), DEFAULT_RATE, PARENT_SHARE)
    return build_payout_amounts(breakdown.totals)


class TestParsePeriod:
    def test_month_bounds(self):
        assert parse_period("2025-04") == (datetime(2025, 4, 1), datetime(2025, 5, 1))

    def test_december_rolls_into_next_year(self):
        assert parse_period("2024-12") == (datetime(2024, 12, 1), datetime(2025, 1, 1))

    @pytest.mark.parametrize("period", ["2025/04", "abcd-ef", "", "2025-4", "2025-04-01", " 2025-04", "2025-13", "2025-00", "0000-01", "9999-12"])
    def test_rejects_malformed_periods(self, period):
        with pytest.raises(InvalidPeriodError):
            parse_period(period)

    def test_last_representable_months(self):
        assert parse_period("9999-01") == (datetime(9999, 1, 1), datetime(9999, 2, 1))
        assert parse_period("9999-11") == (datetime(9999, 11, 1), datetime(9999, 12, 1))

    def test_rejects_non_strings(self):
        with pytest.raises(InvalidPeriodError):
            parse_period(None)

    def test_invalid_period_is_a_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_period("2025/04")
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid period format. Use YYYY-MM"


class TestAggregateCommissions:
    def test_single_rep_order_uses_default_rate(self):
        rep = user("rep-a")
        assert payouts_for([order(rep, 1000)]) == {"rep-a": Decimal("50.00")}

    def test_sub_rep_passes_twenty_percent_to_parent(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")

        amounts = payouts_for([order(sub_rep, 1000)])

        assert amounts == {"sub": Decimal("50.00"), "rep": Decimal("10.00")}

    def test_parent_share_is_added_to_parents_own_commission(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")

        amounts = payouts_for([order(rep, 200), order(sub_rep, 1000)])

        assert amounts["rep"] == Decimal("20.00")
        assert amounts["sub"] == Decimal("50.00")

    def test_sub_rep_without_parent_keeps_only_own_commission(self):
        sub_rep = user("sub", UserRole.SUB_REP)
        assert payouts_for([order(sub_rep, 300)]) == {"sub": Decimal("15.00")}

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.STAFF])
    def test_admin_and_staff_orders_never_earn(self, role):
        assert payouts_for([order(user("u", role), 5000)]) == {}

    def test_no_orders_no_payouts(self):
        assert payouts_for([]) == {}

    def test_order_of_iteration_does_not_change_totals(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")
        orders = [order(rep, "123.45"), order(sub_rep, "678.90"), order(rep, "0.99"), order(sub_rep, "10.01")]

        assert payouts_for(orders) == payouts_for(list(reversed(orders)))

    def test_rounds_only_when_building_payouts(self):
        rep = user("rep")
        # 0.005 per order: rounding each would give 0.03
        orders = [order(rep, "0.10") for _ in range(3)]

        totals = aggregate_commissions(orders, [], DEFAULT_RATE, PARENT_SHARE).totals

        assert totals["rep"] == Decimal("0.0150")
        assert build_payout_amounts(totals) == {"rep": Decimal("0.02")}

    def test_active_flat_rule_overrides_default(self):
        rep = user("rep")
        rule = FlatRateRule(default_rate=Decimal("0.10"))

        assert payouts_for([order(rep, 1000)], [rule]) == {"rep": Decimal("100.00")}

    def test_payout_sum_matches_order_commissions_plus_pass_through(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")
        orders = [order(rep, 400), order(sub_rep, 600)]

        totals = aggregate_commissions(orders, [], DEFAULT_RATE, PARENT_SHARE).totals

        expected = Decimal("400") * DEFAULT_RATE + Decimal("600") * DEFAULT_RATE * (1 + PARENT_SHARE)
        assert sum(totals.values()) == expected

    def test_counts_only_own_orders_per_user(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")

        breakdown = aggregate_commissions(
            [order(rep, 100), order(sub_rep, 200), order(sub_rep, 300)], [], DEFAULT_RATE, PARENT_SHARE
        )

        assert breakdown.order_counts == {"rep": 1, "sub": 2}

    def test_rate_source_names_the_winning_rule(self):
        rep = user("rep")
        sub_rep = user("sub", UserRole.SUB_REP, parent_id="rep")
        other = user("other")
        rules = [CategoryRule(rate="0.15", categories=["Devices"], roles=[UserRole.SUB_REP])]

        breakdown = aggregate_commissions(
            [order(sub_rep, 100, categories=["Devices"]), order(other, 100)], rules, DEFAULT_RATE, PARENT_SHARE
        )

        assert breakdown.rate_source("sub") == "category"
        assert breakdown.rate_source("other") == "default"
        assert breakdown.rate_source("rep") == "parent_share"

    def test_rate_source_is_mixed_across_different_rules(self):
        rep = user("rep")
        rules = [CategoryRule(rate="0.15", categories=["Devices"])]

        breakdown = aggregate_commissions(
            [order(rep, 100, categories=["Devices"]), order(rep, 100)], rules, DEFAULT_RATE, PARENT_SHARE
        )

        assert breakdown.rate_source("rep") == "mixed"


class TestBuildPayoutAmounts:
    def test_rounds_half_up_to_cents(self):
        assert build_payout_amounts({"a": Decimal("12.345")}) == {"a": Decimal("12.35")}

    def test_skips_non_positive_totals(self):
        assert build_payout_amounts({"a": Decimal("0"), "b": Decimal("-1")}) == {}
