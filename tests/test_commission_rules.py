from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.models.user import UserRole
from app.services.commission_rules import (
    CategoryRule,
    FlatRateRule,
    MinimumOrderRule,
    interpret_rules,
    parse_rule_config,
    resolve_rate,
)

DEFAULT_RATE = Decimal("0.05")


def order(total=1000, role=UserRole.REP, categories=("Dressings",)):
    items = [SimpleNamespace(product=SimpleNamespace(category=c)) for c in categories]
    return SimpleNamespace(user=SimpleNamespace(role=role), total=Decimal(str(total)), items=items)


class TestParseRuleConfig:
    def test_legacy_default_rate_blob_is_a_flat_rate(self):
        config = parse_rule_config({"default_rate": 0.07})

        assert isinstance(config, FlatRateRule)
        assert config.default_rate == Decimal("0.07")

    def test_explicit_flat_rate_may_be_zero(self):
        assert parse_rule_config({"kind": "flat_rate", "default_rate": 0}).default_rate == Decimal("0")

    def test_parses_each_kind(self):
        assert isinstance(parse_rule_config({"kind": "flat_rate", "default_rate": "0.1"}), FlatRateRule)
        assert isinstance(
            parse_rule_config({"kind": "category", "rate": 0.15, "categories": ["Devices"]}),
            CategoryRule
        )
        assert isinstance(
            parse_rule_config({"kind": "minimum_order", "rate": 0.08, "min_order_value": 500}),
            MinimumOrderRule
        )

    @pytest.mark.parametrize("blob", [
        {"role": "REP", "percentage": 10, "minOrderValue": 100, "categories": ["*"]},
        {"kind": "tiered", "rate": 0.1},
        {"kind": "flat_rate", "default_rate": 1.5},
        {"kind": "category", "rate": 0.1, "categories": []},
        {"kind": "minimum_order", "rate": 0.1},
        {"default_rate": 0},
        "0.05",
    ])
    def test_rejects_unrecognised_or_invalid_blobs(self, blob):
        with pytest.raises(ValidationError):
            parse_rule_config(blob)

    def test_interpret_rules_skips_unrecognised_blobs(self):
        rows = [
            SimpleNamespace(id="1", name="legacy", rule={"percentage": 10}),
            SimpleNamespace(id="2", name="flat", rule={"kind": "flat_rate", "default_rate": 0.06}),
        ]

        configs = interpret_rules(rows)

        assert len(configs) == 1
        assert configs[0].default_rate == Decimal("0.06")


class TestResolveRate:
    def test_falls_back_to_default_without_rules(self):
        assert resolve_rate([], order(), DEFAULT_RATE) == DEFAULT_RATE

    def test_last_flat_rate_wins(self):
        rules = [FlatRateRule(default_rate="0.07"), FlatRateRule(default_rate="0.09")]
        assert resolve_rate(rules, order(), DEFAULT_RATE) == Decimal("0.09")

    def test_category_rule_beats_flat_rate_regardless_of_order(self):
        rules = [
            CategoryRule(rate="0.15", categories=["Devices"]),
            FlatRateRule(default_rate="0.07"),
        ]
        assert resolve_rate(rules, order(categories=["Devices"]), DEFAULT_RATE) == Decimal("0.15")

    def test_category_rule_needs_every_item_in_category(self):
        rules = [CategoryRule(rate="0.15", categories=["Devices"])]
        assert resolve_rate(rules, order(categories=["Devices", "Dressings"]), DEFAULT_RATE) == DEFAULT_RATE

    def test_wildcard_category_matches_any_order(self):
        rules = [CategoryRule(rate="0.12", categories=["*"])]
        assert resolve_rate(rules, order(categories=[]), DEFAULT_RATE) == Decimal("0.12")

    def test_minimum_order_rule_applies_from_threshold(self):
        rules = [FlatRateRule(default_rate="0.06"), MinimumOrderRule(rate="0.08", min_order_value="500")]

        assert resolve_rate(rules, order(total=499.99), DEFAULT_RATE) == Decimal("0.06")
        assert resolve_rate(rules, order(total=500), DEFAULT_RATE) == Decimal("0.08")

    def test_category_beats_minimum_order(self):
        rules = [
            CategoryRule(rate="0.15", categories=["Devices"]),
            MinimumOrderRule(rate="0.08", min_order_value="100"),
        ]
        assert resolve_rate(rules, order(categories=["Devices"]), DEFAULT_RATE) == Decimal("0.15")

    def test_role_restricted_rule_only_applies_to_that_role(self):
        rules = [FlatRateRule(default_rate="0.10", roles=[UserRole.SUB_REP])]

        assert resolve_rate(rules, order(role=UserRole.REP), DEFAULT_RATE) == DEFAULT_RATE
        assert resolve_rate(rules, order(role=UserRole.SUB_REP), DEFAULT_RATE) == Decimal("0.10")
