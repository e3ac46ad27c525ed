"""
Commission rule interpreter.

Rules are stored as JSON blobs on ``CommissionRule.rule``. This module turns
them into one of three typed kinds and decides which one sets the rate for an
order:

    flat_rate       {"kind": "flat_rate", "default_rate": 0.07}
    category        {"kind": "category", "rate": 0.10, "categories": ["Devices"]}
    minimum_order   {"kind": "minimum_order", "rate": 0.08, "min_order_value": 500}

Every kind also accepts ``roles`` (e.g. ``["REP"]``) to limit it to orders
owned by those roles. Blobs without ``kind`` that carry a non-zero
``default_rate`` are read as flat rates.

Rules never merge. The applicable rule with the highest specificity wins
(category > minimum_order > flat_rate); among equals, the last one in
iteration order wins.
"""

import logging
from decimal import Decimal
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, BeforeValidator, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError
from app.models.user import UserRole

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Any:
    # Floats go through str() so 0.07 stays 0.07 and not its binary expansion
    if isinstance(value, float):
        return Decimal(str(value))
    return value


Rate = Annotated[Decimal, BeforeValidator(_to_decimal), Field(ge=0, le=1)]
Amount = Annotated[Decimal, BeforeValidator(_to_decimal), Field(ge=0)]


class _RuleBase(BaseModel):
    roles: Optional[List[UserRole]] = None

    specificity: ClassVar[int] = 0

    def role_matches(self, order) -> bool:
        return not self.roles or order.user.role in self.roles

    def applies_to(self, order) -> bool:
        return self.role_matches(order)

    @property
    def rate_value(self) -> Decimal:
        raise NotImplementedError


class FlatRateRule(_RuleBase):
    kind: Literal["flat_rate"] = "flat_rate"
    default_rate: Rate

    specificity: ClassVar[int] = 0

    @property
    def rate_value(self) -> Decimal:
        return self.default_rate


class MinimumOrderRule(_RuleBase):
    kind: Literal["minimum_order"] = "minimum_order"
    rate: Rate
    min_order_value: Amount

    specificity: ClassVar[int] = 1

    def applies_to(self, order) -> bool:
        return self.role_matches(order) and Decimal(str(order.total)) >= self.min_order_value

    @property
    def rate_value(self) -> Decimal:
        return self.rate


class CategoryRule(_RuleBase):
    kind: Literal["category"] = "category"
    rate: Rate
    categories: List[str] = Field(min_length=1)

    specificity: ClassVar[int] = 2

    def applies_to(self, order) -> bool:
        """Applies when every line item falls in one of the listed categories"""
        if not self.role_matches(order):
            return False
        if "*" in self.categories:
            return True
        items = list(order.items or [])
        if not items:
            return False
        return all(
            item.product is not None and item.product.category in self.categories
            for item in items
        )

    @property
    def rate_value(self) -> Decimal:
        return self.rate


RuleConfig = Annotated[
    Union[FlatRateRule, MinimumOrderRule, CategoryRule],
    Field(discriminator="kind"),
]

_rule_adapter = TypeAdapter(RuleConfig)


def parse_rule_config(blob: Any) -> RuleConfig:
    """Parse a stored rule blob, raising ValidationError if it is not a known kind."""
    if not isinstance(blob, dict):
        raise ValidationError("Commission rule must be an object")

    data = dict(blob)
    if "kind" not in data:
        # Kind-less blobs only override the rate with a non-zero default_rate
        if not data.get("default_rate"):
            raise ValidationError(
                "Unrecognised commission rule",
                details={"expected_kinds": ["flat_rate", "category", "minimum_order"]}
            )
        data["kind"] = "flat_rate"

    try:
        return _rule_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid commission rule",
            details={"errors": [
                {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
            ]}
        )


def interpret_rules(rules: Sequence[Any]) -> List[RuleConfig]:
    """Parse active rule rows in order, skipping blobs that are not a known kind."""
    configs = []
    for rule in rules:
        try:
            configs.append(parse_rule_config(rule.rule))
        except ValidationError:
            logger.debug("Ignoring unrecognised commission rule %s (%s)", rule.id, rule.name)
    return configs


def resolve_rule(configs: Sequence[RuleConfig], order) -> Optional[RuleConfig]:
    """The rule that sets the rate for ``order``, or None when none applies"""
    chosen = None
    for config in configs:
        if not config.applies_to(order):
            continue
        if chosen is None or config.specificity >= chosen.specificity:
            chosen = config
    return chosen


def resolve_rate(configs: Sequence[RuleConfig], order, default_rate: Decimal) -> Decimal:
    chosen = resolve_rule(configs, order)
    return chosen.rate_value if chosen is not None else default_rate
