"""
Unit tests for commission rate resolution.

Tests cover:
- Precedence of overrides, dynamic rules and defaults
- PERCENTAGE and FIXED arithmetic
- Excluded and product-less lines
- Determinism of the breakdown
"""

from decimal import Decimal

import pytest

from affiliate_engine.models.enums import CommissionType, CustomerType
from affiliate_engine.services.commission.resolver import (
    AffiliateRates,
    CommissionResolver,
    LineInput,
    RateOverride,
)
from affiliate_engine.services.config_provider import (
    ConfigSnapshot,
    MLMConfig,
    ProgramConfig,
    RuleSnapshot,
    parse_conditions,
)


def make_line(**overrides) -> LineInput:
    data = {
        "item_id": 1,
        "product_id": 10,
        "product_name": "Widget",
        "category_id": 3,
        "quantity": 1,
        "price": Decimal("100"),
        "total": Decimal("100"),
        "tax": Decimal("0"),
        "shipping": Decimal("0"),
        "unit_cost": None,
        "cv_points": None,
    }
    data.update(overrides)
    return LineInput(**data)


def make_snapshot(rules=(), **program) -> ConfigSnapshot:
    program_data = {"version": 1, "is_active": True, "commission_rate": Decimal("10")}
    program_data.update(program)
    return ConfigSnapshot(
        program=ProgramConfig(**program_data),
        mlm=MLMConfig(),
        rules=tuple(rules),
    )


def make_rule(rule_id, conditions, value, action_type=CommissionType.PERCENTAGE):
    return RuleSnapshot(
        id=rule_id,
        name=f"rule-{rule_id}",
        priority=rule_id,
        conditions=parse_conditions(conditions),
        action_type=action_type,
        action_value=Decimal(value),
    )


@pytest.fixture
def affiliate():
    return AffiliateRates(affiliate_id=1)


class TestOrderScenario:
    """Commission for a typical order."""

    def test_tax_and_shipping_excluded(self, affiliate):
        """$115 line with $10 tax and $5 shipping at 15% pays $15.00."""
        resolver = CommissionResolver(make_snapshot(commission_rate=Decimal("15")))
        line = make_line(total=Decimal("115"), tax=Decimal("10"), shipping=Decimal("5"))

        breakdown = resolver.calculate(
            [line], affiliate, Decimal("115"), CustomerType.NEW
        )

        assert breakdown.total == Decimal("15.00")
        assert breakdown.lines[0].base == Decimal("100")
        assert breakdown.lines[0].resolution.source == "GLOBAL_DEFAULT"

    def test_total_rounded_to_cents(self, affiliate):
        resolver = CommissionResolver(make_snapshot(commission_rate=Decimal("7")))
        line = make_line(total=Decimal("33.33"))

        breakdown = resolver.calculate(
            [line], affiliate, Decimal("33.33"), CustomerType.NEW
        )

        # 7% of 33.33 = 2.3331
        assert breakdown.total == Decimal("2.33")

    def test_identical_inputs_identical_output(self, affiliate):
        resolver = CommissionResolver(make_snapshot())
        lines = [make_line(item_id=1), make_line(item_id=2, product_id=11)]

        first = resolver.calculate(lines, affiliate, Decimal("200"), CustomerType.NEW)
        second = resolver.calculate(lines, affiliate, Decimal("200"), CustomerType.NEW)

        assert first == second
        assert first.to_log() == second.to_log()


class TestRatePrecedence:
    """Test the resolution order of rate sources."""

    def test_user_override_wins(self):
        snapshot = make_snapshot(rules=[make_rule(1, [], "30")])
        affiliate = AffiliateRates(affiliate_id=1, group_rate=Decimal("20"))
        resolver = CommissionResolver(snapshot)

        resolution = resolver.resolve_rate(
            make_line(),
            affiliate,
            Decimal("100"),
            CustomerType.NEW,
            user_override=RateOverride(Decimal("12"), CommissionType.PERCENTAGE),
            group_override=RateOverride(Decimal("8"), CommissionType.PERCENTAGE),
        )

        assert resolution.rate == Decimal("12")
        assert resolution.source == "PRODUCT_USER_OVERRIDE"

    def test_group_override_before_rules(self):
        resolver = CommissionResolver(make_snapshot(rules=[make_rule(1, [], "30")]))

        resolution = resolver.resolve_rate(
            make_line(),
            AffiliateRates(affiliate_id=1, group_id=2),
            Decimal("100"),
            CustomerType.NEW,
            group_override=RateOverride(Decimal("8"), CommissionType.PERCENTAGE),
        )

        assert resolution.rate == Decimal("8")
        assert resolution.source == "PRODUCT_GROUP_OVERRIDE"

    def test_first_matching_rule_wins(self, affiliate):
        rules = [
            make_rule(1, [{"kind": "ORDER_AMOUNT", "min_amount": "500"}], "40"),
            make_rule(2, [{"kind": "CATEGORY", "category_ids": [3]}], "25"),
            make_rule(3, [], "5"),
        ]
        resolver = CommissionResolver(make_snapshot(rules=rules))

        resolution = resolver.resolve_rate(
            make_line(category_id=3), affiliate, Decimal("100"), CustomerType.NEW
        )

        assert resolution.rate == Decimal("25")
        assert resolution.rule_id == 2
        assert resolution.source == "RULE:rule-2"

    def test_customer_type_rule(self, affiliate):
        rules = [make_rule(1, [{"kind": "CUSTOMER_TYPE", "customer_type": "NEW"}], "20")]
        resolver = CommissionResolver(make_snapshot(rules=rules))

        new = resolver.resolve_rate(make_line(), affiliate, Decimal("100"), CustomerType.NEW)
        returning = resolver.resolve_rate(
            make_line(), affiliate, Decimal("100"), CustomerType.RETURNING
        )

        assert new.rate == Decimal("20")
        assert returning.source == "GLOBAL_DEFAULT"

    def test_group_default_before_tier_default(self):
        resolver = CommissionResolver(make_snapshot())
        affiliate = AffiliateRates(
            affiliate_id=1, group_rate=Decimal("18"), tier_rate=Decimal("12")
        )

        resolution = resolver.resolve_rate(
            make_line(), affiliate, Decimal("100"), CustomerType.NEW
        )

        assert resolution.rate == Decimal("18")
        assert resolution.source == "GROUP_DEFAULT"

    def test_tier_default_before_program_default(self):
        resolver = CommissionResolver(make_snapshot())
        affiliate = AffiliateRates(affiliate_id=1, tier_rate=Decimal("12"))

        resolution = resolver.resolve_rate(
            make_line(), affiliate, Decimal("100"), CustomerType.NEW
        )

        assert resolution.rate == Decimal("12")
        assert resolution.source == "TIER_DEFAULT"


class TestLineHandling:
    """Test excluded, fixed and product-less lines."""

    def test_disabled_override_excludes_line(self, affiliate):
        resolver = CommissionResolver(make_snapshot())
        lines = [make_line(item_id=1, product_id=10), make_line(item_id=2, product_id=11)]
        disabled = RateOverride(Decimal("0"), CommissionType.PERCENTAGE, is_disabled=True)

        breakdown = resolver.calculate(
            lines,
            affiliate,
            Decimal("200"),
            CustomerType.NEW,
            user_overrides={10: disabled},
        )

        assert breakdown.total == Decimal("10.00")
        excluded = breakdown.to_log()[0]
        assert excluded["status"] == "EXCLUDED"
        assert excluded["source"] == "USER_OVERRIDE_DISABLED"
        assert excluded["commission"] == "0"

    def test_fixed_rate_per_unit(self, affiliate):
        resolver = CommissionResolver(
            make_snapshot(commission_rate=Decimal("2.5"), commission_type=CommissionType.FIXED)
        )

        breakdown = resolver.calculate(
            [make_line(quantity=4, total=Decimal("40"))],
            affiliate,
            Decimal("40"),
            CustomerType.NEW,
        )

        assert breakdown.total == Decimal("10.00")

    def test_lines_without_product_skipped(self, affiliate):
        resolver = CommissionResolver(make_snapshot())
        lines = [make_line(item_id=1), make_line(item_id=2, product_id=None)]

        breakdown = resolver.calculate(lines, affiliate, Decimal("200"), CustomerType.NEW)

        assert len(breakdown.lines) == 1
        assert breakdown.total == Decimal("10.00")

    def test_profit_uses_unit_cost(self, affiliate):
        resolver = CommissionResolver(make_snapshot())
        line = make_line(quantity=2, total=Decimal("100"), unit_cost=Decimal("30"))

        breakdown = resolver.calculate([line], affiliate, Decimal("100"), CustomerType.NEW)

        assert breakdown.total_profit == Decimal("40.00")

    def test_last_matching_rule_recorded(self, affiliate):
        rules = [make_rule(7, [{"kind": "CATEGORY", "category_ids": [3]}], "25")]
        resolver = CommissionResolver(make_snapshot(rules=rules))
        lines = [make_line(item_id=1, category_id=3), make_line(item_id=2, category_id=4)]

        breakdown = resolver.calculate(lines, affiliate, Decimal("200"), CustomerType.NEW)

        assert breakdown.rule_id == 7
        assert breakdown.total == Decimal("35.00")
