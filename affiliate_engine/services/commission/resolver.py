"""
Commission resolver.

Pure rate resolution and commission arithmetic. No database access: the
order processor gathers the inputs, this module turns them into a
commission breakdown. Identical inputs always give identical output.

Precedence, per line (first applicable wins):
    1. product override for the affiliate (disabled -> line excluded)
    2. product override for the affiliate's group (disabled -> excluded)
    3. first matching dynamic rule by priority
    4. group default
    5. tier default
    6. program default
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from affiliate_engine.config.constants import (
    SOURCE_GLOBAL_DEFAULT,
    SOURCE_GROUP_DEFAULT,
    SOURCE_GROUP_OVERRIDE_DISABLED,
    SOURCE_PRODUCT_GROUP_OVERRIDE,
    SOURCE_PRODUCT_USER_OVERRIDE,
    SOURCE_RULE_PREFIX,
    SOURCE_TIER_DEFAULT,
    SOURCE_USER_OVERRIDE_DISABLED,
)
from affiliate_engine.models.affiliate import AffiliateAccount
from affiliate_engine.models.commission_rule import ProductCommissionRate
from affiliate_engine.models.enums import CommissionType, CustomerType
from affiliate_engine.models.order import OrderItem
from affiliate_engine.services.config_provider import ConfigSnapshot, RuleContext
from affiliate_engine.utils.decimal_math import (
    ZERO,
    add,
    from_order,
    mul,
    percent,
    quantize_money,
    sub,
    to_decimal,
)


@dataclass(frozen=True)
class LineInput:
    """Order line as seen by the resolver."""

    item_id: int
    product_id: int | None
    product_name: str | None
    category_id: int | None
    quantity: int
    price: Decimal
    total: Decimal
    tax: Decimal
    shipping: Decimal
    unit_cost: Decimal | None
    cv_points: Decimal | None

    @classmethod
    def from_item(cls, item: OrderItem) -> "LineInput":
        return cls(
            item_id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            category_id=item.category_id,
            quantity=item.quantity,
            price=to_decimal(item.price),
            total=to_decimal(item.total),
            tax=to_decimal(item.tax),
            shipping=to_decimal(item.shipping),
            unit_cost=None if item.unit_cost is None else to_decimal(item.unit_cost),
            cv_points=None if item.cv_points is None else to_decimal(item.cv_points),
        )

    @property
    def profit(self) -> Decimal:
        """Line total minus cost of goods (cost unknown counts as zero)."""
        return sub(self.total, mul(self.unit_cost or ZERO, self.quantity))


@dataclass(frozen=True)
class RateOverride:
    """Product rate override."""

    rate: Decimal
    type: CommissionType
    is_disabled: bool = False

    @classmethod
    def from_model(cls, row: ProductCommissionRate) -> "RateOverride":
        return cls(
            rate=to_decimal(row.rate),
            type=CommissionType(row.type),
            is_disabled=row.is_disabled,
        )


@dataclass(frozen=True)
class AffiliateRates:
    """Default rates attached to an affiliate through group and tier."""

    affiliate_id: int
    group_id: int | None = None
    group_rate: Decimal | None = None
    group_type: CommissionType = CommissionType.PERCENTAGE
    tier_rate: Decimal | None = None
    tier_type: CommissionType = CommissionType.PERCENTAGE

    @classmethod
    def from_account(cls, affiliate: AffiliateAccount) -> "AffiliateRates":
        group = affiliate.group
        tier = affiliate.tier
        return cls(
            affiliate_id=affiliate.id,
            group_id=affiliate.group_id,
            group_rate=(
                to_decimal(group.commission_rate)
                if group is not None and group.commission_rate is not None
                else None
            ),
            group_type=(
                CommissionType(group.commission_type)
                if group is not None
                else CommissionType.PERCENTAGE
            ),
            tier_rate=(
                to_decimal(tier.commission_rate)
                if tier is not None and tier.commission_rate is not None
                else None
            ),
            tier_type=(
                CommissionType(tier.commission_type)
                if tier is not None
                else CommissionType.PERCENTAGE
            ),
        )


@dataclass(frozen=True)
class RateResolution:
    """Resolved rate for one line."""

    rate: Decimal
    type: CommissionType
    source: str
    rule_id: int | None = None
    excluded: bool = False


@dataclass(frozen=True)
class LineCommission:
    """Commission computed for one line."""

    line: LineInput
    resolution: RateResolution
    base: Decimal
    commission: Decimal

    def to_log(self) -> dict[str, Any]:
        """Calculation log entry (decimals as strings)."""
        entry: dict[str, Any] = {
            "order_item_id": self.line.item_id,
            "product_id": self.line.product_id,
            "product_name": self.line.product_name,
            "quantity": self.line.quantity,
            "price": str(self.line.price),
            "total": str(self.line.total),
            "source": self.resolution.source,
            "commission": str(self.commission),
            "profit": str(self.line.profit),
            "is_refunded": False,
        }
        if self.resolution.excluded:
            entry["status"] = "EXCLUDED"
        else:
            entry["rate"] = str(self.resolution.rate)
            entry["type"] = self.resolution.type.value
            entry["base"] = str(self.base)
        return entry


@dataclass(frozen=True)
class CommissionBreakdown:
    """Commission for a whole order."""

    total: Decimal
    lines: tuple[LineCommission, ...]
    total_profit: Decimal
    rule_id: int | None

    def to_log(self) -> list[dict[str, Any]]:
        return [line.to_log() for line in self.lines]


class CommissionResolver:
    """Resolves rates and commissions against one configuration snapshot."""

    def __init__(self, snapshot: ConfigSnapshot) -> None:
        self.snapshot = snapshot

    def resolve_rate(
        self,
        line: LineInput,
        affiliate: AffiliateRates,
        order_total: Decimal,
        customer_type: CustomerType,
        user_override: RateOverride | None = None,
        group_override: RateOverride | None = None,
    ) -> RateResolution:
        """
        Resolve the rate for one line.

        Args:
            line: Order line
            affiliate: Affiliate group/tier defaults
            order_total: Order grand total (for ORDER_AMOUNT rules)
            customer_type: NEW or RETURNING buyer
            user_override: Product override scoped to the affiliate
            group_override: Product override scoped to the group

        Returns:
            Rate, type and source (``excluded`` set for disabled lines)
        """
        if user_override is not None:
            if user_override.is_disabled:
                return RateResolution(
                    rate=ZERO,
                    type=user_override.type,
                    source=SOURCE_USER_OVERRIDE_DISABLED,
                    excluded=True,
                )
            return RateResolution(
                rate=user_override.rate,
                type=user_override.type,
                source=SOURCE_PRODUCT_USER_OVERRIDE,
            )

        if group_override is not None:
            if group_override.is_disabled:
                return RateResolution(
                    rate=ZERO,
                    type=group_override.type,
                    source=SOURCE_GROUP_OVERRIDE_DISABLED,
                    excluded=True,
                )
            return RateResolution(
                rate=group_override.rate,
                type=group_override.type,
                source=SOURCE_PRODUCT_GROUP_OVERRIDE,
            )

        context = RuleContext(
            order_total=order_total,
            category_id=line.category_id,
            customer_type=customer_type,
        )
        for rule in self.snapshot.rules:
            if rule.matches(context):
                return RateResolution(
                    rate=rule.action_value,
                    type=rule.action_type,
                    source=f"{SOURCE_RULE_PREFIX}{rule.name}",
                    rule_id=rule.id,
                )

        if affiliate.group_rate is not None:
            return RateResolution(
                rate=affiliate.group_rate,
                type=affiliate.group_type,
                source=SOURCE_GROUP_DEFAULT,
            )

        if affiliate.tier_rate is not None:
            return RateResolution(
                rate=affiliate.tier_rate,
                type=affiliate.tier_type,
                source=SOURCE_TIER_DEFAULT,
            )

        program = self.snapshot.program
        return RateResolution(
            rate=program.commission_rate,
            type=program.commission_type,
            source=SOURCE_GLOBAL_DEFAULT,
        )

    def line_commission(
        self, line: LineInput, resolution: RateResolution
    ) -> LineCommission:
        """
        Apply a resolved rate to a line.

        FIXED pays ``rate`` per unit; PERCENTAGE pays ``rate`` percent of
        the line base (line total less excluded tax and shipping).
        """
        program = self.snapshot.program
        base = from_order(
            line.total,
            line.tax,
            line.shipping,
            program.exclude_tax,
            program.exclude_shipping,
        )

        if resolution.excluded:
            commission = ZERO
        elif resolution.type == CommissionType.FIXED:
            commission = mul(resolution.rate, line.quantity)
        else:
            commission = percent(base, resolution.rate)

        return LineCommission(
            line=line,
            resolution=resolution,
            base=base,
            commission=commission,
        )

    def calculate(
        self,
        lines: Iterable[LineInput],
        affiliate: AffiliateRates,
        order_total: Decimal,
        customer_type: CustomerType,
        user_overrides: Mapping[int, RateOverride] | None = None,
        group_overrides: Mapping[int, RateOverride] | None = None,
    ) -> CommissionBreakdown:
        """
        Compute the commission for an order.

        Lines without a product are not commissionable and are left out
        of the breakdown. The total is rounded to cents; line amounts are
        kept unrounded in the breakdown.

        Args:
            lines: Order lines
            affiliate: Affiliate group/tier defaults
            order_total: Order grand total
            customer_type: NEW or RETURNING buyer
            user_overrides: Affiliate-scoped overrides by product ID
            group_overrides: Group-scoped overrides by product ID

        Returns:
            Commission breakdown
        """
        user_overrides = user_overrides or {}
        group_overrides = group_overrides or {}

        results: list[LineCommission] = []
        total = ZERO
        total_profit = ZERO
        rule_id: int | None = None

        for line in lines:
            if line.product_id is None:
                continue

            total_profit = add(total_profit, line.profit)
            resolution = self.resolve_rate(
                line,
                affiliate,
                order_total,
                customer_type,
                user_override=user_overrides.get(line.product_id),
                group_override=group_overrides.get(line.product_id),
            )
            result = self.line_commission(line, resolution)
            results.append(result)

            total = add(total, result.commission)
            if resolution.rule_id is not None:
                rule_id = resolution.rule_id

        return CommissionBreakdown(
            total=quantize_money(total),
            lines=tuple(results),
            total_profit=quantize_money(total_profit),
            rule_id=rule_id,
        )
