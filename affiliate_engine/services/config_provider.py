"""
Configuration provider.

Loads program settings, multi-level settings, dynamic commission rules and
fraud rules into one immutable, versioned snapshot. Rule conditions are
validated here, once, into typed condition objects; the commission
resolver never sees raw JSON.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.config.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_HOLDING_PERIOD_DAYS,
    MLM_MAX_LEVELS_LIMIT,
)
from affiliate_engine.config.settings import settings
from affiliate_engine.models.enums import (
    CommissionType,
    CustomerType,
    FraudRuleAction,
    FraudRuleType,
    MLMBasis,
)
from affiliate_engine.repositories.commission_rule_repository import (
    CommissionRuleRepository,
)
from affiliate_engine.repositories.program_settings_repository import (
    ProgramSettingsRepository,
)
from affiliate_engine.utils.datetime_utils import utc_now
from affiliate_engine.utils.decimal_math import ZERO, gte, lte, to_decimal


# ========================================================================
# RULE CONDITIONS
# ========================================================================


@dataclass(frozen=True)
class RuleContext:
    """Facts a rule condition is evaluated against (one order line)."""

    order_total: Decimal
    category_id: int | None
    customer_type: CustomerType


class OrderAmountCondition(BaseModel):
    """Order total within [min_amount, max_amount] (either bound optional)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["ORDER_AMOUNT"]
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "OrderAmountCondition":
        if self.min_amount is None and self.max_amount is None:
            raise ValueError("ORDER_AMOUNT needs min_amount or max_amount")
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError("min_amount must not exceed max_amount")
        return self

    def matches(self, context: RuleContext) -> bool:
        if self.min_amount is not None and not gte(context.order_total, self.min_amount):
            return False
        if self.max_amount is not None and not lte(context.order_total, self.max_amount):
            return False
        return True


class CategoryCondition(BaseModel):
    """Product category in the configured set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["CATEGORY"]
    category_ids: frozenset[int] = Field(min_length=1)

    def matches(self, context: RuleContext) -> bool:
        return (
            context.category_id is not None
            and context.category_id in self.category_ids
        )


class CustomerTypeCondition(BaseModel):
    """Buyer is NEW or RETURNING."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["CUSTOMER_TYPE"]
    customer_type: CustomerType

    def matches(self, context: RuleContext) -> bool:
        return context.customer_type == self.customer_type


RuleCondition = Annotated[
    OrderAmountCondition | CategoryCondition | CustomerTypeCondition,
    Field(discriminator="kind"),
]

_conditions_adapter = TypeAdapter(list[RuleCondition])


def parse_conditions(raw: object) -> tuple[RuleCondition, ...]:
    """
    Validate a rule's raw JSON conditions.

    Args:
        raw: Stored conditions (list of tagged documents)

    Returns:
        Typed conditions

    Raises:
        pydantic.ValidationError: If any condition is malformed
    """
    if raw is None:
        raw = []
    return tuple(_conditions_adapter.validate_python(raw))


# ========================================================================
# SNAPSHOT
# ========================================================================


@dataclass(frozen=True)
class RuleSnapshot:
    """Validated dynamic commission rule."""

    id: int
    name: str
    priority: int
    conditions: tuple[RuleCondition, ...]
    action_type: CommissionType
    action_value: Decimal

    def matches(self, context: RuleContext) -> bool:
        """True when every condition holds (no conditions = always)."""
        return all(condition.matches(context) for condition in self.conditions)


@dataclass(frozen=True)
class ProgramConfig:
    """Program-wide settings."""

    version: int = 0
    is_active: bool = False
    holding_period_days: int = DEFAULT_HOLDING_PERIOD_DAYS
    allow_self_referral: bool = False
    zero_value_referrals: bool = False
    lifetime_link_on_purchase: bool = False
    exclude_tax: bool = True
    exclude_shipping: bool = True
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    commission_type: CommissionType = CommissionType.PERCENTAGE


@dataclass(frozen=True)
class MLMConfig:
    """Multi-level distribution settings."""

    is_enabled: bool = False
    max_levels: int = 3
    commission_basis: MLMBasis = MLMBasis.SALES
    level_rates: dict[int, Decimal] = field(default_factory=dict)

    def rate_for(self, level: int) -> Decimal:
        """Percent for an upline level (zero when not configured)."""
        return self.level_rates.get(level, ZERO)


@dataclass(frozen=True)
class FraudRuleSnapshot:
    """Active fraud rule."""

    id: int
    type: FraudRuleType
    value: Decimal
    action: FraudRuleAction


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable configuration consumed by one engine run."""

    program: ProgramConfig
    mlm: MLMConfig
    rules: tuple[RuleSnapshot, ...] = ()
    fraud_rules: tuple[FraudRuleSnapshot, ...] = ()
    loaded_at: datetime | None = None

    @property
    def version(self) -> int:
        return self.program.version

    def fraud_rules_of(self, rule_type: FraudRuleType) -> tuple[FraudRuleSnapshot, ...]:
        return tuple(r for r in self.fraud_rules if r.type == rule_type)


def _parse_level_rates(raw: object) -> dict[int, Decimal]:
    rates: dict[int, Decimal] = {}
    if not isinstance(raw, dict):
        if raw:
            logger.warning(
                "Ignoring malformed MLM level rates",
                extra={"level_rates": str(raw)},
            )
        return rates

    for key, value in raw.items():
        try:
            level = int(key)
            rate = to_decimal(value)
        except (TypeError, ValueError):
            logger.warning(
                "Ignoring malformed MLM level rate",
                extra={"level": str(key), "rate": str(value)},
            )
            continue
        if level < 1 or level > MLM_MAX_LEVELS_LIMIT or rate < ZERO:
            logger.warning(
                "Ignoring out of range MLM level rate",
                extra={"level": level, "rate": str(rate)},
            )
            continue
        rates[level] = rate
    return rates


async def load_snapshot(session: AsyncSession) -> ConfigSnapshot:
    """
    Build a snapshot from the database.

    Rules with malformed conditions or actions are skipped with a
    WARNING. A missing settings row yields defaults with the program
    disabled.

    Args:
        session: Database session

    Returns:
        Fresh configuration snapshot
    """
    settings_repo = ProgramSettingsRepository(session)
    rule_repo = CommissionRuleRepository(session)

    row = await settings_repo.get_current()
    if row is None:
        logger.warning("Affiliate program settings missing, program disabled")
        program = ProgramConfig()
    else:
        program = ProgramConfig(
            version=row.version,
            is_active=row.is_active,
            holding_period_days=max(row.holding_period_days, 0),
            allow_self_referral=row.allow_self_referral,
            zero_value_referrals=row.zero_value_referrals,
            lifetime_link_on_purchase=row.lifetime_link_on_purchase,
            exclude_tax=row.exclude_tax,
            exclude_shipping=row.exclude_shipping,
            commission_rate=to_decimal(row.commission_rate),
            commission_type=CommissionType(row.commission_type),
        )

    mlm_row = await settings_repo.get_mlm_config()
    if mlm_row is None:
        mlm = MLMConfig()
    else:
        mlm = MLMConfig(
            is_enabled=mlm_row.is_enabled,
            max_levels=min(max(mlm_row.max_levels, 1), MLM_MAX_LEVELS_LIMIT),
            commission_basis=MLMBasis(mlm_row.commission_basis),
            level_rates=_parse_level_rates(mlm_row.level_rates),
        )

    rules: list[RuleSnapshot] = []
    for rule in await rule_repo.get_active_ordered():
        try:
            conditions = parse_conditions(rule.conditions)
            action_type = CommissionType(rule.action_type)
            action_value = to_decimal(rule.action_value)
        except (ValidationError, ValueError) as e:
            logger.warning(
                f"Skipping commission rule {rule.id} with invalid definition",
                extra={"rule_id": rule.id, "rule_name": rule.name, "error": str(e)},
            )
            continue
        rules.append(
            RuleSnapshot(
                id=rule.id,
                name=rule.name,
                priority=rule.priority,
                conditions=conditions,
                action_type=action_type,
                action_value=action_value,
            )
        )

    fraud_rules: list[FraudRuleSnapshot] = []
    for fraud_rule in await settings_repo.get_active_fraud_rules():
        try:
            fraud_rules.append(
                FraudRuleSnapshot(
                    id=fraud_rule.id,
                    type=FraudRuleType(fraud_rule.type),
                    value=to_decimal(fraud_rule.value),
                    action=FraudRuleAction(fraud_rule.action),
                )
            )
        except ValueError as e:
            logger.warning(
                f"Skipping fraud rule {fraud_rule.id} with invalid definition",
                extra={"fraud_rule_id": fraud_rule.id, "error": str(e)},
            )

    return ConfigSnapshot(
        program=program,
        mlm=mlm,
        rules=tuple(rules),
        fraud_rules=tuple(fraud_rules),
        loaded_at=utc_now(),
    )


class ConfigProvider:
    """
    Caching snapshot provider.

    One instance is created by the caller (worker process, test) and
    passed to the services that need configuration. A cached snapshot is
    reused while it is younger than the TTL and the settings row still
    carries the same version.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = (
            settings.config_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        self._clock = clock
        self._snapshot: ConfigSnapshot | None = None
        self._loaded_at: float = 0.0

    def invalidate(self) -> None:
        """Drop the cached snapshot."""
        self._snapshot = None
        self._loaded_at = 0.0

    async def get_snapshot(self, session: AsyncSession) -> ConfigSnapshot:
        """
        Get the current configuration snapshot.

        Args:
            session: Database session used on cache miss

        Returns:
            Configuration snapshot
        """
        cached = self._snapshot
        if cached is not None and self._clock() - self._loaded_at < self.ttl_seconds:
            version = await ProgramSettingsRepository(session).get_version()
            if (version or 0) == cached.version:
                return cached
            logger.info(
                "Affiliate settings version changed, reloading snapshot",
                extra={"cached_version": cached.version, "version": version},
            )

        snapshot = await load_snapshot(session)
        self._snapshot = snapshot
        self._loaded_at = self._clock()
        logger.debug(
            f"Loaded affiliate config snapshot v{snapshot.version}",
            extra={
                "rules": len(snapshot.rules),
                "fraud_rules": len(snapshot.fraud_rules),
            },
        )
        return snapshot
