"""
Enumerations used by affiliate models and services.

Values are stored as plain strings.
"""

from enum import StrEnum


class AffiliateStatus(StrEnum):
    """Affiliate account status."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"


class CommissionType(StrEnum):
    """How a commission rate is applied."""

    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class ReferralStatus(StrEnum):
    """Referral lifecycle status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PAID = "PAID"


class LedgerEntryType(StrEnum):
    """Affiliate ledger entry type."""

    COMMISSION = "COMMISSION"
    ADJUSTMENT = "ADJUSTMENT"
    PAYOUT = "PAYOUT"


class CustomerType(StrEnum):
    """Buyer classification used by dynamic rules."""

    NEW = "NEW"
    RETURNING = "RETURNING"


class MLMBasis(StrEnum):
    """Amount an upline commission is computed against."""

    SALES = "SALES"
    PROFIT = "PROFIT"
    CV = "CV"


class AttributionSource(StrEnum):
    """How an order was attributed to an affiliate."""

    COUPON = "COUPON"
    COOKIE = "COOKIE"
    LIFETIME = "LIFETIME"


class FraudRuleType(StrEnum):
    """Configurable fraud rule kinds."""

    IP_CLICK_LIMIT = "IP_CLICK_LIMIT"
    CONVERSION_RATE_LIMIT = "CONVERSION_RATE_LIMIT"
    ORDER_VALUE_LIMIT = "ORDER_VALUE_LIMIT"


class FraudRuleAction(StrEnum):
    """Action taken when a fraud rule matches."""

    BLOCK = "BLOCK"
    FLAG = "FLAG"
    SUSPEND = "SUSPEND"


class NotificationChannel(StrEnum):
    """Notification delivery channel."""

    EMAIL = "EMAIL"


class NotificationStatus(StrEnum):
    """Notification queue status."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class SystemLogLevel(StrEnum):
    """System log severity."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
