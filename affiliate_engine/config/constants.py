"""
Business constants.

Defaults and identifiers shared by the commission engine.
"""

from decimal import Decimal

# ========================================================================
# PROGRAM DEFAULTS
# ========================================================================

DEFAULT_HOLDING_PERIOD_DAYS = 14
DEFAULT_COMMISSION_RATE = Decimal("10")  # percent
MLM_MAX_LEVELS_LIMIT = 10

# Money is persisted with 8 decimals but commissions are granted in cents
MONEY_QUANT = Decimal("0.01")

# ========================================================================
# RATE SOURCES (calculation log)
# ========================================================================

SOURCE_PRODUCT_USER_OVERRIDE = "PRODUCT_USER_OVERRIDE"
SOURCE_PRODUCT_GROUP_OVERRIDE = "PRODUCT_GROUP_OVERRIDE"
SOURCE_RULE_PREFIX = "RULE:"
SOURCE_GROUP_DEFAULT = "GROUP_DEFAULT"
SOURCE_TIER_DEFAULT = "TIER_DEFAULT"
SOURCE_GLOBAL_DEFAULT = "GLOBAL_DEFAULT"
SOURCE_USER_OVERRIDE_DISABLED = "USER_OVERRIDE_DISABLED"
SOURCE_GROUP_OVERRIDE_DISABLED = "GROUP_OVERRIDE_DISABLED"

# ========================================================================
# NOTIFICATION TEMPLATES
# ========================================================================

TEMPLATE_REFERRAL_PENDING = "REFERRAL_PENDING"
TEMPLATE_COMMISSION_APPROVED = "COMMISSION_APPROVED"
TEMPLATE_TIER_UPGRADED = "TIER_UPGRADED"

# ========================================================================
# FRAUD SCORING
# ========================================================================

RISK_SCORE_MAX = 100
RISK_CONVERSION_RULE_POINTS = 30
RISK_CONVERSION_MIN_CLICKS = 50
RISK_FLAGGED_REFERRAL_POINTS = 15
RISK_RAPID_TRANSACTIONS_POINTS = 40
RISK_RAPID_TRANSACTIONS_COUNT = 5
RISK_RAPID_TRANSACTIONS_WINDOW_MINUTES = 5

# ========================================================================
# AUDIT SOURCES
# ========================================================================

AUDIT_SOURCE_ENGINE = "AFFILIATE_ENGINE"
AUDIT_SOURCE_SETTLEMENT = "CRON_REFERRAL"
AUDIT_SOURCE_FRAUD = "FRAUD_SHIELD"
AUDIT_SOURCE_FRAUD_DETECTOR = "FRAUD_DETECTOR"
AUDIT_SOURCE_TIERS = "CRON_TIERS"

# Failures listed in a settlement summary log entry
SETTLEMENT_FAILURE_SAMPLE_SIZE = 5
