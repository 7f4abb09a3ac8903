"""
Standard type definitions for database models.

Provides consistent types for monetary, rate and JSON fields across all
models.
"""

from sqlalchemy import DECIMAL, JSON
from sqlalchemy.dialects.postgresql import JSONB

# Standard money type for amounts, balances, commissions
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Commission rate type (percent for PERCENTAGE, currency unit for FIXED)
# Precision: 10 digits total, 4 after decimal point
# Range: 0.0000 to 999999.9999
RatePercentType = DECIMAL(10, 4)

# JSON document stored as JSONB on PostgreSQL
JSONType = JSON().with_variant(JSONB(), "postgresql")
