"""
Commission services.

Rate resolution, order processing, MLM distribution and refund clawback.
"""

from affiliate_engine.services.commission.mlm_distributor import MLMDistributor
from affiliate_engine.services.commission.order_processor import (
    OrderProcessor,
    ProcessError,
    ProcessResult,
)
from affiliate_engine.services.commission.refund_processor import (
    RefundOutcome,
    RefundProcessor,
    RefundResult,
)
from affiliate_engine.services.commission.resolver import (
    AffiliateRates,
    CommissionBreakdown,
    CommissionResolver,
    LineCommission,
    LineInput,
    RateOverride,
    RateResolution,
)

__all__ = [
    "AffiliateRates",
    "CommissionBreakdown",
    "CommissionResolver",
    "LineCommission",
    "LineInput",
    "MLMDistributor",
    "OrderProcessor",
    "ProcessError",
    "ProcessResult",
    "RateOverride",
    "RateResolution",
    "RefundOutcome",
    "RefundProcessor",
    "RefundResult",
]
