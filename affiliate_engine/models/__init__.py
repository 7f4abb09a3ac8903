"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from affiliate_engine.models.affiliate import (
    AffiliateAccount,
    AffiliateClick,
    AffiliateGroup,
    AffiliateTier,
)
from affiliate_engine.models.analytics import AffiliateAnalyticsSummary
from affiliate_engine.models.base import Base
from affiliate_engine.models.commission_rule import (
    CommissionRule,
    ProductCommissionRate,
)
from affiliate_engine.models.customer import Customer
from affiliate_engine.models.ledger import AffiliateLedger
from affiliate_engine.models.notification_queue import NotificationQueue
from affiliate_engine.models.order import Order, OrderItem
from affiliate_engine.models.program_settings import (
    AffiliateFraudRule,
    AffiliateMLMConfig,
    AffiliateProgramSettings,
)
from affiliate_engine.models.referral import Referral
from affiliate_engine.models.system_log import SystemLog

__all__ = [
    "Base",
    "AffiliateAccount",
    "AffiliateAnalyticsSummary",
    "AffiliateClick",
    "AffiliateFraudRule",
    "AffiliateGroup",
    "AffiliateLedger",
    "AffiliateMLMConfig",
    "AffiliateProgramSettings",
    "AffiliateTier",
    "CommissionRule",
    "Customer",
    "NotificationQueue",
    "Order",
    "OrderItem",
    "ProductCommissionRate",
    "Referral",
    "SystemLog",
]
