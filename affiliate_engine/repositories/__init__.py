"""
Repositories.

Data access layer; one repository per aggregate.
"""

from affiliate_engine.repositories.affiliate_repository import (
    AffiliateClickRepository,
    AffiliateRepository,
    AffiliateTierRepository,
)
from affiliate_engine.repositories.analytics_repository import AnalyticsRepository
from affiliate_engine.repositories.base import BaseRepository
from affiliate_engine.repositories.commission_rule_repository import (
    CommissionRuleRepository,
    ProductRateRepository,
)
from affiliate_engine.repositories.ledger_repository import (
    AffiliateLedgerRepository,
)
from affiliate_engine.repositories.notification_repository import (
    NotificationQueueRepository,
)
from affiliate_engine.repositories.order_repository import (
    CustomerRepository,
    OrderRepository,
)
from affiliate_engine.repositories.program_settings_repository import (
    ProgramSettingsRepository,
)
from affiliate_engine.repositories.referral_repository import ReferralRepository
from affiliate_engine.repositories.system_log_repository import (
    SystemLogRepository,
)

__all__ = [
    "BaseRepository",
    "AffiliateClickRepository",
    "AffiliateLedgerRepository",
    "AffiliateRepository",
    "AffiliateTierRepository",
    "AnalyticsRepository",
    "CommissionRuleRepository",
    "CustomerRepository",
    "NotificationQueueRepository",
    "OrderRepository",
    "ProductRateRepository",
    "ProgramSettingsRepository",
    "ReferralRepository",
    "SystemLogRepository",
]
