"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from affiliate_engine.services.audit_service import AuditService, serialize_context
from affiliate_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Commission
from affiliate_engine.services.commission import (
    CommissionResolver,
    MLMDistributor,
    OrderProcessor,
    ProcessError,
    ProcessResult,
    RefundProcessor,
    RefundResult,
)
from affiliate_engine.services.config_provider import (
    ConfigProvider,
    ConfigSnapshot,
    load_snapshot,
)

# Risk
from affiliate_engine.services.fraud_guard import (
    FraudGuard,
    RiskAnalysisResult,
    run_risk_analysis,
)

# Balances
from affiliate_engine.services.ledger_service import LedgerService, LedgerVerification
from affiliate_engine.services.settlement_service import (
    SettlementOutcome,
    SettlementResult,
    SettlementService,
)
from affiliate_engine.services.tier_service import TierUpgradeResult, TierUpgradeService

__all__ = [
    "AuditService",
    "BaseService",
    "CommissionResolver",
    "ConfigProvider",
    "ConfigSnapshot",
    "FraudGuard",
    "LedgerService",
    "LedgerVerification",
    "MLMDistributor",
    "OrderProcessor",
    "ProcessError",
    "ProcessResult",
    "RefundProcessor",
    "RefundResult",
    "RiskAnalysisResult",
    "SettlementOutcome",
    "SettlementResult",
    "SettlementService",
    "TierUpgradeResult",
    "TierUpgradeService",
    "load_snapshot",
    "log_operation",
    "run_risk_analysis",
    "serialize_context",
    "transaction",
]
