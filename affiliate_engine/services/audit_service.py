"""
Audit service.

Writes admin-visible system log entries and mirrors them to loguru.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate_engine.models.enums import SystemLogLevel
from affiliate_engine.models.system_log import SystemLog
from affiliate_engine.repositories.system_log_repository import (
    SystemLogRepository,
)
from affiliate_engine.services.base_service import BaseService

SENSITIVE_KEYS = ("password", "token", "secret", "key", "apikey", "creditcard", "cvv")
MASK = "***MASKED***"

# SystemLog level -> loguru level
_LOGURU_LEVELS = {
    SystemLogLevel.INFO: "INFO",
    SystemLogLevel.WARN: "WARNING",
    SystemLogLevel.ERROR: "ERROR",
    SystemLogLevel.CRITICAL: "CRITICAL",
}


def serialize_context(data: Any) -> Any:
    """
    Make a value JSON safe for a log context.

    Decimals become strings (no float rounding), datetimes ISO strings,
    exceptions a ``{type, message}`` document. Values under keys that look
    sensitive are masked.

    Args:
        data: Value to serialize

    Returns:
        JSON serializable value
    """
    if data is None or isinstance(data, (bool, int, float, str)):
        return data
    if isinstance(data, Decimal):
        return str(data)
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, BaseException):
        return {"type": type(data).__name__, "message": str(data)}
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            name = str(key)
            if any(s in name.lower() for s in SENSITIVE_KEYS):
                result[name] = MASK
            else:
                result[name] = serialize_context(value)
        return result
    if isinstance(data, (list, tuple, set)):
        return [serialize_context(item) for item in data]
    return str(data)


class AuditService(BaseService):
    """
    System log writer.

    Entries are added to the caller's session and become visible when the
    caller commits.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repository = SystemLogRepository(session)

    async def system_log(
        self,
        level: SystemLogLevel,
        source: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> SystemLog:
        """
        Record a system log entry.

        Args:
            level: Severity
            source: Emitting component (e.g. FRAUD_SHIELD)
            message: Human readable message
            context: Structured details

        Returns:
            Created entry
        """
        safe_context = serialize_context(context) if context is not None else None

        self.logger.bind(source=source, context=safe_context).log(
            _LOGURU_LEVELS[SystemLogLevel(level)], "[{}] {}", source, message
        )

        return await self.repository.create(
            level=SystemLogLevel(level).value,
            source=source,
            message=message,
            context=safe_context,
        )
