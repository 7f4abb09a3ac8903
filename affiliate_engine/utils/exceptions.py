"""
Exception handling utilities.

Defines the engine's exception hierarchy and categorized exception types
used to decide whether a failed job is retried.
"""

from sqlalchemy.exc import DBAPIError, OperationalError


class AffiliateEngineError(Exception):
    """Base class for engine errors."""
    pass


class AffiliateNotFoundError(AffiliateEngineError):
    """Raised when an affiliate account is missing or soft-deleted."""

    def __init__(self, affiliate_id: int) -> None:
        super().__init__(f"Affiliate {affiliate_id} not found or deleted")
        self.affiliate_id = affiliate_id


class InsufficientBalanceError(AffiliateEngineError):
    """Raised when a debit would make an affiliate balance negative."""
    pass


class LedgerImmutableError(AffiliateEngineError):
    """Raised on any attempt to mutate or delete a ledger entry."""
    pass


# Transient infrastructure failures - safe to retry on the next run
TRANSIENT_ERRORS = (
    OperationalError,
    DBAPIError,
)


def is_transient(exc: BaseException) -> bool:
    """
    Check if exception is a transient infrastructure failure.

    Args:
        exc: Exception to check

    Returns:
        True if a later retry may succeed
    """
    return isinstance(exc, TRANSIENT_ERRORS)
