"""
Dramatiq middleware stack.

The broker is built from an explicit middleware list so that exactly one
``Retries`` instance sees each failed message. Messages are not
redelivered unless the actor opts in with a ``retry_when`` policy.
"""

from collections.abc import Callable

from dramatiq.middleware import CurrentMessage, Middleware, Retries, default_middleware

from affiliate_engine.utils.exceptions import is_transient

# Upper bound for redelivery of a failed order commission message
MAX_TRANSIENT_RETRIES = 5


def transient_retries(max_retries: int) -> Callable[[int, Exception], bool]:
    """
    Build a retry policy for transient database failures.

    Args:
        max_retries: Redeliveries allowed after the first attempt

    Returns:
        Predicate for the ``retry_when`` actor option
    """

    def retry_when(retries: int, exception: Exception) -> bool:
        # retries counts failures so far, starting at 1
        return retries <= max_retries and is_transient(exception)

    return retry_when


def build_middleware(
    min_backoff: int = 1000,
    max_backoff: int = 60000,
) -> list[Middleware]:
    """
    Default dramatiq middleware with a single ``Retries`` and ``CurrentMessage``.

    Args:
        min_backoff: Minimum redelivery delay in milliseconds
        max_backoff: Maximum redelivery delay in milliseconds

    Returns:
        Middleware instances for the broker constructor
    """
    middleware = [m() for m in default_middleware if m is not Retries]
    middleware.append(CurrentMessage())
    middleware.append(
        Retries(max_retries=0, min_backoff=min_backoff, max_backoff=max_backoff)
    )
    return middleware
