"""
Resilience Layer for TrustFuse.

Retry with exponential backoff for upstream source fetches.
"""

from .retry import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    execute_with_retry,
    is_transient_error,
)

__all__ = [
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    "execute_with_retry",
    "is_transient_error",
]
