"""
Link reconnection support.

Provides retry policies with exponential backoff used when a transport
session ends and the host reopens the link.
"""

from .retry_policy import RetryAttempt, RetryOutcome, RetryPolicy, RetryResult

__all__ = [
    'RetryAttempt',
    'RetryOutcome',
    'RetryPolicy',
    'RetryResult',
]
