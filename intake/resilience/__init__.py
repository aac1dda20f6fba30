"""Resilience utilities for external service calls.

- Retry Logic: bounded attempts with exponential backoff
"""

from intake.resilience.retry import RetryExecutor, RetryPolicy

__all__ = [
    "RetryExecutor",
    "RetryPolicy",
]
