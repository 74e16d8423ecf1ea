"""
Resilience patterns for the resilient API client.

This package provides the retry policy with exponential backoff and
jitter, the single-flight primitive, and the credential refresh gate
built on it. The client composes them as:

    with_retry(with_auth_refresh(executor.send, gate), retry_config)
"""

from resilient_client.resilience.auth_refresh import (
    AuthRefreshGate,
    parse_token_response,
    with_auth_refresh,
)
from resilient_client.resilience.retry import (
    RetryConfig,
    RetryExhaustedException,
    backoff_delay,
    calculate_delay,
    calculate_jitter,
    with_retry,
)
from resilient_client.resilience.single_flight import SingleFlight

__all__ = [
    # Retry
    "RetryConfig",
    "RetryExhaustedException",
    "backoff_delay",
    "calculate_delay",
    "calculate_jitter",
    "with_retry",
    # Refresh
    "AuthRefreshGate",
    "SingleFlight",
    "parse_token_response",
    "with_auth_refresh",
]
