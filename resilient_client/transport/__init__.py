"""
Transport layer for the resilient API client.

This package provides the request/outcome models and the executor that
performs a single classified network attempt.
"""

from resilient_client.transport.executor import (
    RETRYABLE_STATUS_CODES,
    RequestExecutor,
    classify_exception,
    classify_status,
)
from resilient_client.transport.models import ApiRequest, AttemptResult, Outcome

__all__ = [
    "ApiRequest",
    "AttemptResult",
    "Outcome",
    "RETRYABLE_STATUS_CODES",
    "RequestExecutor",
    "classify_exception",
    "classify_status",
]
