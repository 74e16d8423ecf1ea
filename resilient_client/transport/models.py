"""
Request and outcome models for the transport layer.

An ApiRequest is owned by exactly one logical call. Its mutable fields
(attempt_count, refresh_attempted) record what the resilience layer has
already done for that call and are never shared between calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import httpx


class Outcome(Enum):
    """
    Classification of a single network attempt.

    - SUCCESS: 2xx/3xx response, returned to the caller verbatim
    - RETRYABLE: transient failure, eligible for backoff and retry
    - AUTH_EXPIRED: 401 on a request that has not refreshed yet
    - FATAL: the request cannot succeed as sent
    """
    SUCCESS = "success"
    RETRYABLE = "retryable"
    AUTH_EXPIRED = "auth_expired"
    FATAL = "fatal"


@dataclass
class ApiRequest:
    """
    One outbound API call.

    Attributes:
        method: HTTP method, normalized to upper case
        url: Absolute URL, or a path relative to the client's base URL
        headers: Extra request headers
        params: Query string parameters
        json: JSON-serializable body
        content: Raw body, used when json is not given
        timeout: Per-attempt timeout override in seconds
        idempotent: False marks a request that must never be retried.
            None (unmarked) and True are retried on transient failures.
        authenticate: Attach the stored access token. The refresh call
            itself is sent with this set to False.
        attempt_count: Retries performed so far
        refresh_attempted: Whether this request already went through a
            credential refresh
    """
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Mapping[str, Any]] = None
    json: Optional[Any] = None
    content: Optional[Union[str, bytes]] = None
    timeout: Optional[float] = None
    idempotent: Optional[bool] = None
    authenticate: bool = True
    attempt_count: int = 0
    refresh_attempted: bool = False

    def __post_init__(self):
        self.method = self.method.upper()

    @property
    def retry_allowed(self) -> bool:
        return self.idempotent is not False

    def describe(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "attempt_count": self.attempt_count,
            "refresh_attempted": self.refresh_attempted,
        }


@dataclass
class AttemptResult:
    """
    The classified result of one attempt.

    Exactly one of response and error is set: response when the backend
    answered, error when the attempt failed before a response arrived.
    """
    outcome: Outcome
    response: Optional[httpx.Response] = None
    error: Optional[Exception] = None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    def describe_failure(self) -> str:
        if self.response is not None:
            return f"HTTP {self.response.status_code}"
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return self.outcome.value
