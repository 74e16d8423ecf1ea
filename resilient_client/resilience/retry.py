"""
Retry policy with exponential backoff and jitter.

This module wraps a single-attempt send function so that transient
failures (network errors, 5xx, 429, 408) are retried with exponential
backoff plus uniformly distributed jitter, up to a fixed retry budget.

Retry N (1-indexed) waits:
    initial_delay * exponential_base ^ (N - 1) + uniform(0, initial_delay)

With the defaults (3 retries, 1 second) a request that keeps failing is
attempted 4 times, waiting roughly 1s, 2s and 4s plus jitter in between.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from resilient_client.config.settings import ClientConfig
from resilient_client.errors.codes import ErrorCode
from resilient_client.errors.exceptions import RequestFailedError
from resilient_client.transport.models import ApiRequest, AttemptResult, Outcome

logger = logging.getLogger(__name__)

# Backoff wait, patched per module in tests
sleep = asyncio.sleep

SendFunc = Callable[[ApiRequest], Awaitable[AttemptResult]]


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_retries: Retries allowed after the initial attempt. Default is 3.
        initial_delay: Delay before the first retry in seconds. Default is 1.0.
        exponential_base: Base for exponential backoff calculation.
            Default is 2.0 (delays: 1s, 2s, 4s).
        max_delay: Maximum exponential component in seconds.
            Default is None (no maximum).
        jitter_ratio: Upper bound of the jitter as a fraction of
            initial_delay. Default is 1.0.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: Optional[float] = None
    jitter_ratio: float = 1.0

    @classmethod
    def from_client_config(cls, config: ClientConfig) -> "RetryConfig":
        return cls(
            max_retries=config.max_retries,
            initial_delay=config.initial_retry_delay,
            max_delay=config.max_retry_delay,
        )


class RetryExhaustedException(RequestFailedError):
    """
    Exception raised when a transient failure outlasts the retry budget.

    Also raised on the first transient failure of a request marked
    non-idempotent, since such a request is never retried.

    Attributes:
        attempts: Number of attempts made
        last_result: The classified result of the final attempt
        last_exception: The transport exception of the final attempt, if any
        operation_name: Name of the operation that failed
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_result: AttemptResult,
        operation_name: Optional[str] = None
    ):
        self.attempts = attempts
        self.last_result = last_result
        self.last_exception = last_result.error
        self.operation_name = operation_name
        super().__init__(
            error_code=ErrorCode.RETRIES_EXHAUSTED,
            message=message,
            details={
                "attempts": attempts,
                "last_error": last_result.describe_failure(),
                "operation": operation_name,
            },
            response=last_result.response
        )


def calculate_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float = 2.0,
    max_delay: Optional[float] = None
) -> float:
    """
    Calculate the backoff delay for a retry, without jitter.

    The delay is calculated as: initial_delay * (exponential_base ^ (attempt - 1))

    For default values (initial_delay=1.0, exponential_base=2.0):
    - Retry 1: 1.0 * (2.0 ^ 0) = 1.0 second
    - Retry 2: 1.0 * (2.0 ^ 1) = 2.0 seconds
    - Retry 3: 1.0 * (2.0 ^ 2) = 4.0 seconds

    Args:
        attempt: The retry number (1-indexed)
        initial_delay: The initial delay in seconds
        exponential_base: The base for exponential calculation
        max_delay: Optional maximum delay cap

    Returns:
        The calculated delay in seconds
    """
    if attempt < 1:
        raise ValueError("attempt is 1-indexed")

    delay = initial_delay * (exponential_base ** (attempt - 1))

    if max_delay is not None:
        delay = min(delay, max_delay)

    return delay


def calculate_jitter(initial_delay: float, jitter_ratio: float = 1.0) -> float:
    """Uniform random jitter in [0, initial_delay * jitter_ratio]."""
    return random.uniform(0, initial_delay * jitter_ratio)


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Full delay for a retry: exponential component plus jitter."""
    return calculate_delay(
        attempt,
        config.initial_delay,
        config.exponential_base,
        config.max_delay
    ) + calculate_jitter(config.initial_delay, config.jitter_ratio)


def with_retry(
    send: SendFunc,
    config: Optional[RetryConfig] = None,
    *,
    operation_name: Optional[str] = None
) -> SendFunc:
    """
    Wrap a send function with the retry policy.

    Only RETRYABLE outcomes are retried. Every other outcome is returned
    to the caller of the wrapper unchanged, and exceptions raised by the
    wrapped function propagate untouched.

    Example usage:
        send = with_retry(executor.send, RetryConfig(max_retries=5))
        result = await send(ApiRequest("GET", "/api/calls"))

    Args:
        send: The async function performing one (possibly refreshed) attempt
        config: Optional RetryConfig object with retry settings
        operation_name: Optional name for logging purposes

    Returns:
        An async function with the same signature as send

    Raises:
        RetryExhaustedException: When the retry budget is used up, or a
            request marked non-idempotent fails transiently
    """
    effective_config = config or RetryConfig()

    @functools.wraps(send)
    async def wrapper(request: ApiRequest) -> AttemptResult:
        op_name = operation_name or f"{request.method} {request.url}"

        while True:
            result = await send(request)
            if result.outcome is not Outcome.RETRYABLE:
                return result

            if not request.retry_allowed:
                logger.error(
                    "Operation '%s' failed with %s and is marked non-idempotent, not retrying",
                    op_name,
                    result.describe_failure(),
                    extra={"extra_data": {
                        "operation": op_name,
                        "last_error": result.describe_failure(),
                    }}
                )
                raise RetryExhaustedException(
                    f"Operation '{op_name}' failed and is not safe to retry",
                    attempts=request.attempt_count + 1,
                    last_result=result,
                    operation_name=op_name
                ) from result.error

            if request.attempt_count >= effective_config.max_retries:
                attempts = request.attempt_count + 1
                logger.error(
                    "Retry exhausted for operation '%s' after %d attempts. "
                    "Last error: %s",
                    op_name,
                    attempts,
                    result.describe_failure(),
                    extra={"extra_data": {
                        "operation": op_name,
                        "attempts": attempts,
                        "last_error": result.describe_failure(),
                    }}
                )
                raise RetryExhaustedException(
                    f"Operation '{op_name}' failed after {attempts} attempts",
                    attempts=attempts,
                    last_result=result,
                    operation_name=op_name
                ) from result.error

            request.attempt_count += 1
            delay = backoff_delay(request.attempt_count, effective_config)

            logger.warning(
                "Retry attempt %d/%d for operation '%s' after %s. "
                "Retrying in %.2f seconds...",
                request.attempt_count,
                effective_config.max_retries,
                op_name,
                result.describe_failure(),
                delay,
                extra={"extra_data": {
                    "operation": op_name,
                    "attempt": request.attempt_count,
                    "max_retries": effective_config.max_retries,
                    "delay_seconds": delay,
                    "last_error": result.describe_failure(),
                }}
            )

            await sleep(delay)

    return wrapper
