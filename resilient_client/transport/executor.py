"""
Single-attempt request executor.

The executor performs exactly one network attempt, attaching the access
token that is current at send time, and classifies the result. It never
retries, never refreshes and never mutates stored credentials; those
decisions belong to the resilience layer wrapped around it.
"""

import asyncio
import logging
from typing import Dict

import httpx

from resilient_client.credentials.store import CredentialStore
from resilient_client.telemetry.context import REQUEST_ID_HEADER, get_request_id
from resilient_client.transport.models import ApiRequest, AttemptResult, Outcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Statuses that signal a transient condition on the backend side
RETRYABLE_STATUS_CODES = frozenset({408, 429})

# Transport failures worth another attempt: timeouts, refused or reset
# connections, DNS lookup failures, unreachable proxies, connections
# dropped mid-response. UnsupportedProtocol and LocalProtocolError mean
# the request itself is malformed and stay FATAL.
RETRYABLE_TRANSPORT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.ProxyError,
    httpx.RemoteProtocolError,
)


def classify_status(status_code: int, refresh_attempted: bool) -> Outcome:
    """
    Classify an HTTP status for a request.

    Args:
        status_code: The response status
        refresh_attempted: Whether the request already went through a
            credential refresh

    Returns:
        The outcome for the status
    """
    if status_code < 400:
        return Outcome.SUCCESS
    if status_code >= 500 or status_code in RETRYABLE_STATUS_CODES:
        return Outcome.RETRYABLE
    if status_code == 401:
        return Outcome.FATAL if refresh_attempted else Outcome.AUTH_EXPIRED
    return Outcome.FATAL


def classify_exception(error: Exception) -> Outcome:
    """Classify an exception raised before a response arrived."""
    if isinstance(error, RETRYABLE_TRANSPORT_ERRORS):
        return Outcome.RETRYABLE
    return Outcome.FATAL


class RequestExecutor:
    """
    Sends one attempt of an ApiRequest through an httpx.AsyncClient.

    Example:
        executor = RequestExecutor(httpx.AsyncClient(base_url=url), store)
        result = await executor.send(ApiRequest("GET", "/api/teams"))
        if result.outcome is Outcome.SUCCESS:
            teams = result.response.json()
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credential_store: CredentialStore,
        timeout: float = DEFAULT_TIMEOUT
    ):
        """
        Initialize the executor.

        Args:
            http_client: Client used for the network call. It owns the base
                URL, default headers and the cookie jar.
            credential_store: Store the access token is read from
            timeout: Default per-attempt timeout in seconds
        """
        self.http_client = http_client
        self.credential_store = credential_store
        self.timeout = timeout

    async def build_headers(self, request: ApiRequest) -> Dict[str, str]:
        """
        Build the headers for one attempt.

        The access token is read from the store here, on every attempt,
        so a retry or replay picks up a credential replaced in between.
        """
        headers = dict(request.headers)
        has_authorization = any(name.lower() == "authorization" for name in headers)

        if request.authenticate and not has_authorization:
            access_token = await self.credential_store.get_access_token()
            if access_token:
                headers["Authorization"] = f"Bearer {access_token}"

        request_id = get_request_id()
        if request_id:
            headers.setdefault(REQUEST_ID_HEADER, request_id)

        return headers

    async def send(self, request: ApiRequest) -> AttemptResult:
        """
        Perform one network attempt and classify it.

        The timeout bounds the whole attempt, body included. Exceeding it
        is a RETRYABLE httpx.TimeoutException.

        Args:
            request: The request to send

        Returns:
            The classified attempt result. Exceptions raised by httpx for
            the attempt are captured in the result, not raised.
        """
        headers = await self.build_headers(request)
        timeout = request.timeout if request.timeout is not None else self.timeout

        logger.debug(
            "Sending %s %s",
            request.method,
            request.url,
            extra={"extra_data": request.describe()}
        )

        try:
            # httpx timeouts are per phase, the attempt as a whole is bounded here
            response = await asyncio.wait_for(
                self.http_client.request(
                    request.method,
                    request.url,
                    params=request.params,
                    json=request.json,
                    content=request.content,
                    headers=headers,
                    timeout=timeout,
                ),
                timeout
            )
        except asyncio.TimeoutError:
            logger.debug(
                "%s %s exceeded the %.2fs attempt timeout",
                request.method,
                request.url,
                timeout,
                extra={"extra_data": {"outcome": Outcome.RETRYABLE.value, "timeout_seconds": timeout}}
            )
            return AttemptResult(
                Outcome.RETRYABLE,
                error=httpx.TimeoutException(
                    f"{request.method} {request.url} did not complete within {timeout}s"
                )
            )
        except httpx.RequestError as e:
            outcome = classify_exception(e)
            logger.debug(
                "%s %s failed with %s: %s",
                request.method,
                request.url,
                type(e).__name__,
                str(e),
                extra={"extra_data": {"outcome": outcome.value, "error_type": type(e).__name__}}
            )
            return AttemptResult(outcome, error=e)

        outcome = classify_status(response.status_code, request.refresh_attempted)
        logger.debug(
            "%s %s returned %d",
            request.method,
            request.url,
            response.status_code,
            extra={"extra_data": {"outcome": outcome.value, "status_code": response.status_code}}
        )
        return AttemptResult(outcome, response=response)
