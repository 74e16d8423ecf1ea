"""
Credential refresh gate and the auth-refresh decorator.

When a request comes back 401, its access token has most likely expired.
The gate exchanges the refresh token for a new pair exactly once, no
matter how many requests hit the 401 at the same moment, and every one
of them is replayed once with the new credential.

Per request:
1. Mark refresh_attempted, so a 401 after the replay is fatal
2. Join the refresh flight (start it if none is running)
3. Replay the request once with the new credential

If the refresh fails, the stored credentials are cleared, the registered
session-expired listeners are notified once, and every waiting request
raises SessionExpiredError.
"""

import inspect
import logging
from typing import Awaitable, Callable, List, NoReturn, Optional, Union

import httpx

from resilient_client.config.settings import DEFAULT_REFRESH_PATH
from resilient_client.credentials.store import CredentialPair, CredentialStore
from resilient_client.errors.exceptions import SessionExpiredError, session_expired
from resilient_client.resilience.retry import SendFunc
from resilient_client.resilience.single_flight import SingleFlight
from resilient_client.telemetry.service import get_telemetry_service
from resilient_client.transport.models import ApiRequest, AttemptResult, Outcome

logger = logging.getLogger(__name__)

SessionExpiredListener = Callable[[SessionExpiredError], Union[None, Awaitable[None]]]


def parse_token_response(
    response: httpx.Response,
    previous_refresh_token: Optional[str] = None
) -> Optional[CredentialPair]:
    """
    Extract the new credential pair from a refresh response.

    Both camelCase and snake_case field names are accepted. When the
    backend does not rotate the refresh token, the previous one is kept.

    Args:
        response: Successful response of the refresh endpoint
        previous_refresh_token: Refresh token used for the exchange

    Returns:
        The new pair, or None when the body carries no access token
        (the backend refreshed httpOnly cookies instead)

    Raises:
        ValueError: If the body is present but is not a JSON object
    """
    if not response.content:
        return None

    body = response.json()
    if not isinstance(body, dict):
        raise ValueError("refresh response body is not a JSON object")

    access_token = body.get("accessToken") or body.get("access_token")
    if not access_token:
        return None

    refresh_token = (
        body.get("refreshToken")
        or body.get("refresh_token")
        or previous_refresh_token
    )
    return CredentialPair(access_token, refresh_token)


class AuthRefreshGate:
    """
    Serializes credential refreshes across concurrent requests.

    The gate owns a SingleFlight: the first request to observe a 401
    starts the refresh call, later ones await the same flight.

    Example:
        gate = AuthRefreshGate(executor.send, store, refresh_url="/api/auth/refresh")
        gate.add_session_expired_listener(lambda exc: redirect_to_login())
        send = with_auth_refresh(executor.send, gate)
    """

    def __init__(
        self,
        send: SendFunc,
        credential_store: CredentialStore,
        refresh_url: str = DEFAULT_REFRESH_PATH
    ):
        """
        Initialize the gate.

        Args:
            send: Single-attempt send function used for the refresh call.
                The refresh call is not retried.
            credential_store: Store holding the pair being refreshed
            refresh_url: Path or URL of the refresh endpoint
        """
        self._send = send
        self.credential_store = credential_store
        self.refresh_url = refresh_url
        self._flight: SingleFlight[Optional[CredentialPair]] = SingleFlight("credential-refresh")
        self._listeners: List[SessionExpiredListener] = []

    @property
    def in_flight(self) -> bool:
        return self._flight.in_flight

    @property
    def refresh_count(self) -> int:
        """Number of refresh calls started by this gate."""
        return self._flight.flights_started

    def add_session_expired_listener(self, listener: SessionExpiredListener) -> None:
        self._listeners.append(listener)

    def remove_session_expired_listener(self, listener: SessionExpiredListener) -> None:
        self._listeners.remove(listener)

    async def refresh(self) -> Optional[CredentialPair]:
        """
        Refresh the credential, joining a refresh already in progress.

        Returns:
            The new pair, or the stored pair after a cookie-only refresh

        Raises:
            SessionExpiredError: If the refresh failed. Every caller that
                joined the same flight receives the same exception.
        """
        return await self._flight.run(self._perform_refresh)

    async def _perform_refresh(self) -> Optional[CredentialPair]:
        refresh_token = await self.credential_store.get_refresh_token()
        headers = {}
        if refresh_token:
            headers["Authorization"] = f"Bearer {refresh_token}"

        request = ApiRequest(
            "POST",
            self.refresh_url,
            headers=headers,
            json={},
            idempotent=False,
            authenticate=False,
            refresh_attempted=True,
        )

        logger.info("Starting credential refresh", extra={"extra_data": {"refresh_url": self.refresh_url}})
        result = await self._send(request)

        # A 3xx (e.g. a redirect to a login page) is not a refreshed session
        if result.outcome is not Outcome.SUCCESS or not result.response.is_success:
            await self._fail(f"Credential refresh failed with {result.describe_failure()}", result)

        try:
            tokens = parse_token_response(result.response, refresh_token)
        except ValueError as e:
            await self._fail(f"Credential refresh returned an unreadable body: {e}", result, cause=e)

        if tokens is None:
            logger.debug("Credential refresh response carried no tokens, relying on cookies")
            self._record("success")
            return await self.credential_store.get_tokens()

        await self.credential_store.set_tokens(tokens.access_token, tokens.refresh_token)
        logger.info("Credential refresh successful")
        self._record("success")
        return tokens

    async def _fail(
        self,
        message: str,
        result: AttemptResult,
        cause: Optional[Exception] = None
    ) -> NoReturn:
        logger.error(
            "%s, clearing stored credentials",
            message,
            extra={"extra_data": {"status_code": result.status_code}}
        )
        self._record("failure")
        await self.credential_store.clear_tokens()

        error = session_expired(
            details={"reason": "session_expired", "refresh_error": result.describe_failure()},
            response=result.response
        )
        await self._notify(error)
        raise error from (cause or result.error)

    async def _notify(self, error: SessionExpiredError) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(error)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Session expired listener %r failed", listener)

    def _record(self, status: str) -> None:
        telemetry = get_telemetry_service()
        if telemetry:
            telemetry.record_metric("client.credential_refresh", 1, tags={"status": status})


def with_auth_refresh(send: SendFunc, gate: AuthRefreshGate) -> SendFunc:
    """
    Wrap a send function so that an expired credential is refreshed once.

    Outcomes other than AUTH_EXPIRED pass through untouched. After a
    refresh the request is replayed exactly once; because the request is
    then marked refresh_attempted, a second 401 comes back FATAL and never
    re-enters the gate.

    Args:
        send: Single-attempt send function
        gate: Gate shared by every request of the client

    Returns:
        An async function with the same signature as send
    """
    async def wrapper(request: ApiRequest) -> AttemptResult:
        result = await send(request)
        if result.outcome is not Outcome.AUTH_EXPIRED:
            return result

        request.refresh_attempted = True
        logger.info(
            "%s %s unauthorized, waiting for credential refresh",
            request.method,
            request.url,
            extra={"extra_data": request.describe()}
        )
        await gate.refresh()
        return await send(request)

    return wrapper
