"""
Resilient API client.

ResilientClient is the only entry point application code needs. It sends
every request through:

    with_retry(with_auth_refresh(executor.send, refresh_gate), retry_config)

Callers get back either the successful httpx.Response or one terminal
exception. Retries and credential refreshes are never visible to them.
"""

import logging
import time
from typing import Any, Mapping, Optional, Union

import httpx

from resilient_client.config.settings import (
    DEFAULT_API_BASE_URL,
    DEFAULT_REFRESH_PATH,
    ClientConfig,
    Settings,
    get_settings,
)
from resilient_client.credentials.memory_store import InMemoryCredentialStore
from resilient_client.credentials.redis_store import RedisCredentialStore
from resilient_client.credentials.store import CredentialStore
from resilient_client.errors.exceptions import (
    ApiClientException,
    client_error,
    request_error,
    unauthorized,
)
from resilient_client.resilience.auth_refresh import (
    AuthRefreshGate,
    SessionExpiredListener,
    with_auth_refresh,
)
from resilient_client.resilience.retry import RetryConfig, with_retry
from resilient_client.telemetry.context import request_id_scope
from resilient_client.telemetry.service import get_telemetry_service
from resilient_client.transport.executor import RequestExecutor
from resilient_client.transport.models import ApiRequest, AttemptResult, Outcome

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json"}


class ResilientClient:
    """
    HTTP client that retries transient failures and refreshes expired
    credentials transparently.

    Example:
        store = InMemoryCredentialStore(access_token, refresh_token)
        async with ResilientClient("https://api.example.com", store) as client:
            client.on_session_expired(lambda exc: show_login("session_expired"))
            response = await client.get("/api/teams")
            teams = response.json()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        credential_store: Optional[CredentialStore] = None,
        config: Optional[ClientConfig] = None,
        *,
        refresh_path: str = DEFAULT_REFRESH_PATH,
        headers: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL every relative request path is resolved against
            credential_store: Store for the token pair. Defaults to an empty
                in-memory store.
            config: Retry budget, initial retry delay and timeout
            refresh_path: Path or URL of the credential refresh endpoint
            headers: Extra default headers sent with every request
            http_client: Pre-built httpx client. When given, base_url,
                headers and transport are ignored and the caller owns it.
            transport: Custom httpx transport (e.g. httpx.MockTransport)
        """
        self.config = config or ClientConfig()
        self.credential_store = credential_store or InMemoryCredentialStore()

        self._owns_http_client = http_client is None
        if http_client is None:
            http_client = httpx.AsyncClient(
                base_url=base_url,
                headers={**DEFAULT_HEADERS, **dict(headers or {})},
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=False,
                transport=transport,
            )
        self.http_client = http_client

        self.executor = RequestExecutor(
            self.http_client,
            self.credential_store,
            timeout=self.config.timeout
        )
        self.refresh_gate = AuthRefreshGate(
            self.executor.send,
            self.credential_store,
            refresh_url=refresh_path
        )
        self._send = with_retry(
            with_auth_refresh(self.executor.send, self.refresh_gate),
            RetryConfig.from_client_config(self.config)
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        credential_store: Optional[CredentialStore] = None,
        **kwargs: Any
    ) -> "ResilientClient":
        """
        Build a client from Settings.

        Args:
            settings: Settings to use. Defaults to get_settings().
            credential_store: Store to use. Defaults to the store described
                by settings (see create_credential_store).
            **kwargs: Extra keyword arguments passed to the constructor
        """
        settings = settings or get_settings()
        return cls(
            settings.effective_base_url,
            credential_store or create_credential_store(settings),
            settings.to_client_config(),
            refresh_path=settings.refresh_path,
            **kwargs
        )

    def on_session_expired(self, listener: SessionExpiredListener) -> SessionExpiredListener:
        """
        Register a listener called once per failed credential refresh.

        Can be used as a decorator. The listener receives the
        SessionExpiredError and may be a coroutine function.
        """
        self.refresh_gate.add_session_expired_listener(listener)
        return listener

    async def execute(self, request: ApiRequest) -> httpx.Response:
        """
        Send a request through the retry and refresh layers.

        Args:
            request: The request to send. It must not be reused for
                another call.

        Returns:
            The successful (2xx/3xx) response

        Raises:
            RequestFailedError: 4xx, a 401 after refresh, or a local error
            RetryExhaustedException: Transient failures outlasted the budget
            SessionExpiredError: The credential could not be refreshed
        """
        with request_id_scope() as request_id:
            telemetry = get_telemetry_service()
            span_cm = (
                telemetry.create_client_span(request.method, request.url, {"request_id": request_id})
                if telemetry else None
            )
            started = time.monotonic()
            status = "error"
            try:
                if span_cm is not None:
                    with span_cm:
                        result = await self._send(request)
                else:
                    result = await self._send(request)

                if result.outcome is Outcome.SUCCESS:
                    status = "success"
                    return result.response
                raise self._terminal_error(request, result) from result.error
            finally:
                if telemetry:
                    telemetry.record_metric(
                        "client.request.duration_ms",
                        (time.monotonic() - started) * 1000,
                        tags={"method": request.method, "status": status}
                    )

    def _terminal_error(self, request: ApiRequest, result: AttemptResult) -> ApiClientException:
        details = request.describe()
        response = result.response
        if response is not None:
            if response.status_code == 401:
                error = unauthorized(response, details=details)
            else:
                error = client_error(response, details=details)
        else:
            error = request_error(
                f"{request.method} {request.url} failed: {result.describe_failure()}",
                details=details
            )
        logger.warning(
            "%s",
            error.message,
            extra={"extra_data": {"error_code": error.error_code.value, **details}}
        )
        return error

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
        content: Optional[Union[str, bytes]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        idempotent: Optional[bool] = None
    ) -> httpx.Response:
        return await self.execute(ApiRequest(
            method,
            url,
            headers=dict(headers or {}),
            params=params,
            json=json,
            content=content,
            timeout=timeout,
            idempotent=idempotent,
        ))

    async def get(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("GET", url, **kw)

    async def post(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("POST", url, **kw)

    async def put(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("PUT", url, **kw)

    async def patch(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kw)

    async def delete(self, url: str, **kw: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kw)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "ResilientClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def create_credential_store(settings: Settings) -> CredentialStore:
    """
    Build the credential store described by settings.

    A Redis store is returned unconnected; call connect() on it, or use
    create_client() which does so.
    """
    if settings.credential_store_type == "redis" and settings.redis_url:
        return RedisCredentialStore(settings.redis_url, key_prefix=settings.credential_key_prefix)
    if settings.credential_store_type == "redis":
        logger.warning("redis_url not configured, falling back to in-memory credential store")
    return InMemoryCredentialStore()


async def create_client(settings: Optional[Settings] = None, **kwargs: Any) -> ResilientClient:
    """
    Build a ResilientClient from settings and connect its credential store.

    Args:
        settings: Settings to use. Defaults to get_settings().
        **kwargs: Extra keyword arguments passed to the constructor
    """
    settings = settings or get_settings()
    store = create_credential_store(settings)
    if isinstance(store, RedisCredentialStore):
        await store.connect()
    return ResilientClient.from_settings(settings, store, **kwargs)
