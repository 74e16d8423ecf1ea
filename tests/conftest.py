"""
Shared pytest fixtures and configuration for all tests.
"""
import asyncio
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx
import pytest

# Hypothesis configuration for property-based testing
from hypothesis import settings, Verbosity, Phase

from resilient_client.config.settings import clear_settings_cache
from resilient_client.credentials.memory_store import InMemoryCredentialStore
from resilient_client.telemetry.service import reset_telemetry

# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]


class FakeBackend:
    """
    Scriptable backend for httpx.MockTransport.

    Routes are keyed by path. Each route handler receives the request and
    returns a response (or raises an httpx exception). Every request is
    recorded so tests can count calls per path and inspect headers.
    """

    def __init__(self):
        self.routes: Dict[str, Handler] = {}
        self.requests: List[httpx.Request] = []

    def route(self, path: str, handler: Handler) -> None:
        self.routes[path] = handler

    def route_sequence(self, path: str, *responses: Any) -> None:
        self.routes[path] = sequence(*responses)

    @staticmethod
    def bearer(request: httpx.Request) -> Optional[str]:
        value = request.headers.get("Authorization")
        if value and value.startswith("Bearer "):
            return value[len("Bearer "):]
        return None

    def calls(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        response = handler(request)
        if asyncio.iscoroutine(response):
            response = await response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def sequence(*responses: Any) -> Handler:
    """
    Handler returning the given responses in order, repeating the last.

    Items may be status codes, httpx.Response objects, or exceptions to raise.
    """
    remaining = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        item = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, int):
            return httpx.Response(item, json={"status": item})
        return item

    return handler


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore("old-access", "old-refresh")


@pytest.fixture
def recorded_sleeps(monkeypatch) -> List[float]:
    """
    Record backoff delays without waiting for them.

    Only the retry module's sleep is replaced; asyncio.sleep elsewhere
    (backend handlers, servers) keeps real timing. The replacement still
    yields to the event loop so concurrent tasks keep interleaving.
    """
    delays: List[float] = []

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await asyncio.sleep(0)

    monkeypatch.setattr("resilient_client.resilience.retry.sleep", fake_sleep)
    return delays


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    clear_settings_cache()
    reset_telemetry()


class FakeRedis:
    """
    Minimal in-memory stand-in for the redis.asyncio client commands used
    by RedisCredentialStore (hmget, delete, ping and MULTI/EXEC pipelines).
    """

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.executed_transactions = 0

    async def hmget(self, key, fields):
        mapping = self.data.get(key, {})
        return [mapping.get(name) for name in fields]

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self):
        return True

    async def close(self):
        pass

    def pipeline(self, transaction=True):
        return _FakePipeline(self)


class _FakePipeline:
    def __init__(self, redis: FakeRedis):
        self._redis = redis
        self._commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    def delete(self, *keys):
        self._commands.append(("delete", keys))
        return self

    def hset(self, key, mapping):
        self._commands.append(("hset", (key, mapping)))
        return self

    async def execute(self):
        results = []
        for name, args in self._commands:
            if name == "delete":
                results.append(await self._redis.delete(*args))
            else:
                key, mapping = args
                self._redis.data.setdefault(key, {}).update(mapping)
                results.append(len(mapping))
        self._commands = []
        self._redis.executed_transactions += 1
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
