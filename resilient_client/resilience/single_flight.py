"""
Single-flight execution of an async operation.

A SingleFlight runs at most one instance of an operation at a time. The
first caller creates the flight; every caller arriving while it is in
progress awaits the same future and receives the same result or the same
exception. Once the flight settles the handle is released, and the next
caller starts a fresh flight.

State machine:
- IDLE: no flight exists
- IN_FLIGHT: exactly one flight exists; callers join it
- IN_FLIGHT -> IDLE: when the flight settles, via its done callback

The check-and-create step runs under an asyncio.Lock, so two callers that
arrive together can never both become creators.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Lock-guarded optional handle to an in-progress operation.

    Example:
        refresh_flight = SingleFlight("credential-refresh")

        async def on_unauthorized():
            # Any number of concurrent callers, one refresh
            return await refresh_flight.run(refresh_tokens)

    A caller cancelled while waiting leaves the shared flight running for
    the remaining callers.
    """

    def __init__(self, name: str = "single-flight"):
        self.name = name
        self._lock = asyncio.Lock()
        self._flight: Optional[asyncio.Future] = None
        self._flights_started = 0

    @property
    def in_flight(self) -> bool:
        return self._flight is not None

    @property
    def flights_started(self) -> int:
        return self._flights_started

    async def run(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Join the current flight, starting one with func if none exists.

        Args:
            func: Zero-argument coroutine function performing the operation.
                Only called by the caller that creates the flight.

        Returns:
            The result of the flight

        Raises:
            Exception: Whatever the flight raised, re-raised to every caller
        """
        async with self._lock:
            flight = self._flight
            if flight is None:
                flight = asyncio.ensure_future(func())
                flight.add_done_callback(self._release)
                self._flight = flight
                self._flights_started += 1
                logger.debug(
                    "Started flight '%s'",
                    self.name,
                    extra={"extra_data": {"flight": self.name, "flights_started": self._flights_started}}
                )

        return await asyncio.shield(flight)

    def _release(self, flight: asyncio.Future) -> None:
        if self._flight is flight:
            self._flight = None
        # Mark the exception retrieved even if every waiter was cancelled
        if not flight.cancelled():
            flight.exception()

    def __repr__(self) -> str:
        state = "in_flight" if self.in_flight else "idle"
        return f"SingleFlight(name={self.name!r}, state={state}, flights_started={self._flights_started})"
