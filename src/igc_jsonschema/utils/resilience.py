"""
Circuit breaking for calls to the catalog.
"""
import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

class CircuitBreakerState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

class CircuitBreakerOpenError(Exception):
    """Raised instead of calling the catalog while the breaker is OPEN."""
    def __init__(self, remaining_time: float = 0.0, message: str | None = None):
        super().__init__(message or f"Catalog calls suspended for another {remaining_time:.1f}s.")
        self.remaining_time = remaining_time # seconds until a trial call is let through

class CircuitBreaker:
    """
    Suspends calls to a failing catalog.

    ``failure_threshold`` consecutive failures open the circuit. Once
    ``recovery_timeout_seconds`` have passed, calls are let through on trial
    (HALF_OPEN): ``half_open_max_successes`` successful trials close the
    circuit and a single failed trial opens it again. Exceptions in
    ``ignored_exceptions`` mean the catalog answered (e.g. it rejected the
    request), so they propagate without counting against it.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 30.0,
        half_open_max_successes: int = 2,
        name: str | None = None,
        ignored_exceptions: tuple[type[BaseException], ...] = (),
    ):
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {failure_threshold}")
        if recovery_timeout_seconds <= 0:
            raise ValueError(f"recovery_timeout_seconds must be > 0, got {recovery_timeout_seconds}")
        if half_open_max_successes < 1:
            raise ValueError(f"half_open_max_successes must be >= 1, got {half_open_max_successes}")

        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self.half_open_max_successes = half_open_max_successes
        self.ignored_exceptions = ignored_exceptions
        self.name = name or f"cb-{id(self)}"

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._trial_successes = 0
        self._opened_at = 0.0
        self._lock = asyncio.Lock()
        self.logger = logger.bind(circuit_breaker=self.name)

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _transition(self, new_state: CircuitBreakerState) -> None:
        """Moves to ``new_state``; the caller holds the lock."""
        previous, self._state = self._state, new_state
        self._trial_successes = 0
        if new_state is CircuitBreakerState.OPEN:
            self._opened_at = time.monotonic()
            self.logger.warning("Catalog circuit opened.", previous=previous.value, failures=self._failure_count,
                                retry_after_seconds=self.recovery_timeout_seconds)
        elif new_state is CircuitBreakerState.CLOSED:
            self._failure_count = 0
            self.logger.info("Catalog circuit closed.", previous=previous.value)
        else:
            self.logger.info("Catalog circuit half-open; letting trial calls through.")

    async def _admit(self) -> None:
        async with self._lock:
            if self._state is not CircuitBreakerState.OPEN:
                return
            remaining = self.recovery_timeout_seconds - (time.monotonic() - self._opened_at)
            if remaining > 0:
                raise CircuitBreakerOpenError(remaining_time=remaining)
            self._transition(CircuitBreakerState.HALF_OPEN)

    async def _record(self, succeeded: bool) -> None:
        async with self._lock:
            if self._state is CircuitBreakerState.HALF_OPEN:
                if not succeeded:
                    self._transition(CircuitBreakerState.OPEN)
                    return
                self._trial_successes += 1
                if self._trial_successes >= self.half_open_max_successes:
                    self._transition(CircuitBreakerState.CLOSED)
            elif succeeded:
                self._failure_count = 0
            else:
                self._failure_count += 1
                if self._state is CircuitBreakerState.CLOSED and self._failure_count >= self.failure_threshold:
                    self._transition(CircuitBreakerState.OPEN)

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Awaits ``func(*args, **kwargs)``, or raises CircuitBreakerOpenError without calling it."""
        await self._admit()
        try:
            outcome = await func(*args, **kwargs)
        except self.ignored_exceptions:
            await self._record(True)
            raise
        except Exception:
            await self._record(False)
            raise
        await self._record(True)
        return outcome
