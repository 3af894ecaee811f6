from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class CircuitOpenError(Exception):
    """Raised when calls are blocked by an open circuit."""


@dataclass
class CircuitBreakerState:
    failure_count: int = 0
    opened_at_seconds: float | None = None


def _always_failure(_: Exception) -> bool:
    return True


class CircuitBreaker:
    """Stops calling an upstream after consecutive failures.

    ``is_failure`` decides which exceptions count; answers such as "no route
    between these points" are the caller's problem, not an upstream outage.
    A call that overruns ``timeout_seconds`` is cancelled and counts as a
    failure like any other error.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout_seconds: int = 30,
        is_failure: Callable[[Exception], bool] = _always_failure,
        name: str = "upstream",
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout_seconds = recovery_timeout_seconds
        self._is_failure = is_failure
        self._name = name
        self._state = CircuitBreakerState()

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        now_seconds: float,
        timeout_seconds: float | None = None,
    ) -> T:
        if self._is_open(now_seconds):
            logger.warning("circuit_open", extra={"component": "api", "circuit": self._name})
            raise CircuitOpenError(f"{self._name} circuit is open")

        try:
            result = await asyncio.wait_for(operation(), timeout=timeout_seconds)
        except Exception as exc:
            if self._is_failure(exc):
                self._record_failure(now_seconds)
            else:
                self._record_success()
            raise
        self._record_success()
        return result

    def _is_open(self, now_seconds: float) -> bool:
        opened_at = self._state.opened_at_seconds
        if opened_at is None:
            return False
        if now_seconds - opened_at >= self._recovery_timeout_seconds:
            self._state.opened_at_seconds = None
            self._state.failure_count = 0
            logger.info("circuit_half_open", extra={"component": "api", "circuit": self._name})
            return False
        return True

    def _record_failure(self, now_seconds: float) -> None:
        self._state.failure_count += 1
        if self._state.failure_count >= self._failure_threshold:
            self._state.opened_at_seconds = now_seconds
            logger.error(
                "circuit_opened",
                extra={
                    "component": "api",
                    "circuit": self._name,
                    "failure_count": self._state.failure_count,
                    "opened_at_seconds": now_seconds,
                },
            )

    def _record_success(self) -> None:
        self._state.failure_count = 0
        self._state.opened_at_seconds = None
