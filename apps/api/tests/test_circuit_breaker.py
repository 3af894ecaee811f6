import asyncio

import pytest

from api.circuit_breaker import CircuitBreaker, CircuitOpenError


@pytest.mark.asyncio
async def test_circuit_breaker_opens_after_threshold() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=30)
    now = 100.0

    async def fail_call() -> str:
        raise RuntimeError("external failure")

    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=now)
    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=now + 1)
    with pytest.raises(CircuitOpenError):
        await breaker.call(fail_call, now_seconds=now + 2)


@pytest.mark.asyncio
async def test_circuit_breaker_recovers_after_timeout() -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=10)
    now = 100.0

    async def fail_call() -> str:
        raise RuntimeError("external failure")

    async def success_call() -> str:
        return "ok"

    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=now)
    with pytest.raises(CircuitOpenError):
        await breaker.call(success_call, now_seconds=now + 1)

    result = await breaker.call(success_call, now_seconds=now + 11)
    assert result == "ok"


@pytest.mark.asyncio
async def test_circuit_breaker_resets_after_success() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=10)
    now = 100.0

    async def fail_call() -> str:
        raise RuntimeError("external failure")

    async def success_call() -> str:
        return "ok"

    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=now)
    result = await breaker.call(success_call, now_seconds=now + 1)
    assert result == "ok"

    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=now + 2)


@pytest.mark.asyncio
async def test_circuit_breaker_ignores_non_outage_errors() -> None:
    breaker = CircuitBreaker(
        failure_threshold=1,
        recovery_timeout_seconds=10,
        is_failure=lambda exc: not isinstance(exc, LookupError),
        name="directions",
    )

    async def no_route() -> str:
        raise LookupError("no route")

    async def success_call() -> str:
        return "ok"

    for offset in range(3):
        with pytest.raises(LookupError):
            await breaker.call(no_route, now_seconds=100.0 + offset)

    assert await breaker.call(success_call, now_seconds=104.0) == "ok"


@pytest.mark.asyncio
async def test_open_circuit_error_names_the_circuit() -> None:
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=10, name="directions")

    async def fail_call() -> str:
        raise RuntimeError("external failure")

    with pytest.raises(RuntimeError):
        await breaker.call(fail_call, now_seconds=100.0)
    with pytest.raises(CircuitOpenError, match="directions"):
        await breaker.call(fail_call, now_seconds=101.0)


@pytest.mark.asyncio
async def test_circuit_breaker_counts_timeouts_as_failures() -> None:
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=10, name="directions")

    async def hang() -> str:
        await asyncio.sleep(5)
        return "late"

    for offset in range(2):
        with pytest.raises(TimeoutError):
            await breaker.call(hang, now_seconds=100.0 + offset, timeout_seconds=0.01)
    with pytest.raises(CircuitOpenError):
        await breaker.call(hang, now_seconds=103.0, timeout_seconds=0.01)
