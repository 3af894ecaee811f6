from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def create_producer(bootstrap_servers: str) -> Any:
    async def _create() -> Any:
        try:
            from aiokafka import AIOKafkaProducer
        except ImportError as exc:
            raise RuntimeError("aiokafka is required for kafka producer") from exc

        producer = AIOKafkaProducer(
            bootstrap_servers=bootstrap_servers,
            acks="all",
            enable_idempotence=True,
            request_timeout_ms=30000,
            retry_backoff_ms=500,
            reconnect_backoff_ms=500,
            reconnect_backoff_max_ms=10000,
        )
        await producer.start()
        return producer

    return await run_with_retry(_create, max_retries=3, base_delay_seconds=0.2)


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    base_delay_seconds: float,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception:
            attempt += 1
            if attempt >= max_retries:
                raise
            delay = base_delay_seconds * (2 ** (attempt - 1))
            await sleep_fn(delay)


class AsyncKafkaProducerManager:
    def __init__(
        self,
        bootstrap_servers: str,
        *,
        max_retries: int = 3,
        producer_factory: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self._bootstrap_servers = bootstrap_servers
        self._max_retries = max_retries
        self._producer_factory = producer_factory
        self._producer: Any | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> Any:
        async with self._lock:
            if self._producer is None:
                self._producer = await self._create()
            return self._producer

    async def reconnect(self) -> Any:
        async with self._lock:
            if self._producer is not None:
                await self._producer.stop()
            self._producer = await self._create()
            return self._producer

    async def send_and_wait(self, topic: str, payload: bytes, key: bytes | None = None) -> Any:
        attempt = 0
        while True:
            producer = await self.get()
            try:
                return await producer.send_and_wait(topic, payload, key=key)
            except Exception:
                attempt += 1
                if attempt >= self._max_retries:
                    raise
                logger.warning("kafka_send_retry", extra={"component": "devkit", "topic": topic, "attempt": attempt})
                await self.reconnect()
                await asyncio.sleep(0.2 * (2 ** (attempt - 1)))

    async def stop(self) -> None:
        async with self._lock:
            if self._producer is not None:
                await self._producer.stop()
                self._producer = None

    async def _create(self) -> Any:
        if self._producer_factory is not None:
            return await self._producer_factory(self._bootstrap_servers)
        return await create_producer(self._bootstrap_servers)
