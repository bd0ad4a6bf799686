"""
Reliability utilities for calls to external services.

Circuit breaker plus bounded retry with exponential backoff.
"""

import time
import asyncio
import logging
from typing import Callable, Any, Tuple, Type

logger = logging.getLogger("waypoint.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    After 'failure_threshold' consecutive failures the circuit opens and
    rejects calls until 'reset_timeout' seconds have passed; the next call
    is then let through (HALF_OPEN) and closes the circuit on success.
    """
    def __init__(self, name: str, failure_threshold: int = 5, reset_timeout: float = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit '%s' opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


async def retry_with_backoff(
    func: Callable,
    *args,
    retries: int = 2,
    backoff_seconds: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs,
) -> Any:
    """
    Await func(*args, **kwargs), retrying up to `retries` more times.

    Sleeps backoff_seconds * 2**attempt between attempts. Exceptions not in
    retry_on propagate immediately.
    """
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except retry_on as exc:
            if attempt >= retries:
                raise
            delay = backoff_seconds * (2 ** attempt)
            logger.info("Retrying %s in %.2fs after %s", getattr(func, "__name__", func), delay, exc)
            await asyncio.sleep(delay)
            attempt += 1
