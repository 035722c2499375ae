"""
Reliability utilities.

Circuit breaker for calls to collaborators the freight engine must never
block on (notification broker).
"""

import enum
import time
from typing import Any, Awaitable, Callable


class CircuitOpenError(Exception):
    """Raised instead of calling through while the circuit is open."""


class CircuitState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    After `failure_threshold` failures the circuit opens and rejects calls
    for `reset_timeout` seconds; the next call after that is a trial, and
    a success closes the circuit again.
    """

    def __init__(self, failure_threshold: int = 5, reset_timeout: float = 60, clock: Callable[[], float] = time.monotonic):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.clock = clock
        self.failures = 0
        self.opened_at = 0.0
        self.state = CircuitState.CLOSED

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.state == CircuitState.OPEN:
            if self.clock() - self.opened_at >= self.reset_timeout:
                self.state = CircuitState.HALF_OPEN
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.reset()
        return result

    def record_failure(self) -> None:
        self.failures += 1
        if self.state == CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = self.clock()

    def reset(self) -> None:
        self.failures = 0
        self.state = CircuitState.CLOSED
