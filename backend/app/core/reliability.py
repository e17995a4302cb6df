"""
Reliability Utilities.

Circuit breaker for calls to flaky external gateways (SMS).
"""

import logging
import time
from typing import Callable, Any

logger = logging.getLogger(__name__)


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    After 'failure_threshold' consecutive failures the circuit opens and
    rejects calls for 'reset_timeout' seconds, then lets one trial call through.
    """
    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        reset_timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.clock = clock
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if self.clock() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit {self.name} is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = self.clock()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit %s opened after %s failure(s)", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"
