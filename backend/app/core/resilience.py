"""
Resilience Patterns Module.

Circuit Breaker guarding the reply-generation collaborator.
"""

import time
from typing import Callable, Any

from backend.app.core.config import get_settings
from backend.app.core.exceptions import DependencyError
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class CircuitBreakerOpenException(DependencyError):
    """Raised when the circuit is open and calls are blocked."""
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.

    States:
    - CLOSED: Normal operation, calls function.
    - OPEN: Fails fast, raises CircuitBreakerOpenException.
    - HALF-OPEN: Allows one trial call to check if service recovered.
    """

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 30):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout

        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF-OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.recovery_timeout:
                self.state = "HALF-OPEN"
                logger.info(f"Circuit '{self.name}' changed to HALF-OPEN. Attempting recovery.")
            else:
                raise CircuitBreakerOpenException(
                    f"{self.name} is unavailable (circuit open after {self.failure_count} failures)",
                    dependency=self.name,
                )

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            self.failure_count += 1
            self.last_failure_time = time.time()
            logger.error(f"Circuit '{self.name}' failure ({self.failure_count}/{self.failure_threshold}): {e}")

            if self.failure_count >= self.failure_threshold:
                self.state = "OPEN"
                logger.warning(f"Circuit '{self.name}' changed to OPEN. Blocking calls for {self.recovery_timeout}s.")
            raise

        if self.state == "HALF-OPEN":
            logger.info(f"Circuit '{self.name}' changed to CLOSED. Recovery successful.")
        self.state = "CLOSED"
        self.failure_count = 0
        return result

    def reset(self) -> None:
        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"


_settings = get_settings()

# Singleton breaker for the reply generator
reply_circuit_breaker = CircuitBreaker(
    "reply-generator",
    failure_threshold=_settings.reply_breaker_failure_threshold,
    recovery_timeout=_settings.reply_breaker_recovery_seconds,
)
