# clipshare/store/resilience.py
# Circuit breaker + timeout around every store round-trip.
# Connectivity failures surface as ServiceUnavailableError instead of hanging.

import time
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type
from functools import wraps

from clipshare.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"       # Normal operation, requests pass through
    OPEN = "open"           # Failure threshold exceeded, requests fail fast
    HALF_OPEN = "half_open" # Testing if service has recovered


class CircuitBreakerError(Exception):
    """Raised when circuit is open and request is rejected."""
    def __init__(self, service_name: str, recovery_time: float):
        self.service_name = service_name
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service_name}. "
            f"Retry after {recovery_time:.1f} seconds."
        )


class CircuitBreaker:
    """
    States:
    - CLOSED: Normal operation. Track failures.
    - OPEN: Too many failures. Fail fast without calling the store.
    - HALF_OPEN: After recovery_timeout, let trial requests through.

    Only failures reported via record_failure() count; the guard decides
    which exceptions mean "store unreachable".
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def recovery_due(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time >= self.recovery_timeout

    def _transition_to(self, new_state: CircuitState):
        if self._state != new_state:
            logger.info(
                f"Circuit breaker '{self.name}': {self._state.value} -> {new_state.value}"
            )
            self._state = new_state

    def before_call(self) -> None:
        """Raise CircuitBreakerError if calls are currently rejected."""
        if self._state != CircuitState.OPEN:
            return
        if self.recovery_due():
            self._transition_to(CircuitState.HALF_OPEN)
            self._success_count = 0
            return
        remaining = self.recovery_timeout - (self._clock() - (self._last_failure_time or 0))
        raise CircuitBreakerError(self.name, max(0.0, remaining))

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._transition_to(CircuitState.CLOSED)
                self._failure_count = 0
                self._success_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open returns to open
            self._transition_to(CircuitState.OPEN)
            self._success_count = 0
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.failure_threshold:
                self._transition_to(CircuitState.OPEN)

    def trip(self) -> None:
        """Force the circuit open (e.g. store unreachable at startup)."""
        self._last_failure_time = self._clock()
        self._transition_to(CircuitState.OPEN)


class StoreGuard:
    """Runs store calls with a bounded timeout behind a circuit breaker.

    Timeouts and the backend's connectivity errors are translated into
    ServiceUnavailableError; everything else propagates unchanged.
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        timeout: float,
        unavailable_errors: Tuple[Type[BaseException], ...] = (),
    ):
        self.breaker = breaker
        self.timeout = timeout
        self._unavailable = (asyncio.TimeoutError,) + tuple(unavailable_errors)

    def ensure_available(self) -> None:
        """Fail fast before a command touches the store."""
        try:
            self.breaker.before_call()
        except CircuitBreakerError as e:
            raise ServiceUnavailableError(details={"retry_after": round(e.recovery_time, 1)})

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        self.ensure_available()
        try:
            result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.timeout)
        except self._unavailable as e:
            self.breaker.record_failure()
            name = getattr(func, "__name__", "store call")
            if isinstance(e, asyncio.TimeoutError):
                logger.error(f"Timeout ({self.timeout}s) exceeded for {name}")
            else:
                logger.error(f"Store unreachable during {name}: {type(e).__name__}: {e}")
            raise ServiceUnavailableError() from e
        self.breaker.record_success()
        return result


# Retry with exponential backoff decorator
def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: tuple = (Exception,)
):
    """
    Decorator for async functions with exponential backoff retry.

    Usage:
        @retry_with_backoff(max_retries=3, base_delay=1.0)
        async def connect():
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(
                            f"All {max_retries + 1} attempts failed for {func.__name__}: {e}"
                        )
                        raise

                    delay = min(base_delay * (2 ** attempt), max_delay)
                    logger.warning(
                        f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("Retry failed without exception")

        return wrapper
    return decorator
