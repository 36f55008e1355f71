"""
Three-state circuit breaker guarding outbound mail.

CLOSED: calls pass through; outcomes are counted over a rolling interval.
OPEN: calls are rejected with BreakerOpen until `timeout` elapses.
HALF_OPEN: up to `max_requests` trial calls pass; `max_requests` consecutive
successes close the circuit, any failure re-opens it.

Counters are guarded by an internal lock. No retries are performed here.
"""

import enum
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, TypeVar

from errors import BreakerOpen

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BreakerState(str, enum.Enum):
    closed = "closed"
    half_open = "half_open"
    open = "open"


@dataclass
class Counts:
    requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_successes: int = 0
    consecutive_failures: int = 0

    def on_request(self) -> None:
        self.requests += 1

    def on_success(self) -> None:
        self.total_successes += 1
        self.consecutive_successes += 1
        self.consecutive_failures = 0

    def on_failure(self) -> None:
        self.total_failures += 1
        self.consecutive_failures += 1
        self.consecutive_successes = 0

    def clear(self) -> None:
        self.requests = 0
        self.total_successes = 0
        self.total_failures = 0
        self.consecutive_successes = 0
        self.consecutive_failures = 0


class CircuitBreaker:
    """
    Failure-rate circuit breaker.

    Trips from CLOSED to OPEN once at least `min_requests` calls were seen in the
    current interval and the failure ratio reached `failure_rate`.

    Example:
        >>> breaker = CircuitBreaker(name="mailer")
        >>> breaker.call(lambda: smtp.send(message))
    """

    def __init__(
        self,
        name: str = "breaker",
        min_requests: int = 20,
        failure_rate: float = 0.5,
        timeout: float = 30.0,
        max_requests: int = 3,
        interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.min_requests = min_requests
        self.failure_rate = failure_rate
        self.timeout = timeout
        self.max_requests = max(1, max_requests)
        self.interval = interval
        self._clock = clock

        self._lock = threading.Lock()
        self._state = BreakerState.closed
        self._generation = 0
        self._counts = Counts()
        self._expiry: Optional[float] = None
        self._new_generation(self._clock())

    @property
    def state(self) -> BreakerState:
        with self._lock:
            now = self._clock()
            state, _ = self._current_state(now)
            return state

    @property
    def counts(self) -> Counts:
        """Snapshot of the counters for the current generation."""
        with self._lock:
            self._current_state(self._clock())
            return replace(self._counts)

    def call(self, fn: Callable[[], T]) -> T:
        """
        Run `fn` through the breaker.

        Returns:
            Whatever `fn` returns

        Raises:
            BreakerOpen: if the circuit is open or the half-open quota is used up
            Exception: anything `fn` raises, after it is recorded as a failure
        """
        generation = self._before_request()
        try:
            result = fn()
        except Exception:
            self._after_request(generation, success=False)
            raise
        self._after_request(generation, success=True)
        return result

    def _ready_to_trip(self, counts: Counts) -> bool:
        if counts.requests < self.min_requests:
            return False
        return counts.total_failures / counts.requests >= self.failure_rate

    def _before_request(self) -> int:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)

            if state == BreakerState.open:
                logger.warning(f"Circuit breaker '{self.name}' is open, rejecting call")
                raise BreakerOpen()
            if state == BreakerState.half_open and self._counts.requests >= self.max_requests:
                logger.warning(f"Circuit breaker '{self.name}' is half-open and saturated, rejecting call")
                raise BreakerOpen()

            self._counts.on_request()
            return generation

    def _after_request(self, before: int, success: bool) -> None:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)
            # Outcome belongs to a generation that has since been reset
            if generation != before:
                return
            if success:
                self._on_success(state, now)
            else:
                self._on_failure(state, now)

    def _on_success(self, state: BreakerState, now: float) -> None:
        if state == BreakerState.closed:
            self._counts.on_success()
        elif state == BreakerState.half_open:
            self._counts.on_success()
            if self._counts.consecutive_successes >= self.max_requests:
                self._set_state(BreakerState.closed, now)

    def _on_failure(self, state: BreakerState, now: float) -> None:
        if state == BreakerState.closed:
            self._counts.on_failure()
            if self._ready_to_trip(self._counts):
                self._set_state(BreakerState.open, now)
        elif state == BreakerState.half_open:
            self._set_state(BreakerState.open, now)

    def _current_state(self, now: float):
        if self._state == BreakerState.closed:
            if self._expiry is not None and self._expiry <= now:
                self._new_generation(now)
        elif self._state == BreakerState.open:
            if self._expiry is not None and self._expiry <= now:
                self._set_state(BreakerState.half_open, now)
        return self._state, self._generation

    def _set_state(self, state: BreakerState, now: float) -> None:
        if self._state == state:
            return
        previous = self._state
        self._state = state
        self._new_generation(now)
        logger.warning(f"Circuit breaker '{self.name}' changed state: {previous.value} -> {state.value}")

    def _new_generation(self, now: float) -> None:
        self._generation += 1
        self._counts.clear()
        if self._state == BreakerState.closed:
            self._expiry = now + self.interval if self.interval > 0 else None
        elif self._state == BreakerState.open:
            self._expiry = now + self.timeout
        else:
            self._expiry = None
