"""
Circuit breaker guarding calls to the acquiring bank.

Prevents cascading failures by rejecting calls while the bank's recent
failure rate is too high, then probing it again after a cool-down.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

import structlog

from payment_gateway.config import Settings
from payment_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, rejecting calls
    HALF_OPEN = "half_open"  # Probing for recovery


class CircuitBreakerOpenError(Exception):
    """Raised when the gate rejects a call without running it."""

    def __init__(self, name: str, state: CircuitState):
        super().__init__(f"Circuit breaker '{name}' is {state.value}, call not permitted")
        self.name = name
        self.state = state


class CallGate(ABC):
    """Gate wrapped around calls to a downstream dependency."""

    @property
    @abstractmethod
    def state(self) -> CircuitState:
        ...

    @abstractmethod
    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Run func through the gate.

        Raises:
            CircuitBreakerOpenError: If the gate rejects the call
        """
        ...


@dataclass
class CircuitBreakerConfig:
    """
    Circuit breaker configuration.

    Attributes:
        failure_rate_threshold: Failure rate that opens the circuit (0.0-1.0]
        sliding_window_size: Number of recent calls tracked
        minimum_number_of_calls: Calls recorded before the rate is evaluated
        wait_duration_open: Seconds an open circuit rejects calls
        permitted_calls_in_half_open: Trial calls admitted while half-open
        call_timeout: Seconds a single call may run (None disables)
    """

    failure_rate_threshold: float = 0.5
    sliding_window_size: int = 10
    minimum_number_of_calls: int = 5
    wait_duration_open: float = 30.0
    permitted_calls_in_half_open: int = 3
    call_timeout: Optional[float] = 15.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CircuitBreakerConfig":
        return cls(
            failure_rate_threshold=settings.circuit_failure_rate_threshold,
            sliding_window_size=settings.circuit_sliding_window_size,
            minimum_number_of_calls=settings.circuit_minimum_number_of_calls,
            wait_duration_open=settings.circuit_wait_duration_open_seconds,
            permitted_calls_in_half_open=settings.circuit_permitted_calls_in_half_open,
            call_timeout=settings.circuit_call_timeout_seconds,
        )


class CircuitBreaker(CallGate):
    """
    Count-based circuit breaker.

    States:
    - CLOSED: calls pass, outcomes are recorded in a sliding window
    - OPEN: calls are rejected until the wait duration has elapsed
    - HALF_OPEN: a fixed number of trial calls decide between CLOSED and OPEN

    Example:
        >>> breaker = CircuitBreaker("bank")
        >>> result = await breaker.call(client.post, url, json=payload)
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Name used in logs and errors
            config: Circuit breaker configuration
            clock: Monotonic time source
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._outcomes: Deque[bool] = deque(maxlen=self.config.sliding_window_size)
        self._opened_at: Optional[float] = None
        self._half_open_admitted = 0
        self._half_open_outcomes: list[bool] = []
        metrics.set_circuit_breaker_state(self._state.value)

    @property
    def state(self) -> CircuitState:
        return self._state

    @staticmethod
    def _failure_rate(outcomes: Any) -> float:
        outcomes = list(outcomes)
        if not outcomes:
            return 0.0
        return outcomes.count(False) / len(outcomes)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state is CircuitState.OPEN:
            self._opened_at = self._clock()
        if new_state is CircuitState.HALF_OPEN:
            self._half_open_admitted = 0
            self._half_open_outcomes = []
        if new_state is CircuitState.CLOSED:
            self._outcomes.clear()
            self._opened_at = None
        metrics.set_circuit_breaker_state(new_state.value)
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "circuit_breaker_state_changed",
            circuit=self.name,
            from_state=old_state.value,
            to_state=new_state.value,
        )

    def _acquire_permission(self) -> None:
        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - (self._opened_at or 0.0)
            if elapsed < self.config.wait_duration_open:
                raise CircuitBreakerOpenError(self.name, self._state)
            self._transition(CircuitState.HALF_OPEN)

        if self._state is CircuitState.HALF_OPEN:
            if self._half_open_admitted >= self.config.permitted_calls_in_half_open:
                raise CircuitBreakerOpenError(self.name, self._state)
            self._half_open_admitted += 1

    def _record(self, success: bool) -> None:
        if self._state is CircuitState.HALF_OPEN:
            self._half_open_outcomes.append(success)
            if len(self._half_open_outcomes) < self.config.permitted_calls_in_half_open:
                return
            rate = self._failure_rate(self._half_open_outcomes)
            if rate >= self.config.failure_rate_threshold:
                self._transition(CircuitState.OPEN)
            else:
                self._transition(CircuitState.CLOSED)
            return

        if self._state is CircuitState.OPEN:
            # call admitted before the circuit opened
            return

        self._outcomes.append(success)
        if len(self._outcomes) < self.config.minimum_number_of_calls:
            return
        if self._failure_rate(self._outcomes) >= self.config.failure_rate_threshold:
            self._transition(CircuitState.OPEN)

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Execute func with circuit breaker protection.

        Args:
            func: Coroutine function to execute
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Function result

        Raises:
            CircuitBreakerOpenError: If the circuit rejects the call
            asyncio.TimeoutError: If the call exceeds the configured timeout
        """
        self._acquire_permission()

        try:
            if self.config.call_timeout is not None:
                result = await asyncio.wait_for(func(*args, **kwargs), self.config.call_timeout)
            else:
                result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # a cancelled trial call frees its slot without counting as an outcome
            if self._state is CircuitState.HALF_OPEN:
                self._half_open_admitted -= 1
            raise
        except Exception:
            self._record(False)
            raise

        self._record(True)
        return result

    def reset(self) -> None:
        """Return to CLOSED and forget recorded outcomes."""
        self._transition(CircuitState.CLOSED)

    def snapshot(self) -> Dict[str, Any]:
        """Get circuit breaker state information."""
        return {
            "name": self.name,
            "state": self._state.value,
            "recorded_calls": len(self._outcomes),
            "failure_rate": self._failure_rate(self._outcomes),
        }
