"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class ExecutionOutcome(StrEnum):
    """How one ``CircuitBreaker.execute`` call ended."""

    EXECUTED = "executed"
    SHORT_CIRCUITED = "short_circuited"
    FAILED_WITH_FALLBACK = "failed_with_fallback"


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of stored circuit internals.

    Attributes:
        service_name: Service the circuit protects.
        is_open: Whether calls are currently blocked.
        opened_at: When the circuit opened or the last trial was claimed.
        total_requests: Attempts recorded since the last reset.
        success_count: Successful attempts since the last reset.
        failure_count: Failed attempts since the last reset.
    """

    service_name: str
    is_open: bool
    opened_at: datetime | None
    total_requests: int
    success_count: int
    failure_count: int

    @property
    def error_percentage(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.failure_count / self.total_requests * 100

    @property
    def state(self) -> CircuitState:
        return CircuitState.OPEN if self.is_open else CircuitState.CLOSED


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    """Result of one protected execution.

    ``value`` is only set for ``EXECUTED`` and ``error`` only for
    ``FAILED_WITH_FALLBACK``.
    """

    outcome: ExecutionOutcome
    value: T | None = None
    error: Exception | None = None

    @property
    def short_circuited(self) -> bool:
        return self.outcome == ExecutionOutcome.SHORT_CIRCUITED
