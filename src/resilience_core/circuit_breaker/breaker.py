"""Core circuit breaker implementation."""

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar

from resilience_core.circuit_breaker.exceptions import (
    CircuitOpenError,
    NoFallbackError,
)
from resilience_core.circuit_breaker.metrics import BreakerListener
from resilience_core.circuit_breaker.state import (
    CircuitState,
    ExecutionOutcome,
    ExecutionResult,
)
from resilience_core.circuit_breaker.storage import AbstractBreakerStorage
from resilience_core.logging import (
    StructuredLogger,
    get_logger,
    log_exception,
    log_info,
    log_warning,
)

T = TypeVar("T")

Fallback = Callable[[Exception], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        request_count_threshold: Attempts required before the error percentage
            is trusted enough to open the circuit.
        allowed_error_percentage: Error percentage at or above which the
            circuit opens.
        test_wait_milliseconds: Milliseconds to wait while ``OPEN`` before a
            trial call may be attempted.
    """

    request_count_threshold: int = 10
    allowed_error_percentage: float = 50.0
    test_wait_milliseconds: int = 5000

    def __post_init__(self) -> None:
        if self.request_count_threshold < 1:
            raise ValueError("request_count_threshold must be >= 1")
        if not 0 <= self.allowed_error_percentage <= 100:
            raise ValueError("allowed_error_percentage must be between 0 and 100")
        if self.test_wait_milliseconds < 0:
            raise ValueError("test_wait_milliseconds must be >= 0")


class CircuitBreaker:
    """Decision engine guarding calls to one named service.

    The breaker holds no mutable state of its own; all counters live in the
    storage backend, so breakers sharing a storage share one circuit.
    """

    def __init__(
        self,
        service_name: str,
        storage: AbstractBreakerStorage,
        *,
        config: CircuitBreakerConfig | None = None,
        fallback: Fallback | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Build a circuit breaker with optional custom dependencies.

        Args:
            service_name: Protected service name, used to namespace storage
                and in fallback messages.
            storage: State storage backend. Breakers sharing a storage share
                one circuit.
            config: Breaker thresholds. Defaults to ``CircuitBreakerConfig()``.
            fallback: Async handler invoked with the triggering error when a
                call is denied or fails. ``None`` makes both cases raise
                ``NoFallbackError``.
            listeners: Optional listener hooks for breaker events.
            logger: Structured logger. Defaults to a structlog logger.
        """
        if not service_name:
            raise ValueError("service_name must be non-empty")
        self.service_name = service_name
        self.config = CircuitBreakerConfig() if config is None else config
        self._storage = storage
        self._fallback = fallback
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger = get_logger(__name__) if logger is None else logger
        self._bound = False

    @property
    def storage(self) -> AbstractBreakerStorage:
        return self._storage

    async def _ensure_bound(self) -> None:
        if self._bound:
            return
        await self._storage.set_service_name(self.service_name)
        self._bound = True

    async def _emit(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                await getattr(listener, hook)(self.service_name, *args)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    service=self.service_name,
                    hook=hook,
                )

    async def is_open(self) -> bool:
        """Report whether the circuit is open, opening it if thresholds trip.

        This is not a pure read: when enough requests have been recorded and
        the error percentage reaches the allowed limit, the circuit is opened
        and stamped in storage.
        """
        await self._ensure_bound()
        if await self._storage.is_open():
            return True

        total_requests = await self._storage.get_total_requests()
        if total_requests < self.config.request_count_threshold:
            return False

        error_percentage = await self._storage.get_error_percentage()
        if error_percentage < self.config.allowed_error_percentage:
            return False

        if await self._storage.try_open(_utcnow()):
            log_warning(
                self._logger,
                "circuit_breaker.opened",
                service=self.service_name,
                total_requests=total_requests,
                error_percentage=error_percentage,
            )
            await self._emit("on_state_change", CircuitState.CLOSED, CircuitState.OPEN)
        return True

    async def allow_request(self) -> bool:
        """Return whether a call may go through now."""
        return not await self.is_open() or await self.allow_trial_request()

    async def allow_trial_request(self) -> bool:
        """Claim the trial slot if the wait window has elapsed.

        The open timestamp is restamped with a compare-and-swap, so at most one
        concurrent caller wins each window.
        """
        await self._ensure_bound()
        opened_at = await self._storage.get_open_timestamp()
        if opened_at is None:
            return False

        now = _utcnow()
        elapsed_ms = (now - opened_at).total_seconds() * 1000
        if elapsed_ms <= self.config.test_wait_milliseconds:
            return False

        if not await self._storage.compare_and_set_open_timestamp(opened_at, now):
            return False

        log_info(
            self._logger,
            "circuit_breaker.trial_claimed",
            service=self.service_name,
            elapsed_ms=elapsed_ms,
        )
        await self._emit("on_state_change", CircuitState.OPEN, CircuitState.HALF_OPEN)
        return True

    async def execute(
        self, operation: Callable[[], Awaitable[T]]
    ) -> ExecutionResult[T]:
        """Run ``operation`` under circuit breaker protection.

        Args:
            operation: Zero-argument async callable to protect.

        Returns:
            ``EXECUTED`` with the operation's value, ``SHORT_CIRCUITED`` when
            the call was denied, or ``FAILED_WITH_FALLBACK`` with the error the
            fallback received.

        Raises:
            NoFallbackError: When the call was denied or failed and no fallback
                is configured.
            Exception: Anything raised by the fallback itself.
        """
        is_trial = False
        if await self.is_open():
            if not await self.allow_trial_request():
                log_info(
                    self._logger,
                    "circuit_breaker.short_circuited",
                    service=self.service_name,
                )
                await self._emit("on_call_rejected")
                await self.execute_fallback()
                return ExecutionResult(ExecutionOutcome.SHORT_CIRCUITED)
            is_trial = True

        start = time.monotonic()
        failure: Exception | None = None
        try:
            value = await operation()
        except Exception as exc:
            failure = exc

        elapsed = max(time.monotonic() - start, 0.0)
        if failure is not None:
            await self._storage.add_failure()
            log_warning(
                self._logger,
                "circuit_breaker.call_failed",
                service=self.service_name,
                error=repr(failure),
                trial=is_trial,
            )
            await self._emit("on_call_failed", failure, elapsed)
            if is_trial:
                await self._emit(
                    "on_state_change", CircuitState.HALF_OPEN, CircuitState.OPEN
                )
            await self.execute_fallback(failure)
            return ExecutionResult(
                ExecutionOutcome.FAILED_WITH_FALLBACK, error=failure
            )

        if is_trial and await self._storage.is_open():
            await self._storage.close_and_reset()
            log_info(self._logger, "circuit_breaker.closed", service=self.service_name)
            await self._emit(
                "on_state_change", CircuitState.HALF_OPEN, CircuitState.CLOSED
            )
        await self._storage.add_success()
        await self._emit("on_call_succeeded", elapsed)
        return ExecutionResult(ExecutionOutcome.EXECUTED, value=value)

    async def execute_fallback(self, error: Exception | None = None) -> None:
        """Route a denied or failed call to the fallback.

        Args:
            error: The operation failure, or ``None`` for a short-circuit.

        Raises:
            NoFallbackError: When no fallback is configured.
        """
        if self._fallback is None:
            raise NoFallbackError(self.service_name, error) from error

        await self._fallback(
            CircuitOpenError(self.service_name) if error is None else error
        )
