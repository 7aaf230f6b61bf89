"""Framework-agnostic async circuit breaker.

Key behavior notes:
  - The breaker opens once at least ``request_count_threshold`` attempts have
    been recorded and the error percentage reaches
    ``allowed_error_percentage``.
  - While open, one trial call is let through per ``test_wait_milliseconds``
    window. A successful trial closes the circuit and zeroes the counters in
    one storage step; a failed trial leaves it open.
  - Storage persists only ``CLOSED`` and ``OPEN``. ``HALF_OPEN`` is emitted to
    listeners while a claimed trial call is in flight.
  - Denied and failed calls are routed to the fallback. Without a fallback
    they raise ``NoFallbackError``.
"""

from resilience_core.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    Fallback,
)
from resilience_core.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
    NoFallbackError,
)
from resilience_core.circuit_breaker.metrics import BreakerListener
from resilience_core.circuit_breaker.registry import (
    clear_shared_storages,
    drop_shared_storage,
    get_shared_storage,
)
from resilience_core.circuit_breaker.state import (
    CircuitSnapshot,
    CircuitState,
    ExecutionOutcome,
    ExecutionResult,
)
from resilience_core.circuit_breaker.storage import (
    AbstractBreakerStorage,
    InMemoryBreakerStorage,
)

__all__ = [
    "AbstractBreakerStorage",
    "BreakerListener",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitSnapshot",
    "CircuitState",
    "ExecutionOutcome",
    "ExecutionResult",
    "Fallback",
    "InMemoryBreakerStorage",
    "NoFallbackError",
    "clear_shared_storages",
    "drop_shared_storage",
    "get_shared_storage",
]
