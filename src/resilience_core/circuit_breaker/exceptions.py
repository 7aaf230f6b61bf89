"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being denied because the circuit is open (handed to fallbacks).
  - A call that could not be recovered because no fallback is configured.
"""


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CircuitOpenError(CircuitBreakerError):
    """Passed to the fallback when a call is short-circuited.

    Attributes:
        service_name: Name of the service whose circuit denied the call.
    """

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name
        super().__init__(f"Service {service_name} is short-circuited")


class NoFallbackError(CircuitBreakerError):
    """Raised when a denied or failed call has no fallback to route to.

    Attributes:
        service_name: Name of the protected service.
        short_circuited: ``True`` when the call was denied without an attempt.
    """

    def __init__(self, service_name: str, error: Exception | None = None) -> None:
        """Build the unrecoverable error message.

        Args:
            service_name: Protected service name.
            error: Underlying operation failure, ``None`` for a denial.
        """
        self.service_name = service_name
        self.short_circuited = error is None
        if error is None:
            message = f"Service {service_name} is short-circuited"
        else:
            message = f"Service {service_name} failed: {error}"
        super().__init__(f"{message} and no fallback is available.")
