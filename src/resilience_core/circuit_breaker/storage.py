"""State storage for circuit breakers.

Storage is intentionally decoupled from breaker logic. Custom backends (for
example Redis) can implement the interface so that breakers in several
processes share one circuit.

Backends must make every write visible to all subsequent reads, and must
implement ``try_open``, ``compare_and_set_open_timestamp`` and
``close_and_reset`` as single atomic steps.
"""

import asyncio
import dataclasses
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from resilience_core.circuit_breaker.state import CircuitSnapshot


class AbstractBreakerStorage(ABC):
    """Abstract storage interface holding the counters for one service."""

    @abstractmethod
    async def set_service_name(self, name: str) -> None:
        """Bind the storage to service ``name``."""

    @abstractmethod
    async def is_open(self) -> bool:
        """Return whether the circuit is currently open."""

    @abstractmethod
    async def set_circuit_is_open(self, is_open: bool) -> None:
        """Set the open flag without touching counters or timestamps."""

    @abstractmethod
    async def get_open_timestamp(self) -> datetime | None:
        """Return when the circuit opened or the last trial was claimed."""

    @abstractmethod
    async def set_open_timestamp(self, timestamp: datetime | None) -> None:
        """Overwrite the open timestamp."""

    @abstractmethod
    async def get_total_requests(self) -> int:
        """Return attempts recorded since the last reset."""

    @abstractmethod
    async def get_error_percentage(self) -> float:
        """Return failures as a percentage of attempts, ``0.0`` with no data."""

    @abstractmethod
    async def add_success(self) -> None:
        """Record one successful attempt."""

    @abstractmethod
    async def add_failure(self) -> None:
        """Record one failed attempt."""

    @abstractmethod
    async def reset_request_stats(self) -> None:
        """Zero all request counters."""

    @abstractmethod
    async def try_open(self, opened_at: datetime) -> bool:
        """Atomically open a closed circuit and stamp ``opened_at``.

        Returns:
            ``True`` if this call performed the transition, ``False`` if the
            circuit was already open.
        """

    @abstractmethod
    async def compare_and_set_open_timestamp(
        self, expected: datetime | None, new: datetime | None
    ) -> bool:
        """Replace the open timestamp only if it still equals ``expected``."""

    @abstractmethod
    async def close_and_reset(self) -> None:
        """Atomically close the circuit, clear the timestamp and zero counters."""

    @abstractmethod
    async def get_snapshot(self) -> CircuitSnapshot:
        """Return a consistent view of all stored values."""


class InMemoryBreakerStorage(AbstractBreakerStorage):
    """In-memory storage with a cooperative lock + optional thread lock."""

    def __init__(self, service_name: str | None = None) -> None:
        """Initialize empty counters.

        Args:
            service_name: Optional name to bind immediately. Breakers call
                ``set_service_name`` themselves, so this is only a shortcut.
        """
        self._service_name = service_name
        self._snapshot = CircuitSnapshot(
            service_name=service_name or "",
            is_open=False,
            opened_at=None,
            total_requests=0,
            success_count=0,
            failure_count=0,
        )
        self._async_lock = asyncio.Lock()
        self._thread_lock = threading.Lock()
        is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
        self._gil_enabled = True if is_gil_enabled is None else bool(is_gil_enabled())

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        if self._gil_enabled:
            await self._async_lock.acquire()
            try:
                yield
            finally:
                self._async_lock.release()
            return

        self._thread_lock.acquire()
        try:
            await self._async_lock.acquire()
        except Exception:
            self._thread_lock.release()
            raise
        try:
            yield
        finally:
            self._async_lock.release()
            self._thread_lock.release()

    def _update(self, **changes: object) -> None:
        self._snapshot = dataclasses.replace(self._snapshot, **changes)

    async def set_service_name(self, name: str) -> None:
        """Bind to ``name``; rebinding to another service is rejected."""
        async with self._locked():
            if self._service_name is not None and self._service_name != name:
                raise ValueError(
                    f"storage is bound to service {self._service_name!r}, "
                    f"cannot rebind to {name!r}"
                )
            self._service_name = name
            self._update(service_name=name)

    async def is_open(self) -> bool:
        async with self._locked():
            return self._snapshot.is_open

    async def set_circuit_is_open(self, is_open: bool) -> None:
        async with self._locked():
            self._update(is_open=is_open)

    async def get_open_timestamp(self) -> datetime | None:
        async with self._locked():
            return self._snapshot.opened_at

    async def set_open_timestamp(self, timestamp: datetime | None) -> None:
        async with self._locked():
            self._update(opened_at=timestamp)

    async def get_total_requests(self) -> int:
        async with self._locked():
            return self._snapshot.total_requests

    async def get_error_percentage(self) -> float:
        async with self._locked():
            return self._snapshot.error_percentage

    async def add_success(self) -> None:
        async with self._locked():
            snapshot = self._snapshot
            self._update(
                total_requests=snapshot.total_requests + 1,
                success_count=snapshot.success_count + 1,
            )

    async def add_failure(self) -> None:
        async with self._locked():
            snapshot = self._snapshot
            self._update(
                total_requests=snapshot.total_requests + 1,
                failure_count=snapshot.failure_count + 1,
            )

    async def reset_request_stats(self) -> None:
        async with self._locked():
            self._update(total_requests=0, success_count=0, failure_count=0)

    async def try_open(self, opened_at: datetime) -> bool:
        async with self._locked():
            if self._snapshot.is_open:
                return False
            self._update(is_open=True, opened_at=opened_at)
            return True

    async def compare_and_set_open_timestamp(
        self, expected: datetime | None, new: datetime | None
    ) -> bool:
        async with self._locked():
            if self._snapshot.opened_at != expected:
                return False
            self._update(opened_at=new)
            return True

    async def close_and_reset(self) -> None:
        async with self._locked():
            self._update(
                is_open=False,
                opened_at=None,
                total_requests=0,
                success_count=0,
                failure_count=0,
            )

    async def get_snapshot(self) -> CircuitSnapshot:
        async with self._locked():
            return self._snapshot
