from __future__ import annotations

import asyncio

from resilience_core.circuit_breaker.storage import InMemoryBreakerStorage

_SHARED_STORAGES: dict[str, InMemoryBreakerStorage] = {}
_SHARED_STORAGES_LOCK = asyncio.Lock()


async def get_shared_storage(service_name: str) -> InMemoryBreakerStorage:
    """Return the process-wide storage for one service, creating it if missing."""
    async with _SHARED_STORAGES_LOCK:
        storage = _SHARED_STORAGES.get(service_name)
        if storage is None:
            storage = InMemoryBreakerStorage(service_name)
            _SHARED_STORAGES[service_name] = storage
        return storage


async def drop_shared_storage(service_name: str) -> None:
    """Forget the shared storage for one service."""
    async with _SHARED_STORAGES_LOCK:
        _SHARED_STORAGES.pop(service_name, None)


async def clear_shared_storages() -> None:
    """Clear all shared storages. Intended for deterministic tests."""
    async with _SHARED_STORAGES_LOCK:
        _SHARED_STORAGES.clear()
