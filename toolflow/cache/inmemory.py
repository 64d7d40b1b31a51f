"""In-memory cache for tests and single-process deployments."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Tuple

from .base import BaseCache


class InMemoryCache(BaseCache):
    """Dictionary-backed cache with lazy expiry.

    Data is not shared across processes and does not survive restarts.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._live_value(key)

    async def set(self, key: str, value: str, ttl_s: Optional[float] = None) -> None:
        expires_at = time.monotonic() + ttl_s if ttl_s is not None else None
        async with self._lock:
            self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        async with self._lock:
            if self._live_value(key) is not None:
                return False
            self._data[key] = (value, time.monotonic() + ttl_ms / 1000)
            return True

    async def delete_if_equals(self, key: str, value: str) -> bool:
        async with self._lock:
            if self._live_value(key) != value:
                return False
            del self._data[key]
            return True
