"""Base interface for the fast cache and lock service."""

from __future__ import annotations

import abc
from typing import Optional


class BaseCache(metaclass=abc.ABCMeta):
    """Abstract keyed string store with optional expiry.

    Every mutation is atomic per key. ``set_if_absent`` is the primitive the
    execution lock is built on.
    """

    async def connect(self) -> None:
        """Open connection to backend (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to backend (no-op by default)."""
        pass

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored at ``key`` or ``None``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set(self, key: str, value: str, ttl_s: Optional[float] = None) -> None:
        """Store ``value`` at ``key``, expiring after ``ttl_s`` seconds if given."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Store ``value`` only if ``key`` is unset; return whether it was stored."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_if_equals(self, key: str, value: str) -> bool:
        """Delete ``key`` only while it still holds ``value``; return whether it did."""
        raise NotImplementedError
