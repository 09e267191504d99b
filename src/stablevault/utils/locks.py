"""Concurrency control for ledger operations.

Provides the non-reentrant guard every mutating ledger operation holds from
entry to exit. Independent callers queue on the lock; a call made from inside
a guarded operation (for example a token callback during a transfer) fails
immediately instead of waiting on itself.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Optional

from stablevault.errors import ReentrancyError, VaultError

logger = logging.getLogger(__name__)

# Guards held by the current execution context (inherited by spawned tasks)
_held_guards: ContextVar[frozenset[int]] = ContextVar("held_guards", default=frozenset())


class LockTimeoutError(VaultError):
    """Raised when a lock cannot be acquired within the timeout period."""

    kind = "lock_timeout"


class ReentrancyGuard:
    """Mutual-exclusion guard spanning a whole ledger operation.

    Example:
        async with guard.hold("withdraw"):
            # check, debit, then pay out
            ...
    """

    def __init__(self, name: str = "ledger", timeout: Optional[float] = 30.0):
        """Initialize the guard.

        Args:
            name: Label used in log messages
            timeout: Maximum time to wait for the lock (None or 0 = wait forever)
        """
        self.name = name
        self.timeout = timeout
        self._lock = asyncio.Lock()
        self._operation: Optional[str] = None

    @property
    def locked(self) -> bool:
        """Whether an operation currently holds the guard."""
        return self._lock.locked()

    @property
    def entered(self) -> bool:
        """Whether the current context is already inside this guard."""
        return id(self) in _held_guards.get()

    @property
    def current_operation(self) -> Optional[str]:
        return self._operation

    @asynccontextmanager
    async def hold(self, operation: str = "operation") -> AsyncIterator[None]:
        """Hold the guard for the duration of the block.

        Raises:
            ReentrancyError: If the current context already holds the guard
            LockTimeoutError: If the lock is not released in time
        """
        if self.entered:
            logger.warning(
                f"Reentrant {operation} rejected on {self.name} "
                f"(held by {self._operation})"
            )
            raise ReentrancyError(operation)

        try:
            if self.timeout:
                await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
            else:
                await self._lock.acquire()
        except asyncio.TimeoutError:
            logger.warning(f"Guard timeout on {self.name} after {self.timeout}s: {operation}")
            raise LockTimeoutError(
                f"Could not acquire {self.name} guard within {self.timeout}s",
                operation=operation,
            )

        token = _held_guards.set(_held_guards.get() | {id(self)})
        self._operation = operation
        logger.debug(f"Guard acquired on {self.name}: {operation}")
        try:
            yield
        finally:
            self._operation = None
            _held_guards.reset(token)
            self._lock.release()
            logger.debug(f"Guard released on {self.name}: {operation}")
