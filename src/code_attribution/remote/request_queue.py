"""Bounded-concurrency queue for remote API calls."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import AnalysisCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestQueue:
    """Runs at most ``max_concurrent`` calls at once; the rest wait in FIFO order."""

    def __init__(self, max_concurrent: int = 3):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._pending = 0
        self._active = 0
        self._closed = False

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def active(self) -> int:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Reject new submissions and calls still waiting for a slot."""
        self._closed = True

    async def submit(self, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` once a slot is free and return its result.

        Raises:
            AnalysisCancelledError: If the queue was closed before the call started
        """
        if self._closed:
            raise AnalysisCancelledError("Request queue is closed.")

        # Created lazily so the queue binds to the running event loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

        self._pending += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._pending -= 1

        try:
            if self._closed:
                raise AnalysisCancelledError("Request queue is closed.")
            self._active += 1
            try:
                return await call()
            finally:
                self._active -= 1
        finally:
            self._semaphore.release()
