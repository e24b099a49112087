"""One-way progress channel from an analysis task to a remote observer.

Events are ``progress``, ``complete`` and ``error``; the last two are
terminal. The channel accepts writes from a single owning task only, clamps
percentages so observers see a non-decreasing sequence, and frames events
as server-sent-event ``data:`` lines.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..errors import AnalysisCancelledError, to_error_response

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keep-alive\n\n"


class ChannelClosedError(RuntimeError):
    """Raised when writing to a channel after its terminal event."""


class ChannelOwnershipError(RuntimeError):
    """Raised when a second task tries to write to a channel."""


class ProgressUpdate(BaseModel):
    type: Literal["progress"] = "progress"
    message: str
    percent: int = Field(ge=0, le=100)


class CompleteUpdate(BaseModel):
    type: Literal["complete"] = "complete"
    result: Any = None
    has_more: Optional[bool] = Field(default=None, serialization_alias="hasMore")
    next_offset: Optional[int] = Field(default=None, serialization_alias="nextOffset")


class ErrorUpdate(BaseModel):
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


ProgressEvent = Union[ProgressUpdate, CompleteUpdate, ErrorUpdate]


def is_terminal(event: ProgressEvent) -> bool:
    return event.type in ("complete", "error")


def format_sse(event: ProgressEvent) -> str:
    """Frame an event as ``data: <json>\\n\\n``."""
    payload = event.model_dump_json(by_alias=True, exclude_none=True)
    return f"data: {payload}\n\n"


def calculate_progress(current: int, total: int, phase: float = 1.0) -> int:
    """Percent of ``current``/``total`` scaled by a phase weight, rounded half up."""
    if total <= 0:
        return 0
    value = int(current / total * 100 * phase + 0.5)
    return max(0, min(100, value))


class ProgressChannel:
    """Bounded single-writer event channel."""

    def __init__(self, maxsize: int = 100):
        self._queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue(maxsize=maxsize)
        self._owner: Optional["asyncio.Task[Any]"] = None
        self._last_percent = 0
        self._closed = False
        self.cancel_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def last_percent(self) -> int:
        return self._last_percent

    def cancel(self) -> None:
        """Observer-side abort; the writer stops at its next send or check."""
        self.cancel_event.set()

    async def progress(self, message: str, percent: float) -> None:
        clamped = max(self._last_percent, min(100, max(0, int(percent))))
        await self._send(ProgressUpdate(message=message, percent=clamped))
        self._last_percent = clamped

    async def complete(
        self,
        result: Any,
        has_more: Optional[bool] = None,
        next_offset: Optional[int] = None,
    ) -> None:
        await self._send(
            CompleteUpdate(result=result, has_more=has_more, next_offset=next_offset)
        )

    async def error(self, message: str, code: Optional[str] = None) -> None:
        await self._send(ErrorUpdate(message=message, code=code))

    async def fail(self, exception: BaseException, debug: bool = False) -> None:
        """Send the caller-safe rendering of ``exception`` as the error event."""
        response = to_error_response(exception, debug=debug)
        await self.error(response.message, response.code)

    async def _send(self, event: ProgressEvent) -> None:
        self._check_owner()
        if self._closed:
            raise ChannelClosedError(f"Channel already closed; dropped {event.type} event")
        if self.cancelled:
            raise AnalysisCancelledError()
        if is_terminal(event):
            self._closed = True
        await self._queue.put(event)

    def _check_owner(self) -> None:
        task = asyncio.current_task()
        if self._owner is None:
            self._owner = task
        elif task is not self._owner:
            raise ChannelOwnershipError("Progress channel accepts a single writer task")

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if is_terminal(event):
                return

    async def sse_stream(self) -> AsyncIterator[str]:
        """Yield SSE frames until the terminal event has been sent."""
        async for event in self:
            yield format_sse(event)
