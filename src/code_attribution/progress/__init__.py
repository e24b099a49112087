"""Progress reporting: the single-writer event channel and a console observer."""

from .channel import (
    KEEPALIVE_FRAME,
    ChannelClosedError,
    ChannelOwnershipError,
    CompleteUpdate,
    ErrorUpdate,
    ProgressChannel,
    ProgressEvent,
    ProgressUpdate,
    calculate_progress,
    format_sse,
    is_terminal,
)
from .console import ConsoleProgressObserver

__all__ = [
    "KEEPALIVE_FRAME",
    "ChannelClosedError",
    "ChannelOwnershipError",
    "CompleteUpdate",
    "ConsoleProgressObserver",
    "ErrorUpdate",
    "ProgressChannel",
    "ProgressEvent",
    "ProgressUpdate",
    "calculate_progress",
    "format_sse",
    "is_terminal",
]
