"""Centralized exception logger for attribution runs.

Records failures with their debugging context (git command, working
directory, return code, remote endpoint) as JSON entries in a per-process
log file. Host applications initialize it once; library code only looks the
instance up and stays silent when none exists.
"""

import json
import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ENTRY_SEPARATOR = "\n---\n"


class ExceptionLogger:
    """Process-wide exception log writer."""

    _instance: Optional["ExceptionLogger"] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path
        self._write_lock = threading.Lock()

    @classmethod
    def initialize(
        cls, project_root: Path, log_dir: Optional[Path] = None
    ) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        The log lives in ``<project_root>/.code-attribution/`` unless an
        explicit ``log_dir`` is given. Tests reset ``cls._instance`` to get a
        fresh logger.
        """
        if cls._instance is not None:
            return cls._instance

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        pid = os.getpid()

        directory = log_dir or (project_root / ".code-attribution")
        directory.mkdir(parents=True, exist_ok=True)

        log_file_path = directory / f"error_{timestamp}_{pid}.log"
        log_file_path.touch()

        cls._instance = cls(log_file_path)
        return cls._instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def log_exception(
        self,
        exception: BaseException,
        thread_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append one exception entry with its context."""
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "thread": thread_name or threading.current_thread().name,
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
            "context": context or {},
        }

        # Blame workers log concurrently
        with self._write_lock:
            with open(self.log_file_path, "a") as f:
                f.write(json.dumps(log_entry, indent=2, default=str))
                f.write(ENTRY_SEPARATOR)

    def read_entries(self) -> list:
        """Return all logged entries, oldest first."""
        if not self.log_file_path.exists():
            return []
        content = self.log_file_path.read_text()
        return [json.loads(entry) for entry in content.split(ENTRY_SEPARATOR) if entry.strip()]


def record_exception(exception: BaseException, context: Dict[str, Any]) -> None:
    """Log to the global ExceptionLogger when one has been initialized."""
    exception_logger = ExceptionLogger.get_instance()
    if exception_logger is not None:
        exception_logger.log_exception(exception, context=context)
