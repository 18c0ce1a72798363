"""Process-wide shutdown entry point."""

from __future__ import annotations

import logging
import threading


class Lifecycle:
    """Collects the first exit request and wakes every waiting loop.

    The main thread's blocking loops wait on ``stop_event``; once it is set
    they return and the entry point exits with ``exit_code``.
    """

    def __init__(self) -> None:
        self.stop_event = threading.Event()
        self.exit_code = 0
        self._lock = threading.Lock()

    def request_exit(self, code: int) -> None:
        with self._lock:
            if self.stop_event.is_set():
                return
            logging.info("Exit requested with status %d", code)
            self.exit_code = code
            self.stop_event.set()

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()
