"""Fixed-rate loop that drives update cycles on the main thread."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional


class UpdateScheduler:
    """Runs ``cycle`` now and then on every tick of a wall-clock grid.

    Ticks are laid out from the first run, so a slow cycle does not shift
    later ones. Ticks missed while a cycle overran are dropped and the next
    cycle starts straight away.
    """

    def __init__(
        self,
        cycle: Callable[[], None],
        interval_seconds: float,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cycle = cycle
        self._interval = interval_seconds
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self.cycles = 0

    def run(self) -> None:
        """Loop until the stop event is set; never returns otherwise."""
        next_at = self._clock()
        while True:
            self.cycles += 1
            try:
                self._cycle()
            except Exception:  # noqa: BLE001 - a failed cycle must not end the loop
                logging.exception("Update cycle failed")

            next_at += self._interval
            now = self._clock()
            if now >= next_at:
                missed = int((now - next_at) // self._interval)
                if missed:
                    logging.warning("Update cycle overran; skipping %d tick(s)", missed)
                next_at += missed * self._interval
                delay = 0.0
            else:
                delay = next_at - now
            if self._stop_event.wait(delay):
                return
