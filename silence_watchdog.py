"""Auto-stop a recording after a continuous stretch of silence."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SilenceWatchdog:
    """Polls elapsed silence and fires ``on_expire`` at most once per arming.

    The silence reference point is read through the ``last_loud_at`` callable
    given to ``start()``, so sample-driven updates are seen by the next poll.
    ``check()`` may also be called directly, e.g. on every loudness sample.
    """

    def __init__(
        self,
        on_expire: Callable[[], None],
        poll_interval_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._on_expire = on_expire
        self._poll_interval_s = poll_interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._armed = False
        self._pause_s = 0.0
        self._last_loud_at: Callable[[], float] = clock
        self._stop_event: Optional[threading.Event] = None

    @property
    def active(self) -> bool:
        return self._armed

    def start(self, pause_ms: int, last_loud_at: Callable[[], float]) -> None:
        self.stop()
        stop_event = threading.Event()
        with self._lock:
            self._pause_s = pause_ms / 1000.0
            self._last_loud_at = last_loud_at
            self._armed = True
            self._stop_event = stop_event
        thread = threading.Thread(
            target=self._poll,
            args=(stop_event,),
            name="silence-watchdog",
            daemon=True,
        )
        thread.start()

    def stop(self) -> None:
        with self._lock:
            self._armed = False
            stop_event = self._stop_event
            self._stop_event = None
        if stop_event is not None:
            stop_event.set()

    def check(self) -> bool:
        """Fire ``on_expire`` if the silence has lasted long enough. Returns True if fired."""
        with self._lock:
            if not self._armed:
                return False
            silence_s = self._clock() - self._last_loud_at()
            if silence_s < self._pause_s:
                return False
            self._armed = False
            stop_event = self._stop_event
            self._stop_event = None
        if stop_event is not None:
            stop_event.set()
        logger.info(f"Silence for {silence_s:.2f}s, auto-stopping")
        self._on_expire()
        return True

    def _poll(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._poll_interval_s):
            self.check()
