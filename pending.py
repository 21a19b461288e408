"""Single-resolution handles for signals awaited against a deadline."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional


class PendingOperation:
    """Race between an awaited signal and a timer.

    Whichever of ``resolve()`` and the timer comes first settles the
    operation; the other becomes a no-op. ``wait()`` never blocks longer than
    the timeout because the timer always settles the future.
    """

    def __init__(
        self,
        timeout_s: float,
        timeout_value: Any = None,
        on_timeout: Optional[Callable[[], None]] = None,
    ) -> None:
        self._future: Future = Future()
        self._lock = threading.Lock()
        self._timeout_value = timeout_value
        self._on_timeout = on_timeout
        self._timed_out = False
        self._timer = threading.Timer(timeout_s, self._expire)
        self._timer.daemon = True
        self._timer.start()

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    def resolve(self, value: Any) -> bool:
        """Settle with ``value``. Returns False if already settled."""
        if not self._settle(value, timed_out=False):
            return False
        self._timer.cancel()
        return True

    def cancel(self) -> bool:
        """Settle with the timeout value without firing ``on_timeout``."""
        return self.resolve(self._timeout_value)

    def wait(self) -> Any:
        return self._future.result()

    def _expire(self) -> None:
        if self._settle(self._timeout_value, timed_out=True) and self._on_timeout:
            self._on_timeout()

    def _settle(self, value: Any, timed_out: bool) -> bool:
        with self._lock:
            if self._future.done():
                return False
            self._timed_out = timed_out
            self._future.set_result(value)
            return True
