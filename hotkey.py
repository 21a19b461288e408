"""Global toggle and cancel keys on top of a pynput listener."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


def key_name(key: object) -> str:
    """pynput's string form of a key: ``Key.alt_r`` for special keys, the character otherwise."""
    char = getattr(key, "char", None)
    if isinstance(char, str) and char:
        return char.lower()
    return str(key)


class GlobalHotkeyAdapter:
    """Fires ``on_trigger`` once per press of the toggle key and ``on_cancel`` on the cancel key.

    Holding the toggle key down (auto-repeat) does not re-fire until it is
    released.
    """

    def __init__(self, hotkey_name: str = "Key.alt_r", cancel_key_name: str = "Key.esc") -> None:
        self.hotkey_name = hotkey_name
        self.cancel_key_name = cancel_key_name
        self._on_trigger: Optional[Callable[[], None]] = None
        self._on_cancel: Optional[Callable[[], None]] = None
        self._listener: Optional[object] = None
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def start(self, on_trigger: Callable[[], None], on_cancel: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self._on_trigger = on_trigger
        self._on_cancel = on_cancel
        self._listener = keyboard.Listener(on_press=self._handle_press, on_release=self._handle_release)
        self._listener.start()
        logger.info(f"Hotkeys active: toggle={self.hotkey_name} cancel={self.cancel_key_name}")

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        with self._lock:
            self._held.clear()

    def _handle_press(self, key: object) -> None:
        name = key_name(key)
        if name not in (self.hotkey_name, self.cancel_key_name):
            return
        with self._lock:
            if name in self._held:
                return
            self._held.add(name)

        callback = self._on_trigger if name == self.hotkey_name else self._on_cancel
        if callback is not None:
            callback()

    def _handle_release(self, key: object) -> None:
        with self._lock:
            self._held.discard(key_name(key))
