"""Auto paste service for text insertion."""

from __future__ import annotations

import logging
import sys
import time

from errors import NO_ACTIVE_TARGET
from models import PasteResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


class ClipboardPasteService:
    """Pastes through the clipboard, then puts the previous clipboard text back.

    The clipboard is owned for ``paste_delay_s + restore_delay_s``; anything
    another program copies in that window is overwritten by the restore.
    """

    def __init__(self, paste_delay_s: float = 0.15, restore_delay_s: float = 0.3) -> None:
        self._paste_delay_s = paste_delay_s
        self._restore_delay_s = restore_delay_s

    def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)
        if pyperclip is None or Controller is None or Key is None:
            return PasteResult(
                success=False,
                reason="clipboard/keyboard dependency missing",
                clipboard_restored=False,
            )

        try:
            old_clip = pyperclip.paste()
            pyperclip.copy(text)
        except Exception as exc:
            logger.error(f"Clipboard unavailable: {exc}")
            return PasteResult(success=False, reason=f"clipboard unavailable: {exc}", clipboard_restored=False)

        time.sleep(self._paste_delay_s)
        try:
            self._send_paste_keystroke()
        except Exception as exc:
            logger.warning(f"Paste keystroke failed, transcript left in clipboard: {exc}")
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=False,
            )

        time.sleep(self._restore_delay_s)
        try:
            pyperclip.copy(old_clip)
        except Exception as exc:
            logger.warning(f"Could not restore clipboard: {exc}")
            return PasteResult(success=True, reason="ok", clipboard_restored=False)
        return PasteResult(success=True, reason="ok", clipboard_restored=True)

    def _send_paste_keystroke(self) -> None:
        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        keyboard = Controller()
        keyboard.press(modifier)
        keyboard.press("v")
        keyboard.release("v")
        keyboard.release(modifier)
