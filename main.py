"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
import threading

from audio_capture import AudioCaptureCoordinator
from auto_paste import ClipboardPasteService
from config import JsonConfigStore, format_pause_label
from hotkey import GlobalHotkeyAdapter
from logging_config import setup_logging
from models import AUTO_STOP_PAUSE_OPTIONS_MS, SILENCE_THRESHOLD_OPTIONS, FormattingMode, SessionState
from overlay import OverlayWindow
from recorder import MicrophonePermission, SoundDeviceCapture, list_input_devices
from recognizer import WhisperCliRecognizer
from recording_log import JsonlRecordingLog, history_label
from session_controller import SessionController

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

ERROR_LINGER_MS = 2000
HISTORY_DAYS = 7


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))  # transparent background
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_STOPPING = "#FF8800"  # orange


class UIBridge(QObject):
    """Presentation sink: every event is re-emitted as a Qt signal for the UI thread."""

    start_signal = Signal()
    level_signal = Signal(float)
    partial_signal = Signal(str)
    stop_signal = Signal(str)
    cancel_signal = Signal()
    error_signal = Signal(str)
    hide_signal = Signal()
    state_signal = Signal(str, str)  # from_state, to_state

    def start(self) -> None:
        self.start_signal.emit()

    def audio_level(self, level: float) -> None:
        self.level_signal.emit(level)

    def partial_text(self, text: str) -> None:
        self.partial_signal.emit(text)

    def stop(self, final_text: str) -> None:
        self.stop_signal.emit(final_text)

    def cancel(self) -> None:
        self.cancel_signal.emit()

    def error(self, message: str) -> None:
        self.error_signal.emit(message)

    def hide(self) -> None:
        self.hide_signal.emit()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self._showing_error = False

        self.ui = UIBridge()
        self.ui.start_signal.connect(self._on_start_ui)
        self.ui.level_signal.connect(self.overlay.set_level)
        self.ui.partial_signal.connect(self.overlay.set_text)
        self.ui.stop_signal.connect(self.overlay.show_final)
        self.ui.cancel_signal.connect(self._on_cancel_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.hide_signal.connect(self._on_hide_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        self.recording_log = JsonlRecordingLog()
        self.capture = SoundDeviceCapture()
        self.coordinator = AudioCaptureCoordinator(
            self.capture,
            device_id=self.config_store.get_device_id(),
        )
        self.controller = SessionController(
            capture=self.coordinator,
            recognizer=WhisperCliRecognizer(
                cli_path=self.config_store.get_whisper_cli(),
                model_path=self.config_store.get_whisper_model(),
                language=self.config_store.get_language(),
            ),
            paste_service=ClipboardPasteService(),
            sink=self.ui,
            settings_provider=self.config_store.get_settings,
            permission=MicrophonePermission(),
            transcript_log=self.recording_log,
            on_state_change=self._on_state_change,
        )
        self.hotkey = GlobalHotkeyAdapter(
            hotkey_name=self.config_store.get_hotkey(),
            cancel_key_name=self.config_store.get_cancel_hotkey(),
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("hushtype — Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()
        settings = self.config_store.get_settings()

        formatting_menu = menu.addMenu("Formatting")
        formatting_group = QActionGroup(formatting_menu)
        for mode in FormattingMode:
            action = QAction(mode.value.capitalize(), formatting_menu, checkable=True)
            action.setChecked(mode == settings.formatting_mode)
            action.triggered.connect(lambda _checked=False, m=mode: self.config_store.set_formatting_mode(m.value))
            formatting_group.addAction(action)
            formatting_menu.addAction(action)

        pause_menu = menu.addMenu("Auto-stop pause")
        pause_group = QActionGroup(pause_menu)
        for pause_ms in AUTO_STOP_PAUSE_OPTIONS_MS:
            action = QAction(format_pause_label(pause_ms), pause_menu, checkable=True)
            action.setChecked(pause_ms == settings.auto_stop_pause_ms)
            action.triggered.connect(lambda _checked=False, p=pause_ms: self.config_store.set_auto_stop_pause_ms(p))
            pause_group.addAction(action)
            pause_menu.addAction(action)

        threshold_menu = menu.addMenu("Silence threshold")
        threshold_group = QActionGroup(threshold_menu)
        for threshold in SILENCE_THRESHOLD_OPTIONS:
            action = QAction(f"{threshold:.2f}", threshold_menu, checkable=True)
            action.setChecked(threshold == settings.silence_threshold)
            action.triggered.connect(lambda _checked=False, t=threshold: self.config_store.set_silence_threshold(t))
            threshold_group.addAction(action)
            threshold_menu.addAction(action)

        device_menu = menu.addMenu("Input device")
        device_group = QActionGroup(device_menu)
        current_device = self.config_store.get_device_id()
        for device_id, name in [("", "System default")] + list_input_devices():
            action = QAction(name, device_menu, checkable=True)
            action.setChecked(device_id == current_device)
            action.triggered.connect(lambda _checked=False, d=device_id: self._select_device(d))
            device_group.addAction(action)
            device_menu.addAction(action)

        menu.addSeparator()
        copy_last_action = QAction("Copy last transcript", menu)
        copy_last_action.triggered.connect(self._copy_last_transcript)
        menu.addAction(copy_last_action)
        self._history_menu = menu.addMenu("History")
        self._history_menu.aboutToShow.connect(self._populate_history)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)
        self._menu = menu

    def _populate_history(self) -> None:
        # rebuilt on every open
        self._history_menu.clear()
        dates = self.recording_log.list_dates()[:HISTORY_DAYS]
        if not dates:
            empty = self._history_menu.addAction("No transcripts yet")
            empty.setEnabled(False)
            return
        for date_key in dates:
            day_menu = self._history_menu.addMenu(date_key)
            for entry in reversed(self.recording_log.read_by_date(date_key)):
                action = day_menu.addAction(history_label(entry))
                action.triggered.connect(lambda _checked=False, t=entry.transcript: self._copy_text(t))

    def _copy_last_transcript(self) -> None:
        entries = self.recording_log.read_today()
        if not entries:
            logger.info("No transcripts logged today")
            return
        self._copy_text(entries[-1].transcript)

    def _copy_text(self, text: str) -> None:
        QApplication.clipboard().setText(text)
        logger.info(f"Copied {len(text)} characters from history")

    def _select_device(self, device_id: str) -> None:
        self.config_store.set_device_id(device_id)
        self.coordinator.set_device(device_id)
        logger.info(f"Input device set to {device_id or 'system default'}")

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_start_ui(self) -> None:
        self._showing_error = False
        self.overlay.show_listening()

    def _on_cancel_ui(self) -> None:
        self.overlay.set_text("Cancelled")

    def _on_error_ui(self, message: str) -> None:
        self._showing_error = True
        self.overlay.show_error(message)

    def _on_hide_ui(self) -> None:
        self.overlay.hide_with_delay(ERROR_LINGER_MS if self._showing_error else 0)

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.RECORDING.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("hushtype — Recording...")
        elif to_state == SessionState.STOPPING.value:
            self.tray.setIcon(_create_icon(ICON_STOPPING))
            self.tray.setToolTip("hushtype — Transcribing...")
        elif to_state == SessionState.IDLE.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("hushtype — Ready")

    # ------------------------------------------------------------------
    # Hotkey handlers
    # ------------------------------------------------------------------

    def _on_hotkey_trigger(self) -> None:
        # The stop path waits for the recording and the recognizer, so keep it
        # off the listener thread.
        threading.Thread(target=self.controller.trigger, daemon=True).start()

    def _on_hotkey_cancel(self) -> None:
        if self.controller.state != SessionState.IDLE:
            self.controller.cancel()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        if not self.config_store.get_whisper_model():
            logger.warning("No whisper model configured; set \"whisper_model\" in the config file")
        try:
            self.hotkey.start(
                on_trigger=self._on_hotkey_trigger,
                on_cancel=self._on_hotkey_cancel,
            )
        except Exception as exc:
            logger.error(f"Hotkey disabled: {exc}")
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        logger.info("hushtype is running. Press your hotkey to dictate.")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self.controller.cancel()
        self.capture.close()
        self.app.quit()


def main() -> int:
    setup_logging()
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
