"""Overlay window for dictation status, input level and the final transcript."""

from __future__ import annotations

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QProgressBar = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

TEXT_STYLE = (
    "color: white; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)
ERROR_STYLE = (
    "color: #FF6B6B; font-size: 18px; padding: 16px;"
    "background: rgba(0,0,0,210); border-radius: 12px;"
)
LEVEL_STYLE = (
    "QProgressBar { background: rgba(0,0,0,150); border: none; border-radius: 3px; }"
    "QProgressBar::chunk { background: #FF4444; border-radius: 3px; }"
)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(620)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(TEXT_STYLE)

        self._level = QProgressBar()
        self._level.setRange(0, 100)
        self._level.setTextVisible(False)
        self._level.setFixedHeight(6)
        self._level.setStyleSheet(LEVEL_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(4)
        layout.addWidget(self._label)
        layout.addWidget(self._level)
        self.setLayout(layout)

        self._hide_timer: QTimer | None = None

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 80
        self.move(x, y)

    def show_listening(self) -> None:
        self._level.setValue(0)
        self._level.show()
        self.set_text("Listening...")

    def set_level(self, level: float) -> None:
        self._level.setValue(int(round(min(1.0, max(0.0, level)) * 100)))

    def set_text(self, text: str) -> None:
        """Update overlay text and show at screen top center."""
        self._cancel_hide_timer()
        self._label.setStyleSheet(TEXT_STYLE)
        self._label.setText(text)
        self._center_top()
        self.show()

    def show_final(self, text: str) -> None:
        self._level.hide()
        self.set_text(text)

    def show_error(self, text: str) -> None:
        self._level.hide()
        self.set_text(f"⚠️ {text}")
        self._label.setStyleSheet(ERROR_STYLE)

    def hide_with_delay(self, delay_ms: int = 0) -> None:
        """Hide the overlay window, optionally after a delay."""
        self._cancel_hide_timer()
        if delay_ms <= 0 or QTimer is None:
            self.hide()
            return
        self._hide_timer = QTimer()
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.hide)
        self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
