"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from models import (
    AUTO_STOP_PAUSE_OPTIONS_MS,
    DEFAULT_AUTO_STOP_PAUSE_MS,
    DEFAULT_FORMATTING_MODE,
    DEFAULT_SILENCE_THRESHOLD,
    SILENCE_THRESHOLD_OPTIONS,
    DictationSettings,
    FormattingMode,
)

logger = logging.getLogger(__name__)

DEFAULT_HOTKEY = "Key.alt_r"
DEFAULT_CANCEL_HOTKEY = "Key.esc"
DEFAULT_WHISPER_CLI = "whisper-cli"
DEFAULT_LANGUAGE = "en"


def format_pause_label(pause_ms: int) -> str:
    return f"{pause_ms / 1000:.1f}s"


def normalize_auto_stop_pause_ms(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_AUTO_STOP_PAUSE_MS
    if value in AUTO_STOP_PAUSE_OPTIONS_MS:
        return int(value)
    return DEFAULT_AUTO_STOP_PAUSE_MS


def normalize_silence_threshold(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SILENCE_THRESHOLD
    for option in SILENCE_THRESHOLD_OPTIONS:
        if abs(option - value) < 1e-9:
            return option
    return DEFAULT_SILENCE_THRESHOLD


def normalize_formatting_mode(value: object) -> FormattingMode:
    try:
        return FormattingMode(value)
    except ValueError:
        return DEFAULT_FORMATTING_MODE


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "hushtype" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_settings(self) -> DictationSettings:
        data = self._read_all()
        return DictationSettings(
            auto_stop_pause_ms=normalize_auto_stop_pause_ms(data.get("auto_stop_pause_ms")),
            silence_threshold=normalize_silence_threshold(data.get("silence_threshold")),
            formatting_mode=normalize_formatting_mode(data.get("formatting_mode")),
        )

    def set_auto_stop_pause_ms(self, pause_ms: int) -> DictationSettings:
        self._update("auto_stop_pause_ms", normalize_auto_stop_pause_ms(pause_ms))
        return self.get_settings()

    def set_silence_threshold(self, threshold: float) -> DictationSettings:
        self._update("silence_threshold", normalize_silence_threshold(threshold))
        return self.get_settings()

    def set_formatting_mode(self, mode: str) -> DictationSettings:
        self._update("formatting_mode", normalize_formatting_mode(mode).value)
        return self.get_settings()

    def get_device_id(self) -> str:
        value = self._read_all().get("device_id", "")
        return value if isinstance(value, str) else ""

    def set_device_id(self, device_id: str) -> None:
        self._update("device_id", device_id)

    def get_hotkey(self) -> str:
        return str(self._read_all().get("hotkey", DEFAULT_HOTKEY))

    def get_cancel_hotkey(self) -> str:
        return str(self._read_all().get("cancel_hotkey", DEFAULT_CANCEL_HOTKEY))

    def get_whisper_cli(self) -> str:
        return str(self._read_all().get("whisper_cli") or DEFAULT_WHISPER_CLI)

    def get_whisper_model(self) -> str:
        return str(self._read_all().get("whisper_model", ""))

    def get_language(self) -> str:
        return str(self._read_all().get("language") or DEFAULT_LANGUAGE)

    def _update(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Could not read settings, using defaults: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        try:
            self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not save settings: {e}")
