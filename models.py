"""Core data models for the app."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    STOPPING = "STOPPING"


class FormattingMode(str, Enum):
    OFF = "off"
    BASIC = "basic"
    STRUCTURED = "structured"


class CaptureSignalKind(str, Enum):
    START = "start"
    READY = "ready"
    LEVEL = "level"
    SET_DEVICE = "set_device"
    STOP = "stop"
    WAV = "wav"
    CANCEL = "cancel"
    ERROR = "error"


AUTO_STOP_PAUSE_OPTIONS_MS = (1000, 1500, 2000, 3000, 5000, 8000)
SILENCE_THRESHOLD_OPTIONS = (0.01, 0.02, 0.03, 0.04, 0.06, 0.08)

DEFAULT_AUTO_STOP_PAUSE_MS = 3000
DEFAULT_SILENCE_THRESHOLD = 0.02
DEFAULT_FORMATTING_MODE = FormattingMode.BASIC


@dataclass
class CaptureSignal:
    kind: str
    payload: Any = None


@dataclass(frozen=True)
class DictationSettings:
    auto_stop_pause_ms: int = DEFAULT_AUTO_STOP_PAUSE_MS
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD
    formatting_mode: FormattingMode = DEFAULT_FORMATTING_MODE


@dataclass
class Session:
    """The single live dictation attempt, owned by the SessionController."""

    started_at: float
    last_loud_at: float
    settings: DictationSettings = field(default_factory=DictationSettings)
    finishing: bool = False
    level_count: int = 0


@dataclass(frozen=True)
class RecordingArtifact:
    """A finished mono PCM16 WAV file on disk."""

    path: str
    size_bytes: int = 0

    def discard(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        try:
            os.rmdir(os.path.dirname(self.path))
        except OSError:
            pass


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool


@dataclass
class RecordingLogEntry:
    timestamp: str
    date: str
    transcript: str
