"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from typing import Callable, Protocol

from models import CaptureSignal, PasteResult, RecordingLogEntry


class CaptureSubsystem(Protocol):
    """The execution context that owns the microphone."""

    def connect(self, on_signal: Callable[[CaptureSignal], None]) -> None: ...

    def send(self, signal: CaptureSignal) -> None: ...


class RecognitionEngine(Protocol):
    def transcribe(self, wav_path: str) -> str: ...

    def cancel(self) -> None: ...


class PresentationSink(Protocol):
    def start(self) -> None: ...

    def audio_level(self, level: float) -> None: ...

    def partial_text(self, text: str) -> None: ...

    def stop(self, final_text: str) -> None: ...

    def cancel(self) -> None: ...

    def error(self, message: str) -> None: ...

    def hide(self) -> None: ...


class PasteService(Protocol):
    def paste_text(self, text: str) -> PasteResult: ...


class PermissionProvider(Protocol):
    def request_microphone_access(self) -> bool: ...


class TranscriptLog(Protocol):
    def append(self, transcript: str) -> RecordingLogEntry | None: ...
