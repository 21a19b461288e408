from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest

from audio_capture import AudioCaptureCoordinator
from errors import (
    CAPTURE_STARTUP_TIMEOUT,
    EMPTY_TRANSCRIPT,
    ERROR_MESSAGES,
    NO_ACTIVE_TARGET,
    RECOGNITION_FAILED,
    RecognitionError,
)
from models import CaptureSignal, DictationSettings, FormattingMode, PasteResult, SessionState
from session_controller import TRANSCRIBING_TEXT, SessionController
from wav_encoding import encode_wav

WAV = encode_wav(np.full(1600, 0.1, dtype=np.float32), 16000)


class FakeCaptureSubsystem:
    def __init__(self, ready: bool = True, wav: object = WAV, start_error: Optional[str] = None) -> None:
        self.ready = ready
        self.start_error = start_error
        self.wav = wav
        self.on_signal: Optional[Callable[[CaptureSignal], None]] = None
        self.sent: list[str] = []

    def connect(self, on_signal: Callable[[CaptureSignal], None]) -> None:
        self.on_signal = on_signal

    def send(self, signal: CaptureSignal) -> None:
        self.sent.append(signal.kind)
        if signal.kind == "start" and self.start_error is not None:
            self.emit("error", self.start_error)
        elif signal.kind == "start" and self.ready:
            self.emit("ready")
        elif signal.kind == "stop" and self.wav is not None:
            self.emit("wav", self.wav)

    def emit(self, kind: str, payload: object = None) -> None:
        assert self.on_signal is not None
        self.on_signal(CaptureSignal(kind=kind, payload=payload))


class FakeRecognizer:
    def __init__(self, text: str = "hello world from here", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.paths: list[str] = []
        self.cancelled = 0
        self.block: Optional[threading.Event] = None
        self.entered = threading.Event()

    def transcribe(self, wav_path: str) -> str:
        self.paths.append(wav_path)
        assert os.path.exists(wav_path)
        self.entered.set()
        if self.block is not None:
            self.block.wait(timeout=2.0)
            raise RecognitionError("whisper-cli was cancelled")
        if self.error is not None:
            raise self.error
        return self.text

    def cancel(self) -> None:
        self.cancelled += 1
        if self.block is not None:
            self.block.set()


class FakePasteService:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.calls: list[str] = []

    def paste_text(self, text: str) -> PasteResult:
        self.calls.append(text)
        if self.success:
            return PasteResult(success=True, reason="ok", clipboard_restored=True)
        return PasteResult(success=False, reason="NO_ACTIVE_TARGET: no window", clipboard_restored=False)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def start(self) -> None:
        self.events.append(("start", None))

    def audio_level(self, level: float) -> None:
        self.events.append(("level", level))

    def partial_text(self, text: str) -> None:
        self.events.append(("partial", text))

    def stop(self, final_text: str) -> None:
        self.events.append(("stop", final_text))

    def cancel(self) -> None:
        self.events.append(("cancel", None))

    def error(self, message: str) -> None:
        self.events.append(("error", message))

    def hide(self) -> None:
        self.events.append(("hide", None))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def errors(self) -> list[object]:
        return [value for name, value in self.events if name == "error"]


class FakePermission:
    def __init__(self, granted: bool) -> None:
        self.granted = granted
        self.requests = 0

    def request_microphone_access(self) -> bool:
        self.requests += 1
        return self.granted


class FakeTranscriptLog:
    def __init__(self) -> None:
        self.entries: list[str] = []

    def append(self, transcript: str):  # noqa: ANN201
        self.entries.append(transcript)
        return None


class FakeClock:
    def __init__(self) -> None:
        self.now = 50.0

    def __call__(self) -> float:
        return self.now


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.005)
    raise AssertionError("condition not met in time")


class Harness:
    def __init__(
        self,
        tmp_path: Path,
        capture: Optional[FakeCaptureSubsystem] = None,
        recognizer: Optional[FakeRecognizer] = None,
        paste: Optional[FakePasteService] = None,
        permission: Optional[FakePermission] = None,
        settings: Optional[DictationSettings] = None,
        ready_timeout_s: float = 1.0,
        stop_timeout_s: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
        sink: Optional[RecordingSink] = None,
    ) -> None:
        self.capture = capture or FakeCaptureSubsystem()
        self.recognizer = recognizer or FakeRecognizer()
        self.paste = paste or FakePasteService()
        self.sink = sink or RecordingSink()
        self.log = FakeTranscriptLog()
        self.settings = settings or DictationSettings()
        self.transitions: list[tuple[SessionState, SessionState]] = []
        self.coordinator = AudioCaptureCoordinator(
            self.capture,
            ready_timeout_s=ready_timeout_s,
            stop_timeout_s=stop_timeout_s,
            temp_root=str(tmp_path),
        )
        extra = {"clock": clock} if clock is not None else {}
        self.controller = SessionController(
            capture=self.coordinator,
            recognizer=self.recognizer,
            paste_service=self.paste,
            sink=self.sink,
            settings_provider=lambda: self.settings,
            permission=permission,
            transcript_log=self.log,
            hide_delay_s=0.01,
            watchdog_poll_s=0.01,
            on_state_change=lambda f, t: self.transitions.append((f, t)),
            **extra,
        )


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


# ---------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------

def test_happy_path_transitions_to_idle(harness: Harness, tmp_path: Path) -> None:
    harness.controller.trigger()
    assert harness.controller.state == SessionState.RECORDING

    harness.controller.trigger()

    assert harness.controller.state == SessionState.IDLE
    assert harness.transitions == [
        (SessionState.IDLE, SessionState.RECORDING),
        (SessionState.RECORDING, SessionState.STOPPING),
        (SessionState.STOPPING, SessionState.IDLE),
    ]
    assert harness.paste.calls == ["Hello world from here."]
    assert harness.log.entries == ["Hello world from here."]
    assert harness.sink.events[:3] == [
        ("start", None),
        ("partial", TRANSCRIBING_TEXT),
        ("stop", "Hello world from here."),
    ]
    assert harness.sink.errors() == []
    assert harness.capture.sent == ["start", "stop"]

    # the WAV file and its temp directory are gone
    assert not os.path.exists(harness.recognizer.paths[0])
    assert list(tmp_path.iterdir()) == []

    _wait_until(lambda: "hide" in harness.sink.names())


def test_formatting_mode_is_read_at_stop_time(harness: Harness) -> None:
    harness.controller.start()
    harness.settings = DictationSettings(formatting_mode=FormattingMode.OFF)
    harness.controller.stop()

    assert harness.paste.calls == ["hello world from here"]


def test_session_uses_settings_snapshot_from_start(tmp_path: Path) -> None:
    harness = Harness(tmp_path, settings=DictationSettings(auto_stop_pause_ms=8000, silence_threshold=0.06))
    harness.controller.start()

    session = harness.controller.session
    assert session is not None
    assert session.settings.auto_stop_pause_ms == 8000
    assert session.settings.silence_threshold == 0.06
    harness.controller.cancel()


# ---------------------------------------------------------------
# Ignored requests
# ---------------------------------------------------------------

def test_stop_from_idle_is_a_no_op(harness: Harness) -> None:
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert harness.capture.sent == []
    assert harness.sink.events == []


def test_start_while_recording_is_a_no_op(harness: Harness) -> None:
    harness.controller.start()
    harness.controller.start()

    assert harness.capture.sent == ["start"]
    assert harness.sink.names() == ["start"]
    harness.controller.cancel()


def test_cancel_from_idle_is_a_no_op(harness: Harness) -> None:
    harness.controller.cancel()

    assert harness.transitions == []
    assert harness.recognizer.cancelled == 0
    assert harness.sink.events == []


# ---------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------

def test_cancel_during_recording_never_transcribes(harness: Harness) -> None:
    harness.controller.start()
    harness.controller.cancel()

    assert harness.controller.state == SessionState.IDLE
    assert harness.capture.sent == ["start", "cancel"]
    assert harness.recognizer.paths == []
    assert harness.recognizer.cancelled == 1
    assert "cancel" in harness.sink.names()
    assert harness.sink.errors() == []

    harness.controller.stop()
    assert harness.capture.sent == ["start", "cancel"]
    _wait_until(lambda: "hide" in harness.sink.names())


def test_cancel_during_transcription_discards_result(tmp_path: Path) -> None:
    recognizer = FakeRecognizer()
    recognizer.block = threading.Event()
    harness = Harness(tmp_path, recognizer=recognizer)
    harness.controller.start()

    stopper = threading.Thread(target=harness.controller.stop)
    stopper.start()
    assert recognizer.entered.wait(timeout=2.0)
    assert harness.controller.state == SessionState.STOPPING

    harness.controller.cancel()
    stopper.join(timeout=2.0)

    assert not stopper.is_alive()
    assert harness.controller.state == SessionState.IDLE
    assert harness.paste.calls == []
    assert harness.sink.errors() == []
    assert list(tmp_path.iterdir()) == []


class CancelOnTranscribingSink(RecordingSink):
    """Fires ``cancel()`` from another thread while the transcribing status is shown."""

    def __init__(self) -> None:
        super().__init__()
        self.controller: Optional[SessionController] = None
        self.canceller: Optional[threading.Thread] = None

    def partial_text(self, text: str) -> None:
        assert self.controller is not None
        self.canceller = threading.Thread(target=self.controller.cancel)
        self.canceller.start()
        self.canceller.join(timeout=0.05)
        super().partial_text(text)


def test_cancel_never_precedes_transcribing_status(tmp_path: Path) -> None:
    sink = CancelOnTranscribingSink()
    harness = Harness(tmp_path, sink=sink)
    sink.controller = harness.controller
    harness.controller.start()

    harness.controller.stop()
    assert sink.canceller is not None
    sink.canceller.join(timeout=2.0)

    names = sink.names()
    assert harness.controller.state == SessionState.IDLE
    if "cancel" in names:
        assert names.index("partial") < names.index("cancel")


# ---------------------------------------------------------------
# Failures
# ---------------------------------------------------------------

def test_capture_error_resets_to_idle(harness: Harness) -> None:
    harness.controller.start()
    harness.capture.emit("error", "Microphone unavailable: device unplugged")

    assert harness.controller.state == SessionState.IDLE
    assert harness.sink.errors() == ["Microphone unavailable: device unplugged"]
    assert harness.capture.sent == ["start", "cancel"]
    assert harness.recognizer.paths == []


def test_capture_error_during_start_leaves_watchdog_disarmed(tmp_path: Path) -> None:
    capture = FakeCaptureSubsystem(start_error="Microphone unavailable: device busy")
    harness = Harness(tmp_path, capture=capture, settings=DictationSettings(auto_stop_pause_ms=1000))

    harness.controller.start()

    assert harness.controller.state == SessionState.IDLE
    assert harness.controller._watchdog.active is False
    assert harness.sink.errors() == ["Microphone unavailable: device busy"]
    time.sleep(0.05)
    assert capture.sent.count("stop") == 0


def test_missing_ready_reports_startup_timeout(tmp_path: Path) -> None:
    harness = Harness(tmp_path, capture=FakeCaptureSubsystem(ready=False), ready_timeout_s=0.05)
    harness.controller.start()

    _wait_until(lambda: harness.controller.state == SessionState.IDLE)
    assert harness.sink.errors() == [ERROR_MESSAGES[CAPTURE_STARTUP_TIMEOUT]]


def test_empty_transcript_shows_error(tmp_path: Path) -> None:
    harness = Harness(tmp_path, recognizer=FakeRecognizer(text="  \n"))
    harness.controller.start()
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert harness.sink.errors() == [ERROR_MESSAGES[EMPTY_TRANSCRIPT]]
    assert harness.paste.calls == []
    assert harness.log.entries == []


def test_recognition_failure_shows_error_and_removes_wav(tmp_path: Path) -> None:
    recognizer = FakeRecognizer(error=RecognitionError("whisper-cli exited with code 1"))
    harness = Harness(tmp_path, recognizer=recognizer)
    harness.controller.start()
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert harness.sink.errors() == [ERROR_MESSAGES[RECOGNITION_FAILED]]
    assert list(tmp_path.iterdir()) == []


def test_no_audio_returns_to_idle_quietly(tmp_path: Path) -> None:
    harness = Harness(tmp_path, capture=FakeCaptureSubsystem(wav=b""))
    harness.controller.start()
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert harness.recognizer.paths == []
    assert harness.sink.errors() == []


def test_stop_timeout_is_reported_once(tmp_path: Path) -> None:
    harness = Harness(tmp_path, capture=FakeCaptureSubsystem(wav=None), stop_timeout_s=0.05)
    harness.controller.start()
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert len(harness.sink.errors()) == 1
    assert harness.recognizer.paths == []


def test_paste_failure_keeps_transcript_and_reports(tmp_path: Path) -> None:
    harness = Harness(tmp_path, paste=FakePasteService(success=False))
    harness.controller.start()
    harness.controller.stop()

    assert harness.controller.state == SessionState.IDLE
    assert harness.log.entries == ["Hello world from here."]
    assert ("stop", "Hello world from here.") in harness.sink.events
    assert harness.sink.errors() == [ERROR_MESSAGES[NO_ACTIVE_TARGET]]


# ---------------------------------------------------------------
# Permission
# ---------------------------------------------------------------

def test_permission_denied_aborts_silently(tmp_path: Path) -> None:
    permission = FakePermission(granted=False)
    harness = Harness(tmp_path, permission=permission)
    harness.controller.start()

    assert harness.controller.state == SessionState.IDLE
    assert harness.capture.sent == []
    assert harness.sink.events == []
    assert permission.requests == 1


def test_permission_grant_is_cached(tmp_path: Path) -> None:
    permission = FakePermission(granted=True)
    harness = Harness(tmp_path, permission=permission)

    harness.controller.start()
    harness.controller.stop()
    harness.controller.start()
    harness.controller.cancel()

    assert permission.requests == 1


# ---------------------------------------------------------------
# Levels and auto-stop
# ---------------------------------------------------------------

def test_loud_levels_refresh_last_loud_time(tmp_path: Path) -> None:
    clock = FakeClock()
    harness = Harness(tmp_path, clock=clock)
    harness.controller.start()
    session = harness.controller.session
    assert session is not None

    clock.now = 51.0
    harness.capture.emit("level", 0.01)
    assert session.last_loud_at == 50.0

    clock.now = 52.0
    harness.capture.emit("level", 0.5)
    assert session.last_loud_at == 52.0
    assert [v for name, v in harness.sink.events if name == "level"] == [0.01, 0.5]
    harness.controller.cancel()


def test_silence_auto_stops_exactly_once(tmp_path: Path) -> None:
    harness = Harness(tmp_path, settings=DictationSettings(auto_stop_pause_ms=50))
    harness.controller.start()

    _wait_until(lambda: harness.controller.state == SessionState.IDLE)
    time.sleep(0.1)

    assert harness.capture.sent.count("stop") == 1
    assert harness.paste.calls == ["Hello world from here."]
    assert harness.recognizer.paths and len(harness.recognizer.paths) == 1
