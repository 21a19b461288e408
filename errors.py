"""Shared error codes and user-facing messages."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
CAPTURE_STARTUP_TIMEOUT = "CAPTURE_STARTUP_TIMEOUT"
CAPTURE_RUNTIME_ERROR = "CAPTURE_RUNTIME_ERROR"
CAPTURE_STOP_TIMEOUT = "CAPTURE_STOP_TIMEOUT"
NO_AUDIO_CAPTURED = "NO_AUDIO_CAPTURED"
RECOGNITION_FAILED = "RECOGNITION_FAILED"
EMPTY_TRANSCRIPT = "EMPTY_TRANSCRIPT"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required.",
    CAPTURE_STARTUP_TIMEOUT: "Microphone did not respond.",
    CAPTURE_RUNTIME_ERROR: "Microphone unavailable.",
    CAPTURE_STOP_TIMEOUT: "Recording did not finish in time.",
    NO_AUDIO_CAPTURED: "No audio recorded.",
    RECOGNITION_FAILED: "Transcription failed. Check whisper-cli installation.",
    EMPTY_TRANSCRIPT: "No speech detected.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
}


class RecognitionError(Exception):
    """Raised when the recognition engine exits non-zero, times out or is killed."""
