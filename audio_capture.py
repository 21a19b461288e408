"""Start/stop/cancel handshake with the capture subsystem."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from typing import Callable, Optional

from errors import CAPTURE_RUNTIME_ERROR, CAPTURE_STARTUP_TIMEOUT, CAPTURE_STOP_TIMEOUT, ERROR_MESSAGES
from interfaces import CaptureSubsystem
from models import CaptureSignal, CaptureSignalKind, RecordingArtifact
from pending import PendingOperation
from wav_encoding import is_wav_payload

logger = logging.getLogger(__name__)

LevelCallback = Callable[[float], None]
CaptureErrorCallback = Callable[[str], None]


class AudioCaptureCoordinator:
    """Turns the capture subsystem's signals into loudness callbacks and WAV files.

    At most one stop request is in flight: a second ``stop()`` while one is
    pending returns ``None`` immediately. Callbacks are always invoked
    without holding the coordinator's lock.
    """

    def __init__(
        self,
        capture: CaptureSubsystem,
        device_id: str = "",
        ready_timeout_s: float = 2.5,
        stop_timeout_s: float = 3.0,
        temp_root: Optional[str] = None,
    ) -> None:
        self._capture = capture
        self._device_id = device_id
        self._ready_timeout_s = ready_timeout_s
        self._stop_timeout_s = stop_timeout_s
        self._temp_root = temp_root

        self._lock = threading.Lock()
        self._on_level: Optional[LevelCallback] = None
        self._on_error: Optional[CaptureErrorCallback] = None
        self._ready: Optional[PendingOperation] = None
        self._pending_stop: Optional[PendingOperation] = None

        self._capture.connect(self._handle_signal)

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def stop_pending(self) -> bool:
        with self._lock:
            return self._pending_stop is not None

    def set_device(self, device_id: str) -> None:
        self._device_id = device_id
        self._capture.send(CaptureSignal(kind=CaptureSignalKind.SET_DEVICE.value, payload=device_id))

    def start(self, on_level: LevelCallback, on_error: CaptureErrorCallback) -> PendingOperation:
        """Ask the capture side to start; the handle settles True on ``ready``.

        A missing acknowledgment is reported through ``on_error`` after the
        ready timeout rather than raised.
        """
        with self._lock:
            self._on_level = on_level
            self._on_error = on_error
            previous = self._ready
            ready = PendingOperation(
                self._ready_timeout_s,
                timeout_value=False,
                on_timeout=self._handle_ready_timeout,
            )
            self._ready = ready
        if previous is not None:
            previous.cancel()
        self._capture.send(CaptureSignal(kind=CaptureSignalKind.START.value, payload=self._device_id))
        return ready

    def stop(self) -> RecordingArtifact | None:
        with self._lock:
            if self._pending_stop is not None:
                logger.debug("Stop already pending, ignoring second request")
                return None
            operation = PendingOperation(self._stop_timeout_s, timeout_value=None)
            self._pending_stop = operation

        self._capture.send(CaptureSignal(kind=CaptureSignalKind.STOP.value))
        artifact = operation.wait()

        with self._lock:
            if self._pending_stop is operation:
                self._pending_stop = None
        if operation.timed_out:
            logger.warning(f"No recording received within {self._stop_timeout_s}s")
            self._report_error(ERROR_MESSAGES[CAPTURE_STOP_TIMEOUT])
        return artifact

    def cancel(self) -> None:
        with self._lock:
            operation = self._pending_stop
            ready = self._ready
            self._pending_stop = None
            self._ready = None
            self._on_level = None
            self._on_error = None
        self._capture.send(CaptureSignal(kind=CaptureSignalKind.CANCEL.value))
        if ready is not None:
            ready.cancel()
        if operation is not None:
            operation.resolve(None)

    # ------------------------------------------------------------------
    # Signals from the capture side
    # ------------------------------------------------------------------

    def _handle_signal(self, signal: CaptureSignal) -> None:
        kind = signal.kind
        if kind == CaptureSignalKind.READY.value:
            with self._lock:
                ready = self._ready
            if ready is not None:
                ready.resolve(True)
        elif kind == CaptureSignalKind.LEVEL.value:
            with self._lock:
                on_level = self._on_level
            if on_level is not None:
                on_level(_to_level(signal.payload))
        elif kind == CaptureSignalKind.ERROR.value:
            message = signal.payload if isinstance(signal.payload, str) else ERROR_MESSAGES[CAPTURE_RUNTIME_ERROR]
            logger.error(f"Capture error: {message}")
            with self._lock:
                ready = self._ready
                self._ready = None
            if ready is not None:
                ready.cancel()
            self._report_error(message)
        elif kind == CaptureSignalKind.WAV.value:
            self._handle_wav(signal.payload)

    def _handle_wav(self, payload: object) -> None:
        with self._lock:
            operation = self._pending_stop
        if operation is None or operation.done:
            logger.debug("Dropping recording that arrived with no pending stop")
            return
        if not is_wav_payload(payload):
            logger.info("Capture returned no usable audio")
            operation.resolve(None)
            return

        try:
            artifact = self._write_artifact(bytes(payload))  # type: ignore[arg-type]
        except OSError as exc:
            self._report_error(f"Failed to save recording: {exc}")
            return
        if not operation.resolve(artifact):
            artifact.discard()

    def _handle_ready_timeout(self) -> None:
        logger.warning(f"Capture not ready after {self._ready_timeout_s}s")
        self._report_error(ERROR_MESSAGES[CAPTURE_STARTUP_TIMEOUT])

    def _report_error(self, message: str) -> None:
        with self._lock:
            on_error = self._on_error
            operation = self._pending_stop
            self._pending_stop = None
        if on_error is not None:
            on_error(message)
        if operation is not None:
            operation.resolve(None)

    def _write_artifact(self, payload: bytes) -> RecordingArtifact:
        directory = tempfile.mkdtemp(prefix="hushtype-", dir=self._temp_root)
        path = os.path.join(directory, "dictation.wav")
        with open(path, "wb") as fh:
            fh.write(payload)
        return RecordingArtifact(path=path, size_bytes=len(payload))


def _to_level(payload: object) -> float:
    if isinstance(payload, bool) or not isinstance(payload, (int, float)):
        return 0.0
    return min(1.0, max(0.0, float(payload)))
