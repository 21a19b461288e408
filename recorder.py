"""Microphone capture subsystem.

``SoundDeviceCapture`` owns the input stream on its own worker thread and talks
to the rest of the app only through ``CaptureSignal`` messages: it consumes
``start``/``set_device``/``stop``/``cancel`` and emits ``ready``/``level``/
``wav``/``error``.
"""

from __future__ import annotations

import logging
import threading
import time
from queue import Empty, Queue
from typing import Any, Callable, Optional

import numpy as np

from models import CaptureSignal, CaptureSignalKind
from wav_encoding import encode_wav, rms_level

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def resolve_device(device_id: str) -> int | str | None:
    """Map a stored device id to what sounddevice accepts ('' is the default input)."""
    device_id = (device_id or "").strip()
    if not device_id:
        return None
    if device_id.isdigit():
        return int(device_id)
    return device_id


def list_input_devices() -> list[tuple[str, str]]:
    """(device_id, name) for every device with input channels; empty if unavailable."""
    if sd is None:
        return []
    try:
        devices = sd.query_devices()
    except Exception as exc:
        logger.error(f"Could not list audio devices: {exc}")
        return []
    return [
        (str(index), str(device["name"]))
        for index, device in enumerate(devices)
        if device.get("max_input_channels", 0) > 0
    ]


class SoundDeviceCapture:
    def __init__(
        self,
        level_interval_ms: int = 50,
        analysis_size: int = 2048,
        blocksize: int = 4096,
    ) -> None:
        self.level_interval_s = level_interval_ms / 1000.0
        self.analysis_size = analysis_size
        self.blocksize = blocksize
        self._commands: Queue[CaptureSignal | None] = Queue()
        self._on_signal: Optional[Callable[[CaptureSignal], None]] = None
        self._thread: Optional[threading.Thread] = None
        self._stream: Any = None
        self._recording = False
        self._sample_rate = 0
        self._device_id = ""
        self._lock = threading.Lock()
        self._chunks: list[Any] = []
        self._window: Any = None

    def connect(self, on_signal: Callable[[CaptureSignal], None]) -> None:
        self._on_signal = on_signal
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self._worker, name="capture", daemon=True)
            self._thread.start()

    def send(self, signal: CaptureSignal) -> None:
        self._commands.put(signal)

    def close(self) -> None:
        self._commands.put(None)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _worker(self) -> None:
        next_level_at = 0.0
        while True:
            timeout = None
            if self._recording:
                timeout = max(0.0, next_level_at - time.monotonic())
            try:
                command = self._commands.get(timeout=timeout)
            except Empty:
                command = CaptureSignal(kind=CaptureSignalKind.LEVEL.value)

            if command is None:
                self._stop(send_wav=False)
                return

            kind = command.kind
            if kind == CaptureSignalKind.START.value:
                self._start(command.payload)
                next_level_at = time.monotonic() + self.level_interval_s
            elif kind == CaptureSignalKind.STOP.value:
                self._stop(send_wav=True)
            elif kind == CaptureSignalKind.CANCEL.value:
                self._stop(send_wav=False)
            elif kind == CaptureSignalKind.SET_DEVICE.value:
                self._device_id = command.payload if isinstance(command.payload, str) else ""

            if self._recording and time.monotonic() >= next_level_at:
                self._emit_level()
                next_level_at = time.monotonic() + self.level_interval_s

    def _start(self, device_id: object) -> None:
        if self._recording:
            return
        if sd is None:
            self._emit(CaptureSignalKind.ERROR, "sounddevice is not installed")
            return
        if isinstance(device_id, str):
            self._device_id = device_id
        device = resolve_device(self._device_id)
        try:
            info = sd.query_devices(device, "input")
            sample_rate = int(info["default_samplerate"])
            stream = sd.InputStream(
                samplerate=sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.blocksize,
                device=device,
                callback=self._on_audio,
            )
            stream.start()
        except Exception as exc:
            logger.error(f"Could not open input device {device!r}: {exc}")
            self._emit(CaptureSignalKind.ERROR, f"Microphone unavailable: {exc}")
            return

        with self._lock:
            self._chunks = []
            self._window = np.zeros(self.analysis_size, dtype=np.float32)
        self._stream = stream
        self._sample_rate = sample_rate
        self._recording = True
        logger.info(f"Capture started on {device if device is not None else 'default input'} at {sample_rate} Hz")
        self._emit(CaptureSignalKind.READY)

    def _stop(self, send_wav: bool) -> None:
        if not self._recording:
            if send_wav:
                self._emit(CaptureSignalKind.WAV, b"")
            return

        self._recording = False
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as exc:  # PortAudioError, or stream already closed
                logger.warning(f"Error closing input stream: {exc}")
            self._stream = None

        with self._lock:
            chunks = self._chunks
            self._chunks = []
        if not send_wav:
            return
        merged = np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.float32)
        self._emit(CaptureSignalKind.WAV, encode_wav(merged, self._sample_rate))

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._recording:
            return
        if status:
            logger.debug(f"Input stream status: {status}")
        data = np.asarray(indata, dtype=np.float32)
        mono = data[:, 0] if data.ndim > 1 else data
        mono = mono.copy()
        with self._lock:
            self._chunks.append(mono)
            self._window = np.concatenate((self._window, mono))[-self.analysis_size:]

    def _emit_level(self) -> None:
        with self._lock:
            window = self._window
        if window is None:
            return
        self._emit(CaptureSignalKind.LEVEL, rms_level(window))

    def _emit(self, kind: CaptureSignalKind, payload: Any = None) -> None:
        if self._on_signal is not None:
            self._on_signal(CaptureSignal(kind=kind.value, payload=payload))


class MicrophonePermission:
    """Probes for a usable input device; the OS prompts on first access."""

    def request_microphone_access(self) -> bool:
        if sd is None:
            logger.error("sounddevice is not installed")
            return False
        try:
            sd.query_devices(kind="input")
        except Exception as exc:
            logger.error(f"No usable input device: {exc}")
            return False
        return True
