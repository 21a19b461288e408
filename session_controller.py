"""State-machine based session orchestration.

IDLE -> RECORDING -> STOPPING -> IDLE, with cancel allowed from RECORDING or
STOPPING. Every transition happens under one lock; the blocking parts of the
stop sequence (waiting for the WAV, running the recognizer, pasting) run
outside it, so ``cancel()`` can always get in.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from audio_capture import AudioCaptureCoordinator
from config import format_pause_label
from errors import (
    EMPTY_TRANSCRIPT,
    ERROR_MESSAGES,
    NO_ACTIVE_TARGET,
    NO_AUDIO_CAPTURED,
    PERMISSION_DENIED,
    RECOGNITION_FAILED,
    RecognitionError,
)
from formatter import format_transcript
from interfaces import PasteService, PermissionProvider, PresentationSink, RecognitionEngine, TranscriptLog
from models import DictationSettings, Session, SessionState
from silence_watchdog import SilenceWatchdog

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
SettingsProvider = Callable[[], DictationSettings]

TRANSCRIBING_TEXT = "Transcribing..."


class SessionController:
    def __init__(
        self,
        capture: AudioCaptureCoordinator,
        recognizer: RecognitionEngine,
        paste_service: PasteService,
        sink: PresentationSink,
        settings_provider: SettingsProvider = DictationSettings,
        permission: Optional[PermissionProvider] = None,
        transcript_log: Optional[TranscriptLog] = None,
        hide_delay_s: float = 0.25,
        watchdog_poll_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._capture = capture
        self._recognizer = recognizer
        self._paste_service = paste_service
        self._sink = sink
        self._settings_provider = settings_provider
        self._permission = permission
        self._transcript_log = transcript_log
        self._hide_delay_s = hide_delay_s
        self._clock = clock
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[Session] = None
        self._permission_granted = False
        self._hide_timer: Optional[threading.Timer] = None
        self._watchdog = SilenceWatchdog(
            on_expire=self._auto_stop,
            poll_interval_s=watchdog_poll_s,
            clock=clock,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def trigger(self) -> None:
        """Hotkey entry point: start when idle, stop when recording.

        Stopping blocks until the transcript is delivered or the session
        fails, so callers on a UI or hotkey thread should run this in a
        worker thread.
        """
        state = self.state
        if state == SessionState.IDLE:
            self.start()
        elif state == SessionState.RECORDING:
            self.stop()
        else:
            logger.debug("Trigger ignored while stopping")

    def start(self) -> None:
        with self._lock:
            if self._state != SessionState.IDLE:
                return
            if not self._check_permission():
                return

            settings = self._settings_provider()
            now = self._clock()
            session = Session(started_at=now, last_loud_at=now, settings=settings)
            self._session = session
            self._cancel_hide_timer()
            self._transition(SessionState.RECORDING)
            logger.info(f"Recording, auto-stop pause {format_pause_label(settings.auto_stop_pause_ms)}")

            self._sink.start()
            # armed first so a synchronous capture error tears it down with the session
            self._watchdog.start(settings.auto_stop_pause_ms, lambda: session.last_loud_at)
            self._capture.start(
                on_level=lambda level: self._handle_level(session, level),
                on_error=lambda message: self._handle_capture_error(session, message),
            )

    def stop(self) -> None:
        with self._lock:
            if self._state != SessionState.RECORDING:
                return
            session = self._session
            self._transition(SessionState.STOPPING)
            self._watchdog.stop()
            self._sink.partial_text(TRANSCRIBING_TEXT)

        artifact = self._capture.stop()
        if artifact is None:
            logger.info(ERROR_MESSAGES[NO_AUDIO_CAPTURED])
            self._abort(session)
            return
        if not self._is_current(session):
            artifact.discard()
            return

        logger.info(f"WAV saved: {artifact.path} ({artifact.size_bytes} bytes)")
        try:
            raw = self._recognizer.transcribe(artifact.path)
        except RecognitionError as exc:
            logger.error(f"Transcription failed: {exc}")
            self._abort(session, ERROR_MESSAGES[RECOGNITION_FAILED])
            return
        finally:
            artifact.discard()

        if not self._is_current(session):
            logger.info("Discarding transcript of a cancelled session")
            return
        transcript = raw.strip()
        if not transcript:
            self._abort(session, ERROR_MESSAGES[EMPTY_TRANSCRIPT])
            return

        mode = self._settings_provider().formatting_mode
        formatted = format_transcript(transcript, mode) or transcript
        self._deliver(session, formatted)

    def cancel(self) -> None:
        with self._lock:
            if self._state not in (SessionState.RECORDING, SessionState.STOPPING):
                return
            session = self._session
            if not self._end_session(session):
                return
        logger.info("Dictation cancelled")
        self._capture.cancel()
        self._recognizer.cancel()
        self._sink.cancel()
        self._schedule_hide()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _handle_level(self, session: Session, level: float) -> None:
        with self._lock:
            if self._session is not session or self._state != SessionState.RECORDING:
                return
            threshold = session.settings.silence_threshold
            session.level_count += 1
            count = session.level_count
            if count <= 5 or (level > threshold and count % 10 == 0):
                logger.debug(f"Audio level #{count}: {level:.4f}")
            if level > threshold:
                session.last_loud_at = self._clock()

        self._sink.audio_level(level)
        self._watchdog.check()

    def _handle_capture_error(self, session: Session, message: str) -> None:
        logger.error(f"Recording error: {message}")
        self._abort(session, message, cancel_capture=True)

    def _auto_stop(self) -> None:
        threading.Thread(target=self.stop, name="auto-stop", daemon=True).start()

    # ------------------------------------------------------------------
    # Delivery and reset
    # ------------------------------------------------------------------

    def _deliver(self, session: Session, text: str) -> None:
        with self._lock:
            if self._session is not session or session.finishing:
                return
            session.finishing = True

        self._sink.stop(text)
        if self._transcript_log is not None:
            self._transcript_log.append(text)

        result = self._paste_service.paste_text(text)
        if not result.success:
            logger.warning(f"Paste failed: {result.reason}")
            self._abort(session, ERROR_MESSAGES[NO_ACTIVE_TARGET])
            return
        self._abort(session)

    def _abort(self, session: Optional[Session], message: str = "", cancel_capture: bool = False) -> bool:
        """Shared reset for every ending: tear down, report once, schedule hide."""
        with self._lock:
            if not self._end_session(session):
                return False
        if cancel_capture:
            self._capture.cancel()
        if message:
            self._sink.error(message)
        self._schedule_hide()
        return True

    def _end_session(self, session: Optional[Session]) -> bool:
        with self._lock:
            if session is None or self._session is not session:
                return False
            self._watchdog.stop()
            session.finishing = False
            self._session = None
            self._transition(SessionState.IDLE)
            return True

    def _is_current(self, session: Optional[Session]) -> bool:
        with self._lock:
            return session is not None and self._session is session

    def _check_permission(self) -> bool:
        if self._permission_granted:
            return True
        if self._permission is not None and not self._permission.request_microphone_access():
            logger.error(ERROR_MESSAGES[PERMISSION_DENIED])
            return False
        self._permission_granted = True
        return True

    def _schedule_hide(self) -> None:
        with self._lock:
            self._cancel_hide_timer()
            timer = threading.Timer(self._hide_delay_s, self._sink.hide)
            timer.daemon = True
            self._hide_timer = timer
            timer.start()

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug(f"State {from_state.value} -> {to_state.value}")
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
