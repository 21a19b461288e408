"""Speech recognition through the whisper.cpp command-line tool.

The engine is a black box: it is handed a mono PCM16 WAV path and prints the
transcript on stdout. A non-zero exit, a timeout, a launch failure or a kill
from ``cancel()`` all surface as ``RecognitionError``.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Optional

from errors import RecognitionError

logger = logging.getLogger(__name__)


class WhisperCliRecognizer:
    def __init__(
        self,
        cli_path: str,
        model_path: str,
        language: str = "en",
        timeout_s: float = 30.0,
    ) -> None:
        self._cli_path = cli_path
        self._model_path = model_path
        self._language = language
        self._timeout_s = timeout_s
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None

    def build_command(self, wav_path: str) -> list[str]:
        return [
            self._cli_path,
            "-m",
            self._model_path,
            "--no-timestamps",
            "-l",
            self._language,
            "-f",
            wav_path,
        ]

    def transcribe(self, wav_path: str) -> str:
        command = self.build_command(wav_path)
        logger.debug(f"Running {command}")
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise RecognitionError(f"Could not launch {self._cli_path}: {exc}") from exc

        with self._lock:
            self._process = process
        try:
            stdout, stderr = process.communicate(timeout=self._timeout_s)
        except subprocess.TimeoutExpired as exc:
            process.kill()
            process.communicate()
            raise RecognitionError(f"Transcription timed out after {self._timeout_s:g}s") from exc
        finally:
            with self._lock:
                self._process = None

        if process.returncode != 0:
            if stderr:
                logger.error(f"whisper-cli stderr: {stderr.strip()}")
            raise RecognitionError(f"whisper-cli exited with code {process.returncode}")
        return stdout.strip()

    def cancel(self) -> None:
        """Kill an in-flight transcription, if any."""
        with self._lock:
            process = self._process
        if process is not None and process.poll() is None:
            logger.info("Killing in-flight transcription")
            process.kill()
