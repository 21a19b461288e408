"""Daily JSON-lines history of delivered transcripts."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from models import RecordingLogEntry

logger = logging.getLogger(__name__)

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_date_key(when: datetime) -> str:
    return when.strftime("%Y-%m-%d")


def history_label(entry: RecordingLogEntry, width: int = 48) -> str:
    """Menu caption for an entry: local HH:MM plus the transcript cut to *width*."""
    try:
        clock = datetime.fromisoformat(entry.timestamp).astimezone().strftime("%H:%M")
    except ValueError:
        clock = "--:--"
    text = " ".join(entry.transcript.split())
    if len(text) > width:
        text = text[: width - 1].rstrip() + "\u2026"
    return f"{clock}  {text}"


class JsonlRecordingLog:
    """One ``YYYY-MM-DD.jsonl`` file per local day."""

    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory or Path.home() / ".hushtype" / "recording-logs"

    def append(self, transcript: str, when: datetime | None = None) -> RecordingLogEntry | None:
        text = transcript.strip()
        if not text:
            return None

        when = when or datetime.now()
        date_key = to_date_key(when)
        entry = RecordingLogEntry(
            timestamp=when.astimezone(timezone.utc).isoformat(),
            date=date_key,
            transcript=text,
        )
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(self._path_for(date_key), "a", encoding="utf-8") as fh:
                fh.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to append recording log: {e}")
            return None
        return entry

    def read_by_date(self, date_key: str) -> list[RecordingLogEntry]:
        path = self._path_for(date_key)
        if not path.exists():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error(f"Failed to read recording log: {e}")
            return []

        entries: list[RecordingLogEntry] = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(parsed, dict):
                continue
            fields = (parsed.get("timestamp"), parsed.get("date"), parsed.get("transcript"))
            if all(isinstance(value, str) for value in fields):
                entries.append(RecordingLogEntry(*fields))
        return entries

    def read_today(self) -> list[RecordingLogEntry]:
        return self.read_by_date(to_date_key(datetime.now()))

    def list_dates(self) -> list[str]:
        """Dates that have a log file, newest first."""
        if not self._directory.exists():
            return []
        try:
            stems = [p.stem for p in self._directory.iterdir() if p.is_file()]
        except OSError as e:
            logger.error(f"Failed to list recording log dates: {e}")
            return []
        return sorted((s for s in stems if _DATE_KEY_RE.match(s)), reverse=True)

    def _path_for(self, date_key: str) -> Path:
        return self._directory / f"{date_key}.jsonl"
