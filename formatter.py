"""Deterministic cleanup of raw transcripts into sentences, lists and paragraphs."""

from __future__ import annotations

import re
from dataclasses import dataclass

from models import FormattingMode

ORDINAL_WORDS = (
    "first",
    "second",
    "third",
    "fourth",
    "fifth",
    "sixth",
    "seventh",
    "eighth",
    "ninth",
    "tenth",
)

PARAGRAPH_MARKERS = (
    "however",
    "meanwhile",
    "on the other hand",
    "in conclusion",
    "in summary",
    "next",
    "finally",
    "additionally",
    "moreover",
    "for example",
)

SENTENCE_CONNECTORS = frozenset(
    {
        "however",
        "meanwhile",
        "next",
        "finally",
        "also",
        "additionally",
        "moreover",
        "instead",
        "then",
        "but",
        "so",
        "therefore",
    }
)

_ORDINAL_RE = re.compile(r"\b(" + "|".join(ORDINAL_WORDS) + r")\b[\s,:-]*", re.IGNORECASE)
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
_TERMINAL_RE = re.compile(r"[.!?]")


@dataclass(frozen=True)
class SegmentationLimits:
    """Tuning for splitting long unpunctuated transcripts on connector words."""

    min_words: int = 14
    min_chunk_words: int = 7
    max_chunk_words: int = 20


DEFAULT_LIMITS = SegmentationLimits()


def format_transcript(
    raw: str,
    mode: FormattingMode | str,
    limits: SegmentationLimits = DEFAULT_LIMITS,
) -> str:
    """Restructure ``raw`` according to ``mode``.

    ``off`` only trims. ``basic`` and ``structured`` normalize spacing, turn
    spoken ordinal sequences ("first ... second ...") into a numbered list,
    and otherwise split into styled sentences grouped into paragraphs.
    """
    trimmed = raw.strip()
    if not trimmed:
        return ""
    mode = FormattingMode(mode)
    if mode == FormattingMode.OFF:
        return trimmed

    normalized = normalize_spacing(trimmed)
    listed = infer_ordinal_list(normalized)
    if listed:
        return listed

    styled = " ".join(style_sentence(s) for s in split_sentences(normalized, limits))
    sentences = [style_sentence(s) for s in split_sentences(styled, limits)]
    if mode == FormattingMode.STRUCTURED:
        return _structured_paragraphs(sentences)
    return _basic_paragraphs(sentences)


def normalize_spacing(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"\s+([.,!?;:])", r"\1", text)
    text = re.sub(r"([.!?])([A-Za-z])", r"\1 \2", text)
    return text.strip()


def split_sentences(text: str, limits: SegmentationLimits = DEFAULT_LIMITS) -> list[str]:
    chunks = [c.strip() for c in _SENTENCE_RE.findall(text)]
    chunks = [c for c in chunks if c]
    if len(chunks) > 1:
        return chunks

    if not _TERMINAL_RE.search(text):
        if "," in text:
            parts = [p.strip() for p in text.split(",")]
            parts = [p for p in parts if p]
            if len(parts) > 1:
                return parts
        segments = split_on_connectors(text, limits)
        if len(segments) > 1:
            return segments

    return [text.strip()]


def split_on_connectors(text: str, limits: SegmentationLimits = DEFAULT_LIMITS) -> list[str]:
    """Break a run-on transcript before connector words, with a hard cap per chunk."""
    words = text.split()
    if len(words) < limits.min_words:
        return [text.strip()]

    segments: list[str] = []
    current: list[str] = []
    for word in words:
        cleaned = re.sub(r"[^a-z']", "", word.lower())
        if len(current) >= limits.min_chunk_words and cleaned in SENTENCE_CONNECTORS:
            segments.append(" ".join(current))
            current = [word]
            continue

        current.append(word)
        if len(current) >= limits.max_chunk_words:
            segments.append(" ".join(current))
            current = []

    if current:
        segments.append(" ".join(current))
    return [s for s in segments if s]


def style_sentence(sentence: str, force_terminal: bool = False) -> str:
    """Capitalize, fix a lone "i", and add a period to sentences of four words or more."""
    text = re.sub(r"\s+", " ", sentence.strip())
    if not text:
        return ""

    text = re.sub(r"\bi\b", "I", _capitalize_first_letter(text))
    if re.search(r"[.!?]$", text):
        return text
    if not force_terminal and len(text.split()) < 4:
        return text
    return f"{text}."


def infer_ordinal_list(text: str) -> str | None:
    matches = list(_ORDINAL_RE.finditer(text))
    if len(matches) < 2:
        return None

    intro = text[: matches[0].start()].strip()
    items: list[str] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        item = re.sub(r"^[,;:\-\s]+", "", text[match.end():end].strip())
        if item:
            items.append(style_sentence(item, force_terminal=True))

    if len(items) < 2:
        return None

    numbered = "\n".join(f"{n}. {item}" for n, item in enumerate(items, start=1))
    if not intro:
        return numbered
    return f"{style_sentence(intro)}\n\n{numbered}"


def _capitalize_first_letter(text: str) -> str:
    match = re.search(r"[A-Za-z]", text)
    if not match:
        return text
    i = match.start()
    return text[:i] + text[i].upper() + text[i + 1:]


def _basic_paragraphs(sentences: list[str]) -> str:
    if len(sentences) < 4:
        return " ".join(sentences)
    split_at = (len(sentences) + 1) // 2
    return " ".join(sentences[:split_at]) + "\n\n" + " ".join(sentences[split_at:])


def _starts_with_marker(sentence: str) -> bool:
    lowered = sentence.lower()
    return any(lowered.startswith(marker + " ") or lowered == marker for marker in PARAGRAPH_MARKERS)


def _structured_paragraphs(sentences: list[str]) -> str:
    if len(sentences) < 3:
        return " ".join(sentences)

    paragraphs: list[str] = []
    current: list[str] = []
    for sentence in sentences:
        if _starts_with_marker(sentence) and current:
            paragraphs.append(" ".join(current))
            current = []
        current.append(sentence)
        if len(current) >= 2:
            paragraphs.append(" ".join(current))
            current = []

    if current:
        paragraphs.append(" ".join(current))
    return "\n\n".join(paragraphs)
