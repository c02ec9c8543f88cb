# src/pipeline/text_utils.py — v1
"""Text helpers for the outline pipeline: citations, answers, sanitizing."""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from postpilot.storage.models import Citation

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_URL = re.compile(r"https?://[^\s]+")
_SOURCE_LINE = re.compile(r"(?:Source:|Reference:|According to:?)\s*([^\n]+)", re.IGNORECASE)
_TRAILING_PUNCT = ".,;:"

NO_PREFERENCE = "No specific preference"


def sanitize_text(value: Any) -> str:
    """Stringify ``value`` and strip control characters except tab, LF, CR."""
    if value is None:
        return ""
    if isinstance(value, str):
        text = value
    elif isinstance(value, (dict, list)):
        text = json.dumps(value)
    else:
        text = str(value)
    return _CONTROL_CHARS.sub("", text)


def extract_citations(text: str) -> list[Citation]:
    """URLs and Source/Reference/According-to lines, deduplicated in order."""
    seen: set[tuple[str, str]] = set()
    citations: list[Citation] = []

    def _add(kind: Literal["url", "source"], value: str) -> None:
        if value and (kind, value) not in seen:
            seen.add((kind, value))
            citations.append(Citation(type=kind, value=value))

    for url in _URL.findall(text):
        _add("url", url.rstrip(_TRAILING_PUNCT))
    for match in _SOURCE_LINE.finditer(text):
        _add("source", match.group(1).strip())
    return citations


def format_clarification_answers(questions: list[str], answers: str) -> str:
    """Pair each question with the matching non-empty answer line."""
    answer_lines = [line for line in answers.split("\n") if line.strip()]
    blocks = []
    for i, question in enumerate(questions):
        answer = answer_lines[i] if i < len(answer_lines) else NO_PREFERENCE
        blocks.append(f"**{question}**\n{answer}")
    return "\n\n".join(blocks)
