"""
Validation of raw model output.

Models are asked for bare JSON but frequently wrap it in markdown fences or
return partially-formed records. Everything that leaves this module is a
well-typed result; anything that cannot be salvaged raises ExtractionError.
"""

from __future__ import annotations

import json
import re
from typing import Any

from mnemo.extraction.types import Confidence, ConversationSummary, ExtractedName

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


class ExtractionError(Exception):
    """Raised when model output cannot be parsed into a result."""
    pass


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the trimmed text."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return text


def _load_json(text: str) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model returned invalid JSON: {e}") from e


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _confidence(value: Any) -> Confidence:
    try:
        return Confidence(str(value).strip().lower())
    except ValueError:
        return Confidence.LOW


def parse_extracted_names(text: str) -> list[ExtractedName]:
    """Parse a JSON array of ``{name, speaker, confidence}`` objects."""
    data = _load_json(text)
    if not isinstance(data, list):
        return []

    names: list[ExtractedName] = []
    seen: set[str] = set()

    for item in data:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        name = name.strip()
        if name.lower() in seen:
            continue
        seen.add(name.lower())

        speaker = item.get("speaker")
        names.append(
            ExtractedName(
                name=name,
                speaker=speaker.strip() if isinstance(speaker, str) and speaker.strip() else "unknown",
                confidence=_confidence(item.get("confidence")),
            )
        )

    return names


def parse_summary(text: str) -> ConversationSummary:
    """Parse a JSON summary object (camelCase or snake_case keys)."""
    data = _load_json(text)
    if not isinstance(data, dict):
        raise ExtractionError("Summary must be a JSON object")

    summary = data.get("summary")
    return ConversationSummary(
        main_topics=_string_list(data.get("mainTopics", data.get("main_topics"))),
        key_points=_string_list(data.get("keyPoints", data.get("key_points"))),
        summary=summary.strip() if isinstance(summary, str) else "",
    )
