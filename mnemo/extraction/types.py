"""
Result types produced by the name-extraction model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SUMMARY_ERROR_TEXT = "Error generating summary"


class Confidence(str, Enum):
    """How sure the model is that a name came from a self-introduction."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]

    def at_least(self, other: "Confidence") -> bool:
        return self.rank >= other.rank


@dataclass(frozen=True)
class ExtractedName:
    """A candidate name pulled from a transcript."""
    name: str
    speaker: str = "unknown"
    confidence: Confidence = Confidence.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "speaker": self.speaker,
            "confidence": self.confidence.value,
        }


@dataclass
class ConversationSummary:
    """Topics, key points and a short past-tense summary of a session."""
    main_topics: list[str] = field(default_factory=list)
    key_points: list[str] = field(default_factory=list)
    summary: str = ""
    failed: bool = False

    @classmethod
    def empty(cls) -> "ConversationSummary":
        return cls()

    @classmethod
    def failure(cls) -> "ConversationSummary":
        return cls(summary=SUMMARY_ERROR_TEXT, failed=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "main_topics": list(self.main_topics),
            "key_points": list(self.key_points),
            "summary": self.summary,
        }
