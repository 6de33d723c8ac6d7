"""
Mnemo Conversation Types
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from mnemo.identity.models import Person


@dataclass(frozen=True)
class Utterance:
    """A final utterance, already prefixed with its speaker label."""
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


class ProcessAction(str, Enum):
    """Outcome of processing one transcription event."""
    SPEAKER_RECOGNIZED = "speaker_recognized"
    TRANSCRIPTION_PROCESSED = "transcription_processed"


@dataclass
class ProcessResult:
    """Result of ConversationManager.process_transcription."""
    action: ProcessAction
    data: Optional[dict[str, Any]] = None

    @classmethod
    def processed(cls) -> "ProcessResult":
        return cls(action=ProcessAction.TRANSCRIPTION_PROCESSED)

    @classmethod
    def recognized(cls, speaker: str, person: Person) -> "ProcessResult":
        return cls(
            action=ProcessAction.SPEAKER_RECOGNIZED,
            data={"speaker": speaker, "person": person},
        )

    @property
    def speaker(self) -> Optional[str]:
        return self.data.get("speaker") if self.data else None

    @property
    def person(self) -> Optional[Person]:
        return self.data.get("person") if self.data else None

    def to_dict(self) -> dict[str, Any]:
        data = None
        if self.data:
            data = {"speaker": self.speaker, "person": self.person.to_dict()}
        return {"action": self.action.value, "data": data}


@dataclass
class SessionEndResult:
    """What end_conversation saved."""
    people_updated: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    summary: str = ""
    saved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "people_updated": list(self.people_updated),
            "topics": list(self.topics),
            "summary": self.summary,
            "saved": self.saved,
        }
