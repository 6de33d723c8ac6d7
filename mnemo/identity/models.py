"""
Identity records: people and the conversations had with them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional, Union


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive local datetime.

    Offset-aware values (including a trailing ``Z``) are converted to local
    time, so they compare with the naive times recorded by sessions.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def _pick(d: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in d and d[key] is not None:
            return d[key]
    return default


def person_key(name: str) -> str:
    """Storage key for a person name: ``person_<lowercase_name>``."""
    return "person_" + re.sub(r"\s+", "_", name.strip().lower())


@dataclass(frozen=True)
class ConversationEntry:
    """One summarized conversation with a person."""
    date: datetime
    transcript: str
    topics: list[str] = field(default_factory=list)
    key_points: list[str] = field(default_factory=list)
    duration: Optional[int] = None  # seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "transcript": self.transcript,
            "topics": list(self.topics),
            "key_points": list(self.key_points),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ConversationEntry":
        return cls(
            date=parse_datetime(d.get("date")) or datetime.now(),
            transcript=d.get("transcript", ""),
            topics=list(d.get("topics") or []),
            key_points=list(_pick(d, "key_points", "keyPoints", default=[])),
            duration=d.get("duration"),
        )


@dataclass
class Person:
    """
    A durable identity record.

    ``name`` is the identity key (case-insensitive). ``speaker_id`` is only the
    label the person carried in their most recent session and is remapped
    whenever they are met again. ``last_conversation`` and ``last_topics``
    mirror the newest history entry for readers that predate the history list.
    """
    name: str
    speaker_id: Optional[str] = None
    voice_reference: Optional[str] = None  # base64 audio clip
    conversation_history: list[ConversationEntry] = field(default_factory=list)
    last_met: Optional[datetime] = None
    last_conversation: Optional[str] = None
    last_topics: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return person_key(self.name)

    @property
    def latest_conversation(self) -> Optional[ConversationEntry]:
        if not self.conversation_history:
            return None
        return max(self.conversation_history, key=lambda e: e.date)

    def matches_name(self, name: str) -> bool:
        return self.key == person_key(name)

    def record_conversation(
        self,
        entry: ConversationEntry,
        speaker_id: Optional[str] = None,
        met_at: Optional[datetime] = None,
    ) -> "Person":
        """Return a copy with ``entry`` appended and the mirror fields refreshed."""
        return replace(
            self,
            speaker_id=speaker_id or self.speaker_id,
            conversation_history=[*self.conversation_history, entry],
            last_met=met_at or entry.date,
            last_conversation=entry.transcript,
            last_topics=list(entry.topics),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "speaker_id": self.speaker_id,
            "voice_reference": self.voice_reference,
            "conversation_history": [e.to_dict() for e in self.conversation_history],
            "last_met": self.last_met.isoformat() if self.last_met else None,
            "last_conversation": self.last_conversation,
            "last_topics": list(self.last_topics),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Person":
        """Build a person, accepting legacy camelCase records."""
        last_met = parse_datetime(_pick(d, "last_met", "lastMet"))
        last_conversation = _pick(d, "last_conversation", "lastConversation")
        last_topics = list(_pick(d, "last_topics", "lastTopics", default=[]))
        raw_history = _pick(d, "conversation_history", "conversationHistory")

        if raw_history is not None:
            history = [ConversationEntry.from_dict(e) for e in raw_history]
        elif last_conversation or last_topics:
            # Records written before history existed carry only the mirror fields
            history = [
                ConversationEntry(
                    date=last_met or datetime.now(),
                    transcript=last_conversation or "",
                    topics=last_topics,
                )
            ]
        else:
            history = []

        return cls(
            name=d["name"],
            speaker_id=_pick(d, "speaker_id", "speakerId"),
            voice_reference=_pick(d, "voice_reference", "voiceReference"),
            conversation_history=history,
            last_met=last_met,
            last_conversation=last_conversation,
            last_topics=last_topics,
        )
