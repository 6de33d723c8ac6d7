"""
Mnemo Identity Store

Persistent person records shared by every conversation session:
- IdentityStore contract used by the conversation core
- In-memory store for development and testing
- JSON export/import shared by all backends
"""

from __future__ import annotations

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Iterable, Optional

import structlog

from mnemo.identity.models import Person

logger = structlog.get_logger(__name__)

EXPORT_VERSION = "1.0.0"


class ReadOnlyStoreError(Exception):
    """Raised when a write is required but the store is read-only."""
    pass


@dataclass
class StoreStats:
    """Summary statistics for an identity store."""
    total_people: int = 0
    total_conversations: int = 0
    people_with_voices: int = 0
    average_conversations_per_person: float = 0.0
    location: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_people(cls, people: Iterable[Person], location: str = "") -> "StoreStats":
        people = list(people)
        total_conversations = sum(len(p.conversation_history) for p in people)
        return cls(
            total_people=len(people),
            total_conversations=total_conversations,
            people_with_voices=sum(1 for p in people if p.voice_reference),
            average_conversations_per_person=(
                round(total_conversations / len(people), 2) if people else 0.0
            ),
            location=location,
        )


def _last_met_sort_key(person: Person) -> float:
    return person.last_met.timestamp() if person.last_met else float("-inf")


def resolve_person(people: Iterable[Person], key: str) -> Optional[Person]:
    """
    Resolve ``key`` against a collection of people.

    A speaker label match wins over a name match. When several people carry
    the same label the most recently met one is returned.
    """
    people = list(people)
    by_speaker = [p for p in people if p.speaker_id is not None and p.speaker_id == key]
    if by_speaker:
        return max(by_speaker, key=_last_met_sort_key)
    return find_by_name(people, key)


def find_by_name(people: Iterable[Person], name: str) -> Optional[Person]:
    for person in people:
        if person.matches_name(name):
            return person
    return None


def sort_people(people: Iterable[Person]) -> list[Person]:
    """Most recently met first."""
    return sorted(people, key=_last_met_sort_key, reverse=True)


def build_export_document(people: Iterable[Person]) -> dict[str, Any]:
    return {
        "people": {p.key: p.to_dict() for p in people},
        "version": EXPORT_VERSION,
        "last_modified": datetime.now().isoformat(),
    }


def parse_export_document(json_text: str) -> list[Person]:
    """Parse an export document into people. Raises ValueError when malformed."""
    try:
        document = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid import document: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("people"), dict):
        raise ValueError("Invalid import document: missing 'people' object")

    people = []
    for key, record in document["people"].items():
        if not isinstance(record, dict) or not record.get("name"):
            raise ValueError(f"Invalid person record: {key}")
        people.append(Person.from_dict(record))
    return people


# =============================================================================
# Abstract Identity Store
# =============================================================================

class IdentityStore(ABC):
    """Abstract base class for identity stores."""

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self) -> None:
        """Prepare the backing storage."""
        pass

    async def close(self) -> None:
        """Release the backing storage."""
        pass

    @property
    def location(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def get_person(self, key: str) -> Optional[Person]:
        """Get a person by speaker label or name. None means not found."""
        pass

    @abstractmethod
    async def find_person_by_name(self, name: str) -> Optional[Person]:
        """Get a person by case-insensitive name."""
        pass

    @abstractmethod
    async def store_person(self, person: Person) -> None:
        """Insert or replace the person with the same name."""
        pass

    @abstractmethod
    async def get_all_people(self) -> list[Person]:
        """All people, most recently met first."""
        pass

    @abstractmethod
    async def delete_person(self, name: str) -> bool:
        """Delete a person by name."""
        pass

    @abstractmethod
    async def clear_all(self) -> None:
        """Delete every person."""
        pass

    async def get_stats(self) -> StoreStats:
        return StoreStats.from_people(await self.get_all_people(), self.location)

    async def export_data(self) -> str:
        """Export all people as a JSON document."""
        people = await self.get_all_people()
        return json.dumps(build_export_document(people), indent=2)

    async def import_data(self, json_text: str) -> int:
        """Import people from a JSON export document. Returns the count imported."""
        people = parse_export_document(json_text)
        for person in people:
            await self.store_person(person)
        logger.info("Imported people", count=len(people), store=self.location)
        return len(people)


# =============================================================================
# Memory Identity Store
# =============================================================================

class MemoryIdentityStore(IdentityStore):
    """
    In-memory identity store for development and testing.

    Records are deep-copied on the way in and out.
    """

    def __init__(self):
        self._people: dict[str, Person] = {}
        self._lock = asyncio.Lock()

    @property
    def location(self) -> str:
        return "memory"

    async def get_person(self, key: str) -> Optional[Person]:
        async with self._lock:
            person = resolve_person(self._people.values(), key)
            return copy.deepcopy(person) if person else None

    async def find_person_by_name(self, name: str) -> Optional[Person]:
        async with self._lock:
            person = self._people.get(Person(name=name).key)
            return copy.deepcopy(person) if person else None

    async def store_person(self, person: Person) -> None:
        async with self._lock:
            existing = self._people.get(person.key)
            if existing and existing.speaker_id != person.speaker_id:
                logger.info(
                    "Speaker remapped",
                    name=person.name,
                    old_speaker=existing.speaker_id,
                    new_speaker=person.speaker_id,
                )
            self._people[person.key] = copy.deepcopy(person)

    async def get_all_people(self) -> list[Person]:
        async with self._lock:
            return [copy.deepcopy(p) for p in sort_people(self._people.values())]

    async def delete_person(self, name: str) -> bool:
        async with self._lock:
            key = Person(name=name).key
            if key in self._people:
                del self._people[key]
                return True
            return False

    async def clear_all(self) -> None:
        async with self._lock:
            self._people.clear()
