"""
SQLite identity store.

People and their conversation history live in two tables; a person's
history is replaced as a whole inside the same transaction as the person
upsert, so readers never see a half-written record.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import aiosqlite
import structlog

from mnemo.identity.models import ConversationEntry, Person, parse_datetime, person_key
from mnemo.identity.store import IdentityStore, StoreStats

logger = structlog.get_logger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS people (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        name_key TEXT NOT NULL UNIQUE,
        speaker_id TEXT,
        voice_reference TEXT,
        last_met TEXT,
        last_conversation TEXT,
        last_topics TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS conversation_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        person_id INTEGER NOT NULL REFERENCES people(id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        transcript TEXT NOT NULL,
        topics TEXT NOT NULL DEFAULT '[]',
        key_points TEXT NOT NULL DEFAULT '[]',
        duration INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_people_speaker_id ON people(speaker_id)",
    "CREATE INDEX IF NOT EXISTS idx_entries_person ON conversation_entries(person_id, date)",
]


class SQLiteIdentityStore(IdentityStore):
    """Identity store backed by a SQLite database via aiosqlite."""

    def __init__(self, path: Union[str, Path] = "./data/mnemo.db"):
        self.path = str(path)
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def location(self) -> str:
        return self.path

    @staticmethod
    def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
        """Convert row to dictionary."""
        return {
            col[0]: row[idx]
            for idx, col in enumerate(cursor.description)
        }

    async def initialize(self) -> None:
        """Open the database and create the schema."""
        if self._conn is not None:
            return

        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = self._dict_factory
        await self._conn.execute("PRAGMA foreign_keys = ON")
        for statement in SCHEMA:
            await self._conn.execute(statement)
        await self._conn.commit()

        logger.info("SQLite identity store initialized", path=self.path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.initialize()
        return self._conn

    async def _fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        conn = await self._connection()
        async with conn.execute(query, params) as cursor:
            return await cursor.fetchall()

    async def _load_person(self, row: dict[str, Any]) -> Person:
        entries = await self._fetch_all(
            "SELECT * FROM conversation_entries WHERE person_id = ? ORDER BY date, id",
            (row["id"],),
        )
        return Person(
            name=row["name"],
            speaker_id=row["speaker_id"],
            voice_reference=row["voice_reference"],
            conversation_history=[
                ConversationEntry(
                    date=parse_datetime(e["date"]),
                    transcript=e["transcript"],
                    topics=json.loads(e["topics"]),
                    key_points=json.loads(e["key_points"]),
                    duration=e["duration"],
                )
                for e in entries
            ],
            last_met=parse_datetime(row["last_met"]),
            last_conversation=row["last_conversation"],
            last_topics=json.loads(row["last_topics"]),
        )

    async def get_person(self, key: str) -> Optional[Person]:
        async with self._lock:
            rows = await self._fetch_all(
                "SELECT * FROM people WHERE speaker_id = ? "
                "ORDER BY last_met IS NULL, last_met DESC LIMIT 1",
                (key,),
            )
            if not rows:
                rows = await self._fetch_all(
                    "SELECT * FROM people WHERE name_key = ? LIMIT 1", (person_key(key),)
                )
            return await self._load_person(rows[0]) if rows else None

    async def find_person_by_name(self, name: str) -> Optional[Person]:
        async with self._lock:
            rows = await self._fetch_all(
                "SELECT * FROM people WHERE name_key = ? LIMIT 1", (person_key(name),)
            )
            return await self._load_person(rows[0]) if rows else None

    async def store_person(self, person: Person) -> None:
        async with self._lock:
            conn = await self._connection()
            now = datetime.now().isoformat()

            existing = await self._fetch_all(
                "SELECT id, speaker_id FROM people WHERE name_key = ?", (person.key,)
            )
            if existing and existing[0]["speaker_id"] != person.speaker_id:
                logger.info(
                    "Speaker remapped",
                    name=person.name,
                    old_speaker=existing[0]["speaker_id"],
                    new_speaker=person.speaker_id,
                )

            try:
                await conn.execute(
                    """
                    INSERT INTO people (
                        name, name_key, speaker_id, voice_reference, last_met,
                        last_conversation, last_topics, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(name_key) DO UPDATE SET
                        name = excluded.name,
                        speaker_id = excluded.speaker_id,
                        voice_reference = excluded.voice_reference,
                        last_met = excluded.last_met,
                        last_conversation = excluded.last_conversation,
                        last_topics = excluded.last_topics,
                        updated_at = excluded.updated_at
                    """,
                    (
                        person.name,
                        person.key,
                        person.speaker_id,
                        person.voice_reference,
                        person.last_met.isoformat() if person.last_met else None,
                        person.last_conversation,
                        json.dumps(person.last_topics),
                        now,
                        now,
                    ),
                )
                rows = await self._fetch_all(
                    "SELECT id FROM people WHERE name_key = ?", (person.key,)
                )
                person_id = rows[0]["id"]

                await conn.execute(
                    "DELETE FROM conversation_entries WHERE person_id = ?", (person_id,)
                )
                await conn.executemany(
                    """
                    INSERT INTO conversation_entries (
                        person_id, date, transcript, topics, key_points, duration
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            person_id,
                            entry.date.isoformat(),
                            entry.transcript,
                            json.dumps(entry.topics),
                            json.dumps(entry.key_points),
                            entry.duration,
                        )
                        for entry in person.conversation_history
                    ],
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

            logger.info("Stored person", name=person.name, speaker=person.speaker_id)

    async def get_all_people(self) -> list[Person]:
        async with self._lock:
            rows = await self._fetch_all(
                "SELECT * FROM people ORDER BY last_met IS NULL, last_met DESC, name"
            )
            return [await self._load_person(row) for row in rows]

    async def delete_person(self, name: str) -> bool:
        async with self._lock:
            conn = await self._connection()
            cursor = await conn.execute(
                "DELETE FROM people WHERE name_key = ?", (person_key(name),)
            )
            await conn.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted person", name=name)
        return deleted

    async def clear_all(self) -> None:
        async with self._lock:
            conn = await self._connection()
            await conn.execute("DELETE FROM conversation_entries")
            await conn.execute("DELETE FROM people")
            await conn.commit()
        logger.info("All people cleared", path=self.path)

    async def get_stats(self) -> StoreStats:
        async with self._lock:
            rows = await self._fetch_all(
                """
                SELECT
                    (SELECT COUNT(*) FROM people) AS total_people,
                    (SELECT COUNT(*) FROM conversation_entries) AS total_conversations,
                    (SELECT COUNT(*) FROM people
                     WHERE voice_reference IS NOT NULL AND voice_reference != '')
                        AS people_with_voices
                """
            )
        stats = rows[0]
        total_people = stats["total_people"]
        return StoreStats(
            total_people=total_people,
            total_conversations=stats["total_conversations"],
            people_with_voices=stats["people_with_voices"],
            average_conversations_per_person=(
                round(stats["total_conversations"] / total_people, 2)
                if total_people
                else 0.0
            ),
            location=self.location,
        )
