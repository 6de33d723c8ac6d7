"""
JSON file identity store.

Keeps every person in a single ``memories.json`` document::

    {"people": {"person_james": {...}}, "version": "1.0.0", "last_modified": "..."}

When the filesystem turns out not to be writable the store degrades to
read-only mode: reads keep working, writes are skipped with a warning.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from mnemo.identity.models import Person
from mnemo.identity.store import (
    IdentityStore,
    ReadOnlyStoreError,
    build_export_document,
    parse_export_document,
    resolve_person,
    sort_people,
)

logger = structlog.get_logger(__name__)

STORAGE_FILENAME = "memories.json"


class FileIdentityStore(IdentityStore):
    """Identity store backed by a JSON file in a data directory."""

    def __init__(
        self,
        data_dir: Union[str, Path] = "./data",
        read_only: bool = False,
    ):
        self.data_dir = Path(data_dir)
        self.file_path = self.data_dir / STORAGE_FILENAME
        self._read_only = read_only
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def location(self) -> str:
        return str(self.file_path)

    @property
    def is_read_only(self) -> bool:
        return self._read_only

    async def initialize(self) -> None:
        """Create the data directory and an empty document if needed."""
        if self._initialized:
            return
        async with self._lock:
            await asyncio.to_thread(self._prepare_storage)
            self._initialized = True

        logger.info(
            "File identity store initialized",
            path=str(self.file_path),
            read_only=self._read_only,
        )

    def _prepare_storage(self) -> None:
        if self._read_only:
            return
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            if not self.file_path.exists():
                self._write_document(build_export_document([]))
        except OSError as e:
            logger.warning(
                "Storage not writable, switching to read-only mode",
                path=str(self.file_path),
                error=str(e),
            )
            self._read_only = True

    def _read_document(self) -> dict[str, Any]:
        if not self.file_path.exists():
            return build_export_document([])

        try:
            with open(self.file_path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read storage", path=str(self.file_path), error=str(e))
            return build_export_document([])

        if not isinstance(document.get("people"), dict):
            document["people"] = {}
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        tmp_path = self.file_path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        tmp_path.replace(self.file_path)

    def _load_people(self) -> list[Person]:
        people = []
        for key, record in self._read_document()["people"].items():
            try:
                people.append(Person.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable person record", key=key, error=str(e))
        return people

    def _save_people(self, people: list[Person]) -> bool:
        if self._read_only:
            logger.warning("Cannot write storage (read-only mode)", path=str(self.file_path))
            return False
        try:
            self._write_document(build_export_document(people))
            return True
        except OSError as e:
            logger.error("Failed to write storage", path=str(self.file_path), error=str(e))
            logger.warning("Switching to read-only mode", path=str(self.file_path))
            self._read_only = True
            return False

    async def _run(self, func, *args):
        if not self._initialized:
            await self.initialize()
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    async def get_person(self, key: str) -> Optional[Person]:
        people = await self._run(self._load_people)
        return resolve_person(people, key)

    async def find_person_by_name(self, name: str) -> Optional[Person]:
        people = await self._run(self._load_people)
        key = Person(name=name).key
        for person in people:
            if person.key == key:
                return person
        return None

    def _store_sync(self, person: Person) -> None:
        people = {p.key: p for p in self._load_people()}
        existing = people.get(person.key)
        if existing and existing.speaker_id != person.speaker_id:
            logger.info(
                "Speaker remapped",
                name=person.name,
                old_speaker=existing.speaker_id,
                new_speaker=person.speaker_id,
            )
        people[person.key] = person
        if self._save_people(list(people.values())):
            logger.info("Stored person", name=person.name, speaker=person.speaker_id)

    async def store_person(self, person: Person) -> None:
        if self._read_only:
            logger.warning("Cannot store person (read-only mode)", name=person.name)
            return
        await self._run(self._store_sync, person)

    async def get_all_people(self) -> list[Person]:
        return sort_people(await self._run(self._load_people))

    def _delete_sync(self, name: str) -> bool:
        key = Person(name=name).key
        people = self._load_people()
        remaining = [p for p in people if p.key != key]
        if len(remaining) == len(people):
            return False
        return self._save_people(remaining)

    async def delete_person(self, name: str) -> bool:
        if self._read_only:
            logger.warning("Cannot delete person (read-only mode)", name=name)
            return False
        deleted = await self._run(self._delete_sync, name)
        if deleted:
            logger.info("Deleted person", name=name)
        return deleted

    async def clear_all(self) -> None:
        if self._read_only:
            logger.warning("Cannot clear storage (read-only mode)")
            return
        await self._run(self._save_people, [])
        logger.info("All people cleared", path=str(self.file_path))

    async def import_data(self, json_text: str) -> int:
        if self._read_only:
            raise ReadOnlyStoreError("Cannot import data in read-only mode")

        people = parse_export_document(json_text)

        def merge() -> None:
            merged = {p.key: p for p in self._load_people()}
            merged.update({p.key: p for p in people})
            if not self._save_people(list(merged.values())):
                raise ReadOnlyStoreError("Storage became read-only during import")

        await self._run(merge)
        logger.info("Imported people", count=len(people), store=self.location)
        return len(people)
