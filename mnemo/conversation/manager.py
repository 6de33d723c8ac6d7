"""
Mnemo Conversation Manager

Per-session state machine over the live transcript stream:
- Rolling buffer of recent final utterances
- Periodic name extraction and speaker binding
- Recognition of returning people by speaker label
- Session-end summarization into each person's history
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from mnemo.conversation.context import format_person_context
from mnemo.conversation.types import ProcessResult, SessionEndResult, Utterance
from mnemo.core.config import ConversationConfig
from mnemo.extraction.types import SUMMARY_ERROR_TEXT, Confidence, ConversationSummary
from mnemo.identity.models import ConversationEntry, Person
from mnemo.identity.store import IdentityStore

logger = structlog.get_logger(__name__)

UNKNOWN_SPEAKER_CONTEXT = "Unknown speaker"
UNKNOWN_DISPLAY_NAME = "Unknown Speaker"


class ConversationManager:
    """
    Tracks one conversation session.

    Create one manager per connected session; the identity store and the
    name extractor may be shared between managers. Speaker labels are only
    meaningful inside a session, so every binding is dropped when the
    session ends.

    Identity bindings are first-write-wins: once a label is bound to a name
    during a session, later extraction cycles cannot rebind it.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        name_extractor: Any,
        config: Optional[ConversationConfig] = None,
    ):
        self.identity_store = identity_store
        self.name_extractor = name_extractor
        self.config = config or ConversationConfig()

        self._buffer: deque[Utterance] = deque(maxlen=self.config.buffer_max_size)
        self._utterance_count = 0
        self._active_speakers: dict[str, None] = {}  # insertion-ordered set
        self._speaker_names: dict[str, str] = {}
        self._session_started_at: Optional[datetime] = None

        self._on_person_identified_callbacks: list[Callable] = []
        self._on_speaker_recognized_callbacks: list[Callable] = []

        self._stats = {
            "utterances_processed": 0,
            "extraction_cycles": 0,
            "people_created": 0,
            "people_recognized": 0,
            "sessions_ended": 0,
            "errors": 0,
        }

    # ==================== Session state ====================

    @property
    def conversation_buffer(self) -> list[Utterance]:
        return list(self._buffer)

    @property
    def active_speakers(self) -> list[str]:
        return list(self._active_speakers)

    @property
    def speaker_names(self) -> dict[str, str]:
        return dict(self._speaker_names)

    @property
    def utterance_count(self) -> int:
        return self._utterance_count

    @property
    def transcript(self) -> str:
        return "\n".join(u.text for u in self._buffer)

    def _reset(self) -> None:
        self._buffer.clear()
        self._active_speakers.clear()
        self._speaker_names.clear()
        self._utterance_count = 0
        self._session_started_at = None

    # ==================== Transcription ====================

    async def process_transcription(
        self,
        speaker: str,
        text: str,
        is_final: bool,
    ) -> ProcessResult:
        """
        Process one transcription event.

        Interim (non-final) events are ignored. Final events are buffered,
        may trigger an extraction cycle, and may recognize the speaker from
        the identity store.

        Args:
            speaker: Session-local speaker label
            text: Utterance text
            is_final: Whether the transcriber has finalized this text

        Returns:
            ``speaker_recognized`` with the person when this event bound the
            speaker through a store lookup, else ``transcription_processed``
        """
        if not is_final:
            return ProcessResult.processed()

        if self._session_started_at is None:
            self._session_started_at = datetime.now()

        self._buffer.append(Utterance(text=f"{speaker}: {text}"))
        self._utterance_count += 1
        self._stats["utterances_processed"] += 1
        self._active_speakers.setdefault(speaker, None)

        if self._utterance_count % self.config.name_check_interval == 0:
            await self._check_for_names()

        if speaker not in self._speaker_names:
            person = await self._lookup(speaker)
            if person is not None:
                self._speaker_names[speaker] = person.name
                self._stats["people_recognized"] += 1
                logger.info("Speaker recognized", speaker=speaker, name=person.name)
                await self._notify(self._on_speaker_recognized_callbacks, speaker, person)
                return ProcessResult.recognized(speaker, person)

        return ProcessResult.processed()

    async def _lookup(self, speaker: str) -> Optional[Person]:
        try:
            return await self.identity_store.get_person(speaker)
        except Exception as e:
            self._stats["errors"] += 1
            logger.error("Identity lookup failed", speaker=speaker, error=str(e))
            return None

    # ==================== Name extraction ====================

    async def _check_for_names(self) -> None:
        """Run one extraction cycle over the buffer."""
        if not self._buffer:
            return

        self._stats["extraction_cycles"] += 1

        try:
            names = await self.name_extractor.extract_names(self.transcript)
        except Exception as e:
            self._stats["errors"] += 1
            logger.error("Name extraction failed", error=str(e))
            return

        if not names:
            return

        # Transcripts carry no attribution, so names go to the newest speaker.
        last_speaker = next(reversed(self._active_speakers), None)
        if last_speaker is None:
            return

        min_confidence = Confidence(self.config.min_name_confidence)

        for extracted in names:
            if not Confidence(extracted.confidence).at_least(min_confidence):
                logger.debug(
                    "Skipping low-confidence name",
                    name=extracted.name,
                    confidence=Confidence(extracted.confidence).value,
                )
                continue

            bound_name = self._speaker_names.get(last_speaker)
            if bound_name is not None:
                if bound_name.lower() != extracted.name.strip().lower():
                    logger.info(
                        "Ignoring name for already identified speaker",
                        speaker=last_speaker,
                        bound_name=bound_name,
                        extracted_name=extracted.name,
                    )
                continue

            try:
                await self._bind_extracted_name(last_speaker, extracted.name.strip())
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(
                    "Failed to bind extracted name",
                    speaker=last_speaker,
                    name=extracted.name,
                    error=str(e),
                )

    async def _bind_extracted_name(self, speaker: str, name: str) -> None:
        existing = await self.identity_store.find_person_by_name(name)

        if existing is not None:
            self._speaker_names[speaker] = existing.name
            self._stats["people_recognized"] += 1
            logger.info("Recognized returning person", speaker=speaker, name=existing.name)
            await self._notify(self._on_speaker_recognized_callbacks, speaker, existing)
            return

        person = Person(name=name, speaker_id=speaker, last_met=datetime.now())
        await self.identity_store.store_person(person)
        self._speaker_names[speaker] = person.name
        self._stats["people_created"] += 1
        logger.info("Stored new person", speaker=speaker, name=person.name)
        await self._notify(self._on_person_identified_callbacks, speaker, person)

    # ==================== Session end ====================

    async def end_conversation(self) -> SessionEndResult:
        """
        End the session and save a summary into each identified person's history.

        Session state is always cleared, including when summarization or
        storage fails. A failed summary saves nothing.
        """
        if not self._buffer:
            return SessionEndResult()

        transcript = self.transcript
        started_at = self._session_started_at

        try:
            summary = await self._summarize(transcript)
            if summary.failed or summary.summary == SUMMARY_ERROR_TEXT:
                logger.warning("Conversation not saved, summary unavailable")
                return SessionEndResult(summary=summary.summary)

            ended_at = datetime.now()
            entry = ConversationEntry(
                date=ended_at,
                transcript=summary.summary or transcript,
                topics=list(summary.main_topics),
                key_points=list(summary.key_points),
                duration=int((ended_at - started_at).total_seconds()) if started_at else None,
            )

            people_updated = []
            for speaker_id, name in self._speaker_names.items():
                try:
                    person = await self._resolve_bound_person(speaker_id, name)
                    if person is None:
                        logger.warning("Bound person missing from store", speaker=speaker_id, name=name)
                        continue
                    await self.identity_store.store_person(
                        person.record_conversation(entry, speaker_id, ended_at)
                    )
                    people_updated.append(person.name)
                except Exception as e:
                    self._stats["errors"] += 1
                    logger.error(
                        "Failed to save conversation",
                        speaker=speaker_id,
                        name=name,
                        error=str(e),
                    )

            logger.info(
                "Conversation summary saved",
                people=people_updated,
                topics=summary.main_topics,
            )
            return SessionEndResult(
                people_updated=people_updated,
                topics=list(summary.main_topics),
                summary=entry.transcript,
                saved=bool(people_updated),
            )
        finally:
            self._stats["sessions_ended"] += 1
            self._reset()

    async def _summarize(self, transcript: str) -> ConversationSummary:
        try:
            return await self.name_extractor.summarize_conversation(transcript)
        except Exception as e:
            self._stats["errors"] += 1
            logger.error("Conversation summary failed", error=str(e))
            return ConversationSummary.failure()

    async def _resolve_bound_person(self, speaker_id: str, name: str) -> Optional[Person]:
        person = await self.identity_store.get_person(speaker_id)
        if person is not None and person.matches_name(name):
            return person
        return await self.identity_store.find_person_by_name(name)

    # ==================== Lookups ====================

    async def get_speaker_context(self, speaker: str) -> str:
        """Context block for a speaker, or ``"Unknown speaker"``."""
        name = self._speaker_names.get(speaker)

        if name is None:
            person = await self._lookup(speaker)
            if person is None:
                return UNKNOWN_SPEAKER_CONTEXT
            self._speaker_names[speaker] = person.name
            return format_person_context(person)

        person = await self._lookup(speaker)
        if person is not None and not person.matches_name(name):
            try:
                person = await self.identity_store.find_person_by_name(name)
            except Exception as e:
                self._stats["errors"] += 1
                logger.error("Identity lookup failed", name=name, error=str(e))
                person = None
        if person is None:
            return name
        return format_person_context(person)

    def get_speaker_name(self, speaker: str) -> Optional[str]:
        return self._speaker_names.get(speaker)

    def get_display_name(self, speaker: str) -> str:
        return self._speaker_names.get(speaker, UNKNOWN_DISPLAY_NAME)

    # ==================== Callbacks ====================

    def on_person_identified(self, callback: Callable) -> None:
        """Register callback(speaker, person) for newly created people."""
        self._on_person_identified_callbacks.append(callback)

    def on_speaker_recognized(self, callback: Callable) -> None:
        """Register callback(speaker, person) for recognized returning people."""
        self._on_speaker_recognized_callbacks.append(callback)

    async def _notify(self, callbacks: list[Callable], speaker: str, person: Person) -> None:
        for callback in callbacks:
            try:
                result = callback(speaker, person)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Identity callback error", speaker=speaker, error=str(e))

    def get_stats(self) -> dict[str, Any]:
        """Get session statistics."""
        return {
            **self._stats,
            "buffered_utterances": len(self._buffer),
            "active_speakers": len(self._active_speakers),
            "identified_speakers": len(self._speaker_names),
        }
