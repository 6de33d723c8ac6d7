"""
Mnemo Runtime

Owns the collaborators shared by all sessions (identity store, LLM adapter,
name extraction service) and hands out one ConversationManager per session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from mnemo.conversation.manager import ConversationManager
from mnemo.conversation.types import ProcessResult, SessionEndResult
from mnemo.core.config import MnemoConfig, get_config
from mnemo.core.llm import LLMAdapter, LLMConfig, LLMProvider
from mnemo.extraction.service import NameExtractionService
from mnemo.identity.factory import IdentityStoreFactory
from mnemo.identity.models import Person
from mnemo.identity.store import IdentityStore

logger = structlog.get_logger(__name__)


class TranscriptLineError(ValueError):
    """Raised for a replay line that is not ``SPEAKER: text``."""
    pass


def parse_transcript_line(line: str) -> Optional[tuple[str, str]]:
    """
    Split a ``SPEAKER: text`` line.

    Returns None for blank lines and ``#`` comments.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    speaker, sep, text = line.partition(":")
    if not sep or not speaker.strip() or not text.strip():
        raise TranscriptLineError(f"Expected 'SPEAKER: text', got: {line!r}")
    return speaker.strip(), text.strip()


@dataclass
class ReplayEvent:
    """One replayed utterance and what the session made of it."""
    speaker: str
    text: str
    result: ProcessResult
    new_people: list[Person] = field(default_factory=list)


@dataclass
class ReplayResult:
    events: list[ReplayEvent] = field(default_factory=list)
    end: SessionEndResult = field(default_factory=SessionEndResult)


class MnemoRuntime:
    """
    Process-level wiring for Mnemo.

    Usage:
        async with MnemoRuntime(config) as runtime:
            session = runtime.new_session()
            await session.process_transcription("A", "Hi, I'm James", True)
            await session.end_conversation()
    """

    def __init__(
        self,
        config: Optional[MnemoConfig] = None,
        identity_store: Optional[IdentityStore] = None,
        llm: Optional[LLMAdapter] = None,
    ):
        self.config = config or get_config()
        self.identity_store = identity_store or IdentityStoreFactory.from_url(
            self.config.storage.url, read_only=self.config.storage.read_only
        )
        self.llm = llm or LLMAdapter(
            LLMConfig(
                provider=LLMProvider(self.config.llm.provider),
                model=self.config.llm.model,
                api_key=self.config.get_llm_api_key(),
                base_url=self.config.llm.base_url,
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
                timeout=self.config.llm.timeout,
                max_retries=self.config.llm.max_retries,
            )
        )
        self.extractor = NameExtractionService(
            self.llm,
            max_tokens=self.config.llm.max_tokens,
        )
        self._initialized = False
        self._sessions_started = 0

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.identity_store.initialize()
        await self.llm.initialize()
        self._initialized = True
        logger.info(
            "Mnemo runtime initialized",
            instance_id=self.config.instance_id,
            store=self.identity_store.location,
            provider=self.config.llm.provider,
        )

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self.llm.close()
        await self.identity_store.close()
        self._initialized = False
        logger.info("Mnemo runtime shut down", sessions=self._sessions_started)

    def new_session(self) -> ConversationManager:
        """Create an independent conversation manager for one session."""
        self._sessions_started += 1
        return ConversationManager(
            self.identity_store,
            self.extractor,
            self.config.conversation,
        )

    async def match_speaker(self, transcript: str) -> Optional[Person]:
        """Ask the model which known person, if any, said ``transcript``."""
        people = await self.identity_store.get_all_people()
        name = await self.extractor.match_speaker_to_person(transcript, people)
        if name is None:
            return None
        return await self.identity_store.find_person_by_name(name)

    async def replay(self, lines: Iterable[str]) -> ReplayResult:
        """Feed ``SPEAKER: text`` lines through a fresh session, then end it."""
        session = self.new_session()
        result = ReplayResult()
        new_people: list[Person] = []
        session.on_person_identified(lambda speaker, person: new_people.append(person))

        for line in lines:
            parsed = parse_transcript_line(line)
            if parsed is None:
                continue
            speaker, text = parsed
            process_result = await session.process_transcription(speaker, text, True)
            result.events.append(
                ReplayEvent(
                    speaker=speaker,
                    text=text,
                    result=process_result,
                    new_people=list(new_people),
                )
            )
            new_people.clear()

        result.end = await session.end_conversation()
        return result
