"""
Name Extraction Service

Uses a language model to read transcripts:
- Names from first-person self-introductions
- End-of-session summaries (topics, key points, short summary)
- Matching an anonymous speaker against known people
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog

from mnemo.core.llm import LLMAdapter, Message
from mnemo.extraction.parsing import ExtractionError, parse_extracted_names, parse_summary
from mnemo.extraction.prompts import (
    EXTRACT_NAMES_PROMPT,
    MATCH_SPEAKER_PROMPT,
    SUMMARIZE_PROMPT,
    format_known_people,
)
from mnemo.extraction.types import ConversationSummary, ExtractedName
from mnemo.identity.models import Person

logger = structlog.get_logger(__name__)


class NameExtractionService:
    """
    Transcript analysis backed by an LLMAdapter.

    None of the public methods raise: model or transport failures are logged
    and turned into the neutral result for that call.
    """

    def __init__(
        self,
        llm: LLMAdapter,
        max_tokens: int = 1024,
        extraction_temperature: float = 0.3,
        summary_temperature: float = 0.5,
    ):
        self.llm = llm
        self.max_tokens = max_tokens
        self.extraction_temperature = extraction_temperature
        self.summary_temperature = summary_temperature

    async def _ask(self, prompt: str, temperature: float, max_tokens: int) -> str:
        response = await self.llm.complete(
            [Message.user(prompt)],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return (response.content or "").strip()

    async def extract_names(self, transcript: str) -> list[ExtractedName]:
        """Extract self-introduced names from a transcript."""
        if not transcript.strip():
            return []

        try:
            content = await self._ask(
                EXTRACT_NAMES_PROMPT.format(transcript=transcript),
                self.extraction_temperature,
                self.max_tokens,
            )
            if not content:
                return []
            names = parse_extracted_names(content)
        except ExtractionError as e:
            logger.warning("Unparseable name extraction output", error=str(e))
            return []
        except Exception as e:
            logger.error("Name extraction failed", error=str(e))
            return []

        logger.debug("Names extracted", count=len(names))
        return names

    async def summarize_conversation(self, transcript: str) -> ConversationSummary:
        """Summarize a finished conversation in the past tense."""
        try:
            content = await self._ask(
                SUMMARIZE_PROMPT.format(transcript=transcript),
                self.summary_temperature,
                self.max_tokens,
            )
            if not content:
                return ConversationSummary.empty()
            return parse_summary(content)
        except ExtractionError as e:
            logger.warning("Unparseable summary output", error=str(e))
            return ConversationSummary.failure()
        except Exception as e:
            logger.error("Conversation summary failed", error=str(e))
            return ConversationSummary.failure()

    async def match_speaker_to_person(
        self,
        transcript: str,
        known_people: Sequence[Person],
    ) -> Optional[str]:
        """
        Ask the model whether a snippet comes from one of ``known_people``.

        Returns the stored name of the match, or None. Answers that do not
        name one of the candidates are discarded.
        """
        if not known_people:
            return None

        people = format_known_people(
            [{"name": p.name, "last_topics": p.last_topics} for p in known_people]
        )

        try:
            answer = await self._ask(
                MATCH_SPEAKER_PROMPT.format(people=people, transcript=transcript),
                self.extraction_temperature,
                512,
            )
        except Exception as e:
            logger.error("Speaker matching failed", error=str(e))
            return None

        answer = answer.strip().strip("\"'.").strip()
        if not answer or answer.lower() == "null":
            return None

        for person in known_people:
            if person.matches_name(answer):
                return person.name

        logger.info("Speaker match ignored, not a known person", answer=answer)
        return None
