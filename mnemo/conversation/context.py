"""
Short text blocks shown to the wearer about the people they talk to.
"""

from __future__ import annotations

from mnemo.conversation.types import SessionEndResult
from mnemo.extraction.types import SUMMARY_ERROR_TEXT
from mnemo.identity.models import Person

MAX_GREETING_ITEMS = 3
LEGACY_SUMMARY_LIMIT = 100


def _bullets(items: list[str]) -> str:
    return "".join(f"\n• {item}" for item in items[:MAX_GREETING_ITEMS])


def format_person_context(person: Person) -> str:
    """
    Name, last conversation summary and last topics, one per line.

    Missing fields are left out rather than shown empty.
    """
    last_conversation = person.last_conversation
    last_topics = person.last_topics

    if last_conversation is None and not last_topics and person.latest_conversation:
        latest = person.latest_conversation
        last_conversation = latest.transcript or None
        last_topics = latest.topics

    context = person.name
    if last_conversation:
        context += f"\nLast: {last_conversation}"
    if last_topics:
        context += f"\nTopics: {', '.join(last_topics)}"
    return context


def build_greeting(person: Person) -> str:
    """Greeting for a returning person, built from their latest conversation."""
    message = person.name
    history = person.conversation_history

    if history:
        latest = person.latest_conversation
        if latest.key_points:
            message += "\n\nLast time:" + _bullets(latest.key_points)
        elif latest.transcript and latest.transcript != SUMMARY_ERROR_TEXT:
            message += f'\n\nLast time:\n"{latest.transcript}"'
        elif latest.topics:
            message += "\n\nLast topics:" + _bullets(latest.topics)

        if len(history) > 1:
            message += f"\n\n({len(history)} conversations)"

    elif person.last_conversation:
        summary = person.last_conversation
        if len(summary) > LEGACY_SUMMARY_LIMIT:
            summary = summary[:LEGACY_SUMMARY_LIMIT] + "..."
        message += f'\n\nLast time:\n"{summary}"'

    elif person.last_topics:
        message += "\n\nLast topics:" + _bullets(person.last_topics)

    else:
        message += "\n\nFirst conversation!"

    return message


def build_introduction(person: Person) -> str:
    return f"Nice to meet you,\n{person.name}!"


def build_farewell(result: SessionEndResult) -> str:
    """Farewell shown when a session ends. Empty when nothing was saved."""
    if not result.people_updated:
        return ""

    if len(result.people_updated) == 1:
        farewell = f"Goodbye {result.people_updated[0]}!"
    else:
        farewell = "Goodbye everyone!"

    message = f"{farewell}\n\nConversation saved!"
    if result.topics:
        message += f"\nTopics: {', '.join(result.topics[:MAX_GREETING_ITEMS])}"
    return message
