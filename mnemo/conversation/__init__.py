"""
Mnemo conversation sessions.
"""

from mnemo.conversation.types import (
    ProcessAction,
    ProcessResult,
    SessionEndResult,
    Utterance,
)
from mnemo.conversation.context import (
    build_farewell,
    build_greeting,
    build_introduction,
    format_person_context,
)
from mnemo.conversation.manager import ConversationManager

__all__ = [
    "ProcessAction",
    "ProcessResult",
    "SessionEndResult",
    "Utterance",
    "build_farewell",
    "build_greeting",
    "build_introduction",
    "format_person_context",
    "ConversationManager",
]
