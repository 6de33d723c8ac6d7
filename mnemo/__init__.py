"""
Mnemo - speaker memory for wearable conversation assistants.

Listens to a speaker-labeled transcript stream, learns who is talking from
self-introductions, and remembers what was discussed so returning people can
be greeted with context.
"""

__version__ = "0.1.0"

from mnemo.conversation.manager import ConversationManager
from mnemo.conversation.types import ProcessAction, ProcessResult, SessionEndResult, Utterance
from mnemo.core.config import MnemoConfig, get_config, set_config
from mnemo.extraction.service import NameExtractionService
from mnemo.identity.factory import IdentityStoreFactory
from mnemo.identity.models import ConversationEntry, Person
from mnemo.identity.store import IdentityStore, MemoryIdentityStore
from mnemo.runtime import MnemoRuntime

__all__ = [
    "__version__",
    "ConversationEntry",
    "ConversationManager",
    "IdentityStore",
    "IdentityStoreFactory",
    "MemoryIdentityStore",
    "MnemoConfig",
    "MnemoRuntime",
    "NameExtractionService",
    "Person",
    "ProcessAction",
    "ProcessResult",
    "SessionEndResult",
    "Utterance",
    "get_config",
    "set_config",
]
