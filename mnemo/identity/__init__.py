"""
Mnemo identity layer: durable person records and their stores.
"""

from mnemo.identity.models import ConversationEntry, Person, person_key
from mnemo.identity.store import (
    IdentityStore,
    MemoryIdentityStore,
    ReadOnlyStoreError,
    StoreStats,
)
from mnemo.identity.file_store import FileIdentityStore
from mnemo.identity.sqlite_store import SQLiteIdentityStore
from mnemo.identity.factory import IdentityStoreFactory

__all__ = [
    "ConversationEntry",
    "Person",
    "person_key",
    "IdentityStore",
    "MemoryIdentityStore",
    "ReadOnlyStoreError",
    "StoreStats",
    "FileIdentityStore",
    "SQLiteIdentityStore",
    "IdentityStoreFactory",
]
