"""
Identity Store Factory
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from mnemo.identity.file_store import FileIdentityStore
from mnemo.identity.sqlite_store import SQLiteIdentityStore
from mnemo.identity.store import IdentityStore, MemoryIdentityStore


class IdentityStoreFactory:
    """Factory for creating identity stores."""

    @staticmethod
    def create(
        store_type: str = "file",
        **kwargs: Any,
    ) -> IdentityStore:
        """
        Create an identity store.

        Args:
            store_type: Type of store ("memory", "file", "sqlite")
            **kwargs: Store-specific configuration

        Returns:
            IdentityStore instance
        """
        if store_type == "memory":
            return MemoryIdentityStore(**kwargs)

        elif store_type in ("file", "json"):
            return FileIdentityStore(**kwargs)

        elif store_type == "sqlite":
            return SQLiteIdentityStore(**kwargs)

        else:
            raise ValueError(f"Unknown identity store type: {store_type}")

    @staticmethod
    def from_url(url: str, **kwargs: Any) -> IdentityStore:
        """
        Create an identity store from a URL.

        Examples:
            - memory://
            - file://./data (directory holding memories.json)
            - sqlite:///var/lib/mnemo/people.db
            - sqlite://:memory:
        """
        parsed = urlparse(url)

        if parsed.scheme == "memory":
            return MemoryIdentityStore()

        elif parsed.scheme == "file":
            # file://./data parses with "." as netloc
            path = (parsed.netloc + parsed.path) or "./data"
            return FileIdentityStore(data_dir=path, **kwargs)

        elif parsed.scheme == "sqlite":
            path = parsed.netloc + parsed.path
            if not path:
                raise ValueError(f"Missing database path in URL: {url}")
            return SQLiteIdentityStore(path=path)

        else:
            raise ValueError(f"Unknown URL scheme: {parsed.scheme}")
