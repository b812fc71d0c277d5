"""Chat persistence package.

Provides SQLite-backed storage for threads and participants, read-only
directory lookups, and metadata serialization helpers.
"""

from quote_chat.state.directory import DirectoryStore
from quote_chat.state.schema import connect_chat_db, init_chat_tables, init_directory_tables
from quote_chat.state.serializers import (
    deserialize_metadata,
    normalise_metadata,
    serialize_metadata,
)
from quote_chat.state.store import ChatStore, utc_now

__all__ = [
    "ChatStore",
    "DirectoryStore",
    "connect_chat_db",
    "deserialize_metadata",
    "init_chat_tables",
    "init_directory_tables",
    "normalise_metadata",
    "serialize_metadata",
    "utc_now",
]
