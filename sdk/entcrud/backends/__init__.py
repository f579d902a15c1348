"""
Content store and link index backends for entcrud.

This module provides pluggable implementations of the two collaborators the
entity engine is built on:
- In-memory (for testing and embedding)
- SQLite (single local database file)

Invariants:
    - Entries are addressed by the SHA-256 of their bytes
    - Stored bytes are never rewritten; deletes are tombstones
    - Links are returned in creation order
    - Backend failures surface as BackendError

How to change safely:
    - New backends must implement the ContentStore and LinkIndex protocols
    - Run the integration suite against every backend
"""

from .base import (
    BackendError,
    ContentHash,
    ContentStore,
    Link,
    LinkIndex,
    LinkNotFoundError,
    ReceiptNotFoundError,
    StoredEntry,
    WriteAction,
    WriteReceipt,
    create_backends,
    hash_bytes,
)
from .memory import InMemoryContentStore, InMemoryLinkIndex
from .sqlite import SqliteBackendError, SqliteContentStore, SqliteLinkIndex

__all__ = [
    # Protocols and types
    "ContentStore",
    "LinkIndex",
    "ContentHash",
    "Link",
    "StoredEntry",
    "WriteAction",
    "WriteReceipt",
    "hash_bytes",
    "BackendError",
    "ReceiptNotFoundError",
    "LinkNotFoundError",
    "SqliteBackendError",
    # Factory
    "create_backends",
    # Implementations
    "InMemoryContentStore",
    "InMemoryLinkIndex",
    "SqliteContentStore",
    "SqliteLinkIndex",
]
