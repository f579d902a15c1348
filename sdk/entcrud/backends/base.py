"""
Base protocols and types for the content store and link index.

This module defines the two collaborator protocols the entity engine is built
on, along with the records they exchange and the errors they raise:
- ContentStore: immutable blobs addressed by the hash of their bytes
- LinkIndex: directed, tagged, timestamped edges between addresses

Invariants:
    - put() never changes bytes already stored under an address
    - Every mutation returns a WriteReceipt
    - query() returns links in creation order
    - Backend failures surface as BackendError and are never retried here

How to change safely:
    - Protocol changes require updating every backend
    - Keep WriteReceipt opaque to the engine; it only hands receipts back
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    runtime_checkable,
)
import logging

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

ContentHash = str


class BackendError(Exception):
    """Base exception for store and link index failures."""

    code = "BACKEND_ERROR"


class ReceiptNotFoundError(BackendError):
    """No write exists for the given receipt."""

    pass


class LinkNotFoundError(BackendError):
    """No link exists for the given handle."""

    pass


class WriteAction(Enum):
    """Kinds of writes a receipt can acknowledge."""

    CREATE = "create"
    DELETE = "delete"
    CREATE_LINK = "create_link"


@dataclass(frozen=True)
class WriteReceipt:
    """Acknowledgment of a single write.

    Attributes:
        id: Opaque receipt identifier
        action: What kind of write this was
        address: Entry address (or link base) the write touched
        seq: Backend sequence number, causally ordered
        timestamp_ms: When the write was recorded (milliseconds)
    """

    id: str
    action: WriteAction
    address: ContentHash
    seq: int
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "action": self.action.value,
            "address": self.address,
            "seq": self.seq,
            "timestamp_ms": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WriteReceipt:
        """Create from dictionary."""
        return cls(
            id=data["id"],
            action=WriteAction(data["action"]),
            address=data["address"],
            seq=data["seq"],
            timestamp_ms=data["timestamp_ms"],
        )

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class StoredEntry:
    """Bytes held by the content store plus the write that made them visible.

    Attributes:
        address: Content hash of `data`
        data: Canonical bytes of the entry
        receipt: Most recent live write of this address
    """

    address: ContentHash
    data: bytes
    receipt: WriteReceipt


@dataclass(frozen=True)
class Link:
    """A directed, tagged edge in the link index.

    Attributes:
        base: Address the link starts from
        target: Address the link points to
        tag: Relationship tag
        timestamp_ms: When the link was created (milliseconds)
        handle: Identifier used to delete the link
    """

    base: ContentHash
    target: ContentHash
    tag: str
    timestamp_ms: int
    handle: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "base": self.base,
            "target": self.target,
            "tag": self.tag,
            "timestamp_ms": self.timestamp_ms,
            "handle": self.handle,
        }


def hash_bytes(data: bytes) -> ContentHash:
    """Content address of a byte string (hex SHA-256)."""
    return hashlib.sha256(data).hexdigest()


def make_receipt_id(action: WriteAction, address: str, seq: int, timestamp_ms: int) -> str:
    """Derive an opaque receipt identifier from the write's coordinates."""
    raw = f"{action.value}:{address}:{seq}:{timestamp_ms}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@runtime_checkable
class ContentStore(Protocol):
    """Protocol for content-addressed blob stores.

    Addressing contract:
        - put(data) stores `data` under hash_bytes(data)
        - Writing the same bytes twice yields the same address and a new receipt

    Visibility contract:
        - get(address) returns the entry while at least one write of that
          address has not been removed
        - remove(receipt) tombstones one write; the bytes of other live
          writes stay visible
    """

    def put(self, data: bytes) -> tuple[ContentHash, WriteReceipt]:
        """Store bytes.

        Args:
            data: Canonical entry bytes

        Returns:
            (address, receipt) for the write

        Raises:
            BackendError: If the write fails
        """
        ...

    def get(self, address: ContentHash) -> StoredEntry | None:
        """Fetch the latest visible entry at an address.

        Returns:
            StoredEntry or None if nothing live is stored there
        """
        ...

    def remove(self, receipt: WriteReceipt) -> WriteReceipt:
        """Tombstone the write identified by `receipt`.

        Returns:
            Receipt of the delete action

        Raises:
            ReceiptNotFoundError: If the receipt is unknown
        """
        ...


@runtime_checkable
class LinkIndex(Protocol):
    """Protocol for tagged link indexes.

    Ordering contract:
        - query() yields links in creation order
        - timestamp_ms is assigned by the index at creation
    """

    def create(self, base: ContentHash, target: ContentHash, tag: str) -> WriteReceipt:
        """Create a link `base -[tag]-> target`.

        Returns:
            Receipt whose `id` is the new link's handle
        """
        ...

    def query(self, base: ContentHash, tag: str) -> list[Link]:
        """All links with the given tag leaving `base`."""
        ...

    def delete(self, handle: str) -> None:
        """Remove a link.

        Raises:
            LinkNotFoundError: If the handle is unknown
        """
        ...


def create_backends(settings: "Settings") -> tuple[ContentStore, LinkIndex]:
    """Factory function to create a store and link index from configuration.

    Args:
        settings: Library settings

    Returns:
        (content_store, link_index) for the configured backend

    Raises:
        ValueError: If the backend is not supported
    """
    from ..config import Backend
    from .memory import InMemoryContentStore, InMemoryLinkIndex
    from .sqlite import SqliteContentStore, SqliteLinkIndex

    if settings.backend == Backend.MEMORY:
        return InMemoryContentStore(), InMemoryLinkIndex()
    elif settings.backend == Backend.SQLITE:
        options = {
            "wal_mode": settings.sqlite_wal_mode,
            "busy_timeout_ms": settings.sqlite_busy_timeout_ms,
        }
        logger.info(
            "Opening sqlite backends",
            extra={"path": settings.sqlite_path},
        )
        return (
            SqliteContentStore(settings.sqlite_path, **options),
            SqliteLinkIndex(settings.sqlite_path, **options),
        )
    else:
        raise ValueError(f"Unsupported backend: {settings.backend}")
