"""
In-memory content store and link index.

This module provides simple in-memory backends for:
- Unit tests
- Integration tests
- Embedding the engine without external dependencies

Invariants:
    - All data is lost on process exit
    - Provides the same addressing and ordering guarantees as other backends
    - Thread-safe for concurrent access

How to change safely:
    - Keep interface compatible with the ContentStore / LinkIndex protocols
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
import logging

from ..clock import Clock, SystemClock
from .base import (
    ContentHash,
    Link,
    LinkNotFoundError,
    ReceiptNotFoundError,
    StoredEntry,
    WriteAction,
    WriteReceipt,
    hash_bytes,
    make_receipt_id,
)

logger = logging.getLogger(__name__)


class _FailureInjection:
    """Lets tests make the next backend call fail."""

    _pending_failure: Exception | None = None

    def inject_failure(self, exception: Exception) -> None:
        """Inject a failure for testing error handling.

        The next operation will raise this exception.
        """
        self._pending_failure = exception

    def _raise_injected(self) -> None:
        if self._pending_failure is not None:
            exc, self._pending_failure = self._pending_failure, None
            raise exc


@dataclass
class _AddressSlot:
    """Bytes for one address and the writes that created them."""

    data: bytes
    writes: list[WriteReceipt] = field(default_factory=list)


class InMemoryContentStore(_FailureInjection):
    """In-memory implementation of ContentStore.

    Example:
        >>> store = InMemoryContentStore()
        >>> address, receipt = store.put(b'{"title":"x"}')
        >>> store.get(address).data
        b'{"title":"x"}'
    """

    def __init__(self, clock: Clock | None = None) -> None:
        """Initialize in-memory store.

        Args:
            clock: Source of write timestamps (wall clock by default)
        """
        self.clock = clock or SystemClock()
        self._slots: dict[ContentHash, _AddressSlot] = {}
        self._receipts: dict[str, WriteReceipt] = {}
        self._removed: set[str] = set()
        self._seq = 0
        self._lock = threading.Lock()

    def _next_receipt(self, action: WriteAction, address: ContentHash) -> WriteReceipt:
        self._seq += 1
        timestamp = self.clock.now()
        return WriteReceipt(
            id=make_receipt_id(action, address, self._seq, timestamp),
            action=action,
            address=address,
            seq=self._seq,
            timestamp_ms=timestamp,
        )

    def put(self, data: bytes) -> tuple[ContentHash, WriteReceipt]:
        self._raise_injected()
        address = hash_bytes(data)

        with self._lock:
            slot = self._slots.setdefault(address, _AddressSlot(data=data))
            receipt = self._next_receipt(WriteAction.CREATE, address)
            slot.writes.append(receipt)
            self._receipts[receipt.id] = receipt

        logger.debug(
            "Entry written to in-memory store",
            extra={"address": address, "receipt": receipt.id, "seq": receipt.seq},
        )
        return address, receipt

    def get(self, address: ContentHash) -> StoredEntry | None:
        self._raise_injected()
        with self._lock:
            slot = self._slots.get(address)
            if slot is None:
                return None

            live = [w for w in slot.writes if w.id not in self._removed]
            if not live:
                return None

            return StoredEntry(address=address, data=slot.data, receipt=live[-1])

    def remove(self, receipt: WriteReceipt) -> WriteReceipt:
        self._raise_injected()
        with self._lock:
            if receipt.id not in self._receipts:
                raise ReceiptNotFoundError(f"Unknown write receipt: {receipt.id}")

            self._removed.add(receipt.id)
            tombstone = self._next_receipt(WriteAction.DELETE, receipt.address)
            self._receipts[tombstone.id] = tombstone

        logger.debug(
            "Write removed from in-memory store",
            extra={"address": receipt.address, "receipt": receipt.id},
        )
        return tombstone

    # Testing helpers

    def get_raw(self, address: ContentHash) -> bytes | None:
        """Bytes at an address regardless of tombstones (testing helper)."""
        with self._lock:
            slot = self._slots.get(address)
            return slot.data if slot else None

    def put_raw(self, address: ContentHash, data: bytes) -> WriteReceipt:
        """Store bytes under an arbitrary address (testing helper).

        Bypasses content addressing so tests can plant entries whose bytes
        do not hash to their address.
        """
        with self._lock:
            slot = self._slots.setdefault(address, _AddressSlot(data=data))
            receipt = self._next_receipt(WriteAction.CREATE, address)
            slot.writes.append(receipt)
            self._receipts[receipt.id] = receipt
        return receipt

    def get_entry_count(self) -> int:
        """Number of addresses with at least one live write (testing helper)."""
        with self._lock:
            return sum(
                1
                for slot in self._slots.values()
                if any(w.id not in self._removed for w in slot.writes)
            )


class InMemoryLinkIndex(_FailureInjection):
    """In-memory implementation of LinkIndex.

    Links are kept per (base, tag) in creation order.

    Example:
        >>> links = InMemoryLinkIndex(clock=ManualClock(100))
        >>> receipt = links.create("aa", "bb", "comment")
        >>> [link.target for link in links.query("aa", "comment")]
        ['bb']
    """

    def __init__(self, clock: Clock | None = None) -> None:
        """Initialize in-memory link index.

        Args:
            clock: Source of link timestamps (wall clock by default)
        """
        self.clock = clock or SystemClock()
        self._links: dict[tuple[ContentHash, str], list[Link]] = defaultdict(list)
        self._by_handle: dict[str, Link] = {}
        self._seq = 0
        self._lock = threading.Lock()

    def create(self, base: ContentHash, target: ContentHash, tag: str) -> WriteReceipt:
        self._raise_injected()
        return self.insert_link(base, target, tag, self.clock.now())

    def query(self, base: ContentHash, tag: str) -> list[Link]:
        self._raise_injected()
        with self._lock:
            return list(self._links.get((base, tag), []))

    def delete(self, handle: str) -> None:
        self._raise_injected()
        with self._lock:
            link = self._by_handle.pop(handle, None)
            if link is None:
                raise LinkNotFoundError(f"Unknown link handle: {handle}")
            self._links[(link.base, link.tag)].remove(link)

        logger.debug(
            "Link deleted",
            extra={"base": link.base, "target": link.target, "tag": link.tag},
        )

    # Testing helpers

    def insert_link(
        self,
        base: ContentHash,
        target: ContentHash,
        tag: str,
        timestamp_ms: int,
    ) -> WriteReceipt:
        """Create a link with an explicit timestamp (testing helper)."""
        with self._lock:
            self._seq += 1
            receipt = WriteReceipt(
                id=make_receipt_id(WriteAction.CREATE_LINK, base, self._seq, timestamp_ms),
                action=WriteAction.CREATE_LINK,
                address=base,
                seq=self._seq,
                timestamp_ms=timestamp_ms,
            )
            link = Link(
                base=base,
                target=target,
                tag=tag,
                timestamp_ms=timestamp_ms,
                handle=receipt.id,
            )
            self._links[(base, tag)].append(link)
            self._by_handle[link.handle] = link

        logger.debug(
            "Link created",
            extra={"base": base, "target": target, "tag": tag, "timestamp_ms": timestamp_ms},
        )
        return receipt

    def get_link_count(self, tag: str | None = None) -> int:
        """Total number of links, optionally for one tag (testing helper)."""
        with self._lock:
            return sum(
                len(links)
                for (_, link_tag), links in self._links.items()
                if tag is None or link_tag == tag
            )
