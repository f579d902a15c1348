"""
Unit tests for in-memory backends.

Tests cover:
- Content addressing and receipts
- Tombstones and visibility
- Link creation, ordering and deletion
- Testing helpers
"""

import threading

import pytest

from entcrud.backends.base import (
    ContentStore,
    LinkIndex,
    LinkNotFoundError,
    ReceiptNotFoundError,
    WriteAction,
    hash_bytes,
)
from entcrud.backends.memory import InMemoryContentStore, InMemoryLinkIndex
from entcrud.clock import ManualClock


class TestInMemoryContentStore:
    """Tests for InMemoryContentStore."""

    @pytest.fixture
    def clock(self):
        return ManualClock(1000)

    @pytest.fixture
    def store(self, clock):
        """Create a fresh store."""
        return InMemoryContentStore(clock=clock)

    def test_implements_protocol(self, store):
        """Store satisfies the ContentStore protocol."""
        assert isinstance(store, ContentStore)

    def test_put_returns_content_address(self, store):
        """Address is the hash of the bytes."""
        address, receipt = store.put(b"value1")

        assert address == hash_bytes(b"value1")
        assert receipt.action == WriteAction.CREATE
        assert receipt.address == address
        assert receipt.timestamp_ms == 1000

    def test_get_returns_entry_and_receipt(self, store):
        """Get returns the bytes with the write's receipt."""
        address, receipt = store.put(b"value1")

        entry = store.get(address)

        assert entry.data == b"value1"
        assert entry.receipt == receipt

    def test_get_missing(self, store):
        """Unknown address returns None."""
        assert store.get("missing") is None

    def test_same_bytes_same_address_new_receipt(self, store):
        """Writing identical bytes twice gives one address, two receipts."""
        a1, r1 = store.put(b"same")
        a2, r2 = store.put(b"same")

        assert a1 == a2
        assert r1.id != r2.id
        assert r2.seq == r1.seq + 1
        assert store.get(a1).receipt == r2

    def test_remove_hides_entry(self, store):
        """Removing the only write tombstones the address."""
        address, receipt = store.put(b"value1")

        tombstone = store.remove(receipt)

        assert tombstone.action == WriteAction.DELETE
        assert tombstone.address == address
        assert store.get(address) is None
        assert store.get_raw(address) == b"value1"

    def test_remove_one_of_two_writes(self, store):
        """Other live writes keep the address visible."""
        address, r1 = store.put(b"same")
        _, r2 = store.put(b"same")

        store.remove(r2)

        assert store.get(address).receipt == r1

    def test_remove_unknown_receipt(self, store):
        """Unknown receipts are rejected."""
        _, receipt = store.put(b"value1")
        other = InMemoryContentStore()

        with pytest.raises(ReceiptNotFoundError):
            other.remove(receipt)

    def test_get_raw_waits_for_writers(self, store):
        """get_raw reads under the store lock."""
        address, _ = store.put(b"value1")
        result = []

        with store._lock:
            reader = threading.Thread(target=lambda: result.append(store.get_raw(address)))
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()

        reader.join(timeout=5)
        assert result == [b"value1"]

    def test_put_raw_bypasses_addressing(self, store):
        """Testing helper plants bytes under any address."""
        store.put_raw("fake", b"data")

        assert store.get("fake").data == b"data"

    def test_entry_count_helper(self, store):
        """Testing helper counts live addresses."""
        assert store.get_entry_count() == 0

        _, receipt = store.put(b"v1")
        store.put(b"v2")
        assert store.get_entry_count() == 2

        store.remove(receipt)
        assert store.get_entry_count() == 1

    def test_inject_failure(self, store):
        """Injected failures fire once."""
        store.inject_failure(RuntimeError("disk gone"))

        with pytest.raises(RuntimeError, match="disk gone"):
            store.put(b"v1")

        address, _ = store.put(b"v1")
        assert store.get(address) is not None


class TestInMemoryLinkIndex:
    """Tests for InMemoryLinkIndex."""

    @pytest.fixture
    def clock(self):
        return ManualClock(100)

    @pytest.fixture
    def links(self, clock):
        """Create a fresh link index."""
        return InMemoryLinkIndex(clock=clock)

    def test_implements_protocol(self, links):
        """Index satisfies the LinkIndex protocol."""
        assert isinstance(links, LinkIndex)

    def test_create_and_query(self, links):
        """Created links come back from query."""
        receipt = links.create("a", "b", "comment")

        result = links.query("a", "comment")

        assert len(result) == 1
        assert result[0].target == "b"
        assert result[0].timestamp_ms == 100
        assert result[0].handle == receipt.id

    def test_query_filters_by_tag(self, links):
        """Query only returns links with the requested tag."""
        links.create("a", "b", "comment")
        links.create("a", "c", "like")

        assert [link.target for link in links.query("a", "like")] == ["c"]

    def test_query_preserves_creation_order(self, links, clock):
        """Links are returned in creation order."""
        for target in ["x", "y", "z"]:
            links.create("a", target, "t")
            clock.advance(10)

        assert [link.target for link in links.query("a", "t")] == ["x", "y", "z"]

    def test_timestamps_come_from_clock(self, links, clock):
        """Each link is stamped by the index clock."""
        links.create("a", "b", "t")
        clock.set(250)
        links.create("a", "c", "t")

        assert [link.timestamp_ms for link in links.query("a", "t")] == [100, 250]

    def test_delete(self, links):
        """Deleted links disappear from queries."""
        receipt = links.create("a", "b", "t")

        links.delete(receipt.id)

        assert links.query("a", "t") == []

    def test_delete_unknown(self, links):
        """Unknown handles are rejected."""
        with pytest.raises(LinkNotFoundError):
            links.delete("nope")

    def test_insert_link_helper(self, links):
        """Testing helper sets an explicit timestamp."""
        links.insert_link("a", "b", "t", 42)

        assert links.query("a", "t")[0].timestamp_ms == 42

    def test_link_count_helper(self, links):
        """Testing helper counts links."""
        links.create("a", "b", "t")
        links.create("a", "c", "u")

        assert links.get_link_count() == 2
        assert links.get_link_count("t") == 1
