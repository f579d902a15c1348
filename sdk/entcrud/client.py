"""
Entity client for entcrud.

This module provides the CRUD interface over a content store and link index:
- EntityClient.create: write a first version
- EntityClient.get: read the latest version of an entity
- EntityClient.update: write a new version linked to the entity's identity
- EntityClient.delete: tombstone the entity's origin commit
- EntityClient.get_collection: resolve every entity linked from a base

Example:
    >>> client = EntityClient(InMemoryContentStore(), InMemoryLinkIndex())
    >>> post = client.create(PostEntry(title="x", message="Hello"))
    >>> post = client.update(PostEntry, post.address, lambda p, _: p.model_copy(update={"message": "Bye"}))
    >>> client.get(PostEntry, post.id).content.message
    'Bye'

Invariants:
    - Every call is a single synchronous unit of work; nothing is retried
    - Backend errors propagate unchanged
    - Only get_collection tolerates per-item failures
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .backends.base import BackendError, ContentHash, ContentStore, LinkIndex, StoredEntry, WriteReceipt
from .clock import Clock, SystemClock
from .codec import check_entry_type, decode, encode, type_name
from .config import Settings, get_settings
from .entities import Collection, Entity
from .errors import (
    CrudError,
    DeserializationError,
    LinkBaseWrongTypeError,
    WrongEntryTypeError,
)
from .versions import TAG_ORIGIN, TAG_UPDATE, fetch_entry, fetch_latest, resolve_identity

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)
B = TypeVar("B", bound=BaseModel)


class EntityClient:
    """CRUD engine for versioned entities.

    Attributes:
        store: Content store holding entry bytes
        links: Link index holding version and relationship links
        clock: Clock handed to callers through now()
    """

    def __init__(
        self,
        store: ContentStore,
        links: LinkIndex,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.links = links
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> EntityClient:
        """Build a client on the backends selected by configuration."""
        from .backends import create_backends

        settings = settings or get_settings()
        store, links = create_backends(settings)
        return cls(store, links)

    def now(self) -> int:
        """Current time in milliseconds, for stamping content."""
        return self.clock.now()

    def resolve_identity(self, address: ContentHash) -> ContentHash:
        """Get the entity ID for any version address."""
        return resolve_identity(self.links, address)

    def fetch_latest(self, id: ContentHash) -> tuple[StoredEntry, StoredEntry]:
        """Fetch (latest, origin) entries for an entity ID."""
        return fetch_latest(self.store, self.links, id)

    def create(self, content: E) -> Entity[E]:
        """Write the first version of a new entity.

        The entry's address becomes both `id` and `address`. No links are
        created.
        """
        ctype = content.get_type()
        address, receipt = self.store.put(encode(content))

        logger.debug(
            "Created entity",
            extra={"id": address, "entry_type": ctype.name, "entry_model": ctype.model},
        )

        return Entity(
            id=address,
            address=address,
            receipt=receipt,
            ctype=ctype,
            content=content,
            links=self.links,
        )

    def get(self, model: type[E], id: ContentHash) -> Entity[E]:
        """Get the latest version of an entity.

        Only the origin entry is type-verified; the type of an entity is fixed
        when it is created.

        Raises:
            NotOriginEntryError: If `id` is an update address
            EntryNotFoundError: If the origin entry is missing or deleted
            DeserializationError: If an entry does not decode as `model`
            WrongEntryTypeError: If the origin entry is not a `model`
        """
        latest, origin = self.fetch_latest(id)

        check_entry_type(origin, model)

        try:
            content = decode(latest.data, model)
        except ValidationError:
            raise DeserializationError(latest.address, type_name(model))

        return Entity(
            id=id,
            address=latest.address,
            receipt=latest.receipt,
            ctype=content.get_type(),
            content=content,
            links=self.links,
        )

    def update(
        self,
        model: type[E],
        address: ContentHash,
        transform: Callable[[E, StoredEntry], E],
    ) -> Entity[E]:
        """Write a new version derived from the version at `address`.

        `address` does not have to be the latest version. Updating from an
        older version starts a branch; reads then follow whichever update
        link is newest.

        Args:
            model: Expected entry type
            address: Version to update from
            transform: Called with (current value, stored entry); returns the
                new value

        Returns:
            Entity with the unchanged `id` and the new `address`
        """
        stored = fetch_entry(self.store, address)
        current = check_entry_type(stored, model)

        updated = transform(current, stored)

        new_address, receipt = self.store.put(encode(updated))

        id = self.resolve_identity(address)

        logger.debug("Linking origin to update", extra={"id": id, "address": new_address})
        self.links.create(id, new_address, TAG_UPDATE)

        logger.debug("Linking update to origin", extra={"id": id, "address": new_address})
        self.links.create(new_address, id, TAG_ORIGIN)

        return Entity(
            id=id,
            address=new_address,
            receipt=receipt,
            ctype=updated.get_type(),
            content=updated,
            links=self.links,
        )

    def delete(self, model: type[E], id: ContentHash) -> WriteReceipt:
        """Delete an entity's origin commit.

        Update entries and links are left in place.

        Returns:
            Receipt of the commit that was removed
        """
        id = self.resolve_identity(id)
        stored = fetch_entry(self.store, id)

        check_entry_type(stored, model)
        self.store.remove(stored.receipt)

        logger.debug("Deleted entity", extra={"id": id, "receipt": stored.receipt.id})
        return stored.receipt

    def get_collection(
        self,
        base_model: type[B],
        item_model: type[E],
        base_id: ContentHash,
        tag: str,
    ) -> Collection[E]:
        """Get every `item_model` entity linked from `base_id` with `tag`.

        Items that cannot be resolved, cannot be read, or are not
        `item_model` are left out.

        Raises:
            LinkBaseWrongTypeError: If the base is not a `base_model`
        """
        try:
            self.get(base_model, base_id)
        except (DeserializationError, WrongEntryTypeError):
            raise LinkBaseWrongTypeError(base_id, type_name(base_model))

        items: list[Entity[E]] = []
        for link in self.links.query(base_id, tag):
            try:
                items.append(self.get(item_model, link.target))
            except (CrudError, BackendError) as e:
                logger.debug(
                    "Skipping unresolvable collection item",
                    extra={"base": base_id, "target": link.target, "error": str(e)},
                )

        return Collection(base=base_id, items=items)
