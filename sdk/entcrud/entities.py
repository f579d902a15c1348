"""
Entity envelope types for entcrud.

This module provides the wrapper returned to callers:
- EntityType: {name, model} descriptor of a content value
- EntryModel: protocol every content type implements
- Entity: identity, current address, receipt, descriptor and content
- Collection: entities found by following one tag from one base
- Empty / EmptyEntity: content placeholder when only the envelope matters

Content types are pydantic models that describe their own type:

    >>> class PostEntry(BaseModel):
    ...     title: str
    ...     message: str
    ...
    ...     def get_type(self) -> EntityType:
    ...         return EntityType("post", "entry")

Invariants:
    - `id` is the address of the first version and never changes
    - `address` is the address of the version being represented
    - Link helpers always use `id` as the entity's endpoint
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from .backends.base import ContentHash, Link, LinkIndex, WriteReceipt
from .errors import UnboundEntityError

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M")


@dataclass(frozen=True)
class EntityType:
    """An entity categorization with the name and model values.

    Attributes:
        name: Identifier for the kind of data (e.g. "post")
        model: Identifier for the data's structure (e.g. "entry", "info")
    """

    name: str
    model: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "model": self.model}


@runtime_checkable
class EntryModel(Protocol):
    """Identifies a value as an entity content type."""

    def get_type(self) -> EntityType:
        ...


def _dump_content(content: Any) -> Any:
    if hasattr(content, "model_dump"):
        return content.model_dump(mode="json", by_alias=True)
    return content


@dataclass
class Entity(Generic[T]):
    """The context and content of a specific entry.

    Attributes:
        id: Address of the originally created entry
        address: Address of the current entry
        receipt: Write receipt of the current entry
        ctype: Descriptor of the content's type and structure
        content: The entity's current value
        links: Link index used by the link helpers (set by EntityClient)
    """

    id: ContentHash
    address: ContentHash
    receipt: WriteReceipt
    ctype: EntityType
    content: T
    links: LinkIndex | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "address": self.address,
            "receipt": self.receipt.to_dict(),
            "type": self.ctype.to_dict(),
            "content": _dump_content(self.content),
        }

    def change_model(self, transformer: Callable[[T], M]) -> Entity[M]:
        """Replace the content with another EntryModel value.

        The new descriptor comes from the new content, so this can change the
        entity's `name` as well as its `model`.
        """
        content = transformer(self.content)

        return Entity(
            id=self.id,
            address=self.address,
            receipt=self.receipt,
            ctype=content.get_type(),
            content=content,
            links=self.links,
        )

    def change_model_custom(self, transformer: Callable[[T], tuple[M, str]]) -> Entity[M]:
        """Replace the content with another value and a custom model name."""
        content, model = transformer(self.content)

        return Entity(
            id=self.id,
            address=self.address,
            receipt=self.receipt,
            ctype=EntityType(name=self.ctype.name, model=model),
            content=content,
            links=self.links,
        )

    def _require_links(self) -> LinkIndex:
        if self.links is None:
            raise UnboundEntityError(self.id)
        return self.links

    def link_from(self, base: ContentHash, tag: str) -> WriteReceipt:
        """Create `base -[tag]-> id`."""
        return self._require_links().create(base, self.id, tag)

    def link_to(self, target: ContentHash, tag: str) -> WriteReceipt:
        """Create `id -[tag]-> target`."""
        return self._require_links().create(self.id, target, tag)

    def unlink_from(self, base: ContentHash, tag: str) -> Link | None:
        """Delete the first `base -[tag]-> id` link.

        If the index holds duplicates, only the first in index order is
        removed.

        Returns:
            The deleted link, or None if no link matched
        """
        links = self._require_links()

        current = next(
            (link for link in links.query(base, tag) if link.target == self.id),
            None,
        )
        if current is not None:
            links.delete(current.handle)
        return current

    def move_link_from(
        self,
        tag: str,
        current_base: ContentHash,
        new_base: ContentHash,
    ) -> WriteReceipt:
        """Replace `current_base -[tag]-> id` with `new_base -[tag]-> id`.

        Runs as two separate link operations (unlink, then link) with no
        rollback. A failure of the second leaves the entity unlinked from both
        bases; a concurrent mover can leave it linked from both.

        Returns:
            Receipt of the new link
        """
        removed = self.unlink_from(current_base, tag)
        if removed is None:
            logger.debug(
                "No existing link to move",
                extra={"id": self.id, "tag": tag, "base": current_base},
            )

        return self.link_from(new_base, tag)


@dataclass
class Collection(Generic[T]):
    """A list of entities associated with a base address.

    Attributes:
        base: Base the link query started from
        items: Entities resolved from the link targets
    """

    base: ContentHash
    items: list[Entity[T]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "base": self.base,
            "items": [item.to_dict() for item in self.items],
        }


class Empty(BaseModel):
    """Content placeholder that accepts any JSON object.

    Used where an entity's envelope (id, address, receipt, links) matters but
    its content does not. Unknown fields are ignored, so any entry decodes.
    """


EmptyEntity = Entity[Empty]
