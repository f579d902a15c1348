"""
entcrud - Versioned entities over a content-addressed store.

This library provides CRUD semantics over immutable, hash-addressed entries:
- EntityClient for create / get / update / delete / get_collection
- Entity and Collection envelopes with link helpers
- Type verification by re-hashing decoded entries
- In-memory and SQLite content store / link index backends

Example:
    >>> from entcrud import EntityClient, EntityType
    >>> from entcrud.backends import InMemoryContentStore, InMemoryLinkIndex
    >>>
    >>> class PostEntry(BaseModel):
    ...     title: str
    ...     def get_type(self) -> EntityType:
    ...         return EntityType("post", "entry")
    >>>
    >>> client = EntityClient(InMemoryContentStore(), InMemoryLinkIndex())
    >>> post = client.create(PostEntry(title="x"))
    >>> client.get(PostEntry, post.id).content.title
    'x'

Invariants:
    - An entity's ID is the address of its first version and never changes
    - Updates link from the ID, never from the previous version
    - The newest update link (by timestamp) is the current version

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backends import (
    BackendError,
    ContentStore,
    Link,
    LinkIndex,
    StoredEntry,
    WriteReceipt,
)
from .client import EntityClient
from .clock import Clock, ManualClock, SystemClock, now
from .codec import check_entry_type, decode, encode, hash_entry
from .config import Settings, get_settings
from .entities import Collection, Empty, EmptyEntity, Entity, EntityType, EntryModel
from .errors import (
    CrudError,
    DeserializationError,
    EntryNotFoundError,
    LinkBaseWrongTypeError,
    MultipleOriginsError,
    NotOriginEntryError,
    UnboundEntityError,
    WrongEntryTypeError,
)
from .inputs import GetEntityInput, UpdateEntityInput
from .observability import setup_logging
from .versions import (
    TAG_ORIGIN,
    TAG_UPDATE,
    fetch_latest,
    find_latest_link,
    resolve_identity,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "EntityClient",
    # Entities
    "Entity",
    "EntityType",
    "EntryModel",
    "Collection",
    "Empty",
    "EmptyEntity",
    # Versioning
    "TAG_ORIGIN",
    "TAG_UPDATE",
    "resolve_identity",
    "fetch_latest",
    "find_latest_link",
    # Codec
    "encode",
    "decode",
    "hash_entry",
    "check_entry_type",
    # Collaborators
    "ContentStore",
    "LinkIndex",
    "Link",
    "StoredEntry",
    "WriteReceipt",
    "Clock",
    "SystemClock",
    "ManualClock",
    "now",
    # Inputs
    "GetEntityInput",
    "UpdateEntityInput",
    # Configuration
    "Settings",
    "get_settings",
    "setup_logging",
    # Errors
    "CrudError",
    "EntryNotFoundError",
    "NotOriginEntryError",
    "MultipleOriginsError",
    "DeserializationError",
    "WrongEntryTypeError",
    "LinkBaseWrongTypeError",
    "UnboundEntityError",
    "BackendError",
]
