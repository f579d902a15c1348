"""
Version resolution over the origin/update link graph.

Every update of an entity is a new immutable entry. Two links tie it to the
entity's identity (the address of the first version):

    identity -[update]-> version      (one per update, fan-out)
    version  -[origin]-> identity     (one per version)

Updates never point at their predecessor, so finding the current version is a
single scan over the identity's update links, picking the newest by link
timestamp. Concurrent updates are not merged; the newest link wins and the
other branch is simply never selected.

Tie-break:
    Links with equal timestamps are ordered by handle; the greater handle
    wins. Handles are opaque, so the winner among equal timestamps is
    arbitrary but stable for a given graph.
"""

from __future__ import annotations

import logging

from .backends.base import ContentHash, ContentStore, Link, LinkIndex, StoredEntry
from .errors import EntryNotFoundError, MultipleOriginsError, NotOriginEntryError

logger = logging.getLogger(__name__)

TAG_UPDATE = "update"
TAG_ORIGIN = "origin"


def find_latest_link(links: list[Link]) -> Link | None:
    """Find the latest link from a list of links."""
    if not links:
        return None
    return max(links, key=lambda link: (link.timestamp_ms, link.handle))


def resolve_identity(links: LinkIndex, address: ContentHash) -> ContentHash:
    """Get the entity ID (origin address) for any version address.

    Raises:
        MultipleOriginsError: If `address` has more than one origin link
    """
    origin_links = links.query(address, TAG_ORIGIN)

    logger.debug(
        "Found origin links",
        extra={"address": address, "count": len(origin_links)},
    )

    origins = [link.target for link in origin_links]
    if not origins:
        return address
    if len(origins) == 1:
        return origins[0]
    raise MultipleOriginsError(address, origins)


def fetch_entry(store: ContentStore, address: ContentHash) -> StoredEntry:
    """Fetch an entry, failing if nothing live is stored at `address`."""
    stored = store.get(address)
    if stored is None:
        raise EntryNotFoundError(address)
    return stored


def fetch_latest(
    store: ContentStore,
    links: LinkIndex,
    id: ContentHash,
) -> tuple[StoredEntry, StoredEntry]:
    """Fetch the current version of an entity.

    Args:
        store: Content store
        links: Link index
        id: Entity ID; must be an origin address

    Returns:
        (latest, origin) entries. They are the same entry when the entity was
        never updated.

    Raises:
        NotOriginEntryError: If `id` is an update address
        MultipleOriginsError: If the origin links are inconsistent
        EntryNotFoundError: If the origin entry is missing or deleted
    """
    origin_address = resolve_identity(links, id)
    if origin_address != id:
        raise NotOriginEntryError(id, origin_address)

    origin = fetch_entry(store, id)

    update_links = links.query(id, TAG_UPDATE)
    logger.debug(
        "Found update links",
        extra={"id": id, "count": len(update_links)},
    )

    latest_link = find_latest_link(update_links)
    if latest_link is None:
        return origin, origin

    logger.debug(
        "Determined newest update",
        extra={"id": id, "address": latest_link.target, "timestamp_ms": latest_link.timestamp_ms},
    )
    latest = store.get(latest_link.target)
    if latest is None:
        logger.warning(
            "Newest update is not in the store; using origin entry",
            extra={"id": id, "address": latest_link.target},
        )
        return origin, origin

    return latest, origin
