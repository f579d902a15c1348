"""
Canonical encoding and entry type verification.

Entries are pydantic models serialized as canonical JSON: every field dumped
in JSON mode under its alias, keys sorted, compact separators, UTF-8. Dumping
by alias keeps encode and model_validate_json symmetric. The content address of
an entry is the SHA-256 of those bytes.

Stored bytes carry no type tag. A successful decode is therefore not proof of
type: pydantic ignores unknown keys, so the bytes of a richer model can decode
cleanly into a model with a subset of its fields. check_entry_type closes the
gap by re-encoding the decoded value and comparing its hash to the address the
bytes were read from.

Invariants:
    - decode(encode(v)) re-hashes to hash_entry(v)
    - Identical values always encode to identical bytes
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .backends.base import ContentHash, StoredEntry, hash_bytes
from .errors import DeserializationError, WrongEntryTypeError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)


def type_name(model: type[Any]) -> str:
    """Name used for a model in error messages."""
    return getattr(model, "__name__", repr(model))


def encode(entry: BaseModel) -> bytes:
    """Serialize an entry to its canonical bytes."""
    payload = entry.model_dump(mode="json", by_alias=True)
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def decode(data: bytes, model: type[E]) -> E:
    """Parse canonical bytes as `model`.

    Raises:
        pydantic.ValidationError: If the bytes do not fit the model
    """
    return model.model_validate_json(data)


def hash_entry(entry: BaseModel) -> ContentHash:
    """Content address an entry would be stored under."""
    return hash_bytes(encode(entry))


def check_entry_type(stored: StoredEntry, model: type[E]) -> E:
    """Verify a stored entry is the expected entry type.

    - `stored` - entry fetched from the content store
    - `model` - the expected entry type

    An entry type check could fail with:

    - DeserializationError - the bytes do not decode as `model`
    - WrongEntryTypeError - the bytes decoded, but only by coincidence

    Example:
        >>> post = check_entry_type(store.get(address), PostEntry)
    """
    logger.debug(
        "Checking entry type",
        extra={"address": stored.address, "expected_type": type_name(model)},
    )
    try:
        entry = decode(stored.data, model)
    except ValidationError:
        raise DeserializationError(stored.address, type_name(model))

    # A different hash means some stored fields were dropped (or defaulted)
    # while decoding into `model`.
    rehash = hash_entry(entry)

    logger.debug(
        "Verifying deserialized entry hash matches address",
        extra={"address": stored.address, "rehash": rehash},
    )
    if rehash != stored.address:
        raise WrongEntryTypeError(stored.address, rehash, type_name(model))

    return entry
