"""
Error types for entcrud.

This module defines all exception types raised by the entity layer:
- CrudError: Base exception
- EntryNotFoundError: Store has nothing at an expected address
- NotOriginEntryError: An identity was expected but an update address was given
- MultipleOriginsError: Version graph has more than one origin for an address
- DeserializationError: Stored bytes do not decode as the expected model
- WrongEntryTypeError: Stored bytes decoded, but re-hashing did not match
- LinkBaseWrongTypeError: Collection base is not the expected model
- UnboundEntityError: Link helper called on an entity with no link index

Backend failures (BackendError and subclasses) are defined next to the backend
protocols and are never wrapped by the engine.

Invariants:
    - All errors inherit from CrudError
    - Errors carry the offending addresses in `details`
    - No error is recovered from inside the engine
"""

from __future__ import annotations

from typing import Any


class CrudError(Exception):
    """Base exception for all entcrud errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CRUD_ERROR"
        self.details = details or {}


class EntryNotFoundError(CrudError):
    """No live entry exists at the given address.

    Raised when:
    - The address was never written
    - The commit that wrote it has been deleted
    """

    def __init__(self, address: str) -> None:
        super().__init__(
            f"Entry not found for address: {address}",
            code="NOT_FOUND",
            details={"address": address},
        )
        self.address = address


class NotOriginEntryError(CrudError):
    """An update address was used where the entity ID is required."""

    def __init__(self, address: str, origin: str) -> None:
        super().__init__(
            f"Entry address ({address}) is an 'update'; Use origin address ({origin}) as Entry ID",
            code="NOT_ORIGIN",
            details={"address": address, "origin": origin},
        )
        self.address = address
        self.origin = origin


class MultipleOriginsError(CrudError):
    """More than one origin link leaves an address.

    The version graph never legitimately holds two identities for one
    address, so this is treated as corruption and fails the read.
    """

    def __init__(self, address: str, origins: list[str] | None = None) -> None:
        super().__init__(
            f"Found multiple origin links for entry: {address}",
            code="MULTIPLE_ORIGINS",
            details={"address": address, "origins": origins or []},
        )
        self.address = address
        self.origins = origins or []


class DeserializationError(CrudError):
    """Stored bytes could not be decoded as the expected model."""

    def __init__(self, address: str, expected_type: str) -> None:
        super().__init__(
            f"Failed to deserialize entry to type ({expected_type}): {address}",
            code="DESERIALIZATION_ERROR",
            details={"address": address, "expected_type": expected_type},
        )
        self.address = address
        self.expected_type = expected_type


class WrongEntryTypeError(CrudError):
    """Stored bytes decoded as the expected model only by coincidence.

    Attributes:
        address: Address the bytes were read from
        rehash: Hash of the decoded value re-encoded
        expected_type: Model name the caller asked for
    """

    def __init__(self, address: str, rehash: str, expected_type: str) -> None:
        super().__init__(
            f"Deserialized entry to wrong type ({expected_type}); "
            f"hash mismatch: addr={address}, rehash={rehash}",
            code="WRONG_ENTRY_TYPE",
            details={
                "address": address,
                "rehash": rehash,
                "expected_type": expected_type,
            },
        )
        self.address = address
        self.rehash = rehash
        self.expected_type = expected_type


class LinkBaseWrongTypeError(CrudError):
    """The base of a collection query is not the expected model."""

    def __init__(self, base: str, expected_type: str) -> None:
        super().__init__(
            f"Link base ({base}) is not the expected type: {expected_type}",
            code="LINK_BASE_WRONG_TYPE",
            details={"base": base, "expected_type": expected_type},
        )
        self.base = base
        self.expected_type = expected_type


class UnboundEntityError(CrudError):
    """Entity was built without a link index and cannot manage links."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(
            f"Entity ({entity_id}) is not bound to a link index",
            code="UNBOUND_ENTITY",
            details={"id": entity_id},
        )
        self.entity_id = entity_id
