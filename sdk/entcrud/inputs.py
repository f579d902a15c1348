"""
Request models for application code built on EntityClient.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class GetEntityInput(BaseModel):
    """Identifies an entity to read or delete."""

    id: str


class UpdateEntityInput(BaseModel, Generic[T]):
    """Version address to update from and the new properties."""

    addr: str
    properties: T
