"""
Content models shared by the test suite.

PostEntry's fields are a superset of CommentEntry's, so a post's bytes decode
cleanly as a comment. That is the case type verification has to catch.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from entcrud import EntityType


class PostEntry(BaseModel):
    title: str
    message: str
    published_at: int | None = None
    last_updated: int | None = None

    def get_type(self) -> EntityType:
        return EntityType("post", "entry")


class CommentEntry(BaseModel):
    message: str
    published_at: int | None = None
    last_updated: int | None = None

    def get_type(self) -> EntityType:
        return EntityType("comment", "entry")


class PostSummary(BaseModel):
    title: str

    def get_type(self) -> EntityType:
        return EntityType("post", "summary")


class ReactionEntry(BaseModel):
    emoji: str
    reacted_at: int = Field(alias="reactedAt")

    def get_type(self) -> EntityType:
        return EntityType("reaction", "entry")
