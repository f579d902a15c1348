"""
entcrud Test Suite.

This package contains:
- unit/: Unit tests (codec, version graph, backends, config)
- integration/: EntityClient against the in-memory and SQLite backends
- models.py: Content models shared by both
"""
