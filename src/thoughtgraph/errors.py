"""Exceptions raised by the layers around the graph store.

The store and query engine never raise for unknown ids; these are for callers
that want to reject a user-facing operation before it reaches the store.
"""

from __future__ import annotations

from pathlib import Path


class ThoughtGraphError(Exception):
    """Base exception for thought graph operations."""


class ThoughtNotFoundError(ThoughtGraphError):
    def __init__(self, thought_id: object) -> None:
        self.thought_id = str(thought_id)
        super().__init__(f"Thought '{self.thought_id}' not found")


class TagNotFoundError(ThoughtGraphError):
    def __init__(self, tag_id: object) -> None:
        self.tag_id = str(tag_id)
        super().__init__(f"Tag '{self.tag_id}' not found")


class StoreFileError(ThoughtGraphError):
    """The data file could not be read or decoded."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to load thought graph from {self.path}: {reason}")


class QuerySyntaxError(ThoughtGraphError):
    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid query {text!r}: {reason}")


class EditorError(ThoughtGraphError):
    """The external editor could not be run or was aborted."""
