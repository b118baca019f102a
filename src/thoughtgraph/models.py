"""Data models for the thought graph."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# [token] mentions inside a thought body
_MENTION_RE = re.compile(r"\[([A-Za-z0-9_-]+)\]")


def utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_ts(value: str) -> datetime:
    """Stored timestamps are required; a missing one is a malformed entry."""
    if not isinstance(value, str):
        msg = f"expected an ISO timestamp, got {value!r}"
        raise TypeError(msg)
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@dataclass(frozen=True, order=True)
class ThoughtID:
    """Opaque handle for a thought. Compares and sorts by the raw string."""

    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True, order=True)
class TagID:
    """Opaque handle for a tag. Separate namespace from ThoughtID."""

    id: str

    def __str__(self) -> str:
        return self.id


def extract_mentions(text: str) -> list[ThoughtID]:
    """Return the ids of every ``[token]`` mention in text, in order of appearance.

    Duplicates are preserved; callers decide whether to dedupe.
    """
    return [ThoughtID(m) for m in _MENTION_RE.findall(text)]


@dataclass(frozen=True)
class Reference:
    """A directed, annotated edge to another thought (which may not exist)."""

    id: ThoughtID
    notes: str = ""
    access_date: datetime = field(default_factory=utcnow)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Reference:
        return cls(
            id=ThoughtID(d["id"]),
            notes=d.get("notes", ""),
            access_date=_parse_ts(d["access_date"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.id,
            "notes": self.notes,
            "access_date": self.access_date.isoformat(),
        }


@dataclass
class Thought:
    """A note: optional title, body text, tags and outgoing references.

    Tags and reference targets are unique; the first occurrence wins.
    """

    title: str | None
    contents: str
    tags: list[TagID] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = self.created_at
        self.tags = list(dict.fromkeys(self.tags))
        seen: set[ThoughtID] = set()
        refs: list[Reference] = []
        for ref in self.references:
            if ref.id not in seen:
                seen.add(ref.id)
                refs.append(ref)
        self.references = refs

    def _touch(self) -> None:
        self.updated_at = utcnow()

    def update_content(self, new_content: str) -> None:
        self.contents = new_content
        self._touch()

    def update_title(self, new_title: str | None) -> None:
        self.title = new_title
        self._touch()

    def add_tag(self, tag: TagID) -> None:
        if tag not in self.tags:
            self.tags.append(tag)
            self._touch()

    def remove_tag(self, tag: TagID) -> None:
        before = len(self.tags)
        self.tags = [t for t in self.tags if t != tag]
        if len(self.tags) != before:
            self._touch()

    def references_to(self, thought_id: ThoughtID) -> bool:
        return any(r.id == thought_id for r in self.references)

    def add_reference(self, reference: Reference) -> None:
        """Append a reference unless one to the same target already exists."""
        if not self.references_to(reference.id):
            self.references.append(reference)
            self._touch()

    def remove_references_to(self, thought_id: ThoughtID) -> None:
        before = len(self.references)
        self.references = [r for r in self.references if r.id != thought_id]
        if len(self.references) != before:
            self._touch()

    def extract_references_from_content(self) -> list[ThoughtID]:
        return extract_mentions(self.contents)

    @property
    def display_title(self) -> str:
        return self.title or "(Untitled)"

    def copy(self) -> Thought:
        """Copy with fresh lists, so edits never reach a stored thought."""
        return Thought(
            title=self.title,
            contents=self.contents,
            tags=list(self.tags),
            references=list(self.references),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Thought:
        created = _parse_ts(d["created_at"])
        return cls(
            title=d.get("title"),
            contents=d.get("contents", ""),
            tags=[TagID(t) for t in d.get("tags", [])],
            references=[Reference.from_dict(r) for r in d.get("references", [])],
            created_at=created,
            updated_at=_parse_ts(d["updated_at"]) if d.get("updated_at") else created,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "contents": self.contents,
            "tags": [t.id for t in self.tags],
            "references": [r.to_dict() for r in self.references],
            "created_at": self.created_at.isoformat(),
            "updated_at": (self.updated_at or self.created_at).isoformat(),
        }


@dataclass
class Tag:
    """A named category. Thoughts refer to tags by TagID."""

    description: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = self.created_at

    def update_description(self, new_description: str) -> None:
        self.description = new_description
        self.updated_at = utcnow()

    def copy(self) -> Tag:
        return Tag(self.description, self.created_at, self.updated_at)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Tag:
        created = _parse_ts(d["created_at"])
        return cls(
            description=d.get("description", ""),
            created_at=created,
            updated_at=_parse_ts(d["updated_at"]) if d.get("updated_at") else created,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": (self.updated_at or self.created_at).isoformat(),
        }
