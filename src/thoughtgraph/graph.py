"""In-memory thought graph with a derived backreference index.

ThoughtGraph is the public API:
    graph = ThoughtGraph()
    graph.apply(PutThought(ThoughtID("a"), Thought(None, "first")))
    graph.apply(PutThought(ThoughtID("b"), Thought(None, "see [a]", references=[Reference(ThoughtID("a"))])))
    graph.get_backlinks(ThoughtID("a"))     # [ThoughtID("b")]
    graph.query(References(ThoughtID("a"))) # {ThoughtID("b")}

State:
    thoughts        ThoughtID -> Thought
    tags            TagID -> Tag
    backreferences  ThoughtID -> set[ThoughtID]   (derived, never edited by callers)

backreferences[T] holds S exactly when thoughts[S] references T. Entries are
pruned when they become empty. Deleting T drops backreferences[T] outright, so
notes that still literally reference T are no longer indexed under it until
they are put again.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from thoughtgraph.models import Reference, Tag, TagID, Thought, ThoughtID, utcnow
from thoughtgraph.query import Query, evaluate

log = logging.getLogger("thoughtgraph.graph")

AUTO_REFERENCE_NOTE = "Auto-reference from [{}]"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PutThought:
    id: ThoughtID
    thought: Thought


@dataclass(frozen=True)
class DeleteThought:
    id: ThoughtID


@dataclass(frozen=True)
class PutTag:
    id: TagID
    tag: Tag


@dataclass(frozen=True)
class DeleteTag:
    id: TagID


Command = PutThought | DeleteThought | PutTag | DeleteTag


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ThoughtGraph:
    """Owns thoughts, tags and the backreference index.

    All mutation goes through apply(). Every read hands out copies.
    """

    def __init__(self) -> None:
        self._thoughts: dict[ThoughtID, Thought] = {}
        self._tags: dict[TagID, Tag] = {}
        self._backreferences: dict[ThoughtID, set[ThoughtID]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(self, command: Command) -> None:
        """Apply a command. Total: unknown ids are no-ops, nothing is raised."""
        with self._lock:
            match command:
                case PutThought(id=tid, thought=thought):
                    old = self._thoughts.get(tid)
                    if old is not None:
                        self._retract(tid, old)
                    stored = thought.copy()
                    self._thoughts[tid] = stored
                    for ref in stored.references:
                        self._backreferences.setdefault(ref.id, set()).add(tid)
                case DeleteThought(id=tid):
                    old = self._thoughts.pop(tid, None)
                    if old is not None:
                        self._retract(tid, old)
                        self._backreferences.pop(tid, None)
                case PutTag(id=tag_id, tag=tag):
                    self._tags[tag_id] = tag.copy()
                case DeleteTag(id=tag_id):
                    self._tags.pop(tag_id, None)
                case _:
                    msg = f"Unknown command: {command!r}"
                    raise TypeError(msg)
        log.debug("applied %s", command)

    def _retract(self, source: ThoughtID, thought: Thought) -> None:
        """Remove every backreference entry contributed by source."""
        for ref in thought.references:
            backrefs = self._backreferences.get(ref.id)
            if backrefs is None:
                continue
            backrefs.discard(source)
            if not backrefs:
                del self._backreferences[ref.id]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_thought(self, thought_id: ThoughtID) -> Thought | None:
        with self._lock:
            thought = self._thoughts.get(thought_id)
            return thought.copy() if thought is not None else None

    def get_tag(self, tag_id: TagID) -> Tag | None:
        with self._lock:
            tag = self._tags.get(tag_id)
            return tag.copy() if tag is not None else None

    def get_backlinks(self, thought_id: ThoughtID) -> list[ThoughtID]:
        """Ids of thoughts that reference thought_id, sorted."""
        with self._lock:
            return sorted(self._backreferences.get(thought_id, ()))

    def has_thought(self, thought_id: ThoughtID) -> bool:
        with self._lock:
            return thought_id in self._thoughts

    def has_tag(self, tag_id: TagID) -> bool:
        with self._lock:
            return tag_id in self._tags

    def list_thoughts(self) -> list[ThoughtID]:
        with self._lock:
            return sorted(self._thoughts)

    def list_tags(self) -> list[TagID]:
        with self._lock:
            return sorted(self._tags)

    def iter_thoughts(self) -> Iterator[tuple[ThoughtID, Thought]]:
        """Iterate (id, copy) pairs in id order over a snapshot."""
        with self._lock:
            snapshot = [(tid, self._thoughts[tid].copy()) for tid in sorted(self._thoughts)]
        yield from snapshot

    def iter_tags(self) -> Iterator[tuple[TagID, Tag]]:
        with self._lock:
            snapshot = [(tag_id, self._tags[tag_id].copy()) for tag_id in sorted(self._tags)]
        yield from snapshot

    @property
    def thought_count(self) -> int:
        with self._lock:
            return len(self._thoughts)

    @property
    def tag_count(self) -> int:
        with self._lock:
            return len(self._tags)

    # ------------------------------------------------------------------
    # Query surface (read-only view consumed by thoughtgraph.query)
    # ------------------------------------------------------------------

    def thoughts_with_tag(self, tag_id: TagID) -> set[ThoughtID]:
        """Ids of thoughts whose tag list names tag_id, whether or not the tag exists."""
        with self._lock:
            return {tid for tid, t in self._thoughts.items() if tag_id in t.tags}

    def reference_targets(self, thought_id: ThoughtID) -> list[ThoughtID] | None:
        """Targets of a thought's references in stored order, or None if it doesn't exist."""
        with self._lock:
            thought = self._thoughts.get(thought_id)
            if thought is None:
                return None
            return [r.id for r in thought.references]

    def query(self, query: Query) -> set[ThoughtID]:
        """Evaluate a query against the current state."""
        with self._lock:
            return evaluate(self, query)

    def find_thoughts(self, query: Query) -> list[tuple[ThoughtID, Thought]]:
        """Matching (id, copy) pairs, sorted by id."""
        with self._lock:
            matches = self.query(query)
            return [(tid, self._thoughts[tid].copy()) for tid in sorted(matches) if tid in self._thoughts]

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def create_thought(
        self,
        thought_id: ThoughtID,
        title: str | None,
        contents: str,
        tags: Iterable[TagID] = (),
        references: Iterable[Reference] = (),
    ) -> Thought:
        """Put a fresh thought and return a copy of what was stored."""
        thought = Thought(title=title, contents=contents, tags=list(tags), references=list(references))
        self.apply(PutThought(thought_id, thought))
        return thought.copy()

    def create_tag(self, tag_id: TagID, description: str) -> Tag:
        tag = Tag(description)
        self.apply(PutTag(tag_id, tag))
        return tag.copy()

    def process_auto_references(self, thought_id: ThoughtID) -> list[ThoughtID]:
        """Add references for ``[id]`` mentions in a thought's body.

        Skips self-mentions, mentions of thoughts that don't exist and targets
        that are already referenced. Returns the ids that were added.
        """
        with self._lock:
            current = self._thoughts.get(thought_id)
            if current is None:
                return []
            updated = current.copy()
            added: list[ThoughtID] = []
            for ref_id in updated.extract_references_from_content():
                if ref_id == thought_id or updated.references_to(ref_id):
                    continue
                if ref_id not in self._thoughts:
                    continue
                updated.add_reference(Reference(ref_id, AUTO_REFERENCE_NOTE.format(ref_id), utcnow()))
                added.append(ref_id)
            if added:
                self.apply(PutThought(thought_id, updated))
                log.info("auto-referenced %s -> %s", thought_id, ", ".join(map(str, added)))
            return added

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def check_invariants(self) -> list[str]:
        """Return index entries not backed by a stored reference (empty when sound)."""
        problems: list[str] = []
        with self._lock:
            for target, sources in self._backreferences.items():
                if not sources:
                    problems.append(f"empty backreference entry for [{target}]")
                for source in sources:
                    thought = self._thoughts.get(source)
                    if thought is None:
                        problems.append(f"[{source}] indexed as referencing [{target}] but does not exist")
                    elif not thought.references_to(target):
                        problems.append(f"[{source}] indexed as referencing [{target}] but has no such reference")
        return problems

    def unindexed_references(self) -> list[tuple[ThoughtID, ThoughtID]]:
        """(source, target) pairs stored in notes but missing from the index.

        These only arise from deleting a note that others still reference.
        """
        with self._lock:
            return sorted(
                (source, ref.id)
                for source, thought in self._thoughts.items()
                for ref in thought.references
                if source not in self._backreferences.get(ref.id, ())
            )

    def dangling_references(self) -> list[tuple[ThoughtID, ThoughtID]]:
        """(source, target) pairs whose target is not a stored thought."""
        with self._lock:
            return sorted(
                (source, ref.id)
                for source, thought in self._thoughts.items()
                for ref in thought.references
                if ref.id not in self._thoughts
            )

    def dangling_tags(self) -> list[tuple[ThoughtID, TagID]]:
        with self._lock:
            return sorted(
                (tid, tag_id)
                for tid, thought in self._thoughts.items()
                for tag_id in thought.tags
                if tag_id not in self._tags
            )

    # ------------------------------------------------------------------
    # Snapshot (persistence)
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "thoughts": {tid.id: self._thoughts[tid].to_dict() for tid in sorted(self._thoughts)},
                "tags": {tag_id.id: self._tags[tag_id].to_dict() for tag_id in sorted(self._tags)},
                "backreferences": {
                    target.id: sorted(s.id for s in sources)
                    for target, sources in sorted(self._backreferences.items())
                },
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ThoughtGraph:
        """Restore a snapshot.

        The stored index is kept only where a loaded note still carries the
        reference; entries dropped by deletes stay dropped.
        """
        graph = cls()
        for key, raw in data.get("thoughts", {}).items():
            graph._thoughts[ThoughtID(key)] = Thought.from_dict(raw)
        for key, raw in data.get("tags", {}).items():
            graph._tags[TagID(key)] = Tag.from_dict(raw)
        if "backreferences" in data:
            for key, sources in data["backreferences"].items():
                target = ThoughtID(key)
                kept = {
                    ThoughtID(s) for s in sources
                    if ThoughtID(s) in graph._thoughts and graph._thoughts[ThoughtID(s)].references_to(target)
                }
                if kept:
                    graph._backreferences[target] = kept
        else:
            for tid, thought in graph._thoughts.items():
                for ref in thought.references:
                    graph._backreferences.setdefault(ref.id, set()).add(tid)
        return graph

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThoughtGraph):
            return NotImplemented
        return self._state() == other._state()

    def _state(self) -> tuple[dict[ThoughtID, Thought], dict[TagID, Tag], dict[ThoughtID, set[ThoughtID]]]:
        # Copied under this graph's lock only; comparison happens outside it.
        with self._lock:
            return (
                dict(self._thoughts),
                dict(self._tags),
                {target: set(sources) for target, sources in self._backreferences.items()},
            )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ThoughtGraph(thoughts={self.thought_count}, tags={self.tag_count})"
