"""
Property-based tests for the graph store.

Properties:
- The backreference index is always sound (every entry backed by a stored reference)
- The index holds exactly the pairs put since the target was last deleted
- Overwriting a note leaves no trace of its old references
- Deleting a missing id changes nothing
- A save/load snapshot reproduces the graph
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from thoughtgraph import (
    DeleteTag,
    DeleteThought,
    PutTag,
    PutThought,
    Reference,
    Tag,
    TagID,
    Thought,
    ThoughtGraph,
    ThoughtID,
)

# Small id pools so commands collide often.
thought_ids = st.sampled_from([ThoughtID(x) for x in "abcdef"])
tag_ids = st.sampled_from([TagID(x) for x in ("t1", "t2", "t3")])

thoughts = st.builds(
    lambda refs, tags: Thought(None, "body", tags=tags, references=[Reference(r) for r in refs]),
    st.lists(thought_ids, max_size=4),
    st.lists(tag_ids, max_size=3),
)

commands = st.one_of(
    st.builds(PutThought, thought_ids, thoughts),
    st.builds(DeleteThought, thought_ids),
    st.builds(PutTag, tag_ids, st.builds(Tag, st.text(max_size=10))),
    st.builds(DeleteTag, tag_ids),
)


def expected_index(commands_applied: list) -> dict[ThoughtID, set[ThoughtID]]:
    """Replay commands against a plain model of the index."""
    notes: dict[ThoughtID, set[ThoughtID]] = {}
    last_put: dict[ThoughtID, int] = {}
    last_delete: dict[ThoughtID, int] = {}
    for seq, command in enumerate(commands_applied):
        if isinstance(command, PutThought):
            notes[command.id] = {r.id for r in command.thought.references}
            last_put[command.id] = seq
        elif isinstance(command, DeleteThought) and command.id in notes:
            del notes[command.id]
            last_delete[command.id] = seq

    index: dict[ThoughtID, set[ThoughtID]] = {}
    for source, targets in notes.items():
        for target in targets:
            if last_put[source] > last_delete.get(target, -1):
                index.setdefault(target, set()).add(source)
    return index


class TestIndexProperties:
    @given(st.lists(commands, max_size=40))
    @settings(max_examples=200)
    def test_index_is_sound(self, cmds):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)
            assert graph.check_invariants() == []

    @given(st.lists(commands, max_size=40))
    @settings(max_examples=200)
    def test_index_matches_model(self, cmds):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)

        index = expected_index(cmds)
        for target in (ThoughtID(x) for x in "abcdef"):
            assert graph.get_backlinks(target) == sorted(index.get(target, set()))

    @given(st.lists(st.one_of(st.builds(PutThought, thought_ids, thoughts), st.builds(PutTag, tag_ids, st.builds(Tag, st.text(max_size=10)))), max_size=30))
    def test_index_is_complete_without_deletes(self, cmds):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)
        assert graph.unindexed_references() == []

    @given(st.lists(commands, max_size=20), thought_ids, thoughts, thoughts)
    def test_overwrite_forgets_old_references(self, cmds, tid, first, second):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)

        graph.apply(PutThought(tid, first))
        graph.apply(PutThought(tid, second))

        new_targets = {r.id for r in second.references}
        for target in (ThoughtID(x) for x in "abcdef"):
            assert (tid in graph.get_backlinks(target)) == (target in new_targets)


class TestStateProperties:
    @given(st.lists(commands, max_size=30), thought_ids)
    def test_delete_missing_is_noop(self, cmds, tid):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)
        graph.apply(DeleteThought(tid))

        before = graph.to_dict()
        graph.apply(DeleteThought(tid))
        assert graph.to_dict() == before

    @given(st.lists(commands, max_size=30))
    def test_snapshot_roundtrip(self, cmds):
        graph = ThoughtGraph()
        for command in cmds:
            graph.apply(command)
        assert ThoughtGraph.from_dict(graph.to_dict()) == graph
