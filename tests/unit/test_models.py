"""
Unit tests for thought, tag and reference models.
"""

from dataclasses import FrozenInstanceError
from datetime import UTC, datetime, timedelta

import pytest

from thoughtgraph.models import Reference, Tag, TagID, Thought, ThoughtID, extract_mentions

EPOCH = datetime(2024, 1, 1, 12, 0, 0, 123456, tzinfo=UTC)


class TestIds:
    def test_ids_compare_by_string(self):
        assert ThoughtID("a") == ThoughtID("a")
        assert ThoughtID("a") < ThoughtID("b")
        assert sorted([ThoughtID("b"), ThoughtID("B"), ThoughtID("a")]) == [
            ThoughtID("B"), ThoughtID("a"), ThoughtID("b"),
        ]

    def test_namespaces_are_disjoint(self):
        assert ThoughtID("x") != TagID("x")
        assert len({ThoughtID("x"), TagID("x")}) == 2

    def test_str_is_raw_id(self):
        assert str(ThoughtID("note-1")) == "note-1"
        assert f"#{TagID('rust')}" == "#rust"


class TestExtractMentions:
    def test_finds_bracketed_ids_in_order(self):
        text = "This references [thought1] and [thought2] and [invalid-] but not just plain text."
        assert extract_mentions(text) == [ThoughtID("thought1"), ThoughtID("thought2"), ThoughtID("invalid-")]

    def test_grammar_is_letters_digits_underscore_hyphen(self):
        text = "[a_b] [C-3] [has space] [dot.ted] [] [[nested]]"
        assert extract_mentions(text) == [ThoughtID("a_b"), ThoughtID("C-3"), ThoughtID("nested")]

    def test_duplicates_preserved(self):
        assert extract_mentions("[x] then [x]") == [ThoughtID("x"), ThoughtID("x")]

    def test_no_mentions(self):
        assert extract_mentions("plain text") == []

    def test_thought_method_uses_contents(self):
        thought = Thought(None, "see [a]")
        assert thought.extract_references_from_content() == [ThoughtID("a")]


class TestThought:
    def test_new_thought_timestamps_equal(self):
        thought = Thought("t", "body")
        assert thought.created_at == thought.updated_at
        assert thought.created_at.tzinfo is not None

    def test_duplicate_tags_and_references_collapse(self):
        thought = Thought(
            None,
            "body",
            tags=[TagID("a"), TagID("b"), TagID("a")],
            references=[Reference(ThoughtID("x"), "first"), Reference(ThoughtID("x"), "second")],
        )
        assert thought.tags == [TagID("a"), TagID("b")]
        assert [r.notes for r in thought.references] == ["first"]

    def test_add_tag_is_noop_when_present(self):
        thought = Thought(None, "body", tags=[TagID("a")], created_at=EPOCH)
        thought.add_tag(TagID("a"))
        assert thought.tags == [TagID("a")]
        assert thought.updated_at == EPOCH

        thought.add_tag(TagID("b"))
        assert thought.tags == [TagID("a"), TagID("b")]
        assert thought.updated_at > EPOCH

    def test_remove_tag(self):
        thought = Thought(None, "body", tags=[TagID("a")], created_at=EPOCH)
        thought.remove_tag(TagID("missing"))
        assert thought.updated_at == EPOCH
        thought.remove_tag(TagID("a"))
        assert thought.tags == []
        assert thought.updated_at > EPOCH

    def test_add_reference_one_edge_per_target(self):
        thought = Thought(None, "body", created_at=EPOCH)
        thought.add_reference(Reference(ThoughtID("x"), "one"))
        thought.add_reference(Reference(ThoughtID("x"), "two"))
        assert [(r.id, r.notes) for r in thought.references] == [(ThoughtID("x"), "one")]
        assert thought.references_to(ThoughtID("x"))

    def test_remove_references_to(self):
        thought = Thought(None, "body", references=[Reference(ThoughtID("x")), Reference(ThoughtID("y"))])
        thought.remove_references_to(ThoughtID("x"))
        assert [r.id for r in thought.references] == [ThoughtID("y")]

    def test_update_content_and_title_refresh_updated_at(self):
        thought = Thought("old", "old body", created_at=EPOCH)
        thought.update_content("new body")
        first = thought.updated_at
        assert first > EPOCH
        thought.update_title(None)
        assert thought.title is None
        assert thought.updated_at >= first
        assert thought.created_at == EPOCH

    def test_copy_does_not_alias_lists(self):
        thought = Thought(None, "body", tags=[TagID("a")])
        clone = thought.copy()
        clone.add_tag(TagID("b"))
        clone.add_reference(Reference(ThoughtID("x")))
        assert thought.tags == [TagID("a")]
        assert thought.references == []
        assert clone != thought

    def test_display_title(self):
        assert Thought(None, "b").display_title == "(Untitled)"
        assert Thought("Hello", "b").display_title == "Hello"

    def test_dict_roundtrip_keeps_microseconds(self):
        thought = Thought(
            "title",
            "body",
            tags=[TagID("t")],
            references=[Reference(ThoughtID("x"), "why", EPOCH + timedelta(microseconds=1))],
            created_at=EPOCH,
            updated_at=EPOCH + timedelta(seconds=5),
        )
        assert Thought.from_dict(thought.to_dict()) == thought

    def test_from_dict_defaults(self):
        thought = Thought.from_dict({"contents": "body", "created_at": EPOCH.isoformat()})
        assert thought.title is None
        assert thought.tags == []
        assert thought.references == []
        assert thought.updated_at == EPOCH

    def test_naive_timestamps_read_as_utc(self):
        thought = Thought.from_dict({"contents": "b", "created_at": "2024-01-01T12:00:00"})
        assert thought.created_at == datetime(2024, 1, 1, 12, tzinfo=UTC)

    def test_missing_created_at_is_rejected(self):
        with pytest.raises(KeyError):
            Thought.from_dict({"contents": "body"})

    def test_null_timestamp_is_rejected(self):
        with pytest.raises(TypeError):
            Thought.from_dict({"contents": "body", "created_at": None})


class TestTag:
    def test_update_description(self):
        tag = Tag("old", created_at=EPOCH)
        assert tag.updated_at == EPOCH
        tag.update_description("new")
        assert tag.description == "new"
        assert tag.updated_at > EPOCH

    def test_dict_roundtrip(self):
        tag = Tag("desc", created_at=EPOCH, updated_at=EPOCH + timedelta(days=1))
        assert Tag.from_dict(tag.to_dict()) == tag


class TestReference:
    def test_dict_roundtrip(self):
        ref = Reference(ThoughtID("x"), "notes", EPOCH)
        assert Reference.from_dict(ref.to_dict()) == ref

    def test_missing_access_date_is_rejected(self):
        with pytest.raises(KeyError):
            Reference.from_dict({"id": "x", "notes": ""})

    def test_reference_is_immutable(self):
        ref = Reference(ThoughtID("x"))
        with pytest.raises(FrozenInstanceError):
            ref.notes = "changed"  # type: ignore[misc]
