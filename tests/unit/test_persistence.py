"""
Unit tests for the JSON data file.
"""

import json

import pytest

from thoughtgraph import DeleteThought, ThoughtGraph, ThoughtID
from thoughtgraph.errors import StoreFileError
from thoughtgraph.persistence import dumps, load_graph, load_or_create_graph, loads, save_graph

TS = "2024-01-01T00:00:00+00:00"


class TestRoundTrip:
    def test_save_and_load_is_exact(self, sample_graph, tmp_path):
        path = save_graph(sample_graph, tmp_path / "g.json")
        restored = load_graph(path)

        assert restored == sample_graph
        original = sample_graph.get_thought(ThoughtID("rust"))
        loaded = restored.get_thought(ThoughtID("rust"))
        assert loaded.created_at == original.created_at
        assert loaded.references[0].access_date == original.references[0].access_date

    def test_roundtrip_after_delete(self, sample_graph, tmp_path):
        sample_graph.apply(DeleteThought(ThoughtID("programming")))
        path = save_graph(sample_graph, tmp_path / "g.json")

        restored = load_graph(path)

        assert restored == sample_graph
        assert restored.get_backlinks(ThoughtID("programming")) == []

    def test_document_layout(self, sample_graph):
        data = json.loads(dumps(sample_graph))
        assert data["v"] == 1
        assert set(data) == {"v", "thoughts", "tags", "backreferences"}
        assert data["backreferences"] == {"programming": ["rust"], "rust": ["memory-safety"]}
        assert data["thoughts"]["rust"]["references"][0]["notes"] == "Type of programming"

    def test_save_creates_parent_dirs_and_no_tmp_left(self, graph, tmp_path):
        path = tmp_path / "nested" / "dir" / "g.json"
        save_graph(graph, path)
        assert path.exists()
        assert not list(path.parent.glob("*.tmp"))


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreFileError):
            load_graph(tmp_path / "missing.json")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("")
        with pytest.raises(StoreFileError, match="empty"):
            load_graph(path)

    def test_invalid_json(self):
        with pytest.raises(StoreFileError, match="invalid JSON"):
            loads("{not json")

    def test_wrong_shape(self):
        with pytest.raises(StoreFileError):
            loads("[1, 2, 3]")

    @pytest.mark.parametrize(
        "document",
        [
            {"thoughts": {"a": {"contents": "x", "created_at": "yesterday"}}},
            {"thoughts": {"a": "not-a-dict"}},
            {"thoughts": {}, "tags": []},
            {"thoughts": {}, "backreferences": []},
            {"thoughts": None},
            {"thoughts": {}, "tags": {"t": "desc"}},
            {"thoughts": {}, "backreferences": {"a": "b"}},
            {"thoughts": {"a": {"contents": "x", "created_at": TS, "references": "b"}}},
            {"thoughts": {"a": {"contents": "x", "created_at": TS, "references": ["b"]}}},
        ],
    )
    def test_malformed_entry(self, document):
        with pytest.raises(StoreFileError, match="malformed"):
            loads(json.dumps(document))

    @pytest.mark.parametrize(
        "document",
        [
            {"thoughts": {"a": {"contents": "x"}}},
            {"thoughts": {}, "tags": {"t": {"description": "d"}}},
            {"thoughts": {"a": {"contents": "x", "created_at": TS, "references": [{"id": "b"}]}}},
        ],
    )
    def test_missing_timestamp_is_malformed(self, document):
        with pytest.raises(StoreFileError, match="malformed"):
            loads(json.dumps(document))

    def test_load_graph_reports_path(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"thoughts": {"a": "x"}}))
        with pytest.raises(StoreFileError, match="Failed to load thought graph from") as info:
            load_graph(path)
        assert info.value.path == path


class TestLoadOrCreate:
    def test_creates_when_missing(self, tmp_path):
        path = tmp_path / "new.json"
        graph, created = load_or_create_graph(path)
        assert created
        assert graph == ThoughtGraph()
        assert path.exists()

    def test_loads_existing(self, sample_graph, tmp_path):
        path = save_graph(sample_graph, tmp_path / "g.json")
        graph, created = load_or_create_graph(path)
        assert not created
        assert graph == sample_graph
