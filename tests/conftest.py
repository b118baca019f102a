"""
Pytest configuration and fixtures for thoughtgraph tests.
"""

import pytest

from thoughtgraph import PutTag, PutThought, Reference, Tag, TagID, Thought, ThoughtGraph, ThoughtID


@pytest.fixture
def graph():
    """Provide an empty graph."""
    return ThoughtGraph()


@pytest.fixture
def sample_graph():
    """Provide a small graph: memory-safety -> rust -> programming, two tags."""
    g = ThoughtGraph()
    g.apply(PutTag(TagID("programming"), Tag("Programming")))
    g.apply(PutTag(TagID("concept"), Tag("Concept")))
    g.apply(PutThought(
        ThoughtID("rust"),
        Thought(
            "Rust Programming Language",
            "Rust is a systems programming language focused on safety and performance.",
            tags=[TagID("programming")],
            references=[Reference(ThoughtID("programming"), "Type of programming")],
        ),
    ))
    g.apply(PutThought(
        ThoughtID("programming"),
        Thought("Programming", "The process of creating software.", tags=[TagID("concept")]),
    ))
    g.apply(PutThought(
        ThoughtID("memory-safety"),
        Thought(
            "Memory Safety",
            "A property that ensures memory accesses are always valid.",
            tags=[TagID("concept")],
            references=[Reference(ThoughtID("rust"), "Rust enforces memory safety")],
        ),
    ))
    return g


@pytest.fixture
def data_file(tmp_path, monkeypatch):
    """Point the CLI at a graph file inside tmp_path, away from any thoughts.toml."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("THOUGHTGRAPH_FILE", raising=False)
    return tmp_path / "thoughts.json"


# Markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "hypothesis: property-based tests"
    )
