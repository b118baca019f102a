"""In-memory graph of notes ("thoughts") that tag and reference each other.

Store:
    ThoughtGraph            thoughts, tags and a derived backreference index
    apply(Command)          PutThought | DeleteThought | PutTag | DeleteTag
    query(Query)            HasTag | References | ReferencedBy | And | Or

Data file (see thoughtgraph.persistence):
    thoughts.json           {"v": 1, "thoughts": {...}, "tags": {...}, "backreferences": {...}}

The backreference index is owned by the store and only changes inside apply():
backreferences[T] contains S exactly when thoughts[S] holds a reference to T.
"""

from thoughtgraph.graph import Command, DeleteTag, DeleteThought, PutTag, PutThought, ThoughtGraph
from thoughtgraph.models import Reference, Tag, TagID, Thought, ThoughtID, extract_mentions
from thoughtgraph.query import And, HasTag, Or, Query, ReferencedBy, References, evaluate, parse_query

__all__ = [
    "And",
    "Command",
    "DeleteTag",
    "DeleteThought",
    "HasTag",
    "Or",
    "PutTag",
    "PutThought",
    "Query",
    "Reference",
    "ReferencedBy",
    "References",
    "Tag",
    "TagID",
    "Thought",
    "ThoughtGraph",
    "ThoughtID",
    "evaluate",
    "extract_mentions",
    "parse_query",
]
