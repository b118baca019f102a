"""Read and write the graph data file.

Layout (single JSON document, rewritten atomically on every save):

    {
      "v": 1,
      "thoughts": {
        "<id>": {"title": ..., "contents": ..., "tags": [...],
                 "references": [{"id": ..., "notes": ..., "access_date": ...}],
                 "created_at": ..., "updated_at": ...}
      },
      "tags": {"<id>": {"description": ..., "created_at": ..., "updated_at": ...}},
      "backreferences": {"<target>": ["<source>", ...]}
    }

Timestamps are ISO-8601 with microseconds and an explicit UTC offset, so a
save/load round-trip is exact.
"""

from __future__ import annotations

import fcntl
import json
import logging
from pathlib import Path
from typing import Any

from thoughtgraph.errors import StoreFileError
from thoughtgraph.graph import ThoughtGraph

log = logging.getLogger("thoughtgraph.persistence")

FORMAT_VERSION = 1


def dumps(graph: ThoughtGraph) -> str:
    data: dict[str, Any] = {"v": FORMAT_VERSION, **graph.to_dict()}
    return json.dumps(data, indent=2, ensure_ascii=False)


def loads(text: str, path: Path | str = "<string>") -> ThoughtGraph:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StoreFileError(path, f"invalid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise StoreFileError(path, "not a thought graph document")
    _check_shape(data, path)
    try:
        return ThoughtGraph.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise StoreFileError(path, f"malformed entry ({exc})") from exc


def _check_shape(data: dict[str, Any], path: Path | str) -> None:
    """Reject documents whose sections or entries are not JSON objects."""
    for section in ("thoughts", "tags", "backreferences"):
        if not isinstance(data.get(section, {}), dict):
            raise StoreFileError(path, f"malformed entry ('{section}' must be an object)")
    for section in ("thoughts", "tags"):
        for key, raw in data.get(section, {}).items():
            if not isinstance(raw, dict):
                raise StoreFileError(path, f"malformed entry ({section}.{key} must be an object)")
    for key, raw in data.get("thoughts", {}).items():
        refs = raw.get("references", [])
        if not isinstance(refs, list) or not all(isinstance(r, dict) for r in refs):
            raise StoreFileError(path, f"malformed entry (thoughts.{key}.references must be a list of objects)")
    for key, sources in data.get("backreferences", {}).items():
        if not isinstance(sources, list):
            raise StoreFileError(path, f"malformed entry (backreferences.{key} must be a list)")


def save_graph(graph: ThoughtGraph, path: Path | str) -> Path:
    """Atomically write graph to path (tmp file under flock, then rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        f.write(dumps(graph))
    tmp.replace(path)
    log.info("saved %d thoughts, %d tags to %s", graph.thought_count, graph.tag_count, path)
    return path


def load_graph(path: Path | str) -> ThoughtGraph:
    """Load a graph. Raises StoreFileError if the file is missing or unreadable."""
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            text = f.read()
    except OSError as exc:
        raise StoreFileError(path, exc.strerror or str(exc)) from exc
    if not text.strip():
        raise StoreFileError(path, "file is empty")
    graph = loads(text, path)
    log.info("loaded %d thoughts, %d tags from %s", graph.thought_count, graph.tag_count, path)
    return graph


def load_or_create_graph(path: Path | str) -> tuple[ThoughtGraph, bool]:
    """Load path, or create and save an empty graph there.

    Returns (graph, created).
    """
    path = Path(path)
    if path.exists() and path.stat().st_size > 0:
        return load_graph(path), False
    graph = ThoughtGraph()
    save_graph(graph, path)
    return graph, True
