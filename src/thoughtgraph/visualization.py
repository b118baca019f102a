"""Node/edge lists for rendering the graph with Graphviz or a JSON consumer."""

from __future__ import annotations

import json
from collections import deque
from dataclasses import asdict, dataclass, field

from thoughtgraph.graph import ThoughtGraph
from thoughtgraph.models import ThoughtID


@dataclass
class Node:
    id: str
    label: str
    tags: list[str] = field(default_factory=list)


@dataclass
class Edge:
    id: str
    source: str
    target: str
    label: str = ""


@dataclass
class GraphData:
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    def to_dot(self) -> str:
        lines = [
            "digraph ThoughtGraph {",
            "  node [shape=box, style=filled, fillcolor=lightblue];",
            "",
        ]
        for node in self.nodes:
            lines.append(f'  "{_dot_escape(node.id)}" [label="{_dot_escape(node.label)}"];')
        lines.append("")
        for edge in self.edges:
            lines.append(
                f'  "{_dot_escape(edge.source)}" -> "{_dot_escape(edge.target)}"'
                f' [label="{_dot_escape(edge.label)}"];'
            )
        lines.append("}")
        return "\n".join(lines) + "\n"

    def to_json(self) -> str:
        return json.dumps(
            {"nodes": [asdict(n) for n in self.nodes], "edges": [asdict(e) for e in self.edges]},
            indent=2,
            ensure_ascii=False,
        ) + "\n"

    def render(self, fmt: str) -> str:
        fmt = fmt.lower()
        if fmt == "dot":
            return self.to_dot()
        if fmt == "json":
            return self.to_json()
        msg = f"Unsupported visualization format: {fmt}. Use 'dot' or 'json'."
        raise ValueError(msg)


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


class _EdgeCounter:
    def __init__(self) -> None:
        self.n = 0

    def next_id(self) -> str:
        self.n += 1
        return f"edge_{self.n}"


def generate_graph_data(graph: ThoughtGraph) -> GraphData:
    """Every thought as a node and every reference as an edge (dangling targets included)."""
    data = GraphData()
    counter = _EdgeCounter()
    for tid, thought in graph.iter_thoughts():
        data.nodes.append(Node(tid.id, thought.title or tid.id, [t.id for t in thought.tags]))
        for ref in thought.references:
            data.edges.append(Edge(counter.next_id(), tid.id, ref.id.id, ref.notes))
    return data


def generate_focused_graph(graph: ThoughtGraph, center: ThoughtID, depth: int = 1) -> GraphData:
    """Breadth-first neighbourhood of center, following references and backlinks.

    Nodes up to depth hops away are included. Each visited node contributes its
    outgoing edges plus incoming edges from visited backlinks; an edge reached
    from both ends is listed once.
    """
    data = GraphData()
    if not graph.has_thought(center):
        return data

    counter = _EdgeCounter()
    visited: set[ThoughtID] = {center}
    queue: deque[tuple[ThoughtID, int]] = deque([(center, 0)])
    while queue:
        current, dist = queue.popleft()
        thought = graph.get_thought(current)
        if thought is None:
            continue
        data.nodes.append(Node(current.id, thought.title or current.id, [t.id for t in thought.tags]))

        for ref in thought.references:
            if ref.id not in visited and dist < depth:
                visited.add(ref.id)
                queue.append((ref.id, dist + 1))
            data.edges.append(Edge(counter.next_id(), current.id, ref.id.id, ref.notes))

        for source in graph.get_backlinks(current):
            if source not in visited and dist < depth:
                visited.add(source)
                queue.append((source, dist + 1))
            if source not in visited:
                continue
            source_thought = graph.get_thought(source)
            if source_thought is None:
                continue
            for ref in source_thought.references:
                if ref.id == current:
                    data.edges.append(Edge(counter.next_id(), source.id, current.id, ref.notes))
    return _dedupe_edges(data)


def _dedupe_edges(data: GraphData) -> GraphData:
    seen: set[tuple[str, str]] = set()
    edges: list[Edge] = []
    for edge in data.edges:
        key = (edge.source, edge.target)
        if key in seen:
            continue
        seen.add(key)
        edges.append(edge)
    for i, edge in enumerate(edges, start=1):
        edge.id = f"edge_{i}"
    data.edges = edges
    return data
