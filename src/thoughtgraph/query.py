"""Boolean queries over tag membership and reference direction.

    HasTag(t)          thoughts listing tag t (nothing if t is not a stored tag)
    References(x)      thoughts that reference x (the backreference set of x)
    ReferencedBy(x)    existing thoughts that x references (nothing if x is missing)
    And([...])         intersection; And([]) matches nothing
    Or([...])          union; Or([]) matches nothing

Text form accepted by parse_query (used by ``thoughts query``):

    tag:rust and (refs:ownership or by:borrowck)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from thoughtgraph.errors import QuerySyntaxError
from thoughtgraph.models import TagID, ThoughtID


@dataclass(frozen=True)
class HasTag:
    tag_id: TagID


@dataclass(frozen=True)
class References:
    target_id: ThoughtID


@dataclass(frozen=True)
class ReferencedBy:
    source_id: ThoughtID


@dataclass(frozen=True)
class And:
    queries: tuple[Query, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "queries", tuple(self.queries))


@dataclass(frozen=True)
class Or:
    queries: tuple[Query, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "queries", tuple(self.queries))


Query = HasTag | References | ReferencedBy | And | Or


class GraphView(Protocol):
    """Read surface the evaluator needs. ThoughtGraph implements it."""

    def has_tag(self, tag_id: TagID) -> bool: ...

    def has_thought(self, thought_id: ThoughtID) -> bool: ...

    def thoughts_with_tag(self, tag_id: TagID) -> set[ThoughtID]: ...

    def get_backlinks(self, thought_id: ThoughtID) -> list[ThoughtID]: ...

    def reference_targets(self, thought_id: ThoughtID) -> list[ThoughtID] | None: ...


def evaluate(graph: GraphView, query: Query) -> set[ThoughtID]:
    """Evaluate query against graph. Never mutates, never raises on unknown ids."""
    match query:
        case HasTag(tag_id=tag_id):
            if not graph.has_tag(tag_id):
                return set()
            return graph.thoughts_with_tag(tag_id)
        case References(target_id=target):
            return set(graph.get_backlinks(target))
        case ReferencedBy(source_id=source):
            targets = graph.reference_targets(source)
            if targets is None:
                return set()
            return {t for t in targets if graph.has_thought(t)}
        case And(queries=queries):
            if not queries:
                return set()
            result = evaluate(graph, queries[0])
            for sub in queries[1:]:
                if not result:
                    break
                result &= evaluate(graph, sub)
            return result
        case Or(queries=queries):
            union: set[ThoughtID] = set()
            for sub in queries:
                union |= evaluate(graph, sub)
            return union
    msg = f"Unknown query: {query!r}"
    raise TypeError(msg)


# ---------------------------------------------------------------------------
# Text parser
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"\s*(?:(\()|(\))|([A-Za-z]+):([A-Za-z0-9_-]+)|([A-Za-z]+))")

_TERMS = {
    "tag": lambda v: HasTag(TagID(v)),
    "refs": lambda v: References(ThoughtID(v)),
    "by": lambda v: ReferencedBy(ThoughtID(v)),
}


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    stripped = text.rstrip()
    while pos < len(stripped):
        m = _TOKEN_RE.match(stripped, pos)
        if m is None or m.end() == pos:
            raise QuerySyntaxError(text, f"unexpected input at position {pos}")
        lparen, rparen, kind, value, word = m.groups()
        if lparen:
            tokens.append(("(", "("))
        elif rparen:
            tokens.append((")", ")"))
        elif kind:
            if kind.lower() not in _TERMS:
                raise QuerySyntaxError(text, f"unknown term '{kind}:' (use tag:, refs: or by:)")
            tokens.append(("term", f"{kind.lower()}:{value}"))
        elif word.lower() in ("and", "or"):
            tokens.append((word.lower(), word))
        else:
            raise QuerySyntaxError(text, f"unexpected word '{word}'")
        pos = m.end()
    return tokens


class _Parser:
    """Recursive descent: or_expr := and_expr ('or' and_expr)*; and binds tighter."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def parse(self) -> Query:
        if not self.tokens:
            raise QuerySyntaxError(self.text, "empty query")
        query = self._or_expr()
        if self._peek() is not None:
            raise QuerySyntaxError(self.text, f"unexpected '{self.tokens[self.pos][1]}'")
        return query

    def _or_expr(self) -> Query:
        parts = [self._and_expr()]
        while self._peek() == "or":
            self.pos += 1
            parts.append(self._and_expr())
        return parts[0] if len(parts) == 1 else Or(parts)

    def _and_expr(self) -> Query:
        parts = [self._atom()]
        while self._peek() == "and":
            self.pos += 1
            parts.append(self._atom())
        return parts[0] if len(parts) == 1 else And(parts)

    def _atom(self) -> Query:
        kind = self._peek()
        if kind is None:
            raise QuerySyntaxError(self.text, "unexpected end of query")
        _, value = self.tokens[self.pos]
        self.pos += 1
        if kind == "term":
            name, _, ident = value.partition(":")
            return _TERMS[name](ident)
        if kind == "(":
            inner = self._or_expr()
            if self._peek() != ")":
                raise QuerySyntaxError(self.text, "missing ')'")
            self.pos += 1
            return inner
        raise QuerySyntaxError(self.text, f"unexpected '{value}'")


def parse_query(text: str) -> Query:
    """Parse ``tag:x and (refs:y or by:z)`` into a Query tree."""
    return _Parser(text).parse()
