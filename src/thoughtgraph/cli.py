"""thoughts CLI: notes that tag and reference each other.

Commands:
    thoughts init                      create an empty graph file
    thoughts create --id ID ...        add a thought (opens $EDITOR without --content)
    thoughts list [--tag T]            list thoughts
    thoughts view ID                   show a thought with references and backlinks
    thoughts edit ID                   edit title/content
    thoughts delete ID                 delete a thought
    thoughts tag ID TAG / untag ID TAG
    thoughts reference FROM TO         add a reference
    thoughts search TERMS...           substring search over title + content
    thoughts query EXPR                boolean query: tag:x and (refs:y or by:z)
    thoughts tags                      list tags with usage counts
    thoughts visualize                 DOT / JSON export
    thoughts browse ID                 follow references and backlinks
    thoughts doctor                    check the backreference index
"""

from __future__ import annotations

import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from thoughtgraph.config import ThoughtsConfig, load_config
from thoughtgraph.errors import EditorError, TagNotFoundError, ThoughtGraphError, ThoughtNotFoundError
from thoughtgraph.graph import DeleteThought, PutThought, ThoughtGraph
from thoughtgraph.models import Reference, TagID, Thought, ThoughtID, utcnow
from thoughtgraph.persistence import load_or_create_graph, save_graph
from thoughtgraph.query import HasTag, parse_query
from thoughtgraph.visualization import generate_focused_graph, generate_graph_data

log = logging.getLogger("thoughtgraph.cli")

_TITLE_PREFIX = "# Title:"
_NEW_THOUGHT_HEADER = "# Enter your thought content here"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class _State:
    cfg: ThoughtsConfig


def _interactive() -> bool:
    return sys.stdin.isatty()


def _cfg(ctx: click.Context) -> ThoughtsConfig:
    return ctx.find_object(_State).cfg  # type: ignore[union-attr]


def _open_graph(ctx: click.Context) -> ThoughtGraph:
    cfg = _cfg(ctx)
    graph, created = load_or_create_graph(cfg.data_file)
    if created:
        click.echo(f"No thought graph found at {cfg.data_file}. Created a new one.", err=True)
    return graph


def _save(ctx: click.Context, graph: ThoughtGraph) -> None:
    save_graph(graph, _cfg(ctx).data_file)


def _require_thought(graph: ThoughtGraph, raw_id: str) -> tuple[ThoughtID, Thought]:
    tid = ThoughtID(raw_id.strip("[]"))
    thought = graph.get_thought(tid)
    if thought is None:
        raise ThoughtNotFoundError(tid)
    return tid, thought


def _ensure_tag(graph: ThoughtGraph, tag_id: TagID, description: str | None = None) -> bool:
    """Create tag_id if missing. Returns True when it was created."""
    if graph.has_tag(tag_id):
        return False
    if description is None:
        if _interactive():
            description = click.prompt(f"Enter description for new tag '{tag_id}'")
        else:
            description = f"Description for tag '{tag_id}'"
    graph.create_tag(tag_id, description)
    return True


def _edit_in_editor(initial: str, header: str = "") -> str:
    """Open $EDITOR on initial text; strip header (and the blank line after it)."""
    text = f"{header}\n\n{initial}" if header else initial
    edited = click.edit(text, extension=".md", require_save=True)
    if edited is None:
        msg = "Editor closed without saving"
        raise EditorError(msg)
    if header and edited.startswith(header):
        lines = edited.splitlines()
        rest = lines[2:] if len(lines) > 1 and not lines[1].strip() else lines[1:]
        edited = "\n".join(rest)
    return edited.rstrip("\n")


def _split_title(edited: str, fallback: str | None) -> tuple[str | None, str]:
    """Parse the ``# Title:`` line written by edit; returns (title, content)."""
    lines = edited.splitlines()
    title = fallback
    if lines and lines[0].startswith(_TITLE_PREFIX):
        title = lines[0][len(_TITLE_PREFIX):].strip() or None
        lines = lines[1:]
    while lines and not lines[0].strip():
        lines = lines[1:]
    return title, "\n".join(lines)


def _preview(text: str, width: int) -> str:
    flat = " ".join(text.split())
    return flat[:width] + "..." if len(flat) > width else flat


def _report_auto_refs(added: list[ThoughtID]) -> None:
    if added:
        click.echo("Auto-added references to:")
        for ref_id in added:
            click.echo(f"  → {click.style(ref_id.id, fg='blue')}")


def _print_thought_list(rows: list[tuple[ThoughtID, Thought]], width: int) -> None:
    from rich.console import Console
    from rich.table import Table

    if not rows:
        click.echo("No thoughts found")
        return
    table = Table(show_lines=False)
    table.add_column("ID", style="blue", no_wrap=True)
    table.add_column("TITLE")
    table.add_column("UPDATED", style="dim", no_wrap=True)
    table.add_column("TAGS", style="yellow")
    table.add_column("PREVIEW", style="dim")
    for tid, thought in rows:
        updated = (thought.updated_at or thought.created_at).strftime("%Y-%m-%d %H:%M")
        tags = " ".join(f"#{t}" for t in thought.tags)
        table.add_row(tid.id, thought.display_title, updated, tags, _preview(thought.contents, width))
    Console().print(table)


def _print_thought(graph: ThoughtGraph, tid: ThoughtID, thought: Thought) -> None:
    click.echo(click.style(thought.display_title, bold=True, fg="green" if thought.title else None))
    click.echo(f"ID: {click.style(tid.id, fg='blue')}")
    click.echo(click.style(f"Created: {thought.created_at:%Y-%m-%d %H:%M:%S}", dim=True))
    updated = thought.updated_at or thought.created_at
    click.echo(click.style(f"Updated: {updated:%Y-%m-%d %H:%M:%S}", dim=True))

    if thought.tags:
        click.echo(click.style("\nTags:", bold=True))
        for tag_id in thought.tags:
            tag = graph.get_tag(tag_id)
            desc = f" - {tag.description}" if tag else "  (missing tag)"
            click.echo(f"  {click.style(f'#{tag_id}', fg='yellow')}{click.style(desc, dim=True)}")

    if thought.references:
        click.echo(click.style("\nReferences:", bold=True))
        for ref in thought.references:
            target = graph.get_thought(ref.id)
            title = target.display_title if target else "(missing)"
            click.echo(f"  → {click.style(ref.id.id, fg='blue')} {title}")
            if ref.notes:
                click.echo(click.style(f"    {ref.notes}", dim=True))

    backlinks = graph.get_backlinks(tid)
    if backlinks:
        click.echo(click.style("\nReferenced by:", bold=True))
        for source in backlinks:
            src = graph.get_thought(source)
            title = src.display_title if src else "(missing)"
            click.echo(f"  ← {click.style(source.id, fg='blue')} {title}")

    bar = click.style("═" * 80, dim=True)
    click.echo(f"\n{bar}\n{thought.contents}\n{bar}")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


class _Group(click.Group):
    """Turns ThoughtGraphError into a ClickException (exit 1, ``Error: ...``)."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except ThoughtGraphError as exc:
            raise click.ClickException(str(exc)) from exc


@click.group(cls=_Group)
@click.version_option(package_name="thoughtgraph")
@click.option(
    "--file", "-f", "data_file", default=None, type=click.Path(dir_okay=False, path_type=Path),
    help="Graph data file (default: from thoughts.toml, $THOUGHTGRAPH_FILE or the app dir)",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx: click.Context, data_file: Path | None, verbose: bool) -> None:
    """thoughts: a graph of notes that tag and reference each other."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        cfg = load_config()
    except (OSError, tomllib.TOMLDecodeError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    if data_file is not None:
        cfg = cfg.with_data_file(data_file)
    log.debug("data file: %s", cfg.data_file)
    ctx.obj = _State(cfg=cfg)


# ---------------------------------------------------------------------------
# thoughts init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing graph")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Create an empty thought graph."""
    path = _cfg(ctx).data_file
    if path.exists() and not force:
        click.echo(f"A thought graph already exists at {path}")
        if not _interactive() or not click.confirm(
            "Do you want to overwrite it with a new empty graph?", default=False
        ):
            click.echo("Operation cancelled (use --force to overwrite).")
            return
    save_graph(ThoughtGraph(), path)
    click.echo(f"Initialized a new thought graph at {path}")


# ---------------------------------------------------------------------------
# thoughts create / edit / delete
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--id", "thought_id", default=None, help="Unique ID for the thought")
@click.option("--title", default=None)
@click.option("--content", default=None, help="Body text (opens $EDITOR when omitted)")
@click.option("--tag", "tags", multiple=True, help="Tag to attach (created if missing)")
@click.option("--ref", "refs", multiple=True, help="ID of a thought to reference")
@click.pass_context
def create(
    ctx: click.Context,
    thought_id: str | None,
    title: str | None,
    content: str | None,
    tags: tuple[str, ...],
    refs: tuple[str, ...],
) -> None:
    """Create a thought.

    \b
    thoughts create --id rust --title "Rust" --content "Systems language" --tag lang
    thoughts create --id borrowck --content "See [rust]"      # auto-references rust
    """
    interactive = _interactive()
    if thought_id is None:
        if not interactive:
            raise click.ClickException("ID is required in non-interactive mode")
        thought_id = click.prompt("Enter a unique ID for the thought")
    if title is None and interactive:
        title = click.prompt("Enter a title (optional)", default="", show_default=False) or None
    if content is None:
        if not interactive:
            raise click.ClickException("Content is required in non-interactive mode")
        content = _edit_in_editor("", _NEW_THOUGHT_HEADER)

    graph = _open_graph(ctx)
    tid = ThoughtID(thought_id)
    if graph.has_thought(tid):
        raise click.ClickException(f"Thought '{tid}' already exists (use `thoughts edit {tid}`)")

    tag_ids = [TagID(t) for t in tags]
    for tag_id in tag_ids:
        _ensure_tag(graph, tag_id)

    references: list[Reference] = []
    for raw in refs:
        ref_id = ThoughtID(raw)
        if not graph.has_thought(ref_id):
            click.echo(f"Warning: Skipping reference to non-existent thought '{raw}'", err=True)
            continue
        references.append(Reference(ref_id, "", utcnow()))

    graph.create_thought(tid, title, content, tag_ids, references)
    added = graph.process_auto_references(tid)
    _save(ctx, graph)
    click.echo(f"Created thought '{click.style(tid.id, fg='green')}' successfully")
    _report_auto_refs(added)


@cli.command()
@click.argument("thought_id")
@click.option("--title", default=None, help="New title ('' clears it)")
@click.option("--content", default=None, help="New body text")
@click.pass_context
def edit(ctx: click.Context, thought_id: str, title: str | None, content: str | None) -> None:
    """Edit a thought's title and content.

    Without options the thought opens in $EDITOR; the first line
    ``# Title: ...`` sets the title.
    """
    graph = _open_graph(ctx)
    tid, thought = _require_thought(graph, thought_id)
    updated = thought.copy()

    if title is None and content is None:
        if not _interactive():
            raise click.ClickException("Nothing to change: pass --title/--content or run in a terminal")
        edited = _edit_in_editor(f"{_TITLE_PREFIX} {thought.title or ''}\n\n{thought.contents}")
        new_title, new_content = _split_title(edited, thought.title)
        updated.update_title(new_title)
        updated.update_content(new_content)
    else:
        if title is not None:
            updated.update_title(title or None)
        if content is not None:
            updated.update_content(content)

    graph.apply(PutThought(tid, updated))
    added = graph.process_auto_references(tid)
    _save(ctx, graph)
    click.echo(f"Thought '{click.style(tid.id, fg='green')}' updated successfully")
    _report_auto_refs(added)


@cli.command()
@click.argument("thought_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete(ctx: click.Context, thought_id: str, force: bool) -> None:
    """Delete a thought. References to it from other thoughts are kept."""
    graph = _open_graph(ctx)
    tid, _ = _require_thought(graph, thought_id)
    if not force:
        if not _interactive():
            raise click.ClickException("Deletion requires --force flag in non-interactive mode")
        if not click.confirm(f"Are you sure you want to delete thought '{tid}'?", default=False):
            click.echo("Deletion cancelled")
            return
    graph.apply(DeleteThought(tid))
    _save(ctx, graph)
    click.echo(f"Thought '{click.style(tid.id, fg='green')}' deleted successfully")


# ---------------------------------------------------------------------------
# thoughts tag / untag / reference
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("thought_id")
@click.argument("tag")
@click.option("--description", default=None, help="Description if the tag is new")
@click.pass_context
def tag(ctx: click.Context, thought_id: str, tag: str, description: str | None) -> None:
    """Attach a tag to a thought (creating the tag if needed)."""
    graph = _open_graph(ctx)
    tid, thought = _require_thought(graph, thought_id)
    tag_id = TagID(tag)
    if _ensure_tag(graph, tag_id, description):
        click.echo(f"Created tag '{click.style(tag, fg='yellow')}'")
    thought.add_tag(tag_id)
    graph.apply(PutThought(tid, thought))
    _save(ctx, graph)
    click.echo(f"Added tag '{click.style(tag, fg='yellow')}' to thought '{click.style(tid.id, fg='green')}'")


@cli.command()
@click.argument("thought_id")
@click.argument("tag")
@click.pass_context
def untag(ctx: click.Context, thought_id: str, tag: str) -> None:
    """Remove a tag from a thought."""
    graph = _open_graph(ctx)
    tid, thought = _require_thought(graph, thought_id)
    tag_id = TagID(tag)
    if tag_id not in thought.tags:
        raise click.ClickException(f"Thought '{tid}' doesn't have tag '{tag}'")
    thought.remove_tag(tag_id)
    graph.apply(PutThought(tid, thought))
    _save(ctx, graph)
    click.echo(f"Removed tag '{click.style(tag, fg='yellow')}' from thought '{click.style(tid.id, fg='green')}'")


@cli.command()
@click.argument("from_id")
@click.argument("to_id")
@click.option("--notes", default="", help="Annotation for the reference")
@click.pass_context
def reference(ctx: click.Context, from_id: str, to_id: str, notes: str) -> None:
    """Add a reference FROM -> TO. Both thoughts must exist."""
    graph = _open_graph(ctx)
    source, thought = _require_thought(graph, from_id)
    target, _ = _require_thought(graph, to_id)
    if thought.references_to(target):
        click.echo(f"'{source}' already references '{target}'")
        return
    thought.add_reference(Reference(target, notes, utcnow()))
    graph.apply(PutThought(source, thought))
    _save(ctx, graph)
    click.echo(
        f"Added reference from '{click.style(source.id, fg='green')}' to '{click.style(target.id, fg='green')}'"
    )


# ---------------------------------------------------------------------------
# thoughts list / view / search / query / tags
# ---------------------------------------------------------------------------


@cli.command("list")
@click.option("--tag", default=None, help="Only thoughts with this tag")
@click.pass_context
def list_cmd(ctx: click.Context, tag: str | None) -> None:
    """List thoughts."""
    graph = _open_graph(ctx)
    if tag is not None:
        tag_id = TagID(tag)
        if not graph.has_tag(tag_id):
            raise TagNotFoundError(tag_id)
        rows = graph.find_thoughts(HasTag(tag_id))
    else:
        rows = list(graph.iter_thoughts())
    _print_thought_list(rows, _cfg(ctx).display.max_length)


@cli.command()
@click.argument("thought_id")
@click.pass_context
def view(ctx: click.Context, thought_id: str) -> None:
    """Show a thought with its tags, references and backlinks."""
    graph = _open_graph(ctx)
    tid, thought = _require_thought(graph, thought_id)
    _print_thought(graph, tid, thought)


@cli.command()
@click.argument("terms", nargs=-1, required=True)
@click.pass_context
def search(ctx: click.Context, terms: tuple[str, ...]) -> None:
    """Find thoughts whose title + content contain every term (case-insensitive)."""
    needles = [t.lower() for t in terms]
    click.echo(f"Searching for: {click.style(' '.join(needles), fg='cyan')}")
    graph = _open_graph(ctx)
    matches = [
        (tid, thought)
        for tid, thought in graph.iter_thoughts()
        if all(n in f"{thought.title or ''} {thought.contents}".lower() for n in needles)
    ]
    if not matches:
        click.echo(f"No thoughts found matching query: {' '.join(needles)}")
        return
    click.echo(f"Found {len(matches)} matching thoughts")
    _print_thought_list(matches, _cfg(ctx).display.max_length)


@cli.command()
@click.argument("expr", nargs=-1, required=True)
@click.option("--ids", "ids_only", is_flag=True, help="Print matching IDs only, one per line")
@click.pass_context
def query(ctx: click.Context, expr: tuple[str, ...], ids_only: bool) -> None:
    """Boolean query over tags and references.

    \b
    thoughts query tag:rust
    thoughts query "tag:rust and refs:ownership"      # tagged rust, referencing ownership
    thoughts query "by:rust or (tag:a and tag:b)"     # referenced by rust, or tagged a and b
    """
    parsed = parse_query(" ".join(expr))
    graph = _open_graph(ctx)
    rows = graph.find_thoughts(parsed)
    if ids_only:
        for tid, _ in rows:
            click.echo(tid.id)
        return
    _print_thought_list(rows, _cfg(ctx).display.max_length)


@cli.command()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """List tags with descriptions and usage counts."""
    from rich.console import Console
    from rich.table import Table

    graph = _open_graph(ctx)
    rows = list(graph.iter_tags())
    if not rows:
        click.echo("No tags found")
        return
    table = Table()
    table.add_column("TAG", style="yellow", no_wrap=True)
    table.add_column("DESCRIPTION")
    table.add_column("COUNT", justify="right")
    for tag_id, tag_obj in rows:
        table.add_row(f"#{tag_id}", tag_obj.description, str(len(graph.thoughts_with_tag(tag_id))))
    Console().print(table)


# ---------------------------------------------------------------------------
# thoughts visualize / browse / doctor
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--format", "-F", "fmt", default=None, type=click.Choice(["dot", "json"], case_sensitive=False),
              help="Output format (default: from thoughts.toml, else dot)")
@click.option("--focus", default=None, help="Only the neighbourhood of this thought")
@click.option("--depth", "-d", default=None, type=click.IntRange(min=0), help="Hops from --focus")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def visualize(ctx: click.Context, fmt: str | None, focus: str | None, depth: int | None, output: Path | None) -> None:
    """Export the graph as Graphviz DOT or JSON."""
    cfg = _cfg(ctx)
    fmt = (fmt or cfg.visualize.format).lower()
    depth = cfg.visualize.depth if depth is None else depth
    graph = _open_graph(ctx)
    if focus is not None:
        center, _ = _require_thought(graph, focus)
        data = generate_focused_graph(graph, center, depth)
    else:
        data = generate_graph_data(graph)
    text = data.render(fmt)
    if output is None:
        click.echo(text, nl=False)
        return
    output.write_text(text)
    click.echo(click.style(f"Visualization saved to {output}", fg="green"))
    if fmt == "dot":
        click.echo("\nTip: To render this file with Graphviz, run:")
        click.echo(f"  dot -Tpng {output} -o graph.png")


@cli.command()
@click.argument("thought_id")
@click.pass_context
def browse(ctx: click.Context, thought_id: str) -> None:
    """Walk the graph: follow references (rN) and backlinks (bN), q to quit."""
    graph = _open_graph(ctx)
    tid, thought = _require_thought(graph, thought_id)
    while True:
        _print_thought(graph, tid, thought)
        refs = [r.id for r in thought.references]
        backs = graph.get_backlinks(tid)
        for i, ref_id in enumerate(refs, start=1):
            click.echo(f"  r{i}  → {ref_id}")
        for i, back_id in enumerate(backs, start=1):
            click.echo(f"  b{i}  ← {back_id}")
        choice = click.prompt("Follow (rN / bN), or q to quit", default="q", show_default=False).strip().lower()
        if choice in ("q", "quit", ""):
            return
        kind, num = choice[:1], choice[1:]
        pool = refs if kind == "r" else backs if kind == "b" else []
        if not num.isdigit() or not 1 <= int(num) <= len(pool):
            click.echo(f"Invalid choice: {choice}", err=True)
            continue
        next_id = pool[int(num) - 1]
        next_thought = graph.get_thought(next_id)
        if next_thought is None:
            click.echo(f"Thought '{next_id}' not found", err=True)
            continue
        tid, thought = next_id, next_thought


@cli.command()
@click.pass_context
def doctor(ctx: click.Context) -> None:
    """Check the backreference index and report dangling tags and references."""
    graph = _open_graph(ctx)
    problems = graph.check_invariants()
    for problem in problems:
        click.echo(click.style(f"✗ {problem}", fg="red"))

    for source, target in graph.unindexed_references():
        click.echo(f"  unindexed: [{source}] → [{target}] (target was deleted; re-save [{source}] to reindex)")
    for source, target in graph.dangling_references():
        click.echo(f"  dangling reference: [{source}] → [{target}]")
    for tid, tag_id in graph.dangling_tags():
        click.echo(f"  dangling tag: [{tid}] #{tag_id}")

    click.echo(f"{graph.thought_count} thoughts, {graph.tag_count} tags")
    if problems:
        raise SystemExit(1)
    click.echo(click.style("✓ backreference index is consistent", fg="green"))
