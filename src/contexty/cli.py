"""Contexty CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from contexty import __version__
from contexty.line_ranges import derive_ranges, part_label

if TYPE_CHECKING:
    from rich.tree import Tree

    from contexty.models import Part
    from contexty.state import ContextState


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    logger = logging.getLogger("contexty")
    if verbose:
        if logger.handlers:
            logger.setLevel(logging.DEBUG)
            return
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.ERROR)


@click.group()
@click.version_option(version=__version__, prog_name="contexty")
@click.option(
    "--root",
    "-r",
    "roots",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Workspace root (repeatable, default: current directory).",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, roots: tuple[Path, ...], verbose: bool, quiet: bool) -> None:
    """Contexty - shared, reconciling store of captured file context."""
    _configure_logging(verbose=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["roots"] = list(roots) or [Path.cwd()]


def _open_state(ctx: click.Context) -> ContextState:
    from contexty.state import ContextState

    state = ContextState.open(ctx.obj["roots"])
    if not state.roots:
        click.echo("Error: no workspace roots.", err=True)
        sys.exit(1)
    return state


def _part_to_dict(part: Part) -> dict[str, Any]:
    return {
        "id": part.id,
        "file_path": part.file_path,
        "title": part.title,
        "label": part_label(part),
        "truncated": part.truncated,
        "ranges": [{"start": r.start, "end": r.end} for r in derive_ranges(part)],
        "time": part.time_start,
    }


def _parse_lines(value: str) -> tuple[int, int]:
    start_text, sep, end_text = value.partition("-")
    try:
        start = int(start_text)
        end = int(end_text) if sep else start
    except ValueError:
        raise click.BadParameter(f"expected START-END, got {value!r}") from None
    if start < 1 or end < start:
        raise click.BadParameter(f"invalid line range {value!r}")
    return start, end


@main.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--lines", default=None, help="Capture only 1-based lines START-END of a file.")
@click.pass_context
def add(ctx: click.Context, *, paths: tuple[Path, ...], lines: str | None) -> None:
    """Capture files (whole), directories (every file) or a line range."""
    state = _open_state(ctx)

    captured: list[Part] = []
    if lines is not None:
        if len(paths) != 1 or not paths[0].is_file():
            click.echo("Error: --lines needs exactly one file.", err=True)
            sys.exit(1)
        start, end = _parse_lines(lines)
        part = state.add_selection(str(paths[0].absolute()), start, end)
        if part is not None:
            captured.append(part)
    else:
        for path in paths:
            captured.extend(state.add_path(str(path.absolute())))

    if not captured:
        click.echo("Nothing captured.")
        return
    for part in captured:
        click.echo(f"  {part.id}  {part.title}  ({part_label(part)})")
    click.echo(f"Captured {len(captured)} part{'s' if len(captured) != 1 else ''}.")


@main.command("ls")
@click.argument("path", required=False, type=click.Path(path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def ls_cmd(ctx: click.Context, *, path: Path | None, output_json: bool) -> None:
    """List captured entries below PATH, or the parts of a captured file."""
    state = _open_state(ctx)
    base = str((path or Path(state.roots[0].path)).absolute())

    if state.is_active(base):
        parts = state.parts_for(base)
        if output_json:
            click.echo(json.dumps([_part_to_dict(p) for p in parts], ensure_ascii=False, indent=2))
            return
        for part in parts:
            click.echo(f"{part.id}  {part_label(part)}")
        return

    children = state.children_of(base)
    if output_json:
        data = {
            "dirs": [{"path": d.path, "label": d.label} for d in children.dirs],
            "files": [
                {"path": f.path, "label": f.label, "parts": state.engine.part_count(f.path)}
                for f in children.files
            ],
        }
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return
    for entry in children.dirs:
        click.echo(f"{entry.label}/")
    for entry in children.files:
        count = state.engine.part_count(entry.path)
        click.echo(f"{entry.label}  [{count} part{'s' if count != 1 else ''}]")


def _build_tree(state: ContextState, base: str, node: Tree) -> None:
    from rich.markup import escape

    engine = state.engine
    children = engine.children_of(base)
    for entry in children.dirs:
        branch = node.add(f"[bold]{escape(entry.label)}/[/]")
        _build_tree(state, entry.path, branch)
    for entry in children.files:
        leaf = node.add(escape(entry.label))
        for part in engine.parts_for(entry.path):
            leaf.add(f"[dim]{part.id}[/]  {part_label(part)}")


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def tree(ctx: click.Context, *, output_json: bool) -> None:
    """Show the captured hierarchy of every root."""
    state = _open_state(ctx)
    roots = state.roots_with_content()

    if output_json:
        data = {
            root.path: [_part_to_dict(p) for p in state.engine.parts_under(root.path)]
            for root in roots
        }
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if not roots:
        click.echo("No context captured.")
        return

    from rich.console import Console
    from rich.markup import escape
    from rich.tree import Tree

    console = Console()
    for root in roots:
        root_tree = Tree(f"[bold cyan]{escape(root.name)}[/]")
        _build_tree(state, root.path, root_tree)
        console.print(root_tree)


@main.command()
@click.argument("part_id")
@click.pass_context
def show(ctx: click.Context, *, part_id: str) -> None:
    """Print the captured output of a part."""
    state = _open_state(ctx)
    part = state.find_part(part_id)
    if part is None:
        click.echo(f"Error: no active part {part_id}.", err=True)
        sys.exit(1)
    click.echo(part.output)


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def ranges(ctx: click.Context, *, path: Path) -> None:
    """Print captured line ranges (1-based) of a file."""
    state = _open_state(ctx)
    for line_range in state.line_ranges_for(str(path.absolute())):
        click.echo(f"{line_range.start + 1}-{line_range.end + 1}")


@main.command()
@click.argument("part_id", required=False)
@click.option(
    "--path",
    "base_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Remove every part for this file or directory.",
)
@click.pass_context
def rm(ctx: click.Context, *, part_id: str | None, base_path: Path | None) -> None:
    """Remove a part (or every part under --path) from the context."""
    if (part_id is None) == (base_path is None):
        click.echo("Error: give either PART_ID or --path.", err=True)
        sys.exit(1)
    state = _open_state(ctx)

    if base_path is not None:
        count = state.ban_under_path(str(base_path.absolute()))
        click.echo(f"Removed {count} part{'s' if count != 1 else ''}.")
        return

    assert part_id is not None
    if state.find_part(part_id) is None:
        if part_id in state.engine.banned_ids:
            click.echo(f"{part_id} was already removed.")
            return
        click.echo(f"Error: no active part {part_id}.", err=True)
        sys.exit(1)
    state.ban(part_id)
    click.echo(f"Removed {part_id}.")


@main.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Remove every captured part."""
    state = _open_state(ctx)
    count = state.ban_all()
    if count == 0:
        click.echo("Nothing to remove.")
    else:
        click.echo(f"Removed {count} part{'s' if count != 1 else ''}.")


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, *, output_json: bool) -> None:
    """Show roots, documents and active counts."""
    state = _open_state(ctx)
    engine = state.engine
    state.refresh()

    rows = []
    for root in state.roots:
        parts = engine.parts_under(root.path)
        files = {p.file_path for p in parts}
        rows.append({"root": root.path, "files": len(files), "parts": len(parts)})
    summary = {
        "session": state.session_id,
        "roots": rows,
        "documents": [store.parts_path for store in engine.known_stores()],
        "banned": len(engine.banned_ids),
    }

    if output_json:
        click.echo(json.dumps(summary, ensure_ascii=False, indent=2))
        return

    click.echo(f"Session: {state.session_id}")
    for row in rows:
        click.echo(f"Root:    {row['root']}  ({row['files']} files, {row['parts']} parts)")
    click.echo(f"Documents: {len(summary['documents'])}")
    click.echo(f"Banned:  {summary['banned']}")


@main.command("watch")
@click.option("--debounce", default=150, type=int, help="Debounce delay in ms.")
@click.pass_context
def watch_cmd(ctx: click.Context, *, debounce: int) -> None:
    """Reconcile and report whenever a parts document changes.

    Requires watchfiles: pip install contexty[watch]
    """
    state = _open_state(ctx)
    try:
        from contexty.watcher import watch

        watch(state, debounce_ms=debounce)
    except ImportError:
        click.echo(
            "Error: watch requires 'watchfiles'. Install with: pip install contexty[watch]",
            err=True,
        )
        sys.exit(1)
