"""Document watcher: re-reconcile when a parts or blacklist document changes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from contexty.models import BLACKLIST_FILENAME, MARKER_DIR, PARTS_FILENAME

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from contexty.state import ContextState

DEFAULT_DEBOUNCE_MS = 150

_DOCUMENT_NAMES = frozenset({PARTS_FILENAME, BLACKLIST_FILENAME})


def _get_watch_paths(state: ContextState) -> list[Path]:
    """Root folders to watch; nested marker directories live below them."""
    return [Path(root.path) for root in state.roots if Path(root.path).is_dir()]


def _is_document(path_str: str) -> bool:
    """Check if *path_str* is a parts or blacklist document in a marker directory."""
    p = Path(path_str)
    return p.name in _DOCUMENT_NAMES and p.parent.name == MARKER_DIR


def _filter_relevant(changes: Iterable[tuple[object, str]]) -> list[tuple[object, str]]:
    """Keep only changes to documents, ignoring temp files from atomic writes."""
    return [(change, path_str) for change, path_str in changes if _is_document(path_str)]


def _format_time() -> str:
    """Return current time as ``HH:MM:SS`` string."""
    return datetime.now(tz=timezone.utc).strftime("%H:%M:%S")


@dataclass(frozen=True)
class WatchEvent:
    """A batch of document changes after filtering and debounce."""

    documents_changed: int
    active_files: int
    active_parts: int


def watch(
    state: ContextState,
    debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    callback: Callable[[WatchEvent], None] | None = None,
) -> None:
    """Watch every root and reconcile whenever a document changes.

    Requires ``watchfiles`` (optional dependency).
    """
    from rich.console import Console
    from watchfiles import watch as fs_watch

    console = Console()

    watch_paths = _get_watch_paths(state)
    if not watch_paths:
        console.print("[red]No directories to watch.[/red]")
        return

    console.print(f"[bold blue]Watching:[/bold blue] {', '.join(str(p) for p in watch_paths)}")
    console.print(f"[dim]Debounce: {debounce_ms}ms  |  Press Ctrl+C to stop[/dim]")
    console.print()

    try:
        for batch in fs_watch(*watch_paths, debounce=debounce_ms):
            relevant = _filter_relevant(batch)
            if not relevant:
                continue

            state.refresh()
            engine = state.engine
            event = WatchEvent(
                documents_changed=len(relevant),
                active_files=len(engine.indexed_paths()),
                active_parts=len(engine.all_parts()),
            )
            console.print(
                f"[dim]{_format_time()}[/dim] "
                f"[green]reconciled[/green] "
                f"{event.active_parts} part{'s' if event.active_parts != 1 else ''} "
                f"in {event.active_files} file{'s' if event.active_files != 1 else ''}"
            )

            if callback is not None:
                callback(event)

    except KeyboardInterrupt:
        console.print("\n[yellow]Watch stopped.[/yellow]")
