"""Session bootstrap and the facade UI adapters hold.

:class:`ContextState` wires one engine, its tombstone manager and its
capture helper to a single session id.  Read helpers reconcile before
answering, so every call reflects edits other processes made since.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import yaml

from contexty.capture import Capture
from contexty.config import load_config
from contexty.engine import ReconciliationEngine
from contexty.formatter import Position, Selection
from contexty.fs import LocalFileSystem
from contexty.ids import SESSION_PREFIX, generate_id
from contexty.models import MARKER_DIR, Root
from contexty.tombstones import TombstoneManager

if TYPE_CHECKING:
    from collections.abc import Sequence

    from contexty.config import ContextyConfig
    from contexty.models import Children, LineRange, Part

logger = logging.getLogger(__name__)

SESSION_FILENAME = "session.yml"


def load_or_create_session_id(root: Root | None) -> str:
    """Return the session id persisted for *root*, creating one if needed.

    Persistence is best-effort; on failure the fresh id is used for this
    run only.
    """
    if root is None:
        return generate_id(SESSION_PREFIX)
    path = os.path.join(root.path, MARKER_DIR, SESSION_FILENAME)
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        existing = data.get("session_id") if isinstance(data, dict) else None
        if isinstance(existing, str) and existing.startswith(f"{SESSION_PREFIX}_"):
            return existing
    except FileNotFoundError:
        pass
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)

    fresh = generate_id(SESSION_PREFIX)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            yaml.safe_dump({"session_id": fresh}, fh, default_flow_style=False)
    except OSError as exc:
        logger.warning("Could not persist session id to %s: %s", path, exc)
    return fresh


class ContextState:
    """Engine, tombstones and capture bound to one session."""

    def __init__(
        self,
        roots: Sequence[Root],
        *,
        config: ContextyConfig | None = None,
        fs: LocalFileSystem | None = None,
        session_id: str | None = None,
    ) -> None:
        first = roots[0] if roots else None
        if config is None:
            config = load_config(first.path if first else None)
        self.engine = ReconciliationEngine(roots, config=config, fs=fs)
        self.session_id = session_id or load_or_create_session_id(first)
        self.tombstones = TombstoneManager(self.engine)
        self.capture = Capture(self.engine, self.session_id)
        self.engine.reconcile()

    @classmethod
    def open(
        cls,
        folders: Sequence[str | os.PathLike[str]],
        *,
        session_id: str | None = None,
    ) -> ContextState:
        """Build a state for workspace *folders*; non-directories are skipped."""
        roots = [Root.from_folder(f) for f in folders if os.path.isdir(f)]
        return cls(roots, session_id=session_id)

    @property
    def roots(self) -> tuple[Root, ...]:
        return self.engine.roots

    def refresh(self) -> None:
        self.engine.reconcile()

    # -- reads (reconcile first) -------------------------------------------

    def is_active(self, path: str) -> bool:
        self.engine.reconcile()
        return self.engine.is_active(path)

    def parts_for(self, path: str) -> list[Part]:
        self.engine.reconcile()
        return self.engine.parts_for(path)

    def line_ranges_for(self, path: str) -> list[LineRange]:
        self.engine.reconcile()
        return self.engine.line_ranges_for(path)

    def roots_with_content(self) -> list[Root]:
        self.engine.reconcile()
        return self.engine.roots_with_content()

    def children_of(self, base_path: str) -> Children:
        self.engine.reconcile()
        return self.engine.children_of(base_path)

    def find_part(self, part_id: str) -> Part | None:
        self.engine.reconcile()
        return self.engine.find_part(part_id)

    def all_parts(self) -> list[Part]:
        self.engine.reconcile()
        return self.engine.all_parts()

    # -- writes ------------------------------------------------------------

    def ban(self, part_id: str) -> bool:
        return self.tombstones.ban(part_id)

    def ban_under_path(self, base_path: str) -> int:
        return self.tombstones.ban_under_path(base_path)

    def ban_all(self) -> int:
        return self.tombstones.ban_all()

    def add_file(self, path: str) -> Part | None:
        return self.capture.capture_file(path)

    def add_path(self, path: str) -> list[Part]:
        return self.capture.capture_path(path)

    def add_selection(self, path: str, start_line: int, end_line: int) -> Part | None:
        """Capture 1-based inclusive lines *start_line*..*end_line* of *path*."""
        document = self.capture.open_document(path)
        if document is None or start_line < 1:
            return None
        last = min(end_line, document.line_count) - 1
        if last < start_line - 1:
            return None
        selection = Selection(
            Position(start_line - 1, 0),
            Position(last, len(document.lines[last])),
        )
        return self.capture.capture_selection(document, selection)
