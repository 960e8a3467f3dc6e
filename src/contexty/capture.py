"""Create new parts from whole files, directories or selections.

A capture that has nothing to record (target outside every root, not a
plain file, unreadable, empty selection) is a silent no-op returning
None or an empty list.
"""

from __future__ import annotations

import logging
import os
import time
from typing import TYPE_CHECKING

from contexty.formatter import TextDocument, decode_text, format_selection, format_whole_file
from contexty.ids import CALL_PREFIX, MESSAGE_PREFIX, PART_PREFIX, generate_id, generate_item_id
from contexty.models import MARKER_DIR, Part
from contexty.paths import is_same_or_within, normalize_path, relative_title

if TYPE_CHECKING:
    from contexty.engine import ReconciliationEngine
    from contexty.formatter import FormattedPart, Selection
    from contexty.models import Root

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Capture:
    """Builds part records and appends them to the owning root's document."""

    def __init__(self, engine: ReconciliationEngine, session_id: str) -> None:
        self.engine = engine
        self.session_id = session_id

    def _build_part(self, path: str, root: Root, formatted: FormattedPart) -> Part:
        timestamp = _now_ms()
        return Part(
            id=generate_id(PART_PREFIX),
            file_path=os.path.abspath(path),
            output=formatted.output,
            title=relative_title(path, root.path),
            preview=formatted.preview,
            truncated=formatted.truncated,
            time_start=timestamp,
            time_end=timestamp,
            session_id=self.session_id,
            message_id=generate_id(MESSAGE_PREFIX),
            call_id=generate_id(CALL_PREFIX),
            metadata={"openai": {"itemId": generate_item_id()}},
        )

    def _persist(self, root: Root, parts: list[Part]) -> None:
        store = self.engine.store_for_root(root)
        if not store.append_parts(parts):
            self.engine.remember_unpersisted(parts, store)

    def _format_file(self, path: str) -> tuple[Root, FormattedPart] | None:
        root = self.engine.root_for(path)
        if root is None:
            logger.debug("Not capturing %s: outside every workspace root", path)
            return None
        if not self.engine.fs.is_file(path):
            logger.debug("Not capturing %s: not a plain file", path)
            return None
        formatted = format_whole_file(
            path,
            self.engine.fs.read_file,
            preview_limit=self.engine.config.preview_limit,
        )
        if formatted.is_empty:
            return None
        return root, formatted

    def capture_file(self, path: str) -> Part | None:
        """Capture the whole file at *path* as one new part."""
        self.engine.reconcile()
        result = self._format_file(path)
        if result is None:
            return None
        root, formatted = result
        part = self._build_part(path, root, formatted)
        self._persist(root, [part])
        logger.info("Captured %s as %s", part.title, part.id)
        self.engine.reconcile()
        return part

    def capture_directory(self, path: str) -> list[Part]:
        """Capture every plain file below *path*, honouring ``exclude`` globs.

        One write per root, however many files are captured.
        """
        self.engine.reconcile()
        if self.engine.root_for(path) is None and not any(
            is_same_or_within(root.path, path) for root in self.engine.roots
        ):
            logger.debug("Not capturing %s: outside every workspace root", path)
            return []
        by_root: dict[Root, list[Part]] = {}
        try:
            exclude = (*self.engine.config.exclude, f"**/{MARKER_DIR}/**")
            files = list(self.engine.fs.walk_files(path, exclude))
        except OSError as exc:
            logger.warning("Cannot walk %s: %s", path, exc)
            return []
        for file_path in files:
            result = self._format_file(file_path)
            if result is None:
                continue
            root, formatted = result
            by_root.setdefault(root, []).append(self._build_part(file_path, root, formatted))
        for root, parts in by_root.items():
            self._persist(root, parts)
        captured = [part for parts in by_root.values() for part in parts]
        logger.info("Captured %d files under %s", len(captured), path)
        self.engine.reconcile()
        return captured

    def capture_path(self, path: str) -> list[Part]:
        """Capture a file, or every file in a directory."""
        if self.engine.fs.is_dir(path):
            return self.capture_directory(path)
        part = self.capture_file(path)
        return [part] if part is not None else []

    def open_document(self, path: str) -> TextDocument | None:
        """Load *path* as a :class:`TextDocument`, or None when unreadable."""
        try:
            data = self.engine.fs.read_file(path)
        except OSError as exc:
            logger.debug("Cannot open %s: %s", path, exc)
            return None
        text = decode_text(data)
        if text is None:
            return None
        return TextDocument(normalize_path(path), text)

    def capture_selection(self, document: TextDocument, selection: Selection) -> Part | None:
        """Capture the lines of *document* covered by *selection*."""
        self.engine.reconcile()
        root = self.engine.root_for(document.path)
        if root is None:
            logger.debug("Not capturing %s: outside every workspace root", document.path)
            return None
        formatted = format_selection(
            document, selection, preview_limit=self.engine.config.preview_limit
        )
        if formatted is None:
            return None
        part = self._build_part(document.path, root, formatted)
        self._persist(root, [part])
        logger.info("Captured excerpt of %s as %s", part.title, part.id)
        self.engine.reconcile()
        return part

