"""Render a file or a selection into a self-describing, line-numbered block.

Each line becomes ``{00001}| {text}``; the block is wrapped in a
``<file>`` envelope with a trailer naming the total line count.  The
numbering is what :mod:`contexty.line_ranges` later parses back, so no
line-range field is ever persisted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_LIMIT = 1000

_LINE_SPLIT_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class FormattedPart:
    """Rendered payload for a new part."""

    output: str
    preview: str
    truncated: bool
    line_count: int

    @property
    def is_empty(self) -> bool:
        return self.line_count == 0


EMPTY_RESULT = FormattedPart(output="", preview="", truncated=False, line_count=0)


@dataclass(frozen=True)
class Position:
    """0-based line and character offset."""

    line: int
    character: int


@dataclass(frozen=True)
class Selection:
    """A range of a document; ``start`` never comes after ``end``."""

    start: Position
    end: Position

    @classmethod
    def between(cls, anchor: Position, active: Position) -> Selection:
        """Build a selection from two positions in either order."""
        a = (anchor.line, anchor.character)
        b = (active.line, active.character)
        return cls(anchor, active) if a <= b else cls(active, anchor)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


class TextDocument:
    """An in-memory text document addressed by line."""

    def __init__(self, path: str, text: str) -> None:
        self.path = path
        self.text = text
        self.lines = split_lines(text)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def end_position(self) -> Position:
        return Position(len(self.lines) - 1, len(self.lines[-1]))


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` or ``\\r\\n``; an empty text is one empty line."""
    return _LINE_SPLIT_RE.split(text)


def number_lines(lines: list[str], first_line: int = 1) -> str:
    """Prefix each line with its 5-digit, 1-based line number."""
    return "\n".join(
        f"{str(first_line + idx).zfill(5)}| {line}" for idx, line in enumerate(lines)
    )


def _preview(raw_body: str, limit: int) -> tuple[str, bool]:
    over = len(raw_body) > limit
    return (raw_body[:limit] if over else raw_body), over


def decode_text(data: bytes) -> str | None:
    """Decode file bytes as UTF-8, or None for binary content."""
    if b"\x00" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def format_whole_file(
    path: str,
    read_file: Callable[[str], bytes],
    *,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> FormattedPart:
    """Render every line of the file at *path*.

    Read failures (missing, unreadable, binary) yield :data:`EMPTY_RESULT`
    rather than raising.  ``truncated`` is set when the raw body is longer
    than *preview_limit*.
    """
    try:
        data = read_file(path)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return EMPTY_RESULT
    text = decode_text(data)
    if text is None:
        logger.debug("Skipping binary file %s", path)
        return EMPTY_RESULT

    lines = split_lines(text)
    trailer = f"(End of file - total {len(lines)} lines)"
    output = f"<file>\n{number_lines(lines)}\n\n{trailer}\n</file>"
    preview, over = _preview("\n".join(lines), preview_limit)
    return FormattedPart(output=output, preview=preview, truncated=over, line_count=len(lines))


def effective_end_line(selection: Selection) -> int:
    """Last line a selection covers.

    A selection ending at column 0 of a later line stops on the line
    before, so selecting whole lines with their trailing newline does not
    pull in the next line.
    """
    end = selection.end.line
    if selection.end.character == 0 and end > selection.start.line:
        end -= 1
    return end


def format_selection(
    document: TextDocument,
    selection: Selection,
    *,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> FormattedPart | None:
    """Render the lines covered by *selection*, or None when it covers nothing.

    ``truncated`` is False only when the selection spans the whole document
    from (0, 0) to its true end.
    """
    start = max(selection.start.line, 0)
    end = min(effective_end_line(selection), document.line_count - 1)
    if end < start:
        return None

    lines = document.lines[start : end + 1]
    trailer = f"(Excerpt lines {start + 1}-{end + 1} of total {document.line_count} lines)"
    output = f"<file>\n{number_lines(lines, start + 1)}\n\n{trailer}\n</file>"
    preview, _ = _preview("\n".join(lines), preview_limit)
    full = selection.start == Position(0, 0) and selection.end == document.end_position
    return FormattedPart(
        output=output,
        preview=preview,
        truncated=not full,
        line_count=document.line_count,
    )
