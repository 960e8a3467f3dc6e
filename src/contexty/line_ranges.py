"""Recover line ranges from a part's line-numbered output.

A numbered line starts with one or more digits, a ``|`` and an optional
single space.  Any writer using that convention produces parts whose
ranges can be derived here, so ranges are never stored separately.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from contexty.models import LineRange

if TYPE_CHECKING:
    from contexty.models import Part

_WHOLE_FILE_TRAILER = "(End of file - total "


def parse_line_number(line: str) -> int | None:
    """Return the 1-based number prefixed to *line*, or None."""
    idx = 0
    while idx < len(line) and line[idx].isascii() and line[idx].isdigit():
        idx += 1
    if idx == 0 or idx >= len(line) or line[idx] != "|":
        return None
    return int(line[:idx])


def ranges_from_output(output: str) -> list[LineRange]:
    """Inclusive 0-based range spanning every numbered line in *output*.

    Returns an empty list when no line is numbered.
    """
    lowest: int | None = None
    highest: int | None = None
    for line in output.split("\n"):
        number = parse_line_number(line)
        if number is None or number < 1:
            continue
        lowest = number if lowest is None else min(lowest, number)
        highest = number if highest is None else max(highest, number)
    if lowest is None or highest is None:
        return []
    return [LineRange(start=lowest - 1, end=highest - 1)]


def derive_ranges(part: Part) -> list[LineRange]:
    """Line ranges covered by *part*, derived from its output."""
    return ranges_from_output(part.output)


def part_label(part: Part) -> str:
    """Short display label: ``Full file`` or ``Lines A-B`` (1-based)."""
    ranges = derive_ranges(part)
    if not part.truncated or not ranges or _WHOLE_FILE_TRAILER in part.output:
        return "Full file"
    first = ranges[0]
    return f"Lines {first.start + 1}-{first.end + 1}"
