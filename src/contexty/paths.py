"""Path normalization used for every membership and hierarchy decision.

Case policy: comparisons are always case-insensitive (``str.casefold``),
on every platform, because parts documents may be written by tools that
spell the same path with different case.  Separators are normalized to
``/`` before comparing.  Display paths keep their original case.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


def normalize_path(path: str | Path) -> str:
    """Absolute, ``normpath``-ed form of *path* with ``/`` separators.

    Symlinks are not resolved.
    """
    text = os.path.normpath(os.path.abspath(os.fspath(path)))
    if os.sep != "/":
        text = text.replace(os.sep, "/")
    return text


def path_key(path: str | Path) -> str:
    """Comparison key for *path*: normalized and case-folded."""
    return normalize_path(path).casefold()


def path_segments(path: str | Path) -> list[str]:
    """Non-empty segments of the normalized *path* (original case)."""
    return [seg for seg in normalize_path(path).split("/") if seg]


def _key_segments(path: str | Path) -> list[str]:
    return [seg.casefold() for seg in path_segments(path)]


def is_within(path: str | Path, root: str | Path) -> bool:
    """True if *path* lies strictly below *root* (the root itself is not within)."""
    p = _key_segments(path)
    r = _key_segments(root)
    return len(p) > len(r) and p[: len(r)] == r


def is_same_or_within(path: str | Path, base: str | Path) -> bool:
    """True if *path* equals *base* or lies below it."""
    p = _key_segments(path)
    b = _key_segments(base)
    return len(p) >= len(b) and p[: len(b)] == b


def relative_title(path: str | Path, root: str | Path | None) -> str:
    """Root-relative ``/``-separated path, or the normalized absolute path."""
    if root is None or not is_within(path, root):
        return normalize_path(path)
    depth = len(path_segments(root))
    return "/".join(path_segments(path)[depth:])


def join_segments(segments: list[str]) -> str:
    """Inverse of :func:`path_segments` for absolute paths."""
    joined = "/".join(segments)
    if os.sep == "/":
        return "/" + joined
    return joined
