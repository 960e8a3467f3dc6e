"""Local file-system capabilities used by the store, engine and capture.

Everything here raises :class:`OSError` on failure; callers decide how
to degrade.
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


def _glob_match(candidate: str, pattern: str) -> bool:
    # ``**`` has no special meaning for fnmatch; ``*`` already spans ``/``.
    return fnmatch.fnmatchcase(candidate, pattern.replace("**", "*"))


def is_excluded(rel_posix: str, exclude: Sequence[str]) -> bool:
    """Check a root-relative ``/`` path (file or directory) against *exclude* globs.

    The candidate is wrapped in slashes so ``**/node_modules/**`` also
    matches a top-level ``node_modules`` directory.
    """
    rel = rel_posix.strip("/")
    candidates = (f"/{rel}/", f"/{rel}")
    return any(_glob_match(c, pat) for pat in exclude for c in candidates)


class LocalFileSystem:
    """Thin wrapper over :mod:`os` so tests and adapters can substitute one."""

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def create_directory(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, content: bytes) -> None:
        """Write *content* atomically (temp file, then ``os.replace``)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f"{target.name}.{os.getpid()}.tmp")
        try:
            tmp.write_bytes(content)
            os.replace(tmp, target)
        finally:
            if tmp.exists():
                tmp.unlink()

    def walk_files(self, base: str, exclude: Sequence[str] = ()) -> Iterator[str]:
        """Yield every file under *base*, pruning excluded directories."""
        for dirpath, dirnames, filenames in os.walk(base):
            rel_dir = os.path.relpath(dirpath, base).replace(os.sep, "/")
            rel_dir = "" if rel_dir == "." else rel_dir
            dirnames[:] = sorted(
                d for d in dirnames
                if not is_excluded(f"{rel_dir}/{d}", exclude)
            )
            for name in sorted(filenames):
                rel = f"{rel_dir}/{name}"
                if not is_excluded(rel, exclude):
                    yield os.path.join(dirpath, name)

    def find(self, base: str, pattern: str, exclude: Sequence[str] = ()) -> list[str]:
        """Files under *base* whose ``/``-relative path matches *pattern*."""
        matches: list[str] = []
        for path in self.walk_files(base, exclude):
            rel = os.path.relpath(path, base).replace(os.sep, "/")
            if _glob_match(f"/{rel}", pattern):
                matches.append(path)
        return matches
