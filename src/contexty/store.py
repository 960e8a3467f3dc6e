"""Per-root persistence of the parts and blacklist documents.

Every operation is best-effort: read failures yield empty results, a
document that exists but cannot be parsed is never rewritten, and
write failures are logged and reported through the return value, never
raised.  Both documents are shared with other writers, so writes are
read-merge-rewrite rather than wholesale replacement.
"""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any

from contexty.fs import LocalFileSystem
from contexty.models import BLACKLIST_FILENAME, Part, SkippedRecord, parse_part

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


def _record_file_path(raw: object) -> str:
    """Sort key for a raw record; records without a file path sort first."""
    if isinstance(raw, dict):
        state = raw.get("state")
        if isinstance(state, dict) and isinstance(state.get("input"), dict):
            file_path = state["input"].get("filePath")
            if isinstance(file_path, str):
                return file_path
    return ""


def _record_id(raw: object) -> str | None:
    if isinstance(raw, dict) and isinstance(raw.get("id"), str):
        return raw["id"]
    return None


def _dump(document: dict[str, Any]) -> bytes:
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


class PartStore:
    """Reads and writes one ``tool-parts.json`` and its sibling blacklist."""

    def __init__(
        self,
        parts_path: str,
        blacklist_path: str | None = None,
        fs: LocalFileSystem | None = None,
    ) -> None:
        self.parts_path = parts_path
        self.blacklist_path = blacklist_path or os.path.join(
            os.path.dirname(parts_path), BLACKLIST_FILENAME
        )
        self._fs = fs or LocalFileSystem()

    def __repr__(self) -> str:
        return f"PartStore({self.parts_path!r})"

    @property
    def directory(self) -> str:
        return os.path.dirname(self.parts_path)

    # -- reading ----------------------------------------------------------

    def _load(self, path: str, key: str) -> tuple[list[Any], bool]:
        """Entries of the *key* array in the document at *path*.

        The flag says whether the document may be rewritten: a missing
        document is empty and writable, one that exists but cannot be read
        or parsed is left alone so another writer's data survives.
        """
        try:
            data = self._fs.read_file(path)
        except FileNotFoundError:
            return [], True
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return [], False
        try:
            document = json.loads(data.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring malformed document %s: %s", path, exc)
            return [], False
        if not isinstance(document, dict):
            logger.warning("Ignoring malformed document %s: not an object", path)
            return [], False
        entries = document.get(key, [])
        if not isinstance(entries, list):
            logger.warning("Ignoring malformed document %s: %r is not an array", path, key)
            return [], False
        return list(entries), True

    def read_raw_records(self) -> list[Any]:
        """Every entry of the ``parts`` array, valid or not."""
        records, _ = self._load(self.parts_path, "parts")
        return records

    def read_parts(self) -> list[Part]:
        """Parts that pass the shape check; the rest are dropped."""
        parts: list[Part] = []
        for raw in self.read_raw_records():
            result = parse_part(raw)
            if isinstance(result, SkippedRecord):
                logger.debug("Skipping record in %s: %s", self.parts_path, result.reason)
                continue
            parts.append(result)
        return parts

    def read_blacklist(self) -> set[str]:
        ids, _ = self._load(self.blacklist_path, "ids")
        return {i for i in ids if isinstance(i, str)}

    # -- writing ----------------------------------------------------------

    def _write(self, path: str, document: dict[str, Any]) -> bool:
        try:
            self._fs.create_directory(os.path.dirname(path))
            self._fs.write_file(path, _dump(document))
        except OSError as exc:
            logger.warning("Could not persist %s: %s", path, exc)
            return False
        return True

    def append_parts(self, new_parts: Iterable[Part]) -> bool:
        """Upsert *new_parts* by id and rewrite the document sorted by file path.

        Records not being replaced are kept verbatim, including records
        from other writers that fail the shape check.  Returns False when
        the write failed or the existing document could not be parsed.
        """
        records, writable = self._load(self.parts_path, "parts")
        if not writable:
            logger.warning("Not rewriting unparsable %s", self.parts_path)
            return False
        incoming = {part.id: part.to_dict() for part in new_parts}
        replaced: set[str] = set()
        merged: list[Any] = []
        for raw in records:
            raw_id = _record_id(raw)
            if raw_id is not None and raw_id in incoming:
                merged.append(incoming.pop(raw_id))
                replaced.add(raw_id)
            elif raw_id is not None and raw_id in replaced:
                continue
            else:
                merged.append(raw)
        merged.extend(incoming.values())
        merged.sort(key=lambda raw: (_record_file_path(raw).casefold(), _record_file_path(raw)))
        return self._write(self.parts_path, {"parts": merged})

    def write_blacklist(self, ids: Iterable[str]) -> bool:
        """Rewrite the blacklist as a sorted, de-duplicated array."""
        return self._write(self.blacklist_path, {"ids": sorted(set(ids))})

    def add_to_blacklist(self, ids: Iterable[str]) -> bool:
        """Union *ids* with what is on disk now and persist.

        An existing blacklist that cannot be parsed is never overwritten;
        returns False so the caller keeps the ban in memory.
        """
        current, writable = self._load(self.blacklist_path, "ids")
        if not writable:
            logger.warning("Not rewriting unparsable %s", self.blacklist_path)
            return False
        return self.write_blacklist({i for i in current if isinstance(i, str)} | set(ids))
