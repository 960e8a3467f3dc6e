"""Reconciliation engine: rebuild the part index from disk, then query it.

The JSON documents are the only source of truth.  :meth:`reconcile`
always starts from an empty index: it discovers every parts document
under the configured roots, unions all blacklists into one exclusion set,
and buckets the surviving parts by file path.  Query methods read the
index as it stood at the last reconcile; callers that serve a user-facing
read reconcile first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contexty.config import ContextyConfig
from contexty.fs import LocalFileSystem
from contexty.ids import PART_PREFIX, generate_id
from contexty.line_ranges import derive_ranges
from contexty.models import MARKER_DIR, PARTS_FILENAME, Children, ChildEntry, Part, Root
from contexty.paths import (
    is_same_or_within,
    is_within,
    join_segments,
    normalize_path,
    path_key,
    path_segments,
)
from contexty.store import PartStore

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from contexty.models import LineRange

logger = logging.getLogger(__name__)

DISCOVERY_PATTERN = f"**/{MARKER_DIR}/{PARTS_FILENAME}"


@dataclass
class _Bucket:
    """Parts indexed under one file path."""

    display_path: str
    parts: list[Part] = field(default_factory=list)


def _sort_key(part: Part) -> tuple[int, str]:
    return (part.time_start, part.id)


class ReconciliationEngine:
    """In-memory index over every root's parts documents.

    All state is private to the instance; two engines never share it.
    """

    def __init__(
        self,
        roots: Sequence[Root],
        *,
        config: ContextyConfig | None = None,
        fs: LocalFileSystem | None = None,
    ) -> None:
        self._roots: tuple[Root, ...] = tuple(roots)
        self.config = config or ContextyConfig()
        self.fs = fs or LocalFileSystem()
        self._index: dict[str, _Bucket] = {}
        self._banned: set[str] = set()
        self._owners: dict[str, PartStore] = {}
        self._stores: dict[str, PartStore] = {}
        self._discovered: list[PartStore] = []
        # Changes whose write failed stay visible for this process run.
        self._unpersisted_parts: dict[str, tuple[Part, PartStore]] = {}
        self._unpersisted_bans: set[str] = set()
        self._generated_ids: dict[tuple[str, str, int, str], str] = {}

    @property
    def roots(self) -> tuple[Root, ...]:
        return self._roots

    @property
    def banned_ids(self) -> frozenset[str]:
        return frozenset(self._banned)

    # -- stores ----------------------------------------------------------

    def store_for_root(self, root: Root) -> PartStore:
        return self._store_at(root.parts_path, root.blacklist_path)

    def _store_at(self, parts_path: str, blacklist_path: str | None = None) -> PartStore:
        key = path_key(parts_path)
        store = self._stores.get(key)
        if store is None:
            store = PartStore(parts_path, blacklist_path, fs=self.fs)
            self._stores[key] = store
        return store

    def discover_stores(self) -> list[PartStore]:
        """Stores for every configured root plus nested documents found on disk."""
        found: dict[str, PartStore] = {}
        for root in self._roots:
            store = self.store_for_root(root)
            found[path_key(store.parts_path)] = store
            if not self.config.discover_nested:
                continue
            try:
                paths = self.fs.find(root.path, DISCOVERY_PATTERN, self.config.exclude)
            except OSError as exc:
                logger.warning("Discovery failed under %s: %s", root.path, exc)
                continue
            for parts_path in paths:
                key = path_key(parts_path)
                if key not in found:
                    found[key] = self._store_at(parts_path)
        return list(found.values())

    def known_stores(self) -> list[PartStore]:
        """Stores whose documents were found at the last reconcile (configured roots first)."""
        return list(self._discovered)

    def owner_of(self, part_id: str) -> PartStore | None:
        """Store whose document held *part_id* at the last reconcile."""
        return self._owners.get(part_id)

    def root_for(self, path: str) -> Root | None:
        """The most specific configured root containing *path*."""
        best: Root | None = None
        for root in self._roots:
            if is_within(path, root.path) and (
                best is None or len(path_segments(root.path)) > len(path_segments(best.path))
            ):
                best = root
        return best

    # -- reconciliation ---------------------------------------------------

    def reconcile(self) -> None:
        """Replace the index with what is on disk now."""
        stores = self.discover_stores()
        loaded: list[tuple[PartStore, list[Part]]] = []
        banned: set[str] = set(self._unpersisted_bans)
        for store in stores:
            banned |= store.read_blacklist()
            loaded.append((store, store.read_parts()))

        index: dict[str, _Bucket] = {}
        owners: dict[str, PartStore] = {}
        by_id: dict[str, tuple[str, Part]] = {}

        def place(part: Part, store: PartStore) -> None:
            if self.root_for(part.file_path) is None:
                return
            part.id = self._normalized_id(part, store)
            owners.setdefault(part.id, store)
            if part.id in banned:
                return
            key = path_key(part.file_path)
            previous = by_id.get(part.id)
            if previous is not None:
                # Same id seen twice; the later record replaces the earlier.
                prev_key, prev_part = previous
                index[prev_key].parts.remove(prev_part)
                if not index[prev_key].parts:
                    del index[prev_key]
            bucket = index.get(key)
            if bucket is None:
                bucket = index[key] = _Bucket(display_path=normalize_path(part.file_path))
            bucket.parts.append(part)
            by_id[part.id] = (key, part)

        for store, parts in loaded:
            for part in parts:
                place(part, store)
        for part_id, (part, store) in self._unpersisted_parts.items():
            if part_id not in owners:
                place(part, store)

        for bucket in index.values():
            bucket.parts.sort(key=_sort_key)
        self._index = index
        self._discovered = stores
        self._owners = owners
        self._banned = banned
        logger.debug(
            "Reconciled %d stores: %d files, %d parts, %d banned",
            len(stores),
            len(index),
            sum(len(b.parts) for b in index.values()),
            len(banned),
        )

    def _normalized_id(self, part: Part, store: PartStore) -> str:
        """Stripped id, or a generated one that stays stable across reconciles."""
        part_id = part.id.strip()
        if part_id:
            return part_id
        key = (path_key(store.parts_path), path_key(part.file_path), part.time_start, part.output)
        if key not in self._generated_ids:
            self._generated_ids[key] = generate_id(PART_PREFIX)
        return self._generated_ids[key]

    def remember_unpersisted(self, parts: Iterable[Part], store: PartStore) -> None:
        for part in parts:
            self._unpersisted_parts[part.id] = (part, store)

    def remember_unpersisted_bans(self, ids: Iterable[str]) -> None:
        self._unpersisted_bans.update(ids)

    # -- queries ----------------------------------------------------------

    def is_active(self, path: str) -> bool:
        return path_key(path) in self._index

    def parts_for(self, path: str) -> list[Part]:
        """Parts for *path*, oldest first (ties broken by id)."""
        bucket = self._index.get(path_key(path))
        return list(bucket.parts) if bucket else []

    def part_count(self, path: str) -> int:
        bucket = self._index.get(path_key(path))
        return len(bucket.parts) if bucket else 0

    def line_ranges_for(self, path: str) -> list[LineRange]:
        ranges: list[LineRange] = []
        for part in self.parts_for(path):
            ranges.extend(derive_ranges(part))
        return ranges

    def find_part(self, part_id: str) -> Part | None:
        for bucket in self._index.values():
            for part in bucket.parts:
                if part.id == part_id:
                    return part
        return None

    def all_parts(self) -> list[Part]:
        """Every indexed part, ordered by file path then creation."""
        parts: list[Part] = []
        for key in sorted(self._index):
            parts.extend(self._index[key].parts)
        return parts

    def indexed_paths(self) -> list[str]:
        return sorted((b.display_path for b in self._index.values()), key=str.casefold)

    def parts_under(self, base_path: str) -> list[Part]:
        """Parts whose file equals *base_path* or lies below it."""
        return [
            part
            for bucket in self._index.values()
            if is_same_or_within(bucket.display_path, base_path)
            for part in bucket.parts
        ]

    def roots_with_content(self) -> list[Root]:
        return [
            root
            for root in self._roots
            if any(is_within(b.display_path, root.path) for b in self._index.values())
        ]

    def children_of(self, base_path: str) -> Children:
        """Synthetic directories and files one level below *base_path*.

        Built from indexed file paths only: a directory appears only when
        some captured file lies beneath it.
        """
        depth = len(path_segments(base_path))
        dirs: dict[str, ChildEntry] = {}
        files: dict[str, ChildEntry] = {}
        for bucket in self._index.values():
            if not is_within(bucket.display_path, base_path):
                continue
            segments = path_segments(bucket.display_path)
            rest = segments[depth:]
            if len(rest) == 1:
                files.setdefault(
                    rest[0].casefold(),
                    ChildEntry(path=bucket.display_path, label=rest[0]),
                )
            else:
                dirs.setdefault(
                    rest[0].casefold(),
                    ChildEntry(path=join_segments(segments[: depth + 1]), label=rest[0]),
                )
        return Children(
            dirs=[dirs[k] for k in sorted(dirs)],
            files=[files[k] for k in sorted(files)],
        )
