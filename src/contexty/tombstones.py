"""Soft deletion: append part ids to blacklist documents.

Ids are only ever added.  Every operation reconciles before deciding what
to ban and again after writing, so callers observe the updated index and
any ban written concurrently by another process.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from contexty.engine import ReconciliationEngine
    from contexty.models import Part
    from contexty.store import PartStore

logger = logging.getLogger(__name__)


class TombstoneManager:
    """Bans parts by id, by path prefix, or all at once."""

    def __init__(self, engine: ReconciliationEngine) -> None:
        self.engine = engine

    def _persist(self, store: PartStore, ids: set[str]) -> None:
        if not store.add_to_blacklist(ids):
            self.engine.remember_unpersisted_bans(ids)

    def _ban_parts(self, parts: Iterable[Part]) -> int:
        by_store: dict[PartStore, set[str]] = defaultdict(set)
        banned = self.engine.banned_ids
        for part in parts:
            if part.id in banned:
                continue
            owner = self.engine.owner_of(part.id)
            if owner is None:
                for store in self.engine.known_stores():
                    by_store[store].add(part.id)
            else:
                by_store[owner].add(part.id)
        added = {part_id for ids in by_store.values() for part_id in ids}
        for store, ids in by_store.items():
            self._persist(store, ids)
        self.engine.reconcile()
        return len(added)

    def ban(self, part_id: str) -> bool:
        """Ban one part.  Returns False if it was already banned.

        When the owning document is unknown, the id goes into every known
        blacklist; ids are globally unique, so the extra entries are inert.
        """
        self.engine.reconcile()
        if part_id in self.engine.banned_ids:
            return False
        owner = self.engine.owner_of(part_id)
        targets = [owner] if owner is not None else self.engine.known_stores()
        for store in targets:
            self._persist(store, {part_id})
        logger.info("Banned part %s", part_id)
        self.engine.reconcile()
        return True

    def ban_under_path(self, base_path: str) -> int:
        """Ban every part for *base_path* or any file below it; returns the count."""
        self.engine.reconcile()
        count = self._ban_parts(self.engine.parts_under(base_path))
        logger.info("Banned %d parts under %s", count, base_path)
        return count

    def ban_all(self) -> int:
        """Ban every indexed part.  Returns how many were newly banned."""
        self.engine.reconcile()
        count = self._ban_parts(self.engine.all_parts())
        logger.info("Banned %d parts", count)
        return count
