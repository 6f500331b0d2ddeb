"""Merge recovered candidates into the authoritative store.

Reconciliation only fills gaps: an identifier already present in the store is
never overwritten or removed, and the counter only moves forward.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .config import RecoveryConfig
from .dedupe import dedupe_candidates
from .identifiers import document_belongs_to
from .models import RecoveredCandidate, Store, WorkOrder, sort_by_id
from .scanner import (
    EligibleFile,
    ScanOutcome,
    is_eligible_name,
    mine_file,
    scan_directory,
)
from .store import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    store: Store
    added: list[RecoveredCandidate] = field(default_factory=list)
    discarded: list[RecoveredCandidate] = field(default_factory=list)
    scan: ScanOutcome | None = None

    @property
    def added_count(self) -> int:
        return len(self.added)

    @property
    def added_ids(self) -> list[int]:
        return [candidate.id for candidate in self.added]


def unique_by_id(records: Iterable[WorkOrder]) -> list[WorkOrder]:
    """Keep the first record for each id; later copies are dropped unchanged."""
    seen: set[int] = set()
    unique: list[WorkOrder] = []
    for record in records:
        if record.id in seen:
            logger.warning("Dropping duplicate record for id %d", record.id)
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def reconcile(
    store: Store,
    candidates: Iterable[RecoveredCandidate],
    *,
    max_identifier: int | None = None,
) -> ReconcileResult:
    """Return a new store holding ``store`` plus candidates for unseen ids."""
    known = store.ids()
    added: list[RecoveredCandidate] = []
    discarded: list[RecoveredCandidate] = []
    highest = max_identifier or 0
    for candidate in candidates:
        highest = max(highest, candidate.id)
        if candidate.id in known:
            discarded.append(candidate)
            continue
        known.add(candidate.id)
        added.append(candidate)
    merged = store.copy()
    existing = unique_by_id(merged.records)
    merged.records = sort_by_id([*existing, *(c.to_work_order() for c in added)])
    merged.last_number = max(store.last_number, highest, merged.max_id())
    return ReconcileResult(store=merged, added=added, discarded=discarded)


class RecoveryService:
    """Owns the in-memory store and runs recovery scans against it."""

    def __init__(
        self,
        order_store: OrderStore,
        documents_dir: Path,
        config: RecoveryConfig | None = None,
    ) -> None:
        self.order_store = order_store
        self.documents_dir = Path(documents_dir)
        self.config = config or RecoveryConfig()
        self._store: Store | None = None

    @property
    def store(self) -> Store:
        if self._store is None:
            self._store = self.order_store.load()
        return self._store

    def load(self) -> Store:
        self._store = self.order_store.load()
        return self._store

    def save(self, store: Store) -> None:
        self.order_store.save(store)
        self._store = store

    async def _scan(self) -> ScanOutcome:
        return await scan_directory(
            self.documents_dir,
            concurrency=self.config.concurrency,
            max_file_bytes=self.config.max_file_bytes,
            extensions=self.config.extensions,
            mode=self.config.id_mode,
            progress_every=self.config.progress_every,
        )

    async def preview(self) -> ReconcileResult:
        """Compute what ``scan_all`` would add without persisting anything."""
        outcome = await self._scan()
        deduped = dedupe_candidates(outcome.candidates)
        result = reconcile(self.store, deduped.candidates, max_identifier=deduped.max_identifier)
        result.scan = outcome
        return result

    async def scan_all(self) -> ReconcileResult:
        """Recover missing records from the documents directory.

        Persists only when something new was found; a failing save leaves both
        the file and the in-memory store untouched.
        """
        result = await self.preview()
        if not result.added:
            logger.info("No new records found in %s", self.documents_dir)
            result.store = self.store
            return result
        self.save(result.store)
        logger.info("%d records recovered (ids %s)", result.added_count, result.added_ids)
        return result

    async def scan_one(self, identifier: int) -> RecoveredCandidate | None:
        """Mine the document(s) for a single identifier, or ``None``."""
        items = await asyncio.to_thread(self._files_for, identifier)
        if not items:
            return None
        candidates: list[RecoveredCandidate] = []
        for item in items:
            try:
                result = await asyncio.to_thread(mine_file, item, self.config.max_file_bytes)
            except OSError as exc:
                logger.warning("Failed to process %s: %s", item.path.name, exc)
                continue
            if result.candidate is not None:
                candidates.append(result.candidate)
        deduped = dedupe_candidates(candidates)
        return deduped.candidates[0] if deduped.candidates else None

    def _files_for(self, identifier: int) -> list[EligibleFile]:
        if not self.documents_dir.is_dir():
            return []
        matches = [
            EligibleFile(path, identifier)
            for path in sorted(self.documents_dir.iterdir())
            if is_eligible_name(path.name, self.config.extensions)
            and path.is_file()
            and document_belongs_to(path.name, identifier, mode=self.config.id_mode)
        ]
        return matches
