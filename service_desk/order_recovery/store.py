"""Atomic persistence of the work order store, with the anti-wipe guard.

Reads are forgiving: a missing or unreadable file loads as an empty store.
Writes are strict: every failure is raised, and the file on disk is only ever
replaced in one ``os.replace`` step.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from .config import WIPE_THRESHOLD
from .exceptions import StoreValidationError, StoreWriteError, WipeGuardError
from .models import Store

logger = logging.getLogger(__name__)


def temp_path_for(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".tmp")


def serialize_store(store: Store) -> str:
    return json.dumps(store.to_dict(), indent=4, ensure_ascii=False) + "\n"


class OrderStore:
    """Single-writer access to the store file at ``path``."""

    def __init__(
        self,
        path: Path,
        *,
        wipe_threshold: int = WIPE_THRESHOLD,
        base_number: int = 0,
    ) -> None:
        self.path = Path(path)
        self.wipe_threshold = wipe_threshold
        self.base_number = base_number
        self._lock = threading.Lock()

    def empty(self) -> Store:
        return Store(last_number=self.base_number, records=[])

    def load(self) -> Store:
        if not self.path.exists():
            return self.empty()
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, dict):
                raise ValueError("store root must be an object")
            return Store.from_dict(data, default_last_number=self.base_number)
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Failed to load %s, starting empty: %s", self.path, exc)
            return self.empty()

    def persisted_count(self) -> int:
        return len(self.load().records)

    def check_wipe(self, store: Store) -> None:
        if store.records:
            return
        existing = self.persisted_count()
        if existing > self.wipe_threshold:
            logger.warning("Blocked save that would empty %d records in %s", existing, self.path)
            raise WipeGuardError(existing, self.wipe_threshold)

    def save(self, store: Store) -> None:
        """Validate, guard and atomically write ``store``."""
        if not isinstance(store, Store) or not isinstance(store.records, list):
            raise StoreValidationError("store is malformed")
        with self._lock:
            self.check_wipe(store)
            problems = store.problems()
            if problems:
                raise StoreValidationError("; ".join(problems))
            self._write(serialize_store(store))
        logger.debug("Saved %d records to %s", len(store.records), self.path)

    def _write(self, content: str) -> None:
        tmp_path = temp_path_for(self.path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove %s", tmp_path)
            raise StoreWriteError(f"failed to write {self.path}: {exc}") from exc
