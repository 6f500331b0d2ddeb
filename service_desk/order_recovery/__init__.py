"""Work order store and document recovery engine."""
from __future__ import annotations

from pathlib import Path

from . import (
    config,
    dedupe,
    exceptions,
    identifiers,
    models,
    parser,
    reconcile,
    renderer,
    scanner,
    store,
)
from .config import RecoveryConfig
from .reconcile import RecoveryService

__all__ = [
    "config",
    "dedupe",
    "exceptions",
    "identifiers",
    "models",
    "parser",
    "reconcile",
    "renderer",
    "scanner",
    "store",
    "RecoveryConfig",
    "RecoveryService",
    "open_service",
]


def open_service(
    store_path: Path,
    documents_dir: Path,
    config: RecoveryConfig | None = None,
) -> RecoveryService:
    """Convenience wrapper wiring an ``OrderStore`` into a ``RecoveryService``."""
    from .store import OrderStore

    config = config or RecoveryConfig.from_env()
    order_store = OrderStore(
        store_path,
        wipe_threshold=config.wipe_threshold,
        base_number=config.base_number,
    )
    return RecoveryService(order_store, documents_dir, config)
