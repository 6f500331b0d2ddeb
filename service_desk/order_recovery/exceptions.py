"""
Exceptions raised by the recovery engine and the order store.
"""
from __future__ import annotations


class RecoveryError(Exception):
    """Base exception for work order recovery."""


class DirectoryScanError(RecoveryError):
    """Raised when the documents directory cannot be enumerated."""


class StoreError(RecoveryError):
    """Base exception for persistence failures."""


class StoreValidationError(StoreError):
    """Raised when a store has duplicate or invalid ids or a stale counter."""


class WipeGuardError(StoreError):
    """Raised when a save would replace a substantial record set with nothing."""

    def __init__(self, existing_count: int, threshold: int) -> None:
        self.existing_count = existing_count
        self.threshold = threshold
        super().__init__(
            f"refusing to replace {existing_count} persisted records with an empty list "
            f"(threshold {threshold})"
        )


class StoreWriteError(StoreError):
    """Raised when the temp-write or rename step fails."""
