"""Collapse candidates that share an identifier."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import RecoveredCandidate


@dataclass
class DedupeResult:
    candidates: list[RecoveredCandidate]
    max_identifier: int


def prefer(existing: RecoveredCandidate, incoming: RecoveredCandidate) -> RecoveredCandidate:
    # a resolved client name beats a placeholder; otherwise first seen wins
    if existing.is_placeholder("client") and not incoming.is_placeholder("client"):
        return incoming
    return existing


def dedupe_candidates(candidates: Iterable[RecoveredCandidate]) -> DedupeResult:
    unique: dict[int, RecoveredCandidate] = {}
    max_identifier = 0
    for candidate in candidates:
        max_identifier = max(max_identifier, candidate.id)
        existing = unique.get(candidate.id)
        unique[candidate.id] = candidate if existing is None else prefer(existing, candidate)
    ordered = sorted(unique.values(), key=lambda candidate: candidate.id)
    return DedupeResult(candidates=ordered, max_identifier=max_identifier)
