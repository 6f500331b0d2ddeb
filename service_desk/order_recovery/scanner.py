"""Bounded concurrent scan of a documents directory.

Directory enumeration happens once, up front. Each eligible file is then mined
in a worker thread while holding a slot of an ``asyncio.Semaphore``; a task
that raises is logged and dropped without disturbing its siblings. Results
are gathered only after every task has settled.
"""
from __future__ import annotations

import asyncio
import logging
import os
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_ID_MODE,
    DOCUMENT_EXTENSIONS,
    MAX_FILE_BYTES,
    PROGRESS_INTERVAL,
    TRANSIENT_PREFIX,
)
from .exceptions import DirectoryScanError
from .identifiers import extract_identifier
from .models import RecoveredCandidate
from .parser import mine_document

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class EligibleFile:
    path: Path
    identifier: int


@dataclass
class FileScanResult:
    """What happened to a single file during a scan."""

    file: str
    identifier: int
    size: int = 0
    mtime: int = 0
    status: str = "pending"
    error: str | None = None
    candidate: RecoveredCandidate | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "file": self.file,
            "identifier": self.identifier,
            "size": self.size,
            "mtime": self.mtime,
            "status": self.status,
            "error": self.error,
        }
        if self.candidate is not None:
            data["resolved"] = self.candidate.resolved_fields
        return data


@dataclass
class ScanOutcome:
    candidates: list[RecoveredCandidate]
    files: dict[str, FileScanResult]
    total: int

    def counts(self) -> Counter[str]:
        return Counter(result.status for result in self.files.values())

    @property
    def recovered_count(self) -> int:
        return self.counts()["recovered"]


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def format_display_date(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%d/%m/%Y")


def is_eligible_name(name: str, extensions: Iterable[str] = DOCUMENT_EXTENSIONS) -> bool:
    if name.startswith(TRANSIENT_PREFIX):
        return False
    return os.path.splitext(name)[1].lower() in set(extensions)


def list_eligible_files(
    directory: Path,
    *,
    extensions: Iterable[str] = DOCUMENT_EXTENSIONS,
    mode: str = DEFAULT_ID_MODE,
) -> list[EligibleFile]:
    """Enumerate ``directory`` once and keep files that carry an identifier."""
    allowed = {extension.lower() for extension in extensions}
    eligible: list[EligibleFile] = []
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if not is_eligible_name(entry.name, allowed):
                    continue
                try:
                    if not entry.is_file():
                        continue
                except OSError as exc:
                    logger.warning("Skipping %s: %s", entry.name, exc)
                    continue
                match = extract_identifier(entry.name, mode=mode)
                if match is None:
                    logger.debug("No identifier in %s", entry.name)
                    continue
                eligible.append(EligibleFile(Path(entry.path), match.identifier))
    except OSError as exc:
        raise DirectoryScanError(f"cannot enumerate {directory}: {exc}") from exc
    eligible.sort(key=lambda item: (item.identifier, item.path.name))
    return eligible


def mine_file(item: EligibleFile, max_file_bytes: int = MAX_FILE_BYTES) -> FileScanResult:
    """Stat, size-check and mine one file. Filesystem errors propagate."""
    stats = item.path.stat()
    result = FileScanResult(
        file=item.path.name,
        identifier=item.identifier,
        size=stats.st_size,
        mtime=int(stats.st_mtime),
    )
    if stats.st_size > max_file_bytes:
        result.status = "skipped"
        result.error = f"file larger than {max_file_bytes} bytes"
        return result
    data = item.path.read_bytes()
    created = getattr(stats, "st_birthtime", None) or stats.st_mtime
    result.candidate = mine_document(
        data,
        item.identifier,
        item.path.name,
        created_date=format_display_date(created),
        source_file_timestamp=stats.st_mtime,
    )
    result.status = "recovered"
    return result


async def _run_bounded(
    item: EligibleFile,
    semaphore: asyncio.Semaphore,
    max_file_bytes: int,
) -> FileScanResult:
    async with semaphore:
        try:
            return await asyncio.to_thread(mine_file, item, max_file_bytes)
        except Exception as exc:
            logger.warning("Failed to process %s: %s", item.path.name, exc)
            return FileScanResult(
                file=item.path.name,
                identifier=item.identifier,
                status="error",
                error=str(exc),
            )


async def scan_files(
    items: list[EligibleFile],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_file_bytes: int = MAX_FILE_BYTES,
    progress_every: int = PROGRESS_INTERVAL,
    on_progress: ProgressCallback | None = None,
) -> ScanOutcome:
    semaphore = asyncio.Semaphore(max(concurrency, 1))
    total = len(items)
    processed = 0

    async def tracked(item: EligibleFile) -> FileScanResult:
        nonlocal processed
        result = await _run_bounded(item, semaphore, max_file_bytes)
        processed += 1
        if progress_every and processed % progress_every == 0:
            logger.info("Processed %d/%d files", processed, total)
            if on_progress is not None:
                on_progress(processed, total)
        return result

    results = await asyncio.gather(*(tracked(item) for item in items))

    files: dict[str, FileScanResult] = {}
    candidates: list[RecoveredCandidate] = []
    for result in results:
        files[result.file] = result
        if result.candidate is not None:
            candidates.append(result.candidate)
    candidates.sort(key=lambda candidate: candidate.id)
    return ScanOutcome(candidates=candidates, files=files, total=total)


async def scan_directory(
    directory: Path,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_file_bytes: int = MAX_FILE_BYTES,
    extensions: Iterable[str] = DOCUMENT_EXTENSIONS,
    mode: str = DEFAULT_ID_MODE,
    progress_every: int = PROGRESS_INTERVAL,
    on_progress: ProgressCallback | None = None,
) -> ScanOutcome:
    """Mine every eligible document in ``directory``.

    Raises :class:`DirectoryScanError` when the directory itself cannot be
    listed; individual file failures only show up in ``ScanOutcome.files``.
    """
    items = await asyncio.to_thread(
        list_eligible_files, Path(directory), extensions=extensions, mode=mode
    )
    logger.info("Found %d eligible documents in %s", len(items), directory)
    outcome = await scan_files(
        items,
        concurrency=concurrency,
        max_file_bytes=max_file_bytes,
        progress_every=progress_every,
        on_progress=on_progress,
    )
    counts = outcome.counts()
    logger.info(
        "Scan finished. Recovered: %d, Skipped: %d, Errors: %d",
        counts["recovered"],
        counts["skipped"],
        counts["error"],
    )
    return outcome
