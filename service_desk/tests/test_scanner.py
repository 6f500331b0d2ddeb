from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import Any

import pytest

from service_desk.order_recovery import parser, scanner
from service_desk.order_recovery.exceptions import DirectoryScanError
from service_desk.order_recovery.models import PLACEHOLDER_CLIENT, RecoveredCandidate


def test_scenario_one_readable_and_one_corrupted(documents_dir: Path) -> None:
    outcome = asyncio.run(scanner.scan_directory(documents_dir, concurrency=4))
    assert [candidate.id for candidate in outcome.candidates] == [3501, 3502]
    first, second = outcome.candidates
    assert first.client == "Maria Silva"
    assert first.price == "R$ 150,00"
    assert second.client == PLACEHOLDER_CLIENT
    assert second.price == "R$ 0,00"
    assert outcome.counts()["recovered"] == 2


def test_list_eligible_files_filters_names(tmp_path: Path) -> None:
    for name in (
        "3501.docx",
        "OS 3502 - Joana.DOCX",
        "~$3503.docx",
        "3504.pdf",
        "notas.docx",
        "Relatorio 2023.docx",
    ):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "3505.docx").mkdir()
    eligible = scanner.list_eligible_files(tmp_path)
    assert [(item.path.name, item.identifier) for item in eligible] == [
        ("3501.docx", 3501),
        ("OS 3502 - Joana.DOCX", 3502),
    ]


def test_loose_mode_accepts_digits_deeper_in_the_name(tmp_path: Path) -> None:
    (tmp_path / "Relatorio 2023.docx").write_bytes(b"x")
    eligible = scanner.list_eligible_files(tmp_path, mode="loose")
    assert [item.identifier for item in eligible] == [2023]


def test_missing_directory_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(DirectoryScanError):
        asyncio.run(scanner.scan_directory(tmp_path / "missing"))


def test_oversized_files_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "10.docx").write_bytes(b"x" * 64)
    (tmp_path / "11.docx").write_bytes(b"x" * 8)
    outcome = asyncio.run(scanner.scan_directory(tmp_path, max_file_bytes=32))
    assert [candidate.id for candidate in outcome.candidates] == [11]
    assert outcome.files["10.docx"].status == "skipped"
    assert outcome.files["10.docx"].size == 64


def test_failing_file_does_not_abort_siblings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for identifier in range(1, 6):
        (tmp_path / f"{identifier}.docx").write_bytes(b"x")

    def flaky_mine(data: bytes, identifier: int, filename: str, **kwargs: Any) -> RecoveredCandidate:
        if identifier == 3:
            raise OSError("device not ready")
        return parser.fallback_candidate(identifier, filename, **kwargs)

    monkeypatch.setattr(scanner, "mine_document", flaky_mine)
    outcome = asyncio.run(scanner.scan_directory(tmp_path, concurrency=2))
    assert [candidate.id for candidate in outcome.candidates] == [1, 2, 4, 5]
    assert outcome.files["3.docx"].status == "error"
    assert "device not ready" in (outcome.files["3.docx"].error or "")
    assert outcome.total == 5


def test_concurrency_ceiling_is_respected(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for identifier in range(1, 201):
        (tmp_path / f"{identifier}.docx").write_bytes(b"x")
    lock = threading.Lock()
    active = 0
    peak = 0

    def slow_mine(data: bytes, identifier: int, filename: str, **kwargs: Any) -> RecoveredCandidate:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.002)
        with lock:
            active -= 1
        return parser.fallback_candidate(identifier, filename, **kwargs)

    progress: list[tuple[int, int]] = []
    monkeypatch.setattr(scanner, "mine_document", slow_mine)
    outcome = asyncio.run(
        scanner.scan_directory(
            tmp_path,
            concurrency=3,
            on_progress=lambda done, total: progress.append((done, total)),
        )
    )
    assert 1 <= peak <= 3
    assert [candidate.id for candidate in outcome.candidates] == list(range(1, 201))
    assert progress == [(50, 200), (100, 200), (150, 200), (200, 200)]


def test_scan_report_entry_lists_resolved_fields(documents_dir: Path) -> None:
    outcome = asyncio.run(scanner.scan_directory(documents_dir))
    entry = outcome.files["OS 3501 - Maria - HP.docx"].to_dict()
    assert entry["status"] == "recovered"
    assert entry["identifier"] == 3501
    assert "client" in entry["resolved"]  # type: ignore[operator]
    assert outcome.files["3502.docx"].to_dict()["resolved"] == []
