"""Scan and persistence settings, with environment overrides."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10
MAX_CONCURRENCY = 64
MAX_FILE_BYTES = 10 * 1024 * 1024
PROGRESS_INTERVAL = 50
WIPE_THRESHOLD = 10

DOCUMENT_EXTENSIONS = frozenset({".docx"})
TRANSIENT_PREFIX = "~$"
DOCUMENT_TEXT_PART = "word/document.xml"

ID_MODES = ("anchored", "loose")
DEFAULT_ID_MODE = "anchored"

STORE_FILENAME = "banco_dados.json"
DOCUMENTS_DIRNAME = "OS_Geradas"
INDEX_DIRNAME = "_index"


def _env_int(name: str) -> int | None:
    env_value = os.environ.get(name)
    if not env_value:
        return None
    try:
        return int(env_value)
    except ValueError:
        logger.debug("Invalid %s value: %s", name, env_value)
        return None


def resolve_concurrency(value: int | None) -> int:
    if value is None:
        value = _env_int("ORDER_SCAN_CONCURRENCY")
    if value is None:
        return DEFAULT_CONCURRENCY
    return min(max(value, 1), MAX_CONCURRENCY)


def resolve_max_file_bytes(value: int | None) -> int:
    if value is None:
        value = _env_int("ORDER_SCAN_MAX_BYTES")
    if value is None or value <= 0:
        return MAX_FILE_BYTES
    return value


def resolve_id_mode(value: str | None) -> str:
    candidate = (value or os.environ.get("ORDER_ID_MODE") or DEFAULT_ID_MODE).strip().lower()
    if candidate not in ID_MODES:
        logger.debug("Unknown identifier mode %r, using %s", candidate, DEFAULT_ID_MODE)
        return DEFAULT_ID_MODE
    return candidate


def resolve_base_number(value: int | None) -> int:
    if value is None:
        value = _env_int("ORDER_BASE_NUMBER")
    return max(value or 0, 0)


@dataclass(frozen=True)
class RecoveryConfig:
    """Knobs shared by the scanner, the reconciler and the store."""

    concurrency: int = DEFAULT_CONCURRENCY
    max_file_bytes: int = MAX_FILE_BYTES
    id_mode: str = DEFAULT_ID_MODE
    base_number: int = 0
    progress_every: int = PROGRESS_INTERVAL
    wipe_threshold: int = WIPE_THRESHOLD
    extensions: frozenset[str] = field(default=DOCUMENT_EXTENSIONS)

    @classmethod
    def from_env(cls, **overrides: Any) -> RecoveryConfig:
        config = cls(
            concurrency=resolve_concurrency(overrides.pop("concurrency", None)),
            max_file_bytes=resolve_max_file_bytes(overrides.pop("max_file_bytes", None)),
            id_mode=resolve_id_mode(overrides.pop("id_mode", None)),
            base_number=resolve_base_number(overrides.pop("base_number", None)),
        )
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        return replace(config, **cleaned) if cleaned else config
