"""Best-effort mining of work order fields from generated Word documents.

Nothing here is authoritative: every field carries a provenance tag telling
whether it was read from the document body, decomposed from the filename, or
left at its placeholder value.
"""
from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from pathlib import PurePath

from bs4 import BeautifulSoup, Tag

from .config import DOCUMENT_TEXT_PART
from .models import (
    DELIVERY_MARKER,
    PLACEHOLDER_CLIENT,
    PLACEHOLDER_DIAGNOSIS,
    PLACEHOLDER_EQUIPMENT,
    PLACEHOLDER_NOTES,
    PLACEHOLDER_PHONE,
    PLACEHOLDER_PRICE,
    STATUS_DELIVERED,
    STATUS_UNDER_ANALYSIS,
    Provenance,
    RecoveredCandidate,
)

logger = logging.getLogger(__name__)

MAX_TEXT_PART_BYTES = 50 * 1024 * 1024
CLIENT_MAX_CHARS = 40
EQUIPMENT_MAX_CHARS = 30

PHONE_RE = re.compile(r"(?<!\d)(?:\(?\d{2}\)?\s?)?9?\d{4}[-\s]?\d{4}(?!\d)")
PRICE_RE = re.compile(r"R\$\s?[\d.,]*\d")
CLIENT_RE = re.compile(r"\b(?:Cliente|Nome)\b[ \t]*[:;\-][ \t]*([^.,;\n]+)", re.IGNORECASE)
EQUIPMENT_RE = re.compile(
    r"\b(?:Equipamento|Aparelho|Modelo)\b[ \t]*[:;\-][ \t]*([^.,;\n]+)", re.IGNORECASE
)
FILENAME_SEPARATOR_RE = re.compile(r"[-–]")
LEADING_NUMBER_RE = re.compile(r"^\s*[-+]?\d")

TEXT_TAGS = ["t", "tab", "br", "cr"]


def clean_text(text: str) -> str:
    return " ".join(text.split())


def _paragraph_text(paragraph: Tag) -> str:
    parts: list[str] = []
    for node in paragraph.find_all(TEXT_TAGS):
        # text boxes nest their own paragraphs; those are read separately
        if node.find_parent("p") is not paragraph:
            continue
        if node.name == "t":
            parts.append(node.get_text())
        else:
            parts.append("\n")
    return "".join(parts)


def strip_markup(xml: str | bytes) -> str:
    """Flatten WordprocessingML into text, one line per paragraph."""
    soup = BeautifulSoup(xml, "lxml-xml")
    paragraphs = soup.find_all("p")
    if not paragraphs:
        return soup.get_text(" ")
    lines = (_paragraph_text(paragraph) for paragraph in paragraphs)
    return "\n".join(line for line in lines if line.strip())


def extract_document_text(data: bytes) -> str | None:
    """Return the flattened body text of a .docx archive, or ``None``.

    ``None`` means the bytes are not a readable zip container or the
    container has no main document part.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            try:
                info = archive.getinfo(DOCUMENT_TEXT_PART)
            except KeyError:
                logger.debug("Archive has no %s part", DOCUMENT_TEXT_PART)
                return None
            if info.file_size > MAX_TEXT_PART_BYTES:
                logger.debug("Document part too large (%d bytes)", info.file_size)
                return None
            xml = archive.read(info)
    except (zipfile.BadZipFile, zlib.error, OSError, EOFError, ValueError) as exc:
        logger.debug("Not a readable archive: %s", exc)
        return None
    return strip_markup(xml)


def status_from_filename(filename: str) -> tuple[str, Provenance]:
    if DELIVERY_MARKER in filename.lower():
        return STATUS_DELIVERED, Provenance.FILENAME
    return STATUS_UNDER_ANALYSIS, Provenance.PLACEHOLDER


def client_from_filename(filename: str) -> str | None:
    """Take the second ``-`` separated segment, e.g. ``3501 - Maria - HP``."""
    stem = PurePath(filename).stem
    parts = FILENAME_SEPARATOR_RE.split(stem)
    if len(parts) < 2:
        return None
    candidate = clean_text(parts[1])
    if len(candidate) <= 2 or LEADING_NUMBER_RE.match(candidate):
        return None
    return candidate


def _labeled_value(pattern: re.Pattern[str], text: str, max_chars: int) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    value = clean_text(match.group(1))[:max_chars].strip()
    return value or None


def fallback_candidate(
    identifier: int,
    filename: str,
    *,
    created_date: str = "",
    source_file_timestamp: float = 0.0,
) -> RecoveredCandidate:
    """Filename-only record used whenever the document body cannot be read."""
    status, status_origin = status_from_filename(filename)
    return RecoveredCandidate(
        id=identifier,
        created_date=created_date,
        client=PLACEHOLDER_CLIENT,
        phone=PLACEHOLDER_PHONE,
        equipment_label=PLACEHOLDER_EQUIPMENT,
        diagnosis_or_estimate=PLACEHOLDER_DIAGNOSIS,
        price=PLACEHOLDER_PRICE,
        notes=PLACEHOLDER_NOTES,
        status=status,
        provenance={
            "client": Provenance.PLACEHOLDER,
            "phone": Provenance.PLACEHOLDER,
            "equipment_label": Provenance.PLACEHOLDER,
            "diagnosis_or_estimate": Provenance.PLACEHOLDER,
            "price": Provenance.PLACEHOLDER,
            "notes": Provenance.PLACEHOLDER,
            "status": status_origin,
        },
        source_file=filename,
        source_file_timestamp=source_file_timestamp,
    )


def mine_text(candidate: RecoveredCandidate, text: str) -> RecoveredCandidate:
    phone_match = PHONE_RE.search(text)
    if phone_match:
        candidate.phone = phone_match.group(0).strip()
        candidate.provenance["phone"] = Provenance.CONTENT

    price_match = PRICE_RE.search(text)
    if price_match:
        candidate.price = price_match.group(0).strip()
        candidate.provenance["price"] = Provenance.CONTENT

    client = _labeled_value(CLIENT_RE, text, CLIENT_MAX_CHARS)
    if client:
        candidate.client = client
        candidate.provenance["client"] = Provenance.CONTENT
    else:
        client = client_from_filename(candidate.source_file)
        if client:
            candidate.client = client
            candidate.provenance["client"] = Provenance.FILENAME

    equipment = _labeled_value(EQUIPMENT_RE, text, EQUIPMENT_MAX_CHARS)
    if equipment:
        candidate.equipment_label = equipment
        candidate.provenance["equipment_label"] = Provenance.CONTENT
    return candidate


def mine_document(
    data: bytes,
    identifier: int,
    filename: str,
    *,
    created_date: str = "",
    source_file_timestamp: float = 0.0,
) -> RecoveredCandidate:
    """Mine a document archive into a fully populated candidate. Never raises."""
    candidate = fallback_candidate(
        identifier,
        filename,
        created_date=created_date,
        source_file_timestamp=source_file_timestamp,
    )
    try:
        text = extract_document_text(data)
        if text is None:
            return candidate
        return mine_text(candidate, text)
    except Exception as exc:  # pragma: no cover - parser errors vary by input
        logger.debug("Mining failed for %s: %s", filename, exc)
        return fallback_candidate(
            identifier,
            filename,
            created_date=created_date,
            source_file_timestamp=source_file_timestamp,
        )
