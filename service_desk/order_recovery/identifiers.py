"""Derive work order identifiers from output document filenames."""
from __future__ import annotations

import re
from dataclasses import dataclass

MAX_IDENTIFIER = 999_999

LABEL_PATTERN = r"(?:O\.?\s?S\.?|N[º°o]?\.?|Pedido|Ordem|Order|Request)"

# Digits must open the name (after an optional label) so that years or model
# numbers deeper in a descriptive name are not taken for the identifier.
ANCHORED_RE = re.compile(
    rf"^\s*(?:{LABEL_PATTERN})?\s*[.\-_#:]*\s*(?P<digits>\d{{1,6}})(?!\d)",
    re.IGNORECASE,
)
LOOSE_RE = re.compile(r"(?<!\d)(?P<digits>\d{1,6})(?!\d)")

RESIDUAL_STRIP = " \t-_.#:"


@dataclass(frozen=True)
class IdentifierMatch:
    identifier: int
    residual: str


def _build_match(filename: str, match: re.Match[str]) -> IdentifierMatch | None:
    identifier = int(match.group("digits"))
    if identifier < 1 or identifier > MAX_IDENTIFIER:
        return None
    residual = (filename[: match.start()] + " " + filename[match.end():]).strip(RESIDUAL_STRIP)
    return IdentifierMatch(identifier, " ".join(residual.split()))


def extract_identifier(filename: str, *, mode: str = "anchored") -> IdentifierMatch | None:
    """Return the identifier embedded in ``filename`` or ``None``.

    ``anchored`` only accepts digits at the start of the name, optionally
    behind a known label such as ``OS`` or ``Pedido``. ``loose`` accepts the
    first positive run of up to six digits anywhere in the name.
    """
    if not filename:
        return None
    if mode == "anchored":
        match = ANCHORED_RE.match(filename)
        return _build_match(filename, match) if match else None
    if mode == "loose":
        for match in LOOSE_RE.finditer(filename):
            result = _build_match(filename, match)
            if result is not None:
                return result
        return None
    raise ValueError(f"unknown identifier mode: {mode}")


def document_belongs_to(filename: str, identifier: int, *, mode: str = "anchored") -> bool:
    match = extract_identifier(filename, mode=mode)
    return match is not None and match.identifier == identifier
