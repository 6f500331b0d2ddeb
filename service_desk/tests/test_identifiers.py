from __future__ import annotations

import pytest

from service_desk.order_recovery.identifiers import document_belongs_to, extract_identifier


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("3502.docx", 3502),
        ("OS 3501 - Maria - HP.docx", 3501),
        ("O.S. 1050.docx", 1050),
        ("os-77_backup.docx", 77),
        ("Pedido 0042 copia.docx", 42),
        ("Nº 12 - Joana.docx", 12),
        ("Order #981 final.docx", 981),
    ],
)
def test_anchored_mode_reads_leading_identifier(filename: str, expected: int) -> None:
    match = extract_identifier(filename)
    assert match is not None
    assert match.identifier == expected


def test_trailing_content_does_not_change_identifier() -> None:
    ids = {
        extract_identifier(name).identifier  # type: ignore[union-attr]
        for name in ("3501.docx", "3501 - Maria.docx", "3501 - Maria - HP 2024 ENTREGUE.docx")
    }
    assert ids == {3501}


def test_residual_drops_matched_prefix() -> None:
    match = extract_identifier("OS 3501 - Maria - HP.docx")
    assert match is not None
    assert match.residual == "Maria - HP.docx"


@pytest.mark.parametrize(
    "filename",
    [
        "Relatorio 2023.docx",
        "0.docx",
        "OS 000.docx",
        "1234567.docx",
        "modelo_os.docx",
        "",
    ],
)
def test_anchored_mode_rejects(filename: str) -> None:
    assert extract_identifier(filename) is None


def test_loose_mode_finds_digits_anywhere() -> None:
    match = extract_identifier("Relatorio cliente 3600.docx", mode="loose")
    assert match is not None
    assert match.identifier == 3600


def test_loose_mode_skips_zero_and_takes_first_positive_run() -> None:
    match = extract_identifier("copia 0 de 812 e 900.docx", mode="loose")
    assert match is not None
    assert match.identifier == 812


def test_loose_mode_ignores_runs_longer_than_six_digits() -> None:
    assert extract_identifier("ref 12345678.docx", mode="loose") is None


def test_unknown_mode_raises() -> None:
    with pytest.raises(ValueError):
        extract_identifier("3501.docx", mode="fuzzy")


def test_document_belongs_to_uses_anchored_match() -> None:
    assert document_belongs_to("OS 3501 - Maria.docx", 3501)
    assert not document_belongs_to("OS 35010.docx", 3501)
    assert not document_belongs_to("Relatorio 3501.docx", 3501)


def test_document_belongs_to_honours_loose_mode() -> None:
    assert document_belongs_to("Relatorio 3600.docx", 3600, mode="loose")
    assert not document_belongs_to("Relatorio 3600.docx", 3600)
