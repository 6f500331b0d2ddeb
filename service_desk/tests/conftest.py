from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path

import pytest
from docx import Document


def build_docx(*paragraphs: str) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def docx_bytes() -> Callable[..., bytes]:
    return build_docx


@pytest.fixture()
def documents_dir(tmp_path: Path) -> Path:
    """Output folder with one readable order and one corrupted file."""
    target = tmp_path / "OS_Geradas"
    target.mkdir()
    (target / "OS 3501 - Maria - HP.docx").write_bytes(
        build_docx(
            "ORDEM DE SERVIÇO",
            "Cliente: Maria Silva",
            "Equipamento: HP DeskJet 2774",
            "Valor: R$ 150,00",
        )
    )
    (target / "3502.docx").write_bytes(b"\x00\x01 definitely not a zip archive")
    return target
