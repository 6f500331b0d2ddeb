"""CSV export and Markdown summary of the work order store."""
from __future__ import annotations

import csv
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from .models import Store, WorkOrder, is_delivered, parse_currency
from .scanner import FileScanResult

CSV_HEADERS = [
    "OS",
    "Data",
    "Cliente",
    "Telefone",
    "Equipamento",
    "Defeito/Serviço",
    "Status",
    "Valor",
    "Observações",
]


def csv_row(record: WorkOrder) -> list[str]:
    return [
        str(record.id),
        record.created_date,
        record.client,
        record.phone,
        record.equipment_label,
        record.diagnosis_or_estimate,
        record.status,
        record.price,
        record.notes,
    ]


def export_csv(store: Store, output_path: Path) -> int:
    """Write a spreadsheet-friendly export and return the row count."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    # utf-8-sig writes the BOM spreadsheet tools need to detect the encoding
    with output_path.open("w", encoding="utf-8-sig", newline="") as fh:
        writer = csv.writer(fh, delimiter=";", quoting=csv.QUOTE_MINIMAL)
        writer.writerow(CSV_HEADERS)
        for record in store.records:
            writer.writerow(csv_row(record))
    return len(store.records)


def format_brl(value: float) -> str:
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {text}"


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|")


def render_summary(
    store: Store,
    output_path: Path,
    *,
    scan_results: Iterable[FileScanResult] | None = None,
) -> str:
    status_counts: Counter[str] = Counter(record.status or "unknown" for record in store.records)
    delivered = [record for record in store.records if is_delivered(record.status)]
    total_value = sum(parse_currency(record.price) for record in store.records)
    delivered_value = sum(parse_currency(record.price) for record in delivered)
    now = datetime.now().replace(microsecond=0).isoformat()

    lines = ["# Work Orders", "", f"_Generated: {now}_", ""]
    lines.append(f"**Total records:** {len(store.records)}")
    lines.append(f"**Last number:** {store.last_number}")
    lines.append(f"**Delivered:** {len(delivered)} ({format_brl(delivered_value)})")
    lines.append(f"**Total value:** {format_brl(total_value)}")
    lines.append("")
    if status_counts:
        lines.append("## By status")
        lines.append("")
        lines.append("| Status | Count |")
        lines.append("| --- | --- |")
        for status, count in sorted(status_counts.items()):
            lines.append(f"| {escape_cell(status)} | {count} |")
        lines.append("")
    results = list(scan_results or [])
    if results:
        lines.append("## Last scan")
        lines.append("")
        lines.append("| File | OS | Status | Error |")
        lines.append("| --- | --- | --- | --- |")
        for result in sorted(results, key=lambda item: (item.identifier, item.file)):
            lines.append(
                f"| {escape_cell(result.file)} | {result.identifier} | {result.status} "
                f"| {escape_cell(result.error or '')} |"
            )
        lines.append("")
    content = "\n".join(lines)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    return content
