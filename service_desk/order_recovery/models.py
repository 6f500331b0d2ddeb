"""Work order records, the store that holds them, and recovered candidates."""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

STATUS_UNDER_ANALYSIS = "Em Análise"
STATUS_APPROVED = "Aprovado"
STATUS_REJECTED = "Reprovado"
STATUS_DELIVERED = "Aprovado - Entregue"
STATUS_VOCABULARY = (STATUS_UNDER_ANALYSIS, STATUS_APPROVED, STATUS_REJECTED, STATUS_DELIVERED)
DELIVERY_MARKER = "entregue"

PLACEHOLDER_CLIENT = "Cliente não identificado"
PLACEHOLDER_EQUIPMENT = "Equipamento antigo"
PLACEHOLDER_PRICE = "R$ 0,00"
PLACEHOLDER_PHONE = ""
PLACEHOLDER_DIAGNOSIS = "Verificar arquivo físico"
PLACEHOLDER_NOTES = "Recuperado de arquivo legado"

# serialized key -> attribute, in the order written to disk
RECORD_KEYS = {
    "id": "id",
    "createdDate": "created_date",
    "client": "client",
    "phone": "phone",
    "equipmentLabel": "equipment_label",
    "diagnosisOrEstimate": "diagnosis_or_estimate",
    "price": "price",
    "notes": "notes",
    "status": "status",
}

# keys used by files written by the older desktop app
LEGACY_RECORD_KEYS = {
    "os": "id",
    "data": "created_date",
    "cliente": "client",
    "telefone": "phone",
    "impressora": "equipment_label",
    "orcamento": "diagnosis_or_estimate",
    "valor": "price",
    "obs": "notes",
    "status": "status",
}

MINED_FIELDS = (
    "client",
    "phone",
    "equipment_label",
    "diagnosis_or_estimate",
    "price",
    "notes",
    "status",
)


def is_delivered(status: str | None) -> bool:
    """True for any status label carrying the delivery marker."""
    if not status:
        return False
    return DELIVERY_MARKER in status.lower()


def parse_currency(value: str | None) -> float:
    """Turn a display price such as ``R$ 1.234,56`` into ``1234.56``."""
    if not value:
        return 0.0
    cleaned = re.sub(r"[^0-9,.\-]", "", value)
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


class Provenance(str, Enum):
    CONTENT = "content"
    FILENAME = "filename"
    PLACEHOLDER = "placeholder"


@dataclass
class WorkOrder:
    """A single service ticket as persisted in the store."""

    id: int
    created_date: str = ""
    client: str = ""
    phone: str = ""
    equipment_label: str = ""
    diagnosis_or_estimate: str = ""
    price: str = ""
    notes: str = ""
    status: str = STATUS_UNDER_ANALYSIS

    @property
    def delivered(self) -> bool:
        return is_delivered(self.status)

    def to_dict(self) -> dict[str, object]:
        return {key: getattr(self, attr) for key, attr in RECORD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkOrder:
        key_map = RECORD_KEYS if "id" in data else LEGACY_RECORD_KEYS
        values: dict[str, Any] = {}
        for key, attr in key_map.items():
            if key in data and data[key] is not None:
                values[attr] = data[key]
        if "id" not in values:
            raise ValueError("record has no identifier")
        identifier = int(values.pop("id"))
        cleaned = {attr: str(value) for attr, value in values.items()}
        return cls(id=identifier, **cleaned)


@dataclass
class Store:
    """The authoritative record set and its id counter."""

    last_number: int = 0
    records: list[WorkOrder] = field(default_factory=list)

    def ids(self) -> set[int]:
        return {record.id for record in self.records}

    def max_id(self) -> int:
        return max((record.id for record in self.records), default=0)

    def next_id(self) -> int:
        return max(self.last_number, self.max_id()) + 1

    def get(self, identifier: int) -> WorkOrder | None:
        for record in self.records:
            if record.id == identifier:
                return record
        return None

    def problems(self) -> list[str]:
        issues: list[str] = []
        seen: set[int] = set()
        for record in self.records:
            if record.id < 1:
                issues.append(f"non-positive id {record.id}")
            if record.id in seen:
                issues.append(f"duplicate id {record.id}")
            seen.add(record.id)
        if self.last_number < self.max_id():
            issues.append(
                f"lastNumber {self.last_number} is below the highest id {self.max_id()}"
            )
        return issues

    def copy(self) -> Store:
        return Store(self.last_number, [replace(record) for record in self.records])

    def to_dict(self) -> dict[str, object]:
        return {
            "lastNumber": self.last_number,
            "records": [record.to_dict() for record in self.records],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, default_last_number: int = 0) -> Store:
        if "records" in data or "lastNumber" in data:
            raw_records = data.get("records", [])
            raw_last = data.get("lastNumber", default_last_number)
        else:
            raw_records = data.get("historico", [])
            raw_last = data.get("ultimo_numero", default_last_number)
        if not isinstance(raw_records, list):
            raise ValueError("records must be a list")
        records: list[WorkOrder] = []
        for item in raw_records:
            if not isinstance(item, Mapping):
                continue
            try:
                records.append(WorkOrder.from_dict(item))
            except (TypeError, ValueError):
                continue
        return cls(last_number=int(raw_last or 0), records=records)


@dataclass
class RecoveredCandidate:
    """A record mined from an output document, with per-field provenance."""

    id: int
    created_date: str
    client: str
    phone: str
    equipment_label: str
    diagnosis_or_estimate: str
    price: str
    notes: str
    status: str
    provenance: dict[str, Provenance] = field(default_factory=dict)
    source_file: str = ""
    source_file_timestamp: float = 0.0

    def provenance_of(self, field_name: str) -> Provenance:
        return self.provenance.get(field_name, Provenance.PLACEHOLDER)

    def is_placeholder(self, field_name: str) -> bool:
        return self.provenance_of(field_name) is Provenance.PLACEHOLDER

    @property
    def resolved_fields(self) -> list[str]:
        return [name for name in MINED_FIELDS if not self.is_placeholder(name)]

    def to_work_order(self) -> WorkOrder:
        return WorkOrder(
            id=self.id,
            created_date=self.created_date,
            client=self.client,
            phone=self.phone,
            equipment_label=self.equipment_label,
            diagnosis_or_estimate=self.diagnosis_or_estimate,
            price=self.price,
            notes=self.notes,
            status=self.status,
        )

    def to_dict(self) -> dict[str, object]:
        data = self.to_work_order().to_dict()
        data["provenance"] = {name: self.provenance_of(name).value for name in MINED_FIELDS}
        data["sourceFile"] = self.source_file
        data["sourceFileTimestamp"] = self.source_file_timestamp
        return data


def sort_by_id(records: Iterable[WorkOrder]) -> list[WorkOrder]:
    return sorted(records, key=lambda record: record.id)
