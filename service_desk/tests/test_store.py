from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from service_desk.order_recovery import store as store_module
from service_desk.order_recovery.exceptions import (
    StoreValidationError,
    StoreWriteError,
    WipeGuardError,
)
from service_desk.order_recovery.models import Store, WorkOrder
from service_desk.order_recovery.store import OrderStore, temp_path_for


def make_store(count: int, last_number: int | None = None) -> Store:
    records = [WorkOrder(id=i, client=f"Cliente {i}", price="R$ 10,00") for i in range(1, count + 1)]
    return Store(last_number=count if last_number is None else last_number, records=records)


def test_missing_file_loads_default(tmp_path: Path) -> None:
    loaded = OrderStore(tmp_path / "banco_dados.json", base_number=3825).load()
    assert loaded.last_number == 3825
    assert loaded.records == []


def test_corrupt_file_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    path.write_text("{ not json", encoding="utf-8")
    assert OrderStore(path).load().records == []


def test_round_trip_keeps_key_order_and_accents(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    order_store = OrderStore(path)
    saved = Store(
        last_number=5,
        records=[WorkOrder(id=5, client="João", status="Em Análise", price="R$ 1,00")],
    )
    order_store.save(saved)
    text = path.read_text(encoding="utf-8")
    assert "João" in text
    assert '    "lastNumber": 5' in text
    data = json.loads(text)
    assert list(data) == ["lastNumber", "records"]
    assert list(data["records"][0]) == [
        "id",
        "createdDate",
        "client",
        "phone",
        "equipmentLabel",
        "diagnosisOrEstimate",
        "price",
        "notes",
        "status",
    ]
    assert order_store.load() == saved


def test_empty_save_over_large_store_is_refused(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    order_store = OrderStore(path)
    order_store.save(make_store(50))
    before = path.read_bytes()
    with pytest.raises(WipeGuardError) as excinfo:
        order_store.save(Store(last_number=0, records=[]))
    assert excinfo.value.existing_count == 50
    assert path.read_bytes() == before


def test_empty_save_allowed_for_small_store(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    order_store = OrderStore(path)
    order_store.save(make_store(10))
    order_store.save(Store(last_number=10, records=[]))
    assert order_store.load().records == []


@pytest.mark.parametrize(
    "bad",
    [
        Store(last_number=5, records=[WorkOrder(id=2), WorkOrder(id=2)]),
        Store(last_number=5, records=[WorkOrder(id=0)]),
        Store(last_number=3, records=[WorkOrder(id=7)]),
    ],
)
def test_invalid_store_is_rejected(tmp_path: Path, bad: Store) -> None:
    path = tmp_path / "banco_dados.json"
    with pytest.raises(StoreValidationError):
        OrderStore(path).save(bad)
    assert not path.exists()


def test_non_store_payload_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(StoreValidationError):
        OrderStore(tmp_path / "banco_dados.json").save({"records": []})  # type: ignore[arg-type]


def test_failed_replace_leaves_previous_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "banco_dados.json"
    order_store = OrderStore(path)
    order_store.save(make_store(3))
    before = path.read_bytes()

    def broken_replace(src: object, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(store_module.os, "replace", broken_replace)
    with pytest.raises(StoreWriteError):
        order_store.save(make_store(4))
    assert path.read_bytes() == before
    assert not temp_path_for(path).exists()


def test_legacy_layout_is_read(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    legacy = {
        "ultimo_numero": 3830,
        "historico": [
            {"os": 3826, "cliente": "Ana", "impressora": "HP 2774", "valor": "R$ 90,00"},
            {"cliente": "sem numero"},
            "lixo",
        ],
    }
    path.write_text(json.dumps(legacy), encoding="utf-8")
    loaded = OrderStore(path).load()
    assert loaded.last_number == 3830
    assert [record.id for record in loaded.records] == [3826]
    assert loaded.records[0].equipment_label == "HP 2774"


def test_concurrent_saves_leave_a_complete_file(tmp_path: Path) -> None:
    path = tmp_path / "banco_dados.json"
    order_store = OrderStore(path)
    errors: list[Exception] = []

    def writer(count: int) -> None:
        try:
            order_store.save(make_store(count))
        except Exception as exc:  # pragma: no cover - surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(count,)) for count in range(1, 9)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []
    loaded = json.loads(path.read_text(encoding="utf-8"))
    assert loaded["lastNumber"] == len(loaded["records"])
    assert not temp_path_for(path).exists()
