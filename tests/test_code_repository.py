# tests/test_code_repository.py
import threading
from pathlib import Path

import pandas as pd
import pytest

import planning.code_repository as cr
from planning.code_repository import ExcelCodeRepository, InMemoryCodeRepository
from planning.errors import RegistryPersistenceError
from planning.graph_model import MaterialEntry, Node, StationRef
from planning.semi_code import SemiCodeRegistry


def _node(qty: float) -> Node:
    return Node(
        id="node-1", operation_id="OP-CUT", name="Řezání",
        materials=[MaterialEntry("M-STEEL", "Ocel", qty, "kg")],
        assigned_stations=[StationRef("ST-CUT", 1)],
    )


def test_in_memory_counter_and_bind():
    repo = InMemoryCodeRepository()
    assert repo.peek_counter("K") == 1
    assert repo.atomic_increment("K") == 1
    assert repo.atomic_increment("K") == 2
    assert repo.peek_counter("K") == 3
    assert repo.bind("sig", "K-001") == "K-001"
    # první mapování vyhrává
    assert repo.bind("sig", "K-099") == "K-001"
    assert repo.lookup("sig") == "K-001"


def test_excel_registry_persists_between_instances(tmp_paths, catalog):
    reg = SemiCodeRegistry(catalog, ExcelCodeRepository())
    assert reg.compute_and_assign(_node(1.0)) == "K-001"
    assert reg.compute_and_assign(_node(2.0)) == "K-002"

    path = tmp_paths / "data" / "registr_kodu.xlsx"
    assert path.exists()
    sheets = pd.read_excel(path, sheet_name=None)
    assert set(sheets) == {"Kody", "Citace"}
    assert sheets["Citace"].to_dict("records") == [{"prefix": "K", "dalsi": 3}]

    # nová relace (jiná instance) vidí stejná data
    reg2 = SemiCodeRegistry(catalog, ExcelCodeRepository())
    assert reg2.get_preview(_node(1.0)) == "K-001"
    assert reg2.get_preview(_node(3.0)) == "K-003"
    assert reg2.compute_and_assign(_node(2.0)) == "K-002"
    assert ExcelCodeRepository().peek_counter("K") == 3


def test_preview_does_not_write_file(tmp_paths, catalog):
    reg = SemiCodeRegistry(catalog, ExcelCodeRepository())
    assert reg.get_preview(_node(1.0)) == "K-001"
    assert not (tmp_paths / "data" / "registr_kodu.xlsx").exists()


def test_write_failure_is_fatal_and_not_applied(tmp_paths, catalog, monkeypatch):
    repo = ExcelCodeRepository()
    reg = SemiCodeRegistry(catalog, repo)
    assert reg.compute_and_assign(_node(1.0)) == "K-001"

    def broken(*args, **kwargs):
        raise OSError("disk full")
    monkeypatch.setattr(cr, "_write_registry", broken)

    n = _node(2.0)
    with pytest.raises(RegistryPersistenceError):
        reg.compute_and_assign(n)
    assert n.semi_code is None

    monkeypatch.undo()
    # čítač na disku se neposunul – další pokus vydá stejné číslo
    assert ExcelCodeRepository(tmp_paths / "data" / "registr_kodu.xlsx").peek_counter("K") == 2


def test_concurrent_commits_never_duplicate(tmp_path: Path, catalog):
    path = tmp_path / "registr.xlsx"
    results = []
    lock = threading.Lock()

    def worker(offset: int):
        reg = SemiCodeRegistry(catalog, ExcelCodeRepository(path))
        for i in range(4):
            code = reg.compute_and_assign(_node(offset + i))
            with lock:
                results.append(code)

    threads = [threading.Thread(target=worker, args=(k * 10 + 1,)) for k in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 12
    assert len(set(results)) == 12
    assert sorted(results) == [f"K-{i:03d}" for i in range(1, 13)]


def test_concurrent_commits_in_memory(catalog):
    reg = SemiCodeRegistry(catalog, InMemoryCodeRepository())
    results = []

    def worker(qty):
        results.append(reg.compute_and_assign(_node(qty)))

    threads = [threading.Thread(target=worker, args=(q,)) for q in (1, 2, 3, 1, 2, 3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(set(results)) == ["K-001", "K-002", "K-003"]
