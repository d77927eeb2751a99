# tests/conftest.py
import sys
from datetime import date, datetime
from pathlib import Path
import pytest

# Přidej kořen projektu do sys.path (pro jistotu na Windows)
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from planning.catalog import Catalog
from planning.code_repository import InMemoryCodeRepository
from planning.graph_model import Absence, Operation, Station, Worker
from planning.node_editor import NodeEdit
from planning.plan_session import PlanSession
from planning.semi_code import SemiCodeRegistry

START = datetime(2026, 3, 2, 8, 0)   # pondělí 8:00


def build_catalog() -> Catalog:
    ops = [
        Operation("OP-CUT", "Řezání", "cutting", ["Cutting"], "K", default_efficiency=0.8, default_duration=30),
        Operation("OP-WELD", "Svařování", "welding", ["Welding"], "S"),
        Operation("OP-PAINT", "Lakování", "painting", ["Painting"], "L"),
        Operation("OP-ASM", "Montáž", "assembly", [], ""),
    ]
    stations = [
        Station("ST-CUT", "Pila", ["OP-CUT"]),
        Station("ST-WELD", "Svařovna", ["OP-WELD"], sub_skills=["Safety"]),
        Station("ST-MULTI", "Víceúčelová", ["OP-WELD", "OP-CUT"]),
        Station("ST-PAINT", "Lakovna", ["OP-PAINT"]),
        Station("ST-EMPTY", "Montážní stůl", []),
    ]
    workers = [
        Worker("W1", "Adam", ["Welding"]),
        Worker("W2", "Bára", ["Welding", "Safety", "Painting"]),
        Worker("W3", "Cyril", ["Cutting"]),
        Worker("W4", "Dana", ["Cutting"], active=False),
        Worker("W5", "Eva", ["Cutting", "Welding", "Safety"],
               absences=[Absence(date(2026, 3, 2), date(2026, 3, 3), "dovolená")]),
    ]
    return Catalog(ops, stations, workers)


@pytest.fixture()
def catalog() -> Catalog:
    return build_catalog()


@pytest.fixture()
def repo() -> InMemoryCodeRepository:
    return InMemoryCodeRepository()


@pytest.fixture()
def registry(catalog, repo) -> SemiCodeRegistry:
    return SemiCodeRegistry(catalog, repo)


@pytest.fixture()
def session(catalog, registry) -> PlanSession:
    return PlanSession(catalog, registry=registry, window_start=START)


@pytest.fixture()
def make_edit():
    """Továrna na NodeEdit s rozumnými defaulty (uzel na pile, 2 kg oceli → 1 ks)."""
    def _make(**kw) -> NodeEdit:
        data = dict(
            name="Řezání",
            time=30,
            station_ids=["ST-CUT"],
            materials=[{"materialId": "M-STEEL", "name": "Ocel", "quantity": 2, "unit": "kg"}],
            output_quantity=1,
            output_unit="pcs",
        )
        data.update(kw)
        return NodeEdit(**data)
    return _make


@pytest.fixture()
def tmp_paths(monkeypatch, tmp_path: Path):
    """
    Přesměruje registr kódů, plány a exporty do dočasné složky,
    aby testy nešahaly na reálná data.
    """
    registry_file = tmp_path / "data" / "registr_kodu.xlsx"
    monkeypatch.setattr("planning.paths.CODE_REGISTRY_FILE", registry_file, raising=False)
    monkeypatch.setattr("planning.paths.CATALOG_FILE", tmp_path / "data" / "katalog.xlsx", raising=False)
    monkeypatch.setattr("planning.paths.PLANS_DIR", tmp_path / "plany", raising=False)
    monkeypatch.setattr("planning.paths.EXPORT_DIR", tmp_path / "exporty", raising=False)
    return tmp_path
