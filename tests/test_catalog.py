# tests/test_catalog.py
import pytest

from planning.catalog import Catalog, merge_skills
from planning.errors import CatalogError
from planning.graph_model import Operation, Station


def test_effective_skills_do_not_touch_input_objects():
    weld = Station("ST-WELD", "Svařovna", ["OP-WELD"], sub_skills=["Safety"])
    cat = Catalog([Operation("OP-WELD", "Svařování", skills=["Welding"])], [weld])
    assert cat.station("ST-WELD").effective_skills == ["Welding", "Safety"]
    assert weld.effective_skills == []
    assert cat.station("ST-WELD") is not weld


def test_given_effective_skills_are_kept():
    st = Station("ST-X", "X", ["OP-WELD"], effective_skills=["Custom"])
    cat = Catalog([Operation("OP-WELD", "Svařování", skills=["Welding"])], [st])
    assert cat.station("ST-X") is st
    assert st.effective_skills == ["Custom"]


def test_merge_skills_and_lookups(catalog):
    assert merge_skills(["A", "B"], [" B", "C"], None) == ["A", "B", "C"]
    assert catalog.find_station("ST-NOPE") is None
    with pytest.raises(CatalogError):
        catalog.worker("W99")
    assert [s.id for s in catalog.stations_for_operation("OP-CUT")] == ["ST-CUT", "ST-MULTI"]
