# tests/test_node_editor.py
import copy

import pytest

from planning.errors import PlanValidationError, SkillMismatchError
from planning.graph_model import MaterialEntry, StationRef
from planning.node_editor import effective_time


@pytest.fixture()
def cut(session):
    return session.place_operation("OP-CUT").id


def _code(session, node_id, edit):
    with pytest.raises(PlanValidationError) as ei:
        session.save_node(node_id, edit)
    return ei.value.code


def test_save_node_happy_path(session, cut, make_edit, repo):
    res = session.save_node(cut, make_edit())
    n = session.store.get(cut)

    assert n.name == "Řezání" and n.duration == 30.0
    assert n.assigned_stations == [StationRef("ST-CUT", 1)]
    # efektivita z operace 0.8 → 30 / 0.8 = 37.5 → 38
    assert n.effective_time == 38
    assert n.materials == [MaterialEntry("M-STEEL", "Ocel", 2.0, "kg")]
    assert (n.output_quantity, n.output_unit) == (1.0, "pcs")
    # v den START je Eva pryč a Dana neaktivní
    assert res.assigned_worker == "W3" and n.assigned_worker == "W3"
    assert n.requires_attention is False
    # kód jen jako náhled, čítač netknutý
    assert (n.semi_code, n.semi_code_pending) == ("K-001", True)
    assert repo.counters() == {}
    assert [c.ref for c in session.schedule.commitments_for("W3")] == ["plan/node-1"]


def test_validation_order_and_codes(session, cut, make_edit):
    assert _code(session, cut, make_edit(name="  ")) == "name_time_required"
    assert _code(session, cut, make_edit(time=0.5)) == "name_time_required"
    # první porušená kontrola vyhrává
    assert _code(session, cut, make_edit(name="", station_ids=[])) == "name_time_required"
    assert _code(session, cut, make_edit(assignment_mode="manual")) == "manual_worker_missing"
    assert _code(session, cut, make_edit(assignment_mode="turbo")) == "invalid_mode"
    assert _code(session, cut, make_edit(station_ids=[])) == "no_station"
    assert _code(session, cut, make_edit(station_ids=["ST-NOPE"])) == "unknown_station"
    assert _code(session, cut, make_edit(materials=[])) == "start_needs_material"
    assert _code(session, cut, make_edit(
        materials=[{"materialId": "M-STEEL", "quantity": -1, "unit": "kg"}])) == "material_qty_invalid"
    assert _code(session, cut, make_edit(
        materials=[{"materialId": "M-STEEL", "quantity": "", "unit": "kg"}])) == "material_qty_invalid"
    assert _code(session, cut, make_edit(output_quantity=0)) == "output_qty_invalid"
    assert _code(session, cut, make_edit(output_unit=" ")) == "output_unit_missing"
    assert _code(session, cut, make_edit(efficiency_percent=0)) == "efficiency_invalid"
    assert _code(session, cut, make_edit(efficiency_percent=150)) == "efficiency_invalid"


def test_rejected_save_changes_nothing(session, cut, make_edit):
    session.save_node(cut, make_edit())
    before = copy.deepcopy(session.store.get(cut))
    bookings = session.schedule.all()

    with pytest.raises(PlanValidationError):
        session.save_node(cut, make_edit(name="Nové", station_ids=[]))

    assert session.store.get(cut) == before
    assert session.schedule.all() == bookings


def test_manual_skill_mismatch_changes_nothing(session, cut, make_edit):
    before = copy.deepcopy(session.store.get(cut))
    with pytest.raises(SkillMismatchError) as ei:
        session.save_node(cut, make_edit(assignment_mode="manual", worker_id="W1"))
    assert ei.value.missing == ["Cutting"]
    assert session.store.get(cut) == before
    assert session.schedule.all() == []


def test_manual_assignment(session, cut, make_edit):
    res = session.save_node(cut, make_edit(assignment_mode="manual", worker_id="W3"))
    n = session.store.get(cut)
    assert (res.assigned_worker, n.assignment_mode) == ("W3", "manual")
    assert n.assignment_warnings == []


def test_station_order_sets_priorities(session, cut, make_edit):
    res = session.save_node(cut, make_edit(station_ids=["ST-MULTI", "ST-CUT"]))
    n = session.store.get(cut)
    assert n.assigned_stations == [StationRef("ST-MULTI", 1), StationRef("ST-CUT", 2)]
    # víceúčelová stanice chce i svařování – v den START to nikdo volný nesplní
    assert res.assigned_worker is None and n.requires_attention is True
    assert n.semi_code == "KS-001"


def test_explicit_efficiency(session, cut, make_edit):
    session.save_node(cut, make_edit(efficiency_percent=50))
    n = session.store.get(cut)
    assert n.efficiency == 0.5
    assert n.effective_time == 60


def test_effective_time_rounding():
    assert effective_time(30, 0.8) == 38
    assert effective_time(45, 1.0) == 45
    assert effective_time(10, None) == 10
    assert effective_time(10, 0.3) == 33


def test_resave_does_not_clash_with_own_booking(session, cut, make_edit):
    session.save_node(cut, make_edit(assignment_mode="manual", worker_id="W3"))
    res = session.save_node(cut, make_edit(assignment_mode="manual", worker_id="W3", name="Řezání 2"))
    assert res.assignment_warnings == []
    assert len(session.schedule.commitments_for("W3")) == 1


def test_derived_rows_survive_and_receive_upstream_output(session, make_edit):
    cut = session.place_operation("OP-CUT").id
    weld = session.place_operation("OP-WELD").id
    session.connect(cut, weld)

    wire = {"materialId": "M-WIRE", "name": "Drát", "quantity": 1.5, "unit": "m"}
    session.save_node(weld, make_edit(name="Svařování", time=45, station_ids=["ST-WELD"], materials=[wire]))
    n = session.store.get(weld)
    assert n.planner_rows() == [MaterialEntry("M-WIRE", "Drát", 1.5, "m")]
    assert len(n.derived_rows(cut)) == 1
    # množství polotovaru zatím neznámé → žádný kód
    assert n.semi_code is None
    assert n.assigned_worker == "W2"

    session.save_node(cut, make_edit())
    row = session.store.get(weld).derived_rows(cut)[0]
    assert (row.material_id, row.quantity, row.unit) == ("K-001", 1.0, "pcs")


def test_edit_cannot_alter_derived_row(session, make_edit):
    cut = session.place_operation("OP-CUT").id
    weld = session.place_operation("OP-WELD").id
    session.connect(cut, weld)
    forged = {"materialId": "FAKE", "quantity": 5, "unit": "pcs", "derivedFrom": cut}
    assert _code(session, weld, make_edit(station_ids=["ST-WELD"], materials=[forged])) == "derived_row_locked"


def test_successor_without_own_material_is_allowed(session, make_edit):
    cut = session.place_operation("OP-CUT").id
    weld = session.place_operation("OP-WELD").id
    session.connect(cut, weld)
    session.save_node(weld, make_edit(station_ids=["ST-WELD"], materials=[]))
    assert session.store.get(weld).planner_rows() == []
