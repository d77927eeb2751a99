# tests/test_controller.py
from datetime import datetime

import pytest

from controllers.plan_designer_controller import PlanDesignerController
from planning.errors import PlanError, PlanValidationError
from planning.graph_store import CONNECTED, NODE_ADDED, NODE_UPDATED

START = datetime(2026, 3, 2, 8, 0)

CUT_FORM = {
    "name": "Řezání",
    "time": "30",
    "stations": ["ST-CUT"],
    "materials": [{"materialId": "M-STEEL", "name": "Ocel", "quantity": "2,5", "unit": "kg"}],
    "output_qty": 2,
    "output_unit": "pcs",
}


@pytest.fixture()
def ctrl(catalog, registry):
    return PlanDesignerController(catalog, registry=registry, window_start=START)


def test_controller_flow(ctrl, tmp_paths):
    events = []
    ctrl.subscribe(lambda ev: events.append(ev.kind))

    cut = ctrl.add_operation("OP-CUT")
    weld = ctrl.add_operation("OP-WELD")
    assert ctrl.selected() == weld
    ctrl.connect(cut, weld)

    res = ctrl.save_node_form(cut, CUT_FORM)
    assert res["assignedWorker"] == "W3"
    assert ctrl.preview_code(cut) == "K-001"

    assert events[:3] == [NODE_ADDED, NODE_ADDED, CONNECTED]
    assert NODE_UPDATED in events

    df = ctrl.nodes_df()
    assert df["uzel"].tolist() == [cut, weld]
    mats = ctrl.materials_df().set_index("material_id")
    assert mats.loc["M-STEEL", "potreba"] == pytest.approx(2.5)

    ctrl.set_meta("PL-7", name="Rám", quantity=2)
    path = ctrl.save()
    assert path.name == "PL-7.json"
    assert ctrl.session.store.get(cut).semi_code == "K-001"
    assert ctrl.export_excel().name == "PL-7.xlsx"


def test_form_validation_error_carries_field(ctrl):
    cut = ctrl.add_operation("OP-CUT")
    with pytest.raises(PlanValidationError) as ei:
        ctrl.save_node_form(cut, {**CUT_FORM, "stations": []})
    assert ei.value.field == "assigned_stations"


def test_delete_clears_selection(ctrl):
    nid = ctrl.add_operation("OP-CUT")
    ctrl.delete_node(nid)
    assert ctrl.selected() is None
    with pytest.raises(KeyError):
        ctrl.select(nid)


def test_deploy_locks_the_plan(ctrl):
    cut = ctrl.add_operation("OP-CUT")
    ctrl.save_node_form(cut, CUT_FORM)
    out = ctrl.deploy()
    assert out["order"] == [cut]
    assert ctrl.read_only()
    with pytest.raises(PlanError):
        ctrl.add_operation("OP-WELD")
    with pytest.raises(PlanError):
        ctrl.save_node_form(cut, CUT_FORM)


def test_failed_deploy_keeps_plan_editable(ctrl):
    ctrl.add_operation("OP-CUT")          # bez stanice
    with pytest.raises(PlanValidationError):
        ctrl.deploy()
    assert not ctrl.read_only()
    ctrl.add_operation("OP-WELD")


def test_open_replaces_plan_and_keeps_events(ctrl, catalog, registry, tmp_paths):
    other = PlanDesignerController(catalog, registry=registry, window_start=START)
    a = other.add_operation("OP-CUT")
    b = other.add_operation("OP-PAINT")
    other.connect(a, b)
    other.set_meta("PL-8")
    path = other.save()

    ctrl.add_operation("OP-WELD")
    ctrl.open(path)
    assert ctrl.session.meta.plan_id == "PL-8"
    assert ctrl.execution_order() == [a, b]

    events = []
    ctrl.subscribe(lambda ev: events.append(ev.kind))
    ctrl.add_operation("OP-WELD")
    assert events == [NODE_ADDED]
    assert ctrl.session.store.node_ids()[-1] == "node-3"
