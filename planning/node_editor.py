# -*- coding: utf-8 -*-
"""
Uložení úprav uzlu z editoru (název, čas, stanice, materiály, výstup, přiřazení).

Kontroly v tomto pořadí, každá končí `PlanValidationError` bez jakékoli změny:
  1) název + odhadovaný čas >= 1 min
  2) ruční režim → vybraný pracovník
  3) aspoň jedna stanice (a všechny v katalogu)
  4) počáteční uzel (bez předchůdců) → aspoň jeden materiál
  5) každý zadaný materiál má platné množství >= 0
  6) výstupní množství > 0 a vyplněná jednotka
  7) efektivita (pokud je) v intervalu (0, 100] %
Přiřazení (včetně chyby chybějících dovedností v ručním režimu) se spočítá
na kopii uzlu ještě před zápisem, takže i tahle chyba nic nezmění.

Po úspěchu: efektivní čas = round(čas / efektivita), stanice dostanou
priority 1..n v zadaném pořadí, kód polotovaru se jen předběžně spočítá
(potvrdí se při uložení plánu) a výstup se propíše do následníků.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from planning.assignment import apply_assignment, node_window, resolve_assignment
from planning.data_utils import safe_float, to_str_list
from planning.errors import PlanValidationError
from planning.error_messages import MSG
from planning.graph_model import (
    ASSIGN_AUTO, ASSIGN_MANUAL, AssignmentResult, MaterialEntry, Node, StationRef, as_material,
)

logger = logging.getLogger(__name__)


@dataclass
class NodeEdit:
    name: str
    time: float                                   # odhad na jednotku (min)
    station_ids: List[str] = field(default_factory=list)   # pořadí = priorita
    assignment_mode: str = ASSIGN_AUTO
    worker_id: Optional[str] = None
    materials: Optional[list] = None              # None = ponechat stávající řádky plánovače
    output_quantity: Optional[float] = None
    output_unit: str = ""
    efficiency_percent: Optional[float] = None    # None = default operace
    skills: Optional[List[str]] = None
    window_start: Optional[datetime] = None


def _fail(code: str, field_name: str, detail: str = ""):
    msg = MSG[code] if not detail else f"{MSG[code]} ({detail})"
    logger.warning("Uložení uzlu odmítnuto: %s", msg)
    raise PlanValidationError(code, msg, field=field_name)


def _merge_materials(node: Node, edit: NodeEdit) -> List[MaterialEntry]:
    """Řádky plánovače z editoru + beze změny všechny odvozené řádky uzlu."""
    derived = [copy.deepcopy(m) for m in node.derived_rows()]
    if edit.materials is None:
        return [copy.deepcopy(m) for m in node.planner_rows()] + derived

    locked = {(m.derived_from, m.material_id) for m in derived}
    planner: List[MaterialEntry] = []
    for raw in edit.materials:
        m = as_material(raw)
        if m.is_derived:
            if (m.derived_from, m.material_id) not in locked:
                _fail("derived_row_locked", "materials", m.material_id)
            continue
        if m.material_id:
            planner.append(m)
    return planner + derived


def validate_edit(session, node: Node, edit: NodeEdit) -> List[MaterialEntry]:
    """Projde všech sedm kontrol; vrací výslednou sadu materiálů uzlu."""
    name = (edit.name or "").strip()
    time = safe_float(edit.time)
    if not name or time is None or time < 1:
        _fail("name_time_required", "name")

    if edit.assignment_mode not in (ASSIGN_AUTO, ASSIGN_MANUAL):
        _fail("invalid_mode", "assignment_mode", str(edit.assignment_mode))
    if edit.assignment_mode == ASSIGN_MANUAL and not edit.worker_id:
        _fail("manual_worker_missing", "assigned_worker")

    station_ids = to_str_list(edit.station_ids)
    if not station_ids:
        _fail("no_station", "assigned_stations")
    for sid in station_ids:
        if session.catalog.find_station(sid) is None:
            _fail("unknown_station", "assigned_stations", sid)

    materials = _merge_materials(node, edit)
    if session.store.is_start(node.id) and not materials:
        _fail("start_needs_material", "materials")

    for m in materials:
        if m.is_derived:
            continue
        if m.quantity is None or m.quantity < 0:
            _fail("material_qty_invalid", "materials", m.material_id)

    out_qty = safe_float(edit.output_quantity)
    if out_qty is None or out_qty <= 0:
        _fail("output_qty_invalid", "output_quantity")
    if not (edit.output_unit or "").strip():
        _fail("output_unit_missing", "output_unit")

    if edit.efficiency_percent is not None:
        eff = safe_float(edit.efficiency_percent)
        if eff is None or eff <= 0 or eff > 100:
            _fail("efficiency_invalid", "efficiency")
    return materials


def effective_time(time: float, efficiency: Optional[float]) -> int:
    eff = efficiency if efficiency and efficiency > 0 else 1.0
    return int(round(float(time) / eff))


def save_node(session, node_id: str, edit: NodeEdit) -> AssignmentResult:
    """
    Validuje a atomicky uloží úpravu uzlu. Vrací výsledek přiřazení.
    `session` = PlanSession (store, catalog, registry, schedule).
    """
    store = session.store
    node = store.get(node_id)
    materials = validate_edit(session, node, edit)

    draft = copy.deepcopy(node)
    draft.name = edit.name.strip()
    draft.duration = float(safe_float(edit.time))
    draft.materials = materials
    draft.output_quantity = safe_float(edit.output_quantity)
    draft.output_unit = edit.output_unit.strip()
    draft.assigned_stations = [StationRef(sid, i) for i, sid in enumerate(to_str_list(edit.station_ids), start=1)]
    if edit.skills is not None:
        draft.skills = to_str_list(edit.skills)

    if edit.efficiency_percent is not None:
        draft.efficiency = safe_float(edit.efficiency_percent) / 100.0
    else:
        draft.efficiency = None
    op = session.catalog.find_operation(draft.operation_id)
    eff = draft.efficiency or (op.default_efficiency if op is not None else None) or 1.0
    draft.effective_time = effective_time(draft.duration, eff)

    # přiřazení na kopii – chyba tady ještě nic nezměnila
    ref = session.schedule_ref(node_id)
    window = node_window(draft, edit.window_start or session.window_start)
    result = resolve_assignment(
        draft, session.catalog, session.schedule,
        mode=edit.assignment_mode, worker_id=edit.worker_id,
        window=window, ignore_ref=ref,
    )
    apply_assignment(draft, result)
    session.registry.apply_preview(draft)

    patch = {
        "name": draft.name,
        "duration": draft.duration,
        "skills": draft.skills,
        "materials": draft.materials,
        "output_quantity": draft.output_quantity,
        "output_unit": draft.output_unit,
        "efficiency": draft.efficiency,
        "effective_time": draft.effective_time,
        "assigned_stations": draft.assigned_stations,
        "assigned_worker": draft.assigned_worker,
        "assignment_mode": draft.assignment_mode,
        "assignment_warnings": draft.assignment_warnings,
        "requires_attention": draft.requires_attention,
        "semi_code": draft.semi_code,
        "semi_code_pending": draft.semi_code_pending,
    }
    store.update_node(node_id, patch)
    session.book_worker(node_id, result.assigned_worker, window)
    logger.info("Uzel %s uložen (kód %s, pracovník %s)", node_id, draft.semi_code or "-",
                result.assigned_worker or "-")
    return result
